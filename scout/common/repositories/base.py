"""
Store Interface Definitions

Defines the abstract interface for every persistence operation discovery
and research need. Coordinators only talk to this interface, so tests can
swap in an in-memory implementation and the MongoDB implementation can
change without touching workflow code.
"""

from abc import ABC, abstractmethod
from datetime import datetime
from typing import Any, Dict, List, Optional

from scout.common.types import AgentRole, Profile, ResearchAgentConfig


class ResearchStatus:
    """Organization research_status values."""
    PENDING = "pending"
    RESEARCHING = "researching"
    RESEARCHED = "researched"
    FAILED = "failed"


class OrganizationStoreInterface(ABC):
    """
    Abstract interface for organizations, research/discovery runs, signals,
    contacts, fit analyses and agent configuration.

    Implementations:
    - AtlasOrganizationStore: MongoDB Atlas

    Documents are plain dicts with a string "id" key.
    """

    # ===== Profiles =====

    @abstractmethod
    def get_profile(self, profile_id: str) -> Optional[Profile]:
        pass

    @abstractmethod
    def save_profile(self, profile: Profile) -> None:
        pass

    # ===== Organizations =====

    @abstractmethod
    def get_or_create_organization(self, name: str, profile_id: str = "default") -> Dict[str, Any]:
        """
        Get the organization with this name (case-insensitive) for the profile,
        creating a pending record if none exists.
        """
        pass

    @abstractmethod
    def get_organization(self, organization_id: str) -> Optional[Dict[str, Any]]:
        pass

    @abstractmethod
    def update_organization(self, organization_id: str, fields: Dict[str, Any]) -> None:
        """Set fields such as domain, URLs, overall_score, research_status, last_researched_at."""
        pass

    @abstractmethod
    def get_organizations_needing_research(
        self,
        limit: int,
        profile_id: str,
        stale_before: datetime,
    ) -> List[Dict[str, Any]]:
        """Pending organizations, plus researched ones last researched before stale_before."""
        pass

    # ===== Research runs =====

    @abstractmethod
    def create_research_run(self, organization_id: str, profile_id: str = "default") -> str:
        pass

    @abstractmethod
    def update_research_run(self, research_run_id: str, fields: Dict[str, Any]) -> None:
        pass

    @abstractmethod
    def get_research_run(self, research_run_id: str) -> Optional[Dict[str, Any]]:
        pass

    # ===== Signals =====

    @abstractmethod
    def save_signals(
        self,
        organization_id: str,
        research_run_id: str,
        signals: List[Dict[str, Any]],
    ) -> int:
        """Append signals; returns the number stored."""
        pass

    @abstractmethod
    def get_signals(self, organization_id: str) -> List[Dict[str, Any]]:
        """Signals for an organization, most confident first."""
        pass

    # ===== Contacts =====

    @abstractmethod
    def save_contacts(
        self,
        organization_id: str,
        research_run_id: str,
        contacts: List[Dict[str, Any]],
    ) -> List[Dict[str, Any]]:
        """
        Upsert contacts.

        A contact matching by linkedin_url, else by (name, title), is updated
        in place: outreach_status and notes are preserved, and a null
        linkedin_url/email never overwrites a stored value.
        """
        pass

    @abstractmethod
    def get_contacts(self, organization_id: str) -> List[Dict[str, Any]]:
        """Contacts for an organization, most relevant first."""
        pass

    # ===== Discovery runs =====

    @abstractmethod
    def create_discovery_run(self, profile_id: str, settings: Optional[Dict[str, Any]] = None) -> str:
        pass

    @abstractmethod
    def update_discovery_run(self, discovery_run_id: str, fields: Dict[str, Any]) -> None:
        pass

    @abstractmethod
    def get_discovery_run(self, discovery_run_id: str) -> Optional[Dict[str, Any]]:
        pass

    @abstractmethod
    def create_discovery_link(
        self,
        discovery_run_id: str,
        organization_id: str,
        source_query: str,
        snippet: str,
        rank: int,
    ) -> None:
        """Link an organization to the run that discovered it (idempotent per pair)."""
        pass

    @abstractmethod
    def create_fit_analysis(
        self,
        discovery_run_id: str,
        profile_id: str,
        analysis: Dict[str, Any],
    ) -> str:
        pass

    @abstractmethod
    def get_fit_analyses(self, discovery_run_id: str) -> List[Dict[str, Any]]:
        pass

    @abstractmethod
    def get_discovery_results(self, discovery_run_id: str) -> List[Dict[str, Any]]:
        """Organizations linked to the run with their fit analysis, best overall score first."""
        pass

    # ===== Agent configuration =====

    @abstractmethod
    def get_agent_config(self, role: AgentRole) -> Optional[ResearchAgentConfig]:
        pass

    @abstractmethod
    def save_agent_config(self, config: ResearchAgentConfig) -> None:
        pass


def rank_discovery_results(results: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    """Sort by fit overall score (highest first, unanalyzed last), then discovery rank."""

    def sort_key(result: Dict[str, Any]):
        fit = result.get("fit_analysis")
        score = fit.get("overall_fit_score") if fit else None
        return (score is None, -(score or 0), result.get("rank") or 0)

    return sorted(results, key=sort_key)
