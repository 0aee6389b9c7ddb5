"""
State for one discovery run.

Like research, the run is a dataclass advanced step by step; nodes return
partial updates and apply_updates folds them in. Discovered organizations
merge by case-insensitive name (a later update never moves the rank),
fit analyses merge by organization id, errors append and api_calls sums.
"""

from dataclasses import asdict, dataclass, field, replace
from enum import Enum
from typing import Any, Dict, List, Optional, Sequence

from scout.common.dedupe import organization_key
from scout.common.types import Profile
from scout.research.state import append_errors


class DiscoveryPhase(str, Enum):
    INIT = "init"
    DISCOVERING = "discovering"
    RESEARCHING = "researching"
    ANALYZING = "analyzing"
    SYNTHESIZING = "synthesizing"
    COMPLETE = "complete"
    ERROR = "error"

    @property
    def is_terminal(self) -> bool:
        return self in (DiscoveryPhase.COMPLETE, DiscoveryPhase.ERROR)


@dataclass
class DiscoveredOrganization:
    name: str
    snippet: str
    source_query: str
    source_url: str
    rank: int
    organization_id: Optional[str] = None
    research_complete: bool = False
    research_failed: bool = False

    @property
    def key(self) -> str:
        return organization_key(self.name)

    @property
    def is_pending(self) -> bool:
        return not self.research_complete and not self.research_failed


@dataclass(frozen=True)
class FitAnalysisResult:
    organization_id: str
    organization_name: str
    criteria_match_score: int
    culture_match_score: int
    opportunity_score: int
    location_match_score: int
    overall_fit_score: int
    criteria_match_analysis: str
    positioning_strategy: str
    prioritized_contacts: tuple = ()
    outreach_template: Optional[str] = None

    def to_record(self) -> Dict[str, Any]:
        record = asdict(self)
        record["prioritized_contacts"] = list(self.prioritized_contacts)
        return record


def merge_discovered_organizations(
    current: Sequence[DiscoveredOrganization],
    new: Sequence[DiscoveredOrganization],
) -> List[DiscoveredOrganization]:
    """
    Dedup by lowercase name, keeping first-seen order.

    An update for a known name takes the new id and research flags but keeps
    the original rank.
    """
    merged: Dict[str, DiscoveredOrganization] = {org.key: org for org in current}
    for org in new:
        existing = merged.get(org.key)
        if existing is None:
            merged[org.key] = org
        else:
            merged[org.key] = replace(
                existing,
                organization_id=org.organization_id or existing.organization_id,
                research_complete=org.research_complete,
                research_failed=org.research_failed,
            )
    return list(merged.values())


def merge_fit_analyses(
    current: Sequence[FitAnalysisResult],
    new: Sequence[FitAnalysisResult],
) -> List[FitAnalysisResult]:
    """Dedup by organization id; the latest analysis for an id wins."""
    merged: Dict[str, FitAnalysisResult] = {a.organization_id: a for a in current}
    for analysis in new:
        merged[analysis.organization_id] = analysis
    return list(merged.values())


@dataclass
class DiscoveryRun:
    profile_id: str
    profile: Optional[Profile] = None
    discovery_run_id: Optional[str] = None
    phase: DiscoveryPhase = DiscoveryPhase.INIT
    queries: List[str] = field(default_factory=list)
    queries_executed: int = 0
    organizations: List[DiscoveredOrganization] = field(default_factory=list)
    organizations_researched: int = 0
    fit_analyses: List[FitAnalysisResult] = field(default_factory=list)
    summary: Optional[str] = None
    errors: List[str] = field(default_factory=list)
    api_calls: int = 0
    max_organizations: int = 10
    research_batch_size: int = 3

    def pending_organizations(self) -> List[DiscoveredOrganization]:
        """Not yet researched, within the max_organizations window."""
        return [o for o in self.organizations if o.is_pending][:self.max_organizations]

    def researched_organizations(self) -> List[DiscoveredOrganization]:
        return [o for o in self.organizations if o.research_complete and o.organization_id]

    def unanalyzed_organizations(self) -> List[DiscoveredOrganization]:
        analyzed = {a.organization_id for a in self.fit_analyses}
        return [o for o in self.researched_organizations() if o.organization_id not in analyzed]


def apply_updates(run: DiscoveryRun, updates: Dict[str, Any]) -> DiscoveryRun:
    """Fold a node's partial update into a new DiscoveryRun."""
    changes: Dict[str, Any] = {}
    for key, value in updates.items():
        if key == "organizations":
            changes[key] = merge_discovered_organizations(run.organizations, value)
        elif key == "fit_analyses":
            changes[key] = merge_fit_analyses(run.fit_analyses, value)
        elif key == "errors":
            changes[key] = append_errors(run.errors, value)
        elif key == "api_calls":
            changes[key] = run.api_calls + value
        else:
            changes[key] = value
    return replace(run, **changes)
