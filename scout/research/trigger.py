"""
Entry points for organization research.

trigger_research researches one organization by name;
run_scheduled_research refreshes pending or stale organizations one by
one. Both return ResearchExecutionResult records and never raise.
"""

import threading
import time
from dataclasses import asdict, dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional

from scout.common.agent_config import ResearchSettings
from scout.common.config import Config
from scout.common.error_handling import ConfigurationError
from scout.common.logger import get_logger
from scout.common.repositories import OrganizationStoreInterface, ResearchStatus, get_store
from scout.research.llm_research import ResearchLLM
from scout.research.orchestrator import ResearchCoordinator
from scout.research.state import ResearchPhase, initial_research_run
from scout.research.url_validator import UrlValidator
from scout.search.web_search import WebSearchClient

logger = get_logger(__name__, stage="research_trigger")


@dataclass
class ResearchExecutionResult:
    run_id: Optional[str]
    organization_id: Optional[str]
    organization_name: str
    final_phase: str
    status: str
    summary: Optional[str] = None
    score: Optional[int] = None
    signals_found: int = 0
    contacts_found: int = 0
    errors: List[str] = field(default_factory=list)

    @property
    def succeeded(self) -> bool:
        return self.status == "complete"

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def _failed_result(
    organization_name: str,
    error: str,
    organization_id: Optional[str] = None,
    run_id: Optional[str] = None,
) -> ResearchExecutionResult:
    return ResearchExecutionResult(
        run_id=run_id,
        organization_id=organization_id,
        organization_name=organization_name,
        final_phase=ResearchPhase.ERROR.value,
        status="failed",
        errors=[error],
    )


def resolve_store(store: Optional[OrganizationStoreInterface]) -> OrganizationStoreInterface:
    if store is not None:
        return store
    try:
        return get_store()
    except ValueError as e:
        raise ConfigurationError(str(e)) from e


def build_coordinator(
    store: OrganizationStoreInterface,
    settings: Optional[ResearchSettings] = None,
    search_client: Optional[WebSearchClient] = None,
    research_llm: Optional[ResearchLLM] = None,
    url_validator: Optional[UrlValidator] = None,
    cancel_event: Optional[threading.Event] = None,
) -> ResearchCoordinator:
    """
    Construct a coordinator, converting missing credentials into ConfigurationError.
    """
    if search_client is None or research_llm is None:
        Config.validate_services()
    try:
        return ResearchCoordinator(
            store,
            settings=settings,
            search_client=search_client,
            research_llm=research_llm,
            url_validator=url_validator,
            cancel_event=cancel_event,
        )
    except ConfigurationError:
        raise
    except Exception as e:
        raise ConfigurationError(f"Could not initialize research services: {e}") from e


def research_organization(
    organization: Dict[str, Any],
    coordinator: ResearchCoordinator,
    profile_id: str = "default",
) -> ResearchExecutionResult:
    """
    Create a research run for an existing organization record and drive it
    to completion.
    """
    store = coordinator.store
    name = organization["name"]
    research_run_id = store.create_research_run(organization["id"], profile_id)
    store.update_organization(organization["id"], {"research_status": ResearchStatus.RESEARCHING})

    run = initial_research_run(
        name,
        coordinator.settings,
        organization_id=organization["id"],
        organization_domain=organization.get("domain"),
        research_run_id=research_run_id,
        profile_id=profile_id,
    )
    final = coordinator.run_to_completion(run)

    return ResearchExecutionResult(
        run_id=research_run_id,
        organization_id=organization["id"],
        organization_name=name,
        final_phase=final.phase.value,
        status="complete" if final.phase == ResearchPhase.COMPLETE else "failed",
        summary=final.summary,
        score=final.score,
        signals_found=len(final.signals),
        contacts_found=len(final.contacts),
        errors=list(final.errors),
    )


def trigger_research(
    organization_name: str,
    profile_id: str = "default",
    store: Optional[OrganizationStoreInterface] = None,
    settings: Optional[ResearchSettings] = None,
    search_client: Optional[WebSearchClient] = None,
    research_llm: Optional[ResearchLLM] = None,
    url_validator: Optional[UrlValidator] = None,
) -> ResearchExecutionResult:
    """
    Research one organization by name (created as pending if unknown).

    Configuration problems return a failed result without creating any
    run record.
    """
    logger.info(f"Starting research for organization: {organization_name} (profile: {profile_id})")

    try:
        store = resolve_store(store)
        coordinator = build_coordinator(
            store,
            settings=settings,
            search_client=search_client,
            research_llm=research_llm,
            url_validator=url_validator,
        )
    except ConfigurationError as e:
        logger.error(f"Research not started for {organization_name}: {e}")
        return _failed_result(organization_name, str(e))

    organization_id = None
    try:
        organization = store.get_or_create_organization(organization_name, profile_id)
        organization_id = organization["id"]
        return research_organization(organization, coordinator, profile_id)
    except Exception as e:
        logger.error(f"Research failed for {organization_name}: {e}")
        return _failed_result(organization_name, str(e), organization_id=organization_id)


def run_scheduled_research(
    limit: int = 5,
    profile_id: str = "default",
    store: Optional[OrganizationStoreInterface] = None,
    delay_seconds: Optional[float] = None,
    **services: Any,
) -> List[ResearchExecutionResult]:
    """
    Research organizations that are pending or were last researched more
    than SCHEDULED_RESEARCH_STALE_DAYS ago, sequentially.
    """
    delay = Config.SCHEDULED_RESEARCH_DELAY_SECONDS if delay_seconds is None else delay_seconds
    try:
        store = resolve_store(store)
    except ConfigurationError as e:
        logger.error(f"Scheduled research not started: {e}")
        return []

    cutoff = datetime.now(timezone.utc) - timedelta(days=Config.SCHEDULED_RESEARCH_STALE_DAYS)
    organizations = store.get_organizations_needing_research(limit, profile_id, cutoff)

    if not organizations:
        logger.info("No organizations need research")
        return []

    logger.info(f"Running scheduled research for {len(organizations)} organizations (profile: {profile_id})")

    results: List[ResearchExecutionResult] = []
    for index, organization in enumerate(organizations):
        if index > 0 and delay > 0:
            time.sleep(delay)
        try:
            results.append(trigger_research(organization["name"], profile_id, store=store, **services))
        except Exception as e:
            logger.error(f"Scheduled research failed for {organization['name']}: {e}")
            results.append(_failed_result(organization["name"], str(e), organization_id=organization["id"]))

    return results
