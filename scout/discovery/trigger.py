"""
Entry points for organization discovery.

trigger_discovery runs a full discovery for a profile and returns the
ranked results; get_discovery_status reads a run back from the store.
Neither raises.
"""

from dataclasses import asdict, dataclass, field
from typing import Any, Dict, List, Optional

from scout.common.config import Config
from scout.common.error_handling import ConfigurationError
from scout.common.logger import get_logger
from scout.common.repositories import OrganizationStoreInterface
from scout.discovery.orchestrator import DiscoveryCoordinator
from scout.discovery.state import DiscoveryPhase, DiscoveryRun
from scout.research.trigger import resolve_store

logger = get_logger(__name__, stage="discovery_trigger")


@dataclass
class DiscoveryExecutionResult:
    run_id: Optional[str]
    final_phase: str
    status: str
    organizations_discovered: int = 0
    organizations_researched: int = 0
    organizations_analyzed: int = 0
    ranked_results: List[Dict[str, Any]] = field(default_factory=list)
    summary: Optional[str] = None
    errors: List[str] = field(default_factory=list)

    @property
    def succeeded(self) -> bool:
        return self.status == "complete"

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def _failed_result(error: str, run_id: Optional[str] = None) -> DiscoveryExecutionResult:
    return DiscoveryExecutionResult(
        run_id=run_id,
        final_phase=DiscoveryPhase.ERROR.value,
        status="failed",
        errors=[error],
    )


def build_discovery_coordinator(store: OrganizationStoreInterface, **services: Any) -> DiscoveryCoordinator:
    """Construct a coordinator, converting missing credentials into ConfigurationError."""
    if services.get("search_client") is None or services.get("discovery_llm") is None:
        Config.validate_services()
    try:
        return DiscoveryCoordinator(store, **services)
    except ConfigurationError:
        raise
    except Exception as e:
        raise ConfigurationError(f"Could not initialize discovery services: {e}") from e


def trigger_discovery(
    profile_id: str = "default",
    max_organizations: int = 10,
    batch_size: int = 3,
    store: Optional[OrganizationStoreInterface] = None,
    **services: Any,
) -> DiscoveryExecutionResult:
    """
    Discover, research and rank organizations for a profile.

    Args:
        profile_id: Stored profile to discover for
        max_organizations: Cap on organizations discovered and researched
        batch_size: Organizations researched concurrently per batch
        store: Store override (defaults to get_store())
        **services: DiscoveryCoordinator overrides (search_client,
            discovery_llm, research_llm, coordinator_factory, ...)

    Returns:
        DiscoveryExecutionResult. A missing profile or missing credentials
        give a failed result and no discovery run record.
    """
    logger.info(f"Starting discovery for profile: {profile_id}")
    logger.info(f"Options: max_organizations={max_organizations}, batch_size={batch_size}")

    try:
        store = resolve_store(store)
        try:
            profile = store.get_profile(profile_id)
        except Exception as e:
            raise ConfigurationError(f"Could not load profile {profile_id}: {e}") from e
        if profile is None:
            raise ConfigurationError(f"Profile not found: {profile_id}")
        coordinator = build_discovery_coordinator(store, **services)
    except ConfigurationError as e:
        logger.error(f"Discovery not started: {e}")
        return _failed_result(str(e))

    try:
        run_id = store.create_discovery_run(profile_id, {
            "max_organizations": max_organizations,
            "research_batch_size": batch_size,
        })
    except Exception as e:
        logger.error(f"Could not create discovery run: {e}")
        return _failed_result(f"Could not create discovery run: {e}")
    logger.info(f"Created discovery run: {run_id}")

    run = DiscoveryRun(
        profile_id=profile_id,
        profile=profile,
        discovery_run_id=run_id,
        max_organizations=max_organizations,
        research_batch_size=batch_size,
    )

    try:
        final = coordinator.run_to_completion(run)
        ranked = store.get_discovery_results(run_id)
    except Exception as e:
        logger.error(f"Discovery failed: {e}")
        try:
            store.update_discovery_run(run_id, {"status": "failed", "error_message": str(e)})
        except Exception as update_error:
            logger.error(f"Could not record discovery failure: {update_error}")
        return _failed_result(str(e), run_id=run_id)

    logger.info(f"Discovery finished in phase: {final.phase.value}")
    return DiscoveryExecutionResult(
        run_id=run_id,
        final_phase=final.phase.value,
        status="complete" if final.phase == DiscoveryPhase.COMPLETE else "failed",
        organizations_discovered=len(final.organizations),
        organizations_researched=final.organizations_researched,
        organizations_analyzed=len(final.fit_analyses),
        ranked_results=ranked,
        summary=final.summary,
        errors=list(final.errors),
    )


def get_discovery_status(
    run_id: str,
    store: Optional[OrganizationStoreInterface] = None,
) -> Optional[DiscoveryExecutionResult]:
    """
    Read back a discovery run and its ranked results.

    Returns None when the run is unknown or the store is unavailable.
    """
    try:
        store = resolve_store(store)
        record = store.get_discovery_run(run_id)
        results = store.get_discovery_results(run_id)
    except Exception as e:
        logger.error(f"Could not load discovery run {run_id}: {e}")
        return None

    if record is None and not results:
        return None

    record = record or {}
    status = record.get("status") or DiscoveryPhase.COMPLETE.value
    return DiscoveryExecutionResult(
        run_id=run_id,
        final_phase=DiscoveryPhase.ERROR.value if status == "failed" else status,
        status=status,
        organizations_discovered=record.get("organizations_discovered", len(results)),
        organizations_researched=record.get(
            "organizations_researched", sum(1 for r in results if r.get("research_complete"))
        ),
        organizations_analyzed=sum(1 for r in results if r.get("fit_analysis")),
        ranked_results=results,
        summary=record.get("summary"),
        errors=list(record.get("errors") or []),
    )
