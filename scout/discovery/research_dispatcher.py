"""
Research Batch Dispatcher

Researches up to research_batch_size pending organizations concurrently.
Each organization runs a full ResearchCoordinator cycle in a worker thread
under its own timeout; a timeout or crash marks only that organization
failed. Results are folded into the run once per batch.

Concurrency: asyncio.gather over asyncio.wait_for(loop.run_in_executor(...))
on a ThreadPoolExecutor owned by the batch. The executor is shut down
without waiting, so a timed-out organization never holds up its batch;
its cancel event is set and its coordinator stops at the next step
boundary and records the failure.
"""

import asyncio
import threading
from concurrent.futures import ThreadPoolExecutor
from typing import Any, Callable, Dict, List, Optional, Tuple

from scout.common.agent_config import ResearchSettings
from scout.common.config import Config
from scout.common.error_handling import ResearchTimeoutError
from scout.common.logger import get_logger
from scout.common.repositories.base import OrganizationStoreInterface
from scout.discovery.state import (
    DiscoveredOrganization,
    DiscoveryPhase,
    DiscoveryRun,
    merge_discovered_organizations,
)
from scout.research.llm_research import ResearchLLM
from scout.research.orchestrator import ResearchCoordinator, load_research_settings
from scout.research.trigger import build_coordinator, research_organization
from scout.research.url_validator import UrlValidator
from scout.search.web_search import WebSearchClient

CoordinatorFactory = Callable[[threading.Event], ResearchCoordinator]

# (updated organization, error message or None)
BatchOutcome = Tuple[DiscoveredOrganization, Optional[str]]


class ResearchBatchDispatcher:
    """
    Fans research out over one batch of discovered organizations.

    coordinator_factory builds a ResearchCoordinator bound to a cancel event;
    by default each organization gets its own coordinator sharing the
    dispatcher's settings, search client and LLM wrapper.
    """

    def __init__(
        self,
        store: OrganizationStoreInterface,
        search_client: Optional[WebSearchClient] = None,
        research_llm: Optional[ResearchLLM] = None,
        url_validator: Optional[UrlValidator] = None,
        research_settings: Optional[ResearchSettings] = None,
        coordinator_factory: Optional[CoordinatorFactory] = None,
        timeout_seconds: Optional[float] = None,
    ):
        self.store = store
        self.search_client = search_client
        self.research_llm = research_llm
        self.url_validator = url_validator
        self._research_settings = research_settings
        self.coordinator_factory = coordinator_factory or self._default_coordinator
        self.timeout_seconds = timeout_seconds or Config.RESEARCH_TIMEOUT_SECONDS

    @property
    def research_settings(self) -> ResearchSettings:
        if self._research_settings is None:
            self._research_settings = load_research_settings(self.store)
        return self._research_settings

    def _default_coordinator(self, cancel_event: threading.Event) -> ResearchCoordinator:
        return build_coordinator(
            self.store,
            settings=self.research_settings,
            search_client=self.search_client,
            research_llm=self.research_llm,
            url_validator=self.url_validator,
            cancel_event=cancel_event,
        )

    def _research_sync(
        self,
        organization: DiscoveredOrganization,
        run: DiscoveryRun,
        cancel_event: threading.Event,
    ) -> BatchOutcome:
        """Get-or-create, link to the run, then research. Runs in a worker thread."""
        record = self.store.get_or_create_organization(organization.name, run.profile_id)
        if run.discovery_run_id:
            self.store.create_discovery_link(
                run.discovery_run_id,
                record["id"],
                organization.source_query,
                organization.snippet,
                organization.rank,
            )

        coordinator = self.coordinator_factory(cancel_event)
        result = research_organization(record, coordinator, run.profile_id)

        updated = DiscoveredOrganization(
            name=organization.name,
            snippet=organization.snippet,
            source_query=organization.source_query,
            source_url=organization.source_url,
            rank=organization.rank,
            organization_id=record["id"],
            research_complete=result.succeeded,
            research_failed=not result.succeeded,
        )
        if result.succeeded:
            return updated, None
        reason = result.errors[-1] if result.errors else result.status
        return updated, f"Research failed for {organization.name}: {reason}"

    async def _research_one(
        self,
        organization: DiscoveredOrganization,
        run: DiscoveryRun,
        executor: Optional[ThreadPoolExecutor] = None,
    ) -> BatchOutcome:
        logger = get_logger(__name__, run_id=run.discovery_run_id, stage="research_dispatcher")
        cancel_event = threading.Event()
        failed = DiscoveredOrganization(
            name=organization.name,
            snippet=organization.snippet,
            source_query=organization.source_query,
            source_url=organization.source_url,
            rank=organization.rank,
            organization_id=organization.organization_id,
            research_failed=True,
        )

        logger.info(f"Starting research for: {organization.name}")
        loop = asyncio.get_running_loop()
        try:
            return await asyncio.wait_for(
                loop.run_in_executor(executor, self._research_sync, organization, run, cancel_event),
                timeout=self.timeout_seconds,
            )
        except asyncio.TimeoutError:
            cancel_event.set()
            error = ResearchTimeoutError(organization.name, self.timeout_seconds)
            logger.error(str(error))
            return failed, str(error)
        except Exception as e:
            logger.error(f"Research failed for {organization.name}: {e}")
            return failed, f"Research failed for {organization.name}: {e}"

    async def _research_batch(
        self,
        batch: List[DiscoveredOrganization],
        run: DiscoveryRun,
    ) -> List[BatchOutcome]:
        executor = ThreadPoolExecutor(
            max_workers=max(len(batch), 1),
            thread_name_prefix="research",
        )
        try:
            return list(await asyncio.gather(*(self._research_one(org, run, executor) for org in batch)))
        finally:
            # Timed-out workers are abandoned; their cancel events stop them.
            executor.shutdown(wait=False, cancel_futures=True)

    def run(self, run: DiscoveryRun) -> Dict[str, Any]:
        logger = get_logger(__name__, run_id=run.discovery_run_id, stage="research_dispatcher")
        pending = run.pending_organizations()

        if not pending:
            logger.info("No pending organizations, moving to fit analysis")
            return {"phase": DiscoveryPhase.ANALYZING}

        batch = pending[:run.research_batch_size]
        logger.info(f"Researching batch of {len(batch)} organizations in parallel")
        if run.discovery_run_id:
            self.store.update_discovery_run(run.discovery_run_id, {
                "status": DiscoveryPhase.RESEARCHING.value,
            })

        outcomes = asyncio.run(self._research_batch(batch, run))

        updated = [organization for organization, _ in outcomes]
        errors = [error for _, error in outcomes if error]
        merged = merge_discovered_organizations(run.organizations, updated)
        researched = sum(1 for o in merged if o.research_complete)

        logger.info(
            f"Batch complete: {len(batch) - len(errors)}/{len(batch)} succeeded, "
            f"{researched} researched in total"
        )
        if run.discovery_run_id:
            self.store.update_discovery_run(run.discovery_run_id, {
                "status": DiscoveryPhase.RESEARCHING.value,
                "organizations_researched": researched,
            })

        still_pending = [o for o in merged if o.is_pending][:run.max_organizations]
        return {
            "organizations": updated,
            "organizations_researched": researched,
            "phase": DiscoveryPhase.RESEARCHING if still_pending else DiscoveryPhase.ANALYZING,
            "errors": errors,
        }
