"""
Discovery Coordinator

Phase state machine for one discovery run:

    init -> discovering -> researching -> analyzing -> synthesizing
         -> complete | error

init generates search queries from the profile; every other phase hands
one step to its node (CompanyFinder, ResearchBatchDispatcher, FitAnalyzer,
DiscoverySynthesizer), which returns a partial update.
"""

import logging
from dataclasses import replace
from typing import Any, Dict, Optional

from scout.common.agent_config import ResearchSettings
from scout.common.config import Config
from scout.common.logger import get_logger
from scout.common.repositories.base import OrganizationStoreInterface
from scout.common.structured_logger import get_structured_logger
from scout.discovery.company_finder import CompanyFinder
from scout.discovery.fit_analyzer import FitAnalyzer
from scout.discovery.llm_discovery import DiscoveryLLM
from scout.discovery.research_dispatcher import CoordinatorFactory, ResearchBatchDispatcher
from scout.discovery.state import DiscoveryPhase, DiscoveryRun, apply_updates
from scout.discovery.synthesizer import DiscoverySynthesizer
from scout.research.llm_research import ResearchLLM
from scout.research.state import append_errors
from scout.research.url_validator import UrlValidator
from scout.search.web_search import WebSearchClient

logger = logging.getLogger(__name__)


class DiscoveryCoordinator:
    """Drives one discovery run to a terminal phase."""

    def __init__(
        self,
        store: OrganizationStoreInterface,
        search_client: Optional[WebSearchClient] = None,
        discovery_llm: Optional[DiscoveryLLM] = None,
        research_llm: Optional[ResearchLLM] = None,
        url_validator: Optional[UrlValidator] = None,
        research_settings: Optional[ResearchSettings] = None,
        coordinator_factory: Optional[CoordinatorFactory] = None,
        research_timeout_seconds: Optional[float] = None,
        max_steps: Optional[int] = None,
    ):
        self.store = store
        self.search_client = search_client or WebSearchClient()
        self.discovery_llm = discovery_llm or DiscoveryLLM()
        self.finder = CompanyFinder(store, self.search_client, self.discovery_llm)
        self.dispatcher = ResearchBatchDispatcher(
            store,
            search_client=self.search_client,
            research_llm=research_llm or ResearchLLM(),
            url_validator=url_validator,
            research_settings=research_settings,
            coordinator_factory=coordinator_factory,
            timeout_seconds=research_timeout_seconds,
        )
        self.fit_analyzer = FitAnalyzer(store, self.discovery_llm)
        self.synthesizer = DiscoverySynthesizer(store, self.discovery_llm)
        self.max_steps = max_steps or Config.DISCOVERY_MAX_STEPS

    def generate_queries(self, run: DiscoveryRun) -> Dict[str, Any]:
        run_logger = get_logger(__name__, run_id=run.discovery_run_id, stage="discovery_orchestrator")
        if run.profile is None:
            return {"phase": DiscoveryPhase.ERROR, "errors": ["No profile provided for discovery"]}

        run_logger.info("Generating search queries from profile")
        queries = self.discovery_llm.generate_queries(run.profile)
        run_logger.info(f"Generated {len(queries)} queries")

        if run.discovery_run_id:
            self.store.update_discovery_run(run.discovery_run_id, {
                "status": DiscoveryPhase.DISCOVERING.value,
                "queries": queries,
            })
        return {"queries": queries, "phase": DiscoveryPhase.DISCOVERING, "api_calls": 1}

    def step(self, run: DiscoveryRun) -> DiscoveryRun:
        """One unit of work for the current phase."""
        if run.phase == DiscoveryPhase.INIT:
            return apply_updates(run, self.generate_queries(run))
        if run.phase == DiscoveryPhase.DISCOVERING:
            return apply_updates(run, self.finder.run(run))
        if run.phase == DiscoveryPhase.RESEARCHING:
            return apply_updates(run, self.dispatcher.run(run))
        if run.phase == DiscoveryPhase.ANALYZING:
            return apply_updates(run, self.fit_analyzer.run(run))
        if run.phase == DiscoveryPhase.SYNTHESIZING:
            return apply_updates(run, self.synthesizer.run(run))
        return run

    def run_to_completion(self, run: DiscoveryRun) -> DiscoveryRun:
        """Step until complete/error; the step guard and crashes end in error."""
        run_logger = get_logger(__name__, run_id=run.discovery_run_id, stage="discovery")
        events = get_structured_logger(run.discovery_run_id or "local", run_type="discovery")
        events.run_start({
            "profile_id": run.profile_id,
            "max_organizations": run.max_organizations,
            "research_batch_size": run.research_batch_size,
        })

        steps = 0
        phase = run.phase
        events.phase_start(phase.value)

        while not run.phase.is_terminal:
            if steps >= self.max_steps:
                run = replace(
                    run,
                    phase=DiscoveryPhase.ERROR,
                    errors=append_errors(run.errors, [f"Discovery exceeded {self.max_steps} steps"]),
                )
                break

            try:
                run = self.step(run)
            except Exception as e:
                run_logger.exception(f"Discovery step failed in phase {run.phase.value}: {e}")
                run = replace(
                    run,
                    phase=DiscoveryPhase.ERROR,
                    errors=append_errors(run.errors, [f"Discovery error in {run.phase.value}: {e}"]),
                )
                break
            steps += 1

            if run.phase != phase:
                if run.phase == DiscoveryPhase.ERROR:
                    events.phase_error(phase.value, error=run.errors[-1] if run.errors else "unknown")
                else:
                    events.phase_complete(phase.value, metadata={"steps": steps})
                phase = run.phase
                if not phase.is_terminal:
                    events.phase_start(phase.value)

        # Over budget or crashed mid-phase
        if phase != run.phase:
            events.phase_error(phase.value, error=run.errors[-1] if run.errors else "unknown")

        if run.phase == DiscoveryPhase.ERROR:
            self._record_failure(run)

        events.run_complete(
            status="success" if run.phase == DiscoveryPhase.COMPLETE else "failed",
            metadata={
                "organizations": len(run.organizations),
                "researched": run.organizations_researched,
                "analyzed": len(run.fit_analyses),
                "api_calls": run.api_calls,
                "steps": steps,
            },
        )
        return run

    def _record_failure(self, run: DiscoveryRun) -> None:
        if not run.discovery_run_id:
            return
        try:
            self.store.update_discovery_run(run.discovery_run_id, {
                "status": "failed",
                "error_message": run.errors[-1] if run.errors else "unknown error",
                "errors": run.errors,
                "organizations_discovered": len(run.organizations),
                "organizations_researched": run.organizations_researched,
            })
        except Exception as e:
            logger.error(f"Could not record discovery failure: {e}")
