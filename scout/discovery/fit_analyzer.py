"""
Fit Analyzer

Scores researched organizations against the profile, up to three per call
in a thread pool. Signals and contacts are read back from the store;
each analysis is persisted once per (organization, run).
"""

from concurrent.futures import ThreadPoolExecutor
from typing import Any, Dict, Optional, Tuple

from scout.common.error_handling import safe_execute
from scout.common.logger import get_logger
from scout.common.repositories.base import OrganizationStoreInterface
from scout.discovery.llm_discovery import DiscoveryLLM
from scout.discovery.state import DiscoveredOrganization, DiscoveryPhase, DiscoveryRun, FitAnalysisResult

FIT_BATCH_SIZE = 3


class FitAnalyzer:
    def __init__(
        self,
        store: OrganizationStoreInterface,
        discovery_llm: DiscoveryLLM,
        batch_size: int = FIT_BATCH_SIZE,
    ):
        self.store = store
        self.discovery_llm = discovery_llm
        self.batch_size = batch_size

    def _analyze(
        self,
        organization: DiscoveredOrganization,
        run: DiscoveryRun,
    ) -> Tuple[FitAnalysisResult, Optional[str]]:
        logger = get_logger(__name__, run_id=run.discovery_run_id, stage="fit_analyzer")
        organization_id = organization.organization_id
        logger.info(f"Analyzing fit for: {organization.name}")

        signals = safe_execute(
            self.store.get_signals,
            organization_id,
            operation_name=f"load signals for {organization.name}",
            logger=logger,
            fallback=[],
        )
        contacts = safe_execute(
            self.store.get_contacts,
            organization_id,
            operation_name=f"load contacts for {organization.name}",
            logger=logger,
            fallback=[],
        )

        analysis = self.discovery_llm.analyze_fit(
            organization_id, organization.name, signals, contacts, run.profile
        )

        error = None
        if run.discovery_run_id:
            try:
                self.store.create_fit_analysis(run.discovery_run_id, run.profile_id, analysis.to_record())
            except Exception as e:
                logger.error(f"Could not save fit analysis for {organization.name}: {e}")
                error = f"Fit analysis not saved for {organization.name}: {e}"
        return analysis, error

    def run(self, run: DiscoveryRun) -> Dict[str, Any]:
        logger = get_logger(__name__, run_id=run.discovery_run_id, stage="fit_analyzer")

        if run.profile is None:
            return {
                "phase": DiscoveryPhase.ERROR,
                "errors": ["No profile available for fit analysis"],
            }

        pending = run.unanalyzed_organizations()
        if not pending:
            logger.info("All organizations analyzed, moving to synthesis")
            return {"phase": DiscoveryPhase.SYNTHESIZING}

        if run.discovery_run_id:
            self.store.update_discovery_run(run.discovery_run_id, {
                "status": DiscoveryPhase.ANALYZING.value,
            })

        batch = pending[:self.batch_size]
        logger.info(f"Analyzing {len(batch)} of {len(pending)} pending organizations")

        with ThreadPoolExecutor(max_workers=len(batch)) as executor:
            outcomes = list(executor.map(lambda org: self._analyze(org, run), batch))

        analyses = [analysis for analysis, _ in outcomes]
        errors = [error for _, error in outcomes if error]
        remaining = len(pending) - len(batch)
        logger.info(f"Completed {len(analyses)} analyses, {remaining} remaining")

        return {
            "fit_analyses": analyses,
            "phase": DiscoveryPhase.ANALYZING if remaining > 0 else DiscoveryPhase.SYNTHESIZING,
            "errors": errors,
            "api_calls": len(batch),
        }
