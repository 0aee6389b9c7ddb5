"""
Discovery Synthesizer

Writes the run's executive summary over the top fit analyses and marks the
discovery run complete. A failed summary call falls back to a fixed
sentence built from the run's counts.
"""

from typing import Any, Dict

from scout.common.logger import get_logger
from scout.common.repositories.base import OrganizationStoreInterface
from scout.discovery.llm_discovery import DiscoveryLLM, fallback_summary
from scout.discovery.state import DiscoveryPhase, DiscoveryRun


class DiscoverySynthesizer:
    def __init__(self, store: OrganizationStoreInterface, discovery_llm: DiscoveryLLM):
        self.store = store
        self.discovery_llm = discovery_llm

    def run(self, run: DiscoveryRun) -> Dict[str, Any]:
        logger = get_logger(__name__, run_id=run.discovery_run_id, stage="discovery_synthesizer")
        logger.info("=" * 60)
        logger.info("DISCOVERY SYNTHESIZER")
        logger.info("=" * 60)

        discovered = len(run.organizations)
        researched = sum(1 for o in run.organizations if o.research_complete)
        analyzed = len(run.fit_analyses)
        errors = []
        api_calls = 0

        try:
            summary = self.discovery_llm.summarize(discovered, researched, run.fit_analyses)
            api_calls = 1
        except Exception as e:
            logger.warning(f"Summary generation failed, using fallback: {e}")
            summary = fallback_summary(discovered, researched, analyzed)
            errors.append(f"Summary generation failed: {e}")

        if run.discovery_run_id:
            try:
                self.store.update_discovery_run(run.discovery_run_id, {
                    "status": DiscoveryPhase.COMPLETE.value,
                    "summary": summary,
                    "organizations_discovered": discovered,
                    "organizations_researched": researched,
                    "organizations_analyzed": analyzed,
                    "errors": run.errors + errors,
                })
            except Exception as e:
                logger.error(f"Could not save discovery summary: {e}")
                errors.append(f"Discovery run not saved: {e}")

        logger.info(f"Discovery complete: {discovered} discovered, {researched} researched, {analyzed} analyzed")

        return {
            "phase": DiscoveryPhase.COMPLETE,
            "summary": summary,
            "errors": errors,
            "api_calls": api_calls,
        }
