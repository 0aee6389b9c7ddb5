"""
Research Synthesizer

Final phase of an organization's research: summary and score, a targeted
URL discovery pass, URL validation, and persistence of everything
gathered. Never raises; failures move the run to the error phase and mark
the stored run and organization failed.
"""

from datetime import datetime, timezone
from typing import Any, Dict, Optional

from scout.common.agent_config import ResearchSettings
from scout.common.logger import get_logger
from scout.common.repositories.base import OrganizationStoreInterface, ResearchStatus
from scout.research.llm_research import ResearchLLM
from scout.research.state import (
    ExtractedUrlBundle,
    ResearchPhase,
    ResearchRun,
    UrlCategory,
    merge_url_bundles,
)
from scout.research.url_classifier import extract_urls_from_results
from scout.research.url_validator import UrlValidator
from scout.search.web_search import WebSearchClient


URL_DISCOVERY_QUERIES: Dict[UrlCategory, str] = {
    UrlCategory.CAREERS: '"{company}" careers jobs official site',
    UrlCategory.CULTURE: '"{company}" about us culture values',
    UrlCategory.REVIEWS: '"{company}" employee reviews site:glassdoor.com',
    UrlCategory.FUNDING: '"{company}" site:crunchbase.com/organization',
}


class ResearchSynthesizer:
    def __init__(
        self,
        store: OrganizationStoreInterface,
        search_client: WebSearchClient,
        research_llm: ResearchLLM,
        url_validator: Optional[UrlValidator] = None,
    ):
        self.store = store
        self.search_client = search_client
        self.research_llm = research_llm
        self.url_validator = url_validator or UrlValidator()

    def discover_urls(self, run: ResearchRun) -> Dict[str, Any]:
        """
        Targeted searches for page categories the signal pass did not find.

        A failed query is logged and skipped; it never fails synthesis.
        """
        logger = get_logger(__name__, run_id=run.research_run_id, stage="synthesizer")
        bundle = ExtractedUrlBundle()
        errors = []
        api_calls = 0

        for category, template in URL_DISCOVERY_QUERIES.items():
            if run.url_bundle.url(category):
                continue
            query = template.replace("{company}", run.organization_name)
            try:
                results = self.search_client.search(query)
            except Exception as e:
                logger.warning(f"URL discovery query failed for {category.value}: {e}")
                errors.append(f"URL discovery error for {category.value}: {e}")
                continue
            api_calls += 1
            bundle = merge_url_bundles(
                bundle,
                extract_urls_from_results(results, run.organization_name, run.organization_domain),
            )

        return {"bundle": bundle, "errors": errors, "api_calls": api_calls}

    def run(self, run: ResearchRun, settings: ResearchSettings) -> Dict[str, Any]:
        logger = get_logger(__name__, run_id=run.research_run_id, stage="synthesizer")
        logger.info("=" * 60)
        logger.info(f"SYNTHESIZER: {run.organization_name}")
        logger.info("=" * 60)

        try:
            synthesis = self.research_llm.synthesize(
                run.organization_name,
                run.signals,
                run.contacts,
                custom_prompt=settings.synthesis_prompt,
                scoring_weights=settings.scoring_weights,
                summary_max_length=settings.summary_max_length,
            )
            if synthesis.used_fallback:
                logger.warning(f"Using fallback synthesis (score {synthesis.score})")

            discovery = self.discover_urls(run)
            merged_bundle = merge_url_bundles(run.url_bundle, discovery["bundle"])
            validated = self.url_validator.validate(merged_bundle, run.organization_name)

            if run.organization_id and run.research_run_id:
                self.store.save_signals(
                    run.organization_id,
                    run.research_run_id,
                    [s.to_record() for s in run.signals],
                )
                self.store.save_contacts(
                    run.organization_id,
                    run.research_run_id,
                    [c.to_record() for c in run.contacts],
                )
                self.store.update_research_run(run.research_run_id, {
                    "status": "complete",
                    "summary": synthesis.summary,
                    "key_insights": synthesis.key_insights,
                    "recommended_approach": synthesis.recommended_approach,
                    "signals_found": len(run.signals),
                    "contacts_found": len(run.contacts),
                })
                self.store.update_organization(run.organization_id, {
                    "overall_score": synthesis.score,
                    "research_status": ResearchStatus.RESEARCHED,
                    "last_researched_at": datetime.now(timezone.utc),
                    **validated.to_organization_fields(),
                })

            logger.info(
                f"Research complete: score {synthesis.score}/10, "
                f"{len(run.signals)} signals, {len(run.contacts)} contacts"
            )

            return {
                "phase": ResearchPhase.COMPLETE,
                "summary": synthesis.summary,
                "score": synthesis.score,
                "key_insights": synthesis.key_insights,
                "recommended_approach": synthesis.recommended_approach or None,
                "url_bundle": discovery["bundle"],
                "validated_urls": validated.to_dict(),
                "errors": discovery["errors"],
                "api_calls": 1 + discovery["api_calls"],
            }

        except Exception as e:
            logger.exception(f"Synthesizer error: {e}")
            message = f"Synthesis error: {e}"
            self._mark_failed(run, message)
            return {"phase": ResearchPhase.ERROR, "errors": [message]}

    def _mark_failed(self, run: ResearchRun, message: str) -> None:
        logger = get_logger(__name__, run_id=run.research_run_id, stage="synthesizer")
        try:
            if run.research_run_id:
                self.store.update_research_run(run.research_run_id, {
                    "status": "failed",
                    "error_message": message,
                })
            if run.organization_id:
                self.store.update_organization(run.organization_id, {
                    "research_status": ResearchStatus.FAILED,
                })
        except Exception as e:
            logger.error(f"Could not record synthesis failure: {e}")
