"""
Company Finder

Runs one generated query per call and extracts organizations that are not
already known. Stays in the discovering phase until max_organizations is
reached or the queries run out.
"""

from typing import Any, Dict

from scout.common.logger import get_logger
from scout.common.repositories.base import OrganizationStoreInterface
from scout.discovery.llm_discovery import DiscoveryLLM
from scout.discovery.state import DiscoveredOrganization, DiscoveryPhase, DiscoveryRun
from scout.search.web_search import WebSearchClient


class CompanyFinder:
    def __init__(
        self,
        store: OrganizationStoreInterface,
        search_client: WebSearchClient,
        discovery_llm: DiscoveryLLM,
    ):
        self.store = store
        self.search_client = search_client
        self.discovery_llm = discovery_llm

    def run(self, run: DiscoveryRun) -> Dict[str, Any]:
        logger = get_logger(__name__, run_id=run.discovery_run_id, stage="company_finder")
        found = len(run.organizations)
        logger.info(
            f"Query progress {run.queries_executed}/{len(run.queries)}, "
            f"organizations {found}/{run.max_organizations}"
        )

        if found >= run.max_organizations:
            logger.info("Reached max organizations, moving to research")
            return {"phase": DiscoveryPhase.RESEARCHING}

        if run.queries_executed >= len(run.queries):
            if found == 0:
                logger.warning("All queries executed without finding any organization")
                return {
                    "phase": DiscoveryPhase.ERROR,
                    "errors": ["No organizations found from search queries"],
                }
            logger.info(f"Queries exhausted with {found} organizations")
            return {"phase": DiscoveryPhase.RESEARCHING}

        query = run.queries[run.queries_executed]
        logger.info(f"Executing query: {query}")

        try:
            results = self.search_client.search(query)
            if not results:
                logger.info("Query returned no results")
                return {"queries_executed": run.queries_executed + 1, "api_calls": 1}

            existing_names = [o.name for o in run.organizations]
            extracted = self.discovery_llm.extract_organizations(results, existing_names)
        except Exception as e:
            logger.error(f"Query failed: {e}")
            return {
                "queries_executed": run.queries_executed + 1,
                "errors": [f"Query failed: {query[:50]}... - {e}"],
                "api_calls": 1,
            }

        # Names beyond the remaining capacity are dropped
        capacity = run.max_organizations - found
        new_organizations = [
            DiscoveredOrganization(
                name=item.name,
                snippet=item.snippet,
                source_query=query,
                source_url=item.source_url,
                rank=found + index + 1,
            )
            for index, item in enumerate(extracted[:capacity])
        ]
        total = found + len(new_organizations)
        logger.info(f"Extracted {len(extracted)} organizations, kept {len(new_organizations)} ({total} total)")

        if run.discovery_run_id:
            self.store.update_discovery_run(run.discovery_run_id, {
                "status": DiscoveryPhase.DISCOVERING.value,
                "organizations_discovered": total,
            })

        return {
            "organizations": new_organizations,
            "queries_executed": run.queries_executed + 1,
            "phase": DiscoveryPhase.RESEARCHING if total >= run.max_organizations else DiscoveryPhase.DISCOVERING,
            "api_calls": 2,
        }
