"""
Signal Worker

One call = one categorized search for the run's current signal category:
search, classify result URLs, extract signals with the LLM, drop
low-confidence signals, advance the category's iteration state. URLs
classified from the search survive an extraction failure.
"""

import uuid
from dataclasses import replace
from datetime import datetime
from typing import Any, Dict, List, Optional

from scout.common.agent_config import ResearchSettings
from scout.common.logger import get_logger
from scout.common.types import SignalCategory
from scout.research.llm_research import ResearchLLM
from scout.research.state import CollectedSignal, ResearchRun
from scout.research.url_classifier import extract_urls_from_results
from scout.search.web_search import Recency, WebSearchClient


SIGNAL_QUERY_TEMPLATES: Dict[SignalCategory, List[str]] = {
    SignalCategory.GROWTH_FUNDING: [
        '"{company}" funding round site:techcrunch.com OR site:crunchbase.com OR site:venturebeat.com',
        '"{company}" series A OR series B OR series C OR seed funding',
        '"{company}" hiring growth headcount expansion',
        '"{company}" new office opening expansion news',
    ],
    SignalCategory.CULTURE_WORK_STYLE: [
        '"{company}" engineering culture blog',
        '"{company}" remote work policy hybrid',
        '"{company}" reviews site:glassdoor.com OR site:blind.com',
        '"{company}" work life balance company culture values',
    ],
    SignalCategory.TECH_STACK_ENGINEERING: [
        '"{company}" tech stack engineering blog technology',
        '"{company}" site:github.com open source',
        '"{company}" kubernetes docker microservices architecture',
        '"{company}" machine learning AI data engineering',
    ],
    SignalCategory.LEADERSHIP_CHANGES: [
        '"{company}" new CTO OR "VP Engineering" OR "Director Engineering"',
        '"{company}" executive hire leadership announcement',
        '"{company}" engineering team growth expansion',
    ],
    SignalCategory.JOB_OPENINGS: [
        '"{company}" hiring site:linkedin.com/jobs OR site:lever.co OR site:greenhouse.io',
        '"{company}" careers open positions site:indeed.com OR site:glassdoor.com/job',
        '"{company}" jobs engineer developer software',
    ],
}

# Job postings go stale fast, culture signals slowly
DEFAULT_CATEGORY_RECENCY: Dict[SignalCategory, Recency] = {
    SignalCategory.GROWTH_FUNDING: Recency.LAST_YEAR,
    SignalCategory.CULTURE_WORK_STYLE: Recency.LAST_2_YEARS,
    SignalCategory.TECH_STACK_ENGINEERING: Recency.LAST_YEAR,
    SignalCategory.LEADERSHIP_CHANGES: Recency.LAST_6_MONTHS,
    SignalCategory.JOB_OPENINGS: Recency.LAST_MONTH,
}


def render_query(template: str, organization_name: str, year: Optional[int] = None) -> str:
    year = year or datetime.now().year
    return template.replace("{company}", organization_name).replace("{year}", str(year))


def select_template(templates: List[str], iteration: int) -> str:
    """Round-robin over the template list."""
    return templates[iteration % len(templates)]


class SignalWorker:
    """Runs one signal search iteration for the run's current category."""

    def __init__(
        self,
        search_client: WebSearchClient,
        research_llm: ResearchLLM,
        recency: Optional[Dict[SignalCategory, Recency]] = None,
    ):
        self.search_client = search_client
        self.research_llm = research_llm
        self.recency = recency or DEFAULT_CATEGORY_RECENCY

    def run(self, run: ResearchRun, settings: ResearchSettings) -> Dict[str, Any]:
        """
        Execute one iteration.

        Returns:
            Partial update for apply_updates (signals, url_bundle,
            signal_iterations, api_calls, errors)
        """
        logger = get_logger(__name__, run_id=run.research_run_id, stage="signal_worker")
        category = run.current_category
        if category is None:
            return {"errors": ["No signal category specified for signal worker"]}

        state = run.signal_iterations[category]
        templates = settings.templates_for(category) or SIGNAL_QUERY_TEMPLATES[category]
        query = render_query(select_template(templates, state.iteration), run.organization_name)
        next_iteration = state.iteration + 1
        url_bundle = None

        logger.info(
            f"{category.label} iteration {next_iteration}/{state.max_iterations}: {query}"
        )

        try:
            results = self.search_client.search(query, self.recency.get(category))

            if not results:
                logger.info(f"No search results for {category.label} query")
                return {
                    "signal_iterations": {
                        category: replace(
                            state,
                            iteration=next_iteration,
                            queries_executed=state.queries_executed + (query,),
                            needs_more_research=(
                                state.signals_found < settings.min_signals_required
                                and next_iteration < state.max_iterations
                            ),
                        )
                    },
                    "api_calls": 1,
                }

            url_bundle = extract_urls_from_results(
                results, run.organization_name, run.organization_domain
            )
            analyzed = self.research_llm.extract_signals(
                results,
                run.organization_name,
                category,
                custom_prompt=settings.signal_prompt,
            )

            quality = [s for s in analyzed if s.confidence >= settings.confidence_threshold]
            collected = [
                CollectedSignal(
                    id=str(uuid.uuid4()),
                    category=category,
                    content=s.content,
                    source=s.source,
                    source_url=s.source_url,
                    confidence=s.confidence,
                    raw_snippet=s.raw_snippet,
                    published_date=s.published_date,
                )
                for s in quality
            ]

            total = state.signals_found + len(collected)
            needs_more = total < settings.min_signals_required and next_iteration < state.max_iterations

            logger.info(
                f"Found {len(collected)} quality signals for {category.label} "
                f"({total} total for category, {len(analyzed) - len(quality)} below threshold)"
            )

            return {
                "signals": collected,
                "url_bundle": url_bundle,
                "signal_iterations": {
                    category: replace(
                        state,
                        iteration=next_iteration,
                        queries_executed=state.queries_executed + (query,),
                        signals_found=total,
                        needs_more_research=needs_more,
                    )
                },
                "api_calls": 2,
            }

        except Exception as e:
            logger.error(f"Signal worker error for {category.value}: {e}")
            update = {
                "signal_iterations": {
                    category: replace(
                        state,
                        iteration=next_iteration,
                        queries_executed=state.queries_executed + (query,),
                        needs_more_research=False,
                    )
                },
                "errors": [f"Signal worker error for {category.value}: {e}"],
            }
            if url_bundle is not None:
                update["url_bundle"] = url_bundle
            return update
