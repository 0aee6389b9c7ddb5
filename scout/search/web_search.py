"""
Web search client.

Thin wrapper over FireCrawl's search API that returns plain SearchResult
records and applies a recency window through FireCrawl's `tbs` filter.
"""

import logging
from dataclasses import dataclass
from datetime import date
from enum import Enum
from typing import Any, List, Optional

from firecrawl import FirecrawlApp
from tenacity import retry, stop_after_attempt, wait_exponential

from scout.common.config import Config
from scout.common.error_handling import ServiceError
from scout.common.rate_limiter import Provider, get_rate_limiter

logger = logging.getLogger(__name__)


class Recency(str, Enum):
    """How far back a search may reach."""
    LAST_MONTH = "m1"
    LAST_6_MONTHS = "m6"
    LAST_YEAR = "y1"
    LAST_2_YEARS = "y2"


@dataclass
class SearchResult:
    title: str
    link: str
    snippet: str
    published_date: Optional[str] = None


def _months_ago(today: date, months: int) -> date:
    month_index = today.year * 12 + (today.month - 1) - months
    year, month = divmod(month_index, 12)
    # Clamp to day 28 so every month is valid
    return date(year, month + 1, min(today.day, 28))


def recency_to_tbs(recency: Optional[Recency], today: Optional[date] = None) -> Optional[str]:
    """
    Map a recency window onto FireCrawl's Google-style `tbs` parameter.

    Single-unit windows use the qdr shortcuts; multi-unit windows use a
    custom date range ending today.
    """
    if recency is None:
        return None
    if recency == Recency.LAST_MONTH:
        return "qdr:m"
    if recency == Recency.LAST_YEAR:
        return "qdr:y"

    today = today or date.today()
    months = 6 if recency == Recency.LAST_6_MONTHS else 24
    start = _months_ago(today, months)
    return (
        f"cdr:1,cd_min:{start.month}/{start.day}/{start.year},"
        f"cd_max:{today.month}/{today.day}/{today.year}"
    )


# ===== FIRECRAWL RESPONSE NORMALIZER =====

def _extract_search_results(search_response: Any) -> List[Any]:
    """
    Normalize FireCrawl search responses across SDK versions into a list of result objects.

    Supports:
      - New client: response.web (list of objects with .url / .title / .description)
      - Older client: response.data
      - Dict responses: {"web": [...]} or {"data": [...]}
      - Bare lists: [ {...}, {...} ]
    """
    if not search_response:
        return []

    results = getattr(search_response, "web", None)
    if results is None and hasattr(search_response, "data"):
        results = getattr(search_response, "data", None)

    if results is None and isinstance(search_response, dict):
        results = (
            search_response.get("web")
            or search_response.get("data")
            or search_response.get("results")
        )

    if results is None and isinstance(search_response, list):
        results = search_response

    return results or []


def _field(result: Any, *names: str) -> Optional[str]:
    """First non-empty attribute or dict key among names."""
    for name in names:
        value = getattr(result, name, None)
        if value is None and isinstance(result, dict):
            value = result.get(name)
        if value:
            return str(value)
    metadata = getattr(result, "metadata", None)
    if metadata is None and isinstance(result, dict):
        metadata = result.get("metadata")
    if isinstance(metadata, dict):
        for name in names:
            if metadata.get(name):
                return str(metadata[name])
    return None


def to_search_result(result: Any) -> Optional[SearchResult]:
    """Convert one raw FireCrawl result into a SearchResult (None without a URL)."""
    link = _field(result, "url", "link", "sourceURL")
    if not link:
        return None
    snippet = _field(result, "description", "snippet", "markdown") or ""
    return SearchResult(
        title=_field(result, "title") or "",
        link=link,
        snippet=snippet[:1000],
        published_date=_field(result, "date", "published_date", "publishedDate"),
    )


class WebSearchClient:
    """
    FireCrawl-backed search used by every worker.

    Failures after retries surface as ServiceError; callers decide how to
    degrade.
    """

    def __init__(
        self,
        api_key: Optional[str] = None,
        results_limit: Optional[int] = None,
        app: Optional[Any] = None,
    ):
        self.results_limit = results_limit or Config.SEARCH_RESULTS_LIMIT
        self.app = app or FirecrawlApp(api_key=api_key or Config.FIRECRAWL_API_KEY)
        self.limiter = get_rate_limiter(Provider.FIRECRAWL.value)

    @retry(
        stop=stop_after_attempt(2),
        wait=wait_exponential(multiplier=1, min=2, max=5),
        reraise=True,
    )
    def _search_raw(self, query: str, tbs: Optional[str]) -> Any:
        if not self.limiter.check():
            logger.info(f"Search rate limit reached, waiting for a slot: {query[:50]}")
        if not self.limiter.acquire():
            raise ServiceError("firecrawl", "search rate limit exhausted")
        if tbs:
            return self.app.search(query, limit=self.results_limit, tbs=tbs)
        return self.app.search(query, limit=self.results_limit)

    def search(self, query: str, recency: Optional[Recency] = None) -> List[SearchResult]:
        """
        Run one search query.

        Args:
            query: Search query text
            recency: Optional time window

        Returns:
            Results with a URL, in provider order

        Raises:
            ServiceError: When the search fails after retries
        """
        tbs = recency_to_tbs(recency)
        logger.info(f"[FireCrawl] Search: {query[:80]}{'...' if len(query) > 80 else ''} tbs={tbs}")
        try:
            response = self._search_raw(query, tbs)
        except ServiceError:
            raise
        except Exception as e:
            raise ServiceError("firecrawl", str(e)) from e

        results = []
        for raw in _extract_search_results(response):
            result = to_search_result(raw)
            if result is not None:
                results.append(result)
        logger.info(f"[FireCrawl] {len(results)} results")
        return results
