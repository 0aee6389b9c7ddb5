"""
URL validation before persistence.

Each candidate URL from the merged bundle is checked independently and in
parallel: blocklist, reachability (HTTP fetch + HTML title), then an LLM
judgement of whether the page really is the organization's page of that
kind. Only URLs that pass every enabled check are stored.
"""

import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Tuple

import requests
from bs4 import BeautifulSoup
from langchain_core.messages import HumanMessage, SystemMessage
from pydantic import BaseModel, Field, field_validator

from scout.common.config import Config
from scout.common.json_utils import parse_llm_json
from scout.common.llm_factory import create_llm
from scout.research.state import ExtractedUrlBundle, UrlCategory
from scout.research.url_classifier import INVALID_URL_PATTERNS, is_obviously_invalid_url

logger = logging.getLogger(__name__)


USER_AGENT = "Mozilla/5.0 (compatible; ScoutBot/1.0; +https://github.com/company-scout)"

MIN_CONFIDENCE: Dict[UrlCategory, float] = {
    UrlCategory.CAREERS: 0.6,
    UrlCategory.CULTURE: 0.6,
    UrlCategory.REVIEWS: 0.7,
    UrlCategory.FUNDING: 0.7,
}

TYPE_DESCRIPTIONS: Dict[UrlCategory, str] = {
    UrlCategory.CAREERS: "careers page, jobs page, or hiring page",
    UrlCategory.CULTURE: "company culture page, about us page, or values page",
    UrlCategory.REVIEWS: "employee reviews page (like Glassdoor)",
    UrlCategory.FUNDING: "company funding/investment profile (like Crunchbase)",
}

# Organization record field per category
ORGANIZATION_URL_FIELDS: Dict[UrlCategory, str] = {
    UrlCategory.CAREERS: "careers_page_url",
    UrlCategory.CULTURE: "culture_page_url",
    UrlCategory.REVIEWS: "glassdoor_url",
    UrlCategory.FUNDING: "crunchbase_url",
}

URL_VALIDATION_SYSTEM_PROMPT = """You verify whether a URL is a specific kind of page belonging to a specific company.

Be strict. Answer only with a JSON object:
{"is_valid": true|false, "confidence": 0.0-1.0, "reason": "...", "suggested_url": "..." or null}"""


class UrlJudgementModel(BaseModel):
    """LLM verdict for one URL."""
    is_valid: bool = False
    confidence: float = Field(default=0.0)
    reason: str = ""
    suggested_url: Optional[str] = None

    @field_validator("confidence", mode="before")
    @classmethod
    def clamp_confidence(cls, v: Any) -> float:
        try:
            value = float(v)
        except (TypeError, ValueError):
            return 0.0
        return min(1.0, max(0.0, value))


@dataclass
class UrlValidationResult:
    is_valid: bool
    confidence: float
    reason: str
    suggested_url: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "is_valid": self.is_valid,
            "confidence": self.confidence,
            "reason": self.reason,
            "suggested_url": self.suggested_url,
        }


@dataclass
class PageFetchResult:
    reachable: bool
    title: Optional[str] = None
    error: Optional[str] = None


@dataclass
class ValidatedUrls:
    urls: Dict[UrlCategory, Optional[str]] = field(default_factory=dict)
    founded_year: Optional[int] = None
    validation_results: Dict[UrlCategory, UrlValidationResult] = field(default_factory=dict)

    def url(self, category: UrlCategory) -> Optional[str]:
        return self.urls.get(category)

    def to_organization_fields(self) -> Dict[str, Any]:
        """Fields written onto the organization record."""
        fields: Dict[str, Any] = {
            ORGANIZATION_URL_FIELDS[category]: url
            for category, url in self.urls.items()
            if url
        }
        if self.founded_year is not None:
            fields["founded_year"] = self.founded_year
        return fields

    def to_dict(self) -> Dict[str, Any]:
        return {
            "urls": {c.value: u for c, u in self.urls.items()},
            "founded_year": self.founded_year,
            "validation_results": {c.value: r.to_dict() for c, r in self.validation_results.items()},
        }


def fetch_page(
    url: str,
    session: Optional[requests.Session] = None,
    timeout: Optional[float] = None,
) -> PageFetchResult:
    """Fetch a URL and report whether it is a reachable HTML page."""
    http = session or requests
    try:
        response = http.get(
            url,
            headers={
                "User-Agent": USER_AGENT,
                "Accept": "text/html,application/xhtml+xml",
            },
            timeout=timeout or Config.URL_FETCH_TIMEOUT_SECONDS,
            allow_redirects=True,
        )
    except requests.RequestException as e:
        return PageFetchResult(reachable=False, error=str(e))

    if not response.ok:
        return PageFetchResult(reachable=False, error=f"HTTP {response.status_code}")

    content_type = response.headers.get("content-type", "")
    if "text/html" not in content_type and "application/xhtml" not in content_type:
        return PageFetchResult(reachable=False, error="Not an HTML page")

    final_url = (response.url or url).lower()
    if any(pattern in final_url for pattern in INVALID_URL_PATTERNS):
        return PageFetchResult(reachable=False, error="Redirected to search engine")

    soup = BeautifulSoup(response.text, "html.parser")
    title = soup.title.get_text(strip=True) if soup.title else None
    return PageFetchResult(reachable=True, title=title or None)


class UrlValidator:
    """
    Validates an ExtractedUrlBundle category by category.

    One category's rejection never affects another; the four checks run
    on a small thread pool.
    """

    def __init__(
        self,
        use_llm: Optional[bool] = None,
        check_reachability: Optional[bool] = None,
        llm: Optional[Any] = None,
        session: Optional[requests.Session] = None,
    ):
        self.use_llm = Config.URL_VALIDATION_USE_LLM if use_llm is None else use_llm
        self.check_reachability = (
            Config.URL_VALIDATION_CHECK_REACHABILITY if check_reachability is None else check_reachability
        )
        self._llm = llm
        self.session = session

    @property
    def llm(self):
        if self._llm is None:
            self._llm = create_llm(temperature=Config.ANALYTICAL_TEMPERATURE, stage="url_validator")
        return self._llm

    def judge_url(
        self,
        url: str,
        page_title: Optional[str],
        organization_name: str,
        category: UrlCategory,
    ) -> UrlValidationResult:
        """Ask the LLM whether the URL is the organization's page of this kind."""
        kind = category.value
        prompt = f"""Analyze if this URL is a valid {TYPE_DESCRIPTIONS[category]} for the company "{organization_name}".

URL: {url}
Page Title: {page_title or 'Unknown'}

Determine:
1. Is this URL likely to be the official {kind} page for {organization_name}?
2. Does the URL domain or path suggest it belongs to {organization_name}?
3. Does the page title (if available) suggest this is the right type of page?

Be strict - only mark as valid if you're confident this is actually {organization_name}'s {kind} page, not a different company or a generic page."""

        try:
            response = self.llm.invoke([
                SystemMessage(content=URL_VALIDATION_SYSTEM_PROMPT),
                HumanMessage(content=prompt),
            ])
            judgement = UrlJudgementModel(**parse_llm_json(response.content))
        except Exception as e:
            logger.warning(f"URL judgement failed for {url}: {e}")
            return UrlValidationResult(False, 0.0, "Validation failed due to error")

        return UrlValidationResult(
            is_valid=judgement.is_valid,
            confidence=judgement.confidence,
            reason=judgement.reason,
            suggested_url=judgement.suggested_url or None,
        )

    def validate_url(
        self,
        url: Optional[str],
        category: UrlCategory,
        organization_name: str,
    ) -> Tuple[Optional[str], Optional[UrlValidationResult]]:
        """Accepted URL (or None) and the validation record, if any check ran."""
        if not url or is_obviously_invalid_url(url):
            return None, None

        try:
            return self._check_url(url, category, organization_name)
        except Exception as e:
            # Malformed URLs can fail below requests (urllib3 parse errors)
            logger.warning(f"URL validation error for {url}: {e}")
            return None, UrlValidationResult(False, 0.0, f"Validation error: {e}")

    def _check_url(
        self,
        url: str,
        category: UrlCategory,
        organization_name: str,
    ) -> Tuple[Optional[str], Optional[UrlValidationResult]]:
        page_title = None
        if self.check_reachability:
            page = fetch_page(url, session=self.session)
            if not page.reachable:
                logger.info(f"URL validation failed for {url}: {page.error}")
                return None, UrlValidationResult(False, 0.0, f"URL not reachable: {page.error}")
            page_title = page.title

        if self.use_llm:
            judgement = self.judge_url(url, page_title, organization_name, category)
            if judgement.is_valid and judgement.confidence >= MIN_CONFIDENCE[category]:
                return url, judgement
            return None, judgement

        return url, None

    def validate(self, bundle: ExtractedUrlBundle, organization_name: str) -> ValidatedUrls:
        result = ValidatedUrls(founded_year=bundle.founded_year)

        with ThreadPoolExecutor(max_workers=len(UrlCategory)) as executor:
            futures = {
                category: executor.submit(self.validate_url, bundle.url(category), category, organization_name)
                for category in UrlCategory
            }
            for category, future in futures.items():
                accepted, validation = future.result()
                result.urls[category] = accepted
                if validation is not None:
                    result.validation_results[category] = validation

        accepted_count = sum(1 for u in result.urls.values() if u)
        logger.info(f"Validated URLs for {organization_name}: {accepted_count}/{len(UrlCategory)} accepted")
        return result


def validate_extracted_urls(
    bundle: ExtractedUrlBundle,
    organization_name: str,
    use_llm: bool = True,
    check_reachability: bool = True,
    llm: Optional[Any] = None,
    session: Optional[requests.Session] = None,
) -> ValidatedUrls:
    validator = UrlValidator(
        use_llm=use_llm,
        check_reachability=check_reachability,
        llm=llm,
        session=session,
    )
    return validator.validate(bundle, organization_name)


def quick_validate_urls(bundle: ExtractedUrlBundle, organization_name: str, **kwargs) -> ValidatedUrls:
    """Blocklist and reachability only, no LLM calls."""
    return validate_extracted_urls(bundle, organization_name, use_llm=False, check_reachability=True, **kwargs)


def full_validate_urls(bundle: ExtractedUrlBundle, organization_name: str, **kwargs) -> ValidatedUrls:
    """Blocklist, reachability and LLM judgement."""
    return validate_extracted_urls(bundle, organization_name, use_llm=True, check_reachability=True, **kwargs)
