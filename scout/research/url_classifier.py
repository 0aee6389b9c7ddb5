"""
Heuristic URL classification over search results.

Scores every search-result link for how likely it belongs to the
organization and which canonical page it could be (careers, culture,
reviews, funding). No network or model calls; the URL Validator does the
expensive checks afterwards.
"""

import logging
import re
from datetime import datetime
from typing import Dict, Iterable, List, Optional, Tuple
from urllib.parse import urlparse

from scout.common.dedupe import get_company_name_variations
from scout.research.state import ExtractedUrlBundle, UrlCategory
from scout.search.web_search import SearchResult

logger = logging.getLogger(__name__)


# Search-engine endpoints, caches and translators: never stored
INVALID_URL_PATTERNS = [
    "google.com/search",
    "google.com/url",
    "www.google.com/search",
    "www.google.com/url",
    "bing.com/search",
    "yahoo.com/search",
    "search.yahoo.com",
    "duckduckgo.com/",
    "baidu.com/s",
    "yandex.com/search",
    "yandex.ru/search",
    "webcache.googleusercontent.com",
    "translate.google.com",
    "translate.goog",
]

SHORTENER_DOMAINS = ["bit.ly", "tinyurl.com", "t.co", "goo.gl", "ow.ly", "lnkd.in"]

JOB_BOARD_DOMAINS = [
    "linkedin.com",
    "indeed.com",
    "glassdoor.com",
    "lever.co",
    "greenhouse.io",
    "myworkdayjobs.com",
    "workday.com",
    "ziprecruiter.com",
    "monster.com",
    "wellfound.com",
    "angel.co",
    "builtin.com",
    "dice.com",
    "simplyhired.com",
    "smartrecruiters.com",
    "workable.com",
    "ashbyhq.com",
    "jobvite.com",
    "otta.com",
    "stepstone.de",
    "welcometothejungle.com",
]

GENERIC_SITE_DOMAINS = [
    "linkedin.com",
    "facebook.com",
    "twitter.com",
    "x.com",
    "instagram.com",
    "tiktok.com",
    "reddit.com",
    "quora.com",
    "wikipedia.org",
    "wikimedia.org",
    "fandom.com",
    "youtube.com",
    "vimeo.com",
    "medium.com",
    "substack.com",
    "wordpress.com",
    "blogspot.com",
    "tumblr.com",
    "glassdoor.com",
    "crunchbase.com",
]

FUNDING_PROFILE_PATHS = [
    "crunchbase.com/organization/",
    "pitchbook.com/profiles/company/",
    "cbinsights.com/company/",
    "dealroom.co/companies/",
]

CAREERS_PATH_PATTERN = re.compile(
    r"/(careers?|jobs|join(-us)?|work-with-us|open-positions|opportunities|hiring)(/|$)"
)
CAREERS_TITLE_PATTERN = re.compile(
    r"\b(careers?|jobs|join us|join our team|we're hiring|open positions|work with us)\b"
)
CULTURE_PATH_PATTERN = re.compile(
    r"/(about(-us)?|culture|values|our-values|team|life|life-at-[a-z0-9-]+|who-we-are|our-story|mission)(/|$)"
)
CULTURE_TITLE_PATTERN = re.compile(
    r"\b(about us|culture|our values|values|our team|life at|who we are|our story|mission)\b"
)

FOUNDED_PATTERNS = [
    re.compile(r"\bfounded\s+(?:in\s+)?(\d{4})\b", re.IGNORECASE),
    re.compile(r"\bestablished\s+(?:in\s+)?(\d{4})\b", re.IGNORECASE),
    re.compile(r"\bstarted\s+(?:in\s+)?(\d{4})\b", re.IGNORECASE),
]


def is_obviously_invalid_url(url: Optional[str]) -> bool:
    """True for empty, malformed, or search-engine/redirect URLs."""
    if not url:
        return True

    url_lower = url.lower()
    if any(pattern in url_lower for pattern in INVALID_URL_PATTERNS):
        return True

    try:
        parsed = urlparse(url)
    except ValueError:
        return True
    if parsed.scheme not in ("http", "https"):
        return True
    if not parsed.hostname or len(parsed.hostname) < 3:
        return True
    if _host_matches(parsed.hostname.lower(), SHORTENER_DOMAINS):
        return True
    return False


def _host_matches(host: str, domains: Iterable[str]) -> bool:
    return any(host == d or host.endswith("." + d) for d in domains)


def _clean_domain(domain: Optional[str]) -> Optional[str]:
    if not domain:
        return None
    cleaned = re.sub(r"^https?://", "", domain.strip().lower())
    cleaned = cleaned.split("/", 1)[0]
    if cleaned.startswith("www."):
        cleaned = cleaned[4:]
    return cleaned or None


def _name_variants(organization_name: str) -> List[str]:
    return get_company_name_variations(organization_name)


def belongs_confidence(
    link: str,
    title: str,
    organization_name: str,
    organization_domain: Optional[str] = None,
) -> float:
    """
    Confidence that a link is the organization's own page.

    0.95 host contains the known domain, 0.7 a name variant in the URL,
    0.6 a name variant in the title, else 0.
    """
    parsed = urlparse(link)
    host = (parsed.hostname or "").lower()
    domain = _clean_domain(organization_domain)
    if domain and domain in host:
        return 0.95

    variants = _name_variants(organization_name)
    path = (parsed.path or "").lower()
    # Multi-word variants only ever match titles
    url_variants = [v for v in variants if " " not in v]
    if any(v in path or v in host for v in url_variants):
        return 0.7

    title_lower = (title or "").lower()
    if any(v in title_lower for v in variants):
        return 0.6

    return 0.0


def classify_result(
    result: SearchResult,
    organization_name: str,
    organization_domain: Optional[str] = None,
) -> Dict[UrlCategory, float]:
    """Page categories this result qualifies for, with confidence."""
    link = result.link
    if is_obviously_invalid_url(link):
        return {}

    parsed = urlparse(link)
    host = (parsed.hostname or "").lower()
    if host.startswith("www."):
        host = host[4:]
    path = (parsed.path or "").lower().rstrip("/") or "/"
    title = (result.title or "").lower()
    link_lower = link.lower()

    confidence = belongs_confidence(link, result.title, organization_name, organization_domain)
    variants = _name_variants(organization_name)
    name_match = any(v in link_lower or v in title for v in variants if v)

    matches: Dict[UrlCategory, float] = {}

    if "glassdoor" in host and name_match:
        matches[UrlCategory.REVIEWS] = max(confidence, 0.6)

    if any(p in link_lower for p in FUNDING_PROFILE_PATHS) and name_match:
        matches[UrlCategory.FUNDING] = max(confidence, 0.6)

    if not _host_matches(host, JOB_BOARD_DOMAINS) and confidence >= 0.6:
        if CAREERS_PATH_PATTERN.search(path) or CAREERS_TITLE_PATTERN.search(title):
            matches[UrlCategory.CAREERS] = confidence

    if not _host_matches(host, GENERIC_SITE_DOMAINS) and confidence >= 0.6:
        if CULTURE_PATH_PATTERN.search(path) or CULTURE_TITLE_PATTERN.search(title):
            matches[UrlCategory.CULTURE] = confidence

    return matches


def extract_founded_year(
    text: str,
    organization_name: str,
    current_year: Optional[int] = None,
) -> Optional[int]:
    """Founding year from a snippet that mentions the organization."""
    if not text:
        return None
    text_lower = text.lower()
    if not any(v in text_lower for v in _name_variants(organization_name)):
        return None

    current_year = current_year or datetime.now().year
    for pattern in FOUNDED_PATTERNS:
        for match in pattern.finditer(text):
            year = int(match.group(1))
            if 1800 <= year <= current_year:
                return year
    return None


def extract_urls_from_results(
    results: List[SearchResult],
    organization_name: str,
    organization_domain: Optional[str] = None,
) -> ExtractedUrlBundle:
    """
    Build a URL bundle from a result set.

    Highest confidence per category wins (first seen on ties); the other
    candidates become alternates.
    """
    candidates: Dict[UrlCategory, List[Tuple[str, float]]] = {c: [] for c in UrlCategory}
    founded_year: Optional[int] = None

    for result in results:
        for category, confidence in classify_result(result, organization_name, organization_domain).items():
            if result.link not in [url for url, _ in candidates[category]]:
                candidates[category].append((result.link, confidence))

        if founded_year is None:
            founded_year = extract_founded_year(
                f"{result.title} {result.snippet}", organization_name
            )

    urls: Dict[UrlCategory, str] = {}
    confidences: Dict[UrlCategory, float] = {}
    alternates: Dict[UrlCategory, Tuple[str, ...]] = {}
    for category, found in candidates.items():
        if not found:
            continue
        ranked = sorted(found, key=lambda item: item[1], reverse=True)
        urls[category], confidences[category] = ranked[0]
        if len(ranked) > 1:
            alternates[category] = tuple(url for url, _ in ranked[1:])

    if urls:
        logger.debug(
            f"URL candidates for {organization_name}: "
            + ", ".join(f"{c.value}={u}" for c, u in urls.items())
        )

    return ExtractedUrlBundle(
        urls=urls,
        confidences=confidences,
        alternates=alternates,
        founded_year=founded_year,
    )
