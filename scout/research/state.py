"""
State for one organization's research run.

The run is an explicit dataclass advanced one step at a time. Workers
return partial updates (plain dicts, like graph node outputs) and
apply_updates folds them into a new ResearchRun using the reducers below:
signals, contacts and errors append; api_calls sums; the URL bundle merges
by confidence; signal iteration states replace per category.
"""

from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

from scout.common.agent_config import ResearchSettings
from scout.common.dedupe import contact_dedupe_key
from scout.common.types import SIGNAL_CATEGORY_ORDER, ContactType, SignalCategory

__all__ = [
    "ContactIterationState",
    "CollectedSignal",
    "ContactType",
    "DiscoveredContact",
    "ExtractedUrlBundle",
    "ResearchPhase",
    "ResearchRun",
    "SignalCategory",
    "SignalIterationState",
    "UrlCategory",
    "append_errors",
    "apply_updates",
    "initial_research_run",
    "merge_url_bundles",
]


class ResearchPhase(str, Enum):
    INIT = "init"
    SIGNALS = "signals"
    CONTACTS = "contacts"
    SYNTHESIS = "synthesis"
    COMPLETE = "complete"
    ERROR = "error"

    @property
    def is_terminal(self) -> bool:
        return self in (ResearchPhase.COMPLETE, ResearchPhase.ERROR)


class UrlCategory(str, Enum):
    """Canonical page kinds extracted for an organization."""
    CAREERS = "careers"
    CULTURE = "culture"
    REVIEWS = "reviews"
    FUNDING = "funding"


@dataclass(frozen=True)
class SignalIterationState:
    category: SignalCategory
    iteration: int = 0
    max_iterations: int = 3
    queries_executed: Tuple[str, ...] = ()
    signals_found: int = 0
    needs_more_research: bool = True

    @property
    def can_continue(self) -> bool:
        return self.needs_more_research and self.iteration < self.max_iterations


@dataclass(frozen=True)
class ContactIterationState:
    iteration: int = 0
    max_iterations: int = 4
    contacts_found: int = 0


@dataclass
class CollectedSignal:
    id: str
    category: SignalCategory
    content: str
    source: str
    source_url: Optional[str]
    confidence: int
    raw_snippet: Optional[str] = None
    published_date: Optional[str] = None

    def to_record(self) -> Dict[str, Any]:
        """Store representation."""
        return {
            "id": self.id,
            "category": self.category.value,
            "content": self.content,
            "source": self.source,
            "source_url": self.source_url,
            "confidence": self.confidence,
            "signal_date": self.published_date,
            "raw_snippet": self.raw_snippet,
        }


@dataclass
class DiscoveredContact:
    id: str
    name: str
    title: str
    contact_type: ContactType
    linkedin_url: Optional[str]
    email: Optional[str]
    relevance_score: int
    source: str

    @property
    def dedupe_key(self) -> str:
        return contact_dedupe_key(self.name, self.title, self.linkedin_url)

    def to_record(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "title": self.title,
            "contact_type": self.contact_type.value,
            "linkedin_url": self.linkedin_url,
            "email": self.email,
            "source": self.source,
            "relevance_score": self.relevance_score,
        }


@dataclass(frozen=True)
class ExtractedUrlBundle:
    """
    Best candidate URL per page category, with its confidence and the
    rejected alternates.
    """
    urls: Dict[UrlCategory, str] = field(default_factory=dict)
    confidences: Dict[UrlCategory, float] = field(default_factory=dict)
    alternates: Dict[UrlCategory, Tuple[str, ...]] = field(default_factory=dict)
    founded_year: Optional[int] = None

    def url(self, category: UrlCategory) -> Optional[str]:
        return self.urls.get(category)

    def confidence(self, category: UrlCategory) -> float:
        return self.confidences.get(category, 0.0)

    @property
    def is_empty(self) -> bool:
        return not self.urls and self.founded_year is None


def _unique(values) -> Tuple[str, ...]:
    seen = []
    for value in values:
        if value and value not in seen:
            seen.append(value)
    return tuple(seen)


def merge_url_bundles(current: ExtractedUrlBundle, new: ExtractedUrlBundle) -> ExtractedUrlBundle:
    """
    Merge two bundles.

    Per category the URL with the higher confidence wins (ties keep the
    current one); confidences are maxed, alternates unioned in order with
    the winner excluded; founded_year keeps the first non-null value.
    """
    urls: Dict[UrlCategory, str] = {}
    confidences: Dict[UrlCategory, float] = {}
    alternates: Dict[UrlCategory, Tuple[str, ...]] = {}

    for category in UrlCategory:
        current_url = current.url(category)
        new_url = new.url(category)
        current_conf = current.confidence(category)
        new_conf = new.confidence(category)

        if current_url and (not new_url or current_conf >= new_conf):
            winner, loser = current_url, new_url
        else:
            winner, loser = new_url, current_url

        if winner:
            urls[category] = winner
            confidences[category] = max(current_conf, new_conf)

        merged_alternates = _unique(
            list(current.alternates.get(category, ()))
            + list(new.alternates.get(category, ()))
            + [loser]
        )
        merged_alternates = tuple(u for u in merged_alternates if u != winner)
        if merged_alternates:
            alternates[category] = merged_alternates

    return ExtractedUrlBundle(
        urls=urls,
        confidences=confidences,
        alternates=alternates,
        founded_year=current.founded_year if current.founded_year is not None else new.founded_year,
    )


def append_errors(existing: List[str], new: List[str]) -> List[str]:
    """Errors are append-only."""
    return list(existing) + list(new)


@dataclass
class ResearchRun:
    organization_id: Optional[str]
    organization_name: str
    organization_domain: Optional[str] = None
    research_run_id: Optional[str] = None
    profile_id: str = "default"
    phase: ResearchPhase = ResearchPhase.INIT
    current_category: Optional[SignalCategory] = None
    signal_iterations: Dict[SignalCategory, SignalIterationState] = field(default_factory=dict)
    contact_iteration: ContactIterationState = field(default_factory=ContactIterationState)
    signals: List[CollectedSignal] = field(default_factory=list)
    contacts: List[DiscoveredContact] = field(default_factory=list)
    url_bundle: ExtractedUrlBundle = field(default_factory=ExtractedUrlBundle)
    summary: Optional[str] = None
    score: Optional[int] = None
    key_insights: List[str] = field(default_factory=list)
    recommended_approach: Optional[str] = None
    validated_urls: Optional[Dict[str, Any]] = None
    errors: List[str] = field(default_factory=list)
    api_calls: int = 0

    def signals_in(self, category: SignalCategory) -> List[CollectedSignal]:
        return [s for s in self.signals if s.category == category]


def initial_research_run(
    organization_name: str,
    settings: ResearchSettings,
    organization_id: Optional[str] = None,
    organization_domain: Optional[str] = None,
    research_run_id: Optional[str] = None,
    profile_id: str = "default",
) -> ResearchRun:
    """Fresh run with iteration budgets taken from the resolved settings."""
    return ResearchRun(
        organization_id=organization_id,
        organization_name=organization_name,
        organization_domain=organization_domain,
        research_run_id=research_run_id,
        profile_id=profile_id,
        signal_iterations={
            category: SignalIterationState(
                category=category,
                max_iterations=settings.category_max_iterations.get(category, 3),
            )
            for category in SIGNAL_CATEGORY_ORDER
        },
        contact_iteration=ContactIterationState(max_iterations=settings.contact_max_iterations),
    )


def apply_updates(run: ResearchRun, updates: Dict[str, Any]) -> ResearchRun:
    """Fold a worker's partial update into a new ResearchRun."""
    changes: Dict[str, Any] = {}
    for key, value in updates.items():
        if key == "signals":
            changes[key] = run.signals + list(value)
        elif key == "contacts":
            changes[key] = run.contacts + list(value)
        elif key == "errors":
            changes[key] = append_errors(run.errors, value)
        elif key == "api_calls":
            changes[key] = run.api_calls + value
        elif key == "url_bundle":
            changes[key] = merge_url_bundles(run.url_bundle, value)
        elif key == "signal_iterations":
            changes[key] = {**run.signal_iterations, **value}
        else:
            changes[key] = value
    return replace(run, **changes)
