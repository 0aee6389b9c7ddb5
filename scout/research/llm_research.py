"""
LLM calls used during organization research.

Three calls: signal extraction (per category), contact extraction, and
research synthesis. Extraction failures raise ServiceError so the calling
worker can record them; synthesis degrades to a deterministic summary and
score instead.
"""

import logging
from dataclasses import dataclass, field
from datetime import date
from typing import Any, Dict, List, Optional, Sequence

from langchain_core.messages import HumanMessage, SystemMessage
from pydantic import BaseModel, Field, ValidationError, field_validator
from tenacity import retry, stop_after_attempt, wait_exponential

from scout.common.agent_config import FALLBACK_CATEGORY_WEIGHT
from scout.common.config import Config
from scout.common.error_handling import ServiceError
from scout.common.json_utils import parse_llm_json, parse_llm_json_list
from scout.common.llm_factory import create_llm
from scout.common.types import ContactType, SignalCategory
from scout.research.state import CollectedSignal, DiscoveredContact
from scout.search.web_search import SearchResult

logger = logging.getLogger(__name__)


def _clamp_score(value: Any, low: int = 1, high: int = 10, default: int = 5) -> int:
    """Numeric model output to an int in [low, high]; missing, zero or junk -> default."""
    try:
        number = float(value)
    except (TypeError, ValueError):
        return default
    if not number:
        return default
    return int(min(high, max(low, round(number))))


# ===== PYDANTIC SCHEMAS =====

class SignalModel(BaseModel):
    content: str = ""
    confidence: int = 5
    source: str = "Unknown"
    source_url: Optional[str] = None
    published_date: Optional[str] = None

    @field_validator("confidence", mode="before")
    @classmethod
    def clamp_confidence(cls, v: Any) -> int:
        return _clamp_score(v)

    @field_validator("content", "source", mode="before")
    @classmethod
    def coerce_text(cls, v: Any) -> str:
        return "" if v is None else str(v).strip()

    @field_validator("published_date", mode="before")
    @classmethod
    def normalize_date(cls, v: Any) -> Optional[str]:
        if not v or not isinstance(v, str):
            return None
        try:
            return date.fromisoformat(v.strip()[:10]).isoformat()
        except ValueError:
            return None


class ContactModel(BaseModel):
    name: str = ""
    title: str = ""
    linkedin_url: Optional[str] = None
    email: Optional[str] = None
    contact_type: ContactType = ContactType.TEAM_LEAD
    relevance_score: int = 5

    @field_validator("name", "title", mode="before")
    @classmethod
    def coerce_text(cls, v: Any) -> str:
        return "" if v is None else str(v).strip()

    @field_validator("contact_type", mode="before")
    @classmethod
    def normalize_type(cls, v: Any) -> ContactType:
        return ContactType.normalize(v if isinstance(v, str) else None)

    @field_validator("relevance_score", mode="before")
    @classmethod
    def clamp_relevance(cls, v: Any) -> int:
        return _clamp_score(v)

    @field_validator("linkedin_url", "email", mode="before")
    @classmethod
    def empty_to_none(cls, v: Any) -> Optional[str]:
        return str(v).strip() if v else None


class SynthesisModel(BaseModel):
    summary: str = ""
    score: int = 5
    key_insights: List[str] = Field(default_factory=list)
    recommended_approach: str = ""

    @field_validator("score", mode="before")
    @classmethod
    def clamp(cls, v: Any) -> int:
        return _clamp_score(v)

    @field_validator("key_insights", mode="before")
    @classmethod
    def coerce_list(cls, v: Any) -> List[str]:
        if not isinstance(v, list):
            return []
        return [str(item) for item in v if item]


@dataclass
class AnalyzedSignal:
    content: str
    confidence: int
    source: str
    source_url: Optional[str]
    raw_snippet: Optional[str]
    published_date: Optional[str]


@dataclass
class SynthesisResult:
    summary: str
    score: int
    key_insights: List[str] = field(default_factory=list)
    recommended_approach: str = ""
    used_fallback: bool = False


# ===== PROMPTS =====

SIGNAL_OUTPUT_FORMAT = """You extract research signals about a company from web search results.

Respond with JSON only:
{"signals": [{"content": "...", "confidence": 1-10, "source": "...", "source_url": "...", "published_date": "YYYY-MM-DD" or null}]}
Return {"signals": []} when nothing relevant is found."""

CONTACT_OUTPUT_FORMAT = """You extract people who work at a company from web search results.

Respond with JSON only:
{"contacts": [{"name": "...", "title": "...", "linkedin_url": "..." or null, "contact_type": "...", "relevance_score": 1-10}]}
Return {"contacts": []} when nobody qualifies."""

SYNTHESIS_OUTPUT_FORMAT = """You write research briefs about companies for a job seeker.

Respond with JSON only:
{"summary": "...", "score": 1-10, "key_insights": ["..."], "recommended_approach": "..."}"""


def format_results(results: Sequence[SearchResult], include_dates: bool = False) -> str:
    blocks = []
    for i, r in enumerate(results, 1):
        text = f"[{i}] Title: {r.title}\nURL: {r.link}\nSnippet: {r.snippet}"
        if include_dates and r.published_date:
            text += f"\nPublished: {r.published_date}"
        blocks.append(text)
    return "\n\n---\n\n".join(blocks)


def format_signals_by_category(signals: Sequence[CollectedSignal]) -> str:
    """Signals grouped under a '## Category' heading each, in first-seen order."""
    grouped: Dict[SignalCategory, List[CollectedSignal]] = {}
    for signal in signals:
        grouped.setdefault(signal.category, []).append(signal)
    sections = []
    for category, items in grouped.items():
        lines = "\n".join(
            f"- {s.content} (confidence: {s.confidence}/10, source: {s.source})" for s in items
        )
        sections.append(f"## {category.label}\n{lines}")
    return "\n\n".join(sections)


def format_contacts(contacts: Sequence[DiscoveredContact]) -> str:
    if not contacts:
        return "No contacts discovered."
    return "\n".join(
        f"- {c.name}: {c.title} ({c.contact_type.value}, relevance: {c.relevance_score}/10)"
        for c in contacts
    )


def build_signal_prompt(
    results: Sequence[SearchResult],
    organization_name: str,
    category: SignalCategory,
    custom_prompt: Optional[str] = None,
) -> str:
    results_text = format_results(results, include_dates=True)
    if custom_prompt:
        prompt = custom_prompt.replace("{{company}}", organization_name).replace("{{category}}", category.label)
        return f"{prompt}\n\nSearch Results:\n{results_text}"

    return f"""Analyze these search results about {organization_name} for {category.label} signals.

Search Results:
{results_text}

Extract relevant signals. For each signal found, provide:
1. content: A concise 1-2 sentence description of the signal
2. confidence: Score 1-10 based on source reliability and recency (recent signals score higher)
3. source: The publication/website name
4. source_url: The URL of the source
5. published_date: The publication date in ISO format (YYYY-MM-DD). Extract from the "Published" field if provided, or estimate from dates mentioned in title/snippet. Use null if unknown.

Only include signals specifically about {organization_name}, not general industry news.
Prioritize recent information - signals from the last 6 months are most relevant.
Return an empty list if no relevant signals found."""


def build_contact_prompt(
    results: Sequence[SearchResult],
    organization_name: str,
    custom_prompt: Optional[str] = None,
) -> str:
    results_text = format_results(results)
    if custom_prompt:
        prompt = custom_prompt.replace("{{company}}", organization_name)
        return f"{prompt}\n\nSearch Results:\n{results_text}"

    return f"""Extract contacts from these search results for {organization_name}.

Search Results:
{results_text}

For each person found, extract:
1. name: Full name
2. title: Job title
3. linkedin_url: LinkedIn profile URL (if visible in the result)
4. contact_type: One of:
   - "founder" (CEO, Co-founder, Founder)
   - "executive" (CTO, VP, C-suite officers)
   - "director" (Director of Engineering, Director of Product)
   - "manager" (Engineering Manager, Product Manager)
   - "team_lead" (Tech Lead, Staff Engineer, Principal Engineer)
   - "hiring_manager" (explicitly hiring-focused roles)
   - "recruiter" (Recruiter, Talent Acquisition)
5. relevance_score: 1-10 based on how useful for job search networking (founders/executives at small companies are highly relevant)

Only include people who clearly work at {organization_name}.
Return an empty list if no valid contacts found."""


def build_synthesis_prompt(
    organization_name: str,
    signals: Sequence[CollectedSignal],
    contacts: Sequence[DiscoveredContact],
    custom_prompt: Optional[str] = None,
) -> str:
    signals_text = format_signals_by_category(signals)
    contacts_text = format_contacts(contacts)
    if custom_prompt:
        return (
            custom_prompt.replace("{{company}}", organization_name)
            .replace("{{signals}}", signals_text)
            .replace("{{contacts}}", contacts_text)
        )

    return f"""Create an executive summary for {organization_name} based on this research.

COLLECTED SIGNALS:
{signals_text or 'No signals collected.'}

DISCOVERED CONTACTS:
{contacts_text}

Create a concise 3-4 paragraph summary that helps a job seeker understand:
1. Company trajectory (growing/stable/declining)
2. Engineering culture and work environment
3. Best networking approach

Then provide an overall score 1-10 for this company as a job opportunity."""


def calculate_default_score(
    signals: Sequence[CollectedSignal],
    weights: Optional[Dict[SignalCategory, float]] = None,
) -> int:
    """
    Deterministic score when synthesis fails.

    Weighted mean of per-category mean confidence over categories that have
    signals; a category without a (non-zero) weight counts 0.20. No signals
    scores 5. Rounded half-up and clamped to [1, 10].
    """
    if not signals:
        return 5

    by_category: Dict[SignalCategory, List[int]] = {}
    for signal in signals:
        by_category.setdefault(signal.category, []).append(signal.confidence)

    weights = weights or {}
    weighted_sum = 0.0
    total_weight = 0.0
    for category, confidences in by_category.items():
        weight = weights.get(category) or FALLBACK_CATEGORY_WEIGHT
        weighted_sum += (sum(confidences) / len(confidences)) * weight
        total_weight += weight

    if total_weight == 0:
        return 5
    score = int(weighted_sum / total_weight + 0.5)
    return min(10, max(1, score))


class ResearchLLM:
    """LLM operations for one research run (one client, created lazily)."""

    def __init__(self, llm: Optional[Any] = None, run_id: Optional[str] = None):
        self._llm = llm
        self.run_id = run_id

    @property
    def llm(self):
        if self._llm is None:
            self._llm = create_llm(
                temperature=Config.ANALYTICAL_TEMPERATURE,
                stage="research",
                run_id=self.run_id,
            )
        return self._llm

    @retry(
        stop=stop_after_attempt(2),
        wait=wait_exponential(multiplier=1, min=2, max=5),
        reraise=True,
    )
    def _invoke(self, system_prompt: str, user_prompt: str) -> str:
        response = self.llm.invoke([
            SystemMessage(content=system_prompt),
            HumanMessage(content=user_prompt),
        ])
        return response.content if isinstance(response.content, str) else str(response.content)

    def extract_signals(
        self,
        results: Sequence[SearchResult],
        organization_name: str,
        category: SignalCategory,
        custom_prompt: Optional[str] = None,
    ) -> List[AnalyzedSignal]:
        """
        Extract category signals from search results.

        Raises:
            ServiceError: When the LLM call or its output fails
        """
        prompt = build_signal_prompt(results, organization_name, category, custom_prompt)
        try:
            raw_items = parse_llm_json_list(self._invoke(SIGNAL_OUTPUT_FORMAT, prompt), "signals")
        except Exception as e:
            raise ServiceError("llm", f"signal extraction failed: {e}") from e

        by_link = {r.link: r for r in results}
        signals = []
        for item in raw_items:
            if not isinstance(item, dict):
                continue
            try:
                model = SignalModel(**item)
            except ValidationError as e:
                logger.debug(f"Skipping malformed signal: {e}")
                continue
            if not model.content:
                continue
            matching = by_link.get(model.source_url or "")
            signals.append(AnalyzedSignal(
                content=model.content,
                confidence=model.confidence,
                source=model.source or "Unknown",
                source_url=model.source_url or None,
                raw_snippet=matching.snippet if matching else None,
                published_date=model.published_date or (matching.published_date if matching else None),
            ))
        return signals

    def extract_contacts(
        self,
        results: Sequence[SearchResult],
        organization_name: str,
        custom_prompt: Optional[str] = None,
    ) -> List[ContactModel]:
        """
        Extract people from search results; entries without a name or title are dropped.

        Raises:
            ServiceError: When the LLM call or its output fails
        """
        prompt = build_contact_prompt(results, organization_name, custom_prompt)
        try:
            raw_items = parse_llm_json_list(self._invoke(CONTACT_OUTPUT_FORMAT, prompt), "contacts")
        except Exception as e:
            raise ServiceError("llm", f"contact extraction failed: {e}") from e

        contacts = []
        for item in raw_items:
            if not isinstance(item, dict):
                continue
            try:
                model = ContactModel(**item)
            except ValidationError as e:
                logger.debug(f"Skipping malformed contact: {e}")
                continue
            if model.name and model.title:
                contacts.append(model)
        return contacts

    def synthesize(
        self,
        organization_name: str,
        signals: Sequence[CollectedSignal],
        contacts: Sequence[DiscoveredContact],
        custom_prompt: Optional[str] = None,
        scoring_weights: Optional[Dict[SignalCategory, float]] = None,
        summary_max_length: Optional[int] = None,
    ) -> SynthesisResult:
        """Summary and score; falls back to deterministic values on any failure."""
        prompt = build_synthesis_prompt(organization_name, signals, contacts, custom_prompt)
        try:
            model = SynthesisModel(**parse_llm_json(self._invoke(SYNTHESIS_OUTPUT_FORMAT, prompt)))
            if not model.summary.strip():
                raise ValueError("empty summary")
        except Exception as e:
            logger.warning(f"Synthesis LLM failed for {organization_name}, using fallback: {e}")
            return SynthesisResult(
                summary=(
                    f"Research completed for {organization_name}. "
                    f"Found {len(signals)} signals and {len(contacts)} contacts."
                ),
                score=calculate_default_score(signals, scoring_weights),
                used_fallback=True,
            )

        summary = model.summary.strip()
        if summary_max_length and len(summary) > summary_max_length:
            summary = summary[:summary_max_length].rstrip()
        return SynthesisResult(
            summary=summary,
            score=model.score,
            key_insights=model.key_insights,
            recommended_approach=model.recommended_approach,
        )
