"""
LLM calls used during organization discovery.

- generate_queries: 5-8 search queries from a profile, templated fallback
- extract_organizations: organization names from search results
- analyze_fit: profile fit scores for a researched organization, neutral fallback
- summarize: executive summary of a finished run

Extraction and summary raise ServiceError so the calling node can record
the failure; query generation and fit analysis degrade internally.
"""

import logging
from datetime import datetime
from typing import Any, Dict, List, Optional, Sequence

from langchain_core.messages import HumanMessage, SystemMessage
from pydantic import BaseModel, Field, ValidationError, field_validator
from tenacity import retry, stop_after_attempt, wait_exponential

from scout.common.config import Config
from scout.common.dedupe import organization_key
from scout.common.error_handling import ServiceError
from scout.common.json_utils import parse_llm_json, parse_llm_json_list
from scout.common.llm_factory import create_llm
from scout.common.types import Profile, SignalCategory
from scout.discovery.state import FitAnalysisResult
from scout.research.llm_research import _clamp_score, format_results
from scout.search.web_search import SearchResult

logger = logging.getLogger(__name__)

MIN_QUERIES = 5
MAX_QUERIES = 8

# criteria, culture, opportunity, location
FIT_WEIGHTS = (0.30, 0.25, 0.25, 0.20)

TOP_MATCHES_IN_SUMMARY = 5


# ===== PYDANTIC SCHEMAS =====

class ExtractedOrganization(BaseModel):
    name: str = ""
    snippet: str = ""
    source_url: str = ""

    @field_validator("name", "snippet", "source_url", mode="before")
    @classmethod
    def coerce_text(cls, v: Any) -> str:
        return "" if v is None else str(v).strip()


class FitAnalysisModel(BaseModel):
    criteria_match_score: int = 5
    culture_match_score: int = 5
    opportunity_score: int = 5
    location_match_score: int = 5
    criteria_match_analysis: str = ""
    positioning_strategy: str = ""
    prioritized_contacts: List[str] = Field(default_factory=list)
    outreach_template: Optional[str] = None

    @field_validator(
        "criteria_match_score",
        "culture_match_score",
        "opportunity_score",
        "location_match_score",
        mode="before",
    )
    @classmethod
    def clamp(cls, v: Any) -> int:
        return _clamp_score(v)

    @field_validator("criteria_match_analysis", "positioning_strategy", mode="before")
    @classmethod
    def coerce_text(cls, v: Any) -> str:
        return "" if v is None else str(v)

    @field_validator("prioritized_contacts", mode="before")
    @classmethod
    def coerce_names(cls, v: Any) -> List[str]:
        if not isinstance(v, list):
            return []
        return [str(name) for name in v if name]

    @field_validator("outreach_template", mode="before")
    @classmethod
    def empty_to_none(cls, v: Any) -> Optional[str]:
        return str(v) if v else None


# ===== PROMPTS =====

QUERY_OUTPUT_FORMAT = """You plan web searches that discover companies matching a candidate profile.

Respond with JSON only:
{"queries": ["...", "..."]}"""

ORGANIZATION_OUTPUT_FORMAT = """You extract company names from web search results.

Respond with JSON only:
{"organizations": [{"name": "...", "snippet": "...", "source_url": "..."}]}
Return {"organizations": []} when no valid companies are found."""

FIT_OUTPUT_FORMAT = """You assess how well a company fits a candidate's discovery criteria.

Respond with JSON only:
{"criteria_match_score": 1-10, "culture_match_score": 1-10, "opportunity_score": 1-10,
 "location_match_score": 1-10, "criteria_match_analysis": "...", "positioning_strategy": "...",
 "prioritized_contacts": ["contact name", ...], "outreach_template": "..."}"""

SUMMARY_SYSTEM_PROMPT = "You write short executive summaries of company discovery sessions in plain text."


def _joined(values: Sequence[str]) -> str:
    return ", ".join(values)


def format_criteria(profile: Profile) -> str:
    return f"""DISCOVERY CRITERIA:
- Focus Area: {profile.target_role}
- Primary Technologies: {_joined(profile.primary_skills)}
- Secondary Technologies: {_joined(profile.secondary_skills)}
- Company Stage: {_joined(profile.company_stages)}
- Industries: {_joined(profile.industries)}
- Location Preferences: {_joined(profile.location_preferences)} (Remote OK: {profile.remote_ok})
- Exclude Keywords: {_joined(profile.avoid)}
- Required Keywords: {_joined(profile.must_have)}"""


def build_query_prompt(profile: Profile, year: int) -> str:
    return f"""Generate {MIN_QUERIES}-{MAX_QUERIES} specific web search queries to find companies matching these criteria.

{format_criteria(profile)}

Generate queries that will find:
1. Companies in the target industries that recently raised funding
2. Companies using the specified tech stack
3. Growing companies in the target stage
4. Companies with signals of growth (hiring, funding, expansion)

Query tips:
- Use site: operators for quality sources (techcrunch.com, crunchbase.com, linkedin.com)
- Include the year for recency ({year - 1} or {year})
- Mix funding news, growth signals, and tech stack queries
- Target the specific industries and company stages"""


def default_queries(profile: Profile, year: Optional[int] = None) -> List[str]:
    """Templated queries keyed on the profile's top industry, stage and skill."""
    year = year or datetime.now().year
    industry = profile.industries[0] if profile.industries else "tech"
    stage = profile.company_stages[0] if profile.company_stages else "startup"
    skill = profile.primary_skills[0] if profile.primary_skills else "software"
    return [
        f'site:techcrunch.com "{industry}" "{stage}" funding {year}',
        f'site:crunchbase.com "{stage}" "{industry}" series',
        f'"{skill}" startup hiring {year}',
        f'"{industry}" company "raised" "series" {year}',
        f'"{skill}" "{industry}" company engineering team',
    ]


def build_extraction_prompt(results: Sequence[SearchResult], existing_names: Sequence[str]) -> str:
    exclude = ""
    if existing_names:
        exclude = f"\n\nALREADY DISCOVERED (skip these): {_joined(existing_names)}"

    return f"""Extract company names from these search results about startup funding, hiring, or company news.

Search Results:
{format_results(results)}
{exclude}

For each NEW company found, extract:
1. name: The company name (clean, no "Inc", "LLC", etc.)
2. snippet: A brief description from the search result
3. source_url: The URL where it was found

Only include:
- Real companies (not job boards, news sites, or tools)
- Companies that appear to be hiring or growing
- Exclude any already-discovered companies listed above"""


def format_stored_signals(signals: Sequence[Dict[str, Any]]) -> str:
    grouped: Dict[str, List[str]] = {}
    for signal in signals:
        grouped.setdefault(signal.get("category") or "other", []).append(signal.get("content") or "")
    sections = []
    for category, contents in grouped.items():
        try:
            label = SignalCategory(category).label
        except ValueError:
            label = category.replace("_", " ").title()
        lines = "\n".join(f"- {content}" for content in contents)
        sections.append(f"## {label}\n{lines}")
    return "\n\n".join(sections) or "No signals collected."


def format_stored_contacts(contacts: Sequence[Dict[str, Any]]) -> str:
    if not contacts:
        return "No contacts discovered."
    return "\n".join(
        f"- {c.get('name')}: {c.get('title')} ({c.get('contact_type')})" for c in contacts
    )


def build_fit_prompt(
    organization_name: str,
    signals: Sequence[Dict[str, Any]],
    contacts: Sequence[Dict[str, Any]],
    profile: Profile,
) -> str:
    return f"""Analyze how well {organization_name} matches the discovery criteria.

{format_criteria(profile)}

COMPANY SIGNALS:
{format_stored_signals(signals)}

CONTACTS AT COMPANY:
{format_stored_contacts(contacts)}

Provide scores 1-10 for each dimension:
1. criteria_match_score: How well does the company match the specified tech stack, industry, and focus area?
2. culture_match_score: Based on culture signals, how well does this company align with preferences?
3. opportunity_score: Based on growth signals, timing, and potential, is this a good opportunity?
4. location_match_score: Does the company's location/remote policy match preferences?

Also provide:
- criteria_match_analysis: What criteria align well? What gaps exist? (2-3 sentences)
- positioning_strategy: How should one approach this company strategically? (2-3 sentences)
- prioritized_contacts: Contact names in order of who to reach out to first
- outreach_template: A 2-3 sentence intro message template for outreach"""


def overall_fit_score(criteria: int, culture: int, opportunity: int, location: int) -> int:
    """Weighted sub-scores, rounded half-up."""
    weighted = sum(w * s for w, s in zip(FIT_WEIGHTS, (criteria, culture, opportunity, location)))
    return int(weighted + 0.5)


def default_fit_analysis(
    organization_id: str,
    organization_name: str,
    contacts: Sequence[Dict[str, Any]],
) -> FitAnalysisResult:
    """Neutral analysis used when the model call fails."""
    return FitAnalysisResult(
        organization_id=organization_id,
        organization_name=organization_name,
        criteria_match_score=5,
        culture_match_score=5,
        opportunity_score=5,
        location_match_score=5,
        overall_fit_score=5,
        criteria_match_analysis="Unable to analyze criteria match. Review company signals manually.",
        positioning_strategy="Research the company further to develop a strategy.",
        prioritized_contacts=tuple(c["id"] for c in contacts[:3]),
        outreach_template=None,
    )


def top_matches(analyses: Sequence[FitAnalysisResult], limit: int = TOP_MATCHES_IN_SUMMARY) -> List[FitAnalysisResult]:
    return sorted(analyses, key=lambda a: a.overall_fit_score, reverse=True)[:limit]


def format_top_matches(analyses: Sequence[FitAnalysisResult]) -> str:
    lines = []
    for i, analysis in enumerate(top_matches(analyses), 1):
        first_sentence = analysis.positioning_strategy.split(".")[0]
        lines.append(
            f"{i}. {analysis.organization_name} (Score: {analysis.overall_fit_score}/10) - {first_sentence}."
        )
    return "\n".join(lines)


def build_summary_prompt(
    discovered_count: int,
    researched_count: int,
    analyses: Sequence[FitAnalysisResult],
) -> str:
    return f"""Summarize this company discovery session in 2-3 paragraphs.

Stats:
- Companies discovered: {discovered_count}
- Companies researched: {researched_count}
- Fit analyses completed: {len(analyses)}

Top Matches:
{format_top_matches(analyses) or 'No companies analyzed yet.'}

Write a brief executive summary covering:
1. Overview of the discovery results
2. Top recommendations and why they stand out
3. Suggested next steps for outreach

Keep it concise and actionable. Return plain text (no JSON, no markdown headers)."""


def fallback_summary(discovered_count: int, researched_count: int, analyzed_count: int) -> str:
    return (
        f"Discovered {discovered_count} companies, researched {researched_count}, "
        f"and analyzed {analyzed_count} for fit. "
        "Review the ranked results to identify top opportunities."
    )


class DiscoveryLLM:
    """LLM operations for one discovery run."""

    def __init__(
        self,
        llm: Optional[Any] = None,
        narrative_llm: Optional[Any] = None,
        run_id: Optional[str] = None,
    ):
        self._llm = llm
        # An injected llm serves both roles unless a narrative one is given
        self._narrative_llm = narrative_llm if narrative_llm is not None else llm
        self.run_id = run_id

    @property
    def llm(self):
        if self._llm is None:
            self._llm = create_llm(
                temperature=Config.ANALYTICAL_TEMPERATURE,
                stage="discovery",
                run_id=self.run_id,
            )
        return self._llm

    @property
    def narrative_llm(self):
        if self._narrative_llm is None:
            self._narrative_llm = create_llm(
                temperature=Config.CREATIVE_TEMPERATURE,
                stage="discovery_summary",
                run_id=self.run_id,
            )
        return self._narrative_llm

    @retry(
        stop=stop_after_attempt(2),
        wait=wait_exponential(multiplier=1, min=2, max=5),
        reraise=True,
    )
    def _invoke(self, system_prompt: str, user_prompt: str, narrative: bool = False) -> str:
        llm = self.narrative_llm if narrative else self.llm
        response = llm.invoke([
            SystemMessage(content=system_prompt),
            HumanMessage(content=user_prompt),
        ])
        return response.content if isinstance(response.content, str) else str(response.content)

    def generate_queries(self, profile: Profile, year: Optional[int] = None) -> List[str]:
        """Search queries for the profile; templated defaults on any failure."""
        year = year or datetime.now().year
        try:
            raw = parse_llm_json_list(
                self._invoke(QUERY_OUTPUT_FORMAT, build_query_prompt(profile, year)),
                "queries",
            )
            queries = [q.strip() for q in raw if isinstance(q, str) and q.strip()]
            if not queries:
                raise ValueError("no queries returned")
            return queries[:MAX_QUERIES]
        except Exception as e:
            logger.warning(f"Query generation failed, using default queries: {e}")
            return default_queries(profile, year)

    def extract_organizations(
        self,
        results: Sequence[SearchResult],
        existing_names: Sequence[str],
    ) -> List[ExtractedOrganization]:
        """
        New organizations named in search results.

        Raises:
            ServiceError: When the LLM call or its output fails
        """
        prompt = build_extraction_prompt(results, existing_names)
        try:
            raw_items = parse_llm_json_list(self._invoke(ORGANIZATION_OUTPUT_FORMAT, prompt), "organizations")
        except Exception as e:
            raise ServiceError("llm", f"organization extraction failed: {e}") from e

        known = {organization_key(name) for name in existing_names}
        organizations = []
        for item in raw_items:
            if not isinstance(item, dict):
                continue
            try:
                model = ExtractedOrganization(**item)
            except ValidationError as e:
                logger.debug(f"Skipping malformed organization: {e}")
                continue
            if model.name and organization_key(model.name) not in known:
                known.add(organization_key(model.name))
                organizations.append(model)
        return organizations

    def analyze_fit(
        self,
        organization_id: str,
        organization_name: str,
        signals: Sequence[Dict[str, Any]],
        contacts: Sequence[Dict[str, Any]],
        profile: Profile,
    ) -> FitAnalysisResult:
        """Fit analysis against the profile; neutral fallback on any failure."""
        prompt = build_fit_prompt(organization_name, signals, contacts, profile)
        try:
            model = FitAnalysisModel(**parse_llm_json(self._invoke(FIT_OUTPUT_FORMAT, prompt)))
        except Exception as e:
            logger.warning(f"Fit analysis failed for {organization_name}, using default: {e}")
            return default_fit_analysis(organization_id, organization_name, contacts)

        ids_by_name = {c.get("name"): c["id"] for c in contacts}
        prioritized = tuple(ids_by_name[name] for name in model.prioritized_contacts if name in ids_by_name)

        return FitAnalysisResult(
            organization_id=organization_id,
            organization_name=organization_name,
            criteria_match_score=model.criteria_match_score,
            culture_match_score=model.culture_match_score,
            opportunity_score=model.opportunity_score,
            location_match_score=model.location_match_score,
            overall_fit_score=overall_fit_score(
                model.criteria_match_score,
                model.culture_match_score,
                model.opportunity_score,
                model.location_match_score,
            ),
            criteria_match_analysis=model.criteria_match_analysis,
            positioning_strategy=model.positioning_strategy,
            prioritized_contacts=prioritized,
            outreach_template=model.outreach_template,
        )

    def summarize(
        self,
        discovered_count: int,
        researched_count: int,
        analyses: Sequence[FitAnalysisResult],
    ) -> str:
        """
        Plain-text executive summary.

        Raises:
            ServiceError: When the LLM call fails or returns nothing
        """
        prompt = build_summary_prompt(discovered_count, researched_count, analyses)
        try:
            text = self._invoke(SUMMARY_SYSTEM_PROMPT, prompt, narrative=True).strip()
        except Exception as e:
            raise ServiceError("llm", f"summary generation failed: {e}") from e
        if not text:
            raise ServiceError("llm", "summary generation returned no text")
        return text
