"""
Canonical Types for the company scout.

Enumerations shared by discovery and research, the discovery profile,
and the per-role research agent configuration.
"""

from dataclasses import asdict, dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional


class SignalCategory(str, Enum):
    """Signal categories, in the fixed order research visits them."""
    GROWTH_FUNDING = "growth_funding"
    CULTURE_WORK_STYLE = "culture_work_style"
    TECH_STACK_ENGINEERING = "tech_stack_engineering"
    LEADERSHIP_CHANGES = "leadership_changes"
    JOB_OPENINGS = "job_openings"

    @property
    def label(self) -> str:
        """Human label, e.g. 'Growth Funding'."""
        return " ".join(word.capitalize() for word in self.value.split("_"))


SIGNAL_CATEGORY_ORDER: List[SignalCategory] = list(SignalCategory)


class ContactType(str, Enum):
    FOUNDER = "founder"
    EXECUTIVE = "executive"
    DIRECTOR = "director"
    MANAGER = "manager"
    TEAM_LEAD = "team_lead"
    HIRING_MANAGER = "hiring_manager"
    RECRUITER = "recruiter"

    @classmethod
    def normalize(cls, value: Optional[str]) -> "ContactType":
        """Map free-form model output onto the enum; unknown values become team_lead."""
        if not value:
            return cls.TEAM_LEAD
        normalized = "_".join(str(value).strip().lower().split())
        try:
            return cls(normalized)
        except ValueError:
            return cls.TEAM_LEAD


class AgentRole(str, Enum):
    """Named worker roles that carry their own stored configuration."""
    ORCHESTRATOR = "orchestrator"
    SIGNAL_WORKER = "signal_worker"
    CONTACT_WORKER = "contact_worker"
    SYNTHESIZER = "synthesizer"


def _as_list(value: Any) -> List[str]:
    if not value:
        return []
    if isinstance(value, str):
        return [value]
    return [str(v) for v in value if v]


@dataclass
class Profile:
    """
    Discovery profile: what kind of organizations the user is looking for.

    Stored documents use nested dicts (technical_skills, company, location);
    from_dict flattens them.
    """
    id: str
    target_role: str = ""
    seniority: str = ""
    primary_skills: List[str] = field(default_factory=list)
    secondary_skills: List[str] = field(default_factory=list)
    company_stages: List[str] = field(default_factory=list)
    industries: List[str] = field(default_factory=list)
    size_range: str = ""
    location_preferences: List[str] = field(default_factory=list)
    remote_ok: bool = True
    avoid: List[str] = field(default_factory=list)
    must_have: List[str] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Profile":
        skills = data.get("technical_skills") or {}
        company = data.get("company") or {}
        location = data.get("location") or {}
        return cls(
            id=str(data.get("id") or data.get("_id") or "default"),
            target_role=data.get("target_role", "") or "",
            seniority=data.get("seniority", "") or "",
            primary_skills=_as_list(skills.get("primary")),
            secondary_skills=_as_list(skills.get("secondary")),
            company_stages=_as_list(company.get("stage")),
            industries=_as_list(company.get("industry")),
            size_range=company.get("size_range", "") or "",
            location_preferences=_as_list(location.get("preferences")),
            remote_ok=bool(location.get("remote_ok", True)),
            avoid=_as_list(data.get("avoid")),
            must_have=_as_list(data.get("must_have")),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "target_role": self.target_role,
            "seniority": self.seniority,
            "technical_skills": {
                "primary": list(self.primary_skills),
                "secondary": list(self.secondary_skills),
            },
            "company": {
                "stage": list(self.company_stages),
                "industry": list(self.industries),
                "size_range": self.size_range,
            },
            "location": {
                "preferences": list(self.location_preferences),
                "remote_ok": self.remote_ok,
            },
            "avoid": list(self.avoid),
            "must_have": list(self.must_have),
        }


@dataclass
class BehaviorConfig:
    """Behavior knobs for one worker role. None means "use the built-in default"."""
    signal_categories: Optional[List[str]] = None
    category_max_iterations: Optional[Dict[str, int]] = None
    max_iterations: Optional[int] = None
    min_signals_required: Optional[int] = None
    confidence_threshold: Optional[int] = None
    max_contacts: Optional[int] = None
    contact_types: Optional[List[str]] = None
    scoring_weights: Optional[Dict[str, float]] = None
    summary_max_length: Optional[int] = None


@dataclass
class ToolsConfig:
    """
    Search tooling for one worker role.

    custom_query_templates apply to every category; category_query_templates
    override them per signal category.
    """
    custom_query_templates: List[str] = field(default_factory=list)
    category_query_templates: Dict[str, List[str]] = field(default_factory=dict)


@dataclass
class ResearchAgentConfig:
    role: AgentRole
    enabled: bool = True
    system_prompt: Optional[str] = None
    behavior: BehaviorConfig = field(default_factory=BehaviorConfig)
    tools: ToolsConfig = field(default_factory=ToolsConfig)
    version: str = "1.0.0"

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ResearchAgentConfig":
        behavior_fields = BehaviorConfig.__dataclass_fields__
        tools_fields = ToolsConfig.__dataclass_fields__
        behavior = data.get("behavior_config") or {}
        tools = data.get("tools_config") or {}
        return cls(
            role=AgentRole(data.get("role") or data.get("agent_type")),
            enabled=bool(data.get("enabled", True)),
            system_prompt=data.get("system_prompt") or None,
            behavior=BehaviorConfig(**{k: v for k, v in behavior.items() if k in behavior_fields}),
            tools=ToolsConfig(**{k: v for k, v in tools.items() if k in tools_fields}),
            version=str(data.get("version", "1.0.0")),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "role": self.role.value,
            "enabled": self.enabled,
            "system_prompt": self.system_prompt,
            "behavior_config": asdict(self.behavior),
            "tools_config": asdict(self.tools),
            "version": self.version,
        }
