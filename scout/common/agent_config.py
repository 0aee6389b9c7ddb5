"""
Research agent configuration defaults and resolution.

Each worker role (orchestrator, signal_worker, contact_worker, synthesizer)
may have a stored configuration. A run resolves all four once, at start,
into a ResearchSettings snapshot so that transitions stay pure functions
of run state plus settings.
"""

import logging
from dataclasses import dataclass, field, replace
from typing import Dict, List, Optional, Tuple

from scout.common.types import (
    AgentRole,
    BehaviorConfig,
    ContactType,
    ResearchAgentConfig,
    SIGNAL_CATEGORY_ORDER,
    SignalCategory,
    ToolsConfig,
)

logger = logging.getLogger(__name__)


DEFAULT_CATEGORY_MAX_ITERATIONS: Dict[SignalCategory, int] = {
    SignalCategory.GROWTH_FUNDING: 3,
    SignalCategory.CULTURE_WORK_STYLE: 3,
    SignalCategory.TECH_STACK_ENGINEERING: 3,
    SignalCategory.LEADERSHIP_CHANGES: 2,
    SignalCategory.JOB_OPENINGS: 2,
}

DEFAULT_CONTACT_MAX_ITERATIONS = 4
DEFAULT_MAX_CONTACTS = 10
DEFAULT_MIN_SIGNALS_REQUIRED = 2
DEFAULT_CONFIDENCE_THRESHOLD = 5
DEFAULT_SUMMARY_MAX_LENGTH = 2000

# Sums to 1.0; categories missing from a custom map fall back to FALLBACK_CATEGORY_WEIGHT
DEFAULT_SCORING_WEIGHTS: Dict[SignalCategory, float] = {
    SignalCategory.GROWTH_FUNDING: 0.20,
    SignalCategory.CULTURE_WORK_STYLE: 0.25,
    SignalCategory.TECH_STACK_ENGINEERING: 0.20,
    SignalCategory.LEADERSHIP_CHANGES: 0.15,
    SignalCategory.JOB_OPENINGS: 0.20,
}
FALLBACK_CATEGORY_WEIGHT = 0.20


DEFAULT_AGENT_CONFIGS: Dict[AgentRole, ResearchAgentConfig] = {
    AgentRole.ORCHESTRATOR: ResearchAgentConfig(
        role=AgentRole.ORCHESTRATOR,
        behavior=BehaviorConfig(
            signal_categories=[c.value for c in SIGNAL_CATEGORY_ORDER],
        ),
    ),
    AgentRole.SIGNAL_WORKER: ResearchAgentConfig(
        role=AgentRole.SIGNAL_WORKER,
        behavior=BehaviorConfig(
            category_max_iterations={c.value: n for c, n in DEFAULT_CATEGORY_MAX_ITERATIONS.items()},
            min_signals_required=DEFAULT_MIN_SIGNALS_REQUIRED,
            confidence_threshold=DEFAULT_CONFIDENCE_THRESHOLD,
        ),
    ),
    AgentRole.CONTACT_WORKER: ResearchAgentConfig(
        role=AgentRole.CONTACT_WORKER,
        behavior=BehaviorConfig(
            max_iterations=DEFAULT_CONTACT_MAX_ITERATIONS,
            max_contacts=DEFAULT_MAX_CONTACTS,
            contact_types=[t.value for t in ContactType],
        ),
    ),
    AgentRole.SYNTHESIZER: ResearchAgentConfig(
        role=AgentRole.SYNTHESIZER,
        behavior=BehaviorConfig(
            scoring_weights={c.value: w for c, w in DEFAULT_SCORING_WEIGHTS.items()},
            summary_max_length=DEFAULT_SUMMARY_MAX_LENGTH,
        ),
    ),
}


def merge_agent_config(
    default: ResearchAgentConfig,
    stored: Optional[ResearchAgentConfig],
) -> ResearchAgentConfig:
    """
    Overlay a stored config on the defaults, field by field.

    A missing or disabled stored config yields the defaults unchanged.
    """
    if stored is None or not stored.enabled:
        return default

    behavior_overrides = {
        name: value
        for name, value in vars(stored.behavior).items()
        if value is not None
    }
    tools = ToolsConfig(
        custom_query_templates=list(stored.tools.custom_query_templates or default.tools.custom_query_templates),
        category_query_templates=dict(
            stored.tools.category_query_templates or default.tools.category_query_templates
        ),
    )
    return replace(
        default,
        system_prompt=stored.system_prompt or default.system_prompt,
        behavior=replace(default.behavior, **behavior_overrides),
        tools=tools,
        version=stored.version,
    )


def _parse_categories(values: Optional[List[str]]) -> Tuple[SignalCategory, ...]:
    if values is None:
        return tuple(SIGNAL_CATEGORY_ORDER)
    wanted = set()
    for value in values:
        try:
            wanted.add(SignalCategory(value))
        except ValueError:
            logger.warning(f"Ignoring unknown signal category in config: {value!r}")
    # Fixed visiting order regardless of config order
    return tuple(c for c in SIGNAL_CATEGORY_ORDER if c in wanted)


def _parse_contact_types(values: Optional[List[str]]) -> Tuple[ContactType, ...]:
    if values is None:
        return tuple(ContactType)
    parsed = []
    for value in values:
        try:
            parsed.append(ContactType(value))
        except ValueError:
            logger.warning(f"Ignoring unknown contact type in config: {value!r}")
    return tuple(parsed)


@dataclass
class ResearchSettings:
    """Resolved per-run research settings."""
    enabled_categories: Tuple[SignalCategory, ...] = tuple(SIGNAL_CATEGORY_ORDER)
    category_max_iterations: Dict[SignalCategory, int] = field(
        default_factory=lambda: dict(DEFAULT_CATEGORY_MAX_ITERATIONS)
    )
    min_signals_required: int = DEFAULT_MIN_SIGNALS_REQUIRED
    confidence_threshold: int = DEFAULT_CONFIDENCE_THRESHOLD
    signal_prompt: Optional[str] = None
    signal_templates: List[str] = field(default_factory=list)
    category_signal_templates: Dict[SignalCategory, List[str]] = field(default_factory=dict)
    max_contacts: int = DEFAULT_MAX_CONTACTS
    contact_max_iterations: int = DEFAULT_CONTACT_MAX_ITERATIONS
    contact_types: Tuple[ContactType, ...] = tuple(ContactType)
    contact_prompt: Optional[str] = None
    contact_templates: List[str] = field(default_factory=list)
    scoring_weights: Dict[SignalCategory, float] = field(
        default_factory=lambda: dict(DEFAULT_SCORING_WEIGHTS)
    )
    synthesis_prompt: Optional[str] = None
    summary_max_length: int = DEFAULT_SUMMARY_MAX_LENGTH

    def templates_for(self, category: SignalCategory) -> List[str]:
        """Configured templates for a category (empty means use the built-in ones)."""
        return self.category_signal_templates.get(category) or self.signal_templates


def resolve_research_settings(configs: Dict[AgentRole, Optional[ResearchAgentConfig]]) -> ResearchSettings:
    """Build ResearchSettings from stored configs keyed by role (missing roles use defaults)."""
    merged = {
        role: merge_agent_config(default, configs.get(role))
        for role, default in DEFAULT_AGENT_CONFIGS.items()
    }
    orchestrator = merged[AgentRole.ORCHESTRATOR].behavior
    signal = merged[AgentRole.SIGNAL_WORKER]
    contact = merged[AgentRole.CONTACT_WORKER]
    synthesizer = merged[AgentRole.SYNTHESIZER]

    max_iterations = dict(DEFAULT_CATEGORY_MAX_ITERATIONS)
    for name, value in (signal.behavior.category_max_iterations or {}).items():
        try:
            max_iterations[SignalCategory(name)] = max(1, int(value))
        except ValueError:
            logger.warning(f"Ignoring iteration budget for unknown category: {name!r}")

    category_templates: Dict[SignalCategory, List[str]] = {}
    for name, templates in (signal.tools.category_query_templates or {}).items():
        try:
            category_templates[SignalCategory(name)] = list(templates)
        except ValueError:
            logger.warning(f"Ignoring templates for unknown category: {name!r}")

    weights: Dict[SignalCategory, float] = {}
    for name, value in (synthesizer.behavior.scoring_weights or {}).items():
        try:
            weights[SignalCategory(name)] = float(value)
        except ValueError:
            logger.warning(f"Ignoring weight for unknown category: {name!r}")

    min_signals = signal.behavior.min_signals_required
    threshold = signal.behavior.confidence_threshold

    return ResearchSettings(
        enabled_categories=_parse_categories(orchestrator.signal_categories),
        category_max_iterations=max_iterations,
        min_signals_required=DEFAULT_MIN_SIGNALS_REQUIRED if min_signals is None else min_signals,
        confidence_threshold=DEFAULT_CONFIDENCE_THRESHOLD if threshold is None else threshold,
        signal_prompt=signal.system_prompt,
        signal_templates=list(signal.tools.custom_query_templates),
        category_signal_templates=category_templates,
        max_contacts=contact.behavior.max_contacts or DEFAULT_MAX_CONTACTS,
        contact_max_iterations=contact.behavior.max_iterations or DEFAULT_CONTACT_MAX_ITERATIONS,
        contact_types=_parse_contact_types(contact.behavior.contact_types),
        contact_prompt=contact.system_prompt,
        contact_templates=list(contact.tools.custom_query_templates),
        scoring_weights=weights,
        synthesis_prompt=synthesizer.system_prompt,
        summary_max_length=synthesizer.behavior.summary_max_length or DEFAULT_SUMMARY_MAX_LENGTH,
    )
