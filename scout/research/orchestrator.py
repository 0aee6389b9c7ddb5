"""
Research Coordinator

Phase state machine for one organization:

    init -> signals -> contacts -> synthesis -> complete | error

advance() is the pure orchestrator decision. ResearchCoordinator.step()
does one unit of work (a decision or a single worker call) and
run_to_completion() loops until a terminal phase, guarded by a step limit
and a cooperative cancellation event.
"""

import logging
import threading
from dataclasses import replace
from typing import Dict, Optional

from scout.common.agent_config import ResearchSettings, resolve_research_settings
from scout.common.config import Config
from scout.common.logger import get_logger
from scout.common.repositories.base import OrganizationStoreInterface, ResearchStatus
from scout.common.structured_logger import get_structured_logger
from scout.common.types import SIGNAL_CATEGORY_ORDER, AgentRole, ResearchAgentConfig, SignalCategory
from scout.research.contact_worker import ContactWorker
from scout.research.llm_research import ResearchLLM
from scout.research.signal_worker import SignalWorker
from scout.research.state import ResearchPhase, ResearchRun, append_errors, apply_updates
from scout.research.synthesizer import ResearchSynthesizer
from scout.research.url_validator import UrlValidator
from scout.search.web_search import WebSearchClient

logger = logging.getLogger(__name__)


def load_research_settings(store: OrganizationStoreInterface) -> ResearchSettings:
    """Resolve all four worker configs once; store failures fall back to defaults."""
    configs: Dict[AgentRole, Optional[ResearchAgentConfig]] = {}
    for role in AgentRole:
        try:
            configs[role] = store.get_agent_config(role)
        except Exception as e:
            logger.warning(f"Could not load {role.value} config, using defaults: {e}")
            configs[role] = None
    return resolve_research_settings(configs)


def find_next_category(run: ResearchRun, settings: ResearchSettings) -> Optional[SignalCategory]:
    """First enabled category, in fixed order, that still needs research."""
    for category in SIGNAL_CATEGORY_ORDER:
        if category not in settings.enabled_categories:
            continue
        state = run.signal_iterations.get(category)
        if state is not None and state.can_continue:
            return category
    return None


def contacts_done(run: ResearchRun, settings: ResearchSettings) -> bool:
    return (
        len(run.contacts) >= settings.max_contacts
        or run.contact_iteration.iteration >= run.contact_iteration.max_iterations
    )


def advance(run: ResearchRun, settings: ResearchSettings) -> ResearchRun:
    """Orchestrator decision: pick the next phase and signal category."""
    if run.phase in (ResearchPhase.INIT, ResearchPhase.SIGNALS):
        next_category = find_next_category(run, settings)
        if next_category is not None:
            return replace(run, phase=ResearchPhase.SIGNALS, current_category=next_category)
        return replace(run, phase=ResearchPhase.CONTACTS, current_category=None)

    if run.phase == ResearchPhase.CONTACTS and contacts_done(run, settings):
        return replace(run, phase=ResearchPhase.SYNTHESIS)

    return run


class ResearchCoordinator:
    """
    Drives one organization's research run to a terminal phase.

    Workers share one search client and one LLM wrapper per run.
    """

    def __init__(
        self,
        store: OrganizationStoreInterface,
        settings: Optional[ResearchSettings] = None,
        search_client: Optional[WebSearchClient] = None,
        research_llm: Optional[ResearchLLM] = None,
        url_validator: Optional[UrlValidator] = None,
        cancel_event: Optional[threading.Event] = None,
        max_steps: Optional[int] = None,
    ):
        self.store = store
        self.settings = settings or load_research_settings(store)
        self.search_client = search_client or WebSearchClient()
        self.research_llm = research_llm or ResearchLLM()
        self.signal_worker = SignalWorker(self.search_client, self.research_llm)
        self.contact_worker = ContactWorker(self.search_client, self.research_llm)
        self.synthesizer = ResearchSynthesizer(
            store, self.search_client, self.research_llm, url_validator
        )
        self.cancel_event = cancel_event or threading.Event()
        self.max_steps = max_steps or Config.RESEARCH_MAX_STEPS

    def step(self, run: ResearchRun) -> ResearchRun:
        """One unit of work."""
        if run.phase == ResearchPhase.INIT:
            return advance(run, self.settings)

        if run.phase == ResearchPhase.SIGNALS:
            category = run.current_category
            if category is not None and run.signal_iterations[category].can_continue:
                return apply_updates(run, self.signal_worker.run(run, self.settings))
            return advance(run, self.settings)

        if run.phase == ResearchPhase.CONTACTS:
            if contacts_done(run, self.settings):
                return advance(run, self.settings)
            return apply_updates(run, self.contact_worker.run(run, self.settings))

        if run.phase == ResearchPhase.SYNTHESIS:
            return apply_updates(run, self.synthesizer.run(run, self.settings))

        return run

    def run_to_completion(self, run: ResearchRun) -> ResearchRun:
        """Step until complete/error; cancellation and the step guard end in error."""
        run_logger = get_logger(__name__, run_id=run.research_run_id, stage="research")
        events = get_structured_logger(run.research_run_id or "local", run_type="research")
        events.run_start({"organization": run.organization_name})

        steps = 0
        phase = run.phase
        events.phase_start(phase.value)

        while not run.phase.is_terminal:
            if self.cancel_event.is_set():
                run_logger.warning(f"Research cancelled for {run.organization_name}")
                run = self._fail(run, f"Research cancelled for {run.organization_name}")
                break
            if steps >= self.max_steps:
                run = self._fail(run, f"Research exceeded {self.max_steps} steps")
                break

            try:
                run = self.step(run)
            except Exception as e:
                run_logger.exception(f"Research step failed in phase {run.phase.value}: {e}")
                run = self._fail(run, f"Research error in {run.phase.value}: {e}")
                break
            steps += 1

            if run.phase != phase:
                if run.phase == ResearchPhase.ERROR:
                    events.phase_error(phase.value, error=run.errors[-1] if run.errors else "unknown")
                else:
                    events.phase_complete(phase.value, metadata={"steps": steps})
                phase = run.phase
                if not phase.is_terminal:
                    events.phase_start(phase.value)

        # Cancelled, over budget or crashed mid-phase
        if phase != run.phase:
            events.phase_error(phase.value, error=run.errors[-1] if run.errors else "unknown")
        events.run_complete(
            status="success" if run.phase == ResearchPhase.COMPLETE else "failed",
            metadata={
                "signals": len(run.signals),
                "contacts": len(run.contacts),
                "api_calls": run.api_calls,
                "steps": steps,
            },
        )
        return run

    def _fail(self, run: ResearchRun, message: str) -> ResearchRun:
        """Error phase plus failed status on the stored run and organization."""
        try:
            if run.research_run_id:
                self.store.update_research_run(run.research_run_id, {
                    "status": "failed",
                    "error_message": message,
                })
            if run.organization_id:
                self.store.update_organization(run.organization_id, {
                    "research_status": ResearchStatus.FAILED,
                })
        except Exception as e:
            logger.error(f"Could not record research failure: {e}")
        return replace(run, phase=ResearchPhase.ERROR, errors=append_errors(run.errors, [message]))
