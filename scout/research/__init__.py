"""
Per-organization research: signals, contacts, synthesis and URL validation.

Usage:
    from scout.research import trigger_research

    result = trigger_research("Acme Robotics", profile_id="default")
"""

from .orchestrator import ResearchCoordinator, advance, load_research_settings
from .state import ResearchPhase, ResearchRun, initial_research_run
from .trigger import ResearchExecutionResult, run_scheduled_research, trigger_research

__all__ = [
    "ResearchCoordinator",
    "ResearchExecutionResult",
    "ResearchPhase",
    "ResearchRun",
    "advance",
    "initial_research_run",
    "load_research_settings",
    "run_scheduled_research",
    "trigger_research",
]
