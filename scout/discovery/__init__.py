"""
Organization discovery: profile-driven search, batch research, fit analysis.

Usage:
    from scout.discovery import trigger_discovery

    result = trigger_discovery("default", max_organizations=10, batch_size=3)
    for organization in result.ranked_results:
        print(organization["name"], organization["fit_analysis"])
"""

from .orchestrator import DiscoveryCoordinator
from .state import DiscoveredOrganization, DiscoveryPhase, DiscoveryRun, FitAnalysisResult
from .trigger import DiscoveryExecutionResult, get_discovery_status, trigger_discovery

__all__ = [
    "DiscoveredOrganization",
    "DiscoveryCoordinator",
    "DiscoveryExecutionResult",
    "DiscoveryPhase",
    "DiscoveryRun",
    "FitAnalysisResult",
    "get_discovery_status",
    "trigger_discovery",
]
