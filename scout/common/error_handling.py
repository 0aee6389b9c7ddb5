"""
Centralized error handling for discovery and research runs.

Provides the exception hierarchy and a guarded-call helper for store
reads that should degrade to a fallback instead of failing a run.
"""

import logging
from typing import Any, Callable, Optional, TypeVar

# Type variable for generic return types
T = TypeVar("T")


class ScoutError(Exception):
    """Base exception for all company scout errors."""
    pass


class ConfigurationError(ScoutError):
    """Missing profile, credentials, or other setup required before a run starts."""
    pass


class ServiceError(ScoutError):
    """An external service (search, LLM, URL fetch) failed or returned garbage."""

    def __init__(self, service: str, message: str):
        self.service = service
        super().__init__(f"{service}: {message}")


class ResearchTimeoutError(ScoutError):
    """Per-organization research exceeded its time budget."""

    def __init__(self, organization: str, timeout_seconds: float):
        self.organization = organization
        self.timeout_seconds = timeout_seconds
        super().__init__(f"Research timeout after {timeout_seconds:g}s for {organization}")


def safe_execute(
    func: Callable[..., T],
    *args,
    operation_name: str = "operation",
    logger: Optional[logging.Logger] = None,
    fallback: Any = None,
    critical: bool = False,
    **kwargs,
) -> T:
    """
    Execute a function safely with error handling and logging.

    Args:
        func: Function to execute
        *args: Positional arguments for func
        operation_name: Name for logging
        logger: Logger instance (uses module logger if None)
        fallback: Value to return on failure
        critical: If True, log at ERROR level with traceback
        **kwargs: Keyword arguments for func

    Returns:
        Function result or fallback value on error

    Usage:
        signals = safe_execute(
            store.get_signals,
            organization_id,
            operation_name="load signals",
            logger=self.logger,
            fallback=[],
        )
    """
    if logger is None:
        logger = logging.getLogger(__name__)

    try:
        return func(*args, **kwargs)
    except Exception as e:
        log_level = logging.ERROR if critical else logging.WARNING
        logger.log(
            log_level,
            f"[{operation_name}] Failed: {e}",
            exc_info=critical,
        )
        return fallback
