"""
Structured JSON logger for run phase events.

Emits JSON-formatted events for:
- Run start/complete tracking
- Phase start/complete/error tracking with durations

Usage:
    events = StructuredLogger(run_id="abc123", run_type="research")
    events.run_start({"organization": "Acme"})
    events.phase_start("signals")
    events.phase_complete("signals", metadata={"signals_found": 4})
"""

import json
import sys
import time
from datetime import datetime, timezone
from typing import Any, Dict, Optional
from dataclasses import dataclass, asdict
from enum import Enum


class EventType(str, Enum):
    """Standard run event types."""
    RUN_START = "run_start"
    RUN_COMPLETE = "run_complete"
    PHASE_START = "phase_start"
    PHASE_COMPLETE = "phase_complete"
    PHASE_ERROR = "phase_error"


class PhaseStatus(str, Enum):
    SUCCESS = "success"
    ERROR = "error"


@dataclass
class LogEvent:
    """Structured log event with all optional fields."""
    timestamp: str
    event: str
    run_id: str
    run_type: Optional[str] = None
    phase: Optional[str] = None
    status: Optional[str] = None
    duration_ms: Optional[int] = None
    metadata: Optional[Dict[str, Any]] = None
    error: Optional[str] = None

    def to_json(self) -> str:
        """Convert to JSON string, excluding None values."""
        data = {k: v for k, v in asdict(self).items() if v is not None}
        return json.dumps(data, default=str)


class StructuredLogger:
    """
    Structured JSON logger for run events.

    Emits JSON lines to stdout so that an outer scheduler or UI can follow
    a run's progress without parsing free-text logs.
    """

    def __init__(self, run_id: str, run_type: str = "research", enabled: bool = True):
        """
        Args:
            run_id: Run ID for correlation
            run_type: "research" or "discovery"
            enabled: Whether to emit events (can disable for testing)
        """
        self.run_id = run_id
        self.run_type = run_type
        self.enabled = enabled
        self._phase_start_times: Dict[str, float] = {}
        self._run_start_time: Optional[float] = None

    def _emit(self, event: LogEvent) -> None:
        if self.enabled:
            print(event.to_json(), file=sys.stdout, flush=True)

    def _now(self) -> str:
        return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")

    def emit(
        self,
        event: str,
        phase: Optional[str] = None,
        status: Optional[str] = None,
        duration_ms: Optional[int] = None,
        metadata: Optional[Dict[str, Any]] = None,
        error: Optional[str] = None,
    ) -> None:
        """Emit a custom log event."""
        self._emit(LogEvent(
            timestamp=self._now(),
            event=event,
            run_id=self.run_id,
            run_type=self.run_type,
            phase=phase,
            status=status,
            duration_ms=duration_ms,
            metadata=metadata,
            error=error,
        ))

    def _elapsed_ms(self, phase: str) -> Optional[int]:
        started = self._phase_start_times.pop(phase, None)
        if started is None:
            return None
        return int((time.time() - started) * 1000)

    # ===== Convenience Methods =====

    def phase_start(self, phase: str) -> None:
        self._phase_start_times[phase] = time.time()
        self.emit(event=EventType.PHASE_START.value, phase=phase)

    def phase_complete(
        self,
        phase: str,
        duration_ms: Optional[int] = None,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> None:
        """Log phase complete (duration auto-calculated if phase_start was called)."""
        if duration_ms is None:
            duration_ms = self._elapsed_ms(phase)
        self.emit(
            event=EventType.PHASE_COMPLETE.value,
            phase=phase,
            status=PhaseStatus.SUCCESS.value,
            duration_ms=duration_ms,
            metadata=metadata,
        )

    def phase_error(
        self,
        phase: str,
        error: str,
        duration_ms: Optional[int] = None,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> None:
        if duration_ms is None:
            duration_ms = self._elapsed_ms(phase)
        self.emit(
            event=EventType.PHASE_ERROR.value,
            phase=phase,
            status=PhaseStatus.ERROR.value,
            duration_ms=duration_ms,
            error=error,
            metadata=metadata,
        )

    def run_start(self, metadata: Optional[Dict[str, Any]] = None) -> None:
        self._run_start_time = time.time()
        self.emit(event=EventType.RUN_START.value, metadata=metadata)

    def run_complete(
        self,
        status: str = "complete",
        metadata: Optional[Dict[str, Any]] = None,
    ) -> None:
        """
        Log run complete.

        Args:
            status: Final status (complete, failed)
            metadata: Summary metadata (counts, score)
        """
        duration_ms = None
        if self._run_start_time is not None:
            duration_ms = int((time.time() - self._run_start_time) * 1000)
        self.emit(
            event=EventType.RUN_COMPLETE.value,
            status=status,
            duration_ms=duration_ms,
            metadata=metadata,
        )


def get_structured_logger(run_id: str, run_type: str = "research", enabled: bool = True) -> StructuredLogger:
    return StructuredLogger(run_id, run_type, enabled)
