"""
Structured logging for provisioning step events.

Outputs one JSON object per step-lifecycle event so a provisioning log can
be grepped or shipped to a collector. Only lifecycle transitions are logged
here; what an action does internally goes through ordinary module loggers.

Logged events:
- step.started
- step.skipped (reason: already_completed | not_applicable | already_satisfied)
- step.completed
- step.failed
- run.finished
- run.halted

Usage:
    from lxcbootstrap.logger import StepLogger, configure_logging

    configure_logging("info", "text")
    events = StepLogger(session_id="demo")
    events.log_step_started("system_setup")
    events.log_step_completed("system_setup", duration_seconds=12.3)
"""

from __future__ import annotations

import json
import logging
import sys
from datetime import datetime, timezone
from typing import Any, Dict, Optional

# Step events go to their own logger so they can be routed separately
_step_logger = logging.getLogger("lxcbootstrap.steps")

_LEVELS = {
    "debug": logging.DEBUG,
    "info": logging.INFO,
    "warning": logging.WARNING,
    "error": logging.ERROR,
}


class JsonFormatter(logging.Formatter):
    """Render each record as a single JSON line."""

    def format(self, record: logging.LogRecord) -> str:
        message = record.getMessage()
        try:
            payload = json.loads(message)
            if not isinstance(payload, dict):
                payload = {"message": message}
        except ValueError:
            payload = {"message": message}

        payload.setdefault(
            "timestamp",
            datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
        )
        payload.setdefault("level", record.levelname.lower())
        payload.setdefault("logger", record.name)
        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)
        return json.dumps(payload, default=str)


def configure_logging(level: str = "info", fmt: str = "text") -> logging.Logger:
    """
    Install a single stderr handler on the package logger.

    Safe to call more than once; the previous handler is replaced.

    Args:
        level: debug, info, warning or error
        fmt: "text" for console output, "json" for one JSON object per line

    Returns:
        The configured ``lxcbootstrap`` logger
    """
    root = logging.getLogger("lxcbootstrap")
    root.setLevel(_LEVELS.get(level, logging.INFO))

    for handler in list(root.handlers):
        if getattr(handler, "_lxcbootstrap", False):
            root.removeHandler(handler)

    handler = logging.StreamHandler(sys.stderr)
    if fmt == "json":
        handler.setFormatter(JsonFormatter())
    else:
        handler.setFormatter(logging.Formatter("%(asctime)s %(levelname)-7s %(message)s", "%H:%M:%S"))
    handler._lxcbootstrap = True  # type: ignore[attr-defined]
    root.addHandler(handler)
    return root


class StepLogger:
    """
    Structured logger for step lifecycle events.

    Each entry carries the fields needed to reconstruct a run from logs:
    - session_id, step_id
    - event type and event-specific attributes
    """

    def __init__(
        self,
        session_id: str = "default",
        service_name: str = "lxc-bootstrap",
    ):
        """
        Initialize step logger.

        Args:
            session_id: Identifier of the provisioning session (usually the app name)
            service_name: Service name for log attribution
        """
        self.session_id = session_id
        self.service_name = service_name
        self._logger = _step_logger

    def _emit(
        self,
        event: str,
        step_id: Optional[str] = None,
        level: str = "info",
        **extra_fields: Any,
    ) -> None:
        """
        Emit a structured log entry.

        Args:
            event: Event type (e.g., "step.completed")
            step_id: Step identifier, if the event concerns a single step
            level: Log level (info, warn, error)
            **extra_fields: Event-specific fields
        """
        entry: Dict[str, Any] = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": level,
            "event": event,
            "service": self.service_name,
            "session_id": self.session_id,
        }
        if step_id:
            entry["step_id"] = step_id

        entry.update({k: v for k, v in extra_fields.items() if v is not None})

        log_line = json.dumps(entry, default=str)

        if level == "error":
            self._logger.error(log_line)
        elif level == "warn":
            self._logger.warning(log_line)
        else:
            self._logger.info(log_line)

    def log_step_started(self, step_id: str, description: str = "") -> None:
        """Log that a step's action is about to run."""
        self._emit(event="step.started", step_id=step_id, description=description or None)

    def log_step_skipped(self, step_id: str, reason: str) -> None:
        """Log a skipped step and why it was skipped."""
        self._emit(event="step.skipped", step_id=step_id, reason=reason)

    def log_step_completed(self, step_id: str, duration_seconds: Optional[float] = None) -> None:
        """Log a step whose action succeeded and is now in the ledger."""
        self._emit(
            event="step.completed",
            step_id=step_id,
            duration_seconds=round(duration_seconds, 3) if duration_seconds is not None else None,
        )

    def log_step_failed(
        self,
        step_id: str,
        error: str,
        duration_seconds: Optional[float] = None,
    ) -> None:
        """Log a failed step. The run halts after this event."""
        self._emit(
            event="step.failed",
            step_id=step_id,
            level="error",
            error=error,
            duration_seconds=round(duration_seconds, 3) if duration_seconds is not None else None,
        )

    def log_run_finished(self, completed: int, skipped: int) -> None:
        """Log a run in which every step completed or was skipped."""
        self._emit(event="run.finished", completed=completed, skipped=skipped)

    def log_run_halted(self, failed_step: str, error: str) -> None:
        """Log a run stopped by a failing step."""
        self._emit(event="run.halted", level="error", failed_step=failed_step, error=error)
