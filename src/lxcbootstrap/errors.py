"""
Error taxonomy for lxc-bootstrap.

Nothing in the core retries. A failure either aborts the session before
any step runs (missing answers, host pre-flight, corrupt state files) or
halts the step runner; the operator fixes the cause and re-runs, and the
progress ledger skips whatever already completed.
"""

from __future__ import annotations

from typing import Iterable, List, Optional, Sequence


class BootstrapError(Exception):
    """Base class for all lxc-bootstrap errors."""


class RequiredValueMissing(BootstrapError):
    """A mandatory configuration key resolved to an empty value."""

    def __init__(self, key: str):
        self.key = key
        super().__init__(f"A value for {key} is required")


class InvalidChoice(BootstrapError):
    """An answer falls outside the allowed choices for its key."""

    def __init__(self, key: str, value: str, choices: Iterable[str]):
        self.key = key
        self.value = value
        self.choices = list(choices)
        super().__init__(
            f"Invalid value {value!r} for {key}. Must be one of: {', '.join(self.choices)}"
        )


class PreflightError(BootstrapError):
    """The host does not meet the pre-conditions for provisioning."""


class StoreFormatError(BootstrapError):
    """A persisted state file contains a line that cannot be parsed."""

    def __init__(self, path: str, line_no: int, line: str):
        self.path = path
        self.line_no = line_no
        self.line = line
        super().__init__(f"{path}:{line_no}: cannot parse line {line!r}")


class StepOrderingError(BootstrapError):
    """A step was reached before the configuration it needs was resolved.

    This is a defect in the provisioning plan, not a runtime condition the
    operator can fix by re-running.
    """

    def __init__(self, step_id: str, missing_keys: Sequence[str]):
        self.step_id = step_id
        self.missing_keys: List[str] = list(missing_keys)
        super().__init__(
            f"Step {step_id} requires configuration that was never resolved: "
            f"{', '.join(self.missing_keys)}"
        )


class StepActionFailed(BootstrapError):
    """A step's action reported failure. Halts the run."""

    def __init__(
        self,
        message: str,
        step_id: Optional[str] = None,
        cause: Optional[BaseException] = None,
    ):
        self.step_id = step_id
        self.cause = cause
        super().__init__(message)


class ExternalToolUnavailable(StepActionFailed):
    """A prerequisite external tool is not installed on the host."""

    def __init__(self, tool: str, step_id: Optional[str] = None, hint: str = ""):
        self.tool = tool
        message = f"{tool} not found in PATH"
        if hint:
            message = f"{message}. {hint}"
        super().__init__(message, step_id=step_id)


class CommandFailed(StepActionFailed):
    """An external command exited non-zero."""

    def __init__(
        self,
        cmd: Sequence[str],
        returncode: int,
        stdout: str = "",
        stderr: str = "",
        context: str = "",
    ):
        self.cmd = list(cmd)
        self.returncode = returncode
        self.stdout = stdout
        self.stderr = stderr
        self.context = context
        super().__init__(self._format_message())

    def _format_message(self) -> str:
        parts = []
        if self.context:
            parts.append(self.context)
        parts.append(f"Command: {' '.join(self.cmd)}")
        parts.append(f"Exit code: {self.returncode}")
        if self.stderr:
            parts.append(f"Error: {_tail(self.stderr)}")
        elif self.stdout:
            parts.append(f"Output: {_tail(self.stdout)}")
        return "\n".join(parts)


def _tail(text: str, lines: int = 10) -> str:
    """Last few lines of command output, enough to diagnose a failure."""
    return "\n".join(text.strip().splitlines()[-lines:])
