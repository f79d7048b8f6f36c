"""
Step runner: executes an ordered provisioning plan against the ledger.

Per-step state machine::

    Pending -> Skipped                      (recorded, inapplicable or already satisfied)
    Pending -> Running -> Completed         (action succeeded, recorded immediately)
    Pending -> Running -> Failed            (action failed or raised)

Run state::

    InProgress -> Finished                  (every step Skipped or Completed)
    InProgress -> Halted                    (first Failed step; nothing after it runs)

The plan is walked exactly once, in declaration order; later steps rely on
the side effects of earlier ones. A failed step is not recorded, so the next
invocation retries it from the start. Whatever the action did before it
failed is not tracked; actions are expected to check their own finer-grained
state before acting.

Usage::

    runner = StepRunner(store, ledger)
    report = runner.run(steps)
    if report.state is RunState.HALTED:
        print(report.failed_step, report.error)
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, List, Mapping, Optional, Sequence, Tuple, Union

from lxcbootstrap.actions.base import ActionResult, ActionStatus
from lxcbootstrap.errors import StepActionFailed, StepOrderingError
from lxcbootstrap.logger import StepLogger
from lxcbootstrap.storage.base import ConfigStore, ProgressLedger, validate_step_id
from lxcbootstrap.telemetry import add_span_event, mark_span_failed, run_span, step_span

logger = logging.getLogger(__name__)

ActionReturn = Union[ActionResult, bool, None]


class StepStatus(str, Enum):
    """Status values for a single step within one run."""
    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"
    SKIPPED = "skipped"


class RunState(str, Enum):
    """Status of a whole run."""
    IN_PROGRESS = "in_progress"
    FINISHED = "finished"
    HALTED = "halted"


class SkipReason(str, Enum):
    """Why a step did not run."""
    ALREADY_COMPLETED = "already_completed"
    NOT_APPLICABLE = "not_applicable"
    ALREADY_SATISFIED = "already_satisfied"


def always(values: Mapping[str, str]) -> bool:
    return True


@dataclass(frozen=True)
class Step:
    """
    A named unit of provisioning work.

    Attributes:
        identifier: Unique ledger identifier
        action: Performs the work; returns an ActionResult, a bool or None,
            or raises. None and True mean success.
        applicability: Given the current configuration, whether the step
            belongs to this session at all
        predicate: Optional live probe; True means the host is already in
            the state the step would produce
        requires: Configuration keys the action reads
        description: Human-readable summary
    """

    identifier: str
    action: Callable[[], ActionReturn] = field(compare=False)
    applicability: Callable[[Mapping[str, str]], bool] = field(default=always, compare=False)
    predicate: Optional[Callable[[], bool]] = field(default=None, compare=False)
    requires: Tuple[str, ...] = ()
    description: str = ""

    def __post_init__(self) -> None:
        validate_step_id(self.identifier)


@dataclass
class StepOutcome:
    """What happened to one step during a run."""
    step_id: str
    status: StepStatus
    reason: Optional[SkipReason] = None
    duration_seconds: Optional[float] = None
    error: Optional[str] = None


@dataclass
class RunReport:
    """Result of one StepRunner invocation."""
    state: RunState
    outcomes: List[StepOutcome] = field(default_factory=list)
    failed_step: Optional[str] = None
    error: Optional[StepActionFailed] = None

    @property
    def ran(self) -> List[str]:
        """Steps whose action ran and succeeded."""
        return [o.step_id for o in self.outcomes if o.status == StepStatus.COMPLETED]

    @property
    def skipped(self) -> List[str]:
        return [o.step_id for o in self.outcomes if o.status == StepStatus.SKIPPED]

    @property
    def exit_code(self) -> int:
        return 0 if self.state == RunState.FINISHED else 1

    def outcome(self, step_id: str) -> Optional[StepOutcome]:
        for o in self.outcomes:
            if o.step_id == step_id:
                return o
        return None


class StepRunner:
    """
    Runs steps in order, skipping what the ledger already records.

    Args:
        store: Session configuration (read for applicability and requirements)
        ledger: Completion records; written the moment a step succeeds
        events: Structured step-event logger
        on_outcome: Called with each StepOutcome as soon as it is known
    """

    def __init__(
        self,
        store: ConfigStore,
        ledger: ProgressLedger,
        events: Optional[StepLogger] = None,
        on_outcome: Optional[Callable[[StepOutcome], None]] = None,
    ):
        self.store = store
        self.ledger = ledger
        self.events = events or StepLogger()
        self.on_outcome = on_outcome
        self.state = RunState.IN_PROGRESS
        self._last_error: Optional[StepActionFailed] = None

    def run(self, steps: Sequence[Step]) -> RunReport:
        """
        Walk ``steps`` once, in order.

        Returns:
            RunReport with state FINISHED or HALTED

        Raises:
            ValueError: Two steps share an identifier
            StepOrderingError: A step's required configuration is missing
        """
        _check_unique(steps)
        self.state = RunState.IN_PROGRESS
        report = RunReport(state=self.state)

        with run_span(self.events.session_id, len(steps)) as span:
            for step in steps:
                outcome = self.run_step(step)
                report.outcomes.append(outcome)
                if self.on_outcome is not None:
                    self.on_outcome(outcome)

                if outcome.status == StepStatus.FAILED:
                    self.state = RunState.HALTED
                    report.state = self.state
                    report.failed_step = step.identifier
                    report.error = self._last_error
                    self.events.log_run_halted(step.identifier, outcome.error or "")
                    mark_span_failed(span, self._last_error)
                    return report

            self.state = RunState.FINISHED
            report.state = self.state
            self.events.log_run_finished(completed=len(report.ran), skipped=len(report.skipped))
            span.set_attribute("run.state", self.state.value)
            return report

    def run_step(self, step: Step) -> StepOutcome:
        """
        Take one step from Pending to Skipped, Completed or Failed.

        Failures are returned as a FAILED outcome (the exception is kept on
        ``self._last_error``); only StepOrderingError is raised, because it
        signals a broken plan rather than a host problem.
        """
        self._last_error = None
        values = self.store.load()

        with step_span(step.identifier) as span:
            outcome = self._skip_reason(step, values)
            if outcome is not None:
                span.set_attribute("step.status", outcome.status.value)
                return outcome

            missing = [key for key in step.requires if key not in values]
            if missing:
                raise StepOrderingError(step.identifier, missing)

            self.events.log_step_started(step.identifier, step.description)
            start = time.monotonic()
            try:
                _check_result(step.identifier, step.action())
            except StepOrderingError:
                raise
            except StepActionFailed as e:
                if e.step_id is None:
                    e.step_id = step.identifier
                self._last_error = e
            except Exception as e:
                logger.debug(f"Step {step.identifier} raised", exc_info=True)
                self._last_error = StepActionFailed(str(e) or type(e).__name__, step.identifier, cause=e)
            duration = time.monotonic() - start

            if self._last_error is not None:
                message = str(self._last_error)
                self.events.log_step_failed(step.identifier, message, duration)
                mark_span_failed(span, self._last_error)
                span.set_attribute("step.status", StepStatus.FAILED.value)
                return StepOutcome(
                    step_id=step.identifier,
                    status=StepStatus.FAILED,
                    duration_seconds=duration,
                    error=message,
                )

            self.ledger.mark_completed(step.identifier)
            self.events.log_step_completed(step.identifier, duration)
            span.set_attribute("step.status", StepStatus.COMPLETED.value)
            return StepOutcome(
                step_id=step.identifier,
                status=StepStatus.COMPLETED,
                duration_seconds=duration,
            )

    def _skip_reason(self, step: Step, values: Mapping[str, str]) -> Optional[StepOutcome]:
        reason: Optional[SkipReason] = None
        if not step.applicability(values):
            reason = SkipReason.NOT_APPLICABLE
        elif self.ledger.has_completed(step.identifier):
            reason = SkipReason.ALREADY_COMPLETED
        elif step.predicate is not None and step.predicate():
            # Adopt state established outside the ledger so later runs skip without probing
            self.ledger.mark_completed(step.identifier)
            reason = SkipReason.ALREADY_SATISFIED

        if reason is None:
            return None

        self.events.log_step_skipped(step.identifier, reason.value)
        add_span_event("step.skipped", {"step.id": step.identifier, "step.reason": reason.value})
        return StepOutcome(step_id=step.identifier, status=StepStatus.SKIPPED, reason=reason)


def _check_result(step_id: str, result: ActionReturn) -> None:
    if result is False:
        raise StepActionFailed("action reported failure", step_id)
    if isinstance(result, ActionResult) and result.status == ActionStatus.FAILED:
        raise StepActionFailed(result.message or "action reported failure", step_id)


def _check_unique(steps: Sequence[Step]) -> None:
    seen = set()
    for step in steps:
        if step.identifier in seen:
            raise ValueError(f"Duplicate step identifier: {step.identifier}")
        seen.add(step.identifier)
