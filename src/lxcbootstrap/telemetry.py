"""
OpenTelemetry helpers for provisioning runs.

The runner opens one ``lxcbootstrap.run`` span per invocation and one
``lxcbootstrap.step`` span per step. This module only talks to the OTel API;
with no SDK provider installed every call is a no-op, so provisioning never
depends on a collector being reachable.

Usage::

    from lxcbootstrap.telemetry import step_span, add_span_event

    with step_span("system_setup") as span:
        add_span_event("step.skipped", {"step.reason": "already_completed"})
"""

from __future__ import annotations

import contextlib
from typing import Dict, Iterator, Union

from opentelemetry import trace as otel_trace
from opentelemetry.trace import Span, Status, StatusCode

_tracer = otel_trace.get_tracer("lxcbootstrap")

AttributeValue = Union[str, int, float, bool]


@contextlib.contextmanager
def run_span(session_id: str, step_count: int) -> Iterator[Span]:
    """Span covering a whole StepRunner invocation."""
    with _tracer.start_as_current_span(
        "lxcbootstrap.run",
        attributes={"session.id": session_id, "run.step_count": step_count},
    ) as span:
        yield span


@contextlib.contextmanager
def step_span(step_id: str) -> Iterator[Span]:
    """Span covering a single step; exceptions are recorded by the caller."""
    with _tracer.start_as_current_span(
        "lxcbootstrap.step",
        attributes={"step.id": step_id},
        record_exception=False,
        set_status_on_exception=False,
    ) as span:
        yield span


def mark_span_failed(span: Span, error: BaseException) -> None:
    """Record an exception on a span and set its status to ERROR."""
    if span.is_recording():
        span.record_exception(error)
        span.set_status(Status(StatusCode.ERROR, str(error)))


def add_span_event(name: str, attributes: Dict[str, AttributeValue]) -> None:
    """Add an event to the current OTel span if it is recording."""
    span = otel_trace.get_current_span()
    if span and span.is_recording():
        span.add_event(name=name, attributes=attributes)
