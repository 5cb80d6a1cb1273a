"""A small in-process tracer with W3C trace-context identifiers."""

from __future__ import annotations

import secrets
import time
from contextvars import ContextVar, Token
from dataclasses import dataclass, field
from enum import Enum


class SpanStatus(Enum):
    """Outcome recorded on a span."""

    UNSET = "unset"
    OK = "ok"
    ERROR = "error"


@dataclass(eq=False)
class Span:
    """A timed unit of work with events and a status."""

    name: str
    trace_id: str = ""
    span_id: str = ""
    parent_span_id: str = ""
    recording: bool = True
    remote: bool = False
    events: list[str] = field(default_factory=list)
    status: SpanStatus = SpanStatus.UNSET
    status_description: str = ""
    start_time: float = field(default_factory=time.time)
    end_time: float | None = None
    _token: Token | None = field(default=None, init=False, repr=False)

    @property
    def ended(self) -> bool:
        return self.end_time is not None

    @property
    def is_valid(self) -> bool:
        return bool(self.trace_id) and bool(self.span_id)

    @property
    def traceparent(self) -> str:
        """The span's identity as a ``traceparent`` header value, or "" if it has none."""
        if not self.is_valid:
            return ""
        return f"00-{self.trace_id}-{self.span_id}-01"

    def add_event(self, message: str) -> None:
        if self.recording and not self.ended:
            self.events.append(message)

    def set_status(self, status: SpanStatus, description: str = "") -> None:
        if not self.recording or self.ended:
            return
        if self.status is SpanStatus.OK or status is SpanStatus.UNSET:
            return
        self.status = status
        self.status_description = description if status is SpanStatus.ERROR else ""

    def end(self) -> None:
        if not self.ended:
            self.end_time = time.time()

    def __enter__(self) -> Span:
        self._token = _current.set(self)
        return self

    def __exit__(self, exc_type, exc, tb) -> bool:
        if self._token is not None:
            _current.reset(self._token)
            self._token = None
        self.end()
        return False


_current: ContextVar[Span | None] = ContextVar("current_span", default=None)


def _new_trace_id() -> str:
    return secrets.token_hex(16)


def _new_span_id() -> str:
    return secrets.token_hex(8)


def start_span(name: str, parent: Span | None = None) -> Span:
    """Start a span under ``parent``, or under the active span when none is given."""
    if parent is None:
        parent = _current.get()
    if parent is not None and parent.is_valid:
        trace_id, parent_span_id = parent.trace_id, parent.span_id
    else:
        trace_id, parent_span_id = _new_trace_id(), ""
    return Span(
        name=name,
        trace_id=trace_id,
        span_id=_new_span_id(),
        parent_span_id=parent_span_id,
    )


def current_span() -> Span:
    """The active span, or a non-recording placeholder when there is none."""
    span = _current.get()
    if span is None:
        return Span(name="", recording=False)
    return span