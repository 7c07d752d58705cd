"""
Per-call cost/latency metrics and the collector scope used by the runner.

Model calls reach the collector in one of two ways:

- ``record_call(CallMetric(...))``: explicit recording, used by
  MetricsRecordingClient around every complete()/stream() call.
- ``emit_event(CallEvent(...))``: span-like instrumentation events carrying
  ``gen_ai.*`` attributes. Only "chat" operations are kept; a missing or
  malformed attribute falls back to its default.

Every open MetricsCollector receives every call. The runner only ever has one
open at a time, so a scope sees exactly one candidate's calls.
"""

import threading
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Iterator, Optional

from .client import ChatClient, ChatMessage, ChatResponse, ChatUpdate


@dataclass
class Timer:
    """Simple context manager for timing operations."""
    start_time: float = 0
    end_time: float = 0
    elapsed_ms: float = 0

    def __enter__(self):
        self.start_time = time.perf_counter()
        return self

    def __exit__(self, *args):
        self.end_time = time.perf_counter()
        self.elapsed_ms = (self.end_time - self.start_time) * 1000


@dataclass(frozen=True)
class CallMetric:
    """Metrics for one model invocation."""
    client_label: str
    timestamp: datetime
    latency_ms: int
    input_tokens: int = 0
    output_tokens: int = 0
    response_length: int = 0
    message_count: int = 1
    was_streaming: bool = False

    @property
    def total_tokens(self) -> int:
        return self.input_tokens + self.output_tokens

    def to_dict(self) -> dict:
        return {
            "client_label": self.client_label,
            "timestamp": self.timestamp.isoformat(),
            "latency_ms": self.latency_ms,
            "input_tokens": self.input_tokens,
            "output_tokens": self.output_tokens,
            "total_tokens": self.total_tokens,
            "response_length": self.response_length,
            "message_count": self.message_count,
            "was_streaming": self.was_streaming,
        }


@dataclass(frozen=True)
class AggregatedMetrics:
    """Totals over a snapshot of calls. Never changes once built."""
    calls: tuple = ()

    @classmethod
    def from_calls(cls, calls) -> "AggregatedMetrics":
        return cls(calls=tuple(calls))

    @classmethod
    def empty(cls) -> "AggregatedMetrics":
        return cls()

    @property
    def total_calls(self) -> int:
        return len(self.calls)

    @property
    def total_latency_ms(self) -> int:
        return sum(c.latency_ms for c in self.calls)

    @property
    def average_latency_ms(self) -> float:
        if not self.calls:
            return 0.0
        return self.total_latency_ms / self.total_calls

    @property
    def total_input_tokens(self) -> int:
        return sum(c.input_tokens for c in self.calls)

    @property
    def total_output_tokens(self) -> int:
        return sum(c.output_tokens for c in self.calls)

    @property
    def total_tokens(self) -> int:
        return self.total_input_tokens + self.total_output_tokens

    @property
    def total_response_length(self) -> int:
        return sum(c.response_length for c in self.calls)

    def to_dict(self) -> dict:
        return {
            "total_calls": self.total_calls,
            "total_input_tokens": self.total_input_tokens,
            "total_output_tokens": self.total_output_tokens,
            "total_tokens": self.total_tokens,
            "total_latency_ms": self.total_latency_ms,
            "average_latency_ms": round(self.average_latency_ms, 2),
            "total_response_length": self.total_response_length,
        }


@dataclass(frozen=True)
class CallEvent:
    """A span-like instrumentation record of one operation."""
    operation_name: str
    display_name: Optional[str] = None
    start_time: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    duration_ms: Any = 0
    attributes: dict = field(default_factory=dict)


# Attribute keys, in lookup order
LABEL_KEYS = ("gen_ai.system", "gen_ai.request.model")
INPUT_TOKEN_KEYS = ("gen_ai.usage.input_tokens", "gen_ai.request.input_tokens")
OUTPUT_TOKEN_KEYS = ("gen_ai.usage.output_tokens", "gen_ai.response.output_tokens")
RESPONSE_LENGTH_KEY = "gen_ai.response.length"
MESSAGE_COUNT_KEY = "gen_ai.request.message_count"
STREAMING_KEY = "gen_ai.request.streaming"


def _as_int(value) -> Optional[int]:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float) and value.is_integer():
        return int(value)
    if isinstance(value, str):
        try:
            return int(value.strip())
        except ValueError:
            return None
    return None


def _first_int(attributes: dict, keys, default: int) -> int:
    for key in keys:
        value = _as_int(attributes.get(key))
        if value is not None:
            return value
    return default


def _first_str(attributes: dict, keys) -> Optional[str]:
    for key in keys:
        value = attributes.get(key)
        if value is not None and str(value):
            return str(value)
    return None


def is_chat_event(event: CallEvent) -> bool:
    return "chat" in (event.operation_name or "").lower()


def extract_call_metric(event: CallEvent) -> CallMetric:
    """Build a CallMetric from an event. Missing or malformed attributes fall back to defaults."""
    attributes = event.attributes if isinstance(event.attributes, dict) else {}

    label = _first_str(attributes, LABEL_KEYS) or event.display_name or "unknown"

    try:
        latency_ms = int(float(event.duration_ms))
    except (TypeError, ValueError):
        latency_ms = 0

    timestamp = event.start_time if isinstance(event.start_time, datetime) else datetime.now(timezone.utc)

    streaming = attributes.get(STREAMING_KEY)
    was_streaming = streaming is True or (isinstance(streaming, str) and streaming.lower() == "true")

    return CallMetric(
        client_label=label,
        timestamp=timestamp,
        latency_ms=latency_ms,
        input_tokens=_first_int(attributes, INPUT_TOKEN_KEYS, 0),
        output_tokens=_first_int(attributes, OUTPUT_TOKEN_KEYS, 0),
        response_length=_first_int(attributes, (RESPONSE_LENGTH_KEY,), 0),
        message_count=_first_int(attributes, (MESSAGE_COUNT_KEY,), 1),
        was_streaming=was_streaming,
    )


# Open collector scopes, fed by record_call() and emit_event()
_subscribers: list["MetricsCollector"] = []
_subscribers_lock = threading.Lock()


def _active_collectors() -> list["MetricsCollector"]:
    with _subscribers_lock:
        return list(_subscribers)


def record_call(metric: CallMetric):
    """Deliver an already-built metric to every open collector."""
    for collector in _active_collectors():
        collector.add(metric)


def emit_event(event: CallEvent):
    """Deliver an instrumentation event. Non-chat operations are ignored."""
    if not is_chat_event(event):
        return
    collectors = _active_collectors()
    if not collectors:
        return
    metric = extract_call_metric(event)
    for collector in collectors:
        collector.add(metric)


class MetricsCollector:
    """
    Collector scope bound to one candidate invocation.

    Usage:
        with MetricsCollector() as scope:
            candidate(prompt)
        metrics = scope.close()  # or scope.metrics after exit
    """

    def __init__(self):
        self._calls: list[CallMetric] = []
        self._lock = threading.Lock()
        self._open = False
        self._result: Optional[AggregatedMetrics] = None

    @property
    def is_open(self) -> bool:
        return self._open

    def open(self) -> "MetricsCollector":
        with _subscribers_lock:
            if not self._open:
                _subscribers.append(self)
                self._open = True
        return self

    def add(self, metric: CallMetric):
        # May be called from a streaming callback on another thread
        with self._lock:
            self._calls.append(metric)

    def snapshot(self) -> AggregatedMetrics:
        with self._lock:
            return AggregatedMetrics.from_calls(self._calls)

    def close(self) -> AggregatedMetrics:
        """Stop collecting and return the final metrics. Safe to call twice."""
        with _subscribers_lock:
            if self._open:
                _subscribers.remove(self)
                self._open = False
        if self._result is None:
            self._result = self.snapshot()
        return self._result

    @property
    def metrics(self) -> AggregatedMetrics:
        return self._result if self._result is not None else self.snapshot()

    def __enter__(self):
        return self.open()

    def __exit__(self, *args):
        self.close()


class MetricsRecordingClient(ChatClient):
    """
    Wraps a ChatClient and records a CallMetric for every call.

    Candidates build their model clients through this wrapper so their cost
    shows up in the runner's collector scope.
    """

    def __init__(self, inner: ChatClient, label: Optional[str] = None):
        self.inner = inner
        self.model = getattr(inner, "model", "unknown")
        self.label = label or f"model:{self.model}"

    def complete(self, messages: list[ChatMessage], options: Optional[dict] = None) -> ChatResponse:
        messages = list(messages)
        started = datetime.now(timezone.utc)
        with Timer() as timer:
            response = self.inner.complete(messages, options)

        record_call(CallMetric(
            client_label=self.label,
            timestamp=started,
            latency_ms=int(timer.elapsed_ms),
            input_tokens=response.input_tokens or 0,
            output_tokens=response.output_tokens or 0,
            response_length=len(response.text or ""),
            message_count=len(messages),
            was_streaming=False,
        ))
        return response

    def stream(self, messages: list[ChatMessage], options: Optional[dict] = None) -> Iterator[ChatUpdate]:
        messages = list(messages)
        started = datetime.now(timezone.utc)
        start = time.perf_counter()
        response_length = 0
        input_tokens = None
        output_tokens = None

        for update in self.inner.stream(messages, options):
            response_length += len(update.text or "")
            if update.input_tokens is not None:
                input_tokens = update.input_tokens
            if update.output_tokens is not None:
                output_tokens = update.output_tokens
            yield update

        record_call(CallMetric(
            client_label=self.label,
            timestamp=started,
            latency_ms=int((time.perf_counter() - start) * 1000),
            input_tokens=input_tokens or 0,
            output_tokens=output_tokens or 0,
            response_length=response_length,
            message_count=len(messages),
            was_streaming=True,
        ))
