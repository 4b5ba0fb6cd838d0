"""Span and dependency-link models plus in-memory link aggregation.

Spans are the records written through the storage layer under test. Links are
caller -> callee edges derived from spans, bucketed by the epoch day of the
trace they came from so dependency jobs can be run once per day.
"""

from collections.abc import Iterable, Iterator
from enum import StrEnum

from pydantic import BaseModel, ConfigDict, Field, field_validator

MICROS_PER_DAY = 86_400_000_000
MILLIS_PER_DAY = 86_400_000

_HEX_DIGITS = frozenset("0123456789abcdef")


class SpanKind(StrEnum):
    """Remote span kind. Local spans have no kind."""

    CLIENT = "CLIENT"
    SERVER = "SERVER"
    PRODUCER = "PRODUCER"
    CONSUMER = "CONSUMER"


_CALLEE_KINDS = (SpanKind.SERVER, SpanKind.CONSUMER)
_CALLER_KINDS = (SpanKind.CLIENT, SpanKind.PRODUCER)


def epoch_day(timestamp_us: int) -> int:
    """Days since 1970-01-01 UTC for an epoch-microsecond timestamp."""
    return timestamp_us // MICROS_PER_DAY


def midnight_utc(day: int) -> int:
    """Epoch milliseconds of midnight UTC starting the given epoch day."""
    return day * MILLIS_PER_DAY


def trace_key(trace_id: str, strict_trace_id: bool) -> str:
    """Key used to group spans into traces.

    Relaxed matching keys on the low 64 bits so a 64-bit id and a 128-bit id
    sharing that half land in the same trace.
    """
    return trace_id if strict_trace_id else trace_id[-16:]


class Span(BaseModel):
    """A single span. Timestamps and durations are epoch microseconds."""

    model_config = ConfigDict(frozen=True)

    trace_id: str
    id: str
    parent_id: str | None = None
    name: str = ""
    kind: SpanKind | None = None
    local_service: str
    remote_service: str | None = None
    timestamp: int = Field(ge=0)
    duration: int = Field(default=0, ge=0)
    tags: dict[str, str] = Field(default_factory=dict)

    @field_validator("trace_id")
    @classmethod
    def validate_trace_id(cls, v: str) -> str:
        v = v.lower()
        if len(v) not in (16, 32) or not set(v) <= _HEX_DIGITS:
            raise ValueError(f"trace_id must be 16 or 32 lower-hex characters: {v!r}")
        return v

    @field_validator("id", "parent_id")
    @classmethod
    def lowercase_ids(cls, v: str | None) -> str | None:
        return v.lower() if v is not None else None

    @property
    def error(self) -> bool:
        return "error" in self.tags

    @property
    def day(self) -> int:
        return epoch_day(self.timestamp)


class DependencyLink(BaseModel):
    """Aggregated call edge between two services."""

    model_config = ConfigDict(frozen=True)

    parent: str
    child: str
    call_count: int = Field(default=0, ge=0)
    error_count: int = Field(default=0, ge=0)


def _group_traces(spans: Iterable[Span], strict_trace_id: bool) -> dict[str, list[Span]]:
    traces: dict[str, list[Span]] = {}
    for span in spans:
        traces.setdefault(trace_key(span.trace_id, strict_trace_id), []).append(span)
    return traces


def _ancestor_service(span: Span, by_id: dict[str, Span]) -> str | None:
    """Walk up the parent chain to the nearest span recorded by a different service."""
    seen = {span.id}
    parent_id = span.parent_id
    while parent_id is not None and parent_id not in seen:
        parent = by_id.get(parent_id)
        if parent is None:
            return None
        if parent.local_service != span.local_service:
            return parent.local_service
        seen.add(parent_id)
        parent_id = parent.parent_id
    return None


def _trace_edges(trace: list[Span]) -> Iterator[tuple[str, str, bool]]:
    """Yield (parent, child, error) edges for one trace.

    Span ids are assumed unique within a trace.
    """
    by_id = {span.id: span for span in trace}
    callee_recorded = {span.parent_id for span in trace if span.kind in _CALLEE_KINDS and span.parent_id}

    for span in trace:
        if span.kind in _CALLEE_KINDS:
            parent_service = _ancestor_service(span, by_id) or span.remote_service
            if parent_service and parent_service != span.local_service:
                yield parent_service, span.local_service, span.error
        elif span.kind in _CALLER_KINDS and span.remote_service:
            # uninstrumented callee: the caller is the only witness
            if span.id not in callee_recorded:
                yield span.local_service, span.remote_service, span.error


def _merge(edges: Iterable[tuple[str, str, bool]]) -> list[DependencyLink]:
    counts: dict[tuple[str, str], list[int]] = {}
    for parent, child, error in edges:
        pair = counts.setdefault((parent, child), [0, 0])
        pair[0] += 1
        if error:
            pair[1] += 1
    return [DependencyLink(parent=p, child=c, call_count=calls, error_count=errors) for (p, c), (calls, errors) in counts.items()]


def link_spans(spans: Iterable[Span], *, strict_trace_id: bool = True) -> list[DependencyLink]:
    """Derive merged dependency links from spans, across all days."""
    traces = _group_traces(spans, strict_trace_id)
    return _merge(edge for trace in traces.values() for edge in _trace_edges(trace))


def aggregate_links(spans: Iterable[Span], *, strict_trace_id: bool = False) -> dict[int, list[DependencyLink]]:
    """Group dependency links by the epoch day of each trace's earliest span.

    Days that produce no links are omitted, so an empty input, or one without
    any remote spans, yields an empty mapping.
    """
    by_day: dict[int, list[tuple[str, str, bool]]] = {}
    for trace in _group_traces(spans, strict_trace_id).values():
        edges = list(_trace_edges(trace))
        if edges:
            day = epoch_day(min(span.timestamp for span in trace))
            by_day.setdefault(day, []).extend(edges)
    return {day: _merge(edges) for day, edges in by_day.items()}
