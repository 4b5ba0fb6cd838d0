"""Test helpers: span builders and fake backend capabilities."""

from collections.abc import Sequence

from span_harness.exceptions import TableNotFoundError
from span_harness.settlement import Node
from span_harness.spans import MICROS_PER_DAY, Span, SpanKind

DAY = 18000


def ts(day: int = DAY, offset_us: int = 0) -> int:
    """Epoch-microsecond timestamp inside the given epoch day."""
    return day * MICROS_PER_DAY + offset_us


def make_span(
    trace_id: str,
    span_id: str,
    *,
    parent_id: str | None = None,
    kind: SpanKind | None = None,
    service: str = "frontend",
    remote: str | None = None,
    day: int = DAY,
    offset_us: int = 0,
    error: bool = False,
    name: str = "get",
) -> Span:
    return Span(
        trace_id=trace_id,
        id=span_id,
        parent_id=parent_id,
        name=name,
        kind=kind,
        local_service=service,
        remote_service=remote,
        timestamp=ts(day, offset_us),
        duration=1_000,
        tags={"error": "500"} if error else {},
    )


def client_server_trace(index: int, *, caller: str = "frontend", callee: str = "backend", day: int = DAY, error: bool = False) -> list[Span]:
    """Three spans: a root server span in the caller, a client call, and the callee's server span.

    Produces exactly one caller -> callee link.
    """
    trace_id = f"{index:016x}"
    return [
        make_span(trace_id, f"{index:012x}0001", kind=SpanKind.SERVER, service=caller, day=day),
        make_span(trace_id, f"{index:012x}0002", parent_id=f"{index:012x}0001", kind=SpanKind.CLIENT, service=caller, remote=callee, day=day, offset_us=10),
        make_span(trace_id, f"{index:012x}0003", parent_id=f"{index:012x}0002", kind=SpanKind.SERVER, service=callee, day=day, offset_us=20, error=error),
    ]


def midnight_crossing_trace(index: int, *, caller: str = "frontend", callee: str = "backend", day: int = DAY) -> list[Span]:
    """A caller -> callee trace whose root span starts one second before midnight.

    The client call and the callee's server span land on the next day.
    """
    trace_id = f"{index:016x}"
    root_id, client_id = f"{index:012x}0001", f"{index:012x}0002"
    return [
        make_span(trace_id, root_id, kind=SpanKind.SERVER, service=caller, day=day, offset_us=MICROS_PER_DAY - 1_000_000),
        make_span(trace_id, client_id, parent_id=root_id, kind=SpanKind.CLIENT, service=caller, remote=callee, day=day + 1, offset_us=10),
        make_span(trace_id, f"{index:012x}0003", parent_id=client_id, kind=SpanKind.SERVER, service=callee, day=day + 1, offset_us=20),
    ]


def local_spans(count: int, *, day: int = DAY) -> list[Span]:
    """Root spans without a kind: they carry no link data."""
    return [make_span(f"{i + 1:016x}", f"{i + 1:016x}", day=day, offset_us=i) for i in range(count)]


class FakeMetricsSource:
    """Metrics source replaying scripted in-flight readings.

    Each call to ``nodes()`` starts a new polling pass. ``passes[i][j]`` is the
    reading for node j during pass i; the last pass repeats forever.
    """

    def __init__(self, passes: Sequence[Sequence[int | None]]) -> None:
        self._passes = [list(p) for p in passes]
        self._nodes = [Node(f"node{i}", 9000 + i) for i in range(len(self._passes[0]))]
        self.pass_count = 0
        self.reads: list[Node] = []

    def nodes(self) -> list[Node]:
        self.pass_count += 1
        return list(self._nodes)

    def in_flight(self, node: Node) -> int | None:
        self.reads.append(node)
        current = self._passes[min(self.pass_count, len(self._passes)) - 1]
        return current[self._nodes.index(node)]


class FakeTruncatableStore:
    """Store with a fixed set of existing tables that records every call."""

    def __init__(self, existing: Sequence[str], *, failing: dict[str, Exception] | None = None, events: list[str] | None = None) -> None:
        self.existing = set(existing)
        self.failing = failing or {}
        self.events = events if events is not None else []
        self.truncated: list[str] = []

    def clear_cache(self) -> None:
        self.events.append("clear_cache")

    def truncate(self, table: str) -> None:
        self.events.append(f"truncate:{table}")
        if table in self.failing:
            raise self.failing[table]
        if table not in self.existing:
            raise TableNotFoundError(table)
        self.truncated.append(table)
