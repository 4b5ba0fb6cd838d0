"""Tests for span models and in-memory link aggregation."""

import pytest
from pydantic import ValidationError

from span_harness.spans import (
    MICROS_PER_DAY,
    DependencyLink,
    Span,
    SpanKind,
    aggregate_links,
    epoch_day,
    link_spans,
    midnight_utc,
    trace_key,
)
from tests.test_helpers import DAY, client_server_trace, local_spans, make_span, ts

TRACE_128 = "463ac35c9f6413ad48485a3953bb6124"
TRACE_64 = "48485a3953bb6124"


def split_trace() -> list[Span]:
    """Caller reports a 128-bit trace id, callee only the low 64 bits."""
    return [
        make_span(TRACE_128, "a", kind=SpanKind.SERVER, service="frontend"),
        make_span(TRACE_128, "b", parent_id="a", kind=SpanKind.CLIENT, service="frontend", remote="backend", offset_us=5),
        make_span(TRACE_64, "c", parent_id="b", kind=SpanKind.SERVER, service="backend", remote="frontend", offset_us=10),
    ]


class TestDays:
    def test_epoch_day(self):
        assert epoch_day(0) == 0
        assert epoch_day(MICROS_PER_DAY - 1) == 0
        assert epoch_day(ts(DAY, 123)) == DAY

    def test_midnight_utc_is_millis(self):
        assert midnight_utc(1) == 86_400_000
        assert midnight_utc(DAY) == DAY * 86_400_000

    def test_span_day(self):
        assert make_span(TRACE_64, "a", day=DAY + 2).day == DAY + 2


class TestSpan:
    def test_trace_id_lowercased(self):
        span = make_span(TRACE_64.upper(), "A")
        assert span.trace_id == TRACE_64
        assert span.id == "a"

    @pytest.mark.parametrize("trace_id", ["abc", "z" * 16, "0" * 20])
    def test_invalid_trace_id(self, trace_id):
        with pytest.raises(ValidationError):
            make_span(trace_id, "a")

    def test_error_flag(self):
        assert make_span(TRACE_64, "a", error=True).error
        assert not make_span(TRACE_64, "a").error

    def test_frozen(self):
        span = make_span(TRACE_64, "a")
        with pytest.raises(ValidationError):
            span.name = "other"  # type: ignore[misc]

    def test_trace_key(self):
        assert trace_key(TRACE_128, strict_trace_id=True) == TRACE_128
        assert trace_key(TRACE_128, strict_trace_id=False) == TRACE_64


class TestLinkSpans:
    def test_client_server_trace(self):
        links = link_spans(client_server_trace(1))
        assert links == [DependencyLink(parent="frontend", child="backend", call_count=1, error_count=0)]

    def test_counts_errors(self):
        spans = client_server_trace(1) + client_server_trace(2, error=True)
        (link,) = link_spans(spans)
        assert (link.call_count, link.error_count) == (2, 1)

    def test_uninstrumented_callee(self):
        spans = [
            make_span(TRACE_64, "a", kind=SpanKind.SERVER, service="frontend"),
            make_span(TRACE_64, "b", parent_id="a", kind=SpanKind.CLIENT, service="frontend", remote="mysql"),
        ]
        assert link_spans(spans) == [DependencyLink(parent="frontend", child="mysql", call_count=1)]

    def test_messaging(self):
        spans = [
            make_span(TRACE_64, "a", kind=SpanKind.PRODUCER, service="producer", remote="kafka"),
            make_span(TRACE_64, "b", parent_id="a", kind=SpanKind.CONSUMER, service="consumer"),
        ]
        assert link_spans(spans) == [DependencyLink(parent="producer", child="consumer", call_count=1)]

    def test_local_spans_produce_nothing(self):
        assert link_spans(local_spans(5)) == []

    def test_strict_trace_id_counts_split_trace_twice(self):
        (link,) = link_spans(split_trace(), strict_trace_id=True)
        assert (link.parent, link.child, link.call_count) == ("frontend", "backend", 2)

    def test_relaxed_trace_id_joins_split_trace(self):
        (link,) = link_spans(split_trace(), strict_trace_id=False)
        assert (link.parent, link.child, link.call_count) == ("frontend", "backend", 1)

    def test_parent_cycle_terminates(self):
        spans = [
            make_span(TRACE_64, "a", parent_id="b", kind=SpanKind.SERVER, service="svc"),
            make_span(TRACE_64, "b", parent_id="a", service="svc"),
        ]
        assert link_spans(spans) == []


class TestAggregateLinks:
    def test_empty_input(self):
        assert aggregate_links([]) == {}

    def test_no_remote_spans(self):
        assert aggregate_links(local_spans(10)) == {}

    def test_groups_by_day(self):
        spans = client_server_trace(1, day=DAY) + client_server_trace(2, day=DAY + 1) + client_server_trace(3, day=DAY + 1)
        by_day = aggregate_links(spans)
        assert set(by_day) == {DAY, DAY + 1}
        assert by_day[DAY][0].call_count == 1
        assert by_day[DAY + 1][0].call_count == 2

    def test_trace_bucketed_by_earliest_span(self):
        spans = client_server_trace(1, day=DAY)
        spans[-1] = make_span(spans[-1].trace_id, spans[-1].id, parent_id=spans[-1].parent_id, kind=SpanKind.SERVER, service="backend", day=DAY + 1)
        assert set(aggregate_links(spans)) == {DAY}

    def test_relaxed_by_default(self):
        (link,) = aggregate_links(split_trace())[DAY]
        assert link.call_count == 1
