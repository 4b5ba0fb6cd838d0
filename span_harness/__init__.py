"""Span Storage Harness - integration-test harness for tracing span storage backends.

@public

Drives real storage backends running in ephemeral containers and provides the
synchronization needed to test them reliably:

    - **Settlement**: block until per-node in-flight write counters drain
    - **Chunked ingestion**: write large batches in bounded, settled chunks
    - **Dependency processing**: re-run the per-day aggregation job for every day a batch covers
    - **State reset**: truncate span, search and dependency tables between scenarios

Quick Start:
    >>> from span_harness.containers import ClickHouseBackend
    >>>
    >>> with ClickHouseBackend() as backend:
    ...     store = backend.new_store()
    ...     backend.clear(store)
    ...     days = backend.process_dependencies(store, spans)
    ...     links = store.get_dependencies(days.pop())
"""

from .dependencies import DependencyJobParams, day_set, process_dependencies, run_daily_jobs
from .exceptions import (
    BackendUnavailableError,
    BarrierTimeoutError,
    DependencyJobError,
    HarnessError,
    HarnessStageError,
    TableNotFoundError,
    TruncateFailedError,
    WaitAbortedError,
    WriteFailedError,
)
from .ingest import ingest_in_chunks, partition
from .logging import get_harness_logger, setup_logging
from .reset import clear_state
from .settings import HarnessSettings, settings
from .settlement import MetricsSource, Node, Settler, block_while_in_flight, in_flight_count, pool_in_flight
from .spans import DependencyLink, Span, SpanKind, aggregate_links, epoch_day, link_spans, midnight_utc

__version__ = "0.1.0"

__all__ = [
    # Settlement
    "MetricsSource",
    "Node",
    "Settler",
    "block_while_in_flight",
    "in_flight_count",
    "pool_in_flight",
    # Ingestion and dependencies
    "DependencyJobParams",
    "day_set",
    "ingest_in_chunks",
    "partition",
    "process_dependencies",
    "run_daily_jobs",
    # Reset
    "clear_state",
    # Spans
    "DependencyLink",
    "Span",
    "SpanKind",
    "aggregate_links",
    "epoch_day",
    "link_spans",
    "midnight_utc",
    # Exceptions
    "BackendUnavailableError",
    "BarrierTimeoutError",
    "DependencyJobError",
    "HarnessError",
    "HarnessStageError",
    "TableNotFoundError",
    "TruncateFailedError",
    "WaitAbortedError",
    "WriteFailedError",
    # Config
    "HarnessSettings",
    "get_harness_logger",
    "settings",
    "setup_logging",
]
