"""Write-settlement barrier.

Stores under test acknowledge writes before they are visible to reads. The
barrier polls per-node in-flight counters exposed by the backend until every
node reports zero in the same pass, then sleeps one grace period if any work
was observed, since a counter can reach zero slightly before the write it
tracked becomes readable.
"""

import time
from collections.abc import Callable, Collection
from dataclasses import dataclass
from typing import Protocol, runtime_checkable

from span_harness.exceptions import BarrierTimeoutError, WaitAbortedError
from span_harness.logging import get_harness_logger

logger = get_harness_logger(__name__)

POLL_INTERVAL_SECONDS = 0.1
GRACE_PERIOD_SECONDS = 0.1


@dataclass(frozen=True)
class Node:
    """One backend server reachable from a session."""

    host: str
    port: int

    def __str__(self) -> str:
        return f"{self.host}:{self.port}"

    @classmethod
    def parse(cls, contact_point: str, default_port: int) -> "Node":
        """Parse ``host`` or ``host:port``."""
        host, sep, port = contact_point.rpartition(":")
        if not sep:
            return cls(contact_point, default_port)
        return cls(host, int(port))


@runtime_checkable
class MetricsSource(Protocol):
    """Backend capability the barrier polls.

    Implementations: ClickHouseSpanStore, MySQLSpanStore.
    """

    def nodes(self) -> Collection[Node]:
        """Nodes known to the active session. Re-read on every poll."""
        ...

    def in_flight(self, node: Node) -> int | None:
        """Current in-flight request count for a node, or None if the metric is unavailable."""
        ...


def in_flight_count(source: MetricsSource, node: Node) -> int:
    """Read a node's in-flight count, treating an unavailable metric as zero."""
    value = source.in_flight(node)
    if value is None:
        return 0
    return max(value, 0)


def pool_in_flight(source: MetricsSource) -> bool:
    """True if any node currently reports in-flight requests."""
    for node in source.nodes():
        count = in_flight_count(source, node)
        if count > 0:
            logger.debug(f"{count} requests in flight on {node}")
            return True
    return False


def _sleep(sleep: Callable[[float], None], seconds: float) -> None:
    try:
        sleep(seconds)
    except InterruptedError as e:
        raise WaitAbortedError(f"interrupted while waiting for writes to settle: {e}") from e


def block_while_in_flight(
    source: MetricsSource,
    *,
    poll_interval: float = POLL_INTERVAL_SECONDS,
    grace_period: float = GRACE_PERIOD_SECONDS,
    timeout: float | None = None,
    sleep: Callable[[float], None] = time.sleep,
    clock: Callable[[], float] = time.monotonic,
) -> None:
    """Block until every node reports zero in-flight requests in one pass.

    Without a timeout this waits forever on a stalled backend. A caller that
    cannot tolerate a hang passes ``timeout`` and gets BarrierTimeoutError.
    """
    deadline = clock() + timeout if timeout is not None else None
    was_in_flight = False
    while True:
        if not pool_in_flight(source):
            if was_in_flight:
                _sleep(sleep, grace_period)
            return
        if deadline is not None and clock() >= deadline:
            raise BarrierTimeoutError(f"writes still in flight after {timeout}s")
        was_in_flight = True
        _sleep(sleep, poll_interval)


class Settler:
    """Zero-argument barrier bound to one metrics source.

    Passed to the ingestor, partitioner and reset so they can settle without
    knowing which backend they run against.
    """

    def __init__(
        self,
        source: MetricsSource,
        *,
        poll_interval: float = POLL_INTERVAL_SECONDS,
        grace_period: float = GRACE_PERIOD_SECONDS,
        timeout: float | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self._source = source
        self._poll_interval = poll_interval
        self._grace_period = grace_period
        self._timeout = timeout
        self._sleep = sleep

    def __call__(self) -> None:
        block_while_in_flight(
            self._source,
            poll_interval=self._poll_interval,
            grace_period=self._grace_period,
            timeout=self._timeout,
            sleep=self._sleep,
        )
