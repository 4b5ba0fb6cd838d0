"""Per-day dependency aggregation jobs.

Each job reads every trace that touches one day, links them and replaces that
day's rows in the dependency table. Jobs open their own connection, like a
batch job launched outside the test process would.
"""

from span_harness.dependencies import DependencyJobParams
from span_harness.logging import get_harness_logger
from span_harness.settlement import Node
from span_harness.spans import aggregate_links

from .clickhouse import ClickHouseSpanStore
from .mysql import DEFAULT_PORT, MySQLSpanStore

logger = get_harness_logger(__name__)


def _require_day(params: DependencyJobParams) -> int:
    if params.day is None:
        raise ValueError("dependency job requires a day")
    return params.day


def _link_day(store: ClickHouseSpanStore | MySQLSpanStore, day: int, strict_trace_id: bool) -> int:
    """Link the traces that start on ``day`` and replace that day's rows.

    Traces that cross midnight are read whole. A trace belongs to the day of
    its earliest span, so traces that started on an earlier day are skipped.
    """
    try:
        spans = store.query_spans(day, strict_trace_id=strict_trace_id)
        links = aggregate_links(spans, strict_trace_id=strict_trace_id).get(day, [])
        store.insert_links(day, links)
    finally:
        store.close()
    logger.info(f"Dependency job wrote {len(links)} links for day {day}")
    return len(links)


class ClickHouseDependenciesJob:
    """Dependency job against the column store. ClickHouse has no data-center locality, so ``local_dc`` is unused."""

    def __init__(self, *, username: str = "default", password: str = "", secure: bool = False) -> None:
        self._username = username
        self._password = password
        self._secure = secure

    def run(self, params: DependencyJobParams) -> int:
        """Run for ``params.day``. Returns the number of links written."""
        day = _require_day(params)
        store = ClickHouseSpanStore(
            contact_points=params.contact_points,
            database=params.keyspace,
            username=self._username,
            password=self._password,
            secure=self._secure,
        )
        return _link_day(store, day, params.strict_trace_id)


class MySQLDependenciesJob:
    """Dependency job against the relational store. Connects to the first contact point."""

    def __init__(self, *, user: str = "zipkin", password: str = "zipkin") -> None:
        self._user = user
        self._password = password

    def run(self, params: DependencyJobParams) -> int:
        """Run for ``params.day``. Returns the number of links written."""
        day = _require_day(params)
        if not params.contact_points:
            raise ValueError("dependency job requires a contact point")
        node = Node.parse(params.contact_points[0], DEFAULT_PORT)
        store = MySQLSpanStore(host=node.host, port=node.port, database=params.keyspace, user=self._user, password=self._password)
        return _link_day(store, day, params.strict_trace_id)
