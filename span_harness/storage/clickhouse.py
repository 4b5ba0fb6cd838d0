"""ClickHouse-backed span store.

Writes use asynchronous inserts, so an acknowledged insert is buffered on the
server until the next flush. Callers that read back what they wrote must wait
for the ``InsertQuery`` and ``PendingAsyncInsert`` metrics to drain first.
"""

from collections.abc import Iterable, Sequence
from typing import Any

import clickhouse_connect
from clickhouse_connect.driver.exceptions import ClickHouseError, DatabaseError
from pydantic import BaseModel

from span_harness.exceptions import TableNotFoundError
from span_harness.logging import get_harness_logger
from span_harness.settlement import Node
from span_harness.spans import DependencyLink, Span

from ._models import (
    TABLE_AUTOCOMPLETE_TAGS,
    TABLE_DEPENDENCY,
    TABLE_SERVICE_REMOTE_SERVICES,
    TABLE_SERVICE_SPANS,
    TABLE_SPAN,
    TABLE_TRACE_BY_SERVICE_REMOTE_SERVICE,
    TABLE_TRACE_BY_SERVICE_SPAN,
    AutocompleteTagRow,
    DependencyRow,
    ServiceRemoteServiceRow,
    ServiceSpanRow,
    SpanRow,
    TraceByServiceRemoteServiceRow,
    TraceByServiceSpanRow,
)

logger = get_harness_logger(__name__)

DEFAULT_HTTP_PORT = 8123

IN_FLIGHT_METRICS = ("InsertQuery", "PendingAsyncInsert")

_IN_FLIGHT_SQL = "SELECT metric, value FROM system.metrics WHERE metric IN ({})".format(", ".join(f"'{m}'" for m in IN_FLIGHT_METRICS))

_ASYNC_INSERT_SETTINGS = {"async_insert": 1, "wait_for_async_insert": 0}

# wait for the mutation on all replicas before returning
_SYNC_MUTATION_SETTINGS = {"mutations_sync": 2}

_UNKNOWN_TABLE_MARKERS = ("UNKNOWN_TABLE", "Code: 60.")

_SPAN_COLUMNS = "trace_id, id, parent_id, name, kind, local_service, remote_service, timestamp, duration, tags, day"

# {db} is substituted with the database name
_CREATE_TABLES_SQL = [
    """
    CREATE TABLE IF NOT EXISTS {db}.span
    (
        trace_id        String,
        id              String,
        parent_id       Nullable(String),
        name            String,
        kind            LowCardinality(Nullable(String)),
        local_service   LowCardinality(String),
        remote_service  LowCardinality(Nullable(String)),
        timestamp       UInt64,
        duration        UInt64 DEFAULT 0,
        tags            Map(String, String),
        day             UInt32
    )
    ENGINE = MergeTree
    PARTITION BY day
    ORDER BY (trace_id, id)
    """,
    """
    CREATE TABLE IF NOT EXISTS {db}.dependency
    (
        day          UInt32,
        parent       String,
        child        String,
        call_count   UInt64,
        error_count  UInt64
    )
    ENGINE = ReplacingMergeTree
    ORDER BY (day, parent, child)
    """,
    """
    CREATE TABLE IF NOT EXISTS {db}.service_spans
    (
        service    LowCardinality(String),
        span_name  String
    )
    ENGINE = ReplacingMergeTree
    ORDER BY (service, span_name)
    """,
    """
    CREATE TABLE IF NOT EXISTS {db}.service_remote_services
    (
        service         LowCardinality(String),
        remote_service  String
    )
    ENGINE = ReplacingMergeTree
    ORDER BY (service, remote_service)
    """,
    """
    CREATE TABLE IF NOT EXISTS {db}.autocomplete_tags
    (
        key    LowCardinality(String),
        value  String
    )
    ENGINE = ReplacingMergeTree
    ORDER BY (key, value)
    """,
    """
    CREATE TABLE IF NOT EXISTS {db}.trace_by_service_span
    (
        service    LowCardinality(String),
        span_name  String,
        day        UInt32,
        timestamp  UInt64,
        trace_id   String,
        duration   UInt64 DEFAULT 0
    )
    ENGINE = MergeTree
    ORDER BY (service, span_name, day, timestamp)
    """,
    """
    CREATE TABLE IF NOT EXISTS {db}.trace_by_service_remote_service
    (
        service         LowCardinality(String),
        remote_service  String,
        day             UInt32,
        timestamp       UInt64,
        trace_id        String
    )
    ENGINE = MergeTree
    ORDER BY (service, remote_service, day, timestamp)
    """,
]


class ClickHouseSpanStore:
    """Span store over one ClickHouse client per contact point.

    Writes go to the first contact point. Each contact point is a Node for the
    settlement barrier. Search rows whose key was already written by this store
    are skipped through an in-process index cache; ``clear_cache()`` resets it.
    """

    def __init__(
        self,
        *,
        contact_points: Sequence[str],
        database: str = "zipkin",
        username: str = "default",
        password: str = "",
        secure: bool = False,
        autocomplete_keys: Sequence[str] = ("environment",),
        metrics_enabled: bool = True,
    ) -> None:
        """Store connection params. Does NOT connect yet."""
        if not contact_points:
            raise ValueError("at least one contact point is required")
        self._nodes = [Node.parse(cp, DEFAULT_HTTP_PORT) for cp in contact_points]
        self._params = {
            "database": database,
            "username": username,
            "password": password,
            "secure": secure,
        }
        self.database = database
        self.contact_points = tuple(contact_points)
        self._autocomplete_keys = frozenset(autocomplete_keys)
        self._metrics_enabled = metrics_enabled
        self._clients: dict[Node, Any] = {}
        self._index_cache: set[tuple[str, ...]] | None = None
        self._tables_initialized = False

    # --- Connection management ---

    def _client(self, node: Node | None = None) -> Any:
        node = node or self._nodes[0]
        client = self._clients.get(node)
        if client is None:
            client = clickhouse_connect.get_client(host=node.host, port=node.port, **self._params)  # pyright: ignore[reportArgumentType]
            self._clients[node] = client
            logger.info(f"Connected to ClickHouse at {node}")
        return client

    def check(self) -> None:
        """Round-trip a trivial query on every node."""
        for node in self._nodes:
            self._client(node).command("SELECT 1")

    def ensure_tables(self) -> None:
        """Create the database and tables if they don't exist."""
        if self._tables_initialized:
            return
        client = self._client()
        client.command(f"CREATE DATABASE IF NOT EXISTS {self.database}")
        for sql in _CREATE_TABLES_SQL:
            client.command(sql.format(db=self.database))
        self._tables_initialized = True
        logger.info("ClickHouse span tables verified/created")

    def close(self) -> None:
        for client in self._clients.values():
            client.close()
        self._clients.clear()

    # --- Settlement metrics ---

    def nodes(self) -> list[Node]:
        return list(self._nodes)

    def in_flight(self, node: Node) -> int | None:
        """Executing plus buffered inserts on a node, or None if the metrics can't be read."""
        if not self._metrics_enabled:
            return None
        try:
            rows = self._client(node).query(_IN_FLIGHT_SQL).result_rows
        except ClickHouseError as e:
            logger.debug(f"In-flight metrics unavailable on {node}: {e}")
            return None
        if not rows:
            return None
        return sum(int(value) for _, value in rows)

    # --- Writes ---

    def _insert_rows(self, table: str, rows: Sequence[BaseModel], settings: dict[str, Any] | None = None) -> None:
        """Insert rows into a table using columnar format."""
        if not rows:
            return
        column_names = list(type(rows[0]).model_fields.keys())
        data = [[getattr(row, col) for row in rows] for col in column_names]
        self._client().insert(
            f"{self.database}.{table}",
            data,
            column_names=column_names,
            column_oriented=True,
            settings=settings or _ASYNC_INSERT_SETTINGS,
        )

    def _insert_uncached(self, table: str, rows: Iterable[BaseModel]) -> None:
        """Insert search rows this store has not written yet.

        Keys are cached only once the insert returns, so a rejected write is
        retried on the next call.
        """
        if self._index_cache is None:
            self._index_cache = set()
        fresh: dict[tuple[str, ...], BaseModel] = {}
        for row in rows:
            key = (table, *(str(v) for v in row.model_dump().values()))
            if key not in self._index_cache:
                fresh.setdefault(key, row)
        self._insert_rows(table, list(fresh.values()))
        self._index_cache.update(fresh)

    def accept(self, spans: Sequence[Span]) -> None:
        """Write spans and their search-index rows."""
        if not spans:
            return
        self.ensure_tables()
        service_spans: list[ServiceSpanRow] = []
        remote_services: list[ServiceRemoteServiceRow] = []
        tags: list[AutocompleteTagRow] = []
        by_span: list[TraceByServiceSpanRow] = []
        by_remote: list[TraceByServiceRemoteServiceRow] = []

        for span in spans:
            service_spans.append(ServiceSpanRow(service=span.local_service, span_name=span.name))
            by_span.append(
                TraceByServiceSpanRow(
                    service=span.local_service,
                    span_name=span.name,
                    day=span.day,
                    timestamp=span.timestamp,
                    trace_id=span.trace_id,
                    duration=span.duration,
                )
            )
            if span.remote_service:
                remote_services.append(ServiceRemoteServiceRow(service=span.local_service, remote_service=span.remote_service))
                by_remote.append(
                    TraceByServiceRemoteServiceRow(
                        service=span.local_service,
                        remote_service=span.remote_service,
                        day=span.day,
                        timestamp=span.timestamp,
                        trace_id=span.trace_id,
                    )
                )
            tags.extend(AutocompleteTagRow(key=k, value=v) for k, v in span.tags.items() if k in self._autocomplete_keys)

        self._insert_rows(TABLE_SPAN, [SpanRow.from_span(span) for span in spans])
        self._insert_rows(TABLE_TRACE_BY_SERVICE_SPAN, by_span)
        self._insert_rows(TABLE_TRACE_BY_SERVICE_REMOTE_SERVICE, by_remote)
        self._insert_uncached(TABLE_SERVICE_SPANS, service_spans)
        self._insert_uncached(TABLE_SERVICE_REMOTE_SERVICES, remote_services)
        self._insert_uncached(TABLE_AUTOCOMPLETE_TAGS, tags)

    def clear_cache(self) -> None:
        """Forget which search rows were written, so they are written again."""
        if self._index_cache is not None:
            self._index_cache.clear()

    def insert_links(self, day: int, links: Sequence[DependencyLink]) -> None:
        """Replace a day's links: delete the day's rows, then insert the new ones."""
        self.ensure_tables()
        self._client().command(
            f"ALTER TABLE {self.database}.{TABLE_DEPENDENCY} DELETE WHERE day = {int(day)}",
            settings=_SYNC_MUTATION_SETTINGS,
        )
        rows = [DependencyRow(day=day, **link.model_dump()) for link in links]
        self._insert_rows(TABLE_DEPENDENCY, rows)

    def truncate(self, table: str) -> None:
        try:
            self._client().command(f"TRUNCATE TABLE {self.database}.{table}")
        except DatabaseError as e:
            if any(marker in str(e) for marker in _UNKNOWN_TABLE_MARKERS):
                raise TableNotFoundError(table, f"unconfigured table {table}") from e
            raise

    # --- Reads ---

    def query_spans(self, day: int, *, strict_trace_id: bool = True) -> list[Span]:
        """Every span of each trace with at least one span on ``day``.

        Relaxed matching selects traces by the low 64 bits of the trace id.
        """
        key = "trace_id" if strict_trace_id else "right(trace_id, 16)"
        table = f"{self.database}.{TABLE_SPAN}"
        result = self._client().query(
            f"SELECT {_SPAN_COLUMNS} FROM {table} WHERE {key} IN (SELECT {key} FROM {table} WHERE day = {{day:UInt32}})",
            parameters={"day": day},
        )
        return [SpanRow(**dict(zip(result.column_names, row))).to_span() for row in result.result_rows]

    def get_dependencies(self, day: int) -> list[DependencyLink]:
        rows = self._client().query(
            f"SELECT parent, child, call_count, error_count FROM {self.database}.{TABLE_DEPENDENCY} FINAL WHERE day = {{day:UInt32}}",
            parameters={"day": day},
        ).result_rows
        return [DependencyLink(parent=p, child=c, call_count=calls, error_count=errors) for p, c, calls, errors in rows]

    def count(self, table: str) -> int:
        return int(self._client().query(f"SELECT count() FROM {self.database}.{table}").result_rows[0][0])
