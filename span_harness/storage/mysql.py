"""MySQL-backed span store.

Writes are synchronous and autocommitted, so there is no in-flight metric to
wait on: ``in_flight`` always reports the metric as unavailable.
"""

import json
from collections.abc import Sequence
from typing import Any

import pymysql

from span_harness.exceptions import TableNotFoundError
from span_harness.logging import get_harness_logger
from span_harness.settlement import Node
from span_harness.spans import DependencyLink, Span

from ._models import MYSQL_TABLE_DEPENDENCIES, MYSQL_TABLE_SPANS, SpanRow

logger = get_harness_logger(__name__)

DEFAULT_PORT = 3306

ER_NO_SUCH_TABLE = 1146

_CREATE_TABLES_SQL = [
    f"""
    CREATE TABLE IF NOT EXISTS {MYSQL_TABLE_SPANS} (
        trace_id        VARCHAR(32) NOT NULL,
        id              VARCHAR(16) NOT NULL,
        parent_id       VARCHAR(16),
        name            VARCHAR(255) NOT NULL,
        kind            VARCHAR(16),
        local_service   VARCHAR(255) NOT NULL,
        remote_service  VARCHAR(255),
        ts              BIGINT NOT NULL,
        duration        BIGINT NOT NULL DEFAULT 0,
        tags            TEXT,
        day             INT NOT NULL,
        PRIMARY KEY (trace_id, id),
        KEY (day)
    ) ENGINE=InnoDB DEFAULT CHARSET=utf8mb4
    """,
    f"""
    CREATE TABLE IF NOT EXISTS {MYSQL_TABLE_DEPENDENCIES} (
        day          INT NOT NULL,
        parent       VARCHAR(255) NOT NULL,
        child        VARCHAR(255) NOT NULL,
        call_count   BIGINT NOT NULL,
        error_count  BIGINT NOT NULL,
        PRIMARY KEY (day, parent, child)
    ) ENGINE=InnoDB DEFAULT CHARSET=utf8mb4
    """,
]

_INSERT_SPAN_SQL = f"""
    INSERT INTO {MYSQL_TABLE_SPANS}
        (trace_id, id, parent_id, name, kind, local_service, remote_service, ts, duration, tags, day)
    VALUES (%s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s)
    ON DUPLICATE KEY UPDATE name = VALUES(name), duration = VALUES(duration), tags = VALUES(tags)
"""

# {key} selects whole traces: every span of a trace that has a span on the day
_SELECT_SPANS_SQL = f"""
    SELECT trace_id, id, parent_id, name, kind, local_service, remote_service, ts, duration, tags
    FROM {MYSQL_TABLE_SPANS}
    WHERE {{key}} IN (SELECT {{key}} FROM {MYSQL_TABLE_SPANS} WHERE day = %s)
"""


class MySQLSpanStore:
    """Span store over a single autocommit connection."""

    def __init__(
        self,
        *,
        host: str,
        port: int = DEFAULT_PORT,
        database: str = "zipkin",
        user: str = "zipkin",
        password: str = "zipkin",
    ) -> None:
        """Store connection params. Does NOT connect yet."""
        self._node = Node(host, port)
        self._params = {
            "host": host,
            "port": port,
            "database": database,
            "user": user,
            "password": password,
        }
        self.database = database
        self._conn: Any = None
        self._tables_initialized = False

    def _connection(self) -> Any:
        if self._conn is None:
            self._conn = pymysql.connect(**self._params, autocommit=True, charset="utf8mb4")
            logger.info(f"Connected to MySQL at {self._node}")
        return self._conn

    def _execute(self, sql: str, args: Any = None) -> list[tuple[Any, ...]]:
        with self._connection().cursor() as cursor:
            cursor.execute(sql, args)
            return list(cursor.fetchall())

    def check(self) -> None:
        self._execute("SELECT 1")

    def ensure_tables(self) -> None:
        if self._tables_initialized:
            return
        for sql in _CREATE_TABLES_SQL:
            self._execute(sql)
        self._tables_initialized = True
        logger.info("MySQL span tables verified/created")

    def close(self) -> None:
        if self._conn is not None:
            self._conn.close()
            self._conn = None

    # --- Settlement metrics ---

    def nodes(self) -> list[Node]:
        return [self._node]

    def in_flight(self, node: Node) -> int | None:
        return None

    # --- Writes ---

    def accept(self, spans: Sequence[Span]) -> None:
        if not spans:
            return
        self.ensure_tables()
        rows = [SpanRow.from_span(span) for span in spans]
        args = [
            (r.trace_id, r.id, r.parent_id, r.name, r.kind, r.local_service, r.remote_service, r.timestamp, r.duration, json.dumps(r.tags), r.day)
            for r in rows
        ]
        with self._connection().cursor() as cursor:
            cursor.executemany(_INSERT_SPAN_SQL, args)

    def clear_cache(self) -> None:
        """No write-side cache is held."""

    def insert_links(self, day: int, links: Sequence[DependencyLink]) -> None:
        """Replace a day's dependency rows."""
        self.ensure_tables()
        with self._connection().cursor() as cursor:
            cursor.execute(f"DELETE FROM {MYSQL_TABLE_DEPENDENCIES} WHERE day = %s", (day,))
            if links:
                cursor.executemany(
                    f"INSERT INTO {MYSQL_TABLE_DEPENDENCIES} (day, parent, child, call_count, error_count) VALUES (%s, %s, %s, %s, %s)",
                    [(day, link.parent, link.child, link.call_count, link.error_count) for link in links],
                )

    def truncate(self, table: str) -> None:
        try:
            self._execute(f"TRUNCATE TABLE {table}")
        except pymysql.err.ProgrammingError as e:
            if e.args and e.args[0] == ER_NO_SUCH_TABLE:
                raise TableNotFoundError(table, f"unconfigured table {table}") from e
            raise

    # --- Reads ---

    def query_spans(self, day: int, *, strict_trace_id: bool = True) -> list[Span]:
        """Every span of each trace with at least one span on ``day``."""
        key = "trace_id" if strict_trace_id else "RIGHT(trace_id, 16)"
        sql = _SELECT_SPANS_SQL.format(key=key)
        spans = []
        for trace_id, span_id, parent_id, name, kind, local, remote, ts, duration, tags in self._execute(sql, (day,)):
            spans.append(
                Span(
                    trace_id=trace_id,
                    id=span_id,
                    parent_id=parent_id,
                    name=name,
                    kind=kind,
                    local_service=local,
                    remote_service=remote,
                    timestamp=ts,
                    duration=duration,
                    tags=json.loads(tags) if tags else {},
                )
            )
        return spans

    def get_dependencies(self, day: int) -> list[DependencyLink]:
        rows = self._execute(f"SELECT parent, child, call_count, error_count FROM {MYSQL_TABLE_DEPENDENCIES} WHERE day = %s", (day,))
        return [DependencyLink(parent=p, child=c, call_count=calls, error_count=errors) for p, c, calls, errors in rows]

    def count(self, table: str) -> int:
        return int(self._execute(f"SELECT COUNT(*) FROM {table}")[0][0])
