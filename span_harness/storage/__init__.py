"""Span storage backends exercised by the harness."""

from ._models import (
    MYSQL_TABLE_DEPENDENCIES,
    MYSQL_TABLE_SPANS,
    MYSQL_TABLES,
    SEARCH_TABLES,
    TABLE_DEPENDENCY,
    TABLE_SPAN,
    reset_tables,
)
from .clickhouse import ClickHouseSpanStore
from .jobs import ClickHouseDependenciesJob, MySQLDependenciesJob
from .mysql import MySQLSpanStore

__all__ = [
    "MYSQL_TABLES",
    "MYSQL_TABLE_DEPENDENCIES",
    "MYSQL_TABLE_SPANS",
    "SEARCH_TABLES",
    "TABLE_DEPENDENCY",
    "TABLE_SPAN",
    "ClickHouseDependenciesJob",
    "ClickHouseSpanStore",
    "MySQLDependenciesJob",
    "MySQLSpanStore",
    "reset_tables",
]
