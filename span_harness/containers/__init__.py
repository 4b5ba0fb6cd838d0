"""Backend fixtures: ephemeral storage containers with harness operations bound to them."""

from .clickhouse import ClickHouseBackend
from .mysql import MySQLBackend

__all__ = ["ClickHouseBackend", "MySQLBackend"]
