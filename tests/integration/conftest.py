"""Fixtures that start real storage backends in containers.

A backend that cannot be started (no Docker daemon, image pull failure) skips
the tests that need it instead of failing them.
"""

from collections.abc import Iterator
from typing import TYPE_CHECKING

import pytest

from span_harness.exceptions import BackendUnavailableError

if TYPE_CHECKING:
    from span_harness.containers import ClickHouseBackend, MySQLBackend


@pytest.fixture(scope="module")
def clickhouse_backend() -> Iterator["ClickHouseBackend"]:
    """Start a ClickHouse container for the test module."""
    pytest.importorskip("clickhouse_connect")
    pytest.importorskip("testcontainers.clickhouse")
    from span_harness.containers import ClickHouseBackend

    backend = ClickHouseBackend()
    try:
        backend.start()
    except BackendUnavailableError as e:
        pytest.skip(str(e))
    yield backend
    backend.stop()


@pytest.fixture(scope="module")
def mysql_backend() -> Iterator["MySQLBackend"]:
    """Start a MySQL container for the test module."""
    pytest.importorskip("pymysql")
    pytest.importorskip("testcontainers.mysql")
    from span_harness.containers import MySQLBackend

    backend = MySQLBackend()
    try:
        backend.start()
    except BackendUnavailableError as e:
        pytest.skip(str(e))
    yield backend
    backend.stop()
