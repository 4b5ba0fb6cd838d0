"""MySQL backend fixture.

Same lifecycle as the ClickHouse fixture. Writes are synchronous here, so
settling returns immediately, but tests go through the same operations to
keep both backends interchangeable.
"""

from collections.abc import Sequence

from testcontainers.mysql import MySqlContainer

from span_harness.dependencies import DependencyJobParams, process_dependencies
from span_harness.exceptions import BackendUnavailableError
from span_harness.logging import get_harness_logger
from span_harness.reset import clear_state
from span_harness.settings import HarnessSettings, settings
from span_harness.spans import Span
from span_harness.storage import MYSQL_TABLES, MySQLDependenciesJob, MySQLSpanStore

from ._common import forward_container_logs, settler_for

logger = get_harness_logger(__name__)

MYSQL_PORT = 3306


class MySQLBackend:
    """Ephemeral MySQL server plus the harness operations bound to it."""

    def __init__(self, harness_settings: HarnessSettings | None = None) -> None:
        self._settings = harness_settings or settings
        self.image = self._settings.mysql_image
        self.port = MYSQL_PORT
        self.log_sink = get_harness_logger("span_harness.containers.mysql")
        self._container: MySqlContainer | None = None
        self.session: MySQLSpanStore | None = None

    def __enter__(self) -> "MySQLBackend":
        self.start()
        return self

    def __exit__(self, *exc: object) -> None:
        self.stop()

    # --- Lifecycle ---

    def start(self) -> None:
        container = MySqlContainer(self.image, username="zipkin", password="zipkin", dbname=self._settings.keyspace)
        try:
            container.start()
        except Exception as e:
            raise BackendUnavailableError(f"could not start {self.image}: {e}") from e
        self._container = container
        logger.info(f"Using MySQL at {self.contact_point()}")

        session = self.new_store()
        try:
            session.check()
        except Exception as e:
            session.close()
            self.stop()
            raise BackendUnavailableError(f"could not open a session to {self.image}: {e}") from e
        self.session = session

    def stop(self) -> None:
        if self.session is not None:
            self.session.close()
            self.session = None
        if self._container is None:
            return
        if self._settings.log_container_output:
            try:
                forward_container_logs(self._container, self.log_sink)
            except Exception as e:
                logger.warning(f"Failed to read container logs: {e}")
        self._container.stop()
        self._container = None

    def _running(self) -> MySqlContainer:
        if self._container is None:
            raise RuntimeError("backend not started, call start() first")
        return self._container

    # --- Connection info ---

    def host(self) -> str:
        return self._running().get_container_host_ip()

    def mapped_port(self) -> int:
        return int(self._running().get_exposed_port(self.port))

    def contact_point(self) -> str:
        return f"{self.host()}:{self.mapped_port()}"

    def new_store(self) -> MySQLSpanStore:
        container = self._running()
        return MySQLSpanStore(
            host=self.host(),
            port=self.mapped_port(),
            database=self._settings.keyspace,
            user=container.username,
            password=container.password,
        )

    # --- Harness operations ---

    def _store_or_session(self, store: MySQLSpanStore | None) -> MySQLSpanStore:
        store = store or self.session
        if store is None:
            raise RuntimeError("backend not started, call start() first")
        return store

    def block_while_in_flight(self, store: MySQLSpanStore | None = None) -> None:
        settler_for(self._store_or_session(store), self._settings)()

    def clear(self, store: MySQLSpanStore | None = None) -> list[str]:
        store = self._store_or_session(store)
        return clear_state(store, MYSQL_TABLES, settler_for(store, self._settings))

    def process_dependencies(self, store: MySQLSpanStore, spans: Sequence[Span]) -> set[int]:
        """Write spans, then run the dependency job once for each day they cover."""
        container = self._running()
        job = MySQLDependenciesJob(user=container.username, password=container.password)
        template = DependencyJobParams(
            keyspace=store.database,
            local_dc=self._settings.local_dc,
            contact_points=(self.contact_point(),),
            strict_trace_id=False,
        )
        return process_dependencies(
            spans,
            write=store.accept,
            settle=settler_for(store, self._settings),
            run_job=job.run,
            template=template,
            chunk_size=self._settings.chunk_size,
        )
