"""ClickHouse backend fixture.

Owns one ClickHouse container and one health-check session for its lifetime. Stores
handed to tests are created with ``new_store()`` and are settled, cleared and
fed dependency jobs through this fixture.
"""

from collections.abc import Sequence

from testcontainers.clickhouse import ClickHouseContainer

from span_harness.dependencies import DependencyJobParams, process_dependencies
from span_harness.exceptions import BackendUnavailableError
from span_harness.logging import get_harness_logger
from span_harness.reset import clear_state
from span_harness.settings import HarnessSettings, settings
from span_harness.spans import Span
from span_harness.storage import ClickHouseDependenciesJob, ClickHouseSpanStore, reset_tables

from ._common import forward_container_logs, settler_for

logger = get_harness_logger(__name__)

HTTP_PORT = 8123


class ClickHouseBackend:
    """Ephemeral ClickHouse server plus the harness operations bound to it.

    Example:
        >>> with ClickHouseBackend() as backend:
        ...     store = backend.new_store()
        ...     backend.clear(store)
        ...     backend.process_dependencies(store, spans)
    """

    def __init__(self, harness_settings: HarnessSettings | None = None) -> None:
        self._settings = harness_settings or settings
        self.image = self._settings.clickhouse_image
        self.port = HTTP_PORT
        self.log_sink = get_harness_logger("span_harness.containers.clickhouse")
        self._container: ClickHouseContainer | None = None
        self.session: ClickHouseSpanStore | None = None

    def __enter__(self) -> "ClickHouseBackend":
        self.start()
        return self

    def __exit__(self, *exc: object) -> None:
        self.stop()

    # --- Lifecycle ---

    def start(self) -> None:
        container = ClickHouseContainer(self.image, dbname=self._settings.keyspace)
        try:
            container.start()
        except Exception as e:
            raise BackendUnavailableError(f"could not start {self.image}: {e}") from e
        self._container = container
        logger.info(f"Using contact point {self.contact_point()}")
        self.session = self._try_to_initialize_session()

    def _try_to_initialize_session(self) -> ClickHouseSpanStore:
        """Open the fixture's own session without creating any schema."""
        session = self.new_store()
        try:
            session.check()
        except Exception as e:
            session.close()
            self.stop()
            raise BackendUnavailableError(f"could not open a session to {self.image}: {e}") from e
        return session

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

    def _running(self) -> ClickHouseContainer:
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

    def new_store(
        self,
        *,
        contact_points: Sequence[str] | None = None,
        database: str | None = None,
        metrics_enabled: bool = True,
    ) -> ClickHouseSpanStore:
        """Open a store on this container. Defaults to the configured keyspace."""
        container = self._running()
        return ClickHouseSpanStore(
            contact_points=contact_points or [self.contact_point()],
            database=database or self._settings.keyspace,
            username=container.username,
            password=container.password,
            metrics_enabled=metrics_enabled,
        )

    # --- Harness operations ---

    def _store_or_session(self, store: ClickHouseSpanStore | None) -> ClickHouseSpanStore:
        store = store or self.session
        if store is None:
            raise RuntimeError("backend not started, call start() first")
        return store

    def block_while_in_flight(self, store: ClickHouseSpanStore | None = None) -> None:
        """Block until writes through ``store`` (or the fixture session) are visible."""
        settler_for(self._store_or_session(store), self._settings)()

    def clear(self, store: ClickHouseSpanStore | None = None) -> list[str]:
        """Drop the store's index cache and truncate every span, search and dependency table."""
        store = self._store_or_session(store)
        return clear_state(store, reset_tables(), settler_for(store, self._settings))

    def process_dependencies(self, store: ClickHouseSpanStore, spans: Sequence[Span]) -> set[int]:
        """Write spans in chunks, then run the dependency job once for each day they cover."""
        container = self._running()
        job = ClickHouseDependenciesJob(username=container.username, password=container.password)
        template = DependencyJobParams(
            keyspace=store.database,
            local_dc=self._settings.local_dc,
            contact_points=store.contact_points,
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
