"""Configuration settings for the span storage harness.

@public

Settings are loaded from environment variables (prefixed ``SPAN_HARNESS_``)
with .env file support via pydantic-settings.

Environment variables:
    SPAN_HARNESS_CLICKHOUSE_IMAGE: Column store image reference
    SPAN_HARNESS_MYSQL_IMAGE: Relational store image reference
    SPAN_HARNESS_KEYSPACE: Database name the span tables live in
    SPAN_HARNESS_LOCAL_DC: Locality hint passed to dependency jobs
    SPAN_HARNESS_CHUNK_SIZE: Records per ingestion chunk
    SPAN_HARNESS_POLL_INTERVAL_SECONDS: Sleep between in-flight polls
    SPAN_HARNESS_GRACE_PERIOD_SECONDS: Extra sleep once writes were observed
    SPAN_HARNESS_SETTLE_TIMEOUT_SECONDS: Optional upper bound on a settle wait
    SPAN_HARNESS_LOG_CONTAINER_OUTPUT: Forward container logs on stop

Example:
    >>> from span_harness.settings import settings
    >>> settings.chunk_size
    100

Note:
    Settings are loaded once at module import and frozen. Tests that need
    different values construct their own HarnessSettings instance.
"""

from typing import Annotated

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class HarnessSettings(BaseSettings):
    """Harness configuration.

    @public

    Attributes:
        clickhouse_image: Image started by ClickHouseBackend.
        mysql_image: Image started by MySQLBackend.
        keyspace: Database holding the span, search and dependency tables.
        local_dc: Locality hint forwarded to dependency jobs. Empty means none.
        chunk_size: Maximum records per write during chunked ingestion.
        poll_interval_seconds: Fixed sleep between in-flight polls.
        grace_period_seconds: Single extra sleep once in-flight work was seen.
        settle_timeout_seconds: Upper bound on one settle wait. None waits forever.
        log_container_output: Forward container stdout/stderr to the log sink on stop.
    """

    model_config = SettingsConfigDict(
        env_prefix="SPAN_HARNESS_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        frozen=True,
    )

    clickhouse_image: str = "clickhouse/clickhouse-server:24.8"
    mysql_image: str = "mysql:8.0"
    keyspace: str = "zipkin"
    local_dc: str = ""

    chunk_size: Annotated[int, Field(ge=1, le=10_000)] = 100
    poll_interval_seconds: Annotated[float, Field(gt=0)] = 0.1
    grace_period_seconds: Annotated[float, Field(ge=0)] = 0.1
    settle_timeout_seconds: Annotated[float | None, Field(gt=0)] = None

    log_container_output: bool = True


settings = HarnessSettings()
"""Global settings instance, created at module import."""
