"""Helpers shared by the backend fixtures."""

import logging
from typing import Any

from span_harness.settings import HarnessSettings
from span_harness.settlement import MetricsSource, Settler


def settler_for(source: MetricsSource, harness_settings: HarnessSettings) -> Settler:
    return Settler(
        source,
        poll_interval=harness_settings.poll_interval_seconds,
        grace_period=harness_settings.grace_period_seconds,
        timeout=harness_settings.settle_timeout_seconds,
    )


def forward_container_logs(container: Any, sink: logging.Logger) -> None:
    """Copy a container's stdout and stderr into the log sink at INFO, one record per line."""
    stdout, stderr = container.get_logs()
    for stream in (stdout, stderr):
        for line in (stream or b"").decode("utf-8", errors="replace").splitlines():
            if line.strip():
                sink.info(line)
