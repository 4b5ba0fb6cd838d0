"""Tests for HarnessSettings."""

import os
from pathlib import Path
from unittest.mock import patch

import pytest
from pydantic import ValidationError

from span_harness.settings import HarnessSettings, settings


class TestHarnessSettings:
    """Test HarnessSettings configuration."""

    def test_default_values(self):
        """Test defaults when no env vars are set."""
        with patch.dict(os.environ, clear=True):
            s = HarnessSettings(_env_file=None)  # type: ignore[call-arg]

        assert s.keyspace == "zipkin"
        assert s.local_dc == ""
        assert s.chunk_size == 100
        assert s.poll_interval_seconds == 0.1
        assert s.grace_period_seconds == 0.1
        assert s.settle_timeout_seconds is None
        assert s.log_container_output is True

    @patch.dict(
        os.environ,
        {
            "SPAN_HARNESS_KEYSPACE": "traces",
            "SPAN_HARNESS_CHUNK_SIZE": "25",
            "SPAN_HARNESS_SETTLE_TIMEOUT_SECONDS": "30",
            "SPAN_HARNESS_CLICKHOUSE_IMAGE": "clickhouse/clickhouse-server:latest",
        },
    )
    def test_env_variable_loading(self):
        """Test loading settings from prefixed environment variables."""
        s = HarnessSettings()
        assert s.keyspace == "traces"
        assert s.chunk_size == 25
        assert s.settle_timeout_seconds == 30.0
        assert s.clickhouse_image == "clickhouse/clickhouse-server:latest"

    @patch.dict(os.environ, {"KEYSPACE": "unprefixed", "SPAN_HARNESS_UNKNOWN": "ignored"})
    def test_unprefixed_and_unknown_env_ignored(self):
        """Test that unprefixed and unknown variables are ignored."""
        s = HarnessSettings()
        assert s.keyspace != "unprefixed"
        assert not hasattr(s, "unknown")

    def test_env_file_loading(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        """Test loading from .env file."""
        (tmp_path / ".env").write_text("SPAN_HARNESS_LOCAL_DC=dc1\nSPAN_HARNESS_GRACE_PERIOD_SECONDS=0\n")
        monkeypatch.chdir(tmp_path)

        s = HarnessSettings()

        assert s.local_dc == "dc1"
        assert s.grace_period_seconds == 0.0

    @pytest.mark.parametrize(
        "field,value",
        [
            ("chunk_size", 0),
            ("chunk_size", 10_001),
            ("poll_interval_seconds", 0),
            ("grace_period_seconds", -0.1),
            ("settle_timeout_seconds", 0),
        ],
    )
    def test_rejects_out_of_range(self, field: str, value: float) -> None:
        """Test that out-of-range tuning values fail validation."""
        with pytest.raises(ValidationError):
            HarnessSettings(**{field: value})

    def test_settings_immutable(self):
        """Test that settings are frozen."""
        s = HarnessSettings()
        with pytest.raises(ValidationError) as exc_info:
            s.chunk_size = 5  # type: ignore[misc]
        assert "frozen" in str(exc_info.value).lower()

    def test_settings_singleton(self):
        """Test that the module provides a settings singleton."""
        from span_harness.settings import settings as settings2

        assert isinstance(settings, HarnessSettings)
        assert settings is settings2
