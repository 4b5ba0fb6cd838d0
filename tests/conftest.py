"""Common test fixtures for the span storage harness."""

import pytest


class SleepRecorder:
    """Stand-in for time.sleep that records requested durations instead of sleeping."""

    def __init__(self) -> None:
        self.calls: list[float] = []

    def __call__(self, seconds: float) -> None:
        self.calls.append(seconds)


@pytest.fixture
def sleeps() -> SleepRecorder:
    return SleepRecorder()


@pytest.fixture
def events() -> list[str]:
    """Shared ordered log for asserting how writes, settles and jobs interleave."""
    return []
