"""Exception hierarchy for the span storage harness.

All exceptions inherit from HarnessError. Failures that abort a test carry the
stage (truncate, write, barrier, job) they happened in, so a CI report can tell
"backend rejected a valid operation" apart from "no backend was available".
"""


class HarnessError(Exception):
    """Base exception for all harness errors."""


class BackendUnavailableError(HarnessError):
    """Raised when a backend container or session cannot be established.

    Test fixtures convert this into a skip rather than a failure.
    """


class TableNotFoundError(HarnessError):
    """Raised by a store when a truncate target does not exist yet."""

    def __init__(self, table: str, message: str | None = None) -> None:
        self.table = table
        super().__init__(message or f"unconfigured table {table}")


class HarnessStageError(HarnessError):
    """Base exception for failures that abort the current test at a given stage."""

    stage: str = "harness"

    def __str__(self) -> str:
        return f"[{self.stage}] {super().__str__()}"


class WriteFailedError(HarnessStageError):
    """Raised when a chunk write is rejected by the backend. Never retried."""

    stage = "write"


class TruncateFailedError(HarnessStageError):
    """Raised when truncating a table fails for any reason other than absence."""

    stage = "truncate"


class DependencyJobError(HarnessStageError):
    """Raised when a per-day dependency aggregation job fails."""

    stage = "job"


class BarrierTimeoutError(HarnessStageError):
    """Raised when a caller-supplied settle timeout elapses with writes still in flight."""

    stage = "barrier"


class WaitAbortedError(HarnessStageError):
    """Raised when a settle sleep is interrupted. The barrier cannot be resumed."""

    stage = "barrier"
