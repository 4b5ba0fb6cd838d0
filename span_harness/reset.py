"""Per-test state reset.

Truncates a closed set of tables and drops any in-process write cache so one
scenario's data never bleeds into the next. Tables that were never created
are expected on a fresh schema and are skipped.
"""

from collections.abc import Callable, Iterable
from typing import Protocol, runtime_checkable

from span_harness.exceptions import TableNotFoundError, TruncateFailedError
from span_harness.logging import get_harness_logger

logger = get_harness_logger(__name__)


@runtime_checkable
class TruncatableStore(Protocol):
    """Store capabilities the reset needs."""

    def clear_cache(self) -> None:
        """Drop any in-process write-side cache. No-op if none is held."""
        ...

    def truncate(self, table: str) -> None:
        """Truncate a table. Raises TableNotFoundError if it does not exist."""
        ...


def clear_state(store: TruncatableStore, tables: Iterable[str], settle: Callable[[], None]) -> list[str]:
    """Clear the store's cache, truncate each table, then settle.

    Returns:
        Tables that were missing and skipped.
    """
    store.clear_cache()

    missing: list[str] = []
    for table in tables:
        try:
            store.truncate(table)
        except TableNotFoundError as e:
            if e.table != table:
                raise TruncateFailedError(f"truncate of {table} reported missing table {e.table}") from e
            logger.debug(f"Skipping truncate of {table}: {e}")
            missing.append(table)
        except Exception as e:
            raise TruncateFailedError(f"truncate of {table} failed: {e}") from e

    settle()
    return missing
