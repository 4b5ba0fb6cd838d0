"""Chunked batch ingestion.

A single oversized batch can exhaust the backend's outstanding-request budget,
so records are written in bounded chunks, one at a time, settling in between
so a later chunk never becomes visible ahead of an earlier one.
"""

import math
from collections.abc import Callable, Iterator, Sequence
from typing import TypeVar

from span_harness.exceptions import WriteFailedError
from span_harness.logging import get_harness_logger

logger = get_harness_logger(__name__)

CHUNK_SIZE = 100

_T = TypeVar("_T")


def partition(records: Sequence[_T], size: int) -> Iterator[list[_T]]:
    """Split records into contiguous, order-preserving chunks of at most ``size``."""
    if size < 1:
        raise ValueError(f"chunk size must be positive, got {size}")
    for start in range(0, len(records), size):
        yield list(records[start : start + size])


def ingest_in_chunks(
    records: Sequence[_T],
    write: Callable[[list[_T]], object],
    settle: Callable[[], None],
    *,
    chunk_size: int = CHUNK_SIZE,
) -> int:
    """Write records chunk by chunk, settling after each successful write.

    A rejected write aborts the remaining chunks and is never retried.

    Returns:
        Number of chunks written.
    """
    if chunk_size < 1:
        raise ValueError(f"chunk size must be positive, got {chunk_size}")
    total = math.ceil(len(records) / chunk_size)
    written = 0
    for index, chunk in enumerate(partition(records, chunk_size)):
        try:
            write(chunk)
        except Exception as e:
            raise WriteFailedError(f"chunk {index + 1}/{total} ({len(chunk)} records) rejected: {e}") from e
        settle()
        written += 1
    logger.debug(f"Ingested {len(records)} records in {written} chunks")
    return written
