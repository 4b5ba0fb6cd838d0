"""Day-partitioned dependency aggregation.

Production runs the dependency job once per day over a whole day's traces.
To match those batch semantics a test writes its spans, works out which days
they touch, and runs the job once for each of those days.
"""

from collections.abc import Callable, Iterable, Sequence
from typing import TypeAlias

from pydantic import BaseModel, ConfigDict

from span_harness.exceptions import DependencyJobError
from span_harness.ingest import CHUNK_SIZE, ingest_in_chunks
from span_harness.logging import get_harness_logger
from span_harness.spans import DependencyLink, Span, aggregate_links

logger = get_harness_logger(__name__)

LinkAggregator: TypeAlias = Callable[[Iterable[Span]], dict[int, list[DependencyLink]]]


class DependencyJobParams(BaseModel):
    """Parameters for one run of a per-day dependency job."""

    model_config = ConfigDict(frozen=True)

    keyspace: str
    local_dc: str = ""
    contact_points: tuple[str, ...] = ()
    strict_trace_id: bool = False
    day: int | None = None

    def for_day(self, day: int) -> "DependencyJobParams":
        return self.model_copy(update={"day": day})


DependencyJob: TypeAlias = Callable[[DependencyJobParams], object]


def day_set(spans: Iterable[Span], aggregate: LinkAggregator = aggregate_links) -> set[int]:
    """Distinct epoch days that carry at least one link."""
    return set(aggregate(spans))


def run_daily_jobs(days: Iterable[int], run_job: DependencyJob, template: DependencyJobParams, settle: Callable[[], None]) -> None:
    """Run the job once per day, then settle once. Days are independent, so order is irrelevant."""
    for day in days:
        logger.debug(f"Running dependency job for day {day}")
        try:
            run_job(template.for_day(day))
        except Exception as e:
            raise DependencyJobError(f"dependency job failed for day {day}: {e}") from e
    settle()


def process_dependencies(
    spans: Sequence[Span],
    *,
    write: Callable[[list[Span]], object],
    settle: Callable[[], None],
    run_job: DependencyJob,
    template: DependencyJobParams,
    aggregate: LinkAggregator = aggregate_links,
    chunk_size: int = CHUNK_SIZE,
) -> set[int]:
    """Process the job as if it were a batch: for each day we had traces, run the job again.

    Returns:
        The set of days a job was run for. Empty input runs no jobs.
    """
    ingest_in_chunks(spans, write, settle, chunk_size=chunk_size)

    # aggregate links in memory to determine which days they are in
    days = day_set(spans, aggregate)
    run_daily_jobs(days, run_job, template, settle)
    logger.info(f"Processed dependencies for {len(spans)} spans across {len(days)} days")
    return days
