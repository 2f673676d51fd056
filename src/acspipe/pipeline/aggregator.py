"""Repeat a per-dimension-value pipeline and concatenate tagged results.

Each dimension value (a survey year, a county, ...) is processed by the same
function, independently of every other value. Results are tagged with the
value that produced them and concatenated in submission order.
"""

import logging
from concurrent.futures import FIRST_EXCEPTION, ThreadPoolExecutor, wait
from dataclasses import dataclass
from typing import Any, Callable, Sequence

import pandas as pd

from acspipe.contracts import (
    ConfigurationError,
    ContractViolation,
    PipelineError,
    assert_tagged,
)
from acspipe.metrics.ratio import DerivedTable

__all__ = ['DimensionalAggregator', 'AggregateResult', 'DimensionOutcome']

logger = logging.getLogger(__name__)

PassFn = Callable[[Any], DerivedTable]


@dataclass(frozen=True)
class AggregateResult:
    """Concatenated output of a multi-dimension run.

    Attributes
    ----------
    records : pd.DataFrame
        Tagged records, grouped by dimension value in submission order.
    excluded : pd.DataFrame
        One row per geography removed upstream: tag column + geography id.
    """
    records: pd.DataFrame
    excluded: pd.DataFrame


@dataclass(frozen=True)
class DimensionOutcome:
    """Result of one dimension value under ``run_each``: a table or an error."""
    value: Any
    table: DerivedTable = None
    error: Exception = None

    @property
    def ok(self) -> bool:
        return self.error is None


class DimensionalAggregator:
    """Run a pipeline function once per dimension value.

    Parameters
    ----------
    tag_column : str
        Name of the column holding the dimension value.
    geography_col : str
        Geography id column, used for the excluded-records table.
    max_workers : int
        1 runs values sequentially. More runs them on a bounded thread pool;
        keep it low, every pass hits the remote API.

    Notes
    -----
    Fail-fast: the first failing value aborts the run, pending values are
    cancelled and the error is re-raised with the dimension value attached
    as soon as it occurs. Passes already running in other threads are not
    waited for; their results are discarded. A ContractViolation is a bug in
    a stage, not a per-value failure, and propagates unwrapped. Callers that
    want partial results use ``run_each`` and handle each outcome themselves.
    """

    def __init__(self, tag_column: str, geography_col: str = "GEOID", max_workers: int = 1):
        if max_workers < 1:
            raise ConfigurationError(f"max_workers must be >= 1, got {max_workers}",
                                     stage="aggregate")
        self.tag_column = tag_column
        self.geography_col = geography_col
        self.max_workers = max_workers

    @staticmethod
    def _check_values(values: Sequence) -> list:
        values = list(values)
        if not values:
            raise ConfigurationError("no dimension values to process", stage="aggregate")
        keys = [str(v) for v in values]
        if len(set(keys)) != len(keys):
            raise ConfigurationError(f"duplicate dimension values in {values}", stage="aggregate")
        return values

    def _run_one(self, fn: PassFn, value) -> DerivedTable:
        logger.info("Processing %s=%s", self.tag_column, value)
        try:
            table = fn(value)
        except PipelineError as exc:
            raise exc.with_dimension(value)
        except ContractViolation:
            raise
        except Exception as exc:
            raise PipelineError(
                f"{type(exc).__name__}: {exc}", stage="aggregate", dimension=value
            ) from exc
        logger.info("Finished %s=%s: %d records, %d excluded",
                    self.tag_column, value, len(table.records), len(table.excluded))
        return table

    def run(self, values: Sequence, fn: PassFn) -> AggregateResult:
        """Process every value and concatenate the tagged results.

        Parameters
        ----------
        values : sequence
            Dimension values, in output order.
        fn : callable
            ``fn(value) -> DerivedTable``; must not share mutable state
            between calls.

        Raises
        ------
        PipelineError
            The first failure, with ``dimension`` set to the failing value.
        """
        values = self._check_values(values)

        if self.max_workers == 1 or len(values) == 1:
            tables = [self._run_one(fn, value) for value in values]
        else:
            tables = self._run_concurrent(values, fn)

        return self._concat(values, tables)

    def _run_concurrent(self, values: list, fn: PassFn) -> list:
        workers = min(self.max_workers, len(values))
        logger.info("Fanning out %d dimension values on %d workers", len(values), workers)

        executor = ThreadPoolExecutor(max_workers=workers, thread_name_prefix="acs-dim")
        try:
            # Position in `values`, not completion order, decides the tag
            futures = {executor.submit(self._run_one, fn, value): i
                       for i, value in enumerate(values)}
            done, pending = wait(futures, return_when=FIRST_EXCEPTION)
        except BaseException:
            executor.shutdown(wait=False, cancel_futures=True)
            raise

        failed = [f for f in done if f.exception() is not None]
        if failed:
            for f in pending:
                f.cancel()
            # Do not block on passes still in flight
            executor.shutdown(wait=False, cancel_futures=True)
            # Report the earliest submitted failure among those finished
            first = min(failed, key=lambda f: futures[f])
            raise first.exception()

        executor.shutdown(wait=True)
        results = [None] * len(values)
        for future, i in futures.items():
            results[i] = future.result()
        return results

    def _concat(self, values: list, tables: list) -> AggregateResult:
        tagged = []
        excluded = []
        for value, table in zip(values, tables):
            frame = table.records.copy()
            frame[self.tag_column] = value
            tagged.append(frame)
            excluded.append(pd.DataFrame({
                self.tag_column: [value] * len(table.excluded),
                self.geography_col: list(table.excluded),
            }))

        records = pd.concat(tagged, ignore_index=True)
        excluded_df = pd.concat(excluded, ignore_index=True)

        assert_tagged(records, self.tag_column, values)
        logger.info("Aggregated %d records across %d %s values (%d excluded)",
                    len(records), len(values), self.tag_column, len(excluded_df))
        return AggregateResult(records=records, excluded=excluded_df)

    def run_each(self, values: Sequence, fn: PassFn) -> list[DimensionOutcome]:
        """Process every value, collecting failures instead of aborting.

        This is the explicit opt-in for partial results; ``run`` never
        returns a partially populated table.
        """
        values = self._check_values(values)
        outcomes = []
        for value in values:
            try:
                outcomes.append(DimensionOutcome(value=value, table=self._run_one(fn, value)))
            except PipelineError as exc:
                logger.error("Dimension %s=%s failed: %s", self.tag_column, value, exc)
                outcomes.append(DimensionOutcome(value=value, error=exc))
        return outcomes

    def tag(self, outcomes: Sequence[DimensionOutcome]) -> AggregateResult:
        """Concatenate the successful outcomes of ``run_each``.

        Raises the first error when no value succeeded.
        """
        good = [o for o in outcomes if o.ok]
        if not good:
            if not outcomes:
                raise ConfigurationError("no dimension values to process", stage="aggregate")
            raise outcomes[0].error
        return self._concat([o.value for o in good], [o.table for o in good])
