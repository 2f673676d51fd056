"""Pipeline orchestration.

Runs one select -> fetch -> normalize -> derive pass per dimension value and
hands the passes to the DimensionalAggregator, which tags and concatenates
them. Summaries are produced on demand from the aggregated result.
"""

import logging
import time
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Optional

import pandas as pd

from acspipe.census.catalog import VariableCatalogFilter
from acspipe.census.client import CachedCatalog, CensusApiClient, CensusClient
from acspipe.census.normalizer import ResponseNormalizer
from acspipe.contracts import FailurePolicy, FetchError, PipelineError
from acspipe.metrics.categorizer import Categorizer
from acspipe.metrics.ratio import DerivedMetricComputer, DerivedTable
from acspipe.pipeline.aggregator import DimensionalAggregator
from acspipe.schemas import InternalConfig

__all__ = ['PipelineOrchestrator', 'PipelineResult', 'run_pipeline']

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PipelineResult:
    """Output of a full pipeline run.

    Attributes
    ----------
    records : pd.DataFrame
        Tagged records for every dimension value, in submission order.
    excluded : pd.DataFrame
        ``(tag, GEOID)`` rows removed by the ``exclude_row`` policy. Empty
        under the other policies.
    tag_column : str
        Name of the dimension tag column in both frames.
    errors : dict
        Dimension value -> error, only populated under
        ``FailurePolicy.COLLECT``.
    """
    records: pd.DataFrame
    excluded: pd.DataFrame
    tag_column: str
    errors: dict = field(default_factory=dict)


class PipelineOrchestrator:
    """Run the ACS pipeline for every configured dimension value.

    Each pass:

    1. Resolves the query for the dimension value (``config.query_for``).
    2. Fetches the variable catalog (cached per year and dataset) and
       selects one variable code per configured role.
    3. Fetches long observations for the selected codes.
    4. Pivots them into one row per geography.
    5. Computes the ratio metric with the configured zero-denominator policy.

    Passes share only the catalog cache and the read-only config, so the
    aggregator may run them concurrently (``execution.max_workers``).

    Example usage::

        from acspipe.schemas import resolve_config, ParamConfig, UserConfig

        config = resolve_config(ParamConfig(), UserConfig(YEARS=[2019, 2022],
                                                          STATE="06", COUNTY="001",
                                                          ZERO_DENOMINATOR_POLICY="treat_as_zero"))
        orch = PipelineOrchestrator(config)
        result = orch.run()
        summary = orch.summarize(result, by="year")
    """

    def __init__(self, config: InternalConfig, client: Optional[CensusClient] = None,
                 log_dir: Optional[Path] = None):
        """Initialize orchestrator.

        Parameters
        ----------
        config : InternalConfig
            Fully resolved configuration.
        client : CensusClient, optional
            Data source. Defaults to a ``CensusApiClient`` built from
            ``config.api``. Wrapped in a ``CachedCatalog`` unless it already is one.
        log_dir : Path, optional
            When given, the root logger is configured with console and file
            handlers writing to this directory.
        """
        self.config = config
        if client is None:
            client = CensusApiClient.from_config(config)
        self.client = client if isinstance(client, CachedCatalog) else CachedCatalog(client)
        self.log_dir = Path(log_dir) if log_dir is not None else None

        self.selector = VariableCatalogFilter(config.variables)
        self.normalizer = ResponseNormalizer(config)
        self.computer = DerivedMetricComputer.from_config(config)
        self.categorizer = Categorizer.from_config(config)
        self.aggregator = DimensionalAggregator(
            tag_column=config.dimension.tag_column,
            geography_col=config.columns.geography_id,
            max_workers=config.execution.max_workers,
        )

    def _setup_logging(self) -> Path:
        """Configure the root logger with file and console handlers.

        Log level comes from ``config.logging.level``; the file is
        ``<log_dir>/acspipe_<timestamp>.log``.
        """
        log_level = getattr(logging, self.config.logging.level.upper(), logging.INFO)

        self.log_dir.mkdir(parents=True, exist_ok=True)
        log_path = self.log_dir / f"acspipe_{datetime.now():%Y%m%d_%H%M%S}.log"

        formatter = logging.Formatter(
            fmt='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
            datefmt='%Y-%m-%d %H:%M:%S'
        )

        # Clear existing handlers and add new ones
        root = logging.getLogger()
        root.setLevel(log_level)
        for handler in root.handlers[:]:
            root.removeHandler(handler)

        fh = logging.FileHandler(log_path)
        fh.setLevel(log_level)
        fh.setFormatter(formatter)
        root.addHandler(fh)

        ch = logging.StreamHandler()
        ch.setLevel(log_level)
        ch.setFormatter(formatter)
        root.addHandler(ch)

        logger.info("Logging: level=%s, file=%s", self.config.logging.level, log_path)
        return log_path

    def _fetch(self, what: str, call, dimension, key=None):
        """Run a client call, reporting collaborator failures as FetchError."""
        try:
            return call()
        except PipelineError:
            raise
        except Exception as exc:
            raise FetchError(
                f"{what} failed: {type(exc).__name__}: {exc}", dimension=dimension, key=key
            ) from exc

    def run_dimension(self, value) -> DerivedTable:
        """Run one select -> fetch -> normalize -> derive pass.

        Parameters
        ----------
        value : int or str
            A dimension value from ``config.dimension.values``.

        Returns
        -------
        DerivedTable
            Untagged derived records and the geographies excluded from them.
        """
        query = self.config.query_for(value)
        logger.debug("Query for %s=%s: %s", self.config.dimension.name, value,
                     query.model_dump())

        catalog = self._fetch(
            "catalog request",
            lambda: self.client.fetch_catalog(query.year, query.dataset),
            value,
            key=f"{query.year}/{query.dataset}",
        )
        mapping = self.selector.mapping(catalog)
        codes = list(mapping)
        logger.info("Selected variables for %s=%s: %s", self.config.dimension.name, value,
                    ", ".join(f"{role}={code}" for code, role in mapping.items()))

        observations = self._fetch(
            "observation request",
            lambda: self.client.fetch_observations(
                query.year,
                query.dataset,
                codes,
                geography=query.geography,
                state=query.state,
                county=query.county,
                include_geometry=query.include_geometry,
            ),
            value,
            key=f"{query.year}/{query.dataset}",
        )

        wide = self.normalizer.normalize(observations, codes, mapping, dimension=value)
        return self.computer.compute(wide, dimension=value)

    def run(self, failure_policy: FailurePolicy = FailurePolicy.FAIL_FAST) -> PipelineResult:
        """Run every dimension value and return the aggregated result.

        Parameters
        ----------
        failure_policy : FailurePolicy
            FAIL_FAST (default) aborts on the first failing value. COLLECT
            keeps the values that succeeded and reports the others in
            ``PipelineResult.errors``.

        Raises
        ------
        PipelineError
            First failing pass, attributed to its dimension value
            (FAIL_FAST), or every value failed (COLLECT).
        """
        if self.log_dir is not None:
            self._setup_logging()

        dimension = self.config.dimension
        logger.info("=" * 60)
        logger.info("Starting ACS pipeline: %s=%s, metric=%s/%s, policy=%s",
                    dimension.name, dimension.values,
                    self.config.metric.numerator, self.config.metric.denominator,
                    self.config.metric.zero_denominator)
        logger.info("=" * 60)
        start = time.time()

        errors = {}
        if FailurePolicy(failure_policy) is FailurePolicy.COLLECT:
            outcomes = self.aggregator.run_each(dimension.values, self.run_dimension)
            errors = {o.value: o.error for o in outcomes if not o.ok}
            aggregated = self.aggregator.tag(outcomes)
        else:
            aggregated = self.aggregator.run(dimension.values, self.run_dimension)

        logger.info("Pipeline finished in %.1fs: %d records, %d excluded, catalogs cached: %s",
                    time.time() - start, len(aggregated.records), len(aggregated.excluded),
                    self.client.cached_keys())
        if errors:
            logger.warning("%d of %d %s values failed: %s", len(errors), len(dimension.values),
                           dimension.name, sorted(map(str, errors)))
        return PipelineResult(
            records=aggregated.records,
            excluded=aggregated.excluded,
            tag_column=dimension.tag_column,
            errors=errors,
        )

    def summarize(self, result: PipelineResult, by: Optional[str] = None) -> pd.DataFrame:
        """Category summary of a pipeline result.

        Parameters
        ----------
        result : PipelineResult
        by : str, optional
            Group column; pass ``result.tag_column`` for one summary per
            dimension value.
        """
        return self.categorizer.summarize(
            result.records,
            self.config.metric.ratio_column,
            by=by,
            excluded=len(result.excluded),
        )


def run_pipeline(config: InternalConfig, client: Optional[CensusClient] = None,
                 failure_policy: FailurePolicy = FailurePolicy.FAIL_FAST) -> PipelineResult:
    """Run the pipeline for every dimension value in ``config``.

    Convenience wrapper around ``PipelineOrchestrator(config, client).run()``.
    """
    return PipelineOrchestrator(config, client).run(failure_policy)
