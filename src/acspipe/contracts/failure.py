"""Centralized failure types for the ACS pipeline.

Two families of errors exist:

- ``PipelineError`` and its subclasses: bad input, bad configuration, or a
  failing external collaborator. These are attributed to a stage, a dimension
  value and an offending key (geography id, variable code, column name).
- ``ContractViolation``: a stage did not produce the invariants it promised.
  That is a bug in pipeline logic, not a data problem.
"""

from enum import Enum
from typing import Any, Optional


class FailurePolicy(str, Enum):
    """Failure policy for a multi-dimension run.

    FAIL_FAST (default): abort the whole run on the first failing dimension value
    COLLECT: run every dimension value and hand back per-value errors
        (only through ``DimensionalAggregator.run_each``, never implicitly)
    """
    FAIL_FAST = "fail_fast"
    COLLECT = "collect"


class PipelineError(Exception):
    """Base class for attributed pipeline failures.

    Parameters
    ----------
    message : str
        Human readable description of what went wrong.
    stage : str, optional
        Pipeline stage that raised (``select``, ``fetch``, ``normalize``,
        ``derive``, ``categorize``, ``aggregate``, ``config``).
    dimension : Any, optional
        Dimension value (year, county, ...) being processed. Usually attached
        by the aggregator after the fact.
    key : Any, optional
        Offending key: geography id, variable code, role or column name.
    """

    default_stage: Optional[str] = None

    def __init__(self, message: str, stage: Optional[str] = None,
                 dimension: Any = None, key: Any = None):
        super().__init__(message)
        self.message = message
        self.stage = stage or self.default_stage
        self.dimension = dimension
        self.key = key

    def __str__(self) -> str:
        parts = []
        if self.stage:
            parts.append(f"[{self.stage}]")
        if self.dimension is not None:
            parts.append(f"dimension={self.dimension}")
        if self.key is not None:
            parts.append(f"key={self.key}")
        if not parts:
            return self.message
        return f"{' '.join(parts)}: {self.message}"

    def with_dimension(self, dimension: Any) -> "PipelineError":
        """Attach the dimension value unless one is already recorded."""
        if self.dimension is None:
            self.dimension = dimension
        return self


class ConfigurationError(PipelineError):
    """Ambiguous or empty variable selection, invalid thresholds, bad config."""
    default_stage = "config"


class FetchError(PipelineError):
    """External collaborator failure: network, HTTP status, bad payload."""
    default_stage = "fetch"


class NormalizationError(PipelineError):
    """Duplicate or missing variable for a geography during the pivot."""
    default_stage = "normalize"


class ComputationError(PipelineError):
    """Missing referenced column or invalid operand in a derived metric."""
    default_stage = "derive"


class ContractViolation(RuntimeError):
    """Raised when a pipeline contract is violated.

    This indicates a bug in pipeline logic, not bad user input. It means a
    pipeline stage did not produce the invariants it promised.

    Key distinction:
    - ConfigurationError: user/config error (surfaced by Pydantic or selection)
    - NormalizationError/ComputationError: bad data from upstream
    - ContractViolation: pipeline bug (programmer error)
    """
    pass
