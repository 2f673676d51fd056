"""Pipeline contracts and failure types.

Contracts fail immediately and loudly when pipeline stages don't produce
their promised invariants. Failure types attribute bad input to the stage,
dimension value and key that triggered it.

Key principle:
- Pydantic validates config correctness
- PipelineError subclasses report bad data and collaborator failures
- Contracts validate pipeline correctness
"""

from acspipe.contracts.failure import (
    ComputationError,
    ConfigurationError,
    ContractViolation,
    FailurePolicy,
    FetchError,
    NormalizationError,
    PipelineError,
)
from acspipe.contracts.base import require
from acspipe.contracts.wide import assert_wide
from acspipe.contracts.derived import assert_derived
from acspipe.contracts.tagged import assert_tagged

__all__ = [
    "PipelineError",
    "ConfigurationError",
    "FetchError",
    "NormalizationError",
    "ComputationError",
    "ContractViolation",
    "FailurePolicy",
    "require",
    "assert_wide",
    "assert_derived",
    "assert_tagged",
]
