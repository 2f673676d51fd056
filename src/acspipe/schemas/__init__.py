"""Pydantic configuration schemas for the ACS pipeline.

All configuration validation, coercion, and normalization happens at
schema validation time via Pydantic.

Exports
-------
resolve_config : function
    Single entrypoint for configuration resolution
InternalConfig : class
    Fully validated, authoritative runtime configuration
ParamConfig : class
    Expert defaults (complete, except the zero-denominator policy)
UserConfig : class
    User-facing configuration (forgiving, minimal)
CLIConfig : class
    Command-line operational overrides
"""

from acspipe.schemas.resolve import resolve_config
from acspipe.schemas.internal import InternalConfig
from acspipe.schemas.param import (
    ParamConfig,
    QueryConfig,
    ThresholdConfig,
    VariablePredicate,
    ZeroDenominatorPolicy,
)
from acspipe.schemas.user import UserConfig
from acspipe.schemas.cli import CLIConfig

__all__ = [
    'resolve_config',
    'InternalConfig',
    'ParamConfig',
    'QueryConfig',
    'ThresholdConfig',
    'VariablePredicate',
    'ZeroDenominatorPolicy',
    'UserConfig',
    'CLIConfig',
]
