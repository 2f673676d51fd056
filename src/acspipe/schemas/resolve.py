"""Configuration resolution and merging logic.

This module provides the single entrypoint for configuration resolution:
resolve_config(). It merges ParamConfig, UserConfig, and CLIConfig in
the correct precedence order and returns a validated InternalConfig.

Precedence (highest to lowest):
1. CLIConfig (command-line overrides)
2. UserConfig (user file)
3. ParamConfig (expert defaults)
"""

import os
from typing import Optional, Union

from pydantic import ValidationError
from acspipe.contracts.failure import ConfigurationError
from acspipe.schemas.cli import CLIConfig
from acspipe.schemas.internal import InternalConfig
from acspipe.schemas.param import ParamConfig
from acspipe.schemas.user import UserConfig

API_KEY_ENV = "CENSUS_API_KEY"


def deep_merge(base: dict, *overrides: dict) -> dict:
    """Deep merge multiple dictionaries.

    Later dictionaries override earlier ones. Nested dictionaries are
    merged recursively; other values (including lists) are replaced.

    Examples
    --------
    >>> base = {"a": 1, "b": {"c": 2, "d": 3}}
    >>> override = {"b": {"d": 4, "e": 5}, "f": 6}
    >>> deep_merge(base, override)
    {'a': 1, 'b': {'c': 2, 'd': 4, 'e': 5}, 'f': 6}
    """
    result = base.copy()

    for override in overrides:
        for key, value in override.items():
            if key in result and isinstance(result[key], dict) and isinstance(value, dict):
                result[key] = deep_merge(result[key], value)
            else:
                result[key] = value

    return result


def _as_model(cfg, model_cls):
    """Validate dicts into ``model_cls``; None or {} gives an empty model."""
    if cfg is None or (isinstance(cfg, dict) and not cfg):
        return model_cls()
    if isinstance(cfg, model_cls):
        return cfg
    return model_cls.model_validate(cfg)


def resolve_config(
    param_cfg: Union[dict, ParamConfig],
    user_cfg: Optional[Union[dict, UserConfig]] = None,
    cli_cfg: Optional[Union[dict, CLIConfig]] = None,
) -> InternalConfig:
    """Resolve final runtime configuration from param, user, and CLI configs.

    This is the SINGLE ENTRYPOINT for configuration resolution. It validates
    and merges configs in the correct precedence order, then returns an
    immutable InternalConfig for runtime use.

    The Census API key falls back to the ``CENSUS_API_KEY`` environment
    variable when no layer provides one.

    Parameters
    ----------
    param_cfg : dict or ParamConfig
        Expert configuration with complete defaults. Required.
    user_cfg : dict or UserConfig, optional
        User configuration with overrides.
    cli_cfg : dict or CLIConfig, optional
        Command-line overrides.

    Returns
    -------
    InternalConfig
        Fully validated, immutable runtime configuration

    Raises
    ------
    ConfigurationError
        If any layer fails validation, or the merged result is not a complete
        runtime configuration (e.g. no zero-denominator policy declared).

    Examples
    --------
    >>> config = resolve_config(ParamConfig(), {"YEARS": [2019, 2022],
    ...                         "ZERO_DENOMINATOR_POLICY": "exclude_row"})
    >>> config.metric.zero_denominator
    'exclude_row'
    """
    try:
        param = _as_model(param_cfg, ParamConfig)
        user = _as_model(user_cfg, UserConfig)
        cli = _as_model(cli_cfg, CLIConfig)

        merged = deep_merge(
            param.model_dump(),
            user.to_internal_overrides(),
            cli.to_internal_overrides(),
        )
    except ValidationError as exc:
        raise ConfigurationError(f"invalid configuration: {exc}") from exc

    if merged["metric"].get("zero_denominator") is None:
        raise ConfigurationError(
            "no zero-denominator policy declared; choose one of "
            "'treat_as_zero', 'mark_undefined', 'exclude_row'",
            key="metric.zero_denominator",
        )

    if not merged["api"].get("api_key"):
        merged["api"]["api_key"] = os.environ.get(API_KEY_ENV) or None

    try:
        return InternalConfig.model_validate(merged)
    except ValidationError as exc:
        raise ConfigurationError(f"invalid configuration: {exc}") from exc
