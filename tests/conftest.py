"""Root-level pytest fixtures for the acspipe test suite.

Provides shared configuration fixtures following Pydantic-based architecture.
All tests must use these fixtures instead of creating raw dict configs.
"""

import pytest
from pathlib import Path
import tempfile
import shutil

from acspipe.schemas import ParamConfig, UserConfig, resolve_config


# =============================================================================
# Configuration Fixtures (Pydantic-based)
# =============================================================================

# ParamConfig leaves the dimension values and the zero-denominator policy
# open; every test config has to name them.
BASE_USER = {
    "YEARS": [2019, 2022],
    "STATE": "06",
    "COUNTY": "001",
    "ZERO_DENOMINATOR_POLICY": "treat_as_zero",
}


@pytest.fixture
def param_config():
    """Expert configuration with all defaults.

    Use this as the base for all test configs. Override specific values
    using make_config or by creating custom UserConfig instances.
    """
    return ParamConfig()


@pytest.fixture
def internal_config(param_config):
    """Fully validated runtime configuration for years 2019 and 2022.

    Use this when tests don't care about specific config values and just
    need a valid InternalConfig to pass to constructors.

    Examples
    --------
    >>> def test_computer_init(internal_config):
    ...     computer = DerivedMetricComputer.from_config(internal_config)
    ...     assert computer.policy.value == "treat_as_zero"
    """
    return resolve_config(param_config, UserConfig(**BASE_USER), None)


@pytest.fixture
def make_config(param_config):
    """Factory fixture for creating custom test configs.

    Use this when you need to override specific values for a test.
    Returns a callable that accepts UserConfig-compatible kwargs, applied
    on top of the base years/state/county/policy.

    Examples
    --------
    >>> def test_exclude(make_config):
    ...     config = make_config(ZERO_DENOMINATOR_POLICY="exclude_row")
    ...     assert config.metric.zero_denominator == "exclude_row"
    """
    def _make(**user_overrides):
        """Create InternalConfig with user overrides."""
        user = dict(BASE_USER)
        if "COUNTIES" in user_overrides:
            user.pop("YEARS")
        user.update(user_overrides)
        return resolve_config(param_config, UserConfig(**user), None)

    return _make


# =============================================================================
# Directory Fixtures
# =============================================================================

@pytest.fixture
def temp_dir():
    """Temporary directory that is cleaned up after test."""
    d = tempfile.mkdtemp()
    yield Path(d)
    shutil.rmtree(d, ignore_errors=True)
