"""Tests for pipeline contracts and failure types.

These tests verify that contracts are enforced at stage boundaries.
They test contract violations directly, without defensive logic downstream.
"""

import numpy as np
import pandas as pd
import pytest

pytestmark = pytest.mark.unit

from acspipe.contracts import (
    ComputationError,
    ConfigurationError,
    ContractViolation,
    FetchError,
    NormalizationError,
    PipelineError,
    assert_derived,
    assert_tagged,
    assert_wide,
    require,
)
from acspipe.contracts.invariants import PIPELINE_INVARIANTS, STAGE_REQUIREMENTS


class TestRequire:

    def test_require_passes_silently(self):
        require(True, "never raised")

    def test_require_raises_contract_violation(self):
        with pytest.raises(ContractViolation, match="broken"):
            require(False, "broken")

    def test_contract_violation_is_runtime_error(self):
        assert issubclass(ContractViolation, RuntimeError)
        assert not issubclass(ContractViolation, PipelineError)


class TestPipelineError:
    """Failure types carry stage, dimension and key."""

    def test_message_names_stage_dimension_and_key(self):
        err = NormalizationError("missing variables ['B25070_010E']",
                                 dimension=2019, key="06001400100")
        assert str(err) == (
            "[normalize] dimension=2019 key=06001400100: missing variables ['B25070_010E']"
        )

    def test_default_stages(self):
        assert ConfigurationError("x").stage == "config"
        assert FetchError("x").stage == "fetch"
        assert NormalizationError("x").stage == "normalize"
        assert ComputationError("x").stage == "derive"

    def test_explicit_stage_overrides_default(self):
        assert ConfigurationError("x", stage="select").stage == "select"

    def test_with_dimension_keeps_existing_value(self):
        err = FetchError("x", dimension=2019)
        assert err.with_dimension(2022).dimension == 2019

    def test_with_dimension_attaches_when_missing(self):
        err = FetchError("x")
        assert err.with_dimension(2022) is err
        assert err.dimension == 2022

    def test_plain_message_without_attributes(self):
        assert str(PipelineError("plain")) == "plain"


class TestWideContract:

    def test_passes_with_unique_geographies(self):
        df = pd.DataFrame({"GEOID": ["a", "b"], "renter_households": [1, 2]})
        assert_wide(df, "GEOID", ["renter_households"], 2)

    def test_fails_on_duplicate_geography(self):
        df = pd.DataFrame({"GEOID": ["a", "a"], "renter_households": [1, 2]})
        with pytest.raises(ContractViolation, match="not unique"):
            assert_wide(df, "GEOID", ["renter_households"], 2)

    def test_fails_on_missing_role(self):
        df = pd.DataFrame({"GEOID": ["a"]})
        with pytest.raises(ContractViolation, match="renter_households"):
            assert_wide(df, "GEOID", ["renter_households"], 1)

    def test_fails_on_row_count(self):
        df = pd.DataFrame({"GEOID": ["a"], "renter_households": [1]})
        with pytest.raises(ContractViolation, match="expected 2"):
            assert_wide(df, "GEOID", ["renter_households"], 2)


class TestDerivedContract:

    def test_treat_as_zero_rejects_nan(self):
        df = pd.DataFrame({"den": [0, 5], "ratio": [np.nan, 0.2]})
        with pytest.raises(ContractViolation, match="NaN ratio"):
            assert_derived(df, "ratio", "den", "treat_as_zero")

    def test_mark_undefined_requires_nan_exactly_at_zero(self):
        ok = pd.DataFrame({"den": [0, 5], "ratio": [np.nan, 0.2]})
        assert_derived(ok, "ratio", "den", "mark_undefined")

        bad = pd.DataFrame({"den": [0, 5], "ratio": [0.0, 0.2]})
        with pytest.raises(ContractViolation, match="match zero denominators"):
            assert_derived(bad, "ratio", "den", "mark_undefined")

    def test_exclude_row_rejects_surviving_zero(self):
        df = pd.DataFrame({"den": [0, 5], "ratio": [0.0, 0.2]})
        with pytest.raises(ContractViolation, match="survived"):
            assert_derived(df, "ratio", "den", "exclude_row")

    def test_rejects_infinite_ratio(self):
        df = pd.DataFrame({"den": [1], "ratio": [np.inf]})
        with pytest.raises(ContractViolation, match="non-finite"):
            assert_derived(df, "ratio", "den", "treat_as_zero")

    def test_empty_table_passes(self):
        df = pd.DataFrame({"den": [], "ratio": []})
        assert_derived(df, "ratio", "den", "exclude_row")


class TestTaggedContract:

    def test_passes_in_submission_order(self):
        df = pd.DataFrame({"year": [2019, 2019, 2022]})
        assert_tagged(df, "year", [2019, 2022])

    def test_fails_on_unsubmitted_tag(self):
        df = pd.DataFrame({"year": [2019, 2021]})
        with pytest.raises(ContractViolation, match="unsubmitted"):
            assert_tagged(df, "year", [2019, 2022])

    def test_fails_when_groups_out_of_order(self):
        df = pd.DataFrame({"year": [2022, 2019]})
        with pytest.raises(ContractViolation, match="submission order"):
            assert_tagged(df, "year", [2019, 2022])

    def test_fails_without_tag_column(self):
        with pytest.raises(ContractViolation, match="missing tag column"):
            assert_tagged(pd.DataFrame({"x": [1]}), "year", [2019])


def test_invariant_tables_cover_every_stage():
    assert set(STAGE_REQUIREMENTS) <= {"select", "fetch", "normalize", "derive",
                                       "categorize", "aggregate"}
    assert PIPELINE_INVARIANTS
