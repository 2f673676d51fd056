"""DerivedMetricComputer and the zero-denominator policies."""

import numpy as np
import pandas as pd
import pytest

from acspipe.contracts import ComputationError, ConfigurationError
from acspipe.metrics import DerivedMetricComputer, DerivedTable
from acspipe.schemas import ZeroDenominatorPolicy

pytestmark = pytest.mark.unit


def wide_table(rows):
    return pd.DataFrame(rows, columns=["GEOID", "renter_households", "severely_burdened"])


SCENARIO = wide_table([
    ("06001400100", 614, 126),
    ("06001400200", 778, 92),
    ("06001400300", 0, 0),
])


def computer(policy):
    return DerivedMetricComputer("severely_burdened", "renter_households", policy)


def test_ratio_is_numerator_over_denominator():
    table = computer("treat_as_zero").compute(SCENARIO.iloc[:2])
    ratios = table.records["ratio"]
    assert ratios[0] == 126 / 614
    assert ratios[1] == 92 / 778
    assert ratios.round(4).tolist() == [0.2052, 0.1183]


def test_treat_as_zero():
    table = computer("treat_as_zero").compute(SCENARIO)
    assert len(table.records) == 3
    assert table.records.loc[2, "ratio"] == 0.0
    assert table.excluded == ()


def test_mark_undefined():
    table = computer("mark_undefined").compute(SCENARIO)
    assert len(table.records) == 3
    assert np.isnan(table.records.loc[2, "ratio"])
    assert not table.records.loc[:1, "ratio"].isna().any()


def test_exclude_row_reports_excluded_geographies():
    table = computer("exclude_row").compute(SCENARIO)
    assert table.records["GEOID"].tolist() == ["06001400100", "06001400200"]
    assert table.excluded == ("06001400300",)
    assert table.records.index.tolist() == [0, 1]


def test_input_is_not_modified():
    before = SCENARIO.copy()
    computer("exclude_row").compute(SCENARIO)
    pd.testing.assert_frame_equal(SCENARIO, before)


def test_deriving_twice_is_deterministic():
    first = computer("mark_undefined").compute(SCENARIO)
    second = computer("mark_undefined").compute(SCENARIO)
    pd.testing.assert_frame_equal(first.records, second.records)


def test_policy_enum_and_string_are_equivalent():
    assert computer("exclude_row").policy is ZeroDenominatorPolicy.EXCLUDE_ROW
    assert computer(ZeroDenominatorPolicy.EXCLUDE_ROW).policy is ZeroDenominatorPolicy.EXCLUDE_ROW


def test_unknown_policy():
    with pytest.raises(ConfigurationError, match="unknown zero-denominator policy"):
        computer("ignore")


def test_missing_column_is_attributed():
    wide = SCENARIO.drop(columns=["severely_burdened"])
    with pytest.raises(ComputationError) as exc:
        computer("treat_as_zero").compute(wide, dimension=2019)
    assert exc.value.key == "severely_burdened"
    assert exc.value.dimension == 2019
    assert exc.value.stage == "derive"


def test_negative_operand_names_geography():
    wide = wide_table([("06001400100", 614, 126), ("06001400200", -5, 1)])
    with pytest.raises(ComputationError, match="non-negative") as exc:
        computer("treat_as_zero").compute(wide)
    assert exc.value.key == "06001400200"


def test_missing_operand_is_an_error():
    wide = wide_table([("06001400100", 614, np.nan)])
    with pytest.raises(ComputationError) as exc:
        computer("mark_undefined").compute(wide)
    assert exc.value.key == "06001400100"


def test_from_config(make_config):
    config = make_config(ZERO_DENOMINATOR_POLICY="exclude_row", RATIO_COLUMN="share")
    comp = DerivedMetricComputer.from_config(config)
    table = comp.compute(SCENARIO)

    assert isinstance(table, DerivedTable)
    assert "share" in table.records.columns
    assert table.excluded == ("06001400300",)


def test_empty_table_under_exclude_row():
    wide = wide_table([("06001400300", 0, 0)])
    table = computer("exclude_row").compute(wide)
    assert table.records.empty
    assert table.excluded == ("06001400300",)
