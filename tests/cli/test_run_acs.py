"""CLI runner: user config loading and table output."""

import logging

import pandas as pd
import pytest

from acspipe.cli import load_user_config_dict, run_acs_pipeline
from acspipe.contracts import ConfigurationError

from tests.helpers.fake_client import FakeCensusClient

pytestmark = pytest.mark.pipeline

USER_CONFIG = '''
CONFIG = {
    "YEARS": [2019, 2022],
    "STATE": "06",
    "COUNTY": "001",
    "ZERO_DENOMINATOR_POLICY": "exclude_row",
    "DISPLAY_ORDER": ["75% or more", "50% to 75%", "25% to 50%", "Less than 25%"],
}
'''

SCENARIO = {
    2019: [("06001400100", 614, 126), ("06001400200", 778, 92), ("06001400300", 0, 0)],
    2022: [("06001400100", 650, 140), ("06001400200", 700, 400)],
}


@pytest.fixture
def user_config_file(temp_dir):
    path = temp_dir / "user_config.py"
    path.write_text(USER_CONFIG)
    return path


@pytest.fixture(autouse=True)
def reset_root_logger():
    yield
    root = logging.getLogger()
    for handler in root.handlers[:]:
        handler.close()
        root.removeHandler(handler)


def test_load_user_config_dict(user_config_file):
    config = load_user_config_dict(str(user_config_file))
    assert config["YEARS"] == [2019, 2022]
    assert config["ZERO_DENOMINATOR_POLICY"] == "exclude_row"


def test_load_missing_config(temp_dir):
    with pytest.raises(FileNotFoundError):
        load_user_config_dict(str(temp_dir / "nope.py"))


def test_load_config_without_dict(temp_dir):
    path = temp_dir / "empty.py"
    path.write_text("X = 1\n")
    with pytest.raises(ValueError, match="No CONFIG dict"):
        load_user_config_dict(str(path))


def test_run_writes_tables(user_config_file, temp_dir):
    out = temp_dir / "out"
    paths = run_acs_pipeline(
        str(user_config_file),
        cli_args={"base_dir": str(out), "max_workers": 2},
        client=FakeCensusClient(SCENARIO),
    )

    assert set(paths) == {"records", "excluded", "summary", "summary_by"}
    for path in paths.values():
        assert path.exists()
        assert path.parent == (out / "tables").resolve()

    records = pd.read_csv(paths["records"], dtype={"GEOID": str})
    assert len(records) == 4
    assert records["year"].tolist() == [2019, 2019, 2022, 2022]

    excluded = pd.read_csv(paths["excluded"], dtype={"GEOID": str})
    assert excluded.values.tolist() == [[2019, "06001400300"]]

    summary = pd.read_csv(paths["summary"])
    assert summary["category"].tolist() == ["50% to 75%", "Less than 25%"]
    assert summary["count"].sum() == 4

    by_year = pd.read_csv(paths["summary_by"])
    assert list(by_year.columns) == ["year", "category", "count", "percentage"]

    assert list((out / "logs").glob("acspipe_*.log"))


def test_cli_args_override_user_config(user_config_file, temp_dir):
    client = FakeCensusClient({2021: SCENARIO[2022]})
    paths = run_acs_pipeline(
        str(user_config_file),
        cli_args={"years": [2021], "base_dir": str(temp_dir)},
        client=client,
    )
    records = pd.read_csv(paths["records"])
    assert records["year"].unique().tolist() == [2021]


def test_missing_policy_is_reported(temp_dir):
    path = temp_dir / "no_policy.py"
    path.write_text('CONFIG = {"YEARS": [2019]}\n')
    with pytest.raises(ConfigurationError, match="zero-denominator"):
        run_acs_pipeline(str(path), cli_args={"base_dir": str(temp_dir)},
                         client=FakeCensusClient({}))
