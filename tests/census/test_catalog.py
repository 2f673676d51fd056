"""Variable selection from ACS catalogs."""

import pandas as pd
import pytest

from acspipe.census import VariableCatalogFilter, select_variables
from acspipe.contracts import ConfigurationError, FetchError
from acspipe.schemas import VariablePredicate
from acspipe.schemas.param import default_variables

from tests.helpers.fake_client import BURDENED_CODE, CONCEPT, RENTER_CODE, make_catalog

pytestmark = pytest.mark.unit


def test_default_predicates_select_one_code_per_role():
    codes = select_variables(make_catalog(2022), default_variables())
    assert codes == [RENTER_CODE, BURDENED_CODE]


def test_concept_match_ignores_case_and_label_colon():
    """2019 catalogs use upper-case concepts and labels without colons."""
    codes = select_variables(make_catalog(2019), default_variables())
    assert codes == [RENTER_CODE, BURDENED_CODE]


def test_codes_follow_predicate_order():
    predicates = list(reversed(default_variables()))
    codes = select_variables(make_catalog(2022), predicates)
    assert codes == [BURDENED_CODE, RENTER_CODE]


def test_mapping_binds_codes_to_roles():
    flt = VariableCatalogFilter(default_variables())
    assert flt.mapping(make_catalog(2022)) == {
        RENTER_CODE: "renter_households",
        BURDENED_CODE: "severely_burdened",
    }


def test_explicit_code_is_validated_against_catalog():
    predicates = [VariablePredicate(role="renters", code=RENTER_CODE)]
    assert select_variables(make_catalog(2022), predicates) == [RENTER_CODE]

    with pytest.raises(ConfigurationError) as exc:
        select_variables(make_catalog(2022), [VariablePredicate(role="renters", code="B99999_001E")])
    assert exc.value.key == "renters"
    assert exc.value.stage == "select"


def test_no_match_names_the_role():
    predicates = [VariablePredicate(role="owners", concept="Tenure", label="Estimate!!Total:!!Owner occupied")]
    with pytest.raises(ConfigurationError, match="no catalog entry matches") as exc:
        select_variables(make_catalog(2022), predicates)
    assert exc.value.key == "owners"


def test_ambiguous_match_lists_candidates():
    """A concept alone matches every B25070 line; that is never resolved silently."""
    predicates = [VariablePredicate(role="renters", concept=CONCEPT)]
    with pytest.raises(ConfigurationError, match="ambiguous selection, 5 entries") as exc:
        select_variables(make_catalog(2022), predicates)
    assert RENTER_CODE in str(exc.value)


def test_two_roles_on_one_code_are_rejected():
    predicates = [
        VariablePredicate(role="a", code=RENTER_CODE),
        VariablePredicate(role="b", concept=CONCEPT, label_pattern=r"^Estimate!!Total:?$"),
    ]
    with pytest.raises(ConfigurationError, match="same code"):
        select_variables(make_catalog(2022), predicates)


def test_catalog_without_label_column():
    catalog = make_catalog(2022).drop(columns=["label"])
    with pytest.raises(FetchError, match="lacks columns"):
        select_variables(catalog, default_variables())


def test_catalog_is_not_modified():
    catalog = make_catalog(2022)
    before = catalog.copy()
    select_variables(catalog, default_variables())
    pd.testing.assert_frame_equal(catalog, before)
