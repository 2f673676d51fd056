"""Select variable codes from an ACS variable catalog.

A catalog lists every published variable of one survey year and dataset
(tens of thousands of rows). Each logical role of the pipeline (for example
``renter_households``) is bound to exactly one catalog code, either through
an explicit code or through concept/label predicates. Ambiguity is always
surfaced, never resolved by picking the first match.
"""

import logging
import re
from typing import Sequence, TYPE_CHECKING

import pandas as pd

from acspipe.contracts.failure import ConfigurationError, FetchError

if TYPE_CHECKING:
    from acspipe.schemas import VariablePredicate

__all__ = ['VariableCatalogFilter', 'select_variables']

logger = logging.getLogger(__name__)

CATALOG_COLUMNS = ("code", "concept", "label")


def _normalize_concept(text) -> str:
    # Concept titles changed case between vintages (2019 upper, 2023 title case)
    return " ".join(str(text).split()).casefold()


class VariableCatalogFilter:
    """Resolve an ordered list of predicates against a catalog.

    Parameters
    ----------
    predicates : sequence of VariablePredicate
        One predicate per role, in the order the codes should be returned.

    Examples
    --------
    >>> flt = VariableCatalogFilter(config.variables)
    >>> codes = flt.select(catalog)
    >>> flt.mapping(catalog)
    {'B25070_001E': 'renter_households', 'B25070_010E': 'severely_burdened'}
    """

    def __init__(self, predicates: Sequence["VariablePredicate"]):
        self.predicates = list(predicates)

    def _match(self, catalog: pd.DataFrame, predicate: "VariablePredicate") -> pd.DataFrame:
        mask = pd.Series(True, index=catalog.index)
        if predicate.code is not None:
            mask &= catalog["code"] == predicate.code
        if predicate.concept is not None:
            wanted = _normalize_concept(predicate.concept)
            mask &= catalog["concept"].map(_normalize_concept) == wanted
        if predicate.label is not None:
            mask &= catalog["label"].astype(str).str.strip() == predicate.label
        if predicate.label_pattern is not None:
            pattern = re.compile(predicate.label_pattern)
            mask &= catalog["label"].astype(str).map(lambda s: pattern.search(s) is not None)
        return catalog.loc[mask]

    def select(self, catalog: pd.DataFrame) -> list[str]:
        """Return one code per predicate, in predicate-declaration order.

        Raises
        ------
        ConfigurationError
            If a predicate matches no entry or more than one entry.
        FetchError
            If the catalog lacks the code/concept/label columns.
        """
        missing = [c for c in CATALOG_COLUMNS if c not in catalog.columns]
        if missing:
            raise FetchError(f"catalog lacks columns {missing}", stage="select")

        codes = []
        for predicate in self.predicates:
            matches = self._match(catalog, predicate)
            if len(matches) == 0:
                if predicate.code is not None:
                    detail = f"code '{predicate.code}' not found in catalog or conditions not met"
                else:
                    detail = "no catalog entry matches"
                raise ConfigurationError(detail, stage="select", key=predicate.role)
            if len(matches) > 1:
                found = matches["code"].tolist()
                shown = found[:10]
                more = f" (+{len(found) - 10} more)" if len(found) > 10 else ""
                raise ConfigurationError(
                    f"ambiguous selection, {len(found)} entries match: {shown}{more}",
                    stage="select",
                    key=predicate.role,
                )
            code = matches["code"].iloc[0]
            logger.debug("Role %s -> %s", predicate.role, code)
            codes.append(code)

        if len(set(codes)) != len(codes):
            duplicated = sorted({c for c in codes if codes.count(c) > 1})
            raise ConfigurationError(
                f"several roles resolve to the same code {duplicated}", stage="select"
            )
        return codes

    def mapping(self, catalog: pd.DataFrame) -> dict[str, str]:
        """Return the code -> role mapping for the selected codes."""
        codes = self.select(catalog)
        return {code: p.role for code, p in zip(codes, self.predicates)}


def select_variables(catalog: pd.DataFrame,
                     predicates: Sequence["VariablePredicate"]) -> list[str]:
    """Functional form of ``VariableCatalogFilter(predicates).select(catalog)``."""
    return VariableCatalogFilter(predicates).select(catalog)
