"""Derived ratio metrics with an explicit zero-denominator policy.

A ratio such as the share of renter households paying 50% or more of income
on rent is ``numerator / denominator``. Small geographies regularly report a
denominator of zero; what the ratio becomes then is a choice the caller makes
once per pipeline configuration:

- ``treat_as_zero``: ratio is 0.0
- ``mark_undefined``: ratio is NaN, reported as undefined downstream
- ``exclude_row``: the geography leaves the table and is listed as excluded
"""

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING

import numpy as np
import pandas as pd

from acspipe.contracts import ComputationError, ConfigurationError, assert_derived
from acspipe.schemas.param import ZeroDenominatorPolicy

if TYPE_CHECKING:
    from acspipe.schemas import InternalConfig

__all__ = ['DerivedMetricComputer', 'DerivedTable']

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DerivedTable:
    """Output of one derive pass.

    Attributes
    ----------
    records : pd.DataFrame
        Wide table plus the ratio column.
    excluded : tuple of str
        Geography ids removed by the ``exclude_row`` policy, in input order.
        Always empty for the other policies.
    """
    records: pd.DataFrame
    excluded: tuple = ()


class DerivedMetricComputer:
    """Compute ``numerator / denominator`` for every geography.

    Parameters
    ----------
    numerator, denominator : str
        Column names in the wide table.
    policy : ZeroDenominatorPolicy or str
        Applied uniformly to every record this instance processes.
    ratio_column : str
        Name of the output column.
    geography_col : str
        Geography id column, used to attribute errors and exclusions.

    Examples
    --------
    >>> computer = DerivedMetricComputer("severely_burdened", "renter_households",
    ...                                  "treat_as_zero")
    >>> computer.compute(wide).records["ratio"].round(4).tolist()
    [0.2052, 0.1183]
    """

    def __init__(self, numerator: str, denominator: str, policy,
                 ratio_column: str = "ratio", geography_col: str = "GEOID"):
        try:
            self.policy = ZeroDenominatorPolicy(policy)
        except ValueError as exc:
            allowed = [p.value for p in ZeroDenominatorPolicy]
            raise ConfigurationError(
                f"unknown zero-denominator policy {policy!r}; expected one of {allowed}",
                stage="derive",
            ) from exc
        self.numerator = numerator
        self.denominator = denominator
        self.ratio_column = ratio_column
        self.geography_col = geography_col

    @classmethod
    def from_config(cls, config: "InternalConfig") -> "DerivedMetricComputer":
        metric = config.metric
        return cls(
            numerator=metric.numerator,
            denominator=metric.denominator,
            policy=metric.zero_denominator,
            ratio_column=metric.ratio_column,
            geography_col=config.columns.geography_id,
        )

    def _operand(self, df: pd.DataFrame, column: str, dimension) -> pd.Series:
        if column not in df.columns:
            raise ComputationError(
                f"column '{column}' not found in table", dimension=dimension, key=column
            )
        values = pd.to_numeric(df[column], errors="coerce").astype("float64")

        bad = values.isna() | (values < 0)
        if bad.any():
            idx = bad.idxmax()
            geo = df.at[idx, self.geography_col] if self.geography_col in df.columns else idx
            raise ComputationError(
                f"'{column}' is {df.at[idx, column]!r}; expected a non-negative number",
                dimension=dimension,
                key=geo,
            )
        return values

    def compute(self, wide: pd.DataFrame, dimension=None) -> DerivedTable:
        """Add the ratio column to a wide table.

        Parameters
        ----------
        wide : pd.DataFrame
            Output of the normalizer. Not modified.
        dimension : optional
            Dimension value, only used to attribute errors.

        Returns
        -------
        DerivedTable

        Raises
        ------
        ComputationError
            Missing numerator/denominator column, or a missing or negative value.
        """
        num = self._operand(wide, self.numerator, dimension)
        den = self._operand(wide, self.denominator, dimension)

        positive = (den > 0).to_numpy()
        ratio = np.full(len(wide), np.nan, dtype="float64")
        ratio[positive] = num.to_numpy()[positive] / den.to_numpy()[positive]

        out = wide.copy()
        excluded = ()
        zero_count = int((~positive).sum())

        if self.policy is ZeroDenominatorPolicy.TREAT_AS_ZERO:
            ratio[~positive] = 0.0
            out[self.ratio_column] = ratio
        elif self.policy is ZeroDenominatorPolicy.MARK_UNDEFINED:
            out[self.ratio_column] = ratio
        else:
            out[self.ratio_column] = ratio
            if self.geography_col in out.columns:
                excluded = tuple(out.loc[~positive, self.geography_col].tolist())
            else:
                excluded = tuple(out.index[~positive].tolist())
            out = out.loc[positive].reset_index(drop=True)

        if zero_count:
            logger.info("%d zero-denominator records handled with policy '%s'%s",
                        zero_count, self.policy.value,
                        f" (dimension={dimension})" if dimension is not None else "")

        assert_derived(out, self.ratio_column, self.denominator, self.policy.value)
        return DerivedTable(records=out, excluded=excluded)
