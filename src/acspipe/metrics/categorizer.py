"""Bucket ratios into ordered categories and tabulate them.

Thresholds are upper bounds checked in ascending order: a value falls into
the first category whose bound exceeds it, and the last bound is inclusive
so that the maximum of the expected range (1.0 for a share) is classified.
Values above every bound, and ratios marked undefined upstream, go to a
designated out-of-range category. No record is dropped.
"""

import logging
from typing import Optional, Sequence, TYPE_CHECKING

import numpy as np
import pandas as pd

from acspipe.contracts import ComputationError, ConfigurationError, require
from acspipe.schemas.param import ThresholdConfig, check_thresholds

if TYPE_CHECKING:
    from acspipe.schemas import InternalConfig

__all__ = ['Categorizer', 'summarize']

logger = logging.getLogger(__name__)

SUMMARY_COLUMNS = ["category", "count", "percentage"]


def _as_thresholds(thresholds) -> list[ThresholdConfig]:
    """Accept ThresholdConfig objects, dicts or (bound, label) pairs."""
    out = []
    for item in thresholds:
        if isinstance(item, ThresholdConfig):
            out.append(item)
        elif isinstance(item, dict):
            out.append(ThresholdConfig(**item))
        else:
            bound, label = item
            out.append(ThresholdConfig(upper_bound=bound, label=label))
    return out


class Categorizer:
    """Assign each ratio to exactly one ordered category.

    Parameters
    ----------
    thresholds : sequence
        ``(upper_bound, label)`` pairs, dicts or ThresholdConfig objects,
        strictly increasing by bound.
    out_of_range_label : str
        Category for values above the last bound and for undefined ratios.
    display_order : sequence of str, optional
        Order of summary rows (e.g. most severe first). Labels not listed
        follow in threshold order, the out-of-range category last.
    expected_max : float, optional
        Top of the expected ratio range (1.0 for a share). The last bound
        must reach it. None accepts any last bound.

    Raises
    ------
    ConfigurationError
        Invalid threshold list, display order, or thresholds that stop
        short of ``expected_max``.
    """

    def __init__(self, thresholds, out_of_range_label: str = "Not computed",
                 display_order: Optional[Sequence[str]] = None,
                 expected_max: Optional[float] = 1.0):
        try:
            self.thresholds = _as_thresholds(thresholds)
            check_thresholds(self.thresholds, out_of_range_label, display_order, expected_max)
        except (ValueError, TypeError) as exc:
            raise ConfigurationError(str(exc), stage="categorize") from exc

        self.bounds = np.array([t.upper_bound for t in self.thresholds], dtype="float64")
        self.labels = [t.label for t in self.thresholds]
        self.out_of_range_label = out_of_range_label

        ordered = list(display_order or [])
        for label in self.labels + [out_of_range_label]:
            if label not in ordered:
                ordered.append(label)
        self.display_order = ordered

    @classmethod
    def from_config(cls, config: "InternalConfig") -> "Categorizer":
        cats = config.categories
        return cls(cats.thresholds, cats.out_of_range_label, cats.display_order,
                   cats.expected_max)

    @property
    def categories(self) -> list[str]:
        """Every category in threshold order, out-of-range last."""
        return self.labels + [self.out_of_range_label]

    def categorize(self, values) -> pd.Series:
        """Return an ordered categorical Series, one category per value."""
        values = pd.Series(values, dtype="float64")
        arr = values.to_numpy()

        # Number of bounds <= value == index of the first bound exceeding it
        idx = np.searchsorted(self.bounds, arr, side="right")
        last = len(self.bounds) - 1
        idx = np.where(arr == self.bounds[last], last, idx)

        codes = np.where(np.isnan(arr) | (idx > last), last + 1, idx)
        labels = np.array(self.categories, dtype=object)[codes]

        out = pd.Series(
            pd.Categorical(labels, categories=self.categories, ordered=True),
            index=values.index,
        )
        require(
            not bool(out.isna().any()),
            "Categorize contract violated: value left without a category"
        )
        return out

    def summarize(self, records: pd.DataFrame, ratio_column: str,
                  by: Optional[str] = None, excluded: int = 0) -> pd.DataFrame:
        """Tabulate category counts and percentages.

        Parameters
        ----------
        records : pd.DataFrame
            Derived or tagged records. Records removed upstream are simply
            not in this frame, so they are not in the percentage base.
        ratio_column : str
            Column holding the ratio.
        by : str, optional
            Group column (e.g. the dimension tag); percentages are then per group.
        excluded : int
            Number of records removed upstream, reported in the log next to
            the base so the exclusion is visible.

        Returns
        -------
        pd.DataFrame
            Columns ``category``, ``count``, ``percentage`` (0-100), plus
            ``by`` when grouping. Only categories that occur are listed, in
            display order.
        """
        if ratio_column not in records.columns:
            raise ComputationError(
                f"column '{ratio_column}' not found in table",
                stage="categorize",
                key=ratio_column,
            )
        if by is not None and by not in records.columns:
            raise ComputationError(
                f"column '{by}' not found in table", stage="categorize", key=by
            )

        cats = self.categorize(records[ratio_column])
        cats = cats.cat.reorder_categories(self.display_order, ordered=True)

        if by is None:
            summary = self._tabulate(cats)
        else:
            keys = records[by].reset_index(drop=True)
            parts = []
            for group, group_cats in cats.reset_index(drop=True).groupby(keys, sort=False):
                part = self._tabulate(group_cats)
                part.insert(0, by, group)
                parts.append(part)
            columns = [by] + SUMMARY_COLUMNS
            summary = pd.concat(parts, ignore_index=True) if parts else pd.DataFrame(columns=columns)

        logger.info("Summarized %d records into %d category rows (%d excluded upstream, not in base)",
                    len(records), len(summary), excluded)
        return summary

    def _tabulate(self, cats: pd.Series) -> pd.DataFrame:
        counts = cats.value_counts(sort=False)
        counts = counts[counts > 0]
        total = int(counts.sum())
        summary = pd.DataFrame({
            "category": pd.Categorical(
                counts.index.astype(str), categories=self.display_order, ordered=True
            ),
            "count": counts.to_numpy().astype("int64"),
        })
        summary["percentage"] = summary["count"] * 100.0 / total if total else 0.0
        return summary.sort_values("category", ignore_index=True)


def summarize(records: pd.DataFrame, ratio_column: str, thresholds,
              display_order: Optional[Sequence[str]] = None,
              out_of_range_label: str = "Not computed",
              by: Optional[str] = None, excluded: int = 0,
              expected_max: Optional[float] = 1.0) -> pd.DataFrame:
    """Categorize ``records[ratio_column]`` and tabulate counts and percentages.

    Functional form of ``Categorizer(...).summarize(...)``.

    Examples
    --------
    >>> summarize(derived, "ratio", [(0.25, "Less than 25%"), (1.0, "25% or more")])
            category  count  percentage
    0  Less than 25%      2       100.0
    """
    categorizer = Categorizer(thresholds, out_of_range_label, display_order, expected_max)
    return categorizer.summarize(records, ratio_column, by=by, excluded=excluded)
