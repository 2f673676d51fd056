"""Pivot long-form ACS observations into one row per geography.

The Census API (and most ACS tooling) hands back one row per
(geography, variable) pair. Analysis wants one row per geography with one
column per variable. The pivot is strict: a geography that repeats a
variable, or lacks one, is an error rather than a silent gap.
"""

import logging
from typing import Mapping, Sequence, TYPE_CHECKING

import pandas as pd

from acspipe.contracts import NormalizationError, assert_wide

if TYPE_CHECKING:
    from acspipe.schemas import InternalConfig

__all__ = ['ResponseNormalizer']

logger = logging.getLogger(__name__)


class ResponseNormalizer:
    """Reshape long observations into a wide, one-row-per-geography table.

    Input frame columns (names from ``config.columns``)::

        GEOID | NAME (optional) | variable | estimate | moe | geometry (optional)

    Output frame::

        GEOID | NAME | <role 1> | <role 2> | ... | geometry

    Rows follow the order in which each GEOID first appears in the input.
    NAME and geometry are per-geography attributes; they are attached once,
    taken from the first observation of each geography.

    Notes
    -----
    Observations for codes that were not requested are ignored (logged as a
    warning). Everything else that would make the pivot ambiguous or
    incomplete raises ``NormalizationError``.
    """

    def __init__(self, config: "InternalConfig"):
        self.geo_col = config.columns.geography_id
        self.name_col = config.columns.name
        self.var_col = config.columns.variable
        self.est_col = config.columns.estimate
        self.moe_col = config.columns.moe
        self.geometry_col = config.columns.geometry
        self.keep_moe = config.normalizer.keep_moe
        self.moe_suffix = config.normalizer.moe_suffix

    def normalize(self, observations: pd.DataFrame, codes: Sequence[str],
                  mapping: Mapping[str, str], dimension=None) -> pd.DataFrame:
        """Pivot ``observations`` into a wide table.

        Parameters
        ----------
        observations : pd.DataFrame
            Long observations from the fetch collaborator.
        codes : sequence of str
            Requested variable codes, in output column order.
        mapping : mapping of str to str
            Variable code -> role (semantic column name).
        dimension : optional
            Dimension value, only used to attribute errors.

        Returns
        -------
        pd.DataFrame
            New frame, one row per distinct geography id.

        Raises
        ------
        NormalizationError
            Missing input columns, unmapped codes, duplicate
            (geography, variable) pairs, or geographies lacking a variable.
        """
        required = [self.geo_col, self.var_col, self.est_col]
        if self.keep_moe:
            required.append(self.moe_col)
        absent = [c for c in required if c not in observations.columns]
        if absent:
            raise NormalizationError(
                f"observations lack columns {absent}", dimension=dimension
            )

        unmapped = [c for c in codes if c not in mapping]
        if unmapped:
            raise NormalizationError(
                f"no column name mapped for codes {unmapped}", dimension=dimension
            )

        requested = observations[self.var_col].isin(codes)
        if not requested.all():
            extra = sorted(observations.loc[~requested, self.var_col].unique())
            logger.warning("Ignoring %d observations for unrequested variables %s",
                           int((~requested).sum()), extra)
        obs = observations.loc[requested]

        self._check_unique(obs, dimension)
        geo_order = pd.unique(observations[self.geo_col])
        self._check_complete(obs, codes, geo_order, dimension)

        wide = self._pivot(obs, self.est_col, codes, mapping, geo_order)
        if self.keep_moe:
            moe_names = {code: mapping[code] + self.moe_suffix for code in codes}
            moe = self._pivot(obs, self.moe_col, codes, moe_names, geo_order)
            for code in codes:
                role = mapping[code]
                wide.insert(wide.columns.get_loc(role) + 1, moe_names[code],
                            moe[moe_names[code]].to_numpy())

        wide = self._attach_attributes(wide, observations, geo_order)
        wide = wide.reset_index(drop=True)

        assert_wide(wide, self.geo_col, [mapping[c] for c in codes], len(geo_order))
        logger.debug("Normalized %d observations into %d geographies x %d variables",
                     len(obs), len(wide), len(codes))
        return wide

    def _check_unique(self, obs: pd.DataFrame, dimension) -> None:
        dup = obs.duplicated([self.geo_col, self.var_col], keep=False)
        if dup.any():
            first = obs.loc[dup].iloc[0]
            count = int(dup.sum())
            raise NormalizationError(
                f"duplicate variable '{first[self.var_col]}' "
                f"({count} duplicated observations in total)",
                dimension=dimension,
                key=first[self.geo_col],
            )

    def _check_complete(self, obs: pd.DataFrame, codes: Sequence[str],
                        geo_order, dimension) -> None:
        present = set(zip(obs[self.geo_col], obs[self.var_col]))
        for geo in geo_order:
            missing = [c for c in codes if (geo, c) not in present]
            if missing:
                raise NormalizationError(
                    f"missing variables {missing}",
                    dimension=dimension,
                    key=geo,
                )

    def _pivot(self, obs: pd.DataFrame, value_col: str, codes: Sequence[str],
               names: Mapping[str, str], geo_order) -> pd.DataFrame:
        wide = obs.pivot(index=self.geo_col, columns=self.var_col, values=value_col)
        wide = wide.reindex(index=geo_order, columns=list(codes))
        wide = wide.rename(columns=dict(names))
        wide.columns.name = None
        return wide.rename_axis(self.geo_col).reset_index()

    def _attach_attributes(self, wide: pd.DataFrame, observations: pd.DataFrame,
                           geo_order) -> pd.DataFrame:
        """Carry NAME and geometry through, once per geography."""
        carried = [c for c in (self.name_col, self.geometry_col) if c in observations.columns]
        if not carried:
            return wide

        first = observations.drop_duplicates(self.geo_col, keep="first")
        first = first.set_index(self.geo_col).reindex(geo_order)

        out = wide.copy()
        if self.name_col in carried:
            out.insert(1, self.name_col, first[self.name_col].to_numpy())
        if self.geometry_col in carried:
            out[self.geometry_col] = first[self.geometry_col].to_numpy()
        return out

