"""Wide table contract.

Enforces the guarantee that after normalization, the table has exactly one
row per geography and one column per requested role.
"""

from typing import Iterable

import pandas as pd
from acspipe.contracts.base import require


def assert_wide(df: pd.DataFrame, geography_col: str, roles: Iterable[str],
                expected_rows: int) -> None:
    """Enforce normalization stage contract.

    Called immediately after ``ResponseNormalizer.normalize()``.

    Parameters
    ----------
    df : pd.DataFrame
        Output of the normalizer.

    geography_col : str
        Name of the geography id column (from config).

    roles : iterable of str
        Role names that must be present as columns.

    expected_rows : int
        Number of distinct geographies in the input observations.

    Raises
    ------
    ContractViolation
        If any invariant is violated
    """
    require(
        isinstance(df, pd.DataFrame),
        f"Wide contract violated: output is {type(df)}, expected DataFrame"
    )
    require(
        geography_col in df.columns,
        f"Wide contract violated: missing '{geography_col}' column"
    )
    for role in roles:
        require(
            role in df.columns,
            f"Wide contract violated: missing role column '{role}'"
        )
    require(
        df[geography_col].is_unique,
        "Wide contract violated: geography ids are not unique"
    )
    require(
        len(df) == expected_rows,
        f"Wide contract violated: got {len(df)} rows, expected {expected_rows}"
    )
