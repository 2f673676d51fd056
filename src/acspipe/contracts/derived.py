"""Derived metric contract.

Enforces the guarantee that every record leaving the derive stage has a
ratio value defined by the configured zero-denominator policy.
"""

import numpy as np
import pandas as pd
from acspipe.contracts.base import require


def assert_derived(df: pd.DataFrame, ratio_col: str, denominator_col: str,
                   policy: str) -> None:
    """Enforce derive stage contract.

    Parameters
    ----------
    df : pd.DataFrame
        Output of ``DerivedMetricComputer.compute()``.

    ratio_col : str
        Name of the computed ratio column.

    denominator_col : str
        Name of the denominator column.

    policy : str
        Zero-denominator policy value the table was derived with.

    Raises
    ------
    ContractViolation
        If a ratio is missing where the policy says it must be defined
    """
    require(
        ratio_col in df.columns,
        f"Derived contract violated: missing ratio column '{ratio_col}'"
    )
    if len(df) == 0:
        return

    undefined = df[ratio_col].isna()
    zero_den = df[denominator_col] == 0

    if policy == "mark_undefined":
        require(
            bool((undefined == zero_den).all()),
            "Derived contract violated: undefined ratios must match zero denominators exactly"
        )
    else:
        require(
            not bool(undefined.any()),
            f"Derived contract violated: NaN ratio under policy '{policy}'"
        )
    if policy == "exclude_row":
        require(
            not bool(zero_den.any()),
            "Derived contract violated: zero-denominator rows survived 'exclude_row'"
        )
    require(
        bool(np.isfinite(df.loc[~undefined, ratio_col]).all()),
        "Derived contract violated: non-finite ratio values"
    )
