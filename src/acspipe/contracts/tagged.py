"""Aggregation stage contract."""

from typing import Sequence

import pandas as pd
from acspipe.contracts.base import require


def assert_tagged(df: pd.DataFrame, tag_col: str, values: Sequence) -> None:
    """Enforce aggregation stage contract.

    Every record carries a tag, every tag is one of the submitted dimension
    values, and tag groups appear in submission order.
    """
    require(
        tag_col in df.columns,
        f"Aggregation contract violated: missing tag column '{tag_col}'"
    )
    if len(df) == 0:
        return

    tags = df[tag_col]
    require(
        bool(tags.isin(list(values)).all()),
        "Aggregation contract violated: record tagged with an unsubmitted dimension value"
    )
    position = {value: i for i, value in enumerate(values)}
    order = tags.map(position)
    require(
        bool(order.is_monotonic_increasing),
        "Aggregation contract violated: tag groups out of submission order"
    )
