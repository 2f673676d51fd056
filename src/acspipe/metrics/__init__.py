"""Derived metrics and summaries.

- ratio: Ratio metrics with a zero-denominator policy
- categorizer: Ordered ratio categories and summary tables
"""

from acspipe.metrics.ratio import DerivedMetricComputer, DerivedTable
from acspipe.metrics.categorizer import Categorizer, summarize

__all__ = [
    "DerivedMetricComputer",
    "DerivedTable",
    "Categorizer",
    "summarize",
]
