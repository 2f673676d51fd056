"""Pipeline execution.

- aggregator: Per-dimension-value fan-out and tagging
- orchestrator: End-to-end pipeline runs
"""

from acspipe.pipeline.aggregator import AggregateResult, DimensionalAggregator, DimensionOutcome
from acspipe.pipeline.orchestrator import PipelineOrchestrator, PipelineResult, run_pipeline

__all__ = [
    "AggregateResult",
    "DimensionalAggregator",
    "DimensionOutcome",
    "PipelineOrchestrator",
    "PipelineResult",
    "run_pipeline",
]
