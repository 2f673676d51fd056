"""`acspipe` - American Community Survey metric pipeline.

Subpackages:
- census: Variable catalog selection, Census API client, normalization
- metrics: Ratio metrics, categories and summaries
- pipeline: Per-dimension aggregation and orchestration
- schemas: Layered pydantic configuration
- contracts: Failure types and stage invariants
"""

__version__ = "0.1.0"
