"""Census data access and reshaping.

- client: Census Data API client and catalog cache
- catalog: Variable selection from the catalog
- normalizer: Long observations to one row per geography
"""

from acspipe.census.client import CensusApiClient, CachedCatalog, CensusClient
from acspipe.census.catalog import VariableCatalogFilter, select_variables
from acspipe.census.normalizer import ResponseNormalizer

__all__ = [
    "CensusApiClient",
    "CachedCatalog",
    "CensusClient",
    "VariableCatalogFilter",
    "select_variables",
    "ResponseNormalizer",
]
