"""InternalConfig: Authoritative runtime configuration.

This is the ONLY config schema that runtime code sees. It is fully validated,
normalized, and contains NO optional fields that processing code depends on.

All .get() calls, fallback defaults, and validation logic are FORBIDDEN in
runtime code - everything is explicit here.
"""

from typing import Optional

from pydantic import ConfigDict, Field, model_validator
from acspipe.schemas.base import AcsBaseModel
from acspipe.schemas.param import (
    ApiConfig,
    CategoriesConfig,
    ColumnNamesConfig,
    DimensionValue,
    ExecutionConfig,
    LoggingConfig,
    NormalizerConfig,
    OutputConfig,
    QueryConfig,
    QueryOverride,
    VariablePredicate,
    ZeroDenominatorPolicy,
)

# Dimensions whose value maps directly onto a query field
DIRECT_DIMENSIONS = {"year": "year", "county": "county"}


class InternalMetricConfig(AcsBaseModel):
    """Runtime ratio metric. The zero-denominator policy is mandatory."""
    numerator: str
    denominator: str
    ratio_column: str
    zero_denominator: ZeroDenominatorPolicy


class InternalDimensionConfig(AcsBaseModel):
    """Runtime dimension: at least one value, tag column resolved."""
    name: str
    values: list[DimensionValue] = Field(min_length=1)
    queries: dict[str, QueryOverride]
    tag_column: str

    @model_validator(mode="before")
    @classmethod
    def default_tag_column(cls, data):
        """Tag column defaults to the dimension name."""
        if isinstance(data, dict) and not data.get("tag_column"):
            data = dict(data)
            data["tag_column"] = data.get("name")
        return data


# =============================================================================
# Main InternalConfig
# =============================================================================

class InternalConfig(AcsBaseModel):
    """Authoritative runtime configuration.

    This is the ONLY configuration schema that processing code sees.
    It is fully validated, immutable, and contains explicit values for
    all parameters (no None for fields that runtime depends on).

    Usage
    -----
    Runtime modules receive InternalConfig and access fields directly:

        def __init__(self, config: InternalConfig):
            self.policy = config.metric.zero_denominator  # NOT .get()
            self.geo_col = config.columns.geography_id

    Rules
    -----
    - NO .get() calls
    - NO fallback defaults
    - NO validation

    All of that happens during config resolution, not in runtime code.
    """

    source: QueryConfig
    api: ApiConfig
    variables: list[VariablePredicate] = Field(min_length=1)
    metric: InternalMetricConfig
    dimension: InternalDimensionConfig
    categories: CategoriesConfig
    columns: ColumnNamesConfig
    normalizer: NormalizerConfig
    execution: ExecutionConfig
    output: OutputConfig
    logging: LoggingConfig

    model_config = ConfigDict(
        extra='forbid',
        validate_assignment=True,
        use_enum_values=True,
        str_strip_whitespace=True,
        frozen=True,  # Immutable after construction
    )

    @property
    def roles(self) -> list[str]:
        """Role names in predicate-declaration order."""
        return [p.role for p in self.variables]

    @model_validator(mode="after")
    def roles_are_consistent(self):
        roles = self.roles
        duplicates = sorted({r for r in roles if roles.count(r) > 1})
        if duplicates:
            raise ValueError(f"duplicate variable roles {duplicates}")

        for field in ("numerator", "denominator"):
            role = getattr(self.metric, field)
            if role not in roles:
                raise ValueError(f"metric {field} '{role}' is not a declared variable role")

        reserved = {
            self.columns.geography_id,
            self.columns.name,
            self.columns.geometry,
            self.dimension.tag_column,
        }
        clashes = reserved.intersection(roles + [self.metric.ratio_column])
        if clashes:
            raise ValueError(f"column names {sorted(clashes)} collide with reserved columns")
        if self.metric.ratio_column in roles:
            raise ValueError(f"ratio column '{self.metric.ratio_column}' collides with a role")
        return self

    @model_validator(mode="after")
    def dimension_is_resolvable(self):
        keys = [str(v) for v in self.dimension.values]
        if len(set(keys)) != len(keys):
            raise ValueError(f"duplicate dimension values in {self.dimension.values}")

        unknown = set(self.dimension.queries) - set(keys)
        if unknown:
            raise ValueError(f"queries given for unknown dimension values {sorted(unknown)}")

        for value in self.dimension.values:
            if self.dimension.name not in DIRECT_DIMENSIONS and str(value) not in self.dimension.queries:
                raise ValueError(
                    f"dimension '{self.dimension.name}' value {value!r} needs an explicit query entry"
                )
            if self.query_for(value).year is None:
                raise ValueError(f"no survey year resolved for dimension value {value!r}")
        return self

    def query_for(self, value: DimensionValue) -> QueryConfig:
        """Resolve the query parameters for one dimension value.

        The base ``source`` query is specialised by the dimension value
        (``year`` or ``county``) and then by any explicit per-value entry in
        ``dimension.queries``.
        """
        query = self.source.model_dump()
        target = DIRECT_DIMENSIONS.get(self.dimension.name)
        if target == "year":
            query["year"] = int(value)
        elif target == "county":
            query["county"] = str(value)

        override: Optional[QueryOverride] = self.dimension.queries.get(str(value))
        if override is not None:
            query.update(override.model_dump(exclude_none=True))
        return QueryConfig.model_validate(query)
