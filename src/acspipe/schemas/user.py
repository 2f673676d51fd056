"""UserConfig: Forgiving, minimal user-facing configuration.

This schema accepts user inputs in a variety of formats, with aliases
for common naming patterns (e.g., YEARS → years, STATE → state).

UserConfig is intentionally minimal - users only specify what they want
to override from the expert defaults. Validation is lenient to accept
both uppercase and lowercase keys, ints where strings are expected, etc.
"""

from typing import Any, Optional, Union

from pydantic import Field, field_validator, model_validator
from acspipe.schemas.base import AcsBaseModel


class UserSourceConfig(AcsBaseModel):
    """User-facing query defaults."""
    year: Optional[int] = None
    dataset: Optional[str] = None
    geography: Optional[str] = None
    state: Optional[str] = None
    county: Optional[str] = None
    include_geometry: Optional[bool] = None

    @field_validator("state", "county", mode="before")
    @classmethod
    def coerce_fips(cls, v):
        if v is not None and not isinstance(v, str):
            return str(v)
        return v


class UserDimensionConfig(AcsBaseModel):
    """User-facing dimension config."""
    name: Optional[str] = None
    values: Optional[list[Union[int, str]]] = None
    queries: Optional[dict[str, dict[str, Any]]] = None
    tag_column: Optional[str] = None

    @field_validator("queries", mode="before")
    @classmethod
    def stringify_keys(cls, v):
        if isinstance(v, dict):
            return {str(k): val for k, val in v.items()}
        return v


class UserMetricConfig(AcsBaseModel):
    """User-facing metric config."""
    numerator: Optional[str] = None
    denominator: Optional[str] = None
    ratio_column: Optional[str] = None
    zero_denominator: Optional[str] = None


class UserCategoriesConfig(AcsBaseModel):
    """User-facing categorisation config."""
    thresholds: Optional[list[Any]] = None
    out_of_range_label: Optional[str] = None
    display_order: Optional[list[str]] = None
    expected_max: Optional[float] = None


def _threshold_to_dict(item):
    """Accept (bound, label) pairs as well as dicts."""
    if isinstance(item, (list, tuple)) and len(item) == 2:
        return {"upper_bound": item[0], "label": item[1]}
    return item


class UserConfig(AcsBaseModel):
    """User-facing configuration schema.

    Minimal, forgiving, and uses common aliases. Users only specify
    what they want to override from ParamConfig defaults.

    Usage
    -----
        user_cfg = UserConfig(
            YEARS=[2019, 2022],
            STATE="06",
            COUNTY="001",
            ZERO_DENOMINATOR_POLICY="exclude_row",
        )

        internal = resolve_config(param_cfg, user_cfg, cli_cfg)
    """

    # Dimension (flat aliases, mutually exclusive)
    years: Optional[list[int]] = Field(None, alias="YEARS")
    counties: Optional[list[str]] = Field(None, alias="COUNTIES")

    # Query settings (flat aliases)
    year: Optional[int] = Field(None, alias="YEAR")
    dataset: Optional[str] = Field(None, alias="DATASET")
    geography: Optional[str] = Field(None, alias="GEOGRAPHY")
    state: Optional[str] = Field(None, alias="STATE")
    county: Optional[str] = Field(None, alias="COUNTY")
    include_geometry: Optional[bool] = Field(None, alias="INCLUDE_GEOMETRY")
    api_key: Optional[str] = Field(None, alias="API_KEY")

    # Variables and metric
    variables: Optional[list[dict[str, Any]]] = Field(None, alias="VARIABLES")
    numerator: Optional[str] = Field(None, alias="NUMERATOR")
    denominator: Optional[str] = Field(None, alias="DENOMINATOR")
    ratio_column: Optional[str] = Field(None, alias="RATIO_COLUMN")
    zero_denominator_policy: Optional[str] = Field(None, alias="ZERO_DENOMINATOR_POLICY")

    # Categories
    thresholds: Optional[list[Any]] = Field(None, alias="THRESHOLDS")
    display_order: Optional[list[str]] = Field(None, alias="DISPLAY_ORDER")

    # Operational
    keep_moe: Optional[bool] = Field(None, alias="KEEP_MOE")
    max_workers: Optional[int] = Field(None, alias="MAX_WORKERS")
    base_dir: Optional[str] = Field(None, alias="BASE_DIR")

    # Nested overrides (advanced users)
    source: Optional[UserSourceConfig] = None
    dimension: Optional[UserDimensionConfig] = None
    metric: Optional[UserMetricConfig] = None
    categories: Optional[UserCategoriesConfig] = None

    model_config = AcsBaseModel.model_config.copy()
    # Allow forgiving input dictionaries (ignore unknown legacy keys)
    model_config.update({"populate_by_name": True, "extra": "ignore"})

    @field_validator("state", "county", mode="before")
    @classmethod
    def coerce_fips(cls, v):
        """Accept ints for FIPS codes."""
        if v is not None and not isinstance(v, str):
            return str(v)
        return v

    @field_validator("counties", mode="before")
    @classmethod
    def coerce_counties(cls, v):
        if isinstance(v, (list, tuple)):
            return [str(c) for c in v]
        return v

    @field_validator("zero_denominator_policy", mode="before")
    @classmethod
    def normalize_policy(cls, v):
        """Normalize policy names to lowercase snake case."""
        if isinstance(v, str):
            return v.lower().strip().replace("-", "_")
        return v

    @model_validator(mode="after")
    def single_dimension(self):
        """YEARS and COUNTIES both define the dimension; only one may be given."""
        if self.years is not None and self.counties is not None:
            raise ValueError("YEARS and COUNTIES are mutually exclusive")
        return self

    def to_internal_overrides(self) -> dict:
        """Convert flat UserConfig to nested InternalConfig structure.

        Returns
        -------
        dict
            Nested dictionary matching InternalConfig structure
        """
        overrides = {}

        # Source section
        source = {}
        for field in ("year", "dataset", "geography", "state", "county", "include_geometry"):
            value = getattr(self, field)
            if value is not None:
                source[field] = value
        if self.source is not None:
            source.update(self.source.model_dump(exclude_none=True))
        if source:
            overrides["source"] = source

        if self.api_key is not None:
            overrides["api"] = {"api_key": self.api_key}

        if self.variables is not None:
            overrides["variables"] = self.variables

        # Dimension section
        dimension = {}
        if self.years is not None:
            dimension["name"] = "year"
            dimension["values"] = self.years
        if self.counties is not None:
            dimension["name"] = "county"
            dimension["values"] = self.counties
        if self.dimension is not None:
            dimension.update(self.dimension.model_dump(exclude_none=True))
        if dimension:
            overrides["dimension"] = dimension

        # Metric section
        metric = {}
        if self.numerator is not None:
            metric["numerator"] = self.numerator
        if self.denominator is not None:
            metric["denominator"] = self.denominator
        if self.ratio_column is not None:
            metric["ratio_column"] = self.ratio_column
        if self.zero_denominator_policy is not None:
            metric["zero_denominator"] = self.zero_denominator_policy
        if self.metric is not None:
            metric.update(self.metric.model_dump(exclude_none=True))
        if metric:
            overrides["metric"] = metric

        # Categories section
        categories = {}
        if self.thresholds is not None:
            categories["thresholds"] = [_threshold_to_dict(t) for t in self.thresholds]
        if self.display_order is not None:
            categories["display_order"] = self.display_order
        if self.categories is not None:
            nested = self.categories.model_dump(exclude_none=True)
            if "thresholds" in nested:
                nested["thresholds"] = [_threshold_to_dict(t) for t in nested["thresholds"]]
            categories.update(nested)
        if categories:
            overrides["categories"] = categories

        if self.keep_moe is not None:
            overrides["normalizer"] = {"keep_moe": self.keep_moe}
        if self.max_workers is not None:
            overrides["execution"] = {"max_workers": self.max_workers}
        if self.base_dir is not None:
            overrides["output"] = {"base_dir": str(self.base_dir)}

        return overrides
