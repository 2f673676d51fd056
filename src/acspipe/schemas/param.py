"""ParamConfig: Expert defaults for the ACS pipeline.

This module defines the complete default configuration. ALL pipeline
parameters must have defaults here. No runtime code should define fallback
values - this is the single source of truth for defaults.

The one deliberate gap is ``metric.zero_denominator``: the policy for zero
denominators must be declared by the user, it is never defaulted.

Runtime code NEVER reads from ParamConfig directly - it only receives InternalConfig.
"""

import re
from enum import Enum
from typing import Literal, Optional, Sequence, Union

from pydantic import Field, field_validator, model_validator
from acspipe.schemas.base import AcsBaseModel


class ZeroDenominatorPolicy(str, Enum):
    """What a derived ratio becomes when its denominator is zero."""
    TREAT_AS_ZERO = "treat_as_zero"
    MARK_UNDEFINED = "mark_undefined"
    EXCLUDE_ROW = "exclude_row"


DimensionValue = Union[int, str]


def check_thresholds(thresholds: Sequence["ThresholdConfig"],
                     out_of_range_label: str,
                     display_order: Optional[Sequence[str]] = None,
                     expected_max: Optional[float] = 1.0) -> None:
    """Validate an ordered threshold list.

    Parameters
    ----------
    expected_max : float, optional
        Top of the expected ratio range. The last bound must reach it so that
        every in-range ratio gets a threshold category. None skips the check.

    Raises
    ------
    ValueError
        If bounds are not strictly increasing or do not cover the expected
        range, labels collide, or the display order names a label that no
        threshold defines.
    """
    if not thresholds:
        raise ValueError("at least one threshold is required")

    bounds = [t.upper_bound for t in thresholds]
    for lower, upper in zip(bounds, bounds[1:]):
        if not upper > lower:
            raise ValueError(
                f"threshold bounds must be strictly increasing, got {lower} then {upper}"
            )
    if expected_max is not None and bounds[-1] < expected_max:
        raise ValueError(
            f"thresholds must cover the expected range up to {expected_max}, "
            f"last bound is {bounds[-1]}"
        )


    labels = [t.label for t in thresholds]
    if len(set(labels)) != len(labels):
        raise ValueError(f"threshold labels must be unique, got {labels}")
    if out_of_range_label in labels:
        raise ValueError(
            f"out-of-range label '{out_of_range_label}' collides with a threshold label"
        )

    if display_order is not None:
        known = set(labels) | {out_of_range_label}
        unknown = [label for label in display_order if label not in known]
        if unknown:
            raise ValueError(f"display order names unknown categories {unknown}")
        if len(set(display_order)) != len(display_order):
            raise ValueError("display order repeats a category")


# =============================================================================
# Nested Configuration Models
# =============================================================================

class QueryConfig(AcsBaseModel):
    """Query parameters for one observation fetch."""
    year: Optional[int] = Field(None, ge=2005, description="ACS end year")
    dataset: str = "acs/acs5"
    geography: str = "tract"
    state: Optional[str] = None
    county: Optional[str] = None
    include_geometry: bool = False

    @field_validator("state", "county", mode="before")
    @classmethod
    def coerce_fips_to_str(cls, v):
        """Allow ints for FIPS codes. No zero padding is inferred."""
        if v is not None and not isinstance(v, str):
            return str(v)
        return v


class QueryOverride(AcsBaseModel):
    """Per-dimension-value query overrides (all optional)."""
    year: Optional[int] = Field(None, ge=2005)
    dataset: Optional[str] = None
    geography: Optional[str] = None
    state: Optional[str] = None
    county: Optional[str] = None
    include_geometry: Optional[bool] = None

    @field_validator("state", "county", mode="before")
    @classmethod
    def coerce_fips_to_str(cls, v):
        if v is not None and not isinstance(v, str):
            return str(v)
        return v


class ApiConfig(AcsBaseModel):
    """Census Data API client settings."""
    base_url: str = "https://api.census.gov/data"
    api_key: Optional[str] = None
    timeout_sec: float = Field(30.0, gt=0)
    retries: int = Field(3, ge=1, le=10)
    backoff: float = Field(1.7, ge=1.0)
    user_agent: str = "acspipe/0.1"


class VariablePredicate(AcsBaseModel):
    """Selects one catalog variable for a logical role.

    Either an explicit ``code`` (static mapping, validated against the
    catalog) or a conjunction of concept/label conditions.
    """
    role: str = Field(min_length=1)
    code: Optional[str] = None
    concept: Optional[str] = None
    label: Optional[str] = None
    label_pattern: Optional[str] = None

    @field_validator("role")
    @classmethod
    def role_is_identifier(cls, v):
        """Roles become column names, keep them identifier-like."""
        if not v.isidentifier():
            raise ValueError(f"role '{v}' must be a valid identifier")
        return v

    @field_validator("label_pattern")
    @classmethod
    def pattern_compiles(cls, v):
        if v is not None:
            try:
                re.compile(v)
            except re.error as exc:
                raise ValueError(f"invalid label_pattern {v!r}: {exc}") from exc
        return v

    @model_validator(mode="after")
    def has_some_condition(self):
        if not any([self.code, self.concept, self.label, self.label_pattern]):
            raise ValueError(
                f"predicate for role '{self.role}' needs a code, concept, label or label_pattern"
            )
        return self


class MetricConfig(AcsBaseModel):
    """Derived ratio metric."""
    numerator: str = "severely_burdened"
    denominator: str = "renter_households"
    ratio_column: str = "ratio"
    zero_denominator: Optional[ZeroDenominatorPolicy] = None

    @field_validator("zero_denominator", mode="before")
    @classmethod
    def normalize_policy_name(cls, v):
        """Accept 'Treat-As-Zero', 'treat_as_zero', ..."""
        if isinstance(v, str):
            return v.lower().strip().replace("-", "_")
        return v


class DimensionConfig(AcsBaseModel):
    """Dimension the pipeline is repeated over."""
    name: str = "year"
    values: list[DimensionValue] = Field(default_factory=list)
    queries: dict[str, QueryOverride] = Field(default_factory=dict)
    tag_column: Optional[str] = None

    @field_validator("queries", mode="before")
    @classmethod
    def stringify_query_keys(cls, v):
        """Dimension values are looked up by str(value)."""
        if isinstance(v, dict):
            return {str(k): val for k, val in v.items()}
        return v


class ThresholdConfig(AcsBaseModel):
    """Upper bound (exclusive, except for the last) and its category label."""
    upper_bound: float
    label: str = Field(min_length=1)

    @field_validator("upper_bound", mode="before")
    @classmethod
    def coerce_bound_to_float(cls, v):
        return float(v)


class CategoriesConfig(AcsBaseModel):
    """Ratio categorisation for summary tables."""
    thresholds: list[ThresholdConfig] = Field(
        default_factory=lambda: [
            ThresholdConfig(upper_bound=0.25, label="Less than 25%"),
            ThresholdConfig(upper_bound=0.50, label="25% to 50%"),
            ThresholdConfig(upper_bound=0.75, label="50% to 75%"),
            ThresholdConfig(upper_bound=1.00, label="75% or more"),
        ]
    )
    out_of_range_label: str = "Not computed"
    display_order: Optional[list[str]] = None
    expected_max: Optional[float] = Field(
        1.0, description="Top of the ratio range; None disables the coverage check"
    )

    @model_validator(mode="after")
    def thresholds_are_valid(self):
        check_thresholds(self.thresholds, self.out_of_range_label, self.display_order,
                         self.expected_max)
        return self


class ColumnNamesConfig(AcsBaseModel):
    """Column names of the long observation table."""
    geography_id: str = "GEOID"
    name: str = "NAME"
    variable: str = "variable"
    estimate: str = "estimate"
    moe: str = "moe"
    geometry: str = "geometry"


class NormalizerConfig(AcsBaseModel):
    """Wide table shaping."""
    keep_moe: bool = False
    moe_suffix: str = "_moe"


class ExecutionConfig(AcsBaseModel):
    """Dimension fan-out settings."""
    max_workers: int = Field(1, ge=1, le=16, description="Concurrent dimension passes")


class OutputConfig(AcsBaseModel):
    """Output file configuration."""
    base_dir: Optional[str] = None
    table_name: str = "acs_tagged"
    summary_name: str = "acs_summary"


class LoggingConfig(AcsBaseModel):
    """Logging configuration."""
    level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = "INFO"


def default_variables() -> list[VariablePredicate]:
    """Rent burden example: renter households and those paying 50%+ of income."""
    concept = "Gross Rent as a Percentage of Household Income in the Past 12 Months"
    return [
        VariablePredicate(
            role="renter_households",
            concept=concept,
            label_pattern=r"^Estimate!!Total:?$",
        ),
        VariablePredicate(
            role="severely_burdened",
            concept=concept,
            label_pattern=r"^Estimate!!Total:?!!50\.0 percent or more$",
        ),
    ]


# =============================================================================
# Main ParamConfig
# =============================================================================

class ParamConfig(AcsBaseModel):
    """Complete expert configuration with all defaults.

    This is the single source of truth for all pipeline parameters.

    Usage
    -----
    This config is NOT used directly by runtime code. It serves as the
    base layer in config resolution:

        internal_cfg = resolve_config(param_cfg, user_cfg, cli_cfg)

    Runtime code only sees InternalConfig.
    """

    source: QueryConfig = Field(default_factory=QueryConfig)
    api: ApiConfig = Field(default_factory=ApiConfig)
    variables: list[VariablePredicate] = Field(default_factory=default_variables)
    metric: MetricConfig = Field(default_factory=MetricConfig)
    dimension: DimensionConfig = Field(default_factory=DimensionConfig)
    categories: CategoriesConfig = Field(default_factory=CategoriesConfig)
    columns: ColumnNamesConfig = Field(default_factory=ColumnNamesConfig)
    normalizer: NormalizerConfig = Field(default_factory=NormalizerConfig)
    execution: ExecutionConfig = Field(default_factory=ExecutionConfig)
    output: OutputConfig = Field(default_factory=OutputConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)
