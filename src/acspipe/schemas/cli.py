"""CLIConfig: Command-line operational overrides.

Minimal configuration for operational parameters that commonly change
between runs: dimension values, state, output paths, verbosity.

This schema handles command-line arguments parsed by argparse.
"""

from typing import Literal, Optional

from pydantic import Field, field_validator, model_validator
from acspipe.schemas.base import AcsBaseModel


class CLIConfig(AcsBaseModel):
    """Command-line configuration overrides.

    Operational-only settings that override user and param configs.
    Highest priority in config resolution.

    Usage
    -----
        cli_cfg = CLIConfig(
            years=[2019, 2022],
            state="06",
            base_dir="/scratch/acs_output",
        )

        internal = resolve_config(param_cfg, user_cfg, cli_cfg)
    """

    years: Optional[list[int]] = None
    counties: Optional[list[str]] = None
    state: Optional[str] = None
    base_dir: Optional[str] = None
    api_key: Optional[str] = None
    max_workers: Optional[int] = Field(None, ge=1)
    log_level: Optional[Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]] = None

    @field_validator("counties", mode="before")
    @classmethod
    def coerce_counties(cls, v):
        if isinstance(v, (list, tuple)):
            return [str(c) for c in v]
        return v

    @model_validator(mode="after")
    def single_dimension(self):
        if self.years is not None and self.counties is not None:
            raise ValueError("--years and --counties are mutually exclusive")
        return self

    def to_internal_overrides(self) -> dict:
        """Convert CLI config to internal config structure.

        Returns
        -------
        dict
            Nested dictionary matching InternalConfig structure
        """
        overrides = {}

        if self.years is not None:
            overrides["dimension"] = {"name": "year", "values": self.years}
        if self.counties is not None:
            overrides["dimension"] = {"name": "county", "values": self.counties}

        if self.state is not None:
            overrides["source"] = {"state": self.state}

        if self.base_dir is not None:
            overrides["output"] = {"base_dir": str(self.base_dir)}

        if self.api_key is not None:
            overrides["api"] = {"api_key": self.api_key}

        if self.max_workers is not None:
            overrides["execution"] = {"max_workers": self.max_workers}

        if self.log_level is not None:
            overrides["logging"] = {"level": self.log_level}

        return overrides
