"""Core ACS pipeline execution logic.

This module contains the actual pipeline runner, separated from argument parsing.
Scripts are thin wrappers; this is the real implementation.
"""

import json
import logging
import importlib.util
from pathlib import Path
from typing import Optional, Dict, Any

from acspipe.census.client import CensusClient
from acspipe.setup_directories import setup_output_directories, get_table_path
from acspipe.pipeline.orchestrator import PipelineOrchestrator
from acspipe.schemas import resolve_config, ParamConfig, UserConfig, CLIConfig

__all__ = ['load_user_config_dict', 'run_acs_pipeline']

logger = logging.getLogger(__name__)


def load_user_config_dict(config_path: str) -> dict:
    """Load user config dict from Python file.

    Returns the raw dict before Pydantic validation.

    Parameters
    ----------
    config_path : str
        Path to user config Python file containing CONFIG dict.

    Returns
    -------
    dict
        Raw user configuration dictionary.

    Raises
    ------
    FileNotFoundError
        If config file does not exist.
    ValueError
        If no CONFIG dict found in file.
    """
    path = Path(config_path)
    if not path.exists():
        raise FileNotFoundError(f"Config not found: {path}")

    spec = importlib.util.spec_from_file_location("config_module", path)
    module = importlib.util.module_from_spec(spec)
    spec.loader.exec_module(module)

    # Find CONFIG dict
    for name in dir(module):
        if name.startswith('CONFIG'):
            obj = getattr(module, name)
            if isinstance(obj, dict):
                return obj

    raise ValueError(f"No CONFIG dict found in {path}")


def run_acs_pipeline(
    user_config_path: str,
    cli_args: Optional[Dict[str, Any]] = None,
    verbose: bool = False,
    client: Optional[CensusClient] = None,
) -> Dict[str, Path]:
    """Execute the ACS pipeline and write its tables.

    This is the core pipeline execution function. It:
    1. Loads and resolves configuration (Param < User < CLI)
    2. Sets up output directories
    3. Runs the pipeline for every dimension value
    4. Writes the tagged table, excluded records and category summaries as CSV

    Parameters
    ----------
    user_config_path : str
        Path to user config file (Python file with CONFIG dict).

    cli_args : dict, optional
        CLI argument overrides. Keys: years, counties, state, base_dir,
        api_key, max_workers, log_level. All optional.

    verbose : bool, optional
        If True, enable DEBUG logging and print full resolved config.

    client : CensusClient, optional
        Data source. Defaults to the Census Data API.

    Returns
    -------
    dict
        Written file paths: 'records', 'excluded', 'summary', 'summary_by'.

    Raises
    ------
    FileNotFoundError
        If user_config_path does not exist.
    ConfigurationError
        If configuration validation fails.
    PipelineError
        If any dimension value fails.

    Examples
    --------
    Run with user config only::

        run_acs_pipeline("scripts/user_config.py")

    Run with CLI overrides::

        run_acs_pipeline(
            "scripts/user_config.py",
            cli_args={"years": [2018, 2023], "max_workers": 2},
        )
    """
    # Load configurations
    param_cfg = ParamConfig()  # Expert defaults

    user_cfg_dict = load_user_config_dict(user_config_path)
    user_cfg = UserConfig.model_validate(user_cfg_dict)

    cli_args = dict(cli_args or {})
    if verbose and "log_level" not in cli_args:
        cli_args["log_level"] = "DEBUG"

    # Filter None values
    cli_dict = {k: v for k, v in cli_args.items() if v is not None}
    cli_cfg = CLIConfig.model_validate(cli_dict) if cli_dict else CLIConfig()

    # Resolve to internal config (Param < User < CLI)
    config = resolve_config(param_cfg, user_cfg, cli_cfg)

    output_dirs = setup_output_directories(config.output.base_dir)

    print(f"\n{'='*60}")
    print("ACS Pipeline")
    print('='*60)
    print(f"Config:    {user_config_path}")
    print(f"Dimension: {config.dimension.name} = {config.dimension.values}")
    print(f"Metric:    {config.metric.numerator} / {config.metric.denominator}")
    print(f"Policy:    {config.metric.zero_denominator}")
    print(f"Output:    {output_dirs['base']}")
    print('='*60)

    if verbose:
        print("\nFull Internal Configuration:")
        print(json.dumps(config.model_dump(exclude={"api": {"api_key"}}), indent=2, default=str))
        print('='*60)

    orchestrator = PipelineOrchestrator(config, client, log_dir=output_dirs["logs"])
    result = orchestrator.run()

    tag = result.tag_column
    paths = {
        "records": get_table_path(output_dirs, config.output.table_name),
        "excluded": get_table_path(output_dirs, config.output.table_name, suffix="excluded"),
        "summary": get_table_path(output_dirs, config.output.summary_name),
        "summary_by": get_table_path(output_dirs, config.output.summary_name, suffix=tag),
    }

    result.records.drop(columns=[config.columns.geometry], errors="ignore").to_csv(
        paths["records"], index=False
    )
    result.excluded.to_csv(paths["excluded"], index=False)
    orchestrator.summarize(result).to_csv(paths["summary"], index=False)
    orchestrator.summarize(result, by=tag).to_csv(paths["summary_by"], index=False)

    for key, path in paths.items():
        logger.info("Wrote %s: %s", key, path)
    return paths
