#!/usr/bin/env python3
"""ACS Pipeline Runner.

Usage:
    python scripts/run_acs_pipeline.py scripts/user_config.py
    python scripts/run_acs_pipeline.py scripts/user_config.py --years 2018 2023
    python scripts/run_acs_pipeline.py scripts/user_config.py --counties 001 075 --state 06

Note: User config in scripts/user_config.py, expert defaults in acspipe.schemas.param
"""

import sys
import argparse
from pathlib import Path

# Add src to path
project_root = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(project_root / "src"))

from acspipe.cli.run_acs import run_acs_pipeline
from acspipe.contracts import PipelineError


def main():
    parser = argparse.ArgumentParser(description="Run the ACS ratio metric pipeline")
    parser.add_argument("config", help="Path to user config file")
    dims = parser.add_mutually_exclusive_group()
    dims.add_argument("--years", type=int, nargs="+", help="Survey years to process")
    dims.add_argument("--counties", nargs="+", help="County FIPS codes to process")
    parser.add_argument("--state", help="State FIPS code")
    parser.add_argument("--base-dir", help="Output directory")
    parser.add_argument("--api-key", help="Census API key (default: $CENSUS_API_KEY)")
    parser.add_argument("--max-workers", type=int, help="Concurrent dimension values")
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    args = parser.parse_args()

    cli_args = {
        "years": args.years,
        "counties": args.counties,
        "state": args.state,
        "base_dir": args.base_dir,
        "api_key": args.api_key,
        "max_workers": args.max_workers,
    }

    try:
        paths = run_acs_pipeline(args.config, cli_args=cli_args, verbose=args.verbose)
    except PipelineError as exc:
        print(f"Pipeline failed: {exc}", file=sys.stderr)
        sys.exit(1)

    for key, path in paths.items():
        print(f"  {key:12s}: {path}")


if __name__ == "__main__":
    main()
