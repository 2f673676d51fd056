"""
Directory setup for ACS pipeline outputs.

Flat structure under one base directory:
- tables/: tagged records, excluded records and category summaries (CSV)
- logs/: one log file per run, timestamped
"""

import logging
from datetime import datetime
from pathlib import Path

__all__ = ['setup_output_directories', 'get_table_path']

logger = logging.getLogger(__name__)


def setup_output_directories(base_output_dir=None):
    """
    Set up the output directory structure.

    Parameters
    ----------
    base_output_dir : str or Path, optional
        Base output directory. If None, ``./output`` under the current
        working directory.

    Returns
    -------
    dict
        Dictionary with paths: 'base', 'tables', 'logs'
    """
    if base_output_dir is None:
        base_output_dir = Path.cwd() / "output"

    base_output_dir = Path(base_output_dir).expanduser().resolve()

    directories = {
        "base": base_output_dir,
        "tables": base_output_dir / "tables",
        "logs": base_output_dir / "logs",
    }

    for path in directories.values():
        path.mkdir(parents=True, exist_ok=True)

    for key, path in directories.items():
        logger.debug("Output directory %-8s: %s", key, path)

    return directories


def get_table_path(output_dirs, name, suffix=None, timestamp=None):
    """
    Get a CSV table path.

    Parameters
    ----------
    output_dirs : dict
        Output directories from setup_output_directories()
    name : str
        Base table name, e.g. 'acs_tagged'
    suffix : str, optional
        Appended after the name, e.g. 'excluded'
    timestamp : datetime, optional
        Run timestamp embedded in the filename. If None, no timestamp.

    Returns
    -------
    Path
        Full path: tables/<name>[_<suffix>][_YYYYmmdd_HHMMSS].csv

    Example
    -------
    >>> get_table_path(dirs, 'acs_summary', suffix='year')
    Path('output/tables/acs_summary_year.csv')
    """
    parts = [name]
    if suffix:
        parts.append(suffix)
    if timestamp is not None:
        parts.append(timestamp.strftime("%Y%m%d_%H%M%S"))
    return output_dirs["tables"] / ("_".join(parts) + ".csv")
