"""Command-line interface modules for ACS pipeline execution.

This package contains core execution logic, making scripts/ optional and deletable.
"""

from acspipe.cli.run_acs import run_acs_pipeline, load_user_config_dict

__all__ = ['run_acs_pipeline', 'load_user_config_dict']
