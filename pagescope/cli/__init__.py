"""CLI package for pagescope.

This package provides the command-line interface: option parsing,
configuration loading with precedence and the entry point running a harness.
"""

from .config import ConfigurationLoader, load_configuration, print_configuration
from .main import ExitCode, app, cli_main

__all__ = [
    'ExitCode',
    'ConfigurationLoader',
    'app',
    'cli_main',
    'load_configuration',
    'print_configuration',
]
