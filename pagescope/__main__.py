"""Allow ``python -m pagescope``."""

from .cli.main import cli_main

cli_main()
