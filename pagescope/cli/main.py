#!/usr/bin/env python3
"""Main CLI entry point for pagescope using Typer.

``pagescope <url>`` (or ``pagescope run --url <url>``) loads the page once,
prints the report and exits.
"""

import asyncio
import sys
from enum import IntEnum
from pathlib import Path
from typing import Any, Dict, List, Optional

import typer
from typing_extensions import Annotated

from .. import __version__
from ..errors import ConfigurationError
from ..harness.orchestrator import run_harness
from .config import ConfigurationLoader, print_configuration


class ExitCode(IntEnum):
    """CLI exit codes."""
    SUCCESS = 0
    CONFIG_ERROR = 3      # Configuration or setup error
    RUNTIME_ERROR = 4     # Runtime error during execution


app = typer.Typer(
    name="pagescope",
    help="pagescope - loads a page in a headless browser and reports its metrics",
    add_completion=False,
)

COMMANDS = ("run", "version")


@app.callback()
def main():
    """
    pagescope - loads a page in a headless browser and reports its metrics.
    """
    pass


@app.command(name="version")
def show_version():
    """Show version information."""
    typer.echo(f"pagescope v{__version__}")


@app.command()
def run(
    target: Annotated[
        Optional[str],
        typer.Argument(help="URL of the page to load (same as --url)")
    ] = None,

    url: Annotated[
        Optional[str],
        typer.Option("--url", help="URL of the page to load")
    ] = None,

    output_format: Annotated[
        Optional[str],
        typer.Option("--format", help="Output format: plain, json, csv or yaml")
    ] = None,

    viewport: Annotated[
        Optional[str],
        typer.Option("--viewport", help="Viewport as WIDTHxHEIGHT (default 1280x1024)")
    ] = None,

    timeout: Annotated[
        Optional[str],
        typer.Option("--timeout", help="Hard timeout in seconds (default 15)")
    ] = None,

    modules: Annotated[
        Optional[str],
        typer.Option("--modules", help="Comma separated list of modules to run")
    ] = None,

    modules_dir: Annotated[
        Optional[Path],
        typer.Option("--modules-dir", help="Extra directory with module files")
    ] = None,

    config_file: Annotated[
        Optional[Path],
        typer.Option("--config", "-c", help="Path to a YAML or JSON configuration file")
    ] = None,

    engine: Annotated[
        Optional[str],
        typer.Option("--engine", help="Browser engine: chromium, firefox or webkit")
    ] = None,

    user_agent: Annotated[
        Optional[str],
        typer.Option("--user-agent", help="User-Agent override")
    ] = None,

    headful: Annotated[
        bool,
        typer.Option("--headful", help="Run browser with GUI (for debugging)")
    ] = False,

    lenient: Annotated[
        bool,
        typer.Option("--lenient", help="Log module handler errors instead of aborting")
    ] = False,

    verbose: Annotated[
        bool,
        typer.Option("--verbose", "-v", help="Print the diagnostic log")
    ] = False,

    silent: Annotated[
        bool,
        typer.Option("--silent", "-s", help="Do not print anything")
    ] = False,

    print_config: Annotated[
        bool,
        typer.Option("--print-config", help="Print effective configuration and exit")
    ] = False,
):
    """
    Load a page and report its metrics.

    Examples:

        # Plain text report
        pagescope https://example.com

        # JSON report from selected modules only
        pagescope run --url https://example.com --format json --modules cookies,headers
    """
    cli_overrides = build_overrides(
        url=url or target,
        format=output_format,
        viewport=viewport,
        timeout=timeout,
        modules=modules,
        modules_dir=modules_dir,
        verbose=verbose or None,
        silent=silent or None,
        strict=False if lenient else None,
        browser={
            "engine": engine,
            "user_agent": user_agent,
            "headless": False if headful else None,
        },
    )

    loader = ConfigurationLoader()
    try:
        config = loader.load_configuration(
            config_file=config_file,
            cli_overrides=cli_overrides,
            search_paths=[Path.cwd()],
        )
    except ConfigurationError as e:
        typer.echo(f"Configuration error: {e}", err=True)
        raise typer.Exit(code=ExitCode.CONFIG_ERROR.value)

    if print_config:
        typer.echo("# Effective Configuration")
        typer.echo("# Loaded from: " + " -> ".join(loader.loaded_sources))
        typer.echo(print_configuration(config, "yaml"))
        raise typer.Exit()

    if not config.url:
        typer.echo("--url argument must be provided!", err=True)
        raise typer.Exit(code=ExitCode.CONFIG_ERROR.value)

    try:
        asyncio.run(run_harness(config))
    except ConfigurationError as e:
        typer.echo(f"Configuration error: {e}", err=True)
        raise typer.Exit(code=ExitCode.CONFIG_ERROR.value)
    except KeyboardInterrupt:
        typer.echo("Operation interrupted by user", err=True)
        raise typer.Exit(code=ExitCode.RUNTIME_ERROR.value)
    except Exception as e:
        typer.echo(f"Runtime error: {e}", err=True)
        raise typer.Exit(code=ExitCode.RUNTIME_ERROR.value)


def build_overrides(**values: Any) -> Dict[str, Any]:
    """Keep only the options that were actually given on the command line."""
    overrides: Dict[str, Any] = {}
    for key, value in values.items():
        if isinstance(value, dict):
            value = build_overrides(**value)
            if not value:
                continue
        if value is None:
            continue
        overrides[key] = value
    return overrides


def default_to_run(args: List[str]) -> List[str]:
    """Treat ``pagescope <url> ...`` as ``pagescope run <url> ...``."""
    if args and (args[0] in COMMANDS or args[0] == "--help"):
        return args
    return ["run", *args]


def cli_main():
    """Entry point for console script."""
    app(args=default_to_run(sys.argv[1:]), prog_name="pagescope")


if __name__ == "__main__":
    cli_main()
