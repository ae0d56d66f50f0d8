"""Typer application factory and CLI entry point for edgectl.

This module wires together the top-level Typer application, registers the
built-in sub-commands (``endpoints``, ``config``, ``analytics``,
``tunnel``, ``call``, ``raw``), and adds one command per endpoint category
found in the loaded definition files.

The :func:`main` function is the console-script entry point declared in
``pyproject.toml``. It installs signal handlers, loads the endpoint
registry, builds the application, and invokes it. Unhandled exceptions are
written to a crash log under the data directory.

See Also:
    :mod:`edgectl.config`: Settings resolution.
    :mod:`edgectl.output`: Output formatting initialised in :func:`main_callback`.
"""

from __future__ import annotations

import logging
import os
import signal
import sys
import traceback
from datetime import datetime
from typing import Any, Optional

import click
import typer

from edgectl import __version__
from edgectl.config import OUTPUT_FORMATS
from edgectl.definitions.registry import Registry
from edgectl.exit_codes import EXIT_GENERIC_FAILURE

ENV_LOG_LEVEL = "EDGECTL_LOG_LEVEL"

LOG_FORMAT = "%(levelname)s %(name)s: %(message)s"


def _version_callback(value: bool) -> None:
    """Print version and exit when --version is passed."""
    if value:
        typer.echo(f"edgectl {__version__}")
        raise typer.Exit()


def _configure_logging(verbose: bool = False) -> None:
    """Send library log records to stderr.

    ``WARNING`` by default, ``DEBUG`` with ``--verbose``, or whatever
    ``EDGECTL_LOG_LEVEL`` names.
    """
    level_name = os.environ.get(ENV_LOG_LEVEL, "DEBUG" if verbose else "WARNING").upper()
    level = logging.getLevelName(level_name)
    if not isinstance(level, int):
        level = logging.WARNING
    logging.basicConfig(level=level, format=LOG_FORMAT, stream=sys.stderr)
    logging.getLogger().setLevel(level)


def main_callback(
    ctx: typer.Context,
    version: bool = typer.Option(
        False,
        "--version",
        callback=_version_callback,
        is_eager=True,
        help="Show version and exit.",
    ),
    output_format: Optional[str] = typer.Option(
        None,
        "--format",
        "-f",
        click_type=click.Choice(OUTPUT_FORMATS, case_sensitive=False),
        help="Output format.",
    ),
    json_output: bool = typer.Option(
        False, "--json", help="JSON output format (same as --format json)."
    ),
    zone: Optional[str] = typer.Option(
        None, "--zone", "-z", help="Zone name or ID used for zone_id parameters."
    ),
    no_color: bool = typer.Option(
        False, "--no-color", help="Disable color output."
    ),
    quiet: bool = typer.Option(
        False, "--quiet", "-q", help="Suppress non-essential output."
    ),
    verbose: bool = typer.Option(
        False, "--verbose", "-v", help="Enable debug output."
    ),
    dry_run: bool = typer.Option(
        False, "--dry-run", "-n", help="Print requests instead of sending them."
    ),
) -> None:
    """Root callback executed before every sub-command.

    Loads ``.env``, resolves settings (CLI flags over environment over
    ``config.json``), initialises the global
    :class:`~edgectl.output.OutputManager`, and stores shared state in the
    Typer context so that sub-commands can read it via ``ctx.obj``.

    Args:
        ctx: Typer invocation context.
        version: If ``True``, print the version string and exit.
        output_format: Output format override (highest precedence).
        json_output: Shorthand for ``--format json``.
        zone: Zone override for ``zone_id`` parameters.
        no_color: Disable all colour and Rich markup.
        quiet: Suppress non-essential diagnostic output.
        verbose: Enable debug-level diagnostic output.
        dry_run: Print request plans instead of executing them.
    """
    from edgectl.commands.common import handle_errors
    from edgectl.config import load_env_file, resolve_config
    from edgectl.output import OutputFormat, OutputManager, set_output

    _configure_logging(verbose)
    set_output(OutputManager(no_color=no_color, quiet=quiet, verbose=verbose))
    load_env_file()

    with handle_errors():
        settings = resolve_config(
            cli_format="json" if json_output else output_format,
            cli_zone=zone,
        )

    output = OutputManager(
        format=OutputFormat(settings.output.format),
        no_color=no_color,
        quiet=quiet,
        verbose=verbose,
    )
    set_output(output)

    ctx.ensure_object(dict)
    ctx.obj["settings"] = settings
    ctx.obj["dry_run"] = dry_run
    ctx.obj["verbose"] = verbose

    registry = ctx.obj.get("registry")
    if registry is not None:
        for key, old, new in registry.overrides:
            output.debug(f"{key[0]} {key[1]} from {new} overrides {old}")


def create_app(registry: Optional[Registry] = None) -> typer.Typer:
    """Build the edgectl Typer application.

    Args:
        registry: Endpoint registry; one command is added per category.
            Loaded from the default search path when ``None``.

    Returns:
        A ready-to-run :class:`typer.Typer` application.
    """
    from edgectl.commands.analytics import analytics_app
    from edgectl.commands.api import register_api_commands, register_category_commands
    from edgectl.commands.config import config_app
    from edgectl.commands.endpoints import endpoints_app
    from edgectl.commands.tunnel import tunnel_app

    if registry is None:
        from edgectl.definitions import load_registry

        registry, _ = load_registry()

    app = typer.Typer(
        name="edgectl",
        help="Manage zones, DNS, security settings, analytics and tunnels from the command line.",
        no_args_is_help=True,
        add_completion=True,
        rich_markup_mode="rich",
        context_settings={"obj": {"registry": registry}},
    )
    app.callback()(main_callback)

    app.add_typer(endpoints_app, name="endpoints", help="Inspect endpoint definitions.")
    app.add_typer(config_app, name="config", help="Configuration management.")
    app.add_typer(analytics_app, name="analytics", help="Zone traffic analytics (GraphQL).")
    app.add_typer(tunnel_app, name="tunnel", help="Run the tunnel daemon.")
    register_api_commands(app)
    register_category_commands(app, registry)
    return app


def _setup_signal_handlers() -> None:
    """Install a SIGINT handler so Ctrl-C exits cleanly."""

    def _handler(signum: int, frame: Any) -> None:  # noqa: ANN401
        sys.stderr.write("\nCancelled.\n")
        sys.exit(130)

    signal.signal(signal.SIGINT, _handler)


def _write_crash_log(exc: Exception) -> str:
    """Write a crash traceback to disk and return the log file path."""
    from edgectl.config import get_data_dir

    logs_dir = get_data_dir() / "logs"
    logs_dir.mkdir(parents=True, exist_ok=True)
    timestamp = datetime.now().strftime("%Y%m%d-%H%M%S")
    log_path = logs_dir / f"crash-{timestamp}.log"
    log_path.write_text(traceback.format_exc())
    return str(log_path)


def main() -> None:
    """CLI entry point invoked by the ``edgectl`` console script.

    Performs the following sequence:

    1. Install signal handlers for clean Ctrl-C behaviour.
    2. Load endpoint definitions and build the application.
    3. Invoke the Typer application.

    Unhandled :class:`~edgectl.exceptions.EdgectlError` instances cause a
    clean exit with the error's ``exit_code``. All other exceptions produce
    a crash log and a generic failure exit.

    Raises:
        SystemExit: Always raised (either by Typer or explicitly).
    """
    _setup_signal_handlers()
    _configure_logging("--verbose" in sys.argv or "-v" in sys.argv)
    try:
        app = create_app()
        app()
    except SystemExit:
        raise
    except KeyboardInterrupt:
        sys.stderr.write("\nCancelled.\n")
        sys.exit(130)
    except Exception as exc:
        from edgectl.exceptions import EdgectlError
        from edgectl.output import error

        if isinstance(exc, EdgectlError):
            error(str(exc))
            sys.exit(exc.exit_code)
        else:
            log_path = _write_crash_log(exc)
            error(f"Unexpected error. Debug log: {log_path}")
            sys.exit(EXIT_GENERIC_FAILURE)
