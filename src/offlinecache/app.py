"""Typer application and CLI entry point for offlinecache.

This module wires together the top-level Typer application and registers
the built-in sub-commands (``install``, ``activate``, ``fetch``,
``namespaces``, ``config``).

The :func:`main` function is the console-script entry point declared in
``pyproject.toml``.  It installs signal handlers, registers commands, and
invokes the Typer app.  :class:`~offlinecache.exceptions.OfflineCacheError`
instances exit with their own code; any other exception is written to a
crash log under the data directory.

See Also:
    :mod:`offlinecache.config`: Configuration resolution.
    :mod:`offlinecache.output`: Output formatting initialised in :func:`main_callback`.
"""

from __future__ import annotations

import signal
import sys
import traceback
from datetime import datetime
from typing import Any, Optional

import typer

from offlinecache import __version__
from offlinecache.exit_codes import EXIT_GENERIC_FAILURE


app = typer.Typer(
    name="offlinecache",
    help="Serve resources from a versioned offline cache, falling back to the network.",
    no_args_is_help=True,
    add_completion=False,
    rich_markup_mode="rich",
)


def _version_callback(value: bool) -> None:
    """Print version and exit when --version is passed."""
    if value:
        typer.echo(f"offlinecache {__version__}")
        raise typer.Exit()


@app.callback()
def main_callback(
    ctx: typer.Context,
    version: bool = typer.Option(
        False,
        "--version",
        callback=_version_callback,
        is_eager=True,
        help="Show version and exit.",
    ),
    app_name: Optional[str] = typer.Option(
        None, "--app", help="Application name (namespace prefix)."
    ),
    app_version: Optional[str] = typer.Option(
        None, "--app-version", help="Application version."
    ),
    strategy: Optional[str] = typer.Option(
        None, "--strategy", "-s", help="Resolution strategy: cache_first or race."
    ),
    base_url: Optional[str] = typer.Option(
        None, "--base-url", help="Base URL for relative request paths."
    ),
    json_output: bool = typer.Option(
        False, "--json", help="JSON output format."
    ),
    plain_output: bool = typer.Option(
        False, "--plain", help="Plain text output."
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
    force: bool = typer.Option(
        False, "--force", "-f", help="Skip confirmations."
    ),
) -> None:
    """Root callback executed before every sub-command.

    Initialises the global :class:`~offlinecache.output.OutputManager` from
    CLI flags, and stores the configuration overrides (``--app``,
    ``--app-version``, ``--strategy``, ``--base-url``) and ``--force`` in
    the Typer context so that sub-commands can read them via ``ctx.obj``.
    """
    from offlinecache.output import OutputFormat, OutputManager, set_output

    fmt = OutputFormat.AUTO
    if json_output:
        fmt = OutputFormat.JSON
    elif plain_output:
        fmt = OutputFormat.PLAIN

    set_output(OutputManager(format=fmt, no_color=no_color, quiet=quiet, verbose=verbose))

    ctx.ensure_object(dict)
    ctx.obj["app_name"] = app_name
    ctx.obj["app_version"] = app_version
    ctx.obj["strategy"] = strategy
    ctx.obj["base_url"] = base_url
    ctx.obj["force"] = force


def register_commands() -> None:
    """Attach the built-in sub-commands to :data:`app` (idempotent)."""
    if getattr(app, "_offlinecache_registered", False):
        return

    from offlinecache.commands.config import config_app
    from offlinecache.commands.fetch import fetch_command
    from offlinecache.commands.lifecycle import activate_command, install_command
    from offlinecache.commands.namespaces import namespaces_app

    app.command("install")(install_command)
    app.command("activate")(activate_command)
    app.command("fetch")(fetch_command)
    app.add_typer(namespaces_app, name="namespaces", help="Cache namespace management.")
    app.add_typer(config_app, name="config", help="Configuration management.")
    app._offlinecache_registered = True  # type: ignore[attr-defined]


def _setup_signal_handlers() -> None:
    """Install a SIGINT handler so Ctrl-C exits cleanly."""

    def _handler(signum: int, frame: Any) -> None:  # noqa: ANN401
        sys.stderr.write("\nCancelled.\n")
        sys.exit(130)

    signal.signal(signal.SIGINT, _handler)


def _write_crash_log(exc: Exception) -> str:
    """Write a crash traceback to disk and return the log file path."""
    from offlinecache.config import get_data_dir

    logs_dir = get_data_dir() / "logs"
    logs_dir.mkdir(parents=True, exist_ok=True)
    timestamp = datetime.now().strftime("%Y%m%d-%H%M%S")
    log_path = logs_dir / f"crash-{timestamp}.log"
    log_path.write_text("".join(traceback.format_exception(type(exc), exc, exc.__traceback__)))
    return str(log_path)


def main() -> None:
    """CLI entry point invoked by the ``offlinecache`` console script.

    Unhandled :class:`~offlinecache.exceptions.OfflineCacheError` instances
    cause a clean exit with the error's ``exit_code``.  All other
    exceptions produce a crash log and a generic failure exit.

    Raises:
        SystemExit: Always raised (either by Typer or explicitly).
    """
    _setup_signal_handlers()
    try:
        register_commands()
        app()
    except SystemExit:
        raise
    except KeyboardInterrupt:
        sys.stderr.write("\nCancelled.\n")
        sys.exit(130)
    except Exception as exc:
        from offlinecache.exceptions import OfflineCacheError
        from offlinecache.output import error

        if isinstance(exc, OfflineCacheError):
            error(str(exc))
            sys.exit(exc.exit_code)
        else:
            log_path = _write_crash_log(exc)
            error(f"Unexpected error. Debug log: {log_path}")
            sys.exit(EXIT_GENERIC_FAILURE)
