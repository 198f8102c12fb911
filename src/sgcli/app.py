"""Typer application and CLI entry point for sgcli.

This module wires together the top-level Typer application and registers the
built-in commands (``migrate``, ``import``, ``list``, ``setup``,
``server-time``).

The :func:`main` function is the console-script entry point declared in
``pyproject.toml``. It installs signal handlers and invokes the Typer app.
:class:`~sgcli.exceptions.SgcliError` exits with the error's code, and any
other exception is written to a crash log under the data directory.

See Also:
    :mod:`sgcli.config`: maFiles directory and passkey resolution.
    :mod:`sgcli.output`: Output formatting initialised in :func:`main_callback`.
"""

from __future__ import annotations

import logging
import signal
import sys
import traceback
from datetime import datetime
from typing import Any, Optional

import typer

from sgcli import __version__
from sgcli.commands.setup import server_time_command, setup_command
from sgcli.commands.store import import_command, list_command, migrate_command
from sgcli.exit_codes import EXIT_GENERIC_FAILURE


app = typer.Typer(
    name="sgcli",
    help="Manage Steam Guard mobile authenticator secrets.",
    no_args_is_help=True,
    add_completion=True,
    rich_markup_mode="rich",
)

app.command("migrate")(migrate_command)
app.command("import")(import_command)
app.command("list")(list_command)
app.command("setup")(setup_command)
app.command("server-time")(server_time_command)


def _version_callback(value: bool) -> None:
    """Print version and exit when --version is passed."""
    if value:
        typer.echo(f"sgcli {__version__}")
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
    mafiles: Optional[str] = typer.Option(
        None, "--mafiles", "-m", help="maFiles directory (default: <config dir>/maFiles)."
    ),
    passkey: Optional[str] = typer.Option(
        None, "--passkey", "-p", help="Passkey for an encrypted maFiles directory."
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
) -> None:
    """Root callback executed before every sub-command.

    Initialises the global :class:`~sgcli.output.OutputManager` from CLI
    flags and stores the shared options in ``ctx.obj`` for sub-commands.

    Args:
        ctx: Typer invocation context.
        version: If ``True``, print the version string and exit.
        mafiles: maFiles directory override (highest precedence).
        passkey: Passkey override (highest precedence).
        no_color: Disable all colour and Rich markup.
        quiet: Suppress non-essential diagnostic output.
        verbose: Enable debug-level diagnostic output and library logging.
    """
    from sgcli.output import OutputManager, set_output

    set_output(OutputManager(no_color=no_color, quiet=quiet, verbose=verbose))
    if verbose:
        logging.basicConfig(level=logging.DEBUG, format="%(name)s: %(message)s")

    ctx.ensure_object(dict)
    ctx.obj["mafiles"] = mafiles
    ctx.obj["passkey"] = passkey
    ctx.obj["verbose"] = verbose


def _setup_signal_handlers() -> None:
    """Install a SIGINT handler so Ctrl-C exits cleanly."""

    def _handler(signum: int, frame: Any) -> None:  # noqa: ANN401
        sys.stderr.write("\nCancelled.\n")
        sys.exit(130)

    signal.signal(signal.SIGINT, _handler)


def _write_crash_log(exc: Exception) -> str:
    """Write a crash traceback to disk and return the log file path.

    Args:
        exc: The unhandled exception to log.

    Returns:
        Absolute path to the written crash log file.
    """
    from sgcli.config import get_data_dir

    timestamp = datetime.now().strftime("%Y%m%d-%H%M%S")
    log_path = get_data_dir() / f"crash-{timestamp}.log"
    log_path.write_text(
        "".join(traceback.format_exception(type(exc), exc, exc.__traceback__))
    )
    return str(log_path)


def main() -> None:
    """CLI entry point invoked by the ``sgcli`` console script.

    Unhandled :class:`~sgcli.exceptions.SgcliError` instances cause a clean
    exit with the error's ``exit_code``. All other exceptions, including
    :class:`~sgcli.exceptions.UpgradeChainError`, produce a crash log and a
    generic failure exit.

    Raises:
        SystemExit: Always raised (either by Typer or explicitly).
    """
    _setup_signal_handlers()
    try:
        app()
    except SystemExit:
        raise
    except KeyboardInterrupt:
        sys.stderr.write("\nCancelled.\n")
        sys.exit(130)
    except Exception as exc:
        from sgcli.exceptions import SgcliError
        from sgcli.output import error

        if isinstance(exc, SgcliError):
            error(str(exc))
            sys.exit(exc.exit_code)
        else:
            log_path = _write_crash_log(exc)
            error(f"Unexpected error. Debug log: {log_path}")
            sys.exit(EXIT_GENERIC_FAILURE)
