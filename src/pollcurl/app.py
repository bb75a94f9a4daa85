"""Typer application and CLI entry point for pollcurl.

This module wires together the top-level Typer application and registers
the built-in sub-commands (``request``, the per-method shorthands, and
``config``).

The :func:`main` function is the console-script entry point declared in
``pyproject.toml``. It installs signal handlers, registers commands, and
invokes the Typer app. :class:`~pollcurl.exceptions.PollcurlError` exits
with its own exit code; any other exception is written to a crash log
under the data directory.

See Also:
    :mod:`pollcurl.config`: Settings resolution.
    :mod:`pollcurl.output`: Output formatting initialised in :func:`main_callback`.
"""

from __future__ import annotations

import logging
import signal
import sys
import traceback
from datetime import datetime
from typing import Any

import typer
from rich.console import Console
from rich.logging import RichHandler

from pollcurl import __version__
from pollcurl.exit_codes import EXIT_GENERIC_FAILURE


app = typer.Typer(
    name="pollcurl",
    help="Send HTTP requests through a callback-driven polling client.",
    no_args_is_help=True,
    add_completion=False,
    rich_markup_mode="rich",
)

_VERBS = ("GET", "POST", "PUT", "DELETE", "HEAD", "PATCH")


def _version_callback(value: bool) -> None:
    """Print version and exit when --version is passed."""
    if value:
        typer.echo(f"pollcurl {__version__}")
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
        False, "--force", help="Skip confirmations."
    ),
) -> None:
    """Root callback executed before every sub-command.

    Initialises the global :class:`~pollcurl.output.OutputManager` from
    CLI flags, routes library logging to stderr when ``--verbose`` is set,
    and stores shared options in ``ctx.obj``.

    Args:
        ctx: Typer invocation context.
        version: If ``True``, print the version string and exit.
        json_output: Force JSON output format.
        plain_output: Force plain-text output format.
        no_color: Disable all colour and Rich markup.
        quiet: Suppress non-essential diagnostic output.
        verbose: Enable debug-level diagnostic output.
        force: Skip interactive confirmations.
    """
    from pollcurl.output import OutputFormat, OutputManager, set_output

    fmt = OutputFormat.AUTO
    if json_output:
        fmt = OutputFormat.JSON
    elif plain_output:
        fmt = OutputFormat.PLAIN

    set_output(OutputManager(format=fmt, no_color=no_color, quiet=quiet, verbose=verbose))
    _configure_logging(verbose, no_color)

    ctx.ensure_object(dict)
    ctx.obj["force"] = force
    ctx.obj["verbose"] = verbose


def _configure_logging(verbose: bool, no_color: bool = False) -> None:
    """Attach a stderr handler to the ``pollcurl`` logger when verbose.

    Without ``--verbose`` the package logger only carries a
    :class:`logging.NullHandler`, so library users keep full control.
    """
    logger = logging.getLogger("pollcurl")
    for handler in list(logger.handlers):
        if getattr(handler, "_pollcurl_cli", False):
            logger.removeHandler(handler)
    if not verbose:
        return
    handler = RichHandler(
        console=Console(stderr=True, no_color=no_color),
        show_path=False,
        rich_tracebacks=True,
    )
    handler.setFormatter(logging.Formatter("%(name)s: %(message)s"))
    handler._pollcurl_cli = True  # type: ignore[attr-defined]
    logger.addHandler(handler)
    logger.setLevel(logging.DEBUG)


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
    from pollcurl.config import get_data_dir

    logs_dir = get_data_dir() / "logs"
    logs_dir.mkdir(parents=True, exist_ok=True)
    timestamp = datetime.now().strftime("%Y%m%d-%H%M%S")
    log_path = logs_dir / f"crash-{timestamp}.log"
    log_path.write_text("".join(traceback.format_exception(type(exc), exc, exc.__traceback__)))
    return str(log_path)


def register_commands() -> None:
    """Attach the built-in commands to :data:`app`. Safe to call repeatedly."""
    if getattr(app, "_pollcurl_registered", False):
        return
    from pollcurl.commands.config import config_app
    from pollcurl.commands.request import make_verb_command, request_command

    app.command("request")(request_command)
    for verb in _VERBS:
        app.command(verb.lower())(make_verb_command(verb))
    app.add_typer(config_app, name="config", help="Settings management.")
    app._pollcurl_registered = True  # type: ignore[attr-defined]


def main() -> None:
    """CLI entry point invoked by the ``pollcurl`` console script.

    Installs signal handlers, registers the built-in commands, and invokes
    the Typer application.

    Unhandled :class:`~pollcurl.exceptions.PollcurlError` instances cause
    a clean exit with the error's ``exit_code``. All other exceptions
    produce a crash log and a generic failure exit.

    Raises:
        SystemExit: Always raised.
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
        from pollcurl.exceptions import ConfigError, PollcurlError, TransportUnavailable
        from pollcurl.output import error, suggest

        if isinstance(exc, PollcurlError):
            error(str(exc))
            if isinstance(exc, TransportUnavailable):
                suggest("Check the transport name with: pollcurl config show --effective")
            elif isinstance(exc, ConfigError):
                suggest("Fix or clear the settings with: pollcurl config reset")
            sys.exit(exc.exit_code)
        else:
            log_path = _write_crash_log(exc)
            error(f"Unexpected error. Debug log: {log_path}")
            sys.exit(EXIT_GENERIC_FAILURE)
