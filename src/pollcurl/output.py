"""Output formatting system with strict stdout/stderr discipline.

Follows `clig.dev <https://clig.dev/>`_ conventions:

* **stdout** -- response bodies and streamed chunks only. This is what
  downstream tools pipe and parse.
* **stderr** -- all diagnostics (status lines, warnings, errors, callback
  failures). Never contaminates the data stream.
* **TTY detection** -- Rich formatting when stdout is an interactive
  terminal, plain text when piped to another process.
* **Colour control** -- respects ``NO_COLOR``, ``TERM=dumb``, and the
  ``--no-color`` CLI flag.

The module exposes two layers:

1. :class:`OutputManager` -- a stateful object holding format preferences,
   Rich consoles, and quiet/verbose flags. Created once in
   :func:`~pollcurl.app.main_callback` and installed via :func:`set_output`.
2. Module-level convenience functions (:func:`render_response`,
   :func:`status_line`, :func:`info`, ...) that delegate to the global
   ``OutputManager``.
"""

from __future__ import annotations

import json
import os
import sys
from enum import Enum
from typing import Any, Mapping, Optional

import httpx
from rich.console import Console
from rich.syntax import Syntax
from rich.table import Table

from pollcurl.models import Response

# Content-type fragment -> Pygments lexer used for Rich highlighting.
_LEXERS = (
    ("json", "json"),
    ("html", "html"),
    ("xml", "xml"),
    ("javascript", "javascript"),
    ("yaml", "yaml"),
)


class OutputFormat(str, Enum):
    """Enumeration of supported output formats.

    ``AUTO`` resolves to ``RICH`` when stdout is an interactive TTY and colour
    is not disabled, or to ``PLAIN`` otherwise.
    """

    AUTO = "auto"
    JSON = "json"
    PLAIN = "plain"
    RICH = "rich"


class OutputManager:
    """Central manager for all CLI output.

    Args:
        format: Desired output format. ``AUTO`` resolves based on TTY
            detection.
        no_color: Disable all colour and Rich markup.
        quiet: Suppress the status line and other informational messages.
        verbose: Enable debug-level messages on stderr.
    """

    def __init__(
        self,
        format: OutputFormat = OutputFormat.AUTO,
        no_color: bool = False,
        quiet: bool = False,
        verbose: bool = False,
    ) -> None:
        self._no_color = no_color or _should_disable_color()
        self._quiet = quiet
        self._verbose = verbose

        if format == OutputFormat.AUTO:
            self._format = (
                OutputFormat.RICH if _is_tty() and not self._no_color else OutputFormat.PLAIN
            )
        else:
            self._format = format

        self._stdout = Console(
            file=sys.stdout,
            no_color=self._no_color,
            force_terminal=(self._format == OutputFormat.RICH),
        )
        self._stderr = Console(
            file=sys.stderr,
            no_color=self._no_color,
            stderr=True,
        )

    @property
    def format(self) -> OutputFormat:
        """The resolved output format."""
        return self._format

    # ------------------------------------------------------------------ #
    # Data output (stdout)
    # ------------------------------------------------------------------ #

    def render_response(self, response: Response) -> None:
        """Write a completed response body to stdout in the active format.

        * **JSON** -- a JSON body is re-indented; anything else is printed
          as received.
        * **Plain** -- the body verbatim.
        * **Rich** -- syntax highlighting picked from ``Content-Type`` (JSON
          bodies are highlighted whatever their declared type).

        Empty bodies (``HEAD``, ``204``) print nothing.
        """
        if not response.body:
            return
        if self._format == OutputFormat.PLAIN:
            self.print_data(response.body.rstrip("\n"))
            return

        decoded = _decode_json(response.body)
        if self._format == OutputFormat.JSON:
            if decoded is None:
                self.print_data(response.body.rstrip("\n"))
            else:
                self.print_data(_dumps(decoded))
            return

        if decoded is not None:
            self._stdout.print(Syntax(_dumps(decoded), "json", theme="monokai", word_wrap=True))
            return
        lexer = _lexer_for(response.headers.get("content-type", ""))
        if lexer is None:
            self._stdout.print(response.body.rstrip("\n"), markup=False, highlight=False)
        else:
            self._stdout.print(Syntax(response.body, lexer, theme="monokai", word_wrap=True))

    def render_settings(self, settings: Mapping[str, Any]) -> None:
        """Print a settings mapping: JSON object, ``key<TAB>value`` lines, or a table."""
        if self._format == OutputFormat.JSON:
            self.print_data(_dumps(dict(settings)))
        elif self._format == OutputFormat.PLAIN:
            for key, value in settings.items():
                self.print_data(f"{key}\t{'' if value is None else value}")
        else:
            table = Table(show_header=True, header_style="bold cyan")
            table.add_column("Key")
            table.add_column("Value")
            for key, value in settings.items():
                table.add_row(key, "-" if value is None else str(value))
            self._stdout.print(table)

    def print_data(self, text: str) -> None:
        """Print raw text to stdout, newline-terminated."""
        print(text, file=sys.stdout, flush=True)

    def write_chunk(self, text: str) -> None:
        """Write a streamed chunk to stdout exactly as received."""
        sys.stdout.write(text)
        sys.stdout.flush()

    # ------------------------------------------------------------------ #
    # Diagnostics (stderr)
    # ------------------------------------------------------------------ #

    def status_line(self, response: Response) -> None:
        """Print ``HTTP <status> <reason>`` to stderr. Suppressed by ``--quiet``.

        Coloured by status class: green for 2xx, yellow for 3xx, red for
        4xx/5xx.
        """
        if self._quiet:
            return
        if response.status is None:
            text = "HTTP (no status)"
        else:
            reason = httpx.codes.get_reason_phrase(response.status)
            text = f"HTTP {response.status} {reason}".rstrip()
        if self._no_color:
            print(text, file=sys.stderr, flush=True)
            return
        status = response.status or 0
        style = "green" if status < 300 else "yellow" if status < 400 else "bold red"
        self._stderr.print(f"[{style}]{text}[/{style}]")

    def info(self, message: str) -> None:
        """Print an informational message to stderr. Suppressed by ``--quiet``."""
        if not self._quiet:
            if self._no_color:
                print(message, file=sys.stderr, flush=True)
            else:
                self._stderr.print(message)

    def success(self, message: str) -> None:
        """Print a green success message to stderr. Suppressed by ``--quiet``."""
        if not self._quiet:
            if self._no_color:
                print(message, file=sys.stderr, flush=True)
            else:
                self._stderr.print(f"[green]{message}[/green]")

    def warning(self, message: str) -> None:
        """Print a yellow warning to stderr. NOT suppressed by ``--quiet``."""
        if self._no_color:
            print(f"Warning: {message}", file=sys.stderr, flush=True)
        else:
            self._stderr.print(f"[yellow]Warning:[/yellow] {message}")

    def error(self, message: str) -> None:
        """Print a bold-red error to stderr. Never suppressed."""
        if self._no_color:
            print(f"Error: {message}", file=sys.stderr, flush=True)
        else:
            self._stderr.print(f"[bold red]Error:[/bold red] {message}")

    def suggest(self, message: str) -> None:
        """Print a dimmed next-step suggestion to stderr. Suppressed by ``--quiet``."""
        if not self._quiet:
            formatted = f"→ {message}"
            if self._no_color:
                print(formatted, file=sys.stderr, flush=True)
            else:
                self._stderr.print(f"[dim]{formatted}[/dim]")

    def debug(self, message: str) -> None:
        """Print a debug message to stderr. Only shown when ``--verbose`` is active."""
        if self._verbose:
            if self._no_color:
                print(f"[debug] {message}", file=sys.stderr, flush=True)
            else:
                self._stderr.print(f"[dim][debug] {message}[/dim]")


# ------------------------------------------------------------------ #
# Module-level helpers
# ------------------------------------------------------------------ #


def _is_tty() -> bool:
    """Check if stdout is a TTY."""
    return hasattr(sys.stdout, "isatty") and sys.stdout.isatty()


def _should_disable_color() -> bool:
    """Return True when NO_COLOR is set (any value) or TERM=dumb."""
    if os.environ.get("NO_COLOR") is not None:
        return True
    if os.environ.get("TERM") == "dumb":
        return True
    return False


def _decode_json(body: str) -> Optional[Any]:
    """Return the decoded body when it is a JSON object or array, else ``None``."""
    stripped = body.lstrip()
    if not stripped.startswith(("{", "[")):
        return None
    try:
        return json.loads(stripped)
    except json.JSONDecodeError:
        return None


def _dumps(data: Any) -> str:
    return json.dumps(data, indent=2, ensure_ascii=False, default=str)


def _lexer_for(content_type: str) -> Optional[str]:
    content_type = content_type.lower()
    for fragment, lexer in _LEXERS:
        if fragment in content_type:
            return lexer
    return None


_output: Optional[OutputManager] = None


def get_output() -> OutputManager:
    """Return the global :class:`OutputManager`, creating a default one lazily."""
    global _output
    if _output is None:
        _output = OutputManager()
    return _output


def set_output(output: OutputManager) -> None:
    """Install *output* as the global :class:`OutputManager` instance."""
    global _output
    _output = output


def reset_output() -> None:
    """Reset the global :class:`OutputManager` to ``None``.

    Primarily useful in test suites to ensure a clean state between tests.
    """
    global _output
    _output = None


def render_response(response: Response) -> None:
    get_output().render_response(response)


def render_settings(settings: Mapping[str, Any]) -> None:
    get_output().render_settings(settings)


def status_line(response: Response) -> None:
    get_output().status_line(response)


def print_data(text: str) -> None:
    get_output().print_data(text)


def write_chunk(text: str) -> None:
    get_output().write_chunk(text)


def info(message: str) -> None:
    get_output().info(message)


def error(message: str) -> None:
    get_output().error(message)


def success(message: str) -> None:
    get_output().success(message)


def warning(message: str) -> None:
    get_output().warning(message)


def suggest(message: str) -> None:
    get_output().suggest(message)


def debug(message: str) -> None:
    get_output().debug(message)
