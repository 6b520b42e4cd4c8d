"""Terminal output for cflogin.

Data (status records, context tables and names) goes to stdout so it can
be piped. Every diagnostic goes to stderr. ``NO_COLOR``, ``TERM=dumb`` and
``--no-color`` turn off Rich styling.

Raw identity-provider and backend error bodies are only ever passed to
:func:`debug`, so they show up with ``--verbose`` and nowhere else.

Commands call the module-level helpers, which delegate to the
:class:`OutputManager` installed by :func:`~cflogin.app.main_callback`.
"""

from __future__ import annotations

import json
import os
import sys
from enum import Enum
from typing import Any, Optional

from rich.console import Console
from rich.markup import escape
from rich.table import Table


class OutputFormat(str, Enum):
    """``AUTO`` resolves to ``RICH`` on a colour TTY and to ``PLAIN`` otherwise."""

    AUTO = "auto"
    JSON = "json"
    PLAIN = "plain"
    RICH = "rich"


class OutputManager:
    """Route data to stdout and diagnostics to stderr.

    Args:
        format: Output format for data. ``AUTO`` is resolved from the TTY.
        no_color: Print diagnostics as plain text without Rich markup.
        quiet: Drop ``info``, ``success`` and ``suggest`` messages.
        verbose: Show ``debug`` messages.
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
            rich = _is_tty() and not self._no_color
            self._format = OutputFormat.RICH if rich else OutputFormat.PLAIN
        else:
            self._format = format

        self._stdout = Console(
            file=sys.stdout,
            no_color=self._no_color,
            force_terminal=(self._format == OutputFormat.RICH),
        )
        self._stderr = Console(file=sys.stderr, no_color=self._no_color, stderr=True)

    @property
    def format(self) -> OutputFormat:
        return self._format

    # --- stdout ---

    def print_data(self, text: str) -> None:
        print(text, file=sys.stdout, flush=True)

    def print_record(self, record: dict[str, Any]) -> None:
        """Print one record: a JSON object, ``key<TAB>value`` lines, or a two-column table.

        ``None`` values print as empty in plain and table output.
        """
        if self._format == OutputFormat.JSON:
            self.print_data(json.dumps(record, indent=2, ensure_ascii=False, default=str))
            return
        cells = [(key, "" if value is None else str(value)) for key, value in record.items()]
        if self._format == OutputFormat.PLAIN:
            for key, value in cells:
                self.print_data(f"{key}\t{value}")
            return
        table = Table(show_header=False, box=None)
        table.add_column(style="bold cyan")
        table.add_column()
        for key, value in cells:
            table.add_row(escape(key), escape(value))
        self._stdout.print(table)

    def print_table(
        self,
        headers: list[str],
        rows: list[list[str]],
        title: Optional[str] = None,
    ) -> None:
        """Print rows as a JSON array of objects, tab-separated lines, or a Rich table.

        *title* is only shown in Rich mode.
        """
        if self._format == OutputFormat.JSON:
            records = [dict(zip(headers, row)) for row in rows]
            self.print_data(json.dumps(records, indent=2, ensure_ascii=False))
        elif self._format == OutputFormat.PLAIN:
            self.print_data("\t".join(headers))
            for row in rows:
                self.print_data("\t".join(row))
        else:
            table = Table(title=title, show_header=True, header_style="bold cyan")
            for h in headers:
                table.add_column(h)
            for row in rows:
                table.add_row(*(escape(cell) for cell in row))
            self._stdout.print(table)

    # --- stderr ---

    def _emit(self, text: str, style: Optional[str] = None, prefix: str = "") -> None:
        if self._no_color:
            print(f"{prefix}{text}", file=sys.stderr, flush=True)
        elif prefix:
            self._stderr.print(f"[{style}]{escape(prefix)}[/{style}]{escape(text)}")
        elif style:
            self._stderr.print(f"[{style}]{escape(text)}[/{style}]")
        else:
            self._stderr.print(escape(text))

    def info(self, message: str) -> None:
        if not self._quiet:
            self._emit(message)

    def success(self, message: str) -> None:
        if not self._quiet:
            self._emit(message, style="green")

    def warning(self, message: str) -> None:
        """Never suppressed by ``--quiet``."""
        self._emit(message, style="yellow", prefix="Warning: ")

    def error(self, message: str) -> None:
        """Never suppressed by ``--quiet``."""
        self._emit(message, style="bold red", prefix="Error: ")

    def suggest(self, message: str) -> None:
        if not self._quiet:
            self._emit(f"→ {message}", style="dim")

    def debug(self, message: str) -> None:
        if self._verbose:
            self._emit(f"[debug] {message}", style="dim")


def _is_tty() -> bool:
    return hasattr(sys.stdout, "isatty") and sys.stdout.isatty()


def _should_disable_color() -> bool:
    """True when ``NO_COLOR`` is set (to any value) or ``TERM`` is ``dumb``."""
    if os.environ.get("NO_COLOR") is not None:
        return True
    return os.environ.get("TERM") == "dumb"


# --- global instance ---

_output: Optional[OutputManager] = None


def get_output() -> OutputManager:
    """Return the installed :class:`OutputManager`, creating a default one if needed."""
    global _output
    if _output is None:
        _output = OutputManager()
    return _output


def set_output(output: OutputManager) -> None:
    global _output
    _output = output


def reset_output() -> None:
    global _output
    _output = None


def print_data(text: str) -> None:
    get_output().print_data(text)


def print_record(record: dict[str, Any]) -> None:
    get_output().print_record(record)


def print_table(
    headers: list[str],
    rows: list[list[str]],
    title: Optional[str] = None,
) -> None:
    get_output().print_table(headers, rows, title)


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
