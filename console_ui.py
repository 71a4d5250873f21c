#!/usr/bin/env python3
"""
Console UI Module using Rich

Styled output, tables and single-keypress prompts for dirclean. The same
Console instance backs the log handler so prompts and log lines interleave
cleanly.
"""

import sys
from typing import Any, Optional

from rich import box
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

try:
    import termios
    import tty

    _HAS_TERMIOS = True
except ImportError:
    _HAS_TERMIOS = False


def _read_line_key() -> str:
    # Closed or empty stdin (cron, pipes) answers nothing, which skips
    try:
        return input("> ").strip()[:1]
    except EOFError:
        return ""


def read_single_key() -> str:
    """Read a single keypress without requiring Enter.

    Falls back to input() if the terminal doesn't support raw mode.
    """
    if not _HAS_TERMIOS or not sys.stdin.isatty():
        return _read_line_key()
    try:
        fd = sys.stdin.fileno()
        old_settings = termios.tcgetattr(fd)
        try:
            tty.setraw(fd)
            ch = sys.stdin.read(1)
        finally:
            termios.tcsetattr(fd, termios.TCSADRAIN, old_settings)
        return ch
    except (termios.error, OSError):
        return _read_line_key()


class ConsoleUI:
    """Console handler for dirclean output"""

    def __init__(self, force_terminal: Optional[bool] = None, stderr: bool = False):
        self.console = Console(force_terminal=force_terminal, highlight=False, stderr=stderr)

    def print_success(self, message: str):
        self.console.print(message, style="green")

    def print_error(self, message: str):
        self.console.print(message, style="red bold")

    def print_warning(self, message: str):
        self.console.print(message, style="yellow")

    def print_info(self, message: str):
        self.console.print(message, style="cyan")

    def print_plain(self, message: str):
        self.console.print(message, style="white")

    def print_header(self, title: str, subtitle: Optional[str] = None):
        """Print a header panel with optional subtitle"""
        if subtitle:
            header_text = f"[bold]{title}[/bold]\n[dim]{subtitle}[/dim]"
        else:
            header_text = f"[bold]{title}[/bold]"

        self.console.print(Panel(header_text, box=box.ROUNDED, padding=(0, 1)))

    def show_key_values(self, rows: dict[str, Any], title: Optional[str] = None):
        """Display label/value pairs as a borderless two-column table"""
        table = Table(title=title, show_header=False, box=box.SIMPLE)
        table.add_column("Setting", style="cyan dim", min_width=22, justify="right")
        table.add_column("Value", style="cyan", min_width=30)

        for key, value in rows.items():
            if isinstance(value, (list, tuple)):
                value = ", ".join(str(v) for v in value)
            table.add_row(key, str(value))

        self.console.print(table)

    def show_table(self, title: str, columns: list[tuple[str, dict]], rows: list[list[str]]):
        """Print a rounded table; columns are (header, rich column kwargs)"""
        table = Table(title=title, box=box.ROUNDED, show_lines=False)
        for header, options in columns:
            table.add_column(header, **options)
        for row in rows:
            table.add_row(*row)
        self.console.print(table)

    def ask_key(self, question: str, choices: str) -> str:
        """Print a prompt line and return the single key pressed"""
        self.console.print(f"{question} [dim]{choices}[/dim] ", end="")
        key = read_single_key()
        self.console.print()
        return key
