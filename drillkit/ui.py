"""Coloured status lines for warnings and successes."""

import os
import sys

from rich.console import Console
from rich.text import Text


def _no_emoji() -> bool:
    return "NO_EMOJI" in os.environ


def _emit(marker: str, message: str, colour: str) -> None:
    console = Console(file=sys.stdout, highlight=False, soft_wrap=True, emoji=False)
    console.print(Text.assemble((marker, colour), " ", (message, colour)))


def warn(message: str) -> None:
    """Print a red warning line, prefixed with a warning marker."""
    marker = "!" if _no_emoji() else "⚠️ "
    _emit(marker, message, "red")


def success(message: str) -> None:
    """Print a green success line, prefixed with a check mark."""
    marker = "✓" if _no_emoji() else "✅"
    _emit(marker, message, "green")