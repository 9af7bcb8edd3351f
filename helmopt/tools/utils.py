"""Small shared utilities for helm-optimize.

Helpers for Rich printing, separator rules and JSON decoding of tool output.
"""

from __future__ import annotations

import json
import logging
from typing import Any

from rich.console import Console

from helmopt.errors import TransportError

logger = logging.getLogger("helmopt")

console = Console()


def rprint(msg: str, *, style: str = "") -> None:
    """Print with Rich styling."""
    console.print(msg, style=style, highlight=False)


def print_rule(char: str = "-") -> None:
    """Print *char* across the full terminal width."""
    console.print(char * (console.width or 100), style="dim", highlight=False)


def load_json(text: str, what: str) -> Any:
    """Decode JSON produced by an external tool, raising TransportError if it is garbage."""
    try:
        return json.loads(text)
    except json.JSONDecodeError as exc:
        raise TransportError(f"unparsable {what} output: {exc}") from exc
