"""Interactive line input.

Thin wrapper over ``typer.prompt`` so adapters ask questions through one
object that tests can replace with a scripted answer list.
"""

from __future__ import annotations

import typer


class Prompter:
    """Reads single lines from the terminal."""

    def ask(self, text: str, default: str = "") -> str:
        """Return the stripped answer, or *default* when the user just hits enter."""
        answer = typer.prompt(text, default=default, show_default=False)
        return str(answer).strip()

    def secret(self, text: str) -> str:
        return str(typer.prompt(text, default="", show_default=False, hide_input=True))

    def yes(self, text: str, default: bool = False) -> bool:
        """Ask a y/n question; an empty answer means *default*."""
        answer = self.ask(text, default="")
        if not answer:
            return default
        return answer.lower() in ("y", "yes")
