"""Shell execution for helm, kubectl and aws.

Every external binary goes through :class:`Shell` so the rest of the code
(and the tests) can swap in a fake.  Calls block until the process exits;
there is no timeout.
"""

from __future__ import annotations

import logging
import subprocess
from dataclasses import dataclass
from typing import Sequence

from helmopt.errors import TransportError

logger = logging.getLogger("helmopt.shell")


@dataclass(frozen=True)
class CommandResult:
    """Captured output of one finished command."""
    argv: tuple[str, ...]
    stdout: str
    stderr: str
    returncode: int

    @property
    def ok(self) -> bool:
        return self.returncode == 0

    def check(self) -> CommandResult:
        """Return self, or raise TransportError carrying stderr if the command failed."""
        if not self.ok:
            detail = self.stderr.strip() or self.stdout.strip() or f"exit status {self.returncode}"
            raise TransportError(f"{self.argv[0]} failed: {detail}")
        return self


class Shell:
    """Runs argument vectors with captured, trailing-newline-trimmed output."""

    def run(self, argv: Sequence[str]) -> CommandResult:
        argv = tuple(argv)
        if not argv:
            raise TransportError("no command submitted")
        logger.debug("exec: %s", " ".join(argv))
        try:
            proc = subprocess.run(argv, capture_output=True, text=True)
        except OSError as exc:
            # binary missing or not executable
            return CommandResult(argv, "", str(exc), 127)
        return CommandResult(
            argv,
            proc.stdout.rstrip("\n"),
            proc.stderr.rstrip("\n"),
            proc.returncode,
        )
