"""Helm orchestration.

Wraps the helm CLI steps around the optimization: validating the user's
command, finding the chart argument, building a working copy of the chart,
rendering it into that copy, and finally running the user's command
against the rewritten copy.
"""

from __future__ import annotations

import logging
import re
import shutil
from pathlib import Path
from typing import Sequence

from helmopt.errors import StructuralError, TransportError
from helmopt.manifest import CHART_FILE, read_chart_name
from helmopt.tools.shell import CommandResult, Shell

logger = logging.getLogger("helmopt.helm")

# "  -a, --atomic          if set, ..."   /   "      --namespace string   ..."
_FLAG_LINE = re.compile(r"^\s*(?:(-[a-zA-Z]),\s*)?(--[a-zA-Z0-9][a-zA-Z0-9-]*)(?: (\w+))?\s{2,}")


def run_helm(shell: Shell, helm: str, args: Sequence[str]) -> CommandResult:
    return shell.run([helm, *args])


def validate_command(shell: Shell, helm: str, args: Sequence[str]) -> None:
    """Dry-run the user's command so bad arguments fail before any work is done."""
    run_helm(shell, helm, [*args, "--dry-run"]).check()


def boolean_flags(help_text: str) -> set[str]:
    """Flags (long and short) that take no value, parsed from ``helm <cmd> -h``."""
    marker = help_text.find("Flags:")
    if marker < 0:
        return set()
    flags: set[str] = set()
    for line in help_text[marker:].splitlines():
        match = _FLAG_LINE.match(line)
        if not match or match.group(3):
            continue
        flags.add(match.group(2))
        if match.group(1):
            flags.add(match.group(1))
    return flags


def locate_chart_argument(args: Sequence[str], flags: set[str]) -> tuple[str, int]:
    """Return ``(chart, index into args)`` for ``helm <cmd> [NAME] CHART [flags]``.

    The chart is the last positional argument; a bare word following a flag
    that takes a value is that flag's value, not a positional.
    """
    found: list[tuple[str, int]] = []
    rest = list(args[1:])
    for i, arg in enumerate(rest):
        if arg.startswith("-"):
            continue
        previous = rest[i - 1] if i > 0 else ""
        if i == 0 or not previous.startswith("-") or previous in flags or "=" in previous:
            found.append((arg, i + 1))
    if not found:
        raise StructuralError(
            "could not locate chart path -- try helm-optimize run (install/upgrade) [NAME] [CHART] [flags]"
        )
    return found[-1]


def find_chart_argument(shell: Shell, helm: str, args: Sequence[str]) -> tuple[str, int]:
    help_result = run_helm(shell, helm, [args[0], "-h"]).check()
    return locate_chart_argument(args, boolean_flags(help_result.stdout))


def prepare_working_copy(shell: Shell, helm: str, chart: str, workdir: Path) -> Path:
    """Copy a local chart (or ``helm pull`` a remote one) into *workdir*."""
    source = Path(chart).resolve()
    target = workdir / source.name
    if (Path(chart) / CHART_FILE).is_file():
        shutil.copytree(source, target, symlinks=True)
    else:
        run_helm(shell, helm, ["pull", chart, "--untar", "--untardir", str(workdir)]).check()
    if not (target / CHART_FILE).is_file():
        raise TransportError(f"chart {chart} not found at {target}")
    return target


def render_into(shell: Shell, helm: str, template_args: Sequence[str], workdir: Path, chart_dir: Path) -> None:
    """Render the chart with ``helm template --output-dir`` over the working copy."""
    run_helm(shell, helm, ["template", *template_args, "--output-dir", str(workdir)]).check()
    chart_name = read_chart_name(chart_dir)
    if chart_name is None:
        raise StructuralError(f"'{chart_dir / CHART_FILE}' does not contain name field")
    rendered = workdir / chart_name
    if rendered != chart_dir and rendered.is_dir():
        shutil.copytree(rendered, chart_dir, dirs_exist_ok=True)


def apply_chart(shell: Shell, helm: str, args: Sequence[str], position: int, chart_dir: Path) -> CommandResult:
    """Run the user's command with the chart argument swapped for *chart_dir*."""
    final = list(args)
    final[position] = str(chart_dir)
    return run_helm(shell, helm, final)
