"""Optimize pipeline.

Pipeline::

    check tooling → session → adapter → dry-run → working copy → render
    → walk + resolve + rewrite → helm <command> on the working copy

Usage::

    from helmopt.pipeline import process_chart
    report = process_chart(session, Path("/tmp/work/mychart"))
"""

from __future__ import annotations

import logging
import tempfile
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional, Sequence

from rich.markup import escape

from helmopt import config
from helmopt.errors import StructuralError
from helmopt.helm import (
    apply_chart,
    find_chart_argument,
    prepare_working_copy,
    render_into,
    run_helm,
    validate_command,
)
from helmopt.manifest import ChartWalk
from helmopt.models import Resolution, ResolutionSource
from helmopt.resolver import ResolutionEngine
from helmopt.session import Session
from helmopt.tools.shell import CommandResult
from helmopt.tools.utils import print_rule, rprint

logger = logging.getLogger("helmopt.pipeline")


@dataclass
class ChartReport:
    """What happened while processing one chart tree."""
    manifests: int = 0
    skipped: int = 0
    resolutions: list[Resolution] = field(default_factory=list)
    write_failures: list[str] = field(default_factory=list)

    def count(self, source: ResolutionSource) -> int:
        return sum(1 for r in self.resolutions if r.source is source)


def _describe(resolution: Resolution) -> str:
    if resolution.source is ResolutionSource.backend:
        approval = resolution.approval.value if resolution.approval else ""
        return escape(f"[{approval}] {resolution.resources}")
    if resolution.source is ResolutionSource.cluster:
        return escape(f"Checking Cluster: {resolution.resources}")
    if resolution.source is ResolutionSource.chart_default:
        return escape(f"Checking Defaults: {resolution.resources}")
    return "[yellow]*WARNING* No default config present![/yellow]"


def process_chart(session: Session, chart_dir: Path) -> ChartReport:
    """Resolve and rewrite every workload template below *chart_dir*."""
    engine = ResolutionEngine(session)
    report = ChartReport()
    current_chart: Optional[str] = None

    for template in ChartWalk(chart_dir):
        if template.chart and template.chart != current_chart:
            current_chart = template.chart
            header = f"CHART: {current_chart}"
            rprint(f"[bold]{header}[/bold]\n{'=' * len(header)}")

        try:
            manifest = template.load(session.namespace)
        except StructuralError as exc:
            logger.debug("Skipping %s: %s", template.path, exc)
            report.skipped += 1
            continue

        report.manifests += 1
        rprint(escape(f"namespace[{manifest.namespace}] objType[{manifest.kind}] objName[{manifest.name}]"))
        resolutions = engine.apply(manifest)
        for number, resolution in enumerate(resolutions, start=1):
            rprint(f"{number}.{escape(resolution.key.container_name)}: {_describe(resolution)}")
        report.resolutions.extend(resolutions)

        try:
            manifest.write()
        except OSError as exc:
            logger.error("Failed to write %s: %s", template.path, exc)
            rprint(escape(f"Failed to write {template.path}: {exc}"), style="red")
            report.write_failures.append(str(template.path))
        rprint("")

    logger.info(
        "Processed %d manifest(s), skipped %d file(s), %d container(s)",
        report.manifests, report.skipped, len(report.resolutions),
    )
    return report


def print_banner(session: Session) -> None:
    print_rule()
    rprint(f"LOCAL CLUSTER: {session.local_cluster}")
    rprint(f"REMOTE CLUSTER: {session.remote_cluster}")
    adapter = session.adapter.describe() if session.adapter else "-"
    rprint(f"ADAPTER: {adapter}\n")


def run_optimized_command(session: Session, args: Sequence[str]) -> CommandResult:
    """Run ``helm <args>``, optimizing the chart first for install/upgrade/template.

    Raises:
        TransportError: a helm step failed.
        StructuralError: the chart argument or Chart.yaml is unusable.
    """
    if not args or args[0] not in config.OPTIMIZE_COMMANDS:
        return run_helm(session.shell, session.helm, args)

    started = time.monotonic()
    validate_command(session.shell, session.helm, args)
    chart, position = find_chart_argument(session.shell, session.helm, args)

    print_banner(session)
    with tempfile.TemporaryDirectory(prefix="helmopt-") as tmp:
        workdir = Path(tmp)
        chart_dir = prepare_working_copy(session.shell, session.helm, chart, workdir)
        render_into(session.shell, session.helm, args[1:], workdir, chart_dir)

        process_chart(session, chart_dir)

        rprint(f"EXECUTION TIME: {time.monotonic() - started:.2f}s")
        print_rule()
        return apply_chart(session.shell, session.helm, args, position, chart_dir)
