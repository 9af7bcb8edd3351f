"""helm-optimize CLI, a wrapper around helm install / upgrade / template.

Pipeline::

    kubectl check → session → adapter → helm dry-run → working copy
    → render → resolve + rewrite → helm <command>

Usage::

    helm-optimize run install myrelease ./mychart -n prod
    helm-optimize approve myrelease ./mychart
    helm-optimize configure --adapter
"""

from __future__ import annotations

import logging
import sys
from typing import NoReturn

import typer
from rich.markup import escape

from helmopt import __version__
from helmopt.errors import OptimizeError
from helmopt.tools.utils import rprint

# ---------------------------------------------------------------------------
# Typer application
# ---------------------------------------------------------------------------

app = typer.Typer(
    name="helm-optimize",
    help="Apply optimization recommendations to Helm charts before they are deployed.",
    add_completion=False,
)

_PASSTHROUGH = {"allow_extra_args": True, "ignore_unknown_options": True}

# stored per-adapter settings, cleared before the user re-enters them
_ADAPTER_SETTINGS = ("densifyURL", "densifyUser", "densifyPass", "prefix", "profile", "region")

# ---------------------------------------------------------------------------
# Logging setup
# ---------------------------------------------------------------------------

def _setup_logging(debug: bool) -> None:
    level = logging.DEBUG if debug else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(levelname)s %(name)s: %(message)s",
    )


def _fail(exc: Exception) -> NoReturn:
    rprint(f"[bold red]Error:[/bold red] {escape(str(exc))}")
    raise typer.Exit(code=1)


# ---------------------------------------------------------------------------
# run: the primary command
# ---------------------------------------------------------------------------

@app.command(context_settings=_PASSTHROUGH)
def run(
    ctx: typer.Context,
    debug: bool = typer.Option(
        False,
        "--optimize-debug",
        help="Enable debug logging for helm-optimize itself.",
    ),
) -> None:
    """Optimize the chart, then run ``helm <args>`` against the optimized copy.

    Only install, upgrade and template are optimized; anything else is
    passed straight to helm.
    """
    _setup_logging(debug)
    logger = logging.getLogger("helmopt")

    # --- lazy imports to keep CLI startup fast ---
    from helmopt.pipeline import run_optimized_command
    from helmopt.session import open_session

    args = list(ctx.args)
    if not args:
        rprint("Usage: helm-optimize run <helm command> [NAME] [CHART] [flags]")
        raise typer.Exit(code=1)

    try:
        session = open_session()
        session.attach_adapter()
        result = run_optimized_command(session, args)
    except OptimizeError as exc:
        logger.debug("run failed", exc_info=True)
        _fail(exc)

    if result.stdout:
        print(result.stdout)
    if result.stderr:
        print(result.stderr, file=sys.stderr)
    if not result.ok:
        raise typer.Exit(code=result.returncode)


# ---------------------------------------------------------------------------
# approve: interactive approval walk
# ---------------------------------------------------------------------------

@app.command(context_settings=_PASSTHROUGH)
def approve(
    ctx: typer.Context,
    debug: bool = typer.Option(False, "--optimize-debug", help="Enable debug logging."),
) -> None:
    """Render the chart with ``helm template <args>`` and review every container's approval."""
    _setup_logging(debug)

    from helmopt.approval import ApprovalTracker, review_rendered
    from helmopt.helm import run_helm
    from helmopt.pipeline import print_banner
    from helmopt.session import open_session

    try:
        session = open_session()
        adapter = session.attach_adapter()
        print_banner(session)
        rendered = run_helm(session.shell, session.helm, ["template", *ctx.args]).check()
        reviewed = review_rendered(
            ApprovalTracker(adapter, session.prompter),
            rendered.stdout,
            session.remote_cluster,
            session.namespace,
        )
    except OptimizeError as exc:
        _fail(exc)

    changed = sum(1 for _, state in reviewed if state is not None)
    rprint(f"\n{changed} approval setting(s) changed.")


# ---------------------------------------------------------------------------
# configure
# ---------------------------------------------------------------------------

@app.command()
def configure(
    adapter: bool = typer.Option(False, "--adapter", help="Choose the backend adapter and enter its settings."),
    cluster_mapping: bool = typer.Option(
        False,
        "--cluster-mapping",
        help="Map the current kube context to the cluster name the backend uses.",
    ),
    clear_config: bool = typer.Option(False, "--clear-config", help="Delete every stored setting."),
    debug: bool = typer.Option(False, "--debug", help="Enable debug logging."),
) -> None:
    """Change the stored adapter, cluster mapping or credentials."""
    _setup_logging(debug)

    from helmopt.adapters import select_adapter
    from helmopt.session import configure_cluster_mapping, open_session

    if not (adapter or cluster_mapping or clear_config):
        rprint("Nothing to do: pass --adapter, --cluster-mapping or --clear-config.")
        raise typer.Exit(code=1)

    try:
        session = open_session(resolve_remote=False)
        if clear_config:
            session.store.delete()
            rprint(f"Removed secret {session.store.name} from namespace {session.store.namespace}.")
            return
        if cluster_mapping:
            remote = configure_cluster_mapping(session)
            rprint(f"Cluster {session.local_cluster} mapped to {remote}.")
        if adapter:
            kind = select_adapter(session.prompter)
            session.store.remove(*_ADAPTER_SETTINGS)
            session.attach_adapter(kind)
            rprint(f"Adapter set to {kind.value}.")
    except OptimizeError as exc:
        _fail(exc)


# ---------------------------------------------------------------------------
# version
# ---------------------------------------------------------------------------

@app.command()
def version() -> None:
    """Print the helm-optimize version."""
    rprint(f"helm-optimize {__version__}")


if __name__ == "__main__":
    app()
