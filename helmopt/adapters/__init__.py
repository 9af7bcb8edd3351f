"""Backend adapters and adapter selection."""

from __future__ import annotations

import logging

from rich.markup import escape

from helmopt.adapters.base import BackendAdapter
from helmopt.adapters.densify import RemoteOptimizationAdapter
from helmopt.adapters.parameter_store import ParameterStoreAdapter
from helmopt.cache import AnalysisCache
from helmopt.errors import ConfigurationError
from helmopt.models import AdapterKind
from helmopt.tools.prompt import Prompter
from helmopt.tools.secrets import SecretStore
from helmopt.tools.shell import Shell
from helmopt.tools.utils import rprint

logger = logging.getLogger("helmopt.adapters")

__all__ = [
    "BackendAdapter",
    "ParameterStoreAdapter",
    "RemoteOptimizationAdapter",
    "build_adapter",
    "initialize_adapter",
    "select_adapter",
    "stored_adapter_kind",
]


def build_adapter(
    kind: AdapterKind,
    store: SecretStore,
    prompter: Prompter,
    shell: Shell,
    cache: AnalysisCache,
) -> BackendAdapter:
    if kind is AdapterKind.densify:
        return RemoteOptimizationAdapter(store, prompter, cache, shell)
    return ParameterStoreAdapter(store, prompter, shell)


def stored_adapter_kind(store: SecretStore) -> AdapterKind:
    """Adapter named in the credential store, Densify when none is stored."""
    value = store.retrieve().get("adapter", "")
    try:
        return AdapterKind(value)
    except ValueError:
        if value:
            logger.warning("Unknown stored adapter %r, falling back to Densify", value)
        return AdapterKind.densify


def select_adapter(prompter: Prompter) -> AdapterKind:
    """Ask the user to pick an adapter until the answer is a valid menu number."""
    kinds = list(AdapterKind)
    while True:
        rprint("Select Adapter")
        for number, kind in enumerate(kinds, start=1):
            rprint(f"  {number}. {kind.value}")
        answer = prompter.ask("Selection")
        if answer.isdigit() and 1 <= int(answer) <= len(kinds):
            return kinds[int(answer) - 1]
        rprint("Incorrect adapter selection.  Try again.")


def initialize_adapter(adapter: BackendAdapter, prompter: Prompter) -> BackendAdapter:
    """Initialize *adapter*, offering the user exactly one retry.

    Raises:
        ConfigurationError: initialization failed twice, or once and the
            user declined to retry.
    """
    try:
        adapter.initialize()
    except ConfigurationError as exc:
        rprint(escape(str(exc)), style="red")
        if not prompter.yes("Would you like to try again (y/n)"):
            raise
        adapter.initialize()
    logger.info("Adapter %s initialized", adapter.describe())
    return adapter
