"""Approval state tracker.

The backend owns the approval state of every recommendation.  Nothing is
cached here: each read goes back to the adapter, and the only way to change
a state is an explicit yes from the user.

Usage::

    tracker = ApprovalTracker(session.require_adapter(), session.prompter)
    state = tracker.state(key)
    tracker.review(key)          # asks, then flips on "y" / enter
"""

from __future__ import annotations

import logging
from typing import Iterable, Optional

from rich.markup import escape

from helmopt.adapters.base import BackendAdapter
from helmopt.errors import (
    InsightNotFoundError,
    OptimizeError,
    StructuralError,
)
from helmopt.manifest import ClassifiedManifest, classify_text
from helmopt.models import ApprovalState, RecommendationKey
from helmopt.tools.prompt import Prompter
from helmopt.tools.utils import rprint

logger = logging.getLogger("helmopt.approval")


class ApprovalTracker:
    def __init__(self, adapter: BackendAdapter, prompter: Prompter) -> None:
        self.adapter = adapter
        self.prompter = prompter

    def state(self, key: RecommendationKey) -> ApprovalState:
        """Current state, read fresh from the backend."""
        return self.adapter.get_approval_setting(key)

    def set_state(self, key: RecommendationKey, state: ApprovalState) -> None:
        self.adapter.set_approval_setting(key, state is ApprovalState.approved)
        logger.info("%s -> %s", key, state.value)

    def review(self, key: RecommendationKey) -> Optional[ApprovalState]:
        """Show *key*'s state and offer to flip it.

        Returns the new state, or ``None`` when nothing changed.

        Raises:
            InsightNotFoundError: the backend has no recommendation for *key*.
        """
        current = self.state(key)
        if current is ApprovalState.not_approved:
            question, target = "Approve this insight (y/n) [y]", ApprovalState.approved
        else:
            question, target = "Unapprove this insight (y/n) [y]", ApprovalState.not_approved

        if not self.prompter.yes(f"[{current.value}] {question}", default=True):
            return None
        self.set_state(key, target)
        return target


def split_documents(rendered: str) -> list[str]:
    """Split ``helm template`` output on document separators."""
    return [chunk for chunk in rendered.split("---") if chunk.strip()]


def review_rendered(
    tracker: ApprovalTracker,
    rendered: str,
    cluster: str,
    default_namespace: str,
) -> list[tuple[RecommendationKey, Optional[ApprovalState]]]:
    """Walk every container of rendered chart output and review its approval."""
    reviewed: list[tuple[RecommendationKey, Optional[ApprovalState]]] = []
    for manifest in _classified(split_documents(rendered), default_namespace):
        rprint(escape(f"\nnamespace[{manifest.namespace}] objType[{manifest.kind}] objName[{manifest.name}]"))
        for number, container in enumerate(manifest.containers, start=1):
            if not container.name:
                continue
            key = RecommendationKey(
                cluster=cluster,
                namespace=manifest.namespace,
                object_type=manifest.kind,
                object_name=manifest.name,
                container_name=container.name,
            )
            rprint(escape(f"{number}.{container.name}"))
            try:
                outcome = tracker.review(key)
            except InsightNotFoundError:
                rprint(escape(f"  {container.name} not found in repository."), style="yellow")
                continue
            except OptimizeError as exc:
                rprint(escape(f"  {exc}"), style="red")
                continue
            reviewed.append((key, outcome))
    return reviewed


def _classified(documents: Iterable[str], default_namespace: str) -> Iterable[ClassifiedManifest]:
    for document in documents:
        try:
            yield classify_text(document, default_namespace)
        except StructuralError as exc:
            logger.debug("Skipping document: %s", exc)
