"""Backend adapter contract.

An adapter knows how to fetch a container recommendation and its approval
state from one backend, and how to flip that approval state.
"""

from __future__ import annotations

from abc import ABC, abstractmethod

from helmopt.models import AdapterKind, ApprovalState, RecommendationKey, ResourceSpec
from helmopt.tools.prompt import Prompter
from helmopt.tools.secrets import SecretStore


class BackendAdapter(ABC):
    """Common interface of the Densify and Parameter Store integrations."""

    kind: AdapterKind

    def __init__(self, store: SecretStore, prompter: Prompter) -> None:
        self.store = store
        self.prompter = prompter

    @abstractmethod
    def initialize(self) -> None:
        """Load stored settings or collect them interactively.

        Raises:
            ConfigurationError: settings are missing, invalid or unreachable.
        """

    @abstractmethod
    def get_insight(self, key: RecommendationKey) -> tuple[ResourceSpec, ApprovalState]:
        """Return the spec to apply for *key* and its approval state.

        Raises:
            InsightNotFoundError: the backend has nothing for *key*.
            SpecValidationError: the record lacks four positive values.
            TransportError: the backend could not be reached.
        """

    @abstractmethod
    def get_approval_setting(self, key: RecommendationKey) -> ApprovalState:
        """Read the current approval state fresh from the backend."""

    @abstractmethod
    def set_approval_setting(self, key: RecommendationKey, approved: bool) -> None:
        """Mark *key* approved or not approved."""

    def describe(self) -> str:
        return self.kind.value
