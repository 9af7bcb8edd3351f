"""Remote Optimization Service (Densify) adapter.

Talks to the Densify REST API with HTTP basic auth.  Each cluster maps to one
container analysis (matched by name); all insights of that analysis are
pulled in a single call and kept in the run's :class:`AnalysisCache`.
Approval reads and writes always go back to the API.
"""

from __future__ import annotations

import logging
from typing import Any, Optional

import httpx
from pydantic import ValidationError

from helmopt import config
from helmopt.adapters.base import BackendAdapter
from helmopt.cache import AnalysisCache
from helmopt.errors import (
    ConfigurationError,
    InsightNotFoundError,
    SpecValidationError,
    TransportError,
)
from helmopt.models import (
    AdapterKind,
    ApprovalState,
    Insight,
    RecommendationKey,
    ResourceSpec,
)
from helmopt.tools.forwarder import forwarder_url, load_forwarder_config
from helmopt.tools.prompt import Prompter
from helmopt.tools.secrets import SecretStore
from helmopt.tools.shell import Shell
from helmopt.tools.utils import rprint

logger = logging.getLogger("helmopt.adapters.densify")

_SECRET_KEYS = ("densifyURL", "densifyUser", "densifyPass")


class RemoteOptimizationAdapter(BackendAdapter):
    """Recommendations and approval settings from a Densify instance."""

    kind = AdapterKind.densify

    def __init__(
        self,
        store: SecretStore,
        prompter: Prompter,
        cache: AnalysisCache,
        shell: Shell,
        *,
        url: str = "",
        user: str = "",
        password: str = "",
        transport: Optional[httpx.BaseTransport] = None,
    ) -> None:
        super().__init__(store, prompter)
        self.cache = cache
        self.shell = shell
        self.url = url.rstrip("/")
        self.user = user
        self.password = password
        self._transport = transport
        # cluster -> analysis id, None once the listing had no analysis for it
        self._analysis_ids: dict[str, Optional[str]] = {}

    # ------------------------------------------------------------------
    # Initialization
    # ------------------------------------------------------------------

    def initialize(self) -> None:
        stored = self.store.retrieve()
        if stored.get("adapter") == self.kind.value and stored.get("densifyURL"):
            self.url = stored["densifyURL"].rstrip("/")
            self.user = stored.get("densifyUser", "")
            self.password = stored.get("densifyPass", "")
            try:
                self.validate()
                logger.info("Using stored Densify credentials for %s", self.url)
                return
            except TransportError as exc:
                logger.warning("Stored Densify credentials rejected: %s", exc)

        url = forwarder_url(load_forwarder_config(self.shell, self.store.kubectl))
        if url:
            rprint(f"Densify URL: {url}")
            if not self.prompter.yes("Is this your Densify URL (y/n)? [y]", default=True):
                url = ""
        if not url:
            url = self.prompter.ask("Enter Densify URL")
        self.url = url.rstrip("/")
        self.user = self.prompter.ask("Enter Densify Username")
        self.password = self.prompter.secret("Enter Densify Password")

        try:
            self.validate()
        except TransportError as exc:
            try:
                self.store.remove(*_SECRET_KEYS)
            except TransportError as store_exc:
                logger.warning("Could not clear stored credentials: %s", store_exc)
            raise ConfigurationError(f"unable to validate Densify credentials: {exc}") from exc

        try:
            self.store.store({
                "adapter": self.kind.value,
                "densifyURL": self.url,
                "densifyUser": self.user,
                "densifyPass": self.password,
            })
        except TransportError as exc:
            logger.warning("Credentials valid but could not be stored: %s", exc)

    def validate(self) -> None:
        """POST the credentials to the authorize endpoint."""
        self._request(
            "POST",
            config.AUTHORIZE_ENDPOINT,
            json={"userName": self.user, "pwd": self.password},
        )

    # ------------------------------------------------------------------
    # Contract
    # ------------------------------------------------------------------

    def get_insight(self, key: RecommendationKey) -> tuple[ResourceSpec, ApprovalState]:
        insights = self.cache.get_or_load(key.cluster, self._load_insights)
        insight = next((i for i in insights if i.matches(key)), None)
        if insight is None:
            raise InsightNotFoundError(f"unable to locate insight for {key}")

        setting = self._approval_attribute(insight.entity_id)
        if setting != config.NOT_APPROVED_VALUE:
            try:
                return insight.recommended_spec(), ApprovalState.approved
            except SpecValidationError as exc:
                logger.debug("Recommendation for %s unusable: %s", key, exc)
        return insight.current_spec(), ApprovalState.not_approved

    def get_approval_setting(self, key: RecommendationKey) -> ApprovalState:
        insight = self._lookup(key)
        if self._approval_attribute(insight.entity_id) == config.NOT_APPROVED_VALUE:
            return ApprovalState.not_approved
        return ApprovalState.approved

    def set_approval_setting(self, key: RecommendationKey, approved: bool) -> None:
        insight = self._lookup(key)
        value = config.APPROVE_VALUE if approved else config.NOT_APPROVED_VALUE
        self._request(
            "PUT",
            f"{config.SYSTEMS_ENDPOINT}/{insight.entity_id}/attributes",
            json=[{"name": config.APPROVAL_ATTRIBUTE_NAME, "value": value}],
        )
        logger.info("Approval setting of %s set to %r", key, value)

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _analysis_id(self, cluster: str) -> str:
        if cluster not in self._analysis_ids:
            analyses = self._get_json(config.ANALYSIS_ENDPOINT)
            for analysis in analyses if isinstance(analyses, list) else []:
                if isinstance(analysis, dict) and analysis.get("analysisName") == cluster:
                    self._analysis_ids[cluster] = str(analysis.get("analysisId", ""))
                    break
            else:
                self._analysis_ids[cluster] = None
        analysis_id = self._analysis_ids[cluster]
        if analysis_id is None:
            raise InsightNotFoundError(f"unable to load analysis for cluster {cluster}")
        return analysis_id

    def _load_insights(self, cluster: str) -> list[Insight]:
        analysis_id = self._analysis_id(cluster)
        records = self._get_json(f"{config.ANALYSIS_ENDPOINT}/{analysis_id}/results")
        return _parse_insights(records)

    def _lookup(self, key: RecommendationKey) -> Insight:
        """Fetch exactly one insight for *key*, bypassing the cache."""
        analysis_id = self._analysis_id(key.cluster)
        records = self._get_json(
            f"{config.ANALYSIS_ENDPOINT}/{analysis_id}/results",
            params={
                "cluster": key.cluster,
                "namespace": key.namespace,
                "container": key.container_name,
                "podService": key.object_name,
                "controllerType": key.object_type,
            },
        )
        insights = _parse_insights(records)
        if len(insights) != 1:
            raise InsightNotFoundError(f"unable to locate insight for {key}")
        return insights[0]

    def _approval_attribute(self, entity_id: str) -> str:
        """Raw ``Approval Setting`` value; unreadable counts as not approved."""
        try:
            system = self._get_json(f"{config.SYSTEMS_ENDPOINT}/{entity_id}")
        except TransportError as exc:
            logger.debug("Approval attribute of %s unreadable: %s", entity_id, exc)
            return config.NOT_APPROVED_VALUE
        attributes = (system.get("attributes") if isinstance(system, dict) else None) or []
        if not isinstance(attributes, list):
            return config.NOT_APPROVED_VALUE
        for attribute in attributes:
            if isinstance(attribute, dict) and attribute.get("id") == config.APPROVAL_ATTRIBUTE_ID:
                return str(attribute.get("value", ""))
        return config.NOT_APPROVED_VALUE

    def _get_json(self, endpoint: str, params: Optional[dict[str, str]] = None) -> Any:
        response = self._request("GET", endpoint, params=params)
        try:
            return response.json()
        except ValueError as exc:
            raise TransportError(f"invalid JSON from {endpoint}: {exc}") from exc

    def _request(self, method: str, endpoint: str, **kwargs: Any) -> httpx.Response:
        try:
            with httpx.Client(
                auth=(self.user, self.password),
                headers={"Content-Type": "application/json", "Accept": "application/json"},
                timeout=None,
                transport=self._transport,
            ) as client:
                response = client.request(method, f"{self.url}{endpoint}", **kwargs)
        except (httpx.HTTPError, httpx.InvalidURL) as exc:
            raise TransportError(f"{method} {endpoint} failed: {exc}") from exc
        if response.status_code != 200:
            raise TransportError(
                f"{method} {endpoint} returned {response.status_code}: {response.text.strip()}"
            )
        return response


def _parse_insights(records: Any) -> list[Insight]:
    if not isinstance(records, list):
        raise TransportError("insight listing is not a JSON array")
    insights: list[Insight] = []
    for record in records:
        try:
            insights.append(Insight.model_validate(record))
        except ValidationError as exc:
            logger.warning("Skipping malformed insight record: %s", exc)
    return insights
