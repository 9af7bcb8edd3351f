"""Cloud Parameter Store (AWS SSM) adapter.

Every container owns one String parameter::

    {prefix}/{cluster}/{namespace}/{objectType}/{objectName}/{containerName}/resourceSpec

whose value is a JSON resource spec with unsuffixed numbers.  The approval
state is the label (``Approved`` / ``NotApproved``) attached to the
parameter's current version; the candidate specs live in the parameter's
``current*`` / ``recommended*`` tags.  All calls go through the aws CLI.
"""

from __future__ import annotations

import json
import logging
import re
from typing import Any

from helmopt import config
from helmopt.adapters.base import BackendAdapter
from helmopt.errors import (
    ConfigurationError,
    InsightNotFoundError,
    SpecValidationError,
    TransportError,
)
from helmopt.models import (
    AdapterKind,
    ApprovalState,
    RecommendationKey,
    ResourceSpec,
)
from helmopt.tools.prompt import Prompter
from helmopt.tools.secrets import SecretStore
from helmopt.tools.shell import CommandResult, Shell
from helmopt.tools.utils import load_json, rprint

logger = logging.getLogger("helmopt.adapters.parameter_store")

_RESERVED_PREFIX = re.compile(r"^/?(aws|ssm)", re.IGNORECASE)
_PREFIX_PATTERN = re.compile(r"^(/[a-zA-Z0-9_.-]+)*$")

_LABEL_STATES = {
    config.APPROVED_LABEL: ApprovalState.approved,
    config.NOT_APPROVED_LABEL: ApprovalState.not_approved,
}

# tag key -> (set, section, resource)
_TAG_FIELDS: dict[str, tuple[str, str, str]] = {
    "currentCpuLimit": ("current", "limits", "cpu"),
    "currentMemLimit": ("current", "limits", "memory"),
    "currentCpuRequest": ("current", "requests", "cpu"),
    "currentMemRequest": ("current", "requests", "memory"),
    "recommendedCpuLimit": ("recommended", "limits", "cpu"),
    "recommendedMemLimit": ("recommended", "limits", "memory"),
    "recommendedCpuRequest": ("recommended", "requests", "cpu"),
    "recommendedMemRequest": ("recommended", "requests", "memory"),
}


def _positive_int(value: Any) -> int:
    if isinstance(value, bool):
        raise ValueError(value)
    number = int(str(value).strip())
    if number < 1:
        raise ValueError(value)
    return number


def parse_resource_value(value: str) -> ResourceSpec:
    """Parse a stored parameter value; every leaf must be a positive integer."""
    try:
        data = json.loads(value)
    except (json.JSONDecodeError, TypeError) as exc:
        raise SpecValidationError(f"resource spec is not JSON: {exc}") from exc
    if not isinstance(data, dict):
        raise SpecValidationError("resource spec is not a JSON object")

    leaves = {}
    for section in ("limits", "requests"):
        block = data.get(section)
        for resource in ("cpu", "memory"):
            raw = block.get(resource) if isinstance(block, dict) else None
            try:
                leaves[f"{section}.{resource}"] = _positive_int(raw)
            except (TypeError, ValueError):
                raise SpecValidationError(
                    f"invalid resource specs received from repository: {section}.{resource}={raw!r}"
                ) from None

    return ResourceSpec.from_values(
        leaves["limits.cpu"],
        leaves["limits.memory"],
        leaves["requests.cpu"],
        leaves["requests.memory"],
    )


class ParameterStoreAdapter(BackendAdapter):
    """Recommendations and approval labels kept in AWS SSM parameters."""

    kind = AdapterKind.parameter_store

    def __init__(
        self,
        store: SecretStore,
        prompter: Prompter,
        shell: Shell,
        *,
        prefix: str = "",
        profile: str = config.DEFAULT_AWS_PROFILE,
        region: str = config.DEFAULT_AWS_REGION,
        aws: str = config.AWS_BIN,
    ) -> None:
        super().__init__(store, prompter)
        self.shell = shell
        self.prefix = prefix
        self.profile = profile
        self.region = region
        self.aws = aws

    # ------------------------------------------------------------------
    # Initialization
    # ------------------------------------------------------------------

    def initialize(self) -> None:
        if not self.shell.run([self.aws, "--version"]).ok:
            raise ConfigurationError("aws-cli is not available - please install before trying again")

        stored = self.store.retrieve()
        if stored.get("adapter") == self.kind.value and stored.get("region"):
            self.region = stored["region"]
            self.prefix = stored.get("prefix", "")
            self.profile = stored.get("profile") or config.DEFAULT_AWS_PROFILE
            logger.info("Using stored Parameter Store settings (%s, %s)", self.profile, self.region)
            return

        self.prefix = self._ask_prefix()
        self.profile = self._ask_profile()
        self.region = self._ask_region()

        try:
            self.store.store({
                "adapter": self.kind.value,
                "prefix": self.prefix,
                "profile": self.profile,
                "region": self.region,
            })
        except TransportError as exc:
            logger.warning("Parameter Store settings could not be stored: %s", exc)

    def _ask_prefix(self) -> str:
        while True:
            prefix = self.prompter.ask("What is your preferred parameter key prefix [no prefix]")
            if prefix and _RESERVED_PREFIX.match(prefix):
                rprint("Parameter name: can't be prefixed with \"aws\" or \"ssm\" (case-insensitive).")
                continue
            if prefix and not _PREFIX_PATTERN.match(prefix):
                rprint("Only a mix of letters, numbers and the following 3 symbols .-_ are allowed.  e.g /prefix/path")
                continue
            return prefix

    def _ask_profile(self) -> str:
        while True:
            profile = self.prompter.ask(
                f"What is your preferred AWS profile [{config.DEFAULT_AWS_PROFILE}]",
                default=config.DEFAULT_AWS_PROFILE,
            ) or config.DEFAULT_AWS_PROFILE
            result = self.shell.run([self.aws, "sts", "get-caller-identity", "--profile", profile])
            if result.ok:
                return profile
            rprint(result.stderr, style="red")

    def _ask_region(self) -> str:
        while True:
            region = self.prompter.ask(
                f"What is your preferred AWS region [{config.DEFAULT_AWS_REGION}]",
                default=config.DEFAULT_AWS_REGION,
            ) or config.DEFAULT_AWS_REGION
            if region in config.SUPPORTED_REGIONS:
                return region
            rprint(
                "Invalid entry.  Check for valid regions here "
                "https://aws.amazon.com/about-aws/global-infrastructure/regions_az/."
            )

    # ------------------------------------------------------------------
    # Contract
    # ------------------------------------------------------------------

    def parameter_name(self, key: RecommendationKey) -> str:
        return "/".join([
            self.prefix,
            key.cluster,
            key.namespace,
            key.object_type,
            key.object_name,
            key.container_name,
            config.PARAMETER_SUFFIX,
        ])

    def get_insight(self, key: RecommendationKey) -> tuple[ResourceSpec, ApprovalState]:
        name = self.parameter_name(key)
        value, version = self._parameter(name)
        spec = parse_resource_value(value)
        return spec, self._label(name, version)

    def get_approval_setting(self, key: RecommendationKey) -> ApprovalState:
        name = self.parameter_name(key)
        _, version = self._parameter(name)
        return self._label(name, version)

    def set_approval_setting(self, key: RecommendationKey, approved: bool) -> None:
        name = self.parameter_name(key)
        tags = self._aws("ssm", "list-tags-for-resource", "--resource-type", "Parameter",
                         "--resource-id", name, "--query", "TagList")
        if not tags.ok:
            raise TransportError(f"unable to update approval setting for {key}: {tags.stderr}")

        settings: dict[str, dict[str, dict[str, str]]] = {
            "current": {"limits": {}, "requests": {}},
            "recommended": {"limits": {}, "requests": {}},
        }
        for tag in load_json(tags.stdout, "aws ssm list-tags-for-resource") or []:
            target = _TAG_FIELDS.get(tag.get("Key", "")) if isinstance(tag, dict) else None
            if target:
                which, section, resource = target
                settings[which][section][resource] = str(tag.get("Value", ""))

        chosen = settings["recommended" if approved else "current"]
        label = config.APPROVED_LABEL if approved else config.NOT_APPROVED_LABEL

        result = self._aws("ssm", "put-parameter", "--name", name, "--type", "String",
                           "--value", json.dumps(chosen, separators=(",", ":")), "--overwrite")
        if result.ok:
            result = self._aws("ssm", "label-parameter-version", "--name", name, "--labels", label)
        if not result.ok:
            raise TransportError(f"unable to update approval setting for {key}: {result.stderr}")
        logger.info("Parameter %s relabelled %s", name, label)

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _aws(self, *args: str) -> CommandResult:
        return self.shell.run([self.aws, *args, "--profile", self.profile, "--region", self.region])

    def _parameter(self, name: str) -> tuple[str, Any]:
        """Return (value, version) of parameter *name*."""
        result = self._aws("ssm", "get-parameter", "--with-decryption", "--name", name)
        if not result.ok:
            raise InsightNotFoundError(f"could not locate resource spec {name}: {result.stderr}")
        parameter = (load_json(result.stdout, "aws ssm get-parameter") or {}).get("Parameter", {})
        if "Value" not in parameter:
            raise InsightNotFoundError(f"could not locate resource spec {name}")
        return parameter["Value"], parameter.get("Version")

    def _label(self, name: str, version: Any) -> ApprovalState:
        result = self._aws("ssm", "get-parameter-history", "--with-decryption",
                           "--name", name, "--query", "Parameters")
        if not result.ok:
            raise TransportError(f"unable to read approval setting of {name}: {result.stderr}")
        for entry in load_json(result.stdout, "aws ssm get-parameter-history") or []:
            if not isinstance(entry, dict):
                continue
            labels = entry.get("Labels") or []
            if entry.get("Version") == version and len(labels) == 1 and labels[0] in _LABEL_STATES:
                return _LABEL_STATES[labels[0]]
        raise InsightNotFoundError(f"unable to read parameter label of {name}")
