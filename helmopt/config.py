"""helm-optimize configuration: binaries, endpoints and workload paths.

All tunables live here so adapters stay free of magic strings.
Override binaries at runtime via environment variables.
"""

from __future__ import annotations

import os

# ---------------------------------------------------------------------------
# External binaries
# ---------------------------------------------------------------------------

HELM_BIN: str = os.getenv("HELM_BIN", "helm")
KUBECTL_BIN: str = os.getenv("HELMOPT_KUBECTL_BIN", "kubectl")
AWS_BIN: str = os.getenv("HELMOPT_AWS_BIN", "aws")

# Helm sub-commands whose chart gets optimized; everything else is passed through.
OPTIMIZE_COMMANDS: tuple[str, ...] = ("install", "upgrade", "template")

# ---------------------------------------------------------------------------
# Credential store
# ---------------------------------------------------------------------------

SECRET_NAME: str = "helm-optimize-plugin"
DEFAULT_NAMESPACE: str = "default"

# ---------------------------------------------------------------------------
# Densify (Remote Optimization Service)
# ---------------------------------------------------------------------------

ANALYSIS_ENDPOINT: str = "/CIRBA/api/v2/analysis/containers/kubernetes"
AUTHORIZE_ENDPOINT: str = "/CIRBA/api/v2/authorize"
SYSTEMS_ENDPOINT: str = "/CIRBA/api/v2/systems"

APPROVAL_ATTRIBUTE_ID: str = "attr_ApprovalSetting"
APPROVAL_ATTRIBUTE_NAME: str = "Approval Setting"
APPROVE_VALUE: str = "Approve Specific Change"
NOT_APPROVED_VALUE: str = "Not Approved"

# The data forwarder's config map is recognised by this line in config.properties.
FORWARDER_MARKER: str = "Densify Inc. D/B/A Densify #  All Rights Reserved."
FORWARDER_DATA_KEY: str = "config.properties"

# ---------------------------------------------------------------------------
# AWS SSM Parameter Store
# ---------------------------------------------------------------------------

DEFAULT_AWS_PROFILE: str = "default"
DEFAULT_AWS_REGION: str = "us-east-1"
PARAMETER_SUFFIX: str = "resourceSpec"
APPROVED_LABEL: str = "Approved"
NOT_APPROVED_LABEL: str = "NotApproved"

SUPPORTED_REGIONS: tuple[str, ...] = (
    "us-east-2", "us-east-1", "us-west-1", "us-west-2",
    "af-south-1", "ap-east-1", "ap-south-1", "ap-northeast-3",
    "ap-northeast-2", "ap-southeast-1", "ap-southeast-2", "ap-northeast-1",
    "ca-central-1", "cn-north-1", "cn-northwest-1",
    "eu-central-1", "eu-west-1", "eu-west-2", "eu-south-1", "eu-west-3", "eu-north-1",
    "me-south-1", "sa-east-1", "us-gov-east-1", "us-gov-west-1",
)

# ---------------------------------------------------------------------------
# Workload kinds → container list location
# ---------------------------------------------------------------------------

CONTAINER_PATHS: dict[str, tuple[str, ...]] = {
    "Pod": ("spec", "containers"),
    "CronJob": ("spec", "jobTemplate", "spec", "template", "spec", "containers"),
    "DaemonSet": ("spec", "template", "spec", "containers"),
    "Job": ("spec", "template", "spec", "containers"),
    "ReplicaSet": ("spec", "template", "spec", "containers"),
    "ReplicationController": ("spec", "template", "spec", "containers"),
    "StatefulSet": ("spec", "template", "spec", "containers"),
    "Deployment": ("spec", "template", "spec", "containers"),
}

HELM_HOOK_ANNOTATION: str = "helm.sh/hook"
