"""Cluster connector: kubeconfig context lookup and live workload reads.

The live read is the second source of the resolution chain: it asks the
running cluster for the same workload and copies the container's current
``resources`` block.
"""

from __future__ import annotations

import logging
from typing import Any, Optional

from kubernetes import config as k8s_config

from helmopt import config
from helmopt.errors import ConfigurationError, InsightNotFoundError, TransportError
from helmopt.manifest import jsonpath_for
from helmopt.models import RecommendationKey
from helmopt.tools.prompt import Prompter
from helmopt.tools.shell import Shell
from helmopt.tools.utils import load_json

logger = logging.getLogger("helmopt.connector")


# ---------------------------------------------------------------------------
# Tooling & kubeconfig
# ---------------------------------------------------------------------------

def check_kubectl(shell: Shell, prompter: Prompter, kubectl: str = config.KUBECTL_BIN) -> str:
    """Make sure kubectl runs and the cluster answers; return the usable binary.

    Asks for another path while the binary cannot be executed.
    """
    while not shell.run([kubectl]).ok:
        kubectl = prompter.ask(f"[{kubectl}] is not available -- enter new path") or kubectl
    info = shell.run([kubectl, "cluster-info"])
    if not info.ok:
        raise ConfigurationError(f"cluster unreachable: {info.stdout}\n{info.stderr}".strip())
    return kubectl


def detect_local_cluster(kubeconfig: Optional[str] = None, context: Optional[str] = None) -> str:
    """Cluster name of *context* (or the current context) in the kubeconfig."""
    try:
        contexts, active = k8s_config.list_kube_config_contexts(config_file=kubeconfig)
    except (k8s_config.ConfigException, OSError) as exc:
        raise ConfigurationError(f"unable to read kubeconfig: {exc}") from exc

    wanted = context or (active or {}).get("name")
    for ctx in contexts or []:
        if ctx.get("name") == wanted:
            return ctx.get("context", {}).get("cluster", "")
    raise ConfigurationError(f"context {wanted!r} not found in kubeconfig")


# ---------------------------------------------------------------------------
# Live resource lookup
# ---------------------------------------------------------------------------

def fetch_live_resources(
    shell: Shell,
    key: RecommendationKey,
    kubectl: str = config.KUBECTL_BIN,
) -> dict[str, Any]:
    """Return the deployed container's non-empty ``resources`` block.

    Raises:
        TransportError: kubectl failed (object missing, cluster unreachable).
        InsightNotFoundError: the container has no resources set.
    """
    result = shell.run([
        kubectl, "get", key.object_type, key.object_name,
        f"-o=jsonpath={jsonpath_for(key.object_type)}",
        f"--cluster={key.cluster}",
        f"--namespace={key.namespace}",
    ])
    if not result.ok:
        raise TransportError(result.stderr or f"kubectl get {key.object_type}/{key.object_name} failed")

    containers = load_json(result.stdout, "kubectl get") if result.stdout.strip() else []
    for container in containers if isinstance(containers, list) else []:
        if isinstance(container, dict) and container.get("name") == key.container_name:
            resources = container.get("resources")
            if isinstance(resources, dict) and resources:
                return resources
            break
    raise InsightNotFoundError("could not locate resource spec")
