"""Per-run context.

The selected adapter, its credentials, the analysis cache and the cluster
names live on one :class:`Session` built at startup and passed to every
resolution call.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from typing import Mapping, Optional

from helmopt import config
from helmopt.adapters import (
    BackendAdapter,
    build_adapter,
    initialize_adapter,
    stored_adapter_kind,
)
from helmopt.cache import AnalysisCache
from helmopt.errors import ConfigurationError, TransportError
from helmopt.models import AdapterKind
from helmopt.tools.forwarder import load_forwarder_config
from helmopt.tools.k8s_connector import check_kubectl, detect_local_cluster
from helmopt.tools.prompt import Prompter
from helmopt.tools.secrets import SecretStore
from helmopt.tools.shell import Shell

logger = logging.getLogger("helmopt.session")

CLUSTER_MAPPING_HINT = "please configure manually using 'helm-optimize configure --cluster-mapping'"


@dataclass
class Session:
    shell: Shell
    prompter: Prompter
    store: SecretStore
    namespace: str = config.DEFAULT_NAMESPACE
    local_cluster: str = ""
    remote_cluster: str = ""
    kubectl: str = config.KUBECTL_BIN
    helm: str = config.HELM_BIN
    cache: AnalysisCache = field(default_factory=AnalysisCache)
    adapter: Optional[BackendAdapter] = None

    def attach_adapter(self, kind: Optional[AdapterKind] = None) -> BackendAdapter:
        """Build and initialize the stored (or given) adapter for this run."""
        kind = kind or stored_adapter_kind(self.store)
        adapter = build_adapter(kind, self.store, self.prompter, self.shell, self.cache)
        self.adapter = initialize_adapter(adapter, self.prompter)
        return self.adapter

    def require_adapter(self) -> BackendAdapter:
        if self.adapter is None:
            raise ConfigurationError("no adapter initialized")
        return self.adapter


def resolve_remote_cluster(store: SecretStore, shell: Shell) -> str:
    """Cluster name the backend knows this cluster by.

    Taken from the stored cluster mapping, else from the data forwarder
    (``cluster_name``, then ``prometheus_address``), which is then stored.
    """
    stored = store.retrieve().get("remoteCluster")
    if stored:
        return stored

    properties = load_forwarder_config(shell, store.kubectl) or {}
    cluster = properties.get("cluster_name") or properties.get("prometheus_address")
    if not cluster:
        raise ConfigurationError(f"could not resolve remote cluster -- {CLUSTER_MAPPING_HINT}")
    try:
        store.store({"remoteCluster": cluster})
    except TransportError as exc:
        logger.warning("Remote cluster mapping could not be stored: %s", exc)
    return cluster


def configure_cluster_mapping(session: Session) -> str:
    """Ask which backend cluster this kube context maps to and store it."""
    remote = session.prompter.ask(
        f"Please specify remote cluster [{session.local_cluster}]",
        default=session.local_cluster,
    ) or session.local_cluster
    session.store.store({"remoteCluster": remote})
    session.remote_cluster = remote
    return remote


def open_session(
    shell: Optional[Shell] = None,
    prompter: Optional[Prompter] = None,
    environ: Mapping[str, str] = os.environ,
    *,
    resolve_remote: bool = True,
) -> Session:
    """Check tooling, read the kube context and build the run's Session.

    Raises:
        ConfigurationError: kubectl, the kubeconfig or the remote cluster
            mapping is unusable.
    """
    shell = shell or Shell()
    prompter = prompter or Prompter()

    kubectl = check_kubectl(shell, prompter, config.KUBECTL_BIN)
    namespace = environ.get("HELM_NAMESPACE") or config.DEFAULT_NAMESPACE
    local_cluster = detect_local_cluster(
        environ.get("KUBECONFIG") or None,
        context=environ.get("HELM_KUBECONTEXT") or None,
    )

    store = SecretStore(shell, fallback_namespace=namespace, kubectl=kubectl)
    store.locate_namespace()

    session = Session(
        shell=shell,
        prompter=prompter,
        store=store,
        namespace=namespace,
        local_cluster=local_cluster,
        kubectl=kubectl,
        helm=environ.get("HELM_BIN") or config.HELM_BIN,
    )
    if resolve_remote:
        session.remote_cluster = resolve_remote_cluster(store, shell)
    logger.info(
        "Session: local=%s remote=%s namespace=%s",
        session.local_cluster, session.remote_cluster, session.namespace,
    )
    return session
