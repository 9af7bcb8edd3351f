"""
Tests for session.py and tools/k8s_connector.py - context discovery.
"""

import json

import pytest
import yaml

from helmopt import config
from helmopt.errors import ConfigurationError, InsightNotFoundError, TransportError
from helmopt.session import Session, configure_cluster_mapping, open_session, resolve_remote_cluster
from helmopt.tests.fakes import MemoryStore, ScriptedPrompter, make_key
from helmopt.tools.k8s_connector import check_kubectl, detect_local_cluster, fetch_live_resources

KUBECONFIG = {
    "apiVersion": "v1",
    "kind": "Config",
    "current-context": "dev",
    "clusters": [
        {"name": "kind-dev", "cluster": {"server": "https://127.0.0.1:6443"}},
        {"name": "eks-prod", "cluster": {"server": "https://prod.example.com"}},
    ],
    "users": [{"name": "me", "user": {"token": "t"}}],
    "contexts": [
        {"name": "dev", "context": {"cluster": "kind-dev", "user": "me"}},
        {"name": "prod", "context": {"cluster": "eks-prod", "user": "me"}},
    ],
}


@pytest.fixture
def kubeconfig(tmp_path):
    path = tmp_path / "config"
    path.write_text(yaml.safe_dump(KUBECONFIG))
    return str(path)


def _forwarder(shell, **props):
    body = f"# {config.FORWARDER_MARKER}\n" + "".join(f"{k}={v}\n" for k, v in props.items())
    shell.on("kubectl", "get", "configmaps", stdout=json.dumps({"items": [
        {"data": {"config.properties": body}},
    ]}))


def test_detect_local_cluster_uses_current_context(kubeconfig):
    """Test that the local cluster comes from the current context."""
    assert detect_local_cluster(kubeconfig) == "kind-dev"


def test_detect_local_cluster_honours_context_override(kubeconfig):
    """Test that an explicit kube context overrides the current one."""
    assert detect_local_cluster(kubeconfig, context="prod") == "eks-prod"


def test_unknown_context_is_a_configuration_error(kubeconfig):
    """Test that an unknown context raises ConfigurationError."""
    with pytest.raises(ConfigurationError, match="staging"):
        detect_local_cluster(kubeconfig, context="staging")


def test_unreadable_kubeconfig_is_a_configuration_error(tmp_path):
    """Test that an unreadable kubeconfig raises ConfigurationError."""
    with pytest.raises(ConfigurationError):
        detect_local_cluster(str(tmp_path / "missing"))


def test_check_kubectl_asks_for_a_working_binary(shell):
    """Test that a missing kubectl prompts for a working binary."""
    shell.on("/opt/kubectl")
    prompter = ScriptedPrompter(["/opt/kubectl"])

    assert check_kubectl(shell, prompter, "kubectl") == "/opt/kubectl"


def test_check_kubectl_unreachable_cluster(shell):
    """Test that an unreachable cluster fails the kubectl check."""
    shell.on("kubectl")
    shell.on("kubectl", "cluster-info", stderr="connection refused", returncode=1)
    with pytest.raises(ConfigurationError, match="connection refused"):
        check_kubectl(shell, ScriptedPrompter(), "kubectl")


def test_fetch_live_resources_variants(shell):
    """Test the live resources lookup for found, empty and missing containers."""
    shell.on("kubectl", "get", "Deployment", "api", stdout=json.dumps([
        {"name": "web", "resources": {}},
        {"name": "sidecar", "resources": {"limits": {"cpu": "1"}}},
    ]))

    assert fetch_live_resources(shell, make_key("sidecar")) == {"limits": {"cpu": "1"}}
    with pytest.raises(InsightNotFoundError):
        fetch_live_resources(shell, make_key("web"))
    with pytest.raises(InsightNotFoundError):
        fetch_live_resources(shell, make_key("missing"))
    with pytest.raises(TransportError):
        fetch_live_resources(shell, make_key(object_name="gone"))


def test_remote_cluster_from_store(shell):
    """Test that a stored cluster mapping is used."""
    assert resolve_remote_cluster(MemoryStore({"remoteCluster": "eks-prod"}), shell) == "eks-prod"
    assert shell.calls == []


def test_remote_cluster_from_forwarder_is_stored(shell):
    """Test that the forwarder cluster name is used and stored."""
    _forwarder(shell, cluster_name="prod", prometheus_address="prom")
    store = MemoryStore()

    assert resolve_remote_cluster(store, shell) == "prod"
    assert store.data == {"remoteCluster": "prod"}


def test_remote_cluster_falls_back_to_prometheus_address(shell):
    """Test that the prometheus address names the cluster when cluster_name is absent."""
    _forwarder(shell, prometheus_address="prometheus.monitoring")
    assert resolve_remote_cluster(MemoryStore(), shell) == "prometheus.monitoring"


def test_unresolved_remote_cluster_points_to_configure(shell):
    """Test that an unresolved cluster points the user at configure."""
    with pytest.raises(ConfigurationError, match="--cluster-mapping"):
        resolve_remote_cluster(MemoryStore(), shell)


def test_configure_cluster_mapping_defaults_to_local_cluster(shell):
    """Test that the cluster mapping prompt defaults to the local cluster."""
    store = MemoryStore()
    session = Session(shell=shell, prompter=ScriptedPrompter([""]), store=store, local_cluster="kind-dev")

    assert configure_cluster_mapping(session) == "kind-dev"
    assert store.data == {"remoteCluster": "kind-dev"}
    assert session.remote_cluster == "kind-dev"


def test_open_session_reads_helm_environment(shell, kubeconfig):
    """Test that the session reads the helm environment variables."""
    shell.on("kubectl")
    shell.on("kubectl", "get", "secrets", stdout=json.dumps({"items": []}))
    _forwarder(shell, cluster_name="prod")
    shell.on("kubectl", "delete", "secret")
    shell.on("kubectl", "create", "secret")

    session = open_session(
        shell=shell,
        prompter=ScriptedPrompter(),
        environ={"KUBECONFIG": kubeconfig, "HELM_NAMESPACE": "payments", "HELM_KUBECONTEXT": "prod"},
    )

    assert session.namespace == "payments"
    assert session.local_cluster == "eks-prod"
    assert session.remote_cluster == "prod"
    assert session.store.namespace == "payments"
    assert session.adapter is None
