"""
Tests for pipeline.py - walking, resolving and rewriting a working copy.
"""

import pytest
import yaml

from helmopt.models import ApprovalState, ResolutionSource
from helmopt.pipeline import process_chart, run_optimized_command
from helmopt.session import Session
from helmopt.tests.fakes import DEPLOYMENT, MemoryStore, ScriptedPrompter, StubAdapter, make_key

HELPERS = """\
{{- define "web.name" -}}
{{ .Chart.Name }}
{{- end }}
"""


@pytest.fixture
def chart(tmp_path):
    root = tmp_path / "web"
    (root / "templates").mkdir(parents=True)
    (root / "Chart.yaml").write_text("apiVersion: v2\nname: web\nversion: 0.1.0\n")
    (root / "values.yaml").write_text("replicas: 2\n")
    (root / "templates" / "deployment.yaml").write_text(DEPLOYMENT)
    (root / "templates" / "_helpers.tpl").write_text(HELPERS)
    (root / "templates" / "NOTES.txt").write_text("Installed.\n")
    return root


def _session(shell, adapter):
    return Session(
        shell=shell,
        prompter=ScriptedPrompter(),
        store=MemoryStore(),
        namespace="default",
        local_cluster="kind-prod",
        remote_cluster="prod",
        adapter=adapter,
    )


def test_process_chart_rewrites_resolved_containers(shell, chart, worked_spec):
    """Test that resolved containers are rewritten in the chart templates."""
    adapter = StubAdapter({make_key(): (worked_spec, ApprovalState.approved)})

    report = process_chart(_session(shell, adapter), chart)

    assert report.manifests == 1
    assert report.skipped == 2
    assert report.count(ResolutionSource.backend) == 1
    assert report.count(ResolutionSource.chart_default) == 1
    assert report.write_failures == []

    written = yaml.safe_load((chart / "templates" / "deployment.yaml").read_text())
    web, sidecar = written["spec"]["template"]["spec"]["containers"]
    assert web["resources"] == {
        "limits": {"cpu": "500m", "memory": "512Mi"},
        "requests": {"cpu": "250m", "memory": "256Mi"},
    }
    assert sidecar["resources"] == {"limits": {"cpu": "100m", "memory": "64Mi"}}
    assert written["spec"]["replicas"] == 2


def test_process_chart_leaves_non_workloads_untouched(shell, chart):
    """Test that non-workload templates are left untouched."""
    process_chart(_session(shell, StubAdapter()), chart)

    assert (chart / "templates" / "_helpers.tpl").read_text() == HELPERS
    assert (chart / "templates" / "NOTES.txt").read_text() == "Installed.\n"


def test_other_helm_commands_pass_straight_through(shell):
    """Test that other helm commands are passed straight through."""
    shell.on("helm", "list", stdout="NAME\tNAMESPACE")

    result = run_optimized_command(_session(shell, StubAdapter()), ["list", "-A"])

    assert result.stdout == "NAME\tNAMESPACE"
    assert shell.calls == [("helm", "list", "-A")]


def test_install_runs_against_the_optimized_copy(shell, chart, worked_spec):
    """install: dry-run, help, template, then install with the chart swapped for the copy."""
    shell.on("helm", "install", "api", str(chart), "--dry-run")
    shell.on("helm", "install", "-h", stdout="Flags:\n      --atomic       if set\n")
    shell.on("helm", "template")
    shell.on("helm", "install", "api")
    adapter = StubAdapter({make_key(): (worked_spec, ApprovalState.approved)})

    result = run_optimized_command(_session(shell, adapter), ["install", "api", str(chart)])

    assert result.ok
    final = shell.calls[-1]
    assert final[:3] == ("helm", "install", "api")
    assert final[3] != str(chart)
    assert final[3].endswith("web")
    assert adapter.insight_calls == [make_key(), make_key("sidecar")]
    # the user's chart is never modified
    assert "resources:\n            limits:\n              cpu: 100m" in (chart / "templates" / "deployment.yaml").read_text()
    assert "500m" not in (chart / "templates" / "deployment.yaml").read_text()
