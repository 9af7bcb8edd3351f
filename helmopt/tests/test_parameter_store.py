"""
Tests for adapters/parameter_store.py - aws CLI calls against a fake shell.
"""

import json

import pytest

from helmopt.adapters.parameter_store import ParameterStoreAdapter, parse_resource_value
from helmopt.errors import ConfigurationError, InsightNotFoundError, SpecValidationError, TransportError
from helmopt.models import ApprovalState
from helmopt.tests.fakes import FakeShell, MemoryStore, ScriptedPrompter, make_key

NAME = "/opt/prod/payments/Deployment/api/web/resourceSpec"
VALUE = json.dumps({"limits": {"cpu": "500", "memory": "512"}, "requests": {"cpu": "250", "memory": "256"}})
AWS_TAIL = ("--profile", "default", "--region", "us-east-1")


def _aws(shell, *args, **result):
    shell.on("aws", *args, *AWS_TAIL, **result)


@pytest.fixture
def ssm(shell):
    """Shell with one parameter at version 3 labelled Approved."""
    _aws(shell, "ssm", "get-parameter", "--with-decryption", "--name", NAME,
         stdout=json.dumps({"Parameter": {"Name": NAME, "Value": VALUE, "Version": 3}}))
    _aws(shell, "ssm", "get-parameter-history", "--with-decryption", "--name", NAME,
         "--query", "Parameters",
         stdout=json.dumps([
             {"Version": 2, "Labels": ["NotApproved"]},
             {"Version": 3, "Labels": ["Approved"]},
         ]))
    return shell


def _adapter(shell, store=None, prompter=None, prefix="/opt"):
    return ParameterStoreAdapter(store or MemoryStore(), prompter or ScriptedPrompter(), shell, prefix=prefix)


def test_parameter_name_layout(shell):
    """Test that the parameter name is built from prefix, cluster, namespace, kind, object and container."""
    assert _adapter(shell).parameter_name(make_key()) == NAME
    assert _adapter(shell, prefix="").parameter_name(make_key()) == "/prod/payments/Deployment/api/web/resourceSpec"


def test_worked_example_from_parameter(ssm):
    """Test that the worked example parameter yields its recommendation."""
    spec, state = _adapter(ssm).get_insight(make_key())

    assert state is ApprovalState.approved
    assert spec.to_resources() == {
        "limits": {"cpu": "500m", "memory": "512Mi"},
        "requests": {"cpu": "250m", "memory": "256Mi"},
    }


def test_label_must_match_current_version(ssm):
    """Labels of older versions are ignored."""
    _aws(ssm, "ssm", "get-parameter-history", "--with-decryption", "--name", NAME,
         "--query", "Parameters",
         stdout=json.dumps([{"Version": 2, "Labels": ["Approved"]}, {"Version": 3, "Labels": []}]))
    with pytest.raises(InsightNotFoundError):
        _adapter(ssm).get_approval_setting(make_key())


def test_missing_parameter_raises_insight_not_found(shell):
    """Test that a missing parameter raises InsightNotFoundError."""
    shell.on("aws", "ssm", "get-parameter", stderr="ParameterNotFound", returncode=255)
    with pytest.raises(InsightNotFoundError):
        _adapter(shell).get_insight(make_key())


@pytest.mark.parametrize("value", [
    '{"limits": {"cpu": "0", "memory": "512"}, "requests": {"cpu": "250", "memory": "256"}}',
    '{"limits": {"cpu": "500"}, "requests": {"cpu": "250", "memory": "256"}}',
    '{"limits": {"cpu": "500m", "memory": "512"}, "requests": {"cpu": "250", "memory": "256"}}',
    '["not", "an", "object"]',
    "not json",
])
def test_invalid_parameter_values_are_rejected(value):
    """Test that invalid parameter values are rejected."""
    with pytest.raises(SpecValidationError):
        parse_resource_value(value)


def test_set_approval_writes_recommended_tags_and_label(ssm):
    """Test that approving writes the recommended tags and the approval label."""
    ssm.on("aws", "ssm", "list-tags-for-resource", stdout=json.dumps([
        {"Key": "recommendedCpuLimit", "Value": "500"},
        {"Key": "recommendedMemLimit", "Value": "512"},
        {"Key": "recommendedCpuRequest", "Value": "250"},
        {"Key": "recommendedMemRequest", "Value": "256"},
        {"Key": "currentCpuLimit", "Value": "1000"},
        {"Key": "owner", "Value": "team-a"},
    ]))
    ssm.on("aws", "ssm", "put-parameter")
    ssm.on("aws", "ssm", "label-parameter-version")

    _adapter(ssm).set_approval_setting(make_key(), approved=True)

    put = ssm.called("aws", "ssm", "put-parameter")[0]
    written = json.loads(put[put.index("--value") + 1])
    assert written == {"limits": {"cpu": "500", "memory": "512"}, "requests": {"cpu": "250", "memory": "256"}}
    assert "--overwrite" in put

    label = ssm.called("aws", "ssm", "label-parameter-version")[0]
    assert label[label.index("--labels") + 1] == "Approved"


def test_set_approval_failure_raises_transport_error(ssm):
    """Test that a failing aws call while approving raises TransportError."""
    ssm.on("aws", "ssm", "list-tags-for-resource", stdout="[]")
    ssm.on("aws", "ssm", "put-parameter", stderr="AccessDenied", returncode=254)

    with pytest.raises(TransportError, match="AccessDenied"):
        _adapter(ssm).set_approval_setting(make_key(), approved=False)
    assert ssm.called("aws", "ssm", "label-parameter-version") == []


def test_initialize_requires_aws_cli(shell):
    """Test that initialize fails without the aws CLI."""
    with pytest.raises(ConfigurationError, match="aws-cli"):
        _adapter(shell).initialize()


def test_initialize_uses_stored_settings(shell):
    """Test that initialize reuses the stored prefix, profile and region."""
    shell.on("aws", "--version", stdout="aws-cli/2.15.0")
    store = MemoryStore({"adapter": "Parameter Store", "prefix": "/team", "profile": "ops", "region": "eu-west-1"})
    adapter = _adapter(shell, store=store, prefix="")

    adapter.initialize()

    assert (adapter.prefix, adapter.profile, adapter.region) == ("/team", "ops", "eu-west-1")


def test_initialize_prompts_until_answers_are_valid(shell):
    """Reserved or malformed prefixes and unknown regions are asked again."""
    shell.on("aws", "--version", stdout="aws-cli/2.15.0")
    shell.on("aws", "sts", "get-caller-identity", "--profile", "default", stdout="{}")
    store = MemoryStore()
    prompter = ScriptedPrompter(["/AWS/x", "no spaces allowed", "/team", "", "mars-1", "eu-west-1"])
    adapter = _adapter(shell, store=store, prompter=prompter, prefix="")

    adapter.initialize()

    assert store.data == {
        "adapter": "Parameter Store",
        "prefix": "/team",
        "profile": "default",
        "region": "eu-west-1",
    }
    assert prompter.answers == []
