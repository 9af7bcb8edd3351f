"""Shared fixtures."""

import pytest

from helmopt.models import ResourceSpec
from helmopt.tests.fakes import DEPLOYMENT, FakeShell, MemoryStore


@pytest.fixture
def shell():
    return FakeShell()


@pytest.fixture
def store():
    return MemoryStore()


@pytest.fixture
def worked_spec():
    """The recommendation for prod/payments/Deployment/api/web."""
    return ResourceSpec.from_values(500, 512, 250, 256)


@pytest.fixture
def deployment_yaml():
    return DEPLOYMENT
