"""Pytest configuration and fixtures for budconformance tests."""

import pytest

from budconformance.conformance.schemas import ContainerSpec
from tests.fakes import FakeClock


@pytest.fixture
def clock() -> FakeClock:
    """Fake clock whose sleep advances time instantly."""
    return FakeClock()


@pytest.fixture
def container_spec() -> ContainerSpec:
    """Container spec of the image pull test workload."""
    return ContainerSpec(name="image-pull-test", image="localhost:5000/pause:testing", node_name="node-1")
