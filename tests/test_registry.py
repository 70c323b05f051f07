"""Tests for the private registry fixture."""

import base64
import json
from unittest.mock import MagicMock

import pytest

from budconformance.commons.config import AppConfig
from budconformance.commons.exceptions import CreationError, DeletionError, SetupError
from budconformance.platform.registry import RegistryFixture, docker_config_json
from tests.fakes import FakeWorkloadClient, running, waiting


class RegistryClient(FakeWorkloadClient):
    """Fake client that also serves the registry pod."""

    async def read_pod(self, handle):
        pod = MagicMock()
        pod.spec.node_name = "node-1"
        pod.status.pod_ip = "10.244.0.12"
        return pod


@pytest.fixture
def settings():
    return AppConfig(registry_port=5000, registry_startup_timeout=10, registry_pod_name="private-registry")


def test_docker_config_json():
    payload = json.loads(docker_config_json("localhost:5000", "user1", "password1"))

    entry = payload["auths"]["localhost:5000"]
    assert entry["username"] == "user1"
    assert entry["password"] == "password1"
    assert base64.b64decode(entry["auth"]).decode() == "user1:password1"


class TestRegistryFixture:
    """Registry startup, caching and teardown."""

    @pytest.mark.asyncio
    async def test_host_binding_uses_localhost(self, settings, clock):
        client = RegistryClient([waiting("ContainerCreating"), running()])
        fixture = RegistryFixture(client, settings, clock=clock, sleep=clock.sleep)

        address, nodes = await fixture.setup(needs_host_binding=True)

        assert address == "localhost:5000"
        assert nodes == ["node-1"]
        spec = client.created[0]
        assert spec.name == "private-registry"
        assert spec.ports[0].host_port == 5000

    @pytest.mark.asyncio
    async def test_without_host_binding_uses_pod_ip(self, settings, clock):
        client = RegistryClient([running()])
        fixture = RegistryFixture(client, settings, clock=clock, sleep=clock.sleep)

        address, _ = await fixture.setup(needs_host_binding=False)

        assert address == "10.244.0.12:5000"
        assert client.created[0].ports[0].host_port is None

    @pytest.mark.asyncio
    async def test_setup_is_cached(self, settings, clock):
        client = RegistryClient([running()])
        fixture = RegistryFixture(client, settings, clock=clock, sleep=clock.sleep)

        first = await fixture.setup(needs_host_binding=True)
        second = await fixture.setup(needs_host_binding=True)

        assert first == second
        assert len(client.created) == 1

    @pytest.mark.asyncio
    async def test_registry_not_ready(self, settings, clock):
        client = RegistryClient([waiting("ErrImagePull")])
        fixture = RegistryFixture(client, settings, clock=clock, sleep=clock.sleep)

        with pytest.raises(SetupError, match="did not become ready"):
            await fixture.setup(needs_host_binding=True)

        await fixture.teardown()
        assert len(client.deleted) == 1

    @pytest.mark.asyncio
    async def test_registry_not_created(self, settings, clock):
        client = RegistryClient([running()], create_error=CreationError("forbidden"))
        fixture = RegistryFixture(client, settings, clock=clock, sleep=clock.sleep)

        with pytest.raises(SetupError, match="forbidden"):
            await fixture.setup(needs_host_binding=True)

    @pytest.mark.asyncio
    async def test_credential_material(self, settings, clock):
        client = RegistryClient([running()])
        fixture = RegistryFixture(client, settings, clock=clock, sleep=clock.sleep)

        with pytest.raises(SetupError):
            fixture.credential_material()

        await fixture.setup(needs_host_binding=True)
        payload = json.loads(fixture.credential_material())

        assert list(payload["auths"]) == ["localhost:5000"]

    @pytest.mark.asyncio
    async def test_teardown_swallows_deletion_error(self, settings, clock):
        client = RegistryClient([running()], delete_error=DeletionError("forbidden"))
        fixture = RegistryFixture(client, settings, clock=clock, sleep=clock.sleep)
        await fixture.setup(needs_host_binding=True)

        await fixture.teardown()
        await fixture.teardown()

        assert len(client.deleted) == 1
        assert fixture.address is None
