"""Tests for the Kubernetes workload adapter."""

from unittest.mock import MagicMock, patch

import pytest
from kubernetes import client, config
from kubernetes.client.rest import ApiException
from urllib3.exceptions import MaxRetryError, ProtocolError, ReadTimeoutError

from budconformance.commons.constants import ContainerRunState, PodPhase
from budconformance.commons.exceptions import CreationError, DeletionError, FetchError, KubernetesException
from budconformance.conformance.attempt import AttemptOrchestrator, StaticPrerequisites
from budconformance.conformance.schemas import ContainerPort, ContainerSpec, Expectation, WorkloadHandle
from budconformance.platform.kubernetes import KubernetesWorkloadClient, build_pod, get_container_state


def _pod(phase, state, container_name="image-pull-test"):
    container_status = client.V1ContainerStatus(
        name=container_name,
        image="localhost:5000/pause:testing",
        image_id="",
        ready=False,
        restart_count=0,
        state=state,
    )
    return client.V1Pod(status=client.V1PodStatus(phase=phase, container_statuses=[container_status]))


class TestGetContainerState:
    """Mapping of kubelet container states."""

    def test_running(self):
        state = client.V1ContainerState(running=client.V1ContainerStateRunning())
        assert get_container_state(state) == ContainerRunState.RUNNING

    def test_waiting(self):
        state = client.V1ContainerState(waiting=client.V1ContainerStateWaiting(reason="ErrImagePull"))
        assert get_container_state(state) == ContainerRunState.WAITING

    def test_terminated(self):
        state = client.V1ContainerState(terminated=client.V1ContainerStateTerminated(exit_code=1, reason="Error"))
        assert get_container_state(state) == ContainerRunState.TERMINATED

    def test_empty(self):
        assert get_container_state(None) == ContainerRunState.UNKNOWN
        assert get_container_state(client.V1ContainerState()) == ContainerRunState.UNKNOWN


class TestBuildPod:
    """Pod manifest generation."""

    def test_pins_node_and_pull_policy(self, container_spec):
        pod = build_pod(container_spec, "ns", "image-pull-test-abc")

        assert pod.metadata.name == "image-pull-test-abc"
        assert pod.metadata.namespace == "ns"
        assert pod.spec.node_name == "node-1"
        assert pod.spec.restart_policy == "Never"
        container = pod.spec.containers[0]
        assert container.name == "image-pull-test"
        assert container.image == "localhost:5000/pause:testing"
        assert container.image_pull_policy == "Always"
        assert container.ports is None

    def test_host_ports(self):
        spec = ContainerSpec(
            name="private-registry",
            image="registry:2",
            ports=[ContainerPort(container_port=5000, host_port=5000)],
            image_pull_secrets=["registry-secret"],
        )

        pod = build_pod(spec, "ns", "private-registry-abc")

        assert pod.spec.containers[0].ports[0].host_port == 5000
        assert pod.spec.image_pull_secrets[0].name == "registry-secret"


class TestKubernetesWorkloadClient:
    """Workload lifecycle against a mocked CoreV1Api."""

    @pytest.fixture
    def core_api(self):
        return MagicMock()

    @pytest.fixture
    def workload_client(self, core_api):
        return KubernetesWorkloadClient("runtime-conformance", core_api=core_api)

    @pytest.fixture
    def handle(self):
        return WorkloadHandle(
            namespace="runtime-conformance", pod_name="image-pull-test-1a2b3c4d", container_name="image-pull-test"
        )

    @pytest.mark.asyncio
    async def test_create_workload(self, workload_client, core_api, container_spec):
        handle = await workload_client.create_workload(container_spec)

        assert handle.namespace == "runtime-conformance"
        assert handle.container_name == "image-pull-test"
        assert handle.pod_name.startswith("image-pull-test-")
        assert handle.node_name == "node-1"
        kwargs = core_api.create_namespaced_pod.call_args.kwargs
        assert kwargs["namespace"] == "runtime-conformance"
        assert kwargs["body"].metadata.name == handle.pod_name

    @pytest.mark.asyncio
    async def test_create_workload_generates_unique_names(self, workload_client, container_spec):
        first = await workload_client.create_workload(container_spec)
        second = await workload_client.create_workload(container_spec)

        assert first.pod_name != second.pod_name

    @pytest.mark.asyncio
    async def test_create_workload_rejected(self, workload_client, core_api, container_spec):
        core_api.create_namespaced_pod.side_effect = ApiException(status=403, reason="Forbidden")

        with pytest.raises(CreationError, match="403 Forbidden"):
            await workload_client.create_workload(container_spec)

    @pytest.mark.asyncio
    async def test_create_workload_connection_aborted(self, workload_client, core_api, container_spec):
        core_api.create_namespaced_pod.side_effect = ProtocolError("Connection aborted.")

        with pytest.raises(CreationError, match="Connection aborted"):
            await workload_client.create_workload(container_spec)

    @pytest.mark.asyncio
    async def test_waiting_status(self, workload_client, core_api, handle):
        core_api.read_namespaced_pod.return_value = _pod(
            "Pending",
            client.V1ContainerState(
                waiting=client.V1ContainerStateWaiting(reason="ImagePullBackOff", message="Back-off pulling image")
            ),
        )

        status = await workload_client.get_workload_status(handle)

        assert status.run_state == ContainerRunState.WAITING
        assert status.reason == "ImagePullBackOff"
        assert status.message == "Back-off pulling image"
        assert status.pod_phase == PodPhase.PENDING
        core_api.read_namespaced_pod.assert_called_once_with(
            name="image-pull-test-1a2b3c4d", namespace="runtime-conformance"
        )

    @pytest.mark.asyncio
    async def test_running_status(self, workload_client, core_api, handle):
        core_api.read_namespaced_pod.return_value = _pod(
            "Running", client.V1ContainerState(running=client.V1ContainerStateRunning())
        )

        status = await workload_client.get_workload_status(handle)

        assert status.run_state == ContainerRunState.RUNNING
        assert status.reason is None
        assert status.pod_phase == PodPhase.RUNNING

    @pytest.mark.asyncio
    async def test_terminated_status(self, workload_client, core_api, handle):
        core_api.read_namespaced_pod.return_value = _pod(
            "Failed",
            client.V1ContainerState(terminated=client.V1ContainerStateTerminated(exit_code=2, reason="Error")),
        )

        status = await workload_client.get_workload_status(handle)

        assert status.run_state == ContainerRunState.TERMINATED
        assert status.reason == "Error"
        assert status.pod_phase == PodPhase.FAILED

    @pytest.mark.asyncio
    async def test_missing_container_status(self, workload_client, core_api, handle):
        core_api.read_namespaced_pod.return_value = client.V1Pod(status=client.V1PodStatus(phase="Pending"))

        with pytest.raises(FetchError, match="status not found"):
            await workload_client.get_workload_status(handle)

    @pytest.mark.asyncio
    async def test_other_container_status_ignored(self, workload_client, core_api, handle):
        core_api.read_namespaced_pod.return_value = _pod(
            "Running", client.V1ContainerState(running=client.V1ContainerStateRunning()), container_name="sidecar"
        )

        with pytest.raises(FetchError):
            await workload_client.get_workload_status(handle)

    @pytest.mark.asyncio
    async def test_read_failure(self, workload_client, core_api, handle):
        core_api.read_namespaced_pod.side_effect = ApiException(status=500, reason="Internal Server Error")

        with pytest.raises(FetchError):
            await workload_client.get_workload_status(handle)

    @pytest.mark.asyncio
    async def test_unreachable_api_server_is_fetch_error(self, workload_client, core_api, handle):
        core_api.read_namespaced_pod.side_effect = MaxRetryError(None, "/api/v1/pods", reason="connection refused")

        with pytest.raises(FetchError, match="Max retries exceeded"):
            await workload_client.get_workload_status(handle)

    @pytest.mark.asyncio
    async def test_read_timeout_is_fetch_error(self, workload_client, core_api, handle):
        core_api.read_namespaced_pod.side_effect = ReadTimeoutError(None, "/api/v1/pods", "Read timed out.")

        with pytest.raises(FetchError):
            await workload_client.get_workload_status(handle)

    @pytest.mark.asyncio
    async def test_attempt_survives_dropped_connection(self, workload_client, core_api, container_spec, clock):
        core_api.read_namespaced_pod.side_effect = [
            MaxRetryError(None, "/api/v1/pods", reason="connection refused"),
            _pod("Running", client.V1ContainerState(running=client.V1ContainerStateRunning())),
        ]
        orchestrator = AttemptOrchestrator(workload_client, 5, 1, clock=clock, sleep=clock.sleep)

        result = await orchestrator.run_attempt(
            Expectation(phase=PodPhase.RUNNING), StaticPrerequisites(container_spec)
        )

        assert result.success is True
        assert core_api.read_namespaced_pod.call_count == 2
        assert clock.sleeps == [1]
        core_api.delete_namespaced_pod.assert_called_once()

    @pytest.mark.asyncio
    async def test_delete_workload(self, workload_client, core_api, handle):
        await workload_client.delete_workload(handle)

        core_api.delete_namespaced_pod.assert_called_once_with(
            name="image-pull-test-1a2b3c4d", namespace="runtime-conformance", grace_period_seconds=0
        )

    @pytest.mark.asyncio
    async def test_delete_missing_workload(self, workload_client, core_api, handle):
        core_api.delete_namespaced_pod.side_effect = ApiException(status=404, reason="Not Found")

        await workload_client.delete_workload(handle)

    @pytest.mark.asyncio
    async def test_delete_failure(self, workload_client, core_api, handle):
        core_api.delete_namespaced_pod.side_effect = ApiException(status=403, reason="Forbidden")

        with pytest.raises(DeletionError):
            await workload_client.delete_workload(handle)

    @pytest.mark.asyncio
    async def test_delete_unreachable_api_server(self, workload_client, core_api, handle):
        core_api.delete_namespaced_pod.side_effect = MaxRetryError(None, "/api/v1/pods", reason="connection refused")

        with pytest.raises(DeletionError, match="Max retries exceeded"):
            await workload_client.delete_workload(handle)

    @pytest.mark.asyncio
    async def test_create_existing_namespace(self, workload_client, core_api):
        core_api.create_namespace.side_effect = ApiException(status=409, reason="Conflict")

        await workload_client.create_namespace("runtime-conformance")

    @pytest.mark.asyncio
    async def test_create_namespace_is_privileged(self, workload_client, core_api):
        await workload_client.create_namespace("runtime-conformance")

        body = core_api.create_namespace.call_args.kwargs["body"]
        assert body.metadata.labels == {"pod-security.kubernetes.io/enforce": "privileged"}

    @pytest.mark.asyncio
    async def test_delete_namespace_failure(self, workload_client, core_api):
        core_api.delete_namespace.side_effect = ApiException(status=500, reason="Internal Server Error")

        with pytest.raises(KubernetesException):
            await workload_client.delete_namespace("runtime-conformance")

    def test_with_namespace_shares_api(self, workload_client, core_api):
        other = workload_client.with_namespace("other")

        assert other.namespace == "other"
        assert other.core_api is core_api

    def test_invalid_kubeconfig(self):
        with patch(
            "budconformance.platform.kubernetes.config.load_kube_config_from_dict",
            side_effect=config.ConfigException("Invalid kube-config file."),
        ):
            with pytest.raises(KubernetesException):
                KubernetesWorkloadClient("ns", kubeconfig={"apiVersion": "v1"})
