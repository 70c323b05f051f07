#  -----------------------------------------------------------------------------
#  Copyright (c) 2024 Bud Ecosystem Inc.
#  #
#  Licensed under the Apache License, Version 2.0 (the "License");
#  you may not use this file except in compliance with the License.
#  You may obtain a copy of the License at
#  #
#      http://www.apache.org/licenses/LICENSE-2.0
#  #
#  Unless required by applicable law or agreed to in writing, software
#  distributed under the License is distributed on an "AS IS" BASIS,
#  WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
#  See the License for the specific language governing permissions and
#  limitations under the License.
#  -----------------------------------------------------------------------------

"""Kubernetes adapter creating, observing and deleting conformance workloads with the official Python client."""

import asyncio
from typing import Any, Dict, Optional
from uuid import uuid4

import urllib3
from kubernetes import client, config
from kubernetes.client.rest import ApiException

from ..commons.constants import ContainerRunState, PodPhase
from ..commons.exceptions import CreationError, DeletionError, FetchError, KubernetesException
from ..commons.logging import get_logger
from ..conformance.schemas import ContainerSpec, ObservedStatus, WorkloadHandle


logger = get_logger(__name__)

POD_SECURITY_ENFORCE_LABEL = "pod-security.kubernetes.io/enforce"


def get_container_state(state: Optional[client.V1ContainerState]) -> ContainerRunState:
    """Return the run state named by a `V1ContainerState`.

    Args:
        state (V1ContainerState, optional): Container state as reported in the pod status.

    Returns:
        ContainerRunState: Running, Waiting or Terminated, Unknown if none is set.
    """
    if state is None:
        return ContainerRunState.UNKNOWN
    if state.running is not None:
        return ContainerRunState.RUNNING
    if state.waiting is not None:
        return ContainerRunState.WAITING
    if state.terminated is not None:
        return ContainerRunState.TERMINATED
    return ContainerRunState.UNKNOWN


def _parse_phase(phase: Optional[str]) -> PodPhase:
    try:
        return PodPhase(phase)
    except ValueError:
        return PodPhase.UNKNOWN


def build_pod(spec: ContainerSpec, namespace: str, pod_name: str) -> client.V1Pod:
    """Build the pod manifest for a container spec."""
    ports = [
        client.V1ContainerPort(container_port=port.container_port, host_port=port.host_port, protocol=port.protocol)
        for port in spec.ports
    ]
    container = client.V1Container(
        name=spec.name,
        image=spec.image,
        image_pull_policy=spec.image_pull_policy.value,
        command=spec.command,
        args=spec.args,
        env=[client.V1EnvVar(name=var.name, value=var.value) for var in spec.env] or None,
        ports=ports or None,
    )
    pod_spec = client.V1PodSpec(
        containers=[container],
        restart_policy=spec.restart_policy.value,
        node_name=spec.node_name,
        image_pull_secrets=[client.V1LocalObjectReference(name=name) for name in spec.image_pull_secrets] or None,
    )
    return client.V1Pod(
        api_version="v1",
        kind="Pod",
        metadata=client.V1ObjectMeta(name=pod_name, namespace=namespace, labels=dict(spec.labels) or None),
        spec=pod_spec,
    )


class KubernetesWorkloadClient:
    """Manages conformance workloads in one namespace.

    The Kubernetes client is blocking, so every API call runs in a worker thread to keep the event loop responsive
    and cancellable.

    Attributes:
        namespace (str): Namespace workloads are created in.
        core_api (client.CoreV1Api): Core API client.
    """

    def __init__(
        self,
        namespace: str,
        kubeconfig: Optional[Dict[str, Any]] = None,
        kubeconfig_path: Optional[str] = None,
        verify_ssl: bool = True,
        core_api: Optional[client.CoreV1Api] = None,
    ):
        """Initialize the client, loading cluster credentials unless an API client is given.

        Args:
            namespace (str): Namespace workloads are created in.
            kubeconfig (Dict[str, Any], optional): Kubeconfig content as a dictionary.
            kubeconfig_path (str, optional): Path to a kubeconfig file.
            verify_ssl (bool): Verify the API server certificate.
            core_api (client.CoreV1Api, optional): Preconfigured API client.
        """
        self.namespace = namespace
        if core_api is None:
            self._load_kube_config(kubeconfig, kubeconfig_path, verify_ssl)
            core_api = client.CoreV1Api()
        self.core_api = core_api

    @staticmethod
    def _load_kube_config(
        kubeconfig: Optional[Dict[str, Any]], kubeconfig_path: Optional[str], verify_ssl: bool
    ) -> None:
        try:
            if kubeconfig:
                config.load_kube_config_from_dict(kubeconfig)
            elif kubeconfig_path:
                config.load_kube_config(config_file=kubeconfig_path)
            else:
                try:
                    config.load_incluster_config()
                    logger.info("Using in-cluster Kubernetes configuration")
                except config.ConfigException:
                    config.load_kube_config()
                    logger.info("Using local Kubernetes configuration")

            configuration = client.Configuration.get_default_copy()
            configuration.verify_ssl = verify_ssl
            client.Configuration.set_default(configuration)
        except config.ConfigException as err:
            logger.error(f"Found error while loading Kubernetes config file. {err}")
            raise KubernetesException("Invalid Kubernetes config file") from err

    async def create_workload(self, spec: ContainerSpec) -> WorkloadHandle:
        """Create a single-container pod for the spec.

        Raises:
            CreationError: If the API server rejects the pod or cannot be reached.
        """
        pod_name = f"{spec.name}-{uuid4().hex[:8]}"
        pod = build_pod(spec, self.namespace, pod_name)
        try:
            await asyncio.to_thread(self.core_api.create_namespaced_pod, namespace=self.namespace, body=pod)
        except ApiException as err:
            raise CreationError(f"failed to create pod {pod_name}: {err.status} {err.reason}") from err
        except urllib3.exceptions.HTTPError as err:
            raise CreationError(f"failed to create pod {pod_name}: {err}") from err

        logger.debug("Created pod", pod=pod_name, namespace=self.namespace, node=spec.node_name)
        return WorkloadHandle(
            namespace=self.namespace,
            pod_name=pod_name,
            container_name=spec.name,
            node_name=spec.node_name,
        )

    async def read_pod(self, handle: WorkloadHandle) -> client.V1Pod:
        """Read the pod behind a handle.

        Raises:
            FetchError: If the pod could not be read.
        """
        try:
            return await asyncio.to_thread(
                self.core_api.read_namespaced_pod, name=handle.pod_name, namespace=handle.namespace
            )
        except ApiException as err:
            raise FetchError(f"failed to read pod {handle.pod_name}: {err.status} {err.reason}") from err
        except urllib3.exceptions.HTTPError as err:
            raise FetchError(f"failed to read pod {handle.pod_name}: {err}") from err

    async def get_workload_status(self, handle: WorkloadHandle) -> ObservedStatus:
        """Read the container state and pod phase of a workload.

        Raises:
            FetchError: If the pod could not be read or does not report the container status yet.
        """
        pod = await self.read_pod(handle)
        status = pod.status
        for container_status in (status.container_statuses if status else None) or []:
            if container_status.name != handle.container_name:
                continue
            state = container_status.state
            run_state = get_container_state(state)
            detail = None
            if run_state == ContainerRunState.WAITING:
                detail = state.waiting
            elif run_state == ContainerRunState.TERMINATED:
                detail = state.terminated
            return ObservedStatus(
                run_state=run_state,
                reason=detail.reason if detail else None,
                message=detail.message if detail else None,
                pod_phase=_parse_phase(status.phase),
            )

        raise FetchError(f"container {handle.container_name} status not found in pod {handle.pod_name}")

    async def delete_workload(self, handle: WorkloadHandle) -> None:
        """Delete a workload immediately. A pod that is already gone counts as deleted.

        Raises:
            DeletionError: If the API server refuses the deletion or cannot be reached.
        """
        try:
            await asyncio.to_thread(
                self.core_api.delete_namespaced_pod,
                name=handle.pod_name,
                namespace=handle.namespace,
                grace_period_seconds=0,
            )
        except ApiException as err:
            if err.status == 404:
                logger.debug("Pod already deleted", pod=handle.pod_name)
                return
            raise DeletionError(f"failed to delete pod {handle.pod_name}: {err.status} {err.reason}") from err
        except urllib3.exceptions.HTTPError as err:
            raise DeletionError(f"failed to delete pod {handle.pod_name}: {err}") from err

    async def create_namespace(self, name: str, privileged: bool = True) -> None:
        """Create the namespace if it does not exist yet.

        Registry fixtures bind host ports, which only the privileged pod security level admits.
        """
        labels = {POD_SECURITY_ENFORCE_LABEL: "privileged"} if privileged else None
        body = client.V1Namespace(metadata=client.V1ObjectMeta(name=name, labels=labels))
        try:
            await asyncio.to_thread(self.core_api.create_namespace, body=body)
        except ApiException as err:
            if err.status == 409:
                logger.debug("Namespace already exists", namespace=name)
                return
            raise KubernetesException(f"failed to create namespace {name}: {err.status} {err.reason}") from err
        except urllib3.exceptions.HTTPError as err:
            raise KubernetesException(f"failed to create namespace {name}: {err}") from err
        logger.info("Created namespace", namespace=name)

    async def delete_namespace(self, name: str) -> None:
        """Delete a namespace. A namespace that is already gone counts as deleted."""
        try:
            await asyncio.to_thread(self.core_api.delete_namespace, name=name)
        except ApiException as err:
            if err.status == 404:
                return
            raise KubernetesException(f"failed to delete namespace {name}: {err.status} {err.reason}") from err
        except urllib3.exceptions.HTTPError as err:
            raise KubernetesException(f"failed to delete namespace {name}: {err}") from err
        logger.info("Deleted namespace", namespace=name)

    def with_namespace(self, namespace: str) -> "KubernetesWorkloadClient":
        """Return a client for another namespace sharing the same API connection."""
        return KubernetesWorkloadClient(namespace, core_api=self.core_api)
