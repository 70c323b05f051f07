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

"""Private image registry fixture used to test authenticated image pulls."""

import asyncio
import base64
import json
import time
from typing import Awaitable, Callable, List, Optional, Tuple

from ..commons.config import AppConfig, app_settings
from ..commons.constants import ImagePullPolicy, PodPhase, RestartPolicy
from ..commons.exceptions import CreationError, DeletionError, FetchError, SetupError
from ..commons.logging import get_logger
from ..conformance.poll import poll_status
from ..conformance.schemas import ContainerPort, ContainerSpec, Expectation, WorkloadHandle
from .kubernetes import KubernetesWorkloadClient


logger = get_logger(__name__)

REGISTRY_POLL_INTERVAL = 2


def docker_config_json(address: str, username: str, password: str) -> bytes:
    """Build a docker config JSON granting access to one registry.

    Args:
        address (str): Registry host and port.
        username (str): Registry user.
        password (str): Registry password.

    Returns:
        bytes: Content suitable for a `.dockerconfigjson` secret or the kubelet `config.json`.
    """
    auth = base64.b64encode(f"{username}:{password}".encode()).decode()
    payload = {"auths": {address: {"username": username, "password": password, "auth": auth}}}
    return json.dumps(payload).encode()


class RegistryFixture:
    """Runs a private registry pod for the duration of a verification run.

    With host binding the registry port is bound on the node, so the kubelet of that node reaches the registry
    through `localhost`. The address and nodes are resolved once and reused by later calls.
    """

    def __init__(
        self,
        client: KubernetesWorkloadClient,
        settings: AppConfig = app_settings,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.client = client
        self.settings = settings
        self._clock = clock
        self._sleep = sleep
        self._handle: Optional[WorkloadHandle] = None
        self._result: Optional[Tuple[str, List[str]]] = None

    @property
    def address(self) -> Optional[str]:
        """Registry address, available once `setup` succeeded."""
        return self._result[0] if self._result else None

    async def setup(self, needs_host_binding: bool) -> Tuple[str, List[str]]:
        """Start the registry and wait until it is running.

        Args:
            needs_host_binding (bool): Bind the registry port on the node.

        Returns:
            Tuple[str, List[str]]: Registry address and the nodes that can pull from it.

        Raises:
            SetupError: If the registry pod could not be created or did not start in time.
        """
        if self._result is not None:
            return self._result

        port = self.settings.registry_port
        spec = ContainerSpec(
            name=self.settings.registry_pod_name,
            image=self.settings.registry_image,
            image_pull_policy=ImagePullPolicy.IF_NOT_PRESENT,
            restart_policy=RestartPolicy.ALWAYS,
            ports=[ContainerPort(container_port=port, host_port=port if needs_host_binding else None)],
            labels={"app": self.settings.registry_pod_name},
        )
        try:
            self._handle = await self.client.create_workload(spec)
        except CreationError as err:
            raise SetupError(f"failed to start private registry: {err.message}") from err

        result = await poll_status(
            lambda: self.client.get_workload_status(self._handle),
            Expectation(phase=PodPhase.RUNNING),
            self.settings.registry_startup_timeout,
            REGISTRY_POLL_INTERVAL,
            clock=self._clock,
            sleep=self._sleep,
        )
        if not result.success:
            raise SetupError(f"private registry did not become ready: {result.diagnostic}")

        try:
            pod = await self.client.read_pod(self._handle)
        except FetchError as err:
            raise SetupError(f"failed to read private registry pod: {err.message}") from err

        node_name = pod.spec.node_name
        if needs_host_binding:
            address = f"localhost:{port}"
        else:
            address = f"{pod.status.pod_ip}:{port}"

        self._result = (address, [node_name] if node_name else [])
        logger.info("Private registry is ready", address=address, nodes=self._result[1])
        return self._result

    def credential_material(self) -> bytes:
        """Return the docker config JSON for the configured registry user.

        Raises:
            SetupError: If the registry has not been set up.
        """
        if self.address is None:
            raise SetupError("private registry is not set up")
        return docker_config_json(self.address, self.settings.registry_username, self.settings.registry_password)

    async def teardown(self) -> None:
        """Delete the registry pod. Errors are logged only."""
        if self._handle is None:
            return
        try:
            await self.client.delete_workload(self._handle)
        except DeletionError as err:
            logger.warning("Failed to delete private registry", pod=self._handle.pod_name, error=err.message)
        finally:
            self._handle = None
            self._result = None
