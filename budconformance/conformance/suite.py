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

"""Runs conformance test cases end to end: fixtures, credentials, flaky-tolerant verification and cleanup."""

import asyncio
import time
from pathlib import Path
from typing import Awaitable, Callable, Iterable, List, Optional
from uuid import uuid4

from pydantic import BaseModel

from ..commons.config import AppConfig, app_settings
from ..commons.constants import KUBELET_CREDENTIAL_FILE_NAME
from ..commons.exceptions import ConformanceException, SetupError
from ..commons.logging import get_logger
from ..platform.credentials import remove_credential_material, write_credential_material
from ..platform.kubernetes import KubernetesWorkloadClient
from ..platform.registry import RegistryFixture
from .attempt import AttemptOrchestrator, Prerequisites, StaticPrerequisites
from .cases import DEFAULT_CASES
from .driver import FlakyRetryDriver
from .schemas import ContainerSpec, ConformanceTestCase


logger = get_logger(__name__)

CONTAINER_NAME = "image-pull-test"


class CaseReport(BaseModel):
    """Outcome of one conformance test case."""

    description: str
    passed: bool
    attempts: Optional[int] = None
    error: Optional[str] = None


class RegistryPrerequisites:
    """Provisions the private registry and the kubelet credential file once, then reuses them on every attempt.

    The container is pinned to the node the registry is reachable from.
    """

    def __init__(self, registry: RegistryFixture, image: str, credential_path: Path):
        self.registry = registry
        self.image = image
        self.credential_path = credential_path
        self._credentials_written = False

    async def provision(self) -> ContainerSpec:
        address, nodes = await self.registry.setup(needs_host_binding=True)
        if not nodes:
            raise SetupError(f"private registry {address} is not reachable from any node")

        if not self._credentials_written:
            await asyncio.to_thread(
                write_credential_material, self.credential_path, self.registry.credential_material()
            )
            self._credentials_written = True

        return ContainerSpec(name=CONTAINER_NAME, image=f"{address}/{self.image}", node_name=nodes[0])

    async def cleanup(self) -> None:
        """Remove the credential file and stop the registry."""
        try:
            if self._credentials_written:
                await asyncio.to_thread(remove_credential_material, self.credential_path)
                self._credentials_written = False
        finally:
            await self.registry.teardown()


class RuntimeConformanceSuite:
    """Verifies container runtime image pull behavior on a node.

    Each case runs in its own namespace (when enabled) with its own fixtures and `FlakyRetryDriver` run. Cleanup
    runs in reverse order of setup whether the verification passed or not.
    """

    def __init__(
        self,
        client: KubernetesWorkloadClient,
        settings: AppConfig = app_settings,
        registry_factory: Optional[Callable[[KubernetesWorkloadClient], RegistryFixture]] = None,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.client = client
        self.settings = settings
        self.registry_factory = registry_factory or (
            lambda case_client: RegistryFixture(case_client, settings, clock=clock, sleep=sleep)
        )
        self._clock = clock
        self._sleep = sleep

    @classmethod
    def from_settings(cls, settings: AppConfig = app_settings) -> "RuntimeConformanceSuite":
        """Build a suite talking to the cluster described by `settings`."""
        client = KubernetesWorkloadClient(
            namespace=settings.namespace,
            kubeconfig_path=str(settings.kubeconfig_path) if settings.kubeconfig_path else None,
            verify_ssl=settings.verify_ssl,
        )
        return cls(client, settings)

    @property
    def credential_path(self) -> Path:
        """Kubelet credential file location."""
        return self.settings.kubelet_root_directory / KUBELET_CREDENTIAL_FILE_NAME

    def _build_driver(self, client: KubernetesWorkloadClient) -> FlakyRetryDriver:
        orchestrator = AttemptOrchestrator(
            client,
            self.settings.container_status_retry_timeout,
            self.settings.container_status_poll_interval,
            clock=self._clock,
            sleep=self._sleep,
        )
        return FlakyRetryDriver(
            orchestrator,
            self.settings.flake_retry_attempts,
            attempt_backoff=self.settings.flake_retry_backoff,
            sleep=self._sleep,
        )

    def _prerequisites_for(self, case: ConformanceTestCase, client: KubernetesWorkloadClient) -> Prerequisites:
        if case.setup_registry:
            return RegistryPrerequisites(self.registry_factory(client), case.image, self.credential_path)
        return StaticPrerequisites(ContainerSpec(name=CONTAINER_NAME, image=case.image))

    async def run_case(self, case: ConformanceTestCase) -> None:
        """Verify one case.

        Raises:
            SetupError: If fixtures could not be provisioned.
            FlakeRetryExhaustedError: If every attempt failed.
        """
        logger.info("Running conformance case", case=case.description)
        client = self.client
        namespace_created = False
        if self.settings.create_namespace:
            client = self.client.with_namespace(f"{self.settings.namespace}-{uuid4().hex[:5]}")

        prerequisites = self._prerequisites_for(case, client)
        try:
            if self.settings.create_namespace:
                await client.create_namespace(client.namespace)
                namespace_created = True
            await self._build_driver(client).run(case.expectation, prerequisites)
        finally:
            await self._cleanup(client, prerequisites, namespace_created)

    async def _cleanup(
        self, client: KubernetesWorkloadClient, prerequisites: Prerequisites, namespace_created: bool
    ) -> None:
        if isinstance(prerequisites, RegistryPrerequisites):
            try:
                await prerequisites.cleanup()
            except Exception as err:
                logger.warning("Failed to clean up registry fixture", error=str(err))
        if namespace_created:
            try:
                await client.delete_namespace(client.namespace)
            except ConformanceException as err:
                logger.warning("Failed to delete namespace", namespace=client.namespace, error=err.message)
            except Exception as err:
                logger.warning("Unexpected error while deleting namespace", namespace=client.namespace, error=str(err))

    async def run_all(self, cases: Iterable[ConformanceTestCase] = DEFAULT_CASES) -> List[CaseReport]:
        """Run cases sequentially and report each outcome."""
        reports = []
        for case in cases:
            try:
                await self.run_case(case)
            except ConformanceException as err:
                logger.error("Conformance case failed", case=case.description, error=err.message)
                reports.append(
                    CaseReport(
                        description=case.description,
                        passed=False,
                        attempts=getattr(err, "attempts", None),
                        error=err.message,
                    )
                )
            except Exception as err:
                logger.exception("Conformance case raised an unexpected error", case=case.description)
                reports.append(
                    CaseReport(description=case.description, passed=False, error=f"unexpected error: {err}")
                )
            else:
                reports.append(CaseReport(description=case.description, passed=True))
        return reports
