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

"""Runs one verification attempt: provision, create the workload, poll its status, delete it."""

import asyncio
import time
from typing import Awaitable, Callable, Protocol

from ..commons.constants import AttemptFailureKind
from ..commons.exceptions import CreationError, DeletionError, SetupError
from ..commons.logging import get_logger
from .poll import poll_status
from .schemas import AttemptResult, ContainerSpec, Expectation, ObservedStatus, WorkloadHandle


logger = get_logger(__name__)


class WorkloadClient(Protocol):
    """Platform operations an attempt needs on its workload."""

    async def create_workload(self, spec: ContainerSpec) -> WorkloadHandle:
        """Create the workload and return its handle."""
        ...

    async def get_workload_status(self, handle: WorkloadHandle) -> ObservedStatus:
        """Read the current container and pod status."""
        ...

    async def delete_workload(self, handle: WorkloadHandle) -> None:
        """Delete the workload."""
        ...


class Prerequisites(Protocol):
    """Establishes whatever an attempt depends on and returns the workload to create."""

    async def provision(self) -> ContainerSpec:
        """Provision prerequisites and return the container spec."""
        ...


class StaticPrerequisites:
    """Prerequisites with nothing to provision."""

    def __init__(self, spec: ContainerSpec):
        self.spec = spec

    async def provision(self) -> ContainerSpec:
        return self.spec


class AttemptOrchestrator:
    """Owns a single create, poll, delete cycle.

    The created workload is deleted on every exit path of the polling step, including cancellation. Deletion errors
    are logged and dropped so they cannot replace the verification outcome.

    Attributes:
        client (WorkloadClient): Platform client used to manage the workload.
        poll_timeout (float): Seconds to poll the workload status before giving up.
        poll_interval (float): Seconds between status polls.
    """

    def __init__(
        self,
        client: WorkloadClient,
        poll_timeout: float,
        poll_interval: float,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        """Initialize the orchestrator with the platform client and polling bounds."""
        self.client = client
        self.poll_timeout = poll_timeout
        self.poll_interval = poll_interval
        self._clock = clock
        self._sleep = sleep

    async def run_attempt(self, expectation: Expectation, prerequisites: Prerequisites) -> AttemptResult:
        """Run one attempt and report whether the workload reached the expected state.

        Args:
            expectation (Expectation): Declared state to verify.
            prerequisites (Prerequisites): Provides the container spec once prerequisites are in place.

        Returns:
            AttemptResult: The polling result, or a setup/creation failure.
        """
        try:
            spec = await prerequisites.provision()
        except SetupError as err:
            logger.error("Prerequisite provisioning failed", error=err.message)
            return AttemptResult.failed(AttemptFailureKind.SETUP, err.message)
        except Exception as err:
            logger.exception("Prerequisite provisioning raised an unexpected error")
            return AttemptResult.failed(AttemptFailureKind.SETUP, f"failed to provision prerequisites: {err}")

        logger.info("Creating the container", container=spec.name, image=spec.image, node=spec.node_name)
        try:
            handle = await self.client.create_workload(spec)
        except CreationError as err:
            logger.error("Workload creation failed", container=spec.name, error=err.message)
            return AttemptResult.failed(AttemptFailureKind.CREATION, f"failed to create container: {err.message}")

        try:
            logger.info("Checking the container status", pod=handle.pod_name)
            return await poll_status(
                lambda: self.client.get_workload_status(handle),
                expectation,
                self.poll_timeout,
                self.poll_interval,
                clock=self._clock,
                sleep=self._sleep,
            )
        finally:
            await self._delete(handle)

    async def _delete(self, handle: WorkloadHandle) -> None:
        logger.info("Deleting the container", pod=handle.pod_name)
        try:
            await self.client.delete_workload(handle)
        except DeletionError as err:
            logger.warning("Failed to delete workload", pod=handle.pod_name, error=err.message)
        except Exception as err:
            logger.warning("Unexpected error while deleting workload", pod=handle.pod_name, error=str(err))
