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

"""Pydantic schemas describing expectations, observed workload state, workload handles and attempt outcomes."""

from typing import Dict, FrozenSet, List, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator

from ..commons.constants import (
    IMAGE_PULL_WAITING_REASONS,
    AttemptFailureKind,
    ContainerRunState,
    ImagePullPolicy,
    PodPhase,
    RestartPolicy,
)


class Expectation(BaseModel):
    """Declared state a workload must reach.

    Attributes:
        phase (PodPhase): Pod phase the owning pod must report.
        waiting (bool): Expect the container to be waiting instead of running.
        waiting_reasons (FrozenSet[str]): Acceptable waiting reasons, only consulted when `waiting` is set.
    """

    model_config = ConfigDict(frozen=True)

    phase: PodPhase
    waiting: bool = False
    waiting_reasons: FrozenSet[str] = IMAGE_PULL_WAITING_REASONS

    @model_validator(mode="after")
    def check_waiting_reasons(self) -> "Expectation":
        """Reject a waiting expectation that no reason could ever satisfy."""
        if self.waiting and not self.waiting_reasons:
            raise ValueError("waiting_reasons must not be empty when waiting is expected")
        return self


class ObservedStatus(BaseModel):
    """Snapshot of a container and its owning pod as read from the cluster."""

    model_config = ConfigDict(frozen=True)

    run_state: ContainerRunState
    reason: Optional[str] = None
    message: Optional[str] = None
    pod_phase: PodPhase


class EnvVar(BaseModel):
    """Environment variable passed to the container."""

    model_config = ConfigDict(frozen=True)

    name: str
    value: str


class ContainerPort(BaseModel):
    """Port exposed by the container, optionally bound on the node."""

    model_config = ConfigDict(frozen=True)

    container_port: int
    host_port: Optional[int] = None
    protocol: str = "TCP"


class ContainerSpec(BaseModel):
    """Workload to create: a single-container pod, optionally pinned to a node."""

    model_config = ConfigDict(frozen=True)

    name: str
    image: str
    image_pull_policy: ImagePullPolicy = ImagePullPolicy.ALWAYS
    restart_policy: RestartPolicy = RestartPolicy.NEVER
    node_name: Optional[str] = None
    command: Optional[List[str]] = None
    args: Optional[List[str]] = None
    env: List[EnvVar] = Field(default_factory=list)
    ports: List[ContainerPort] = Field(default_factory=list)
    image_pull_secrets: List[str] = Field(default_factory=list)
    labels: Dict[str, str] = Field(default_factory=dict)


class WorkloadHandle(BaseModel):
    """Identifies one created pod and its container. Owned by exactly one attempt."""

    model_config = ConfigDict(frozen=True)

    namespace: str
    pod_name: str
    container_name: str
    node_name: Optional[str] = None


class AttemptResult(BaseModel):
    """Outcome of one verification attempt.

    Attributes:
        success (bool): Whether the observed state matched the expectation.
        diagnostic (str): What was observed versus expected, empty on success.
        kind (AttemptFailureKind): Why the attempt failed.
    """

    model_config = ConfigDict(frozen=True)

    success: bool
    diagnostic: str = ""
    kind: AttemptFailureKind = AttemptFailureKind.NONE

    @classmethod
    def passed(cls) -> "AttemptResult":
        """Build a successful result."""
        return cls(success=True)

    @classmethod
    def failed(cls, kind: AttemptFailureKind, diagnostic: str) -> "AttemptResult":
        """Build a failed result carrying a diagnostic."""
        return cls(success=False, kind=kind, diagnostic=diagnostic)

    @property
    def is_fatal(self) -> bool:
        """Return whether the failure must stop the retry driver."""
        return not self.success and self.kind == AttemptFailureKind.SETUP


class ConformanceTestCase(BaseModel):
    """One image pull scenario of the runtime conformance blackbox test.

    Attributes:
        description (str): Human readable name of the scenario.
        image (str): Image reference, relative to the private registry when `setup_registry` is set.
        setup_registry (bool): Start a private registry fixture and pull from it with credentials.
        phase (PodPhase): Expected pod phase.
        waiting (bool): Expect the container to be stuck waiting on the image pull.
    """

    model_config = ConfigDict(frozen=True)

    description: str
    image: str
    setup_registry: bool = False
    phase: PodPhase
    waiting: bool = False

    @property
    def expectation(self) -> Expectation:
        """Return the expectation this scenario verifies."""
        return Expectation(phase=self.phase, waiting=self.waiting)
