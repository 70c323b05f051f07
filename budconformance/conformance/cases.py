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

"""Image pull scenarios of the container runtime conformance blackbox test."""

from ..commons.constants import PodPhase
from .schemas import ConformanceTestCase


PRIVATE_REGISTRY_CASE = ConformanceTestCase(
    description="should be able to pull from private registry with credential provider",
    image="pause:testing",
    setup_registry=True,
    phase=PodPhase.RUNNING,
    waiting=False,
)

INVALID_REGISTRY_CASE = ConformanceTestCase(
    description="should not be able to pull image from invalid registry",
    image="invalid.registry.k8s.io/invalid/alpine:3.1",
    phase=PodPhase.PENDING,
    waiting=True,
)

NON_EXISTING_IMAGE_CASE = ConformanceTestCase(
    description="should not be able to pull non-existing image from registry.k8s.io",
    image="registry.k8s.io/invalid-image:invalid-tag",
    phase=PodPhase.PENDING,
    waiting=True,
)

DEFAULT_CASES = (PRIVATE_REGISTRY_CASE, INVALID_REGISTRY_CASE, NON_EXISTING_IMAGE_CASE)
