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

"""Classifies an observed container and pod status against an expectation."""

from typing import Tuple

from ..commons.constants import ContainerRunState
from .schemas import Expectation, ObservedStatus


def classify(observed: ObservedStatus, expectation: Expectation) -> Tuple[bool, str]:
    """Check an observed status against the expected container state and pod phase.

    The container state is checked before the pod phase. A pod reports `Pending` until its containers start, so a
    phase-first check could keep failing on the phase without ever reporting what the container is doing.

    Args:
        observed (ObservedStatus): Freshly fetched container and pod status.
        expectation (Expectation): Declared state to match.

    Returns:
        Tuple[bool, str]: Whether both checks passed, and the first failing diagnostic (empty on success).
    """
    if not expectation.waiting:
        if observed.run_state != ContainerRunState.RUNNING:
            return False, f'expected container state: Running, got: "{observed.run_state}"'
    else:
        if observed.run_state != ContainerRunState.WAITING:
            return False, f'expected container state: Waiting, got: "{observed.run_state}"'
        if observed.reason not in expectation.waiting_reasons:
            return False, f'unexpected waiting reason: "{observed.reason or ""}"'

    if observed.pod_phase != expectation.phase:
        return False, f'expected pod phase: "{expectation.phase}", got: "{observed.pod_phase}"'

    return True, ""
