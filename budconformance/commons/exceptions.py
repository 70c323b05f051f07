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

"""Defines the exceptions raised while provisioning, creating, observing and cleaning up conformance workloads."""

from typing import Optional


class ConformanceException(Exception):
    """Base exception for conformance verification errors."""

    def __init__(self, message: str = "Conformance verification error occurred"):
        """Initialize ConformanceException."""
        self.message = message
        super().__init__(self.message)


class KubernetesException(ConformanceException):
    """Raise when the Kubernetes client cannot be configured."""

    def __init__(self, message: str = "Kubernetes error occurred"):
        """Initialize KubernetesException."""
        super().__init__(message)


class SetupError(ConformanceException):
    """Raise when prerequisite provisioning fails.

    A setup failure points at a broken environment rather than a flaky registry, so it is never retried.

    Attributes:
        message (str): A human-readable description of the failure.
        attempts (int, optional): Number of attempts made when the driver gave up.
    """

    def __init__(self, message: str, attempts: Optional[int] = None):
        """Initialize SetupError."""
        self.attempts = attempts
        super().__init__(message)


class CreationError(ConformanceException):
    """Raise when the workload could not be created on the cluster."""


class FetchError(ConformanceException):
    """Raise when the workload status could not be read. Treated as transient while polling."""


class DeletionError(ConformanceException):
    """Raise when the workload could not be deleted. Logged by callers, never escalated."""


class FlakeRetryExhaustedError(ConformanceException):
    """Raise when every verification attempt failed.

    Only the diagnostic of the last attempt is carried; earlier ones are logged as they happen.

    Attributes:
        attempts (int): Total number of attempts made.
        diagnostic (str): What was observed versus expected on the last attempt.
    """

    def __init__(self, attempts: int, diagnostic: str):
        """Initialize FlakeRetryExhaustedError."""
        self.attempts = attempts
        self.diagnostic = diagnostic
        super().__init__(f"All {attempts} attempts failed: {diagnostic}")

    def __str__(self) -> str:
        """Return the final failure message."""
        return self.message
