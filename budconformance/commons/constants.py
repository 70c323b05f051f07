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

"""Defines constant values used throughout the project, including Kubernetes pod and container states."""

from enum import Enum, StrEnum


class LogLevel(Enum):
    """Define logging levels matching Python's built-in `logging` module levels.

    Attributes:
        DEBUG (LogLevel): Debug-level logging.
        INFO (LogLevel): Info-level logging.
        WARNING (LogLevel): Warning-level logging.
        ERROR (LogLevel): Error-level logging.
        CRITICAL (LogLevel): Critical-level logging.
        NOTSET (LogLevel): No logging level.
    """

    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"
    NOTSET = "NOTSET"


class Environment(str, Enum):
    """Enumerate application environments and provide environment-specific logging defaults.

    Attributes:
        PRODUCTION (Environment): Represents the production environment.
        DEVELOPMENT (Environment): Represents the development environment.
        TESTING (Environment): Represents the testing environment.
    """

    PRODUCTION = "PRODUCTION"
    DEVELOPMENT = "DEVELOPMENT"
    TESTING = "TESTING"

    @staticmethod
    def from_string(value: str) -> "Environment":
        """Convert a string representation to an `Environment` instance.

        Args:
            value (str): The string representation of the environment.

        Returns:
            Environment: The corresponding `Environment` instance.

        Raises:
            ValueError: If the string does not match any valid environment.
        """
        import re

        matches = re.findall(r"(?i)\b(dev|prod|test)(elop|elopment|uction|ing|er)?\b", value)

        env = matches[0][0].lower() if len(matches) else ""
        if env == "dev":
            return Environment.DEVELOPMENT
        elif env == "prod":
            return Environment.PRODUCTION
        elif env == "test":
            return Environment.TESTING
        else:
            raise ValueError(
                f"Invalid environment: {value}. Only the following environments are allowed: "
                f"{', '.join(map(str, Environment.__members__))}"
            )

    @property
    def log_level(self) -> LogLevel:
        """Return the logging level for the current environment."""
        return {"PRODUCTION": LogLevel.INFO}.get(self.value, LogLevel.DEBUG)

    @property
    def debug(self) -> bool:
        """Return whether debugging is enabled for the current environment."""
        return {"PRODUCTION": False}.get(self.value, True)


class PodPhase(StrEnum):
    """Pod phase as reported in `status.phase`.

    Attributes:
        PENDING: Accepted by the cluster, containers not all running yet.
        RUNNING: Bound to a node and at least one container is running.
        SUCCEEDED: All containers terminated successfully.
        FAILED: All containers terminated, at least one in failure.
        UNKNOWN: The state of the pod could not be obtained.
    """

    PENDING = "Pending"
    RUNNING = "Running"
    SUCCEEDED = "Succeeded"
    FAILED = "Failed"
    UNKNOWN = "Unknown"


class ContainerRunState(StrEnum):
    """Container state as reported by the kubelet in `containerStatuses[].state`."""

    RUNNING = "Running"
    WAITING = "Waiting"
    TERMINATED = "Terminated"
    UNKNOWN = "Unknown"


class ImagePullPolicy(StrEnum):
    """Container image pull policy."""

    ALWAYS = "Always"
    IF_NOT_PRESENT = "IfNotPresent"
    NEVER = "Never"


class RestartPolicy(StrEnum):
    """Pod restart policy."""

    ALWAYS = "Always"
    ON_FAILURE = "OnFailure"
    NEVER = "Never"


class AttemptFailureKind(StrEnum):
    """Classifies why a verification attempt did not succeed.

    Attributes:
        NONE: The attempt succeeded.
        SETUP: Prerequisite provisioning failed. Fatal, never retried.
        CREATION: The workload could not be created. Fatal to the attempt only.
        MISMATCH: The observed state never matched the expectation before the deadline.
    """

    NONE = "none"
    SETUP = "setup"
    CREATION = "creation"
    MISMATCH = "mismatch"


# Waiting reasons reported by the kubelet image manager
ERR_IMAGE_PULL = "ErrImagePull"
ERR_IMAGE_PULL_BACK_OFF = "ImagePullBackOff"
IMAGE_PULL_WAITING_REASONS = frozenset({ERR_IMAGE_PULL, ERR_IMAGE_PULL_BACK_OFF})

# Polling and retry defaults for container status checks
CONTAINER_STATUS_RETRY_TIMEOUT = 300
CONTAINER_STATUS_POLL_INTERVAL = 1
FLAKE_RETRY_ATTEMPTS = 3

# Docker config secret key used by image pull secrets and the kubelet credential file
DOCKER_CONFIG_JSON_KEY = ".dockerconfigjson"
KUBELET_CREDENTIAL_FILE_NAME = "config.json"
