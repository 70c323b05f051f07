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

"""Manages application configuration through environment variables and an optional `.env` file."""

from pathlib import Path
from typing import Any, Dict, Optional

from dotenv import load_dotenv
from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from budconformance.__about__ import __version__

from . import logging
from .constants import (
    CONTAINER_STATUS_POLL_INTERVAL,
    CONTAINER_STATUS_RETRY_TIMEOUT,
    FLAKE_RETRY_ATTEMPTS,
    Environment,
    LogLevel,
)


load_dotenv()


class AppConfig(BaseSettings):
    """Configuration for a conformance verification run.

    Every field can be set through the environment variable named by its alias. Polling and retry values bound the
    two nested loops of a verification: `container_status_retry_timeout` and `container_status_poll_interval` bound
    the status polling of one attempt, `flake_retry_attempts` bounds how many full attempts are made.

    Example:
        ```python
        from budconformance.commons.config import app_settings

        timeout = app_settings.container_status_retry_timeout
        ```
    """

    model_config = SettingsConfigDict(extra="ignore", populate_by_name=True)

    # App Info
    name: str = __version__.split("@")[0]
    version: str = __version__.split("@")[-1]

    # Deployment configs
    env: Environment = Field(Environment.DEVELOPMENT, alias="ENV")
    debug: Optional[bool] = Field(None, alias="DEBUG")
    log_level: Optional[LogLevel] = Field(None, alias="LOG_LEVEL")

    # Cluster access
    kubeconfig_path: Optional[Path] = Field(None, alias="KUBECONFIG")
    verify_ssl: bool = Field(True, alias="VALIDATE_CERTS")
    namespace: str = Field("runtime-conformance", alias="CONFORMANCE_NAMESPACE")
    create_namespace: bool = Field(True, alias="CONFORMANCE_CREATE_NAMESPACE")

    # Container status polling
    container_status_retry_timeout: float = Field(
        CONTAINER_STATUS_RETRY_TIMEOUT, alias="CONTAINER_STATUS_RETRY_TIMEOUT", gt=0
    )
    container_status_poll_interval: float = Field(
        CONTAINER_STATUS_POLL_INTERVAL, alias="CONTAINER_STATUS_POLL_INTERVAL", gt=0
    )

    # Flaky registry retries
    flake_retry_attempts: int = Field(FLAKE_RETRY_ATTEMPTS, alias="FLAKE_RETRY_ATTEMPTS", ge=1)
    flake_retry_backoff: float = Field(0, alias="FLAKE_RETRY_BACKOFF", ge=0)

    # Kubelet
    kubelet_root_directory: Path = Field(Path("/var/lib/kubelet"), alias="KUBELET_ROOT_DIRECTORY")

    # Private registry fixture
    registry_image: str = Field("registry.k8s.io/e2e-test-images/private-registry:1.0", alias="REGISTRY_IMAGE")
    registry_port: int = Field(5000, alias="REGISTRY_PORT")
    registry_pod_name: str = Field("private-registry", alias="REGISTRY_POD_NAME")
    registry_username: str = Field("user1", alias="REGISTRY_USERNAME")
    registry_password: str = Field("password1", alias="REGISTRY_PASSWORD")
    registry_startup_timeout: float = Field(120, alias="REGISTRY_STARTUP_TIMEOUT", gt=0)

    @model_validator(mode="before")
    @classmethod
    def resolve_env(cls, data: Dict[str, Any]) -> Dict[str, Any]:
        """Convert a free-form environment name to an `Environment` instance."""
        if isinstance(data, dict):
            for key in ("env", "ENV"):
                if isinstance(data.get(key), str):
                    data[key] = Environment.from_string(data[key])
        return data

    @model_validator(mode="after")
    def set_env_details(self) -> "AppConfig":
        """Fill `log_level` and `debug` from the environment defaults when they are not set explicitly."""
        if self.log_level is None:
            self.log_level = self.env.log_level
        if self.debug is None:
            self.debug = self.env.debug

        return self


app_settings = AppConfig()

logging.configure_logging(app_settings.log_level, app_settings.debug)
