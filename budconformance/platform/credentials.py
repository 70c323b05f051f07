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

"""Places registry credential material where the kubelet credential lookup finds it."""

import os
from pathlib import Path
from typing import Union

from ..commons.exceptions import SetupError
from ..commons.logging import get_logger


logger = get_logger(__name__)


def write_credential_material(path: Union[str, Path], data: bytes, mode: int = 0o644) -> Path:
    """Write credential bytes to `path`, creating parent directories.

    Args:
        path (str | Path): Destination file.
        data (bytes): Credential payload, usually a docker config JSON.
        mode (int): File permissions.

    Returns:
        Path: The written file.

    Raises:
        SetupError: If the file could not be written.
    """
    path = Path(path)
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(data)
        os.chmod(path, mode)
    except OSError as err:
        raise SetupError(f"failed to write credential file {path}: {err}") from err

    logger.info("Wrote credential file", path=str(path))
    return path


def remove_credential_material(path: Union[str, Path]) -> None:
    """Remove a credential file written by `write_credential_material`. A missing file is ignored."""
    path = Path(path)
    try:
        path.unlink()
    except FileNotFoundError:
        logger.debug("Credential file already removed", path=str(path))
        return
    logger.info("Removed credential file", path=str(path))

