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

"""Structured logging setup built on structlog with a standard library bridge."""

import logging
import sys
from typing import Any, Optional

import structlog

from .constants import LogLevel


def _get_log_level(log_level: Any) -> int:
    """Convert a log level value (enum, string or int) to a `logging` level number."""
    if isinstance(log_level, LogLevel):
        log_level = log_level.value
    if isinstance(log_level, str):
        return getattr(logging, log_level.upper(), logging.INFO)
    if isinstance(log_level, int):
        return log_level
    return logging.INFO


def configure_logging(log_level: Optional[LogLevel] = None, debug: bool = False) -> None:
    """Configure structlog and the standard library root logger.

    Debug mode renders colored console output, otherwise events are rendered as JSON lines.

    Args:
        log_level (LogLevel, optional): Minimum level to emit. Defaults to INFO.
        debug (bool): Use the development console renderer.
    """
    shared_processors: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
    ]

    if debug:
        processors = shared_processors + [structlog.dev.ConsoleRenderer(colors=sys.stdout.isatty())]
    else:
        processors = shared_processors + [
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(),
        ]

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    logging.basicConfig(format="%(message)s", stream=sys.stdout, level=_get_log_level(log_level))


def get_logger(name: Optional[str] = None) -> structlog.stdlib.BoundLogger:
    """Get a configured structlog logger.

    Args:
        name (str, optional): Logger name, usually the module `__name__`.

    Returns:
        structlog.stdlib.BoundLogger: Logger accepting keyword event context.
    """
    return structlog.get_logger(name)
