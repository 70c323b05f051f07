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

"""Repeats whole verification attempts to tolerate a flaky image registry."""

import asyncio
from typing import Awaitable, Callable, Optional

from tenacity import AsyncRetrying, RetryCallState, retry_if_result, stop_after_attempt, wait_fixed

from ..commons.exceptions import FlakeRetryExhaustedError, SetupError
from ..commons.logging import get_logger
from .attempt import AttemptOrchestrator, Prerequisites
from .schemas import AttemptResult, Expectation


logger = get_logger(__name__)


def _should_retry(result: AttemptResult) -> bool:
    return not result.success and not result.is_fatal


def _log_retry(retry_state: RetryCallState) -> None:
    result = retry_state.outcome.result()
    logger.warning(
        f"No.{retry_state.attempt_number} attempt failed, retrying...",
        attempt=retry_state.attempt_number,
        diagnostic=result.diagnostic,
    )


def _last_result(retry_state: RetryCallState) -> AttemptResult:
    return retry_state.outcome.result()


class FlakyRetryDriver:
    """Runs verification attempts until one succeeds or the attempt budget is spent.

    Each attempt creates a fresh workload, so a registry hiccup during one pull does not fail the verification. Only
    the last attempt's diagnostic is surfaced; earlier ones are logged.

    Attributes:
        orchestrator (AttemptOrchestrator): Runs a single attempt.
        max_attempts (int): Attempt budget, at least 1.
        attempt_backoff (float): Seconds to wait between attempts.
    """

    def __init__(
        self,
        orchestrator: AttemptOrchestrator,
        max_attempts: int,
        attempt_backoff: float = 0,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        """Initialize the driver.

        Raises:
            ValueError: If `max_attempts` is lower than 1.
        """
        if max_attempts < 1:
            raise ValueError(f"max_attempts must be at least 1, got {max_attempts}")

        self.orchestrator = orchestrator
        self.max_attempts = max_attempts
        self.attempt_backoff = attempt_backoff
        self._sleep = sleep

    async def run(
        self, expectation: Expectation, prerequisites: Prerequisites, max_attempts: Optional[int] = None
    ) -> None:
        """Verify the expectation, retrying failed attempts.

        Args:
            expectation (Expectation): Declared state to verify.
            prerequisites (Prerequisites): Passed to every attempt.
            max_attempts (int, optional): Attempt budget for this run, defaults to the driver's budget.

        Raises:
            ValueError: If `max_attempts` is lower than 1.
            SetupError: If prerequisites could not be provisioned. Not retried.
            FlakeRetryExhaustedError: If every attempt failed.
        """
        if max_attempts is None:
            max_attempts = self.max_attempts
        elif max_attempts < 1:
            raise ValueError(f"max_attempts must be at least 1, got {max_attempts}")

        attempts = 0

        async def attempt_once() -> AttemptResult:
            nonlocal attempts
            attempts += 1
            return await self.orchestrator.run_attempt(expectation, prerequisites)

        retrying = AsyncRetrying(
            stop=stop_after_attempt(max_attempts),
            wait=wait_fixed(self.attempt_backoff),
            retry=retry_if_result(_should_retry),
            before_sleep=_log_retry,
            retry_error_callback=_last_result,
            sleep=self._sleep,
        )
        result = await retrying(attempt_once)

        if result.success:
            logger.info("Verification succeeded", attempts=attempts)
            return

        if result.is_fatal:
            logger.error("Verification aborted on setup failure", attempts=attempts, diagnostic=result.diagnostic)
            raise SetupError(result.diagnostic, attempts=attempts)

        logger.error(f"All {attempts} attempts failed", attempts=attempts, diagnostic=result.diagnostic)
        raise FlakeRetryExhaustedError(attempts, result.diagnostic)
