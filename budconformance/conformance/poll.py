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

"""Polls a workload status until it matches an expectation or a deadline elapses."""

import asyncio
import time
from typing import Awaitable, Callable

from ..commons.constants import AttemptFailureKind
from ..commons.exceptions import FetchError
from ..commons.logging import get_logger
from .classifier import classify
from .schemas import AttemptResult, Expectation, ObservedStatus


logger = get_logger(__name__)

StatusFetcher = Callable[[], Awaitable[ObservedStatus]]


async def poll_status(
    fetch: StatusFetcher,
    expectation: Expectation,
    deadline: float,
    interval: float,
    *,
    clock: Callable[[], float] = time.monotonic,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
) -> AttemptResult:
    """Poll `fetch` until the status matches `expectation` or `deadline` seconds have elapsed.

    A `FetchError` does not end polling: the cluster may briefly fail to report a status, so the error only becomes
    the current diagnostic. Any other exception propagates.

    Args:
        fetch (StatusFetcher): Coroutine function returning the current status.
        expectation (Expectation): Declared state to match.
        deadline (float): Seconds after which polling gives up.
        interval (float): Seconds to sleep between polls.
        clock (Callable[[], float]): Monotonic clock in seconds.
        sleep (Callable[[float], Awaitable[None]]): Sleep coroutine function.

    Returns:
        AttemptResult: Success on the first match, otherwise a mismatch failure with the last diagnostic.
    """
    start = clock()
    polls = 0
    diagnostic = ""

    while True:
        polls += 1
        try:
            observed = await fetch()
        except FetchError as err:
            diagnostic = f"failed to get container status: {err.message}"
        else:
            ok, diagnostic = classify(observed, expectation)
            if ok:
                logger.debug("Workload status matched expectation", polls=polls)
                return AttemptResult.passed()

        if clock() - start >= deadline:
            logger.debug("Workload status polling timed out", polls=polls, diagnostic=diagnostic)
            return AttemptResult.failed(AttemptFailureKind.MISMATCH, diagnostic)

        await sleep(interval)
