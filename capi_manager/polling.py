# /*
# Copyright 2026 The CAPI Manager Authors.
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.
# */

"""Bounded fixed-interval polling over eventually-consistent remote state.

A predicate passed to :func:`poll` has three outcomes:

* it returns a value: the state converged and the value is returned,
* it raises :class:`~capi_manager.errors.ExpectedError`: not converged yet, retry,
* it raises anything else: hard failure, propagated immediately.
"""

from __future__ import annotations

import threading
import time
from collections.abc import Callable
from typing import TypeVar

from tenacity import RetryCallState, RetryError, Retrying, retry_if_exception_type, stop_after_delay, wait_fixed

from capi_manager import logger
from capi_manager.errors import ConvergenceTimeout, ExpectedError, OperationCancelled

T = TypeVar("T")


def _log_retry(description: str) -> Callable[[RetryCallState], None]:
    def _before_sleep(retry_state: RetryCallState) -> None:
        exc = retry_state.outcome.exception() if retry_state.outcome else None
        logger.info("Waiting for %s (attempt %d): %s", description, retry_state.attempt_number, exc)
    return _before_sleep


def _sleeper(cancel: threading.Event | None, description: str) -> Callable[[float], None]:
    def _sleep(seconds: float) -> None:
        if cancel is None:
            time.sleep(seconds)
            return
        if cancel.wait(seconds):
            raise OperationCancelled(description)
    return _sleep


def poll(
    predicate: Callable[[], T],
    *,
    interval: float,
    timeout: float,
    description: str,
    cancel: threading.Event | None = None,
) -> T:
    """Evaluate *predicate* every *interval* seconds until it converges.

    Args:
        predicate: Callable evaluated on every attempt.
        interval: Fixed delay between attempts in seconds.
        timeout: Total wall-clock budget in seconds.
        description: What is being waited for, used in logs and errors.
        cancel: Optional event; setting it aborts the wait between attempts.

    Returns:
        The value returned by the first converged evaluation.

    Raises:
        ConvergenceTimeout: If the budget is exhausted while still retrying.
        OperationCancelled: If *cancel* is set.
    """
    if cancel is not None and cancel.is_set():
        raise OperationCancelled(description)

    retrying = Retrying(
        stop=stop_after_delay(timeout),
        wait=wait_fixed(interval),
        retry=retry_if_exception_type(ExpectedError),
        before_sleep=_log_retry(description),
        sleep=_sleeper(cancel, description),
    )
    try:
        return retrying(predicate)
    except RetryError as err:
        last_error = err.last_attempt.exception()
        raise ConvergenceTimeout(description, timeout, last_error) from last_error
