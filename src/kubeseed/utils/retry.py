# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/kubeseed/utils/retry.py

from __future__ import annotations

import functools
import math
import time
from dataclasses import dataclass
from typing import Callable


class RetryError(RuntimeError):
    pass


def retry(
    *,
    retries: int,
    delay: float,
    retry_on: tuple[type[Exception], ...] = (Exception,),
    on_retry: Callable[[int, Exception], None] | None = None,
    sleep: Callable[[float], None] | None = None,
):
    """
    Retry decorator for idempotent operations.

    retries: number of attempts
    delay: seconds between attempts
    retry_on: exception types to retry
    on_retry: callback(attempt, exception)
    """

    def decorator(fn):
        @functools.wraps(fn)
        def wrapper(*args, **kwargs):
            last_exc = None
            for attempt in range(1, retries + 1):
                try:
                    return fn(*args, **kwargs)
                except retry_on as exc:
                    last_exc = exc
                    if on_retry:
                        on_retry(attempt, exc)
                    if attempt == retries:
                        break
                    (sleep or time.sleep)(delay)
            raise RetryError(f"{fn.__name__} failed after {retries} retries") from last_exc
        return wrapper
    return decorator


@dataclass(frozen=True)
class PollResult:
    succeeded: bool
    attempts: int
    elapsed: float


@dataclass(frozen=True)
class RetryPolicy:
    """
    Bounded polling: at most ``max_attempts`` probes, ``interval`` seconds
    apart, optionally cut short by a wall-clock ``deadline``.

    With ``delay_first`` the policy sleeps before every probe (dispatch then
    poll); otherwise the first probe is immediate.
    """

    max_attempts: int
    interval: float
    deadline: float | None = None
    delay_first: bool = False

    def __post_init__(self):
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be >= 1")
        if self.interval < 0:
            raise ValueError("interval must be >= 0")

    @classmethod
    def from_timeout(
        cls,
        timeout: float,
        interval: float,
        *,
        delay_first: bool = False,
    ) -> "RetryPolicy":
        if interval <= 0:
            raise ValueError("interval must be > 0")
        # round away float noise before taking the ceiling (30 / 0.1 etc.)
        attempts = max(1, math.ceil(round(timeout / interval, 9)))
        return cls(
            max_attempts=attempts,
            interval=interval,
            deadline=None,
            delay_first=delay_first,
        )

    def poll(
        self,
        probe: Callable[[], bool],
        *,
        on_attempt: Callable[[int, bool], None] | None = None,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], float] = time.monotonic,
    ) -> PollResult:
        """
        Call ``probe`` until it returns True or the policy is exhausted.
        Exceptions from ``probe`` propagate; callers that treat them as
        "not yet" wrap the probe.
        """
        start = clock()
        attempts = 0

        for attempt in range(1, self.max_attempts + 1):
            if self.delay_first:
                sleep(self.interval)

            attempts = attempt
            ok = bool(probe())
            if on_attempt:
                on_attempt(attempt, ok)
            if ok:
                return PollResult(True, attempts, clock() - start)

            if self.deadline is not None and clock() - start >= self.deadline:
                break
            if not self.delay_first and attempt < self.max_attempts:
                sleep(self.interval)

        return PollResult(False, attempts, clock() - start)
