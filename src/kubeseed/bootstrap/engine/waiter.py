# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/kubeseed/bootstrap/engine/waiter.py

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from enum import Enum
from typing import Callable

from kubeseed.utils.retry import RetryPolicy

log = logging.getLogger("kubeseed")


class WaitStatus(str, Enum):
    READY = "ready"
    TIMED_OUT = "timed_out"


@dataclass(frozen=True)
class WaitResult:
    status: WaitStatus
    attempts: int
    elapsed: float

    @property
    def ready(self) -> bool:
        return self.status is WaitStatus.READY


def wait_for(
    predicate: Callable[[], bool],
    timeout: float,
    poll_interval: float,
    *,
    description: str = "condition",
    sleep: Callable[[float], None] = time.sleep,
    clock: Callable[[], float] = time.monotonic,
) -> WaitResult:
    """
    Poll ``predicate`` until it is true or ``timeout`` elapses.

    The first check is immediate. A predicate that raises counts as not
    ready. Never raises on timeout; the caller decides what a timeout means.
    """
    policy = RetryPolicy.from_timeout(timeout, poll_interval)

    def probe() -> bool:
        try:
            return bool(predicate())
        except Exception as e:
            log.debug("[wait] %s not ready yet: %s", description, e)
            return False

    def on_attempt(attempt: int, ok: bool) -> None:
        if not ok and attempt % 6 == 0:
            log.info(
                "[wait] Still waiting for %s (attempt %d/%d)",
                description, attempt, policy.max_attempts,
            )

    result = policy.poll(probe, on_attempt=on_attempt, sleep=sleep, clock=clock)
    if result.succeeded:
        log.debug("[wait] %s ready after %d attempt(s)", description, result.attempts)
        return WaitResult(WaitStatus.READY, result.attempts, result.elapsed)

    log.warning(
        "[wait] Timed out after %ss waiting for %s (%d attempts)",
        timeout, description, result.attempts,
    )
    return WaitResult(WaitStatus.TIMED_OUT, result.attempts, result.elapsed)
