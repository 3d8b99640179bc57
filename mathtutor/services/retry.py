"""
services/retry.py
──────────────────────────────────────────────────────────────────────────────
Exponential back-off for the batch pipelines.

Only transient kinds are retried (RATE_LIMITED, NETWORK_UNAVAILABLE).  Every
other TutorError is terminal on the first attempt.  Delay before attempt
n+1 is ``base_delay * 2 ** (n - 1)``: 1s, 2s, 4s… for base_delay=1.
"""
from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, TypeVar

from mathtutor.domain.exceptions import FailureKind, TutorError

logger = logging.getLogger(__name__)

T = TypeVar("T")

RETRYABLE_KINDS = frozenset({FailureKind.RATE_LIMITED, FailureKind.NETWORK_UNAVAILABLE})

Sleep = Callable[[float], Awaitable[None]]


@dataclass(frozen=True)
class RetryPolicy:
    max_attempts: int = 3
    base_delay: float = 1.0

    def delay_for(self, attempt: int) -> float:
        """Pause after failed attempt number ``attempt`` (1-indexed)."""
        return self.base_delay * 2 ** (attempt - 1)


class RetryExhausted(Exception):
    """Raised by retry_async with the last TutorError and the attempt count."""

    def __init__(self, error: TutorError, attempts: int) -> None:
        super().__init__(str(error))
        self.error = error
        self.attempts = attempts


async def retry_async(
    fn: Callable[[], Awaitable[T]],
    policy: RetryPolicy,
    *,
    label: str,
    sleep: Sleep = asyncio.sleep,
) -> T:
    """Await ``fn()`` until it succeeds or the policy gives up.

    Args:
        fn:     Zero-argument coroutine factory; called once per attempt.
        policy: Attempt limit and base delay.
        label:  Item identifier for log lines.
        sleep:  Awaitable sleep; injectable for tests.

    Raises:
        RetryExhausted: Wrapping the last TutorError, after a terminal kind
            or after ``policy.max_attempts`` transient failures.
    """
    attempt = 1
    while True:
        try:
            return await fn()
        except TutorError as exc:
            if exc.kind not in RETRYABLE_KINDS or attempt >= policy.max_attempts:
                raise RetryExhausted(exc, attempt) from exc
            delay = policy.delay_for(attempt)
            logger.warning(
                "%s: %s (attempt %d/%d) | back-off %.1fs",
                label, exc.code, attempt, policy.max_attempts, delay,
            )
            await sleep(delay)
            attempt += 1
