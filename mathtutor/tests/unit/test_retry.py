"""
tests/unit/test_retry.py
──────────────────────────────────────────────────────────────────────────────
Unit tests for RetryPolicy and retry_async().
"""
from __future__ import annotations

import asyncio

import pytest

from mathtutor.domain.exceptions import FailureKind, TutorError
from mathtutor.services.retry import RetryExhausted, RetryPolicy, retry_async
from mathtutor.tests.conftest import RecordingSleep


def _flaky(*errors: TutorError, result="ok"):
    """Coroutine factory raising ``errors`` in order, then returning ``result``."""
    remaining = list(errors)
    calls = []

    async def fn():
        calls.append(1)
        if remaining:
            raise remaining.pop(0)
        return result

    return fn, calls


def test_delay_doubles():
    policy = RetryPolicy(max_attempts=3, base_delay=1.0)
    assert [policy.delay_for(n) for n in (1, 2, 3)] == [1.0, 2.0, 4.0]


def test_success_first_try_never_sleeps():
    sleep = RecordingSleep()
    fn, calls = _flaky()
    assert asyncio.run(retry_async(fn, RetryPolicy(), label="x", sleep=sleep)) == "ok"
    assert len(calls) == 1
    assert sleep.delays == []


def test_rate_limit_retried_then_succeeds():
    sleep = RecordingSleep()
    fn, calls = _flaky(
        TutorError(FailureKind.RATE_LIMITED), TutorError(FailureKind.NETWORK_UNAVAILABLE)
    )
    assert asyncio.run(retry_async(fn, RetryPolicy(), label="x", sleep=sleep)) == "ok"
    assert len(calls) == 3
    assert sleep.delays == [1.0, 2.0]


def test_exhausted_after_max_attempts():
    sleep = RecordingSleep()
    fn, calls = _flaky(*[TutorError(FailureKind.RATE_LIMITED)] * 5)
    with pytest.raises(RetryExhausted) as exc_info:
        asyncio.run(retry_async(fn, RetryPolicy(max_attempts=3), label="x", sleep=sleep))
    assert exc_info.value.attempts == 3
    assert exc_info.value.error.kind is FailureKind.RATE_LIMITED
    assert len(calls) == 3
    assert sleep.delays == [1.0, 2.0]


@pytest.mark.parametrize("kind", [
    FailureKind.QUOTA_EXCEEDED,
    FailureKind.INVALID_CREDENTIAL,
    FailureKind.VALIDATION_FAILED,
    FailureKind.STORAGE_FAILED,
    FailureKind.UNCLASSIFIED,
    FailureKind.DUPLICATE_ENTRY,
])
def test_non_transient_kinds_fail_immediately(kind):
    sleep = RecordingSleep()
    fn, calls = _flaky(TutorError(kind))
    with pytest.raises(RetryExhausted) as exc_info:
        asyncio.run(retry_async(fn, RetryPolicy(), label="x", sleep=sleep))
    assert exc_info.value.attempts == 1
    assert len(calls) == 1
    assert sleep.delays == []


def test_other_exceptions_propagate():
    async def fn():
        raise RuntimeError("bug")

    with pytest.raises(RuntimeError):
        asyncio.run(retry_async(fn, RetryPolicy(), label="x", sleep=RecordingSleep()))
