"""Unit tests for the retry policy."""

import pytest

from nakka.scrape.errors import (
    InvalidInput,
    ResourceExhausted,
    TransientError,
    UnexpectedLayout,
)
from nakka.scrape.retry import RetryPolicy


class FlakyOperation:
    """Fails with the given errors in order, then succeeds."""

    def __init__(self, *errors, result="ok"):
        self.errors = list(errors)
        self.result = result
        self.calls = 0

    async def __call__(self):
        self.calls += 1
        if self.errors:
            raise self.errors.pop(0)
        return self.result


class RecordingSleep:
    def __init__(self):
        self.delays = []

    async def __call__(self, delay):
        self.delays.append(delay)


@pytest.mark.asyncio
async def test_ceiling_reached_before_success():
    operation = FlakyOperation(
        TransientError("timeout 1"), TransientError("timeout 2"), TransientError("timeout 3")
    )
    sleep = RecordingSleep()

    with pytest.raises(TransientError, match="timeout 3"):
        await RetryPolicy(max_attempts=3, base_delay=1.0).run(operation, sleep=sleep)

    assert operation.calls == 3
    assert sleep.delays == [1.0, 2.0]


@pytest.mark.asyncio
async def test_recovers_within_ceiling():
    operation = FlakyOperation(TransientError("timeout"), result=["row"])
    sleep = RecordingSleep()

    result = await RetryPolicy(max_attempts=3, base_delay=0.5).run(operation, sleep=sleep)

    assert result == ["row"]
    assert operation.calls == 2
    assert sleep.delays == [0.5]


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "error",
    [InvalidInput("bad id"), UnexpectedLayout("3 names"), ResourceExhausted("oom"), ValueError("x")],
)
async def test_fatal_errors_are_not_retried(error):
    operation = FlakyOperation(error)
    sleep = RecordingSleep()

    with pytest.raises(type(error)):
        await RetryPolicy(max_attempts=5).run(operation, sleep=sleep)

    assert operation.calls == 1
    assert sleep.delays == []


def test_delay_doubles():
    policy = RetryPolicy(base_delay=1.5)
    assert [policy.delay_for(n) for n in range(4)] == [1.5, 3.0, 6.0, 12.0]


def test_jitter_bounded():
    policy = RetryPolicy(base_delay=1.0, jitter=0.25)
    assert 2.0 <= policy.delay_for(1) <= 2.25


def test_custom_predicate():
    policy = RetryPolicy(should_retry=lambda exc: isinstance(exc, KeyError))
    assert policy.should_retry(KeyError("k"))
    assert not policy.should_retry(TransientError("t"))


def test_ceiling_must_allow_one_attempt():
    with pytest.raises(ValueError):
        RetryPolicy(max_attempts=0)
