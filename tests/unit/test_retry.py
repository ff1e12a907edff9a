import asyncio

import pytest

from skysocial.core import MUTATION_POLICY, QUERY_POLICY, RetryPolicy, backoff_delay_ms, classify_error, run_with_retry
from skysocial.domain import ErrorKind, RemoteCallError, ValidationError
from tests.fakes import FakeSleep


def _remote(message: str, status=None, code=None) -> RemoteCallError:
    return RemoteCallError(message, operation="get_timeline", status=status, code=code)


@pytest.mark.parametrize(
    ("error", "kind"),
    [
        (ValidationError("missing uri"), ErrorKind.VALIDATION),
        (_remote("Unauthorized", status=401), ErrorKind.AUTH_EXPIRED),
        (_remote("ExpiredToken: session is over"), ErrorKind.AUTH_EXPIRED),
        (_remote("boom", code="UNAUTHORIZED"), ErrorKind.AUTH_EXPIRED),
        (_remote("slow down", status=429), ErrorKind.RATE_LIMITED),
        (_remote("took too long", status=408), ErrorKind.TRANSIENT),
        (_remote("bad gateway", status=502), ErrorKind.TRANSIENT),
        (_remote("no such record", status=404), ErrorKind.CLIENT_ERROR),
        (RuntimeError("UpstreamFailure"), ErrorKind.TRANSIENT),
        (RuntimeError("Request failed with status 500"), ErrorKind.TRANSIENT),
        (RuntimeError("HTTP 403 returned"), ErrorKind.CLIENT_ERROR),
        (RuntimeError("Rate limit exceeded"), ErrorKind.RATE_LIMITED),
        (RuntimeError("Profile not found"), ErrorKind.CLIENT_ERROR),
        (ConnectionResetError("peer reset"), ErrorKind.TRANSIENT),
        (ValueError("odd"), ErrorKind.UNKNOWN),
    ],
)
def test_classify_error(error: BaseException, kind: ErrorKind) -> None:
    assert classify_error(error) is kind


def test_backoff_doubles_and_caps() -> None:
    assert [backoff_delay_ms(attempt) for attempt in range(5)] == [1000, 2000, 4000, 8000, 10000]
    assert backoff_delay_ms(3, base_ms=100, cap_ms=500) == 500


def test_query_policy_retries_transient_errors_until_attempts_run_out() -> None:
    error = _remote("unavailable", status=503)

    first = QUERY_POLICY.classify(error, 0)
    second = QUERY_POLICY.classify(error, 1)
    third = QUERY_POLICY.classify(error, 2)

    assert first.retry and first.delay_ms == 1000
    assert second.retry and second.delay_ms == 2000
    assert not third.retry


def test_mutation_policy_allows_a_single_retry() -> None:
    error = _remote("unavailable", status=503)

    assert MUTATION_POLICY.classify(error, 0).retry
    assert not MUTATION_POLICY.classify(error, 1).retry


def test_policy_never_retries_auth_or_client_errors() -> None:
    assert not QUERY_POLICY.classify(_remote("Unauthorized", status=401), 0).retry
    assert not QUERY_POLICY.classify(_remote("Bad request", status=400), 0).retry
    assert not QUERY_POLICY.classify(ValidationError("empty"), 0).retry


def test_run_with_retry_recovers_after_transient_failures() -> None:
    sleep = FakeSleep()
    outcomes = [_remote("unavailable", status=503), _remote("unavailable", status=503), "done"]

    async def operation() -> str:
        outcome = outcomes.pop(0)
        if isinstance(outcome, Exception):
            raise outcome
        return outcome

    result = asyncio.run(run_with_retry(operation, QUERY_POLICY, context="test", sleep=sleep))

    assert result == "done"
    assert sleep.delays == [1.0, 2.0]


def test_run_with_retry_raises_auth_errors_without_retrying() -> None:
    sleep = FakeSleep()
    calls = []

    async def operation() -> None:
        calls.append(1)
        raise _remote("Unauthorized", status=401)

    with pytest.raises(RemoteCallError):
        asyncio.run(run_with_retry(operation, QUERY_POLICY, context="test", sleep=sleep))

    assert len(calls) == 1
    assert sleep.delays == []


def test_run_with_retry_gives_up_after_max_attempts() -> None:
    sleep = FakeSleep()
    calls = []
    policy = RetryPolicy(max_attempts=3, base_delay_ms=10, max_delay_ms=15)

    async def operation() -> None:
        calls.append(1)
        raise TimeoutError("timed out")

    with pytest.raises(TimeoutError):
        asyncio.run(run_with_retry(operation, policy, context="test", sleep=sleep))

    assert len(calls) == 3
    assert sleep.delays == [0.01, 0.015]
