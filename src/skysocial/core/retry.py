"""Error classification and bounded exponential backoff.

Shared by the query path (resource cache) and the write path (mutation
executor). The attempt counter lives in a single :func:`run_with_retry` call,
so it is never shared between unrelated operations.
"""

from __future__ import annotations

import asyncio
import logging
import re
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Optional, Protocol, TypeVar

from ..domain import AuthRecovery, ErrorKind, ValidationError

logger = logging.getLogger(__name__)

T = TypeVar("T")

Sleep = Callable[[float], Awaitable[Any]]

_AUTH_HINTS = ("unauthorized", "authentication", "invalid token", "token expired", "expiredtoken")
_RATE_LIMIT_HINTS = ("ratelimit", "rate limit", "too many requests")
_TRANSIENT_HINTS = ("upstreamfailure", "network", "timeout", "timed out")
_CLIENT_HINTS = ("not found", "invalid request")
_STATUS_IN_MESSAGE = re.compile(r"\b(?:http|status)\s*:?\s*(\d{3})\b")


def classify_error(error: BaseException) -> ErrorKind:
    if isinstance(error, ValidationError):
        return ErrorKind.VALIDATION

    status = getattr(error, "status", None)
    code = str(getattr(error, "code", None) or "").upper()
    message = str(getattr(error, "message", None) or error).lower()
    if not isinstance(status, int):
        found = _STATUS_IN_MESSAGE.search(message)
        status = int(found.group(1)) if found else None

    if status == 401 or code == "UNAUTHORIZED" or any(hint in message for hint in _AUTH_HINTS):
        return ErrorKind.AUTH_EXPIRED

    if isinstance(status, int):
        if status == 408:
            return ErrorKind.TRANSIENT
        if status == 429:
            return ErrorKind.RATE_LIMITED
        if 400 <= status < 500:
            return ErrorKind.CLIENT_ERROR
        if status >= 500:
            return ErrorKind.TRANSIENT

    if any(hint in message for hint in _RATE_LIMIT_HINTS):
        return ErrorKind.RATE_LIMITED
    if any(hint in message for hint in _TRANSIENT_HINTS):
        return ErrorKind.TRANSIENT
    if any(hint in message for hint in _CLIENT_HINTS):
        return ErrorKind.CLIENT_ERROR

    if isinstance(error, (TimeoutError, asyncio.TimeoutError, ConnectionError, OSError)):
        return ErrorKind.TRANSIENT
    return ErrorKind.UNKNOWN


def backoff_delay_ms(attempt: int, *, base_ms: int = 1000, cap_ms: int = 10000) -> int:
    """Delay before the retry following the 0-based ``attempt`` that failed."""

    return min(base_ms * 2**attempt, cap_ms)


@dataclass(frozen=True, slots=True)
class RetryDecision:
    retry: bool
    kind: ErrorKind
    delay_ms: Optional[int] = None


@dataclass(frozen=True, slots=True)
class RetryPolicy:
    max_attempts: int = 3
    base_delay_ms: int = 1000
    max_delay_ms: int = 10000

    def classify(self, error: BaseException, attempt: int) -> RetryDecision:
        """Decide whether to retry after the 0-based ``attempt`` failed with ``error``."""

        kind = classify_error(error)
        if not kind.is_retryable or attempt + 1 >= self.max_attempts:
            return RetryDecision(retry=False, kind=kind)
        delay = backoff_delay_ms(attempt, base_ms=self.base_delay_ms, cap_ms=self.max_delay_ms)
        return RetryDecision(retry=True, kind=kind, delay_ms=delay)


QUERY_POLICY = RetryPolicy(max_attempts=3)
MUTATION_POLICY = RetryPolicy(max_attempts=2)


class AuthErrorReporter(Protocol):
    async def report_auth_error(self, error: BaseException) -> AuthRecovery: ...


async def run_with_retry(
    operation: Callable[[], Awaitable[T]],
    policy: RetryPolicy,
    *,
    context: str,
    sleep: Sleep = asyncio.sleep,
) -> T:
    """Run ``operation`` until it succeeds or ``policy`` says stop, then re-raise."""

    attempt = 0
    while True:
        try:
            return await operation()
        except Exception as exc:
            decision = policy.classify(exc, attempt)
            if not decision.retry:
                raise
            logger.warning(
                "%s attempt %d failed (%s): %s; retrying in %dms",
                context,
                attempt + 1,
                decision.kind.value,
                exc,
                decision.delay_ms,
            )
            await sleep(decision.delay_ms / 1000)
            attempt += 1
