"""Application paths and the shared retry policy."""

from .config import APP_AUTHOR, APP_NAME, DATA_DIR
from .retry import (
    MUTATION_POLICY,
    QUERY_POLICY,
    AuthErrorReporter,
    RetryDecision,
    RetryPolicy,
    backoff_delay_ms,
    classify_error,
    run_with_retry,
)

__all__ = [
    "APP_AUTHOR",
    "APP_NAME",
    "DATA_DIR",
    "MUTATION_POLICY",
    "QUERY_POLICY",
    "AuthErrorReporter",
    "RetryDecision",
    "RetryPolicy",
    "backoff_delay_ms",
    "classify_error",
    "run_with_retry",
]
