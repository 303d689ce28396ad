"""
core - Shared infrastructure for the balance reconciler

Modules:
- exceptions: Error hierarchy and error codes
- validation: Identifier and settings validation
- retry: Capped exponential backoff with jitter
- scheduler: Bounded-concurrency per-address fetch scheduler
- logging_config: Console and debug-file logging
"""

from .exceptions import (
    ErrorCode,
    ReconcilerError,
    ValidationError,
    ConfigurationError,
    WalletError,
    BaselineFetchError,
    SourceHTTPError,
    NotFoundError,
    RateLimitError,
    NetworkError,
    EmptyResponseError,
)

from .retry import RetryPolicy, execute_with_retry, is_retryable, retry_all

from .scheduler import (
    BoundedFetchScheduler,
    NullProgressObserver,
    ProgressObserver,
    ScheduledResult,
)

__all__ = [
    'ErrorCode',
    'ReconcilerError',
    'ValidationError',
    'ConfigurationError',
    'WalletError',
    'BaselineFetchError',
    'SourceHTTPError',
    'NotFoundError',
    'RateLimitError',
    'NetworkError',
    'EmptyResponseError',
    'RetryPolicy',
    'execute_with_retry',
    'is_retryable',
    'retry_all',
    'BoundedFetchScheduler',
    'NullProgressObserver',
    'ProgressObserver',
    'ScheduledResult',
]
