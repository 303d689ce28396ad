"""
core/exceptions.py - Reconciler Exceptions

Exception hierarchy shared by the source clients, the retry executor and
the reconciliation processors.

Features:
- Hierarchical exception structure
- Error codes for programmatic handling
- HTTP status carried on source errors so the retry policy can classify them
- Serializable for logging
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional


class ErrorCode(Enum):
    """Standard error codes for reconciliation runs."""
    # Input errors (1xx)
    VALIDATION_FAILED = "E101"
    INVALID_PROCESS_ID = "E102"
    INVALID_MESSAGE_ID = "E103"
    CONFIGURATION_ERROR = "E104"
    WALLET_INVALID = "E105"

    # Source errors (2xx)
    BASELINE_UNAVAILABLE = "E201"
    SOURCE_HTTP_ERROR = "E202"
    SOURCE_NOT_FOUND = "E203"
    RATE_LIMIT_EXCEEDED = "E204"
    NETWORK_ERROR = "E205"
    EMPTY_RESPONSE = "E206"

    # System errors (5xx)
    INTERNAL_ERROR = "E501"


@dataclass
class ErrorContext:
    """Rich context for errors."""
    error_code: ErrorCode
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    address: Optional[str] = None
    url: Optional[str] = None
    additional_data: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'error_code': self.error_code.value,
            'timestamp': self.timestamp.isoformat(),
            'address': self.address,
            'url': self.url,
            **self.additional_data
        }


class ReconcilerError(Exception):
    """Base exception for all reconciler errors."""

    def __init__(
        self,
        message: str,
        error_code: ErrorCode = ErrorCode.INTERNAL_ERROR,
        context: Optional[ErrorContext] = None,
        cause: Optional[BaseException] = None
    ):
        super().__init__(message)
        self.message = message
        self.error_code = error_code
        self.context = context or ErrorContext(error_code=error_code)
        self.cause = cause

    def __str__(self) -> str:
        return self.message

    def to_dict(self) -> Dict[str, Any]:
        return {
            'error_type': self.__class__.__name__,
            'message': self.message,
            'error_code': self.error_code.value,
            'context': self.context.to_dict() if self.context else None
        }


# ============================================================================
# Input Errors
# ============================================================================

class ValidationError(ReconcilerError):
    """Malformed identifier or out-of-range argument. Fatal to the run."""

    def __init__(
        self,
        message: str,
        error_code: ErrorCode = ErrorCode.VALIDATION_FAILED,
        field_name: str = "",
        value: Any = None
    ):
        super().__init__(
            message,
            error_code,
            ErrorContext(
                error_code=error_code,
                additional_data={'field': field_name, 'value': value}
            )
        )
        self.field_name = field_name
        self.value = value


class ConfigurationError(ReconcilerError):
    """Invalid or missing configuration."""

    def __init__(self, message: str, cause: Optional[BaseException] = None):
        super().__init__(message, ErrorCode.CONFIGURATION_ERROR, cause=cause)


class WalletError(ReconcilerError):
    """Wallet file missing or not a usable JWK."""

    def __init__(self, message: str, path: str = "", cause: Optional[BaseException] = None):
        super().__init__(
            message,
            ErrorCode.WALLET_INVALID,
            ErrorContext(
                error_code=ErrorCode.WALLET_INVALID,
                additional_data={'path': path}
            ),
            cause
        )
        self.path = path


# ============================================================================
# Source Errors
# ============================================================================

class BaselineFetchError(ReconcilerError):
    """The baseline balance map could not be obtained. Aborts the whole run."""

    def __init__(self, message: str, source: str = "", cause: Optional[BaseException] = None):
        super().__init__(
            message,
            ErrorCode.BASELINE_UNAVAILABLE,
            ErrorContext(
                error_code=ErrorCode.BASELINE_UNAVAILABLE,
                additional_data={'source': source}
            ),
            cause
        )
        self.source = source


class SourceHTTPError(ReconcilerError):
    """A data source answered with a non-success HTTP status."""

    def __init__(
        self,
        status_code: int,
        message: str = "",
        url: str = "",
        error_code: ErrorCode = ErrorCode.SOURCE_HTTP_ERROR
    ):
        super().__init__(
            message or f"HTTP {status_code}",
            error_code,
            ErrorContext(
                error_code=error_code,
                url=url,
                additional_data={'status_code': status_code}
            )
        )
        self.status_code = status_code
        self.url = url

    @property
    def is_client_error(self) -> bool:
        return 400 <= self.status_code < 500

    @property
    def is_server_error(self) -> bool:
        return self.status_code >= 500


class NotFoundError(SourceHTTPError):
    """HTTP 404. For a per-address lookup this means a zero balance."""

    def __init__(self, message: str = "Not found", url: str = ""):
        super().__init__(404, message, url, ErrorCode.SOURCE_NOT_FOUND)


class RateLimitError(SourceHTTPError):
    """HTTP 429."""

    def __init__(self, message: str = "Rate limit exceeded", url: str = ""):
        super().__init__(429, message, url, ErrorCode.RATE_LIMIT_EXCEEDED)


class NetworkError(ReconcilerError):
    """Timeout, connection reset or any transport-level failure."""

    def __init__(self, message: str, url: str = "", cause: Optional[BaseException] = None):
        super().__init__(
            message,
            ErrorCode.NETWORK_ERROR,
            ErrorContext(error_code=ErrorCode.NETWORK_ERROR, url=url),
            cause
        )
        self.url = url


class EmptyResponseError(ReconcilerError):
    """A source answered successfully but without a usable body."""

    def __init__(self, message: str, url: str = ""):
        super().__init__(
            message,
            ErrorCode.EMPTY_RESPONSE,
            ErrorContext(error_code=ErrorCode.EMPTY_RESPONSE, url=url)
        )
        self.url = url
