"""
core/validation.py - Input Validation Module

Validation for the identifiers and settings a reconciliation run is
started with. Every check raises ValidationError on failure; a run never
starts with a malformed process or message id.
"""

import logging
import re
from typing import Optional

from core.exceptions import ErrorCode, ValidationError

logger = logging.getLogger(__name__)

# Arweave transaction ids: 32 bytes, base64url without padding
ID_LENGTH = 43
ID_PATTERN = re.compile(r'^[a-zA-Z0-9_-]+$')

MIN_CONCURRENCY = 1
MAX_CONCURRENCY = 100
MIN_RETRY_ATTEMPTS = 0
MAX_RETRY_ATTEMPTS = 10


def is_valid_id(value: Optional[str]) -> bool:
    """True for a 43-character base64url identifier."""
    if not value or not value.strip():
        return False
    if len(value) != ID_LENGTH:
        return False
    return bool(ID_PATTERN.match(value))


def validate_process_id(process_id: Optional[str]) -> str:
    if not is_valid_id(process_id):
        raise ValidationError(
            f"Invalid process ID format: {process_id}. "
            f"Expected {ID_LENGTH}-character alphanumeric string.",
            ErrorCode.INVALID_PROCESS_ID,
            field_name="process_id",
            value=process_id,
        )
    return process_id


def validate_message_id(message_id: Optional[str]) -> str:
    if not is_valid_id(message_id):
        raise ValidationError(
            f"Invalid message ID format: {message_id}. "
            f"Expected {ID_LENGTH}-character alphanumeric string.",
            ErrorCode.INVALID_MESSAGE_ID,
            field_name="message_id",
            value=message_id,
        )
    return message_id


def validate_concurrency(concurrency: int) -> int:
    if not isinstance(concurrency, int) or isinstance(concurrency, bool):
        raise ValidationError(
            f"Concurrency must be an integer, got {type(concurrency).__name__}",
            field_name="concurrency",
            value=concurrency,
        )
    if concurrency < MIN_CONCURRENCY or concurrency > MAX_CONCURRENCY:
        raise ValidationError(
            f"Concurrency must be between {MIN_CONCURRENCY} and {MAX_CONCURRENCY}",
            field_name="concurrency",
            value=concurrency,
        )
    return concurrency


def validate_retry_attempts(attempts: int) -> int:
    if attempts < MIN_RETRY_ATTEMPTS or attempts > MAX_RETRY_ATTEMPTS:
        raise ValidationError(
            f"Retry attempts must be between {MIN_RETRY_ATTEMPTS} and {MAX_RETRY_ATTEMPTS}",
            field_name="retry_attempts",
            value=attempts,
        )
    return attempts
