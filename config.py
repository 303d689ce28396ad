"""
config.py - Balance Reconciler Configuration

Immutable run configuration threaded through every client and processor.
Nothing below config loading reads the environment.

Environment variables (a .env file in the working directory is honoured):
- CU_URL (required), HYPERBEAM_BASE_URL
- CONCURRENCY, RETRY_ATTEMPTS, RETRY_DELAY_MS, TIMEOUT (ms)
- MAX_ADDRESSES
- CU_URL_A, CU_URL_B, WALLET_PATH
"""

import logging
import os
from typing import Any, Dict, Mapping, Optional

from dotenv import load_dotenv
from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic import ValidationError as PydanticValidationError

from core.exceptions import ConfigurationError
from core.retry import RetryPolicy

logger = logging.getLogger(__name__)

DEFAULT_HYPERBEAM_BASE_URL = "https://compute.hyperbeam.xyz"
DEFAULT_CU_URL_A = "https://cu.ardrive.io"
DEFAULT_CU_URL_B = "https://cu.ao-testnet.xyz"
DEFAULT_WALLET_PATH = "./demo.json"

# env var -> field name
_ENV_FIELDS = {
    "CU_URL": "cu_url",
    "HYPERBEAM_BASE_URL": "hyperbeam_base_url",
    "CONCURRENCY": "concurrency",
    "RETRY_ATTEMPTS": "retry_attempts",
    "RETRY_DELAY_MS": "retry_delay_ms",
    "TIMEOUT": "timeout_ms",
    "MAX_ADDRESSES": "max_addresses",
    "CU_URL_A": "cu_url_a",
    "CU_URL_B": "cu_url_b",
    "WALLET_PATH": "wallet_path",
}
_INT_FIELDS = {"concurrency", "retry_attempts", "retry_delay_ms", "timeout_ms", "max_addresses"}


class ReconcilerConfig(BaseModel):
    """Validated, frozen configuration for one reconciliation run."""

    model_config = ConfigDict(frozen=True)

    cu_url: str
    hyperbeam_base_url: str = DEFAULT_HYPERBEAM_BASE_URL
    concurrency: int = Field(
        default=15,
        ge=1,
        le=100,
        description="Maximum simultaneously outstanding counterpart fetches",
    )
    retry_attempts: int = Field(default=3, ge=0, le=10, description="Retries after the first attempt")
    retry_delay_ms: int = Field(default=1000, ge=0, description="Base backoff delay")
    timeout_ms: int = Field(default=30_000, ge=1000, description="Per-request timeout")
    max_addresses: Optional[int] = Field(default=None, ge=1)
    cu_url_a: str = DEFAULT_CU_URL_A
    cu_url_b: str = DEFAULT_CU_URL_B
    wallet_path: str = DEFAULT_WALLET_PATH

    @field_validator("cu_url", "hyperbeam_base_url", "cu_url_a", "cu_url_b")
    @classmethod
    def _check_url(cls, value: str) -> str:
        if not value or not value.startswith(("http://", "https://")):
            raise ValueError("must be a valid HTTP/HTTPS URL")
        return value.rstrip("/")

    @property
    def timeout_seconds(self) -> float:
        return self.timeout_ms / 1000.0

    @property
    def retry_policy(self) -> RetryPolicy:
        return RetryPolicy(max_attempts=self.retry_attempts, base_delay_ms=self.retry_delay_ms)

    def with_overrides(self, **overrides: Any) -> "ReconcilerConfig":
        """Return a re-validated copy with the given non-None fields replaced."""
        updates = {k: v for k, v in overrides.items() if v is not None}
        if not updates:
            return self
        return _build({**self.model_dump(), **updates})


def _build(values: Dict[str, Any]) -> ReconcilerConfig:
    try:
        return ReconcilerConfig(**values)
    except PydanticValidationError as e:
        first = e.errors()[0]
        field_name = ".".join(str(p) for p in first.get("loc", ())) or "config"
        raise ConfigurationError(f"Invalid {field_name}: {first.get('msg')}", cause=e) from e


def load_config(env: Optional[Mapping[str, str]] = None, **overrides: Any) -> ReconcilerConfig:
    """
    Build a ReconcilerConfig from environment variables.

    Args:
        env: Mapping to read instead of os.environ (the .env file is only
             loaded when reading the real environment)
        overrides: Field values that win over the environment (None is ignored)

    Raises:
        ConfigurationError: CU_URL missing, a number unparseable, or a value out of range
    """
    if env is None:
        load_dotenv(override=False)
        env = os.environ

    values: Dict[str, Any] = {}
    for env_name, field_name in _ENV_FIELDS.items():
        raw = env.get(env_name)
        if raw is None or raw.strip() == "":
            continue
        if field_name in _INT_FIELDS:
            try:
                values[field_name] = int(raw, 10)
            except ValueError as e:
                raise ConfigurationError(f"{env_name} must be an integer, got {raw!r}", cause=e) from e
        else:
            values[field_name] = raw.strip()

    values.update({k: v for k, v in overrides.items() if v is not None})

    if not values.get("cu_url"):
        raise ConfigurationError("CU_URL environment variable is required")

    config = _build(values)
    logger.debug(
        f"Configuration loaded: cu={config.cu_url} hyperbeam={config.hyperbeam_base_url} "
        f"concurrency={config.concurrency} retries={config.retry_attempts}"
    )
    return config
