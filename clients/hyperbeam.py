"""
clients/hyperbeam.py - Hyperbeam State-Compute Gateway Client

Per-address counterpart lookups:

    GET {base}/{process_id}~process@1.0/compute/balances/{address}

The body is the balance as plain text. A 404 means the process state has
no entry for the address and is reported as a zero balance.
"""

import asyncio
import logging
from typing import Awaitable, Callable, Optional

import httpx

from clients.http import build_client, send
from config import ReconcilerConfig
from core.exceptions import EmptyResponseError, NotFoundError
from core.retry import execute_with_retry

logger = logging.getLogger(__name__)

# Balance reported for addresses the process state has no entry for
NOT_FOUND_BALANCE = "0"


class HyperbeamClient:
    """Fetches single-address balances for one process."""

    def __init__(
        self,
        config: ReconcilerConfig,
        process_id: str,
        http_client: Optional[httpx.AsyncClient] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.config = config
        self.process_id = process_id
        self.retry_policy = config.retry_policy
        self._owns_client = http_client is None
        self._client = http_client or build_client(config.hyperbeam_base_url, config.timeout_seconds)
        self._sleep = sleep

    def balance_path(self, address: str) -> str:
        return f"/{self.process_id}~process@1.0/compute/balances/{address}"

    async def get_balance(self, address: str) -> str:
        """
        Counterpart balance for ``address``.

        Retryable failures go through the backoff policy; a 404 short-circuits
        to "0" without retrying.

        Raises:
            The last error once retries are exhausted, or the first terminal error
        """
        try:
            return await execute_with_retry(
                lambda: self._fetch_balance(address),
                self.retry_policy,
                operation_name=f"Hyperbeam balance {address}",
                sleep=self._sleep,
            )
        except NotFoundError:
            logger.debug(f"404 for {address}, treating as zero balance")
            return NOT_FOUND_BALANCE

    async def _fetch_balance(self, address: str) -> str:
        path = self.balance_path(address)
        response = await send(self._client, "GET", path)
        balance = response.text.strip()
        if not balance:
            raise EmptyResponseError(
                f"No data in response for address {address}",
                url=f"{self.config.hyperbeam_base_url}{path}",
            )
        logger.debug(f"Address: {address}, Balance: {balance}")
        return balance

    async def aclose(self):
        if self._owns_client:
            await self._client.aclose()

    async def __aenter__(self) -> "HyperbeamClient":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.aclose()
        return False
