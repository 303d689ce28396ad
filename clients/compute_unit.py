"""
clients/compute_unit.py - Compute Unit (CU) Client

Reads the full balance table of a process from a CU, either by evaluating
a read-only dry run or by reading the result of an already-sent message:

    POST {cu}/dry-run?process-id={process_id}
    GET  {cu}/result/{message_id}?process-id={process_id}

Both answer with ``{"Messages": [{"Data": "<json object>"}, ...]}``; the
first message's Data is the address -> balance table.
"""

import asyncio
import json
import logging
from typing import Any, Awaitable, Callable, Dict, Optional

import httpx

from clients.http import build_client, send
from config import ReconcilerConfig
from core.exceptions import BaselineFetchError, EmptyResponseError
from core.retry import execute_with_retry, retry_all

logger = logging.getLogger(__name__)

BALANCES_TAGS = [
    {"name": "Action", "value": "Balances"},
    {"name": "Data-Protocol", "value": "ao"},
    {"name": "Type", "value": "Message"},
    {"name": "Variant", "value": "ao.TN.1"},
]


def parse_balances_result(payload: Any, source: str) -> Dict[str, str]:
    """Extract the balance table from a CU dry-run/result payload."""
    if not isinstance(payload, dict):
        raise EmptyResponseError(f"Unexpected response shape from {source}", url=source)

    messages = payload.get("Messages") or []
    if not messages:
        raise EmptyResponseError(f"No messages in result from {source}", url=source)

    data = messages[0].get("Data") if isinstance(messages[0], dict) else None
    if not data:
        raise EmptyResponseError(f"No data in message from {source}", url=source)

    if isinstance(data, str):
        try:
            data = json.loads(data)
        except json.JSONDecodeError as e:
            raise EmptyResponseError(
                f"Failed to parse balance data from {source}: {e.msg}", url=source
            ) from e

    if not isinstance(data, dict):
        raise EmptyResponseError(
            f"Invalid balance data format from {source}: expected object", url=source
        )

    return {str(address): _as_text(balance) for address, balance in data.items()}


def _as_text(balance: Any) -> str:
    # JSON numbers are kept exact by json.loads (ints), never rendered as floats
    if balance is None:
        return ""
    return str(balance)


class ComputeUnitClient:
    """Talks to a single CU endpoint."""

    def __init__(
        self,
        config: ReconcilerConfig,
        cu_url: Optional[str] = None,
        http_client: Optional[httpx.AsyncClient] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.config = config
        self.cu_url = (cu_url or config.cu_url).rstrip("/")
        self.retry_policy = config.retry_policy
        self._owns_client = http_client is None
        self._client = http_client or build_client(self.cu_url, config.timeout_seconds)
        self._sleep = sleep

    async def dry_run_balances(self, process_id: str) -> Dict[str, str]:
        """Evaluate a read-only Balances message against the current process state."""
        body = {
            "Id": "1234",
            "Target": process_id,
            "Owner": "1234",
            "Anchor": "0",
            "Data": "",
            "Tags": BALANCES_TAGS,
        }

        async def _attempt() -> Dict[str, str]:
            response = await send(
                self._client, "POST", "/dry-run",
                params={"process-id": process_id}, json_body=body,
            )
            return parse_balances_result(_json(response, self.cu_url), self.cu_url)

        try:
            balances = await execute_with_retry(
                _attempt,
                self.retry_policy,
                operation_name=f"dry-run {process_id} @ {self.cu_url}",
                sleep=self._sleep,
            )
        except Exception as e:
            raise BaselineFetchError(
                f"Failed to fetch balances from AO process: {e}", source=self.cu_url, cause=e
            ) from e

        logger.info(f"Dry run on {self.cu_url} returned {len(balances)} balances")
        return balances

    async def get_result(self, message_id: str, process_id: str) -> Dict[str, str]:
        """
        Balance table from the result of ``message_id``.

        The CU may not have evaluated the message yet, so every failure is
        retried with backoff.
        """
        async def _attempt() -> Dict[str, str]:
            response = await send(
                self._client, "GET", f"/result/{message_id}",
                params={"process-id": process_id},
            )
            return parse_balances_result(_json(response, self.cu_url), self.cu_url)

        try:
            balances = await execute_with_retry(
                _attempt,
                self.retry_policy,
                operation_name=f"result {message_id} @ {self.cu_url}",
                classify=retry_all,
                sleep=self._sleep,
            )
        except Exception as e:
            raise BaselineFetchError(
                f"Failed to get result from CU {self.cu_url}: {e}", source=self.cu_url, cause=e
            ) from e

        logger.info(f"CU {self.cu_url} returned {len(balances)} balances for message {message_id}")
        return balances

    async def aclose(self):
        if self._owns_client:
            await self._client.aclose()

    async def __aenter__(self) -> "ComputeUnitClient":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.aclose()
        return False


def _json(response: httpx.Response, source: str) -> Any:
    try:
        return response.json()
    except ValueError as e:
        raise EmptyResponseError(f"Response from {source} is not JSON", url=source) from e
