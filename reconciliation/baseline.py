"""
reconciliation/baseline.py - Baseline Balance Sources

The baseline map is the authoritative address -> balance table the
counterpart source is checked against. Every variant yields the same
read-only BalanceMap; failing to obtain it aborts the run.

Variants:
- DryRunBaselineSource: live read-only evaluation on a CU
- MessageResultBaselineSource: result of an already-sent Balances message
- WalletMessageBaselineSource: send the message via an injected sender, then read its result
- FileBaselineSource: a previously captured JSON balance table
"""

import json
import logging
from pathlib import Path
from types import MappingProxyType
from typing import Any, Dict, Mapping, Protocol, Union

from clients.wallet import load_wallet
from core.exceptions import BaselineFetchError, ReconcilerError
from core.validation import validate_message_id
from reconciliation.models import BalanceMap

logger = logging.getLogger(__name__)


class BalanceTableClient(Protocol):
    """What baseline sources need from a CU client."""
    cu_url: str

    async def dry_run_balances(self, process_id: str) -> Dict[str, str]: ...

    async def get_result(self, message_id: str, process_id: str) -> Dict[str, str]: ...


class MessageSender(Protocol):
    """Signs and sends a Balances message; returns its message id."""

    async def send_balance_message(self, process_id: str, wallet: Mapping[str, Any]) -> str: ...


class BaselineSource(Protocol):
    description: str

    async def fetch(self, process_id: str) -> BalanceMap: ...


def freeze(balances: Mapping[str, Any]) -> BalanceMap:
    """Read-only copy with string keys and values."""
    return MappingProxyType({
        str(address): "" if balance is None else str(balance)
        for address, balance in balances.items()
    })


class DryRunBaselineSource:
    """Baseline from a live dry run on the primary CU."""

    def __init__(self, client: BalanceTableClient):
        self.client = client
        self.description = f"dry-run @ {client.cu_url}"

    async def fetch(self, process_id: str) -> BalanceMap:
        return freeze(await self.client.dry_run_balances(process_id))


class MessageResultBaselineSource:
    """Baseline from the CU result of an existing message."""

    def __init__(self, client: BalanceTableClient, message_id: str):
        self.client = client
        self.message_id = validate_message_id(message_id)
        self.description = f"message {message_id} @ {client.cu_url}"

    async def fetch(self, process_id: str) -> BalanceMap:
        try:
            balances = await self.client.get_result(self.message_id, process_id)
        except ReconcilerError as e:
            raise BaselineFetchError(
                f"Failed to fetch balances from message {self.message_id}: {e}",
                source=self.client.cu_url,
                cause=e,
            ) from e
        return freeze(balances)


class WalletMessageBaselineSource:
    """
    Baseline from a freshly sent Balances message.

    Signing is the sender's job; this source only loads the wallet, hands
    it over, and reads the result of the returned message id.
    """

    def __init__(
        self,
        client: BalanceTableClient,
        sender: MessageSender,
        wallet_path: Union[str, Path],
    ):
        self.client = client
        self.sender = sender
        self.wallet_path = Path(wallet_path)
        self.description = f"wallet message @ {client.cu_url}"
        self.message_id = None

    async def fetch(self, process_id: str) -> BalanceMap:
        wallet = load_wallet(self.wallet_path)
        try:
            message_id = await self.sender.send_balance_message(process_id, wallet)
        except Exception as e:
            raise BaselineFetchError(
                f"Failed to send balance message: {e}", source=self.client.cu_url, cause=e
            ) from e
        if not message_id:
            raise BaselineFetchError(
                "Failed to send balance message: no message ID returned",
                source=self.client.cu_url,
            )

        self.message_id = message_id
        logger.info(f"Sent Balances message {message_id} to {process_id}")
        return freeze(await self.client.get_result(message_id, process_id))


class FileBaselineSource:
    """Baseline loaded from a JSON object file captured earlier."""

    def __init__(self, path: Union[str, Path]):
        self.path = Path(path)
        self.description = f"file {self.path}"

    async def fetch(self, process_id: str) -> BalanceMap:
        if not self.path.exists():
            raise BaselineFetchError(f"Balances file not found: {self.path}", source=str(self.path))

        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as e:
            raise BaselineFetchError(
                f"Failed to fetch balances from file {self.path}: {e}",
                source=str(self.path),
                cause=e,
            ) from e

        if not isinstance(data, dict):
            raise BaselineFetchError(
                f"Invalid balance data format in file {self.path}: expected object",
                source=str(self.path),
            )

        logger.info(f"Loaded {len(data)} balances from {self.path}")
        return freeze(data)
