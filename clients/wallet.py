"""
clients/wallet.py - Wallet (JWK) Loading

Reads an Arweave JWK wallet from disk and checks it has the public RSA
fields. Key material is never echoed into error messages.
"""

import json
import logging
from pathlib import Path
from typing import Any, Dict, Union

from core.exceptions import WalletError

logger = logging.getLogger(__name__)

REQUIRED_JWK_FIELDS = ("kty", "n", "e")


def load_wallet(path: Union[str, Path]) -> Dict[str, Any]:
    path = Path(path)
    if not str(path).strip():
        raise WalletError("Wallet path cannot be empty", path=str(path))
    if not path.exists():
        raise WalletError(f"Wallet file not found: {path}", path=str(path))

    try:
        wallet = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as e:
        raise WalletError(f"Invalid wallet file format: {path}", path=str(path), cause=e) from e

    if not isinstance(wallet, dict) or any(not wallet.get(f) for f in REQUIRED_JWK_FIELDS):
        raise WalletError(
            "Invalid JWK format: missing required fields (kty, n, e)", path=str(path)
        )

    logger.debug(f"Loaded wallet from {path}")
    return wallet
