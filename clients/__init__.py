"""
clients - Data source clients

- compute_unit: CU dry-run and message-result balance tables
- hyperbeam: per-address balances from the Hyperbeam gateway
- wallet: JWK wallet loading
"""

from .compute_unit import ComputeUnitClient, parse_balances_result
from .hyperbeam import HyperbeamClient
from .wallet import load_wallet

__all__ = [
    'ComputeUnitClient',
    'parse_balances_result',
    'HyperbeamClient',
    'load_wallet',
]
