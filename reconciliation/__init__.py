"""
reconciliation - Balance Reconciliation Module

Checks that two independent sources agree on every account balance of a
process.
"""

from .balance import normalize_balance, balance_difference, balances_match
from .models import (
    BalanceComparison,
    ComparisonOutcome,
    ComparisonReport,
    FailurePolicy,
    TwoSourceComparison,
    TwoSourceReport,
)
from .comparator import BalanceComparator
from .two_source import TwoSourceComparator, classify_addresses
from .baseline import (
    DryRunBaselineSource,
    FileBaselineSource,
    MessageResultBaselineSource,
    WalletMessageBaselineSource,
)
from .processor import BalanceProcessor, TwoSourceProcessor

__all__ = [
    'normalize_balance',
    'balance_difference',
    'balances_match',
    'BalanceComparison',
    'ComparisonOutcome',
    'ComparisonReport',
    'FailurePolicy',
    'TwoSourceComparison',
    'TwoSourceReport',
    'BalanceComparator',
    'TwoSourceComparator',
    'classify_addresses',
    'DryRunBaselineSource',
    'FileBaselineSource',
    'MessageResultBaselineSource',
    'WalletMessageBaselineSource',
    'BalanceProcessor',
    'TwoSourceProcessor',
]
