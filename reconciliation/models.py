"""
reconciliation/models.py - Comparison and Report Records

Immutable records produced by the comparators. Every record serializes to
plain JSON types through ``to_dict()``; balances stay strings.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Dict, Mapping, Optional, Tuple

# address -> textual balance
BalanceMap = Mapping[str, str]


class ComparisonOutcome(Enum):
    """How a single address reconciled."""
    MATCH = "match"
    MISMATCH = "mismatch"
    UNKNOWN = "unknown"          # Counterpart fetch failed, value not known
    ONLY_IN_A = "only_in_a"
    ONLY_IN_B = "only_in_b"


class FailurePolicy(Enum):
    """What a failed counterpart fetch turns into."""
    ZERO = "zero"          # Compare against "0"; failures surface as discrepancies
    UNKNOWN = "unknown"    # Record an UNKNOWN outcome, excluded from accuracy


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def _iso(ts: datetime) -> str:
    return ts.isoformat().replace("+00:00", "Z")


@dataclass(frozen=True)
class BalanceComparison:
    """One reconciled address: baseline vs counterpart."""
    address: str
    baseline_balance: str
    counterpart_balance: Optional[str]
    match: bool
    difference: Optional[str] = None
    outcome: ComparisonOutcome = ComparisonOutcome.MATCH

    def to_dict(self) -> dict:
        payload = {
            'address': self.address,
            'baseline_balance': self.baseline_balance,
            'counterpart_balance': self.counterpart_balance,
            'match': self.match,
            'outcome': self.outcome.value,
        }
        if self.difference is not None:
            payload['difference'] = self.difference
        return payload


@dataclass(frozen=True)
class ComparisonReport:
    """Summary of a baseline vs counterpart run."""
    process_id: str
    total_addresses: int
    matching_count: int
    mismatch_count: int
    accuracy_percentage: float
    total_discrepancy: str
    mismatches: Tuple[BalanceComparison, ...]
    matches: Tuple[BalanceComparison, ...]
    unknowns: Tuple[BalanceComparison, ...] = ()
    timestamp: datetime = field(default_factory=utc_now)

    @property
    def unknown_count(self) -> int:
        return len(self.unknowns)

    @property
    def has_discrepancies(self) -> bool:
        return self.mismatch_count > 0 or self.unknown_count > 0

    def to_dict(self) -> dict:
        return {
            'process_id': self.process_id,
            'timestamp': _iso(self.timestamp),
            'total_addresses': self.total_addresses,
            'matching_count': self.matching_count,
            'mismatch_count': self.mismatch_count,
            'unknown_count': self.unknown_count,
            'accuracy_percentage': self.accuracy_percentage,
            'total_discrepancy': self.total_discrepancy,
            'mismatches': [c.to_dict() for c in self.mismatches],
            'matches': [c.to_dict() for c in self.matches],
            'unknowns': [c.to_dict() for c in self.unknowns],
        }


@dataclass(frozen=True)
class TwoSourceComparison:
    """
    One address from the union of two sources.

    Balances are canonical when present and None when the address is missing
    from that source. When only one side has the address, ``match`` is False
    and no difference is computed.
    """
    address: str
    balance_a: Optional[str]
    balance_b: Optional[str]
    match: bool
    only_in_a: bool = False
    only_in_b: bool = False
    difference: Optional[str] = None

    @property
    def is_common(self) -> bool:
        return not self.only_in_a and not self.only_in_b

    @property
    def outcome(self) -> ComparisonOutcome:
        if self.only_in_a:
            return ComparisonOutcome.ONLY_IN_A
        if self.only_in_b:
            return ComparisonOutcome.ONLY_IN_B
        return ComparisonOutcome.MATCH if self.match else ComparisonOutcome.MISMATCH

    def to_dict(self) -> dict:
        return {
            'address': self.address,
            'balance_a': self.balance_a,
            'balance_b': self.balance_b,
            'match': self.match,
            'only_in_a': self.only_in_a,
            'only_in_b': self.only_in_b,
            'difference': self.difference,
            'outcome': self.outcome.value,
        }


@dataclass(frozen=True)
class TwoSourceReport:
    """Summary of a direct source A vs source B comparison."""
    process_id: str
    message_id: str
    source_a_url: str
    source_b_url: str
    total_addresses_a: int
    total_addresses_b: int
    common_addresses: int
    only_in_a: int
    only_in_b: int
    matching_count: int
    mismatch_count: int
    accuracy_percentage: float
    total_discrepancy: str
    mismatches: Tuple[TwoSourceComparison, ...]
    matches: Tuple[TwoSourceComparison, ...]
    unique_to_a: Tuple[TwoSourceComparison, ...]
    unique_to_b: Tuple[TwoSourceComparison, ...]
    timestamp: datetime = field(default_factory=utc_now)

    @property
    def has_discrepancies(self) -> bool:
        return self.mismatch_count > 0 or self.only_in_a > 0 or self.only_in_b > 0

    def to_dict(self) -> Dict[str, object]:
        return {
            'process_id': self.process_id,
            'message_id': self.message_id,
            'source_a_url': self.source_a_url,
            'source_b_url': self.source_b_url,
            'timestamp': _iso(self.timestamp),
            'total_addresses_a': self.total_addresses_a,
            'total_addresses_b': self.total_addresses_b,
            'common_addresses': self.common_addresses,
            'only_in_a': self.only_in_a,
            'only_in_b': self.only_in_b,
            'matching_count': self.matching_count,
            'mismatch_count': self.mismatch_count,
            'accuracy_percentage': self.accuracy_percentage,
            'total_discrepancy': self.total_discrepancy,
            'mismatches': [c.to_dict() for c in self.mismatches],
            'matches': [c.to_dict() for c in self.matches],
            'unique_to_a': [c.to_dict() for c in self.unique_to_a],
            'unique_to_b': [c.to_dict() for c in self.unique_to_b],
        }
