"""
reconciliation/comparator.py - Baseline vs Counterpart Comparator

Turns per-address balance pairs into BalanceComparison records and
aggregates them into a ComparisonReport. Pure apart from the report
timestamp.
"""

import logging
from datetime import datetime
from decimal import ROUND_HALF_UP, Decimal
from typing import Iterable, List, Optional

from reconciliation.balance import balance_difference, normalize_balance, total_absolute
from reconciliation.models import (
    BalanceComparison,
    BalanceMap,
    ComparisonOutcome,
    ComparisonReport,
    utc_now,
)

logger = logging.getLogger(__name__)

_HUNDREDTHS = Decimal("0.01")


def accuracy_percentage(matching: int, total: int) -> float:
    """matching / total as a percentage, ties rounded up to 2 decimals; 0.0 for an empty run."""
    if total <= 0:
        return 0.0
    percentage = Decimal(matching * 100) / Decimal(total)
    return float(percentage.quantize(_HUNDREDTHS, rounding=ROUND_HALF_UP))


class BalanceComparator:
    """Compares baseline balances with counterpart balances."""

    def compare_balances(
        self,
        address: str,
        baseline_balance: Optional[str],
        counterpart_balance: Optional[str],
    ) -> BalanceComparison:
        baseline = normalize_balance(baseline_balance)
        counterpart = normalize_balance(counterpart_balance)

        if baseline == counterpart:
            return BalanceComparison(
                address=address,
                baseline_balance=baseline,
                counterpart_balance=counterpart,
                match=True,
                outcome=ComparisonOutcome.MATCH,
            )

        return BalanceComparison(
            address=address,
            baseline_balance=baseline,
            counterpart_balance=counterpart,
            match=False,
            difference=balance_difference(baseline, counterpart),
            outcome=ComparisonOutcome.MISMATCH,
        )

    def unknown_comparison(self, address: str, baseline_balance: Optional[str]) -> BalanceComparison:
        """Record for an address whose counterpart balance could not be fetched."""
        return BalanceComparison(
            address=address,
            baseline_balance=normalize_balance(baseline_balance),
            counterpart_balance=None,
            match=False,
            outcome=ComparisonOutcome.UNKNOWN,
        )

    def generate_report(
        self,
        comparisons: Iterable[BalanceComparison],
        process_id: str,
        now: Optional[datetime] = None,
    ) -> ComparisonReport:
        """
        Aggregate comparisons into a report.

        UNKNOWN outcomes are listed separately and are not part of
        total_addresses, so matching + mismatching always equals the total.
        """
        comparisons = list(comparisons)
        matches = tuple(c for c in comparisons if c.outcome == ComparisonOutcome.MATCH)
        mismatches = tuple(c for c in comparisons if c.outcome == ComparisonOutcome.MISMATCH)
        unknowns = tuple(c for c in comparisons if c.outcome == ComparisonOutcome.UNKNOWN)

        total = len(matches) + len(mismatches)
        report = ComparisonReport(
            process_id=process_id,
            total_addresses=total,
            matching_count=len(matches),
            mismatch_count=len(mismatches),
            accuracy_percentage=accuracy_percentage(len(matches), total),
            total_discrepancy=total_absolute(c.difference for c in mismatches),
            mismatches=mismatches,
            matches=matches,
            unknowns=unknowns,
            timestamp=now or utc_now(),
        )

        if report.mismatch_count:
            logger.warning(
                f"{report.mismatch_count}/{report.total_addresses} balances differ "
                f"(total discrepancy {report.total_discrepancy})"
            )
        if report.unknown_count:
            logger.warning(f"{report.unknown_count} balances could not be fetched")
        return report

    def extract_addresses(self, balances: BalanceMap) -> List[str]:
        return list(balances.keys())
