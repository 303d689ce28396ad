"""
reconciliation/two_source.py - Two-Source Address-Union Comparator

Compares two independently fetched balance maps directly. The address
universe is the union of both key sets; addresses present in only one
source are coverage gaps, reported on their own and kept out of the
accuracy denominator.
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Iterable, List, Optional, Tuple

from reconciliation.balance import balance_difference, normalize_balance, total_absolute
from reconciliation.comparator import accuracy_percentage
from reconciliation.models import BalanceMap, TwoSourceComparison, TwoSourceReport, utc_now

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AddressClassification:
    """Partition of the address union of two balance maps."""
    common: Tuple[str, ...]
    only_in_a: Tuple[str, ...]
    only_in_b: Tuple[str, ...]

    @property
    def union(self) -> Tuple[str, ...]:
        return tuple(sorted(self.common + self.only_in_a + self.only_in_b))


def classify_addresses(balances_a: BalanceMap, balances_b: BalanceMap) -> AddressClassification:
    keys_a = set(balances_a.keys())
    keys_b = set(balances_b.keys())
    return AddressClassification(
        common=tuple(sorted(keys_a & keys_b)),
        only_in_a=tuple(sorted(keys_a - keys_b)),
        only_in_b=tuple(sorted(keys_b - keys_a)),
    )


class TwoSourceComparator:
    """Compares the balances two sources report for the same process."""

    def compare_balances(
        self,
        balances_a: BalanceMap,
        balances_b: BalanceMap,
    ) -> List[TwoSourceComparison]:
        classification = classify_addresses(balances_a, balances_b)
        results: List[TwoSourceComparison] = []

        for address in classification.common:
            a = normalize_balance(balances_a[address])
            b = normalize_balance(balances_b[address])
            match = a == b
            results.append(TwoSourceComparison(
                address=address,
                balance_a=a,
                balance_b=b,
                match=match,
                difference=None if match else balance_difference(a, b),
            ))

        for address in classification.only_in_a:
            results.append(TwoSourceComparison(
                address=address,
                balance_a=normalize_balance(balances_a[address]),
                balance_b=None,
                match=False,
                only_in_a=True,
            ))

        for address in classification.only_in_b:
            results.append(TwoSourceComparison(
                address=address,
                balance_a=None,
                balance_b=normalize_balance(balances_b[address]),
                match=False,
                only_in_b=True,
            ))

        return results

    def generate_report(
        self,
        comparisons: Iterable[TwoSourceComparison],
        process_id: str,
        message_id: str,
        source_a_url: str,
        source_b_url: str,
        now: Optional[datetime] = None,
    ) -> TwoSourceReport:
        comparisons = list(comparisons)
        unique_to_a = tuple(c for c in comparisons if c.only_in_a)
        unique_to_b = tuple(c for c in comparisons if c.only_in_b)
        common = [c for c in comparisons if c.is_common]
        matches = tuple(c for c in common if c.match)
        mismatches = tuple(c for c in common if not c.match)

        report = TwoSourceReport(
            process_id=process_id,
            message_id=message_id,
            source_a_url=source_a_url,
            source_b_url=source_b_url,
            total_addresses_a=sum(1 for c in comparisons if c.balance_a is not None),
            total_addresses_b=sum(1 for c in comparisons if c.balance_b is not None),
            common_addresses=len(common),
            only_in_a=len(unique_to_a),
            only_in_b=len(unique_to_b),
            matching_count=len(matches),
            mismatch_count=len(mismatches),
            accuracy_percentage=accuracy_percentage(len(matches), len(common)),
            total_discrepancy=total_absolute(c.difference for c in mismatches),
            mismatches=mismatches,
            matches=matches,
            unique_to_a=unique_to_a,
            unique_to_b=unique_to_b,
            timestamp=now or utc_now(),
        )

        if report.has_discrepancies:
            logger.warning(
                f"Sources disagree: {report.mismatch_count} mismatches, "
                f"{report.only_in_a} only in A, {report.only_in_b} only in B"
            )
        return report
