"""
reconciliation/processor.py - Reconciliation Processors

Drives a full run:

    baseline map -> address list -> bounded counterpart fetches -> comparisons -> report

A failed counterpart fetch never aborts the run. Depending on the failure
policy it is compared against "0" (and shows up as a discrepancy equal to
the baseline balance) or recorded as an UNKNOWN outcome.

Usage:
    processor = BalanceProcessor(config)
    report = await processor.run(process_id, DryRunBaselineSource(cu_client))
"""

import asyncio
import logging
import time
from typing import Any, Callable, List, Optional, Protocol, Tuple

from clients.hyperbeam import HyperbeamClient
from config import ReconcilerConfig
from core.exceptions import BaselineFetchError, ReconcilerError
from core.scheduler import BoundedFetchScheduler, ProgressObserver
from core.validation import validate_message_id, validate_process_id
from reconciliation.balance import ZERO
from reconciliation.baseline import BalanceTableClient, BaselineSource
from reconciliation.comparator import BalanceComparator
from reconciliation.models import (
    BalanceComparison,
    BalanceMap,
    ComparisonReport,
    FailurePolicy,
    TwoSourceComparison,
    TwoSourceReport,
)
from reconciliation.two_source import TwoSourceComparator

logger = logging.getLogger(__name__)


class CounterpartClient(Protocol):
    async def get_balance(self, address: str) -> str: ...


CounterpartFactory = Callable[[str], CounterpartClient]


class BalanceProcessor:
    """
    Reconciles a baseline balance map against per-address counterpart lookups.

    Features:
    - Pluggable baseline source (dry run, message result, wallet message, file)
    - Bounded concurrency for counterpart fetches
    - Explicit failure policy for fetches that exhaust their retries
    - Optional cap on the number of addresses checked
    """

    def __init__(
        self,
        config: ReconcilerConfig,
        counterpart_factory: Optional[CounterpartFactory] = None,
        comparator: Optional[BalanceComparator] = None,
        failure_policy: FailurePolicy = FailurePolicy.ZERO,
        observer: Optional[ProgressObserver] = None,
    ):
        self.config = config
        self.counterpart_factory = counterpart_factory or (
            lambda process_id: HyperbeamClient(config, process_id)
        )
        self.comparator = comparator or BalanceComparator()
        self.failure_policy = failure_policy
        self.observer = observer
        self.last_scheduler: Optional[BoundedFetchScheduler] = None

    async def process(self, process_id: str, baseline: BaselineSource) -> List[BalanceComparison]:
        """
        Compare every baseline address with its counterpart balance.

        Raises:
            BaselineFetchError: baseline map could not be obtained
        """
        baseline_map = await self._fetch_baseline(process_id, baseline)
        addresses = self.comparator.extract_addresses(baseline_map)
        if not addresses:
            logger.warning(f"No balances found for process {process_id}")
            return []

        limited = addresses[:self.config.max_addresses] if self.config.max_addresses else addresses
        logger.info(f"Processing {len(limited)} of {len(addresses)} total addresses")

        counterpart = self.counterpart_factory(process_id)
        scheduler = BoundedFetchScheduler(self.config.concurrency, self.observer)
        self.last_scheduler = scheduler

        async def fetch_and_compare(address: str) -> BalanceComparison:
            counterpart_balance = await counterpart.get_balance(address)
            return self.comparator.compare_balances(
                address, baseline_map.get(address), counterpart_balance
            )

        def on_failure(address: str, error: BaseException) -> BalanceComparison:
            logger.debug(f"Counterpart fetch for {address} failed, policy={self.failure_policy.value}: {error}")
            if self.failure_policy == FailurePolicy.UNKNOWN:
                return self.comparator.unknown_comparison(address, baseline_map.get(address))
            return self.comparator.compare_balances(address, baseline_map.get(address), ZERO)

        start = time.monotonic()
        try:
            results = await scheduler.run(limited, fetch_and_compare, on_failure)
        finally:
            await _close(counterpart)

        elapsed = time.monotonic() - start
        logger.info(
            f"Fetched {len(results)} counterpart balances in {elapsed:.1f}s "
            f"({scheduler.metrics.failed} failed)"
        )
        return [r.value for r in results]

    async def validate_and_process(
        self,
        process_id: str,
        baseline: BaselineSource,
    ) -> List[BalanceComparison]:
        validate_process_id(process_id)
        return await self.process(process_id, baseline)

    async def run(self, process_id: str, baseline: BaselineSource) -> ComparisonReport:
        comparisons = await self.validate_and_process(process_id, baseline)
        return self.comparator.generate_report(comparisons, process_id)

    async def _fetch_baseline(self, process_id: str, baseline: BaselineSource) -> BalanceMap:
        logger.info(f"Fetching baseline balances ({baseline.description})")
        try:
            return await baseline.fetch(process_id)
        except ReconcilerError:
            raise
        except Exception as e:
            raise BaselineFetchError(
                f"Failed to fetch baseline balances: {e}", source=baseline.description, cause=e
            ) from e


class TwoSourceProcessor:
    """
    Reads the same message result from two CUs and compares them directly.

    Both fetches run concurrently; either one failing cancels the other and aborts
    the run since there is nothing to compare against.
    """

    def __init__(
        self,
        client_a: BalanceTableClient,
        client_b: BalanceTableClient,
        comparator: Optional[TwoSourceComparator] = None,
    ):
        self.client_a = client_a
        self.client_b = client_b
        self.comparator = comparator or TwoSourceComparator()

    async def fetch_both(self, process_id: str, message_id: str) -> Tuple[dict, dict]:
        tasks = [
            asyncio.ensure_future(self.client_a.get_result(message_id, process_id)),
            asyncio.ensure_future(self.client_b.get_result(message_id, process_id)),
        ]
        try:
            balances_a, balances_b = await asyncio.gather(*tasks)
        except BaseException:
            # the sibling request must not outlive its client
            for task in tasks:
                task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)
            raise
        logger.info(f"CU A returned {len(balances_a)} addresses")
        logger.info(f"CU B returned {len(balances_b)} addresses")
        return balances_a, balances_b

    async def compare(self, process_id: str, message_id: str) -> List[TwoSourceComparison]:
        balances_a, balances_b = await self.fetch_both(process_id, message_id)
        return self.comparator.compare_balances(balances_a, balances_b)

    async def run(self, process_id: str, message_id: str) -> TwoSourceReport:
        validate_process_id(process_id)
        validate_message_id(message_id)
        comparisons = await self.compare(process_id, message_id)
        return self.comparator.generate_report(
            comparisons,
            process_id,
            message_id,
            self.client_a.cu_url,
            self.client_b.cu_url,
        )


async def _close(client: Any) -> None:
    aclose = getattr(client, "aclose", None)
    if aclose is None:
        return
    try:
        await aclose()
    except Exception as e:
        logger.debug(f"Error closing counterpart client: {e}")
