"""
core/scheduler.py - Bounded Fetch Scheduler

Runs one unit of work per address with a hard ceiling on how many are in
flight at once, in the spirit of a bulkhead: failures stay inside their
own slot and never abort the other addresses or the run.

Features:
- Concurrency ceiling enforced with an asyncio.Semaphore
- Per-address fallback result when a unit fails
- Monotonic completed counter fed to an optional progress observer
- Metrics (in flight, peak in flight, completed, failed)

Example:
    scheduler = BoundedFetchScheduler(concurrency=15)
    results = await scheduler.run(addresses, fetch_and_compare, fallback)
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, Dict, Generic, List, Optional, Protocol, Sequence, TypeVar

from core.validation import validate_concurrency

logger = logging.getLogger(__name__)

T = TypeVar('T')


class ProgressObserver(Protocol):
    """Advisory progress sink. Implementations must tolerate any call order."""

    def start(self, total: int) -> None: ...

    def update(self, completed: int) -> None: ...

    def stop(self) -> None: ...


class NullProgressObserver:
    """Observer used when the caller does not want progress."""

    def start(self, total: int) -> None:
        pass

    def update(self, completed: int) -> None:
        pass

    def stop(self) -> None:
        pass


@dataclass
class SchedulerMetrics:
    """Counters for a single scheduler run."""
    total: int = 0
    completed: int = 0
    failed: int = 0
    in_flight: int = 0
    max_in_flight: int = 0


@dataclass(frozen=True)
class ScheduledResult(Generic[T]):
    """Result of one unit, tied to the address it was computed for."""
    address: str
    value: T
    error: Optional[BaseException] = None

    @property
    def failed(self) -> bool:
        return self.error is not None


class BoundedFetchScheduler:
    """
    Execute per-address async work under a global concurrency ceiling.

    All updates to the shared counters happen on the event loop between
    awaits, so no lock is needed.
    """

    def __init__(self, concurrency: int, observer: Optional[ProgressObserver] = None):
        self.concurrency = validate_concurrency(concurrency)
        self.observer: ProgressObserver = observer or NullProgressObserver()
        self.metrics = SchedulerMetrics()

    async def run(
        self,
        addresses: Sequence[str],
        unit: Callable[[str], Awaitable[T]],
        fallback: Callable[[str, BaseException], T],
    ) -> List[ScheduledResult[T]]:
        """
        Run ``unit`` once per address and wait for all of them.

        Args:
            addresses: Addresses to process (duplicates are processed once each)
            unit: Async fetch-and-compare for one address
            fallback: Builds the degraded result when ``unit`` raises

        Returns:
            One ScheduledResult per input address, in input order
        """
        self.metrics = SchedulerMetrics(total=len(addresses))
        semaphore = asyncio.Semaphore(self.concurrency)

        self._notify("start", len(addresses))
        try:
            tasks = [
                self._run_one(semaphore, address, unit, fallback)
                for address in addresses
            ]
            results = await asyncio.gather(*tasks)
        finally:
            self._notify("stop")

        if self.metrics.failed:
            logger.warning(
                f"{self.metrics.failed}/{self.metrics.total} fetches failed and used fallback values"
            )
        logger.debug(
            f"Scheduler finished {self.metrics.completed} units "
            f"(peak concurrency {self.metrics.max_in_flight}/{self.concurrency})"
        )
        return list(results)

    async def _run_one(
        self,
        semaphore: asyncio.Semaphore,
        address: str,
        unit: Callable[[str], Awaitable[T]],
        fallback: Callable[[str, BaseException], T],
    ) -> ScheduledResult[T]:
        async with semaphore:
            self.metrics.in_flight += 1
            if self.metrics.in_flight > self.metrics.max_in_flight:
                self.metrics.max_in_flight = self.metrics.in_flight
            try:
                value = await unit(address)
                return ScheduledResult(address=address, value=value)
            except Exception as e:
                self.metrics.failed += 1
                logger.debug(f"Fetch for {address} failed: {e}")
                return ScheduledResult(address=address, value=fallback(address, e), error=e)
            finally:
                self.metrics.in_flight -= 1
                self.metrics.completed += 1
                self._notify("update", self.metrics.completed)

    def _notify(self, event: str, *args: int):
        # Progress is advisory; observer failures never reach the run
        try:
            getattr(self.observer, event)(*args)
        except Exception as e:
            logger.debug(f"Progress observer {event} error: {e}")

    def get_metrics(self) -> Dict[str, int]:
        return {
            'concurrency': self.concurrency,
            'total': self.metrics.total,
            'completed': self.metrics.completed,
            'failed': self.metrics.failed,
            'in_flight': self.metrics.in_flight,
            'max_in_flight': self.metrics.max_in_flight,
        }
