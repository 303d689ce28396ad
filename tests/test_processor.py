import asyncio
from unittest.mock import AsyncMock

import pytest

from core.exceptions import BaselineFetchError, NotFoundError, ValidationError
from reconciliation.models import ComparisonOutcome, FailurePolicy
from reconciliation.processor import BalanceProcessor, TwoSourceProcessor


class _StaticBaseline:
    description = "static"

    def __init__(self, balances):
        self.balances = balances

    async def fetch(self, process_id):
        return self.balances


class _FailingBaseline:
    description = "broken"

    async def fetch(self, process_id):
        raise ConnectionError("CU unreachable")


class _Counterpart:
    """Counterpart client answering from a dict; exceptions in it are raised."""

    def __init__(self, answers, delay=0.0):
        self.answers = answers
        self.delay = delay
        self.calls = []
        self.closed = False

    async def get_balance(self, address):
        self.calls.append(address)
        await asyncio.sleep(self.delay)
        answer = self.answers[address]
        if isinstance(answer, Exception):
            raise answer
        return answer

    async def aclose(self):
        self.closed = True


def _processor(config, counterpart, **kwargs):
    return BalanceProcessor(config, counterpart_factory=lambda pid: counterpart, **kwargs)


@pytest.mark.asyncio
async def test_one_match_one_mismatch(config, process_id):
    counterpart = _Counterpart({"addr1": "1000", "addr2": "1500"})
    report = await _processor(config, counterpart).run(
        process_id, _StaticBaseline({"addr1": "1000", "addr2": "2000"})
    )

    assert report.matching_count == 1
    assert report.mismatch_count == 1
    assert report.accuracy_percentage == 50.0
    assert report.total_discrepancy == "500"
    assert counterpart.closed is True


@pytest.mark.asyncio
async def test_zero_baseline_matches_failed_lookup(config, process_id):
    counterpart = _Counterpart({"addrX": NotFoundError()})
    report = await _processor(config, counterpart).run(process_id, _StaticBaseline({"addrX": "0"}))

    assert report.matching_count == 1
    assert report.matches[0].counterpart_balance == "0"
    assert report.has_discrepancies is False


@pytest.mark.asyncio
async def test_failed_fetch_degrades_to_zero_by_default(config, process_id):
    counterpart = _Counterpart({"a": RuntimeError("boom"), "b": "5"})
    processor = _processor(config, counterpart)
    comparisons = await processor.process(process_id, _StaticBaseline({"a": "40", "b": "5"}))

    assert len(comparisons) == 2
    assert comparisons[0].counterpart_balance == "0"
    assert comparisons[0].difference == "40"
    assert comparisons[1].match is True
    assert processor.last_scheduler.metrics.failed == 1


@pytest.mark.asyncio
async def test_unknown_policy_keeps_failures_apart(config, process_id):
    counterpart = _Counterpart({"a": RuntimeError("boom"), "b": "5"})
    report = await _processor(config, counterpart, failure_policy=FailurePolicy.UNKNOWN).run(
        process_id, _StaticBaseline({"a": "40", "b": "5"})
    )

    assert report.total_addresses == 1
    assert report.matching_count == 1
    assert report.unknown_count == 1
    assert report.unknowns[0].outcome == ComparisonOutcome.UNKNOWN
    assert report.has_discrepancies is True


@pytest.mark.asyncio
async def test_every_address_appears_once_in_input_order(config, process_id):
    baseline = {f"addr{i}": str(i) for i in range(25)}
    counterpart = _Counterpart(dict(baseline), delay=0.001)
    comparisons = await _processor(config, counterpart).process(process_id, _StaticBaseline(baseline))

    assert [c.address for c in comparisons] == list(baseline)
    assert all(c.match for c in comparisons)
    assert sorted(counterpart.calls) == sorted(baseline)


@pytest.mark.asyncio
async def test_concurrency_setting_bounds_in_flight_fetches(config, process_id):
    baseline = {f"addr{i}": "1" for i in range(30)}
    processor = _processor(config, _Counterpart(dict(baseline), delay=0.005))
    await processor.process(process_id, _StaticBaseline(baseline))

    assert processor.last_scheduler.metrics.max_in_flight <= config.concurrency


@pytest.mark.asyncio
async def test_max_addresses_limits_the_run(config, process_id):
    limited = config.with_overrides(max_addresses=2)
    counterpart = _Counterpart({"a": "1", "b": "2", "c": "3"})
    comparisons = await _processor(limited, counterpart).process(
        process_id, _StaticBaseline({"a": "1", "b": "2", "c": "3"})
    )

    assert [c.address for c in comparisons] == ["a", "b"]
    assert "c" not in counterpart.calls


@pytest.mark.asyncio
async def test_empty_baseline_makes_no_counterpart_calls(config, process_id, observer):
    counterpart = _Counterpart({})
    report = await _processor(config, counterpart, observer=observer).run(process_id, _StaticBaseline({}))

    assert report.total_addresses == 0
    assert report.accuracy_percentage == 0.0
    assert counterpart.calls == []
    assert observer.total is None


@pytest.mark.asyncio
async def test_progress_reaches_address_count(config, process_id, observer):
    baseline = {"a": "1", "b": "2", "c": "3"}
    await _processor(config, _Counterpart(dict(baseline)), observer=observer).run(
        process_id, _StaticBaseline(baseline)
    )

    assert observer.total == 3
    assert observer.updates[-1] == 3


@pytest.mark.asyncio
async def test_invalid_process_id_fails_before_any_fetch(config):
    counterpart = _Counterpart({})
    baseline = _StaticBaseline({"a": "1"})
    baseline.fetch = AsyncMock()

    with pytest.raises(ValidationError):
        await _processor(config, counterpart).run("not-a-process-id", baseline)
    baseline.fetch.assert_not_called()


@pytest.mark.asyncio
async def test_baseline_failure_aborts_the_run(config, process_id):
    counterpart = _Counterpart({})
    with pytest.raises(BaselineFetchError) as exc_info:
        await _processor(config, counterpart).run(process_id, _FailingBaseline())

    assert "CU unreachable" in str(exc_info.value)
    assert counterpart.calls == []


# ============================================================================
# Two-source
# ============================================================================

def _table_client(url, balances):
    client = AsyncMock()
    client.cu_url = url
    client.get_result = AsyncMock(return_value=balances)
    return client


@pytest.mark.asyncio
async def test_two_source_run(process_id, message_id):
    client_a = _table_client("https://cu-a", {"a": "5", "b": "10"})
    client_b = _table_client("https://cu-b", {"b": "10", "c": "7"})
    report = await TwoSourceProcessor(client_a, client_b).run(process_id, message_id)

    assert report.only_in_a == 1
    assert report.only_in_b == 1
    assert report.common_addresses == 1
    assert report.accuracy_percentage == 100.0
    assert report.source_a_url == "https://cu-a"
    assert report.message_id == message_id
    client_a.get_result.assert_awaited_once_with(message_id, process_id)
    client_b.get_result.assert_awaited_once_with(message_id, process_id)


@pytest.mark.asyncio
async def test_two_source_requires_valid_message_id(process_id):
    client = _table_client("https://cu", {})
    with pytest.raises(ValidationError):
        await TwoSourceProcessor(client, client).run(process_id, "bad")
    client.get_result.assert_not_called()


@pytest.mark.asyncio
async def test_two_source_fails_when_either_side_fails(process_id, message_id):
    client_a = _table_client("https://cu-a", {"a": "1"})
    client_b = _table_client("https://cu-b", {})
    client_b.get_result = AsyncMock(side_effect=BaselineFetchError("CU B down"))

    with pytest.raises(BaselineFetchError):
        await TwoSourceProcessor(client_a, client_b).run(process_id, message_id)


@pytest.mark.asyncio
async def test_two_source_cancels_the_other_fetch_on_failure(process_id, message_id):
    a_started = asyncio.Event()
    a_cancelled = asyncio.Event()

    async def slow_result(message, process):
        a_started.set()
        try:
            await asyncio.sleep(10)
        except asyncio.CancelledError:
            a_cancelled.set()
            raise
        return {}

    async def failing_result(message, process):
        await a_started.wait()
        raise BaselineFetchError("CU B down")

    client_a = _table_client("https://cu-a", {})
    client_a.get_result = slow_result
    client_b = _table_client("https://cu-b", {})
    client_b.get_result = failing_result

    with pytest.raises(BaselineFetchError):
        await TwoSourceProcessor(client_a, client_b).run(process_id, message_id)
    assert a_cancelled.is_set()
