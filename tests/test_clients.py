import json

import httpx
import pytest

from clients.compute_unit import BALANCES_TAGS, ComputeUnitClient, parse_balances_result
from clients.hyperbeam import HyperbeamClient
from clients.wallet import load_wallet
from core.exceptions import (
    BaselineFetchError,
    EmptyResponseError,
    NetworkError,
    SourceHTTPError,
    WalletError,
)


class _Handler:
    """MockTransport handler that replays a list of responses (or exceptions)."""

    def __init__(self, *responses):
        self.responses = list(responses)
        self.requests = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        item = self.responses[min(len(self.requests), len(self.responses)) - 1]
        if isinstance(item, Exception):
            raise item
        return item


def _http(base_url, handler):
    return httpx.AsyncClient(base_url=base_url, transport=httpx.MockTransport(handler))


def _cu_payload(balances):
    return {"Messages": [{"Data": json.dumps(balances)}]}


# ============================================================================
# Hyperbeam
# ============================================================================

@pytest.mark.asyncio
async def test_hyperbeam_returns_trimmed_body(config, process_id, no_sleep):
    handler = _Handler(httpx.Response(200, text="12345\n"))
    async with _http(config.hyperbeam_base_url, handler) as http:
        client = HyperbeamClient(config, process_id, http_client=http, sleep=no_sleep)
        assert await client.get_balance("addr1") == "12345"

    assert handler.requests[0].method == "GET"
    assert handler.requests[0].url.path == f"/{process_id}~process@1.0/compute/balances/addr1"


@pytest.mark.asyncio
async def test_hyperbeam_404_is_zero_without_retry(config, process_id, no_sleep):
    handler = _Handler(httpx.Response(404, text="not found"))
    async with _http(config.hyperbeam_base_url, handler) as http:
        client = HyperbeamClient(config, process_id, http_client=http, sleep=no_sleep)
        assert await client.get_balance("addr1") == "0"

    assert len(handler.requests) == 1
    assert no_sleep.calls == []


@pytest.mark.asyncio
async def test_hyperbeam_rate_limit_is_retried(config, process_id, no_sleep):
    handler = _Handler(
        httpx.Response(429),
        httpx.Response(429),
        httpx.Response(200, text="77"),
    )
    async with _http(config.hyperbeam_base_url, handler) as http:
        client = HyperbeamClient(config, process_id, http_client=http, sleep=no_sleep)
        assert await client.get_balance("addr1") == "77"

    assert len(handler.requests) == 3
    assert len(no_sleep.calls) == 2


@pytest.mark.asyncio
async def test_hyperbeam_client_error_is_terminal(config, process_id, no_sleep):
    handler = _Handler(httpx.Response(400, text="bad request"))
    async with _http(config.hyperbeam_base_url, handler) as http:
        client = HyperbeamClient(config, process_id, http_client=http, sleep=no_sleep)
        with pytest.raises(SourceHTTPError) as exc_info:
            await client.get_balance("addr1")

    assert exc_info.value.status_code == 400
    assert len(handler.requests) == 1


@pytest.mark.asyncio
async def test_hyperbeam_server_errors_exhaust_retries(config, process_id, no_sleep):
    handler = _Handler(httpx.Response(503))
    async with _http(config.hyperbeam_base_url, handler) as http:
        client = HyperbeamClient(config, process_id, http_client=http, sleep=no_sleep)
        with pytest.raises(SourceHTTPError):
            await client.get_balance("addr1")

    assert len(handler.requests) == config.retry_attempts + 1


@pytest.mark.asyncio
async def test_hyperbeam_transport_errors_become_network_errors(config, process_id, no_sleep):
    handler = _Handler(httpx.ConnectTimeout("slow"))
    async with _http(config.hyperbeam_base_url, handler) as http:
        client = HyperbeamClient(config, process_id, http_client=http, sleep=no_sleep)
        with pytest.raises(NetworkError):
            await client.get_balance("addr1")

    assert len(handler.requests) == config.retry_attempts + 1


@pytest.mark.asyncio
async def test_hyperbeam_empty_body_is_an_error(config, process_id, no_sleep):
    handler = _Handler(httpx.Response(200, text="  "))
    async with _http(config.hyperbeam_base_url, handler) as http:
        client = HyperbeamClient(config, process_id, http_client=http, sleep=no_sleep)
        with pytest.raises(EmptyResponseError):
            await client.get_balance("addr1")


# ============================================================================
# Compute Unit
# ============================================================================

@pytest.mark.asyncio
async def test_dry_run_posts_balances_query(config, process_id, no_sleep):
    handler = _Handler(httpx.Response(200, json=_cu_payload({"a": "1", "b": 2})))
    async with _http(config.cu_url, handler) as http:
        client = ComputeUnitClient(config, http_client=http, sleep=no_sleep)
        balances = await client.dry_run_balances(process_id)

    assert balances == {"a": "1", "b": "2"}
    request = handler.requests[0]
    assert request.method == "POST"
    assert request.url.path == "/dry-run"
    assert request.url.params["process-id"] == process_id
    body = json.loads(request.content)
    assert body["Target"] == process_id
    assert body["Tags"] == BALANCES_TAGS


@pytest.mark.asyncio
async def test_dry_run_failure_is_wrapped(config, process_id, no_sleep):
    handler = _Handler(httpx.Response(200, json={"Messages": []}))
    async with _http(config.cu_url, handler) as http:
        client = ComputeUnitClient(config, http_client=http, sleep=no_sleep)
        with pytest.raises(BaselineFetchError) as exc_info:
            await client.dry_run_balances(process_id)

    assert str(exc_info.value).startswith("Failed to fetch balances from AO process")
    assert exc_info.value.source == config.cu_url


@pytest.mark.asyncio
async def test_get_result_retries_until_available(config, process_id, message_id, no_sleep):
    handler = _Handler(
        httpx.Response(200, json={"Messages": []}),
        httpx.Response(200, json=_cu_payload({"x": "10"})),
    )
    async with _http(config.cu_url_a, handler) as http:
        client = ComputeUnitClient(config, config.cu_url_a, http_client=http, sleep=no_sleep)
        balances = await client.get_result(message_id, process_id)

    assert balances == {"x": "10"}
    assert len(handler.requests) == 2
    assert handler.requests[0].url.path == f"/result/{message_id}"
    assert handler.requests[0].url.params["process-id"] == process_id


@pytest.mark.asyncio
async def test_get_result_gives_up_after_retries(config, process_id, message_id, no_sleep):
    handler = _Handler(httpx.Response(404))
    async with _http(config.cu_url, handler) as http:
        client = ComputeUnitClient(config, http_client=http, sleep=no_sleep)
        with pytest.raises(BaselineFetchError) as exc_info:
            await client.get_result(message_id, process_id)

    assert str(exc_info.value).startswith(f"Failed to get result from CU {config.cu_url}")
    assert len(handler.requests) == config.retry_attempts + 1


def test_parse_result_accepts_decoded_data():
    payload = {"Messages": [{"Data": {"a": 5}}, {"Data": "ignored"}]}
    assert parse_balances_result(payload, "cu") == {"a": "5"}


@pytest.mark.parametrize("payload", [
    [],
    {},
    {"Messages": [{}]},
    {"Messages": [{"Data": "not json"}]},
    {"Messages": [{"Data": "[1, 2]"}]},
])
def test_parse_result_rejects_unusable_payloads(payload):
    with pytest.raises(EmptyResponseError):
        parse_balances_result(payload, "cu")


# ============================================================================
# Wallet
# ============================================================================

def test_load_wallet_accepts_jwk(tmp_path):
    path = tmp_path / "wallet.json"
    path.write_text(json.dumps({"kty": "RSA", "n": "abc", "e": "AQAB", "d": "secret"}))
    assert load_wallet(path)["kty"] == "RSA"


def test_load_wallet_missing_file(tmp_path):
    with pytest.raises(WalletError) as exc_info:
        load_wallet(tmp_path / "nope.json")
    assert "Wallet file not found" in str(exc_info.value)


def test_load_wallet_rejects_incomplete_jwk(tmp_path):
    path = tmp_path / "wallet.json"
    path.write_text(json.dumps({"kty": "RSA", "n": "abc"}))
    with pytest.raises(WalletError) as exc_info:
        load_wallet(path)
    assert str(exc_info.value) == "Invalid JWK format: missing required fields (kty, n, e)"


def test_load_wallet_rejects_invalid_json(tmp_path):
    path = tmp_path / "wallet.json"
    path.write_text("{not json")
    with pytest.raises(WalletError) as exc_info:
        load_wallet(path)
    assert "Invalid wallet file format" in str(exc_info.value)
    assert "secret" not in str(exc_info.value)
