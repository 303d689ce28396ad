"""
clients/http.py - Shared HTTP Layer

Single place where httpx responses and transport failures are mapped onto
the reconciler's error hierarchy, so the retry policy only ever has to
classify our own exceptions.
"""

import logging
from typing import Any, Optional

import httpx

from core.exceptions import NetworkError, NotFoundError, RateLimitError, SourceHTTPError

logger = logging.getLogger(__name__)

USER_AGENT = "balance-checker/1.0"


def build_client(base_url: str, timeout_seconds: float) -> httpx.AsyncClient:
    return httpx.AsyncClient(
        base_url=base_url,
        timeout=httpx.Timeout(timeout_seconds),
        headers={"User-Agent": USER_AGENT},
        follow_redirects=True,
    )


def raise_for_status(response: httpx.Response) -> None:
    """Raise the matching SourceHTTPError subclass for a 4xx/5xx response."""
    status = response.status_code
    if status < 400:
        return
    url = str(response.request.url) if response.request is not None else ""
    if status == 404:
        raise NotFoundError(f"Not found: {url}", url=url)
    if status == 429:
        raise RateLimitError("Rate limit exceeded", url=url)
    reason = response.reason_phrase or "error"
    raise SourceHTTPError(status, f"HTTP {status}: {reason}", url=url)


async def send(
    client: httpx.AsyncClient,
    method: str,
    url: str,
    *,
    params: Optional[dict] = None,
    json_body: Optional[Any] = None,
) -> httpx.Response:
    """Issue one request; transport failures become NetworkError."""
    try:
        response = await client.request(method, url, params=params, json=json_body)
    except httpx.TimeoutException as e:
        raise NetworkError(f"Request timeout: {method} {url}", url=url, cause=e) from e
    except httpx.TransportError as e:
        raise NetworkError(f"Network error: {method} {url}: {e}", url=url, cause=e) from e

    raise_for_status(response)
    return response
