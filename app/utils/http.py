"""HTTP utilities shared by the Discord API clients."""

from __future__ import annotations

from typing import Any

import httpx

_MAX_DETAIL_CHARS = 500


def build_async_client(
    *,
    base_url: str,
    timeout: float,
    transport: httpx.AsyncBaseTransport | None = None,
    headers: dict[str, str] | None = None,
) -> httpx.AsyncClient:
    """Create a short-lived client with a bounded timeout for a single call."""
    return httpx.AsyncClient(
        base_url=base_url,
        timeout=timeout,
        transport=transport,
        headers=headers,
    )


def response_detail(response: httpx.Response) -> str:
    """Return the response body (truncated) for error reporting."""
    text = response.text.strip()
    if len(text) > _MAX_DETAIL_CHARS:
        text = text[:_MAX_DETAIL_CHARS] + "..."
    return f"HTTP {response.status_code}: {text}" if text else f"HTTP {response.status_code}"


def transport_detail(exc: httpx.HTTPError) -> str:
    """Describe a timeout or connection failure the same way as a rejected response."""
    if isinstance(exc, httpx.TimeoutException):
        return f"Request timed out: {exc.__class__.__name__}"
    return f"Request failed: {exc.__class__.__name__}: {exc}"


def json_body(response: httpx.Response) -> Any:
    """Decode a JSON body, raising ``ValueError`` when it is not JSON."""
    try:
        return response.json()
    except ValueError as exc:
        raise ValueError(f"Response body is not valid JSON: {exc}") from exc


__all__ = ["build_async_client", "json_body", "response_detail", "transport_detail"]
