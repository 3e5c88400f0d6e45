"""Shared HTTP plumbing for the REST providers.

WHY: Both Google providers POST JSON with a Bearer token and must map
every way that can go wrong onto TransientError or FatalError, which is
all the engine looks at when deciding whether to retry.

HOW: post_json() wraps httpx.AsyncClient.post, converting transport
errors and non-2xx responses into the error taxonomy.

RULES:
- httpx.TimeoutException / httpx.TransportError -> TransientError
- HTTP 408, 429 and 5xx -> TransientError
- Any other non-2xx -> FatalError
- A 2xx body that is not a JSON object -> FatalError
"""

from __future__ import annotations

import logging
from typing import Dict, Optional

import httpx

from speech_to_text.errors import FatalError, TransientError

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = httpx.Timeout(120.0, connect=30.0)
RETRYABLE_STATUS = frozenset({408, 429})


def is_retryable_status(status_code: int) -> bool:
    return status_code in RETRYABLE_STATUS or status_code >= 500


def _error_message(resp: httpx.Response) -> str:
    try:
        body = resp.json()
    except ValueError:
        return resp.text[:500]
    if isinstance(body, dict) and isinstance(body.get("error"), dict):
        return str(body["error"].get("message") or body["error"])
    return resp.text[:500]


async def post_json(
    client: httpx.AsyncClient,
    provider: str,
    url: str,
    body: dict,
    headers: Optional[Dict[str, str]] = None,
) -> dict:
    """POST ``body`` and return the decoded JSON object."""
    try:
        resp = await client.post(url, json=body, headers=headers)
    except httpx.TimeoutException as exc:
        raise TransientError(provider, f"request timed out: {exc}") from exc
    except httpx.TransportError as exc:
        raise TransientError(provider, f"network error: {exc}") from exc

    if resp.status_code >= 300:
        message = _error_message(resp)
        if is_retryable_status(resp.status_code):
            raise TransientError(provider, message, status_code=resp.status_code)
        raise FatalError(provider, message, status_code=resp.status_code)

    try:
        data = resp.json()
    except ValueError as exc:
        raise FatalError(provider, f"response is not JSON: {exc}") from exc
    if not isinstance(data, dict):
        raise FatalError(provider, "response is not a JSON object")
    return data
