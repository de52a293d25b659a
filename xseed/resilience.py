"""Retry policy and payload guards shared by the HTTP adapters."""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from typing import Any, TypeVar

from aiohttp import ClientConnectionError, ClientResponseError, ServerTimeoutError

from xseed.exceptions import IdentityServiceError

RETRYABLE_HTTP_STATUSES = {429, 500, 502, 503, 504}
# Login walls and maintenance pages come back as HTML with a 200.
MALFORMED_HINT = "possible maintenance or login page"

_T = TypeVar("_T")


def retry_delay(attempt: int) -> int:
    """Backoff in seconds after the given 1-based attempt."""
    return 2 ** attempt


def is_retryable_status(status: int) -> bool:
    return status in RETRYABLE_HTTP_STATUSES


def expect_dict(value: object, context: str) -> dict:
    if isinstance(value, dict):
        return value
    raise ValueError(f"{context} is a {type(value).__name__}, not an object ({MALFORMED_HINT})")


def optional_dict(container: dict, key: str, context: str) -> dict:
    value = container.get(key)
    if value is None:
        return {}
    return expect_dict(value, f"{context}.{key}")


def optional_list_of_dicts(container: dict, key: str, context: str) -> list[dict]:
    values = container.get(key)
    if values is None:
        return []
    if not isinstance(values, list):
        raise ValueError(f"{context}.{key} is a {type(values).__name__}, not a list ({MALFORMED_HINT})")
    return [expect_dict(value, f"{context}.{key}[{idx}]") for idx, value in enumerate(values)]


def envelope_data(payload: Any, context: str) -> dict:
    """Unwrap a ``{"code": 0, "msg": ..., "data": {...}}`` response.

    A non-zero code is an application error and is never retried.
    """
    root = expect_dict(payload, f"{context} payload")
    code = root.get("code")
    if code not in (0, "0"):
        message = root.get("msg") or root.get("message") or "unknown error"
        raise IdentityServiceError(f"{context} failed: code={code} {message}")
    return optional_dict(root, "data", context)


def is_retryable_exception(exc: Exception) -> bool:
    if isinstance(exc, (asyncio.TimeoutError, ClientConnectionError, ServerTimeoutError)):
        return True
    if isinstance(exc, ClientResponseError):
        return is_retryable_status(exc.status)
    return isinstance(exc, ValueError) and MALFORMED_HINT in str(exc)


async def run_with_retries(
    operation: Callable[[], Awaitable[_T]],
    *,
    max_attempts: int,
    on_retry: Callable[[int, int, int, Exception], None] | None = None,
) -> _T:
    attempt = 1
    while True:
        try:
            return await operation()
        except Exception as exc:
            if attempt >= max_attempts or not is_retryable_exception(exc):
                raise
            delay = retry_delay(attempt)
            if on_retry is not None:
                on_retry(attempt, max_attempts, delay, exc)
            await asyncio.sleep(delay)
            attempt += 1
