"""Central request-pacing settings and shared per-site limiter state."""

from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass

# Tracker download endpoints: minimum interval between calls to the same server.
SITE_MIN_INTERVAL_SECONDS = 1.0
SITE_WAIT_LOG_THRESHOLD_SECONDS = 0.75


@dataclass
class _SiteBucket:
    lock: asyncio.Lock
    last_request_started: float = 0.0


_site_buckets: dict[str, _SiteBucket] = {}


def _normalize_server_key(base_url: str) -> str:
    return base_url.rstrip("/").lower()


def _get_or_create_bucket(base_url: str) -> _SiteBucket:
    key = _normalize_server_key(base_url)
    bucket = _site_buckets.get(key)
    if bucket is None:
        bucket = _SiteBucket(lock=asyncio.Lock())
        _site_buckets[key] = bucket
    return bucket


async def enforce_site_min_interval(
    base_url: str,
    min_interval_seconds: float = SITE_MIN_INTERVAL_SECONDS,
) -> float:
    """
    Enforce shared per-server request spacing.

    Returns the wait time applied (seconds).
    """
    bucket = _get_or_create_bucket(base_url)
    async with bucket.lock:
        now = time.monotonic()
        effective_min_interval = max(0.0, float(min_interval_seconds))
        wait = 0.0
        if bucket.last_request_started:
            wait = max(effective_min_interval - (now - bucket.last_request_started), 0.0)
        if wait > 0:
            await asyncio.sleep(wait)
            now = time.monotonic()
        bucket.last_request_started = now
        return wait


def _reset_site_rate_limits_for_tests() -> None:
    """Test helper to clear shared limiter state."""
    _site_buckets.clear()
