"""NexusPHP-style tracker adapter: torrent downloads by numeric id."""

from __future__ import annotations

import asyncio
import time
from typing import Dict

import aiohttp
from yarl import URL

from xseed import logger
from xseed.__version__ import __version__
from xseed.config import TrackerConfig
from xseed.exceptions import SiteDownloadError, TorrentNotFoundError
from xseed.rate_limits import (
    SITE_MIN_INTERVAL_SECONDS,
    SITE_WAIT_LOG_THRESHOLD_SECONDS,
    enforce_site_min_interval,
)
from xseed.resilience import is_retryable_status, retry_delay
from xseed.sites.protocols import TrackerSite

DEFAULT_USER_AGENT = f"xseed/{__version__}"
TORRENT_MAGIC_PREFIXES = (b"d8:announce", b"d13:announce-list", b"d10:created by", b"d13:creation date", b"d4:info")
NOT_FOUND_MARKERS = ("没有该ID的种子", "沒有該ID的種子", "torrent not found", "does not exist", "no torrent with")


def looks_like_torrent(data: bytes) -> bool:
    return data.startswith(TORRENT_MAGIC_PREFIXES)


class NexusphpSite(TrackerSite):
    """Downloads torrent files from a NexusPHP tracker using cookie or passkey auth."""

    def __init__(
        self,
        tracker: TrackerConfig,
        min_interval_seconds: float = SITE_MIN_INTERVAL_SECONDS,
        max_retries: int = 2,
    ):
        self.tracker = tracker
        self.name = tracker.name
        self.timeout = tracker.timeout
        self.base_url = tracker.url.rstrip("/")
        self.max_retries = max(1, max_retries)
        self._min_interval_seconds = max(0.0, float(min_interval_seconds))
        self._session: aiohttp.ClientSession | None = None
        self._session_lock = asyncio.Lock()

    def torrent_url(self, torrent_id: int) -> str:
        path = self.tracker.download_url.replace("{id}", str(torrent_id))
        if path.startswith(("http://", "https://")):
            url = URL(path)
        else:
            url = URL(f"{self.base_url}/{path.lstrip('/')}")
        if self.tracker.passkey and "passkey" not in url.query:
            url = url.update_query(passkey=self.tracker.passkey)
        return str(url)

    async def download_torrent_by_id(self, torrent_id: int) -> bytes:
        url = self.torrent_url(torrent_id)
        log = logger.get_logger()
        log.api_request("GET", url.replace(self.tracker.passkey, "<passkey>") if self.tracker.passkey else url)
        request_start = time.time()

        await self._enforce_interval()
        session = await self._ensure_session()
        for attempt in range(self.max_retries):
            try:
                async with session.get(url) as response:
                    if response.status == 404:
                        raise TorrentNotFoundError(self.name, f"torrent {torrent_id} not found (status=404)", 404)
                    if response.status >= 400:
                        if attempt < self.max_retries - 1 and is_retryable_status(response.status):
                            delay = retry_delay(attempt + 1)
                            log.api_retry(self.name.upper(), attempt + 1, self.max_retries, delay)
                            await asyncio.sleep(delay)
                            continue
                        raise SiteDownloadError(
                            self.name, f"torrent {torrent_id} download failed (status={response.status})", response.status
                        )
                    data = await response.read()
                    log.api_response(response.status, None, (time.time() - request_start) * 1000)
                    return self._check_payload(torrent_id, data)
            except (asyncio.TimeoutError, aiohttp.ClientConnectionError) as exc:
                if attempt < self.max_retries - 1:
                    delay = retry_delay(attempt + 1)
                    log.api_retry(self.name.upper(), attempt + 1, self.max_retries, delay)
                    await asyncio.sleep(delay)
                    continue
                log.api_failed(self.name.upper(), self.max_retries)
                raise SiteDownloadError(self.name, f"torrent {torrent_id} download failed: {exc!r}") from exc
            except aiohttp.ClientError as exc:
                raise SiteDownloadError(self.name, f"torrent {torrent_id} download failed: {exc!r}") from exc
        raise SiteDownloadError(self.name, f"torrent {torrent_id} download failed after {self.max_retries} attempts")

    def _check_payload(self, torrent_id: int, data: bytes) -> bytes:
        if looks_like_torrent(data):
            return data
        text = data[:4096].decode("utf-8", errors="ignore").lower()
        if any(marker.lower() in text for marker in NOT_FOUND_MARKERS):
            raise TorrentNotFoundError(self.name, f"torrent {torrent_id} not found")
        raise SiteDownloadError(self.name, f"torrent {torrent_id} response is not a torrent file")

    async def _enforce_interval(self) -> None:
        wait = await enforce_site_min_interval(self.base_url, min_interval_seconds=self._min_interval_seconds)
        log = logger.get_logger()
        log.api_wait_debug(self.name.upper(), wait)
        if wait > SITE_WAIT_LOG_THRESHOLD_SECONDS:
            log.api_wait(self.name.upper(), wait)

    async def _ensure_session(self) -> aiohttp.ClientSession:
        session = self._session
        if session is not None and not session.closed:
            return session

        async with self._session_lock:
            session = self._session
            if session is None or session.closed:
                timeout = aiohttp.ClientTimeout(total=self.timeout)
                self._session = aiohttp.ClientSession(
                    headers=self._get_headers(),
                    timeout=timeout,
                )
            return self._session

    def _get_headers(self) -> Dict[str, str]:
        headers = {"User-Agent": self.tracker.user_agent or DEFAULT_USER_AGENT}
        if self.tracker.cookie:
            headers["Cookie"] = self.tracker.cookie.strip()
        return headers

    async def close(self) -> None:
        """Close any open connections."""
        async with self._session_lock:
            session = self._session
            self._session = None
        if session is not None and not session.closed:
            await session.close()
