"""qBittorrent WebUI API adapter."""

from __future__ import annotations

import asyncio
import time
from typing import Any, Callable, Dict, List, Optional, Sequence

import aiohttp
from yarl import URL

from xseed import logger
from xseed.__version__ import __version__
from xseed.clients.protocols import DownloadClient
from xseed.clients.types import STATE_SEEDING, AddOptions, LocalTorrent, TorrentFile
from xseed.config import ClientConfig
from xseed.exceptions import ClientRequestError, ClientUnavailableError

DEFAULT_USER_AGENT = f"xseed/{__version__}"

_SEEDING_STATES = {"uploading", "stalledUP", "queuedUP", "forcedUP"}
_COMPLETED_STATES = {"pausedUP", "stoppedUP"}
_CHECKING_STATES = {"checkingUP", "checkingDL", "checkingResumeData", "moving"}
_ERROR_STATES = {"error", "missingFiles"}


def _map_state(raw_state: str) -> str:
    if raw_state in _SEEDING_STATES:
        return STATE_SEEDING
    if raw_state in _COMPLETED_STATES:
        return "completed"
    if raw_state in _CHECKING_STATES:
        return "checking"
    if raw_state in _ERROR_STATES:
        return "error"
    if raw_state in {"pausedDL", "stoppedDL"}:
        return "paused"
    return "downloading"


def _tracker_domain(tracker_url: str) -> str:
    if not tracker_url:
        return ""
    try:
        return (URL(tracker_url).host or "").lower()
    except ValueError:
        return ""


def _split_tags(raw_tags: str) -> frozenset[str]:
    return frozenset(tag.strip() for tag in (raw_tags or "").split(",") if tag.strip())


def _build_add_form(data: bytes, options: AddOptions) -> aiohttp.FormData:
    form = aiohttp.FormData()
    form.add_field("torrents", data, filename="xseed.torrent", content_type="application/x-bittorrent")
    form.add_field("savepath", options.save_path)
    form.add_field("category", options.category)
    form.add_field("tags", ",".join(options.tags))
    paused = "true" if options.paused else "false"
    # qBittorrent 5 renamed "paused" to "stopped"; send both.
    form.add_field("paused", paused)
    form.add_field("stopped", paused)
    form.add_field("skip_checking", "true" if options.skip_checking else "false")
    if options.ratio_limit > 0:
        form.add_field("ratioLimit", str(options.ratio_limit))
    return form


def map_torrent(raw: Dict[str, Any]) -> LocalTorrent:
    """Map one ``torrents/info`` row to a LocalTorrent."""
    size = raw.get("size")
    if size is None or size < 0:
        size = raw.get("total_size", 0)
    return LocalTorrent(
        info_hash=str(raw.get("hash", "")).lower(),
        name=str(raw.get("name", "")),
        size=int(size or 0),
        save_path=str(raw.get("save_path", "")),
        content_path=str(raw.get("content_path", "")),
        category=str(raw.get("category") or ""),
        tags=_split_tags(raw.get("tags", "")),
        state=_map_state(str(raw.get("state", ""))),
        last_active=int(raw.get("last_activity") or 0),
        tracker_domain=_tracker_domain(str(raw.get("tracker") or "")),
        progress=float(raw.get("progress") or 0.0),
    )


def map_file(raw: Dict[str, Any]) -> TorrentFile:
    return TorrentFile(path=str(raw.get("name", "")).replace("\\", "/"), size=int(raw.get("size", 0)))


class QbittorrentClient(DownloadClient):
    """qBittorrent client speaking the WebUI API v2."""

    def __init__(self, client: ClientConfig, timeout: int = 30):
        self.client = client
        self.name = client.name
        self.timeout = timeout
        self.base_url = client.url.rstrip("/")
        self._session: aiohttp.ClientSession | None = None
        self._session_lock = asyncio.Lock()

    async def get_torrents(self) -> List[LocalTorrent]:
        rows = await self._request_json("GET", "torrents/info")
        return self._map_rows("torrents/info", map_torrent, rows)

    async def get_torrent(self, info_hash: str) -> Optional[LocalTorrent]:
        rows = await self._request_json("GET", "torrents/info", params={"hashes": info_hash.lower()})
        if not rows:
            return None
        return self._map_rows("torrents/info", map_torrent, rows[:1])[0]

    async def get_torrent_files(self, info_hash: str) -> List[TorrentFile]:
        rows = await self._request_json("GET", "torrents/files", params={"hash": info_hash.lower()})
        return self._map_rows("torrents/files", map_file, rows)

    async def add_torrent(self, data: bytes, options: AddOptions) -> None:
        text = await self._request_text("POST", "torrents/add", data=lambda: _build_add_form(data, options))
        if text.strip().lower().startswith("fails"):
            raise ClientRequestError(f"{self.name} rejected torrent: {text.strip()}")

    async def modify_tags(
        self,
        info_hash: str,
        add: Sequence[str] = (),
        remove: Sequence[str] = (),
    ) -> None:
        if add:
            await self._request_text(
                "POST", "torrents/addTags", data={"hashes": info_hash.lower(), "tags": ",".join(add)}
            )
        if remove:
            await self._request_text(
                "POST", "torrents/removeTags", data={"hashes": info_hash.lower(), "tags": ",".join(remove)}
            )

    def _map_rows(
        self, endpoint: str, mapper: Callable[[Dict[str, Any]], Any], rows: List[Dict[str, Any]]
    ) -> List[Any]:
        try:
            return [mapper(row) for row in rows]
        except (TypeError, ValueError) as exc:
            raise ClientRequestError(f"{self.name} {endpoint} returned a malformed row: {exc}") from exc

    async def _request_json(self, method: str, endpoint: str, **kwargs: Any) -> List[Dict[str, Any]]:
        status, _, elapsed_ms, payload = await self._request(method, endpoint, want_json=True, **kwargs)
        logger.get_logger().api_response(status, None, elapsed_ms)
        if payload is None:
            return []
        if not isinstance(payload, list) or not all(isinstance(row, dict) for row in payload):
            raise ClientRequestError(f"{self.name} {endpoint} returned an unexpected payload")
        return payload

    async def _request_text(self, method: str, endpoint: str, **kwargs: Any) -> str:
        status, text, elapsed_ms, _ = await self._request(method, endpoint, want_json=False, **kwargs)
        logger.get_logger().api_response(status, None, elapsed_ms)
        return text

    async def _request(
        self,
        method: str,
        endpoint: str,
        *,
        want_json: bool,
        params: Dict[str, Any] | None = None,
        data: Any = None,
    ) -> tuple[int, str, float, Any]:
        url = f"{self.base_url}/api/v2/{endpoint}"
        logger.get_logger().api_request(method, url, params)
        request_start = time.time()
        session = await self._ensure_session()
        for attempt in range(2):
            try:
                # Multipart bodies are single-use, so callables build a fresh one per attempt.
                body = data() if callable(data) else data
                async with session.request(method, url, params=params, data=body) as response:
                    if response.status == 403 and attempt == 0:
                        # Session cookie expired; log in again once.
                        await self._login(session)
                        continue
                    if response.status >= 400:
                        text = await response.text()
                        raise ClientRequestError(
                            f"{self.name} {endpoint} failed: status={response.status} {text.strip()[:200]}"
                        )
                    elapsed_ms = (time.time() - request_start) * 1000
                    if want_json:
                        try:
                            payload = await response.json(content_type=None)
                        except ValueError as exc:
                            raise ClientRequestError(f"{self.name} {endpoint} returned a non-JSON body: {exc}") from exc
                        return response.status, "", elapsed_ms, payload
                    return response.status, await response.text(), elapsed_ms, None
            except (asyncio.TimeoutError, aiohttp.ClientConnectionError) as exc:
                raise ClientUnavailableError(f"{self.name} is unreachable: {exc}") from exc
            except aiohttp.ClientError as exc:
                raise ClientRequestError(f"{self.name} {endpoint} failed: {exc!r}") from exc
        raise ClientUnavailableError(f"{self.name} refused the session after re-login")

    async def _login(self, session: aiohttp.ClientSession) -> None:
        if not self.client.username and not self.client.password:
            return
        url = f"{self.base_url}/api/v2/auth/login"
        try:
            async with session.post(
                url,
                data={"username": self.client.username, "password": self.client.password},
                headers={"Referer": self.base_url},
            ) as response:
                text = await response.text()
                if response.status != 200 or text.strip() != "Ok.":
                    raise ClientUnavailableError(
                        f"{self.name} login failed: status={response.status} {text.strip()[:100]}"
                    )
        except (asyncio.TimeoutError, aiohttp.ClientError) as exc:
            raise ClientUnavailableError(f"{self.name} is unreachable: {exc}") from exc

    async def _ensure_session(self) -> aiohttp.ClientSession:
        session = self._session
        if session is not None and not session.closed:
            return session

        async with self._session_lock:
            session = self._session
            if session is None or session.closed:
                timeout = aiohttp.ClientTimeout(total=self.timeout)
                session = aiohttp.ClientSession(
                    headers={"User-Agent": DEFAULT_USER_AGENT, "Referer": self.base_url},
                    timeout=timeout,
                )
                self._session = session
                await self._login(session)
            return session

    async def close(self) -> None:
        """Close any open connections."""
        async with self._session_lock:
            session = self._session
            self._session = None
        if session is not None and not session.closed:
            await session.close()
