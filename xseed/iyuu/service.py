"""IYUU reseed API adapter."""

from __future__ import annotations

import asyncio
import hashlib
import json
import time
from typing import Any, Dict, List, Mapping, Protocol, Sequence

import aiohttp

from xseed import logger
from xseed.__version__ import __version__
from xseed.config import IyuuConfig
from xseed.exceptions import IdentityServiceError, MissingTokenError
from xseed.iyuu.types import CandidateRecord, RegistrySite
from xseed.resilience import envelope_data, expect_dict, optional_list_of_dicts, run_with_retries

DEFAULT_USER_AGENT = f"xseed/{__version__}"
IYUU_CLIENT_VERSION = "8.2.0"
MAX_ATTEMPTS = 3


class IdentityService(Protocol):
    """Remote hash-lookup service used by the correlator."""

    async def get_sites(self) -> Sequence[RegistrySite]:
        ...

    async def report_existing(self, sids: Sequence[int]) -> str:
        ...

    async def query_hashes(
        self, info_hashes: Sequence[str], sid_sha1: str
    ) -> Mapping[str, Sequence[CandidateRecord]]:
        ...

    async def close(self) -> None:
        ...


def _site_url(raw: Mapping[str, Any]) -> str:
    base_url = str(raw.get("base_url") or "").strip().rstrip("/")
    if not base_url:
        return ""
    if base_url.startswith(("http://", "https://")):
        return base_url
    scheme = "http" if str(raw.get("is_https", 2)) == "0" else "https"
    return f"{scheme}://{base_url}"


def _hash_payload(info_hashes: Sequence[str]) -> tuple[str, str]:
    hash_json = json.dumps(sorted(info_hashes), separators=(",", ":"))
    return hash_json, hashlib.sha1(hash_json.encode("utf-8")).hexdigest()


class IyuuServiceAdapter(IdentityService):
    """Talks to the IYUU reseed API with the configured token."""

    def __init__(self, config: IyuuConfig):
        if not config.token:
            raise MissingTokenError("You must configure an IYUU token to use xseed")
        self.config = config
        self.base_url = config.server.rstrip("/")
        self.timeout = config.timeout
        self._session: aiohttp.ClientSession | None = None
        self._session_lock = asyncio.Lock()

    async def get_sites(self) -> List[RegistrySite]:
        data = await self._call("GET", "reseed/sites/index")
        sites: List[RegistrySite] = []
        for raw in optional_list_of_dicts(data, "sites", "sites/index"):
            try:
                sid = int(raw["id"])
            except (KeyError, TypeError, ValueError):
                logger.warning(f"Skipping malformed IYUU site row: {raw!r}")
                continue
            sites.append(
                RegistrySite(
                    sid=sid,
                    name=str(raw.get("site") or ""),
                    nickname=str(raw.get("nickname") or ""),
                    url=_site_url(raw),
                    download_page=str(raw.get("download_page") or ""),
                )
            )
        return sites

    async def report_existing(self, sids: Sequence[int]) -> str:
        data = await self._call("POST", "reseed/sites/reportExisting", json_body={"sid_list": list(sids)})
        sid_sha1 = data.get("sid_sha1")
        if not isinstance(sid_sha1, str) or not sid_sha1:
            raise IdentityServiceError("reportExisting response has no sid_sha1")
        return sid_sha1

    async def query_hashes(
        self, info_hashes: Sequence[str], sid_sha1: str
    ) -> Dict[str, List[CandidateRecord]]:
        hash_json, sha1 = _hash_payload(info_hashes)
        form = {
            "hash": hash_json,
            "sha1": sha1,
            "sid_sha1": sid_sha1,
            "timestamp": str(int(time.time())),
            "version": IYUU_CLIENT_VERSION,
        }
        data = await self._call("POST", "reseed/index/index", form=form)
        result: Dict[str, List[CandidateRecord]] = {}
        for target_hash, entry in data.items():
            context = f"index[{target_hash}]"
            records: List[CandidateRecord] = []
            for raw in optional_list_of_dicts(expect_dict(entry, context), "torrent", context):
                try:
                    records.append(
                        CandidateRecord(
                            target_info_hash=target_hash.lower(),
                            info_hash=str(raw["info_hash"]).lower(),
                            sid=int(raw["sid"]),
                            tid=int(raw["torrent_id"]),
                        )
                    )
                except (KeyError, TypeError, ValueError):
                    logger.warning(f"Skipping malformed IYUU torrent row for {target_hash}: {raw!r}")
            result[target_hash.lower()] = records
        return result

    async def _call(
        self,
        method: str,
        endpoint: str,
        *,
        form: Dict[str, str] | None = None,
        json_body: Dict[str, Any] | None = None,
    ) -> Dict[str, Any]:
        url = f"{self.base_url}/{endpoint}"
        log = logger.get_logger()
        log.api_request(method, url, {k: v for k, v in (form or json_body or {}).items() if k != "hash"})
        session = await self._ensure_session()

        async def _once() -> tuple[int, Any]:
            async with session.request(method, url, data=form, json=json_body) as response:
                response.raise_for_status()
                return response.status, await response.json(content_type=None)

        request_start = time.time()
        status, payload = await run_with_retries(
            _once,
            max_attempts=MAX_ATTEMPTS,
            on_retry=lambda attempt, max_attempts, delay, _exc: log.api_retry("IYUU", attempt, max_attempts, delay),
        )
        log.api_response(status, payload, (time.time() - request_start) * 1000)

        return envelope_data(payload, f"IYUU {endpoint}")

    async def _ensure_session(self) -> aiohttp.ClientSession:
        session = self._session
        if session is not None and not session.closed:
            return session

        async with self._session_lock:
            session = self._session
            if session is None or session.closed:
                timeout = aiohttp.ClientTimeout(total=self.timeout)
                self._session = aiohttp.ClientSession(
                    headers={"Token": self.config.token, "User-Agent": DEFAULT_USER_AGENT},
                    timeout=timeout,
                )
            return self._session

    async def close(self) -> None:
        """Close any open connections."""
        async with self._session_lock:
            session = self._session
            self._session = None
        if session is not None and not session.closed:
            await session.close()
