"""Keeps the local candidate mirror fresh and maps service site ids to local trackers."""

from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass
from typing import Callable, Dict, List, Sequence

import aiohttp
from yarl import URL

from xseed import logger
from xseed.config import TrackerConfig
from xseed.exceptions import IdentityServiceError
from xseed.iyuu.service import IdentityService
from xseed.iyuu.store import LAST_UPDATE_KEY, MirrorStore
from xseed.iyuu.types import CandidateRecord, RegistrySite

REFRESH_YES = "yes"
REFRESH_NO = "no"
REFRESH_AUTO = "auto"

_SERVICE_ERRORS = (IdentityServiceError, aiohttp.ClientError, asyncio.TimeoutError, ValueError)
_COUNTRY_SECOND_LEVEL = frozenset({"ac", "co", "com", "edu", "gov", "net", "org"})


def site_host(url_or_host: str) -> str:
    """Return a URL's host, lower-cased and without a leading ``www.``."""
    value = (url_or_host or "").strip().lower()
    if not value:
        return ""
    if "://" not in value:
        value = f"https://{value}"
    try:
        host = URL(value).host or ""
    except ValueError:
        return ""
    host = host.strip(".")
    if host.startswith("www."):
        host = host[4:]
    return host


def registrable_domain(url_or_host: str) -> str:
    """Return the registrable part of a URL's host.

    That is the last two labels, or three under a country suffix such as
    ``edu.cn`` or ``co.uk``.
    """
    labels = [label for label in site_host(url_or_host).split(".") if label]
    keep = 2
    if len(labels) >= 3 and len(labels[-1]) == 2 and labels[-2] in _COUNTRY_SECOND_LEVEL:
        keep = 3
    return ".".join(labels[-keep:])


def _tracker_names_by(key: Callable[[str], str], trackers: Sequence[TrackerConfig]) -> Dict[str, List[str]]:
    index: Dict[str, List[str]] = {}
    for tracker in trackers:
        values = {key(tracker.url), *(key(domain) for domain in tracker.domains)}
        values.discard("")
        for value in values:
            index.setdefault(value, []).append(tracker.name)
    return index


def build_site_identity_map(
    sites: Sequence[RegistrySite], trackers: Sequence[TrackerConfig]
) -> Dict[int, str]:
    """Match registry sites against enabled local trackers.

    An exact host match wins. A shared registrable domain is used only when
    exactly one tracker has it, then the site name is tried.
    """
    enabled = [tracker for tracker in trackers if not tracker.disabled]
    by_host = _tracker_names_by(site_host, enabled)
    by_domain = _tracker_names_by(registrable_domain, enabled)
    names = {tracker.name for tracker in enabled}
    mapping: Dict[int, str] = {}
    for site in sites:
        host_matches = by_host.get(site_host(site.url), [])
        domain_matches = by_domain.get(registrable_domain(site.url), [])
        if host_matches:
            mapping[site.sid] = host_matches[0]
        elif len(domain_matches) == 1:
            mapping[site.sid] = domain_matches[0]
        elif site.name in names:
            mapping[site.sid] = site.name
    return mapping


@dataclass
class RefreshSummary:
    pages: int = 0
    failed_pages: int = 0
    targets_updated: int = 0

    @property
    def any_succeeded(self) -> bool:
        return self.pages > self.failed_pages


class IdentityCorrelator:
    """Refreshes the candidate mirror on policy and resolves site ids for one run."""

    def __init__(
        self,
        service_factory: Callable[[], IdentityService],
        store: MirrorStore,
        *,
        max_batch_size: int = 100,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._service_factory = service_factory
        self.store = store
        self.max_batch_size = max(1, max_batch_size)
        self._clock = clock

    def should_refresh(self, mode: str, stale_seconds: int) -> bool:
        if mode == REFRESH_YES:
            return True
        if mode == REFRESH_NO:
            return False
        last_update = self.store.get_meta(LAST_UPDATE_KEY)
        if not last_update:
            return True
        try:
            last_update_ts = int(float(last_update))
        except ValueError:
            return True
        if self._clock() - last_update_ts >= stale_seconds:
            return True
        logger.debug("Fetched IYUU xseed data recently. Do not fetch this time")
        return False

    async def refresh(
        self, info_hashes: Sequence[str], trackers: Sequence[TrackerConfig]
    ) -> RefreshSummary:
        """Pull candidate lists for ``info_hashes`` page by page into the mirror."""
        logger.debug(f"Querying IYUU server for xseed info of {len(info_hashes)} torrents.")
        summary = RefreshSummary()
        service = self._service_factory()
        try:
            sid_sha1 = await self._prime_sites(service, trackers)
            pending = list(info_hashes)
            while pending:
                page, pending = pending[: self.max_batch_size], pending[self.max_batch_size:]
                summary.pages += 1
                try:
                    data = await service.query_hashes(page, sid_sha1)
                except _SERVICE_ERRORS as exc:
                    summary.failed_pages += 1
                    logger.error(f"IYUU hash lookup failed for page {summary.pages}: {exc}")
                    continue
                logger.debug(f"IYUU returned data for {len(data)} of {len(page)} torrents")
                self.store.replace_candidates(data)
                summary.targets_updated += len(data)
        finally:
            await service.close()

        if summary.any_succeeded:
            self.store.set_meta(LAST_UPDATE_KEY, str(int(self._clock())))
        return summary

    async def _prime_sites(self, service: IdentityService, trackers: Sequence[TrackerConfig]) -> str:
        try:
            sites = list(await service.get_sites())
        except _SERVICE_ERRORS as exc:
            logger.error(f"Failed to get IYUU sites: {exc}")
            sites = self.store.load_sites()
        else:
            self.store.replace_sites(sites)

        local_sids = sorted(build_site_identity_map(sites, trackers))
        try:
            return await service.report_existing(local_sids)
        except _SERVICE_ERRORS as exc:
            logger.error(f"Failed to report existing sites: {exc}")
            return ""

    def site_identity_map(self, trackers: Sequence[TrackerConfig]) -> Dict[int, str]:
        return build_site_identity_map(self.store.load_sites(), trackers)

    def load_candidates(self, info_hashes: Sequence[str]) -> Dict[str, List[CandidateRecord]]:
        return self.store.load_candidates(info_hashes)
