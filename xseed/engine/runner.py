"""One xseed run: scan clients, correlate with IYUU, verify and inject candidates."""

from __future__ import annotations

import asyncio
from enum import Enum
from typing import Callable, Dict, List, Sequence

from xseed import logger
from xseed.clients import create_client
from xseed.clients.protocols import DownloadClient
from xseed.clients.types import LocalTorrent, TorrentFile
from xseed.config import ClientConfig, TrackerConfig, XseedConfig, XseedOptions
from xseed.engine.breaker import SiteCircuitBreaker
from xseed.engine.context import RunContext
from xseed.engine.injector import Injector
from xseed.engine.scanner import ScanFilters, ScanResult, SiteFilter, merge_request_hashes, scan_client
from xseed.engine.types import MatchOutcome, RunCounters
from xseed.engine.verifier import verify_candidate
from xseed.exceptions import (
    ClientRequestError,
    ClientUnavailableError,
    ConfigError,
    MissingTokenError,
    SiteDownloadError,
    TorrentDecodeError,
    TorrentNotFoundError,
)
from xseed.iyuu.correlator import IdentityCorrelator
from xseed.iyuu.types import CandidateRecord
from xseed.sites import create_site
from xseed.sites.protocols import TrackerSite

_CLIENT_ERRORS = (ClientUnavailableError, ClientRequestError)


class CandidateStatus(Enum):
    SKIPPED = "skipped"
    UNRESOLVED_SITE = "unresolved_site"
    ALREADY_HELD = "already_held"
    FILTERED = "filtered"
    BREAKER_OPEN = "breaker_open"
    NOT_FOUND = "not_found"
    DOWNLOAD_FAILED = "download_failed"
    DECODE_FAILED = "decode_failed"
    MISMATCH = "mismatch"
    INJECTED = "injected"
    REJECTED = "rejected"


class XseedRunner:
    """Runs the cross-seed pipeline over a list of configured clients."""

    def __init__(
        self,
        config: XseedConfig,
        options: XseedOptions,
        correlator: IdentityCorrelator,
        *,
        client_factory: Callable[[ClientConfig], DownloadClient] = create_client,
        site_factory: Callable[[TrackerConfig], TrackerSite] = create_site,
    ) -> None:
        self.config = config
        self.options = options
        self.correlator = correlator
        self._client_factory = client_factory
        self._site_factory = site_factory
        self.injector = Injector(
            dry_run=options.dry_run,
            add_paused=options.add_paused,
            check=options.check,
            add_category=options.add_category,
            fixed_tags=options.add_tags,
            public_ratio_limit=config.public_ratio_limit,
        )

    def new_context(self) -> RunContext:
        return RunContext(
            breaker=SiteCircuitBreaker(self.options.max_consecutive_fail),
            site_filter=SiteFilter.from_options(self.options, self.config),
            trackers={tracker.name: tracker for tracker in self.config.trackers_enabled},
            site_factory=self._site_factory,
            max_torrents=self.options.max_torrents,
        )

    async def run(self, client_names: Sequence[str]) -> RunCounters:
        if not self.config.iyuu.token:
            raise MissingTokenError("You must configure iyuu.token in xseed.toml to use xseed")
        ctx = self.new_context()
        clients = self._create_clients(client_names)
        try:
            await self._run(ctx, clients)
        finally:
            await ctx.close_sites()
            for client in clients.values():
                await client.close()
        return ctx.counters

    def _create_clients(self, client_names: Sequence[str]) -> Dict[str, DownloadClient]:
        clients: Dict[str, DownloadClient] = {}
        for name in client_names:
            client_config = self.config.clients.get(name)
            if client_config is None or client_config.disabled:
                raise ConfigError(f"Client {name} is not configured or is disabled")
            clients[name] = self._client_factory(client_config)
        return clients

    async def _run(self, ctx: RunContext, clients: Dict[str, DownloadClient]) -> None:
        filters = ScanFilters.from_options(self.options)
        scans: List[ScanResult] = []
        for name, client in clients.items():
            try:
                torrents = await client.get_torrents()
            except _CLIENT_ERRORS as exc:
                logger.error(f"client {name} failed to get torrents: {exc}")
                continue
            logger.debug(f"client {name} has {len(torrents)} torrents")
            scan = scan_client(name, torrents, filters)
            ctx.counters.candidates_considered += len(scan.candidates)
            scans.append(scan)

        if ctx.counters.candidates_considered == 0:
            logger.info("No candidate torrents to xseed.")
            return

        request_hashes = merge_request_hashes(scans)
        trackers = list(ctx.trackers.values())
        if self.correlator.should_refresh(self.options.request_server, self.options.stale_seconds):
            await self.correlator.refresh(request_hashes, trackers)
        ctx.site_map = self.correlator.site_identity_map(trackers)
        ctx.candidate_map = self.correlator.load_candidates(request_hashes)
        logger.debug(f"IYUU->local site map: {ctx.site_map}; targets with candidates: {len(ctx.candidate_map)}")

        for index, scan in enumerate(scans):
            if ctx.budget_reached:
                break
            logger.info(f"Start xseeding client ({index + 1}/{len(scans)}) {scan.client_name}")
            await self._xseed_client(ctx, clients[scan.client_name], scan)

    async def _xseed_client(self, ctx: RunContext, client: DownloadClient, scan: ScanResult) -> None:
        total = len(scan.candidates)
        for index, info_hash in enumerate(scan.candidates):
            if ctx.budget_reached:
                return
            if index > 0 and self.options.slow_mode:
                await asyncio.sleep(self.options.slow_mode_delay)
            if info_hash in ctx.evaluated:
                continue
            ctx.evaluated.add(info_hash)

            records = ctx.candidate_map.get(info_hash, [])
            if not records:
                logger.debug(f"torrent {info_hash} skipped or has no xseed candidates")
                continue
            logger.debug(f"torrent {info_hash} has {len(records)} xseed candidates")

            try:
                target = await client.get_torrent(info_hash)
            except _CLIENT_ERRORS as exc:
                logger.error(f"Failed to get target torrent {info_hash} info from client: {exc}")
                continue
            if target is None:
                logger.debug(f"target torrent {info_hash} no longer exists in client {client.name}")
                continue
            ctx.counters.targets_touched += 1
            logger.debug(
                f"client torrent ({index + 1}/{total}) {target.info_hash}: name={target.name}, savePath={target.save_path}"
            )
            try:
                target_files = await client.get_torrent_files(info_hash)
            except _CLIENT_ERRORS as exc:
                logger.debug(f"Failed to get target torrent {info_hash} contents from client: {exc}")
                continue

            for record in records:
                await self.process_candidate(ctx, client, target, target_files, record)
                if ctx.budget_reached:
                    return

    async def process_candidate(
        self,
        ctx: RunContext,
        client: DownloadClient,
        target: LocalTorrent,
        target_files: Sequence[TorrentFile],
        record: CandidateRecord,
    ) -> CandidateStatus:
        if record.info_hash == target.info_hash:
            return CandidateStatus.SKIPPED
        site_name = ctx.site_map.get(record.sid)
        if not site_name:
            logger.debug(
                f"torrent {target.info_hash} xseed candidate {record.info_hash} site sid {record.sid} not found in local"
            )
            return CandidateStatus.UNRESOLVED_SITE
        if ctx.breaker.is_open(site_name):
            logger.debug(f"Skip site {site_name} torrent {record.info_hash} as this site has failed too many times")
            return CandidateStatus.BREAKER_OPEN

        try:
            existing = await client.get_torrent(record.info_hash)
        except _CLIENT_ERRORS as exc:
            logger.error(f"Failed to get client existing torrent info for {record.info_hash}: {exc}")
            return CandidateStatus.SKIPPED
        if existing is not None:
            if await self.injector.reconcile_tags(client, existing, site_name):
                ctx.breaker.record_success(site_name)
            return CandidateStatus.ALREADY_HELD

        if not ctx.site_filter.allows(site_name):
            logger.debug(f"skip site {site_name} torrent")
            return CandidateStatus.FILTERED

        site = ctx.site_for(site_name)
        logger.info(
            f"Xseed torrent {record.info_hash} (target {target.name}) from site {site_name} "
            f"(iyuu sid {record.sid}) / tid {record.tid}"
        )
        try:
            data = await site.download_torrent_by_id(record.tid)
        except TorrentNotFoundError as exc:
            logger.error(f"Failed to download torrent from site: {exc}")
            ctx.breaker.record_not_found(site_name)
            return CandidateStatus.NOT_FOUND
        except SiteDownloadError as exc:
            logger.error(f"Failed to download torrent from site: {exc}")
            ctx.breaker.record_failure(site_name)
            return CandidateStatus.DOWNLOAD_FAILED
        ctx.breaker.record_success(site_name)

        try:
            descriptor, outcome = verify_candidate(data, target_files)
        except TorrentDecodeError as exc:
            logger.error(f"Failed to parse xseed torrent contents: {exc}")
            return CandidateStatus.DECODE_FAILED
        if outcome is MatchOutcome.ROOT_FOLDER_MISMATCH_ONLY:
            logger.debug("xseed candidate is NOT identical with client torrent. (Only ROOT folders diff)")
            return CandidateStatus.MISMATCH
        if outcome is MatchOutcome.NO_MATCH:
            logger.debug("xseed candidate is NOT identical with client torrent.")
            return CandidateStatus.MISMATCH

        injected = await self.injector.inject(ctx, client, target, record.info_hash, descriptor, data, site_name)
        return CandidateStatus.INJECTED if injected else CandidateStatus.REJECTED
