"""Apply verified matches to a download client."""

from __future__ import annotations

from typing import List, Sequence

from xseed import logger
from xseed.clients.protocols import DownloadClient
from xseed.clients.types import (
    PRIVATE_TAG,
    PUBLIC_TAG,
    SITE_TAG_PREFIX,
    XSEED_TAG,
    AddOptions,
    LocalTorrent,
    site_tag,
)
from xseed.engine.context import RunContext
from xseed.engine.types import ContentDescriptor
from xseed.exceptions import ClientRequestError, ClientUnavailableError


def reconcile_tag_changes(existing: LocalTorrent, site_name: str) -> tuple[List[str], List[str]]:
    """Return (tags to add, tags to remove) so ``existing`` is marked as xseeded from ``site_name``."""
    add: List[str] = []
    remove: List[str] = []
    if not existing.has_tag(XSEED_TAG):
        add.append(XSEED_TAG)
    wanted_site_tag = site_tag(site_name)
    if not existing.has_tag(wanted_site_tag):
        add.append(wanted_site_tag)
    for tag in sorted(existing.tags):
        if tag.startswith(SITE_TAG_PREFIX) and tag != wanted_site_tag:
            remove.append(tag)
    return add, remove


class Injector:
    """Adds matched torrents and keeps tags of already-held ones consistent."""

    def __init__(
        self,
        *,
        dry_run: bool = False,
        add_paused: bool = False,
        check: bool = False,
        add_category: str = "",
        fixed_tags: Sequence[str] = (),
        public_ratio_limit: float = 0.0,
    ) -> None:
        self.dry_run = dry_run
        self.add_paused = add_paused
        self.check = check
        self.add_category = add_category
        self.fixed_tags = list(fixed_tags)
        self.public_ratio_limit = public_ratio_limit

    async def reconcile_tags(self, client: DownloadClient, existing: LocalTorrent, site_name: str) -> bool:
        """Mark an already-held candidate; return False only when the client rejected the change."""
        logger.debug(f"xseed candidate {existing.info_hash} already existed in client")
        add, remove = reconcile_tag_changes(existing, site_name)
        if not add and not remove:
            return True
        logger.debug(f"Retag {existing.info_hash}: add={add} remove={remove}")
        if self.dry_run:
            return True
        try:
            await client.modify_tags(existing.info_hash, add=add, remove=remove)
        except (ClientRequestError, ClientUnavailableError) as exc:
            logger.error(f"Failed to update tags of {existing.info_hash} in {client.name}: {exc}")
            return False
        return True

    def build_add_options(self, target: LocalTorrent, descriptor: ContentDescriptor, site_name: str) -> AddOptions:
        tags = [XSEED_TAG, site_tag(site_name), *self.fixed_tags]
        ratio_limit = 0.0
        if descriptor.is_private:
            tags.append(PRIVATE_TAG)
        else:
            tags.append(PUBLIC_TAG)
            ratio_limit = self.public_ratio_limit
        return AddOptions(
            save_path=target.save_path,
            category=self.add_category or target.category,
            tags=list(dict.fromkeys(tags)),
            paused=self.add_paused,
            skip_checking=not self.check,
            ratio_limit=ratio_limit,
        )

    async def inject(
        self,
        ctx: RunContext,
        client: DownloadClient,
        target: LocalTorrent,
        candidate_hash: str,
        descriptor: ContentDescriptor,
        data: bytes,
        site_name: str,
    ) -> bool:
        ctx.counters.injection_attempts += 1
        options = self.build_add_options(target, descriptor, site_name)
        error: Exception | None = None
        if not self.dry_run:
            try:
                await client.add_torrent(data, options)
            except (ClientRequestError, ClientUnavailableError) as exc:
                error = exc
        logger.info(f"Add xseed torrent {candidate_hash} result: error={error}")
        if error is not None:
            return False
        ctx.counters.injection_successes += 1
        if ctx.budget_reached:
            logger.info(f"Reached the limit of {ctx.max_torrents} xseed torrents, stopping")
        return True
