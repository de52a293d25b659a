"""Select and order the local torrents a client can offer for cross-seeding."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterable, List, Sequence

from xseed.clients.types import NOXSEED_TAG, STATE_SEEDING, XSEED_TAG, LocalTorrent
from xseed.config import NONE, XseedConfig, XseedOptions, split_csv


@dataclass(frozen=True)
class ScanFilters:
    """Eligibility filters applied to local torrents."""

    category: str = ""
    tags: tuple[str, ...] = ()
    no_tags: bool = False
    min_size: int = -1
    max_size: int = -1
    name_filter: str = ""

    @classmethod
    def from_options(cls, options: XseedOptions) -> "ScanFilters":
        tag = options.tag.strip()
        return cls(
            category=options.category.strip(),
            tags=() if tag == NONE else tuple(split_csv(tag)),
            no_tags=tag == NONE,
            min_size=options.min_size_bytes,
            max_size=options.max_size_bytes,
            name_filter=options.filter.strip().lower(),
        )

    def accepts(self, torrent: LocalTorrent) -> bool:
        if self.category:
            if self.category == NONE:
                if torrent.category:
                    return False
            elif torrent.category != self.category:
                return False
        elif torrent.category.startswith("_"):
            return False
        if torrent.has_tag(NOXSEED_TAG):
            return False
        if self.no_tags and torrent.tags:
            return False
        if self.tags and not torrent.has_any_tag(self.tags):
            return False
        if torrent.state != STATE_SEEDING or not torrent.is_full_complete:
            return False
        if self.min_size >= 0 and torrent.size < self.min_size:
            return False
        if self.max_size >= 0 and torrent.size > self.max_size:
            return False
        if self.name_filter and self.name_filter not in torrent.name.lower():
            return False
        return True


@dataclass(frozen=True)
class SiteFilter:
    """Include/exclude policy for the trackers candidates may come from."""

    include: frozenset[str] = frozenset()
    exclude: frozenset[str] = frozenset()

    @classmethod
    def from_options(cls, options: XseedOptions, config: XseedConfig) -> "SiteFilter":
        options.validate_sites()
        return cls(
            include=frozenset(config.expand_site_names(options.include_sites)),
            exclude=frozenset(config.expand_site_names(options.exclude_sites)),
        )

    def allows(self, site_name: str) -> bool:
        if self.include:
            return site_name in self.include
        return site_name not in self.exclude


@dataclass
class ScanResult:
    client_name: str
    candidates: List[str] = field(default_factory=list)
    request_hashes: List[str] = field(default_factory=list)


def sort_torrents(torrents: Iterable[LocalTorrent]) -> List[LocalTorrent]:
    """
    Order torrents for stable repeated runs.

    Largest first; among equal sizes, torrents never xseeded before come first,
    then least recently active, then tracker domain.
    """
    return sorted(
        torrents,
        key=lambda torrent: (
            -torrent.size,
            torrent.has_tag(XSEED_TAG),
            torrent.last_active,
            torrent.tracker_domain,
        ),
    )


def build_request_hashes(torrents: Sequence[LocalTorrent]) -> List[str]:
    """Pick lookup representatives from size-sorted torrents.

    Same-size torrents with the same content path are most likely cross-seeds
    of each other, so only the first of them is looked up.
    """
    hashes: List[str] = []
    bucket_size: int | None = None
    bucket_paths: set[str] = set()
    for torrent in torrents:
        if torrent.size != bucket_size:
            bucket_size = torrent.size
            bucket_paths = {torrent.content_path}
            hashes.append(torrent.info_hash)
        elif torrent.content_path not in bucket_paths:
            bucket_paths.add(torrent.content_path)
            hashes.append(torrent.info_hash)
    return hashes


def scan_client(client_name: str, torrents: Iterable[LocalTorrent], filters: ScanFilters) -> ScanResult:
    ordered = sort_torrents(torrents)
    return ScanResult(
        client_name=client_name,
        candidates=[torrent.info_hash for torrent in ordered if filters.accepts(torrent)],
        request_hashes=build_request_hashes(ordered),
    )


def merge_request_hashes(results: Iterable[ScanResult]) -> List[str]:
    return list(dict.fromkeys(info_hash for result in results for info_hash in result.request_hashes))
