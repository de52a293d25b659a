"""Shared data structures for download-client adapters."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterable, Optional

XSEED_TAG = "_xseed"
NOXSEED_TAG = "noxseed"
PRIVATE_TAG = "_private"
PUBLIC_TAG = "_public"
SITE_TAG_PREFIX = "site:"

STATE_SEEDING = "seeding"


def site_tag(site_name: str) -> str:
    """Return the identity tag a torrent carries for the tracker it was added from."""
    return f"{SITE_TAG_PREFIX}{site_name}"


@dataclass(frozen=True)
class TorrentFile:
    """One file of a torrent as laid out on disk, path relative to the save path."""

    path: str
    size: int


@dataclass(frozen=True)
class LocalTorrent:
    """Snapshot of a torrent held by a download client."""

    info_hash: str
    name: str
    size: int
    save_path: str
    content_path: str
    category: str = ""
    tags: frozenset[str] = field(default_factory=frozenset)
    state: str = ""
    last_active: int = 0
    tracker_domain: str = ""
    progress: float = 1.0

    @property
    def is_full_complete(self) -> bool:
        return self.progress >= 1.0

    def has_tag(self, tag: str) -> bool:
        return tag in self.tags

    def has_any_tag(self, tags: Iterable[str]) -> bool:
        return any(tag in self.tags for tag in tags)

    def site_from_tag(self) -> Optional[str]:
        """Return the tracker name recorded in a ``site:`` tag, if any."""
        for tag in sorted(self.tags):
            if tag.startswith(SITE_TAG_PREFIX) and len(tag) > len(SITE_TAG_PREFIX):
                return tag[len(SITE_TAG_PREFIX):]
        return None


@dataclass
class AddOptions:
    """Options for adding a torrent to a client."""

    save_path: str
    category: str = ""
    tags: list[str] = field(default_factory=list)
    paused: bool = False
    skip_checking: bool = True
    ratio_limit: float = 0.0
