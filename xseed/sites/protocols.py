"""Protocol definition for tracker sites."""

from __future__ import annotations

from typing import Protocol


class TrackerSite(Protocol):
    """Minimal tracker API used by the xseed engine.

    Implementations raise ``TorrentNotFoundError`` when the tracker reports the
    torrent as missing and ``SiteDownloadError`` for every other failure.
    """

    name: str

    async def download_torrent_by_id(self, torrent_id: int) -> bytes:
        ...

    async def close(self) -> None:
        ...
