"""Protocol definition for download clients."""

from __future__ import annotations

from typing import Protocol, Sequence

from xseed.clients.types import AddOptions, LocalTorrent, TorrentFile


class DownloadClient(Protocol):
    """Minimal download-client API used by the xseed engine."""

    name: str

    async def get_torrents(self) -> Sequence[LocalTorrent]:
        ...

    async def get_torrent(self, info_hash: str) -> LocalTorrent | None:
        ...

    async def get_torrent_files(self, info_hash: str) -> Sequence[TorrentFile]:
        ...

    async def add_torrent(self, data: bytes, options: AddOptions) -> None:
        ...

    async def modify_tags(
        self,
        info_hash: str,
        add: Sequence[str] = (),
        remove: Sequence[str] = (),
    ) -> None:
        ...

    async def close(self) -> None:
        ...
