"""Download-client adapters and the factory that picks one per configured client."""

from __future__ import annotations

from typing import Callable, Dict

from xseed.clients.protocols import DownloadClient
from xseed.clients.qbittorrent import QbittorrentClient
from xseed.clients.types import AddOptions, LocalTorrent, TorrentFile
from xseed.config import ClientConfig
from xseed.exceptions import ConfigError

_CLIENT_FACTORIES: Dict[str, Callable[[ClientConfig], DownloadClient]] = {
    "qbittorrent": QbittorrentClient,
}


def create_client(client: ClientConfig) -> DownloadClient:
    factory = _CLIENT_FACTORIES.get(client.type.strip().lower())
    if factory is None:
        supported = ", ".join(sorted(_CLIENT_FACTORIES))
        raise ConfigError(f"Unsupported client type '{client.type}' for {client.name}. Supported: {supported}.")
    return factory(client)


__all__ = [
    "AddOptions",
    "DownloadClient",
    "LocalTorrent",
    "QbittorrentClient",
    "TorrentFile",
    "create_client",
]
