"""Exception types shared across xseed components."""

from __future__ import annotations


class XseedError(Exception):
    """Base class for all xseed errors."""


class ConfigError(XseedError):
    """Raised for invalid configuration or option combinations."""


class MissingTokenError(ConfigError):
    """Raised when the reseed service token is not configured."""


class ClientUnavailableError(XseedError):
    """Raised when a download client cannot be reached or refuses login."""


class ClientRequestError(XseedError):
    """Raised when a download client rejects a request."""


class SiteDownloadError(XseedError):
    """Raised when a torrent file cannot be downloaded from a tracker."""

    def __init__(self, site: str, message: str, status: int | None = None) -> None:
        super().__init__(f"{site}: {message}")
        self.site = site
        self.status = status


class TorrentNotFoundError(SiteDownloadError):
    """The tracker reports that the requested torrent does not exist."""


class TorrentDecodeError(XseedError):
    """Raised when torrent bytes cannot be decoded into a content descriptor."""


class IdentityServiceError(XseedError):
    """Raised when the reseed identity service returns an error payload."""
