"""Tracker-site adapters and the factory that picks one per configured tracker."""

from __future__ import annotations

from typing import Callable, Dict

from xseed.config import TrackerConfig
from xseed.exceptions import ConfigError
from xseed.sites.nexusphp import NexusphpSite
from xseed.sites.protocols import TrackerSite

_SITE_FACTORIES: Dict[str, Callable[[TrackerConfig], TrackerSite]] = {
    "nexusphp": NexusphpSite,
}


def create_site(tracker: TrackerConfig) -> TrackerSite:
    factory = _SITE_FACTORIES.get(tracker.type.strip().lower())
    if factory is None:
        supported = ", ".join(sorted(_SITE_FACTORIES))
        raise ConfigError(f"Unsupported site type '{tracker.type}' for {tracker.name}. Supported: {supported}.")
    return factory(tracker)


__all__ = ["NexusphpSite", "TrackerSite", "create_site"]
