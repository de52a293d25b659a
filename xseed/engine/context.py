"""Run-scoped state passed through the xseed pipeline."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Callable, Dict, List

from xseed.config import TrackerConfig
from xseed.engine.breaker import SiteCircuitBreaker
from xseed.engine.scanner import SiteFilter
from xseed.engine.types import RunCounters
from xseed.exceptions import ConfigError
from xseed.iyuu.types import CandidateRecord
from xseed.sites.protocols import TrackerSite


@dataclass
class RunContext:
    """Everything one run mutates; discarded when the run ends."""

    breaker: SiteCircuitBreaker
    site_filter: SiteFilter
    trackers: Dict[str, TrackerConfig]
    site_factory: Callable[[TrackerConfig], TrackerSite]
    max_torrents: int = -1
    counters: RunCounters = field(default_factory=RunCounters)
    site_map: Dict[int, str] = field(default_factory=dict)
    candidate_map: Dict[str, List[CandidateRecord]] = field(default_factory=dict)
    evaluated: set[str] = field(default_factory=set)
    sites: Dict[str, TrackerSite] = field(default_factory=dict)

    @property
    def budget_reached(self) -> bool:
        return self.max_torrents >= 0 and self.counters.injection_successes >= self.max_torrents

    def site_for(self, site_name: str) -> TrackerSite:
        site = self.sites.get(site_name)
        if site is None:
            tracker = self.trackers.get(site_name)
            if tracker is None:
                raise ConfigError(f"No enabled tracker configuration named {site_name}")
            site = self.site_factory(tracker)
            self.sites[site_name] = site
        return site

    async def close_sites(self) -> None:
        sites = list(self.sites.values())
        self.sites.clear()
        for site in sites:
            await site.close()
