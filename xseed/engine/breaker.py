"""Per-site consecutive download failure tracking."""

from __future__ import annotations

from collections import defaultdict

from xseed import logger


class SiteCircuitBreaker:
    """Stops download attempts against a site after too many consecutive failures.

    A threshold below zero disables the breaker. A site is skipped once its
    failure count is strictly greater than the threshold. Not-found responses
    and successes reset the count. State lives only as long as the instance.
    """

    def __init__(self, max_consecutive_fail: int = 3) -> None:
        self.max_consecutive_fail = max_consecutive_fail
        self.failures: defaultdict[str, int] = defaultdict(int)

    @property
    def enabled(self) -> bool:
        return self.max_consecutive_fail >= 0

    def is_open(self, site_name: str) -> bool:
        return self.enabled and self.failures[site_name] > self.max_consecutive_fail

    def record_failure(self, site_name: str) -> bool:
        """Count a failure; return True when this failure trips the breaker."""
        self.failures[site_name] += 1
        tripped = self.enabled and self.failures[site_name] == self.max_consecutive_fail + 1
        if tripped:
            logger.error(
                f"Site {site_name} has consecutively failed (to download torrent) too many times, skip it from now"
            )
        return tripped

    def record_not_found(self, site_name: str) -> None:
        self.failures[site_name] = 0

    def record_success(self, site_name: str) -> None:
        self.failures[site_name] = 0
