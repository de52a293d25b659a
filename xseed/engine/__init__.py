"""Cross-seed matching and injection engine."""

from .breaker import SiteCircuitBreaker
from .context import RunContext
from .injector import Injector
from .runner import CandidateStatus, XseedRunner
from .scanner import ScanFilters, ScanResult, SiteFilter, build_request_hashes, scan_client, sort_torrents
from .types import ContentDescriptor, MatchOutcome, RunCounters
from .verifier import compare_file_lists, decode_torrent

__all__ = [
    "CandidateStatus",
    "ContentDescriptor",
    "Injector",
    "MatchOutcome",
    "RunContext",
    "RunCounters",
    "ScanFilters",
    "ScanResult",
    "SiteCircuitBreaker",
    "SiteFilter",
    "XseedRunner",
    "build_request_hashes",
    "compare_file_lists",
    "decode_torrent",
    "scan_client",
    "sort_torrents",
]
