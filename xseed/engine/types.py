"""Shared data structures for the xseed engine."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Tuple

from xseed.clients.types import TorrentFile


class MatchOutcome(Enum):
    """Result of comparing a candidate torrent with a local torrent's files."""

    FULL_MATCH = "full_match"
    ROOT_FOLDER_MISMATCH_ONLY = "root_folder_mismatch_only"
    NO_MATCH = "no_match"


@dataclass(frozen=True)
class ContentDescriptor:
    """Structural summary of a decoded .torrent file."""

    name: str
    is_private: bool
    files: Tuple[TorrentFile, ...] = field(default_factory=tuple)

    @property
    def size(self) -> int:
        return sum(entry.size for entry in self.files)


@dataclass
class RunCounters:
    """Run-wide tallies reported at the end of a run."""

    candidates_considered: int = 0
    targets_touched: int = 0
    injection_attempts: int = 0
    injection_successes: int = 0
