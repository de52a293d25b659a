"""Shared data structures for the reseed identity service and its local mirror."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class CandidateRecord:
    """A torrent on another site that the service reports as identical to a local target."""

    target_info_hash: str
    info_hash: str
    sid: int
    tid: int


@dataclass(frozen=True)
class RegistrySite:
    """One entry of the service's site registry."""

    sid: int
    name: str
    nickname: str = ""
    url: str = ""
    download_page: str = ""
