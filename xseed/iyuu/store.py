"""SQLite mirror of the reseed service's candidate map and site registry."""

from __future__ import annotations

import sqlite3
from pathlib import Path
from typing import Dict, Iterable, List, Mapping, Optional, Sequence

from xseed.iyuu.types import CandidateRecord, RegistrySite

LAST_UPDATE_KEY = "lastUpdateTime"
# SQLite's default variable limit is 999 on older builds.
_IN_CLAUSE_CHUNK = 500

_SCHEMA = (
    """
    CREATE TABLE IF NOT EXISTS torrents (
        info_hash TEXT NOT NULL,
        target_info_hash TEXT NOT NULL,
        sid INTEGER NOT NULL,
        tid INTEGER NOT NULL
    )
    """,
    "CREATE INDEX IF NOT EXISTS idx_torrents_target ON torrents (target_info_hash)",
    "CREATE INDEX IF NOT EXISTS idx_torrents_info_hash ON torrents (info_hash)",
    """
    CREATE TABLE IF NOT EXISTS sites (
        sid INTEGER PRIMARY KEY,
        name TEXT NOT NULL,
        nickname TEXT NOT NULL DEFAULT '',
        url TEXT NOT NULL DEFAULT '',
        download_page TEXT NOT NULL DEFAULT ''
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS meta (
        key TEXT PRIMARY KEY,
        value TEXT NOT NULL
    )
    """,
)


def _chunks(values: Sequence[str], size: int = _IN_CLAUSE_CHUNK) -> Iterable[Sequence[str]]:
    for start in range(0, len(values), size):
        yield values[start:start + size]


class MirrorStore:
    """Local cache accessed by one run at a time."""

    def __init__(self, path: Path | str):
        self.path = path
        self.db = sqlite3.connect(str(path))
        self.ensure_schema()

    def ensure_schema(self) -> None:
        with self.db:
            for statement in _SCHEMA:
                self.db.execute(statement)

    def replace_candidates(self, mapping: Mapping[str, Sequence[CandidateRecord]]) -> None:
        """
        Replace the candidate rows of every target hash in ``mapping`` in one transaction.

        Rows whose info hash equals one of the new candidates are dropped as well,
        so a torrent that moved to another target never shows up twice.
        """
        with self.db:
            for target_hash, records in mapping.items():
                self.db.execute("DELETE FROM torrents WHERE target_info_hash = ?", (target_hash,))
                candidate_hashes = [record.info_hash for record in records]
                for chunk in _chunks(candidate_hashes):
                    placeholders = ",".join("?" * len(chunk))
                    self.db.execute(f"DELETE FROM torrents WHERE info_hash IN ({placeholders})", tuple(chunk))
                self.db.executemany(
                    "INSERT INTO torrents (info_hash, target_info_hash, sid, tid) VALUES (?, ?, ?, ?)",
                    [(record.info_hash, target_hash, record.sid, record.tid) for record in records],
                )

    def load_candidates(self, target_hashes: Sequence[str]) -> Dict[str, List[CandidateRecord]]:
        grouped: Dict[str, List[CandidateRecord]] = {}
        for chunk in _chunks(list(target_hashes)):
            placeholders = ",".join("?" * len(chunk))
            rows = self.db.execute(
                "SELECT info_hash, target_info_hash, sid, tid FROM torrents "
                f"WHERE target_info_hash IN ({placeholders}) ORDER BY rowid",
                tuple(chunk),
            ).fetchall()
            for info_hash, target_hash, sid, tid in rows:
                grouped.setdefault(target_hash, []).append(
                    CandidateRecord(target_info_hash=target_hash, info_hash=info_hash, sid=sid, tid=tid)
                )
        return grouped

    def replace_sites(self, sites: Sequence[RegistrySite]) -> None:
        with self.db:
            self.db.execute("DELETE FROM sites")
            self.db.executemany(
                "INSERT OR REPLACE INTO sites (sid, name, nickname, url, download_page) VALUES (?, ?, ?, ?, ?)",
                [(site.sid, site.name, site.nickname, site.url, site.download_page) for site in sites],
            )

    def load_sites(self) -> List[RegistrySite]:
        rows = self.db.execute("SELECT sid, name, nickname, url, download_page FROM sites ORDER BY sid").fetchall()
        return [
            RegistrySite(sid=sid, name=name, nickname=nickname, url=url, download_page=download_page)
            for sid, name, nickname, url, download_page in rows
        ]

    def get_meta(self, key: str) -> Optional[str]:
        row = self.db.execute("SELECT value FROM meta WHERE key = ?", (key,)).fetchone()
        return row[0] if row else None

    def set_meta(self, key: str, value: str) -> None:
        with self.db:
            self.db.execute(
                "INSERT INTO meta (key, value) VALUES (?, ?) ON CONFLICT(key) DO UPDATE SET value = excluded.value",
                (key, value),
            )

    def close(self) -> None:
        self.db.close()

    def __enter__(self):
        return self

    def __exit__(self, *args):
        self.close()
