from __future__ import annotations

from pathlib import Path

from xseed.iyuu.store import LAST_UPDATE_KEY, MirrorStore
from xseed.iyuu.types import CandidateRecord, RegistrySite


def _record(target: str, info_hash: str, sid: int = 1, tid: int = 10) -> CandidateRecord:
    return CandidateRecord(target_info_hash=target, info_hash=info_hash, sid=sid, tid=tid)


def test_replace_candidates_replaces_rows_per_target(tmp_path: Path) -> None:
    with MirrorStore(tmp_path / "xseed.db") as store:
        store.replace_candidates({"t1": [_record("t1", "a"), _record("t1", "b", sid=2)]})
        store.replace_candidates({"t1": [_record("t1", "c", sid=3, tid=30)]})

        loaded = store.load_candidates(["t1"])

    assert loaded == {"t1": [_record("t1", "c", sid=3, tid=30)]}


def test_replace_candidates_moves_candidate_between_targets(tmp_path: Path) -> None:
    with MirrorStore(tmp_path / "xseed.db") as store:
        store.replace_candidates({"t1": [_record("t1", "shared"), _record("t1", "only1")]})
        store.replace_candidates({"t2": [_record("t2", "shared", sid=5, tid=50)]})

        loaded = store.load_candidates(["t1", "t2"])

    assert loaded["t1"] == [_record("t1", "only1")]
    assert loaded["t2"] == [_record("t2", "shared", sid=5, tid=50)]


def test_replace_candidates_with_empty_list_clears_target(tmp_path: Path) -> None:
    with MirrorStore(tmp_path / "xseed.db") as store:
        store.replace_candidates({"t1": [_record("t1", "a")]})
        store.replace_candidates({"t1": []})

        assert store.load_candidates(["t1"]) == {}


def test_load_candidates_preserves_insert_order(tmp_path: Path) -> None:
    records = [_record("t1", h, tid=i) for i, h in enumerate(["z", "a", "m"])]
    with MirrorStore(tmp_path / "xseed.db") as store:
        store.replace_candidates({"t1": records})
        assert [r.info_hash for r in store.load_candidates(["t1"])["t1"]] == ["z", "a", "m"]


def test_sites_and_meta_round_trip_across_connections(tmp_path: Path) -> None:
    path = tmp_path / "xseed.db"
    with MirrorStore(path) as store:
        store.replace_sites([RegistrySite(sid=2, name="hdsky", url="https://hdsky.me")])
        store.set_meta(LAST_UPDATE_KEY, "100")
        store.set_meta(LAST_UPDATE_KEY, "200")

    with MirrorStore(path) as store:
        assert store.load_sites() == [RegistrySite(sid=2, name="hdsky", url="https://hdsky.me")]
        assert store.get_meta(LAST_UPDATE_KEY) == "200"
        assert store.get_meta("missing") is None


def test_replace_sites_drops_stale_entries(tmp_path: Path) -> None:
    with MirrorStore(tmp_path / "xseed.db") as store:
        store.replace_sites([RegistrySite(sid=1, name="old"), RegistrySite(sid=2, name="hdsky")])
        store.replace_sites([RegistrySite(sid=2, name="hdsky")])

        assert [site.sid for site in store.load_sites()] == [2]
