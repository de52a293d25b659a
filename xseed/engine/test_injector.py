from __future__ import annotations

import asyncio

import pytest

from xseed.clients.types import PRIVATE_TAG, PUBLIC_TAG, XSEED_TAG, AddOptions, LocalTorrent, TorrentFile
from xseed.engine import injector as injector_mod
from xseed.engine.breaker import SiteCircuitBreaker
from xseed.engine.context import RunContext
from xseed.engine.injector import Injector, reconcile_tag_changes
from xseed.engine.scanner import SiteFilter
from xseed.engine.types import ContentDescriptor
from xseed.exceptions import ClientRequestError


class _FakeLog:
    def __init__(self) -> None:
        self.lines: list[str] = []

    def info(self, msg: str) -> None:
        self.lines.append(msg)

    def debug(self, msg: str) -> None:
        return None

    def error(self, msg: str) -> None:
        self.lines.append(msg)


class _FakeClient:
    name = "local"

    def __init__(self, *, add_error: Exception | None = None, tag_error: Exception | None = None) -> None:
        self.add_error = add_error
        self.tag_error = tag_error
        self.added: list[tuple[bytes, AddOptions]] = []
        self.tag_calls: list[tuple[str, list[str], list[str]]] = []

    async def add_torrent(self, data: bytes, options: AddOptions) -> None:
        if self.add_error is not None:
            raise self.add_error
        self.added.append((data, options))

    async def modify_tags(self, info_hash: str, add=(), remove=()) -> None:
        if self.tag_error is not None:
            raise self.tag_error
        self.tag_calls.append((info_hash, list(add), list(remove)))


@pytest.fixture
def fake_log(monkeypatch: pytest.MonkeyPatch) -> _FakeLog:
    log = _FakeLog()
    monkeypatch.setattr(injector_mod.logger, "get_logger", lambda: log)
    return log


def _context(max_torrents: int = -1) -> RunContext:
    return RunContext(
        breaker=SiteCircuitBreaker(),
        site_filter=SiteFilter(),
        trackers={},
        site_factory=lambda tracker: None,
        max_torrents=max_torrents,
    )


TARGET = LocalTorrent(
    info_hash="target",
    name="Show.S01",
    size=300,
    save_path="/data/tv",
    content_path="/data/tv/Show.S01",
    category="tv",
)
PRIVATE = ContentDescriptor(name="Show.S01", is_private=True, files=(TorrentFile("Show.S01/a.mkv", 300),))
PUBLIC = ContentDescriptor(name="Show.S01", is_private=False, files=PRIVATE.files)


def test_reconcile_tag_changes_replaces_foreign_site_tag() -> None:
    existing = LocalTorrent(
        info_hash="x",
        name="x",
        size=1,
        save_path="/",
        content_path="/x",
        tags=frozenset({"site:old", "keep"}),
    )

    assert reconcile_tag_changes(existing, "hdsky") == ([XSEED_TAG, "site:hdsky"], ["site:old"])


def test_reconcile_tag_changes_noop_when_already_marked() -> None:
    existing = LocalTorrent(
        info_hash="x",
        name="x",
        size=1,
        save_path="/",
        content_path="/x",
        tags=frozenset({XSEED_TAG, "site:hdsky"}),
    )

    assert reconcile_tag_changes(existing, "hdsky") == ([], [])


def test_build_add_options_for_private_and_public() -> None:
    injector = Injector(add_paused=True, fixed_tags=["mine", XSEED_TAG], public_ratio_limit=1.5)

    private = injector.build_add_options(TARGET, PRIVATE, "hdsky")
    public = injector.build_add_options(TARGET, PUBLIC, "hdsky")

    assert private.save_path == "/data/tv"
    assert private.category == "tv"
    assert private.tags == [XSEED_TAG, "site:hdsky", "mine", PRIVATE_TAG]
    assert private.paused
    assert private.skip_checking
    assert private.ratio_limit == 0.0
    assert public.tags[-1] == PUBLIC_TAG
    assert public.ratio_limit == 1.5


def test_build_add_options_category_override_and_check() -> None:
    options = Injector(check=True, add_category="xseed").build_add_options(TARGET, PRIVATE, "hdsky")

    assert options.category == "xseed"
    assert not options.skip_checking


def test_inject_adds_and_counts(fake_log: _FakeLog) -> None:
    ctx = _context()
    client = _FakeClient()

    ok = asyncio.run(Injector().inject(ctx, client, TARGET, "cand", PRIVATE, b"data", "hdsky"))

    assert ok
    assert client.added[0][0] == b"data"
    assert (ctx.counters.injection_attempts, ctx.counters.injection_successes) == (1, 1)
    assert "Add xseed torrent cand result: error=None" in fake_log.lines


def test_inject_dry_run_counts_without_calling_client(fake_log: _FakeLog) -> None:
    ctx = _context()
    client = _FakeClient()

    ok = asyncio.run(Injector(dry_run=True).inject(ctx, client, TARGET, "cand", PRIVATE, b"data", "hdsky"))

    assert ok
    assert client.added == []
    assert (ctx.counters.injection_attempts, ctx.counters.injection_successes) == (1, 1)


def test_inject_client_rejection_counts_attempt_only(fake_log: _FakeLog) -> None:
    ctx = _context()
    client = _FakeClient(add_error=ClientRequestError("Fails."))

    ok = asyncio.run(Injector().inject(ctx, client, TARGET, "cand", PRIVATE, b"data", "hdsky"))

    assert not ok
    assert (ctx.counters.injection_attempts, ctx.counters.injection_successes) == (1, 0)
    assert "Add xseed torrent cand result: error=Fails." in fake_log.lines


def test_inject_logs_when_budget_reached(fake_log: _FakeLog) -> None:
    ctx = _context(max_torrents=1)

    asyncio.run(Injector().inject(ctx, _FakeClient(), TARGET, "cand", PRIVATE, b"data", "hdsky"))

    assert ctx.budget_reached
    assert any("Reached the limit of 1" in line for line in fake_log.lines)


def test_reconcile_tags_calls_client_once(fake_log: _FakeLog) -> None:
    existing = LocalTorrent(info_hash="held", name="x", size=1, save_path="/", content_path="/x")
    client = _FakeClient()

    assert asyncio.run(Injector().reconcile_tags(client, existing, "hdsky"))
    assert client.tag_calls == [("held", [XSEED_TAG, "site:hdsky"], [])]


def test_reconcile_tags_dry_run_and_failure(fake_log: _FakeLog) -> None:
    existing = LocalTorrent(info_hash="held", name="x", size=1, save_path="/", content_path="/x")
    dry_client = _FakeClient()
    failing_client = _FakeClient(tag_error=ClientRequestError("nope"))

    assert asyncio.run(Injector(dry_run=True).reconcile_tags(dry_client, existing, "hdsky"))
    assert dry_client.tag_calls == []
    assert not asyncio.run(Injector().reconcile_tags(failing_client, existing, "hdsky"))
