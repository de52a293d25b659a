from __future__ import annotations

import pytest

from xseed import rate_limits


@pytest.mark.asyncio
async def test_site_rate_limit_waits_for_same_server(monkeypatch: pytest.MonkeyPatch) -> None:
    rate_limits._reset_site_rate_limits_for_tests()
    clock = {"now": 100.0}
    waits: list[float] = []

    monkeypatch.setattr(rate_limits.time, "monotonic", lambda: clock["now"])

    async def _fake_sleep(delay: float) -> None:
        waits.append(delay)
        clock["now"] += delay

    monkeypatch.setattr(rate_limits.asyncio, "sleep", _fake_sleep)

    first_wait = await rate_limits.enforce_site_min_interval("https://hdsky.me/")
    second_wait = await rate_limits.enforce_site_min_interval("https://HDSKY.me")

    assert first_wait == 0.0
    assert second_wait == pytest.approx(rate_limits.SITE_MIN_INTERVAL_SECONDS)
    assert waits == [pytest.approx(rate_limits.SITE_MIN_INTERVAL_SECONDS)]


@pytest.mark.asyncio
async def test_site_rate_limit_does_not_cross_throttle_servers(
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    rate_limits._reset_site_rate_limits_for_tests()
    clock = {"now": 200.0}
    waits: list[float] = []

    monkeypatch.setattr(rate_limits.time, "monotonic", lambda: clock["now"])

    async def _fake_sleep(delay: float) -> None:
        waits.append(delay)
        clock["now"] += delay

    monkeypatch.setattr(rate_limits.asyncio, "sleep", _fake_sleep)

    first = await rate_limits.enforce_site_min_interval("https://hdsky.me")
    second = await rate_limits.enforce_site_min_interval("https://ourbits.club")

    assert first == 0.0
    assert second == 0.0
    assert waits == []


@pytest.mark.asyncio
async def test_site_rate_limit_skips_wait_after_interval_elapsed(monkeypatch: pytest.MonkeyPatch) -> None:
    rate_limits._reset_site_rate_limits_for_tests()
    clock = {"now": 300.0}

    monkeypatch.setattr(rate_limits.time, "monotonic", lambda: clock["now"])

    async def _unexpected_sleep(delay: float) -> None:
        raise AssertionError(f"unexpected sleep {delay}")

    monkeypatch.setattr(rate_limits.asyncio, "sleep", _unexpected_sleep)

    await rate_limits.enforce_site_min_interval("https://hdsky.me", min_interval_seconds=2.0)
    clock["now"] += 5.0
    wait = await rate_limits.enforce_site_min_interval("https://hdsky.me", min_interval_seconds=2.0)

    assert wait == 0.0
