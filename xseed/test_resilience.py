from __future__ import annotations

import asyncio

import pytest

from xseed import resilience
from xseed.exceptions import IdentityServiceError


def test_envelope_data_unwraps_success() -> None:
    assert resilience.envelope_data({"code": 0, "data": {"sid_sha1": "x"}}, "IYUU test") == {"sid_sha1": "x"}
    assert resilience.envelope_data({"code": "0", "data": None}, "IYUU test") == {}


def test_envelope_data_raises_on_error_code() -> None:
    with pytest.raises(IdentityServiceError, match="code=400 token invalid"):
        resilience.envelope_data({"code": 400, "msg": "token invalid"}, "IYUU test")


def test_non_object_payload_is_retryable() -> None:
    with pytest.raises(ValueError) as exc_info:
        resilience.envelope_data("<html>maintenance</html>", "IYUU test")
    assert resilience.is_retryable_exception(exc_info.value)


def test_optional_list_of_dicts_rejects_wrong_shapes() -> None:
    assert resilience.optional_list_of_dicts({}, "sites", "ctx") == []
    with pytest.raises(ValueError):
        resilience.optional_list_of_dicts({"sites": {"a": 1}}, "sites", "ctx")
    with pytest.raises(ValueError):
        resilience.optional_list_of_dicts({"sites": [1]}, "sites", "ctx")


def test_run_with_retries_retries_transient_errors(monkeypatch: pytest.MonkeyPatch) -> None:
    calls = {"count": 0}
    sleeps: list[float] = []
    retries: list[tuple[int, int, int]] = []

    async def _flaky() -> str:
        calls["count"] += 1
        if calls["count"] < 3:
            raise asyncio.TimeoutError()
        return "ok"

    async def _record_sleep(delay: float) -> None:
        sleeps.append(delay)

    monkeypatch.setattr(resilience.asyncio, "sleep", _record_sleep)

    result = asyncio.run(
        resilience.run_with_retries(
            _flaky,
            max_attempts=3,
            on_retry=lambda attempt, max_attempts, delay, _exc: retries.append((attempt, max_attempts, delay)),
        )
    )

    assert result == "ok"
    assert sleeps == [2, 4]
    assert retries == [(1, 3, 2), (2, 3, 4)]


def test_run_with_retries_does_not_retry_application_errors(monkeypatch: pytest.MonkeyPatch) -> None:
    calls = {"count": 0}

    async def _fails() -> None:
        calls["count"] += 1
        raise IdentityServiceError("nope")

    async def _no_sleep(_delay: float) -> None:
        return None

    monkeypatch.setattr(resilience.asyncio, "sleep", _no_sleep)

    with pytest.raises(IdentityServiceError):
        asyncio.run(resilience.run_with_retries(_fails, max_attempts=3))
    assert calls["count"] == 1
