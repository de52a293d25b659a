from __future__ import annotations

import xseed.logger as xseed_logger


def test_api_wait_debug_drops_when_debug_disabled(monkeypatch):
    log = xseed_logger.XseedLogger(debug=False)
    captured: list[tuple[str, str]] = []
    monkeypatch.setattr(log, "log", lambda msg, prefix="": captured.append((prefix, msg)))

    log.api_wait_debug("HDSKY", 0.321)

    assert captured == []


def test_api_wait_debug_emits_when_debug_enabled(monkeypatch):
    log = xseed_logger.XseedLogger(debug=True)
    captured: list[tuple[str, str]] = []
    monkeypatch.setattr(log, "log", lambda msg, prefix="": captured.append((prefix, msg)))

    log.api_wait_debug("OURBITS", 1.234)

    assert len(captured) == 1
    prefix, msg = captured[0]
    assert "[DEBUG]" in prefix
    assert "1.234s" in msg
    assert "OURBITS" in msg


def test_api_wait_logs_one_time_note_per_site(monkeypatch):
    log = xseed_logger.XseedLogger(debug=False)
    captured: list[tuple[str, str]] = []
    monkeypatch.setattr(log, "log", lambda msg, prefix="": captured.append((prefix, msg)))

    log.api_wait("hdsky", 1.8)
    log.api_wait("HDSKY", 2.2)
    log.api_wait("ourbits", 2.0)

    assert captured == [
        ("[INFO] ", "Request pacing active for HDSKY."),
        ("[INFO] ", "Request pacing active for OURBITS."),
    ]


def test_api_request_only_in_debug_mode(monkeypatch):
    quiet = xseed_logger.XseedLogger(debug=False)
    loud = xseed_logger.XseedLogger(debug=True)
    quiet_lines: list[str] = []
    loud_lines: list[str] = []
    monkeypatch.setattr(quiet, "log", lambda msg, prefix="": quiet_lines.append(msg))
    monkeypatch.setattr(loud, "log", lambda msg, prefix="": loud_lines.append(msg))

    quiet.api_request("GET", "https://tracker.example/download.php?id=1")
    loud.api_request("POST", "https://iyuu.example/reseed/index/index", {"sid_sha1": "abc"})

    assert quiet_lines == []
    assert loud_lines[0] == "API Request: POST https://iyuu.example/reseed/index/index"
    assert '"sid_sha1": "abc"' in loud_lines[1]


def test_error_and_warning_prefixes(monkeypatch):
    log = xseed_logger.XseedLogger(debug=False)
    captured: list[tuple[str, str]] = []
    monkeypatch.setattr(log, "log", lambda msg, prefix="": captured.append((prefix, msg)))

    log.warning("careful")
    log.error("broken")
    log.debug("hidden")

    assert captured == [("[WARNING] ", "careful"), ("[ERROR] ", "broken")]


def test_log_writes_plain_text_to_file(tmp_path, monkeypatch):
    out = tmp_path / "logs" / "xseed.log"
    log = xseed_logger.XseedLogger(log_file=out, debug=False)
    monkeypatch.setattr(log._console, "print", lambda *_args, **_kwargs: None)

    log.info("[site:hdsky] literal bracketed message")
    log.close()

    text = out.read_text(encoding="utf-8")
    assert "Started xseed" in text
    assert "[site:hdsky] literal bracketed message" in text
    assert "Ended session" in text


def test_module_helpers_use_global_logger(monkeypatch):
    log = xseed_logger.XseedLogger(debug=True)
    captured: list[tuple[str, str]] = []
    monkeypatch.setattr(log, "log", lambda msg, prefix="": captured.append((prefix, msg)))
    monkeypatch.setattr(xseed_logger, "_logger", None)

    xseed_logger.set_logger(log)
    xseed_logger.info("hello")
    xseed_logger.error("oops")

    assert xseed_logger.get_logger() is log
    assert captured == [("", "hello"), ("[ERROR] ", "oops")]
