from __future__ import annotations

from pathlib import Path

import pytest

from xseed import config
from xseed.exceptions import ConfigError


def test_parse_size_handles_binary_and_decimal_units() -> None:
    assert config.parse_size("1GiB") == 1024 ** 3
    assert config.parse_size("500MB") == 500 * 1000 ** 2
    assert config.parse_size("1.5 kib") == 1536
    assert config.parse_size("42") == 42
    assert config.parse_size(7) == 7


def test_parse_size_negative_means_unbounded() -> None:
    assert config.parse_size("-1") == -1
    assert config.parse_size("-5GiB") == -1


@pytest.mark.parametrize("value", ["", "abc", "10 parsecs"])
def test_parse_size_rejects_garbage(value: str) -> None:
    with pytest.raises(ConfigError):
        config.parse_size(value)


def test_split_csv_drops_blanks() -> None:
    assert config.split_csv(" a, ,b,,c ") == ["a", "b", "c"]
    assert config.split_csv("") == []


def test_options_normalize_request_server_and_sizes() -> None:
    options = config.XseedOptions(request_server=True, min_torrent_size="1MiB")
    assert options.request_server == "yes"
    assert config.XseedOptions(request_server=" AUTO ").request_server == "auto"
    assert options.min_size_bytes == 1024 ** 2
    assert options.max_size_bytes == -1


def test_options_reject_unknown_request_server_mode() -> None:
    with pytest.raises(ConfigError):
        config.XseedOptions(request_server="sometimes")


def test_options_reject_include_and_exclude_together() -> None:
    options = config.XseedOptions(include_sites=["a"], exclude_sites=["b"])
    with pytest.raises(ConfigError):
        options.validate_sites()


def test_expand_site_names_resolves_groups_and_all() -> None:
    cfg = config.XseedConfig(
        trackers={
            "hdsky": config.TrackerConfig(name="hdsky", url="https://hdsky.me"),
            "ourbits": config.TrackerConfig(name="ourbits", url="https://ourbits.club"),
            "old": config.TrackerConfig(name="old", url="https://old.example", disabled=True),
        },
        groups={"fav": config.GroupConfig(name="fav", sites=["ourbits", "hdsky"])},
    )

    assert cfg.expand_site_names(["fav", "hdsky", "other"]) == ["ourbits", "hdsky", "other"]
    assert cfg.expand_site_names([config.ALL_SITES_GROUP]) == ["hdsky", "ourbits"]


def test_load_config_reads_sections_and_resolves_db_path(tmp_path: Path) -> None:
    path = tmp_path / "xseed.toml"
    path.write_text(
        """
db_path = "cache/xseed.db"
public_ratio_limit = 2.5

[iyuu]
token = "IYUU123"

[clients.local]
url = "http://localhost:8080"
username = "admin"
password = "secret"

[trackers.hdsky]
url = "https://hdsky.me"
passkey = "abc"

[groups.fav]
sites = ["hdsky"]
""",
        encoding="utf-8",
    )

    cfg = config.load_config(path)

    assert cfg.iyuu.token == "IYUU123"
    assert cfg.iyuu.server == config.DEFAULT_IYUU_SERVER
    assert cfg.clients["local"].name == "local"
    assert cfg.clients["local"].type == "qbittorrent"
    assert cfg.trackers["hdsky"].passkey == "abc"
    assert cfg.groups["fav"].sites == ["hdsky"]
    assert cfg.public_ratio_limit == 2.5
    assert cfg.db_path == tmp_path / "cache" / "xseed.db"
    assert cfg.config_path == path


def test_load_config_missing_file_exits(tmp_path: Path) -> None:
    with pytest.raises(SystemExit) as exc_info:
        config.load_config(tmp_path / "missing.toml")
    assert exc_info.value.code == 1
