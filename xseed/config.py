"""
config.py - Configuration model for xseed
"""

import re
import sys
from pathlib import Path
from typing import Dict, List, Literal, Optional

from pydantic import BaseModel, Field, field_validator
from rich.console import Console

try:
    import tomllib
except ModuleNotFoundError:
    import tomli as tomllib

from xseed.exceptions import ConfigError

console = Console()

NONE = "none"
ALL_SITES_GROUP = "_all"
DEFAULT_CONFIG_PATH = Path("xseed.toml")
DEFAULT_DB_PATH = Path("xseed.db")
DEFAULT_IYUU_SERVER = "https://2025.iyuu.cn"
DEFAULT_STALE_SECONDS = 7200

_SIZE_UNITS = {
    "": 1,
    "b": 1,
    "k": 1000,
    "kb": 1000,
    "kib": 1024,
    "m": 1000 ** 2,
    "mb": 1000 ** 2,
    "mib": 1024 ** 2,
    "g": 1000 ** 3,
    "gb": 1000 ** 3,
    "gib": 1024 ** 3,
    "t": 1000 ** 4,
    "tb": 1000 ** 4,
    "tib": 1024 ** 4,
}
_SIZE_RE = re.compile(r"^\s*(-?\d+(?:\.\d+)?)\s*([a-zA-Z]*)\s*$")


def parse_size(value: str | int) -> int:
    """Parse a human size such as ``1GiB`` or ``500MB``; negative means unbounded."""
    if isinstance(value, int):
        return value
    match = _SIZE_RE.match(value or "")
    if not match:
        raise ConfigError(f"Invalid size value: {value!r}")
    number, unit = match.groups()
    multiplier = _SIZE_UNITS.get(unit.lower())
    if multiplier is None:
        raise ConfigError(f"Invalid size unit in {value!r}")
    amount = float(number)
    if amount < 0:
        return -1
    return int(amount * multiplier)


def split_csv(value: str) -> List[str]:
    return [item.strip() for item in (value or "").split(",") if item.strip()]


class IyuuConfig(BaseModel):
    token: str = ""
    server: str = DEFAULT_IYUU_SERVER
    max_batch_size: int = Field(
        default=100,
        description="Maximum number of info hashes sent in one lookup request",
    )
    timeout: int = 30


class ClientConfig(BaseModel):
    name: str
    type: str = "qbittorrent"
    url: str
    username: str = ""
    password: str = ""
    disabled: bool = False


class TrackerConfig(BaseModel):
    name: str
    type: str = "nexusphp"
    url: str
    domains: List[str] = Field(default_factory=list)
    cookie: str = ""
    passkey: str = ""
    download_url: str = Field(
        default="download.php?id={id}",
        description="Torrent download path relative to url; {id} is replaced by the torrent id",
    )
    user_agent: str = ""
    timeout: int = 10
    disabled: bool = False


class GroupConfig(BaseModel):
    name: str
    sites: List[str] = Field(default_factory=list)


class XseedConfig(BaseModel):
    iyuu: IyuuConfig = Field(default_factory=IyuuConfig)
    clients: Dict[str, ClientConfig] = Field(default_factory=dict)
    trackers: Dict[str, TrackerConfig] = Field(default_factory=dict)
    groups: Dict[str, GroupConfig] = Field(default_factory=dict)
    public_ratio_limit: float = Field(
        default=0.0,
        description="Share ratio limit applied to public xseed torrents; 0 leaves the client default",
    )
    db_path: Path = DEFAULT_DB_PATH
    config_path: Optional[Path] = None

    @property
    def trackers_enabled(self) -> List[TrackerConfig]:
        return [tracker for tracker in self.trackers.values() if not tracker.disabled]

    def expand_site_names(self, names: List[str]) -> List[str]:
        """Expand group names (and ``_all``) to tracker names, de-duplicated in order."""
        expanded: List[str] = []
        for name in names:
            if name == ALL_SITES_GROUP:
                expanded.extend(tracker.name for tracker in self.trackers_enabled)
            elif name in self.groups:
                expanded.extend(self.groups[name].sites)
            else:
                expanded.append(name)
        return list(dict.fromkeys(expanded))


RequestServerMode = Literal["yes", "no", "auto"]


class XseedOptions(BaseModel):
    """Per-run options consumed by the xseed engine."""

    dry_run: bool = False
    add_paused: bool = False
    check: bool = Field(default=False, description="Let the client hash-check added torrents")
    slow_mode: bool = False
    max_torrents: int = Field(default=-1, description="Successful injection budget; -1 = no limit")
    max_consecutive_fail: int = Field(
        default=3,
        description="Skip a site after more consecutive download failures than this; -1 = never skip",
    )
    include_sites: List[str] = Field(default_factory=list)
    exclude_sites: List[str] = Field(default_factory=list)
    category: str = ""
    tag: str = ""
    filter: str = ""
    add_category: str = ""
    add_tags: List[str] = Field(default_factory=list)
    min_torrent_size: str = "1GiB"
    max_torrent_size: str = "-1"
    request_server: RequestServerMode = "auto"
    stale_seconds: int = DEFAULT_STALE_SECONDS
    slow_mode_delay: float = 3.0

    @field_validator("request_server", mode="before")
    @classmethod
    def _normalize_request_server(cls, value):
        if isinstance(value, bool):
            return "yes" if value else "no"
        mode = str(value).strip().lower()
        if mode not in ("yes", "no", "auto"):
            raise ConfigError(f"Invalid request_server value: {value!r} (expected yes, no or auto)")
        return mode

    def validate_sites(self) -> None:
        if self.include_sites and self.exclude_sites:
            raise ConfigError("--include-sites and --exclude-sites can NOT be both set")

    @property
    def min_size_bytes(self) -> int:
        return parse_size(self.min_torrent_size)

    @property
    def max_size_bytes(self) -> int:
        return parse_size(self.max_torrent_size)


def load_config(config_path: Path) -> XseedConfig:
    """Load configuration from TOML file"""

    if not config_path.exists():
        console.print(f"[red][ERROR][/red] Configuration file not found: {config_path}")
        console.print("Please create xseed.toml with your clients, trackers and IYUU token")
        sys.exit(1)

    try:
        with open(config_path, "rb") as f:
            config_data = tomllib.load(f)

        db_path = Path(config_data.get("db_path", DEFAULT_DB_PATH))
        if not db_path.is_absolute():
            db_path = config_path.parent / db_path

        config = XseedConfig(
            iyuu=IyuuConfig(**config_data.get("iyuu", {})),
            clients={
                name: ClientConfig(**{"name": name, **client_data})
                for name, client_data in config_data.get("clients", {}).items()
            },
            trackers={
                name: TrackerConfig(**{"name": name, **tracker_data})
                for name, tracker_data in config_data.get("trackers", {}).items()
            },
            groups={
                name: GroupConfig(**{"name": name, **group_data})
                for name, group_data in config_data.get("groups", {}).items()
            },
            public_ratio_limit=config_data.get("public_ratio_limit", 0.0),
            db_path=db_path,
            config_path=config_path,
        )

        return config

    except Exception as e:
        console.print(f"[red][ERROR][/red] Error loading configuration: {e}")
        sys.exit(1)
