#!/usr/bin/env python3
"""
cli.py - Entry point for xseed
Cross seed torrents held in download clients using the IYUU reseed API.
"""

import argparse
import asyncio
import sys
import time
from pathlib import Path
from typing import List, Optional

from rich.console import Console
from rich.table import Table

from . import logger
from .config import XseedConfig, XseedOptions, load_config, split_csv
from .engine.runner import XseedRunner
from .engine.types import RunCounters
from .exceptions import ConfigError, MissingTokenError
from .iyuu.correlator import IdentityCorrelator
from .iyuu.service import IyuuServiceAdapter
from .iyuu.store import MirrorStore

console = Console()
DEFAULT_CONFIG_NAME = "xseed.toml"


def _ui_info(message: str) -> None:
    console.print(f"[cyan][INFO][/cyan] {message}")


def _ui_error(message: str) -> None:
    console.print(f"[red][ERROR][/red] {message}")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="xseed",
        description="Cross seed using the IYUU API. By default xseed torrents from all sites are added "
        "unless --include-sites or --exclude-sites is set.",
    )
    parser.add_argument("clients", nargs="+", metavar="CLIENT", help="Configured client names to xseed")
    parser.add_argument("-c", "--config", metavar="PATH", help=f"Path to {DEFAULT_CONFIG_NAME} (file or directory)")
    parser.add_argument("--log-file", metavar="PATH", help="Also write output to this file")
    parser.add_argument("--debug", action="store_true", help="Debug output with API calls and timestamps")
    parser.add_argument("-d", "--dry-run", action="store_true", help="Do NOT actually add xseed torrents to client")
    parser.add_argument("--slow", action="store_true", help="Slow mode. Wait after handling each xseed torrent")
    parser.add_argument("--add-paused", action="store_true", help="Add xseed torrents to client in paused state")
    parser.add_argument("--check", action="store_true", help="Let client do hash checking when adding xseed torrents")
    parser.add_argument("--max-torrents", type=int, default=-1, help="Number limit of xseed torrents added. -1 == no limit")
    parser.add_argument(
        "--max-consecutive-fail",
        type=int,
        default=3,
        help="Skip a site after this many consecutive download failures (404 does NOT count). -1 = never skip",
    )
    parser.add_argument("--include-sites", default="", help="Only add xseed torrents from these sites or groups (comma-separated)")
    parser.add_argument("--exclude-sites", default="", help="Do NOT add xseed torrents from these sites or groups (comma-separated)")
    parser.add_argument("--category", default="", help="Only xseed torrents of this category; \"none\" = uncategorized")
    parser.add_argument("--tag", default="", help="Only xseed torrents with any of these tags (comma-separated); \"none\" = untagged")
    parser.add_argument("--filter", default="", help="Only xseed torrents which name contains this")
    parser.add_argument("--add-category", default="", help="Category of added xseed torrents. Default is the original torrent's")
    parser.add_argument("--add-tags", default="", help="Extra tags of added xseed torrents (comma-separated)")
    parser.add_argument("--min-torrent-size", default="1GiB", help="Torrents smaller than this are NOT xseeded. -1 == no limit")
    parser.add_argument("--max-torrent-size", default="-1", help="Torrents larger than this are NOT xseeded. -1 == no limit")
    parser.add_argument(
        "--request-server",
        choices=("yes", "no", "auto"),
        default="auto",
        help="Whether to query the IYUU server to update the local xseed db",
    )
    return parser


def options_from_args(args: argparse.Namespace) -> XseedOptions:
    return XseedOptions(
        dry_run=args.dry_run,
        add_paused=args.add_paused,
        check=args.check,
        slow_mode=args.slow,
        max_torrents=args.max_torrents,
        max_consecutive_fail=args.max_consecutive_fail,
        include_sites=split_csv(args.include_sites),
        exclude_sites=split_csv(args.exclude_sites),
        category=args.category,
        tag=args.tag,
        filter=args.filter,
        add_category=args.add_category,
        add_tags=split_csv(args.add_tags),
        min_torrent_size=args.min_torrent_size,
        max_torrent_size=args.max_torrent_size,
        request_server=args.request_server,
    )


def resolve_config_path(args_config: Optional[str]) -> Path:
    if args_config:
        p = Path(args_config).expanduser()
        if p.is_dir():
            p = p / DEFAULT_CONFIG_NAME
        return p
    return Path.cwd() / DEFAULT_CONFIG_NAME


def render_summary(client_names: List[str], counters: RunCounters, elapsed: float) -> None:
    table = Table(title=f"Done xseed {len(client_names)} clients")
    table.add_column("Candidate", justify="right", style="cyan")
    table.add_column("Target", justify="right")
    table.add_column("Xseed", justify="right")
    table.add_column("SuccessXseed", justify="right", style="green")
    table.add_row(
        str(counters.candidates_considered),
        str(counters.targets_touched),
        str(counters.injection_attempts),
        str(counters.injection_successes),
    )
    console.print(table)
    _ui_info(f"Elapsed {elapsed:.1f}s")


async def run_xseed(config: XseedConfig, options: XseedOptions, client_names: List[str]) -> RunCounters:
    with MirrorStore(config.db_path) as store:
        correlator = IdentityCorrelator(
            lambda: IyuuServiceAdapter(config.iyuu),
            store,
            max_batch_size=config.iyuu.max_batch_size,
        )
        runner = XseedRunner(config, options, correlator)
        return await runner.run(client_names)


def main(argv: Optional[List[str]] = None):
    """Entry point"""
    parser = build_parser()
    args = parser.parse_args(argv)
    started = time.monotonic()

    log = logger.XseedLogger(
        log_file=Path(args.log_file).expanduser() if args.log_file else None,
        debug=args.debug,
    )
    logger.set_logger(log)
    try:
        config = load_config(resolve_config_path(args.config))
        options = options_from_args(args)
        counters = asyncio.run(run_xseed(config, options, args.clients))
        render_summary(args.clients, counters, time.monotonic() - started)
        sys.exit(0)
    except KeyboardInterrupt:
        _ui_info("Interrupted")
        sys.exit(130)
    except (MissingTokenError, ConfigError) as e:
        _ui_error(str(e))
        sys.exit(1)
    except Exception as e:
        _ui_error(f"Fatal error: {e}")
        sys.exit(1)
    finally:
        log.close()


if __name__ == "__main__":
    main()
