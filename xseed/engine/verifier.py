"""Decode candidate .torrent files and compare them with local file layouts."""

from __future__ import annotations

from collections import Counter
from typing import Any, Dict, List, Optional, Sequence, Tuple

import bencodepy

from xseed.clients.types import TorrentFile
from xseed.engine.types import ContentDescriptor, MatchOutcome
from xseed.exceptions import TorrentDecodeError


def _text(value: Any) -> str:
    if isinstance(value, bytes):
        return value.decode("utf-8", errors="replace")
    return str(value)


def _utf8_field(container: Dict[bytes, Any], key: bytes) -> Any:
    return container.get(key + b".utf-8", container.get(key))


def _is_padding(entry: Dict[bytes, Any], path: str) -> bool:
    attr = _text(entry.get(b"attr", b""))
    return "p" in attr or path.split("/")[-1].startswith("_____padding_file") or "/.pad/" in f"/{path}"


def _length(value: Any, context: str) -> int:
    if isinstance(value, bool) or not isinstance(value, int) or value < 0:
        raise TorrentDecodeError(f"{context} has an invalid length: {value!r}")
    return value


def _path_parts(entry: Dict[bytes, Any], index: int) -> List[str]:
    parts = _utf8_field(entry, b"path")
    if not isinstance(parts, list) or not parts:
        raise TorrentDecodeError(f"files[{index}] has an invalid path: {parts!r}")
    if not all(isinstance(part, bytes) for part in parts):
        raise TorrentDecodeError(f"files[{index}] path has non-string components")
    return [_text(part) for part in parts]


def decode_torrent(data: bytes) -> ContentDescriptor:
    """Parse .torrent bytes into a ContentDescriptor.

    Any structural problem is reported as ``TorrentDecodeError``.
    """
    try:
        root = bencodepy.decode(data)
    except (bencodepy.DecodingError, TypeError, ValueError) as exc:
        raise TorrentDecodeError(f"invalid bencoded torrent: {exc}") from exc
    if not isinstance(root, dict) or not isinstance(root.get(b"info"), dict):
        raise TorrentDecodeError("torrent has no info dictionary")

    info = root[b"info"]
    raw_name = _utf8_field(info, b"name")
    if not isinstance(raw_name, bytes):
        raise TorrentDecodeError("torrent info has no name")
    name = _text(raw_name)
    is_private = info.get(b"private", 0) == 1
    files: List[TorrentFile] = []

    if b"files" in info:
        entries = info[b"files"]
        if not isinstance(entries, list):
            raise TorrentDecodeError("torrent info.files is not a list")
        for index, entry in enumerate(entries):
            if not isinstance(entry, dict):
                raise TorrentDecodeError(f"files[{index}] is not a dictionary")
            path = "/".join([name, *_path_parts(entry, index)])
            if _is_padding(entry, path):
                continue
            files.append(TorrentFile(path=path, size=_length(entry.get(b"length"), f"files[{index}]")))
    elif b"length" in info:
        files.append(TorrentFile(path=name, size=_length(info[b"length"], "info")))

    if not files:
        raise TorrentDecodeError(f"torrent {name!r} lists no files")
    return ContentDescriptor(name=name, is_private=is_private, files=tuple(files))


def _normalize(files: Sequence[TorrentFile]) -> Counter:
    return Counter((entry.path.replace("\\", "/").strip("/"), entry.size) for entry in files)


def _strip_root(entries: Counter) -> Optional[Counter]:
    """Drop the leading path component shared by every entry, or None if there is none."""
    root: Optional[str] = None
    stripped: Counter = Counter()
    for (path, size), count in entries.items():
        head, sep, rest = path.partition("/")
        if not sep or not rest:
            return None
        if root is None:
            root = head
        elif head != root:
            return None
        stripped[(rest, size)] += count
    return stripped if root is not None else None


def compare_file_lists(
    candidate_files: Sequence[TorrentFile], target_files: Sequence[TorrentFile]
) -> MatchOutcome:
    """Tri-state comparison of two (path, size) multisets."""
    candidate = _normalize(candidate_files)
    target = _normalize(target_files)
    if not candidate or not target:
        return MatchOutcome.NO_MATCH
    if candidate == target:
        return MatchOutcome.FULL_MATCH
    candidate_stripped = _strip_root(candidate)
    target_stripped = _strip_root(target)
    if candidate_stripped is not None and target_stripped is not None and candidate_stripped == target_stripped:
        return MatchOutcome.ROOT_FOLDER_MISMATCH_ONLY
    return MatchOutcome.NO_MATCH


def verify_candidate(data: bytes, target_files: Sequence[TorrentFile]) -> Tuple[ContentDescriptor, MatchOutcome]:
    descriptor = decode_torrent(data)
    return descriptor, compare_file_lists(descriptor.files, target_files)
