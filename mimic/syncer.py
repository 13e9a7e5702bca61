"""Scanning a source tree and turning differences into sync actions."""

from __future__ import annotations

import hashlib
import os
import stat
import time
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from enum import IntEnum
from fnmatch import fnmatchcase
from typing import Callable, Iterable, Iterator, Mapping, TypeVar

from mimic.config import DEFAULT_EXCLUDE_PATTERNS, Config
from mimic.fileops import copy_file, create_dir, delete_path
from mimic.logger import get_logger

_log = get_logger()
_T = TypeVar("_T")

ZERO_TIME = datetime(1, 1, 1, tzinfo=timezone.utc)

_MAX_RETRIES = 5
_TIME_DIFF_THRESHOLD = timedelta(seconds=1)
_HASH_READ_SIZE = 1 << 20


class ActionType(IntEnum):
    """What has to happen to a path to bring the destination in line."""

    NONE = 0x00
    CREATE = 0x01
    UPDATE = 0x02
    DELETE = 0x03


@dataclass(frozen=True)
class EntryInfo:
    """Metadata of one file or directory, keyed by its path relative to the root."""

    relative_path: str = ""
    mtime: datetime = ZERO_TIME
    size: int = 0
    is_dir: bool = False
    checksum: str = ""
    permissions: int = 0


@dataclass(frozen=True)
class SyncAction:
    """One planned operation on a relative path."""

    type: ActionType
    relative_path: str
    source_info: EntryInfo = field(default_factory=EntryInfo)


class SyncerError(Exception):
    """Scanning or checksumming the source failed."""

    def __init__(self, message: str) -> None:
        super().__init__(f"syncer: {message}")


def _is_missing(exc: BaseException) -> bool:
    return isinstance(exc, FileNotFoundError) or isinstance(exc.__cause__, FileNotFoundError)


def _retry(operation: str, path: str, op: Callable[[], _T]) -> _T:
    """Run `op`, retrying transient failures with a growing pause.

    A path that has vanished is not retried.
    """
    for attempt in range(1, _MAX_RETRIES):
        try:
            return op()
        except (OSError, SyncerError) as exc:
            if _is_missing(exc):
                raise
            _log.warning(
                "operation failed, retrying",
                extra={"operation": operation, "path": path, "attempt": attempt, "error": exc},
            )
            time.sleep(0.01 * attempt)
    return op()


def _mtime_of(info: os.stat_result) -> datetime:
    ns = info.st_mtime_ns
    seconds, remainder = divmod(ns, 1_000_000_000)
    return datetime.fromtimestamp(seconds, tz=timezone.utc) + timedelta(
        microseconds=remainder // 1000
    )


def _walk(directory: str) -> Iterator[os.DirEntry]:
    """Yield every entry below `directory` in lexical pre-order, without following links."""
    try:
        with os.scandir(directory) as listing:
            children = sorted(listing, key=lambda entry: entry.name)
    except PermissionError as exc:
        _log.warning(
            "permission denied during scan, skipping", extra={"path": directory, "error": exc}
        )
        return
    except OSError as exc:
        _log.error("access error during scan", extra={"path": directory, "error": exc})
        raise SyncerError(f"dir walk failed: {exc}") from exc

    for child in children:
        yield child
        try:
            is_dir = child.is_dir(follow_symlinks=False)
        except OSError:
            is_dir = False
        if is_dir:
            yield from _walk(child.path)


def _scan_entry(dir_entry: os.DirEntry, rel_path: str) -> EntryInfo | None:
    try:
        info = _retry("file_info", rel_path, lambda: dir_entry.stat(follow_symlinks=False))
    except FileNotFoundError:
        _log.warning(
            "file disappeared after detection, skipping entry", extra={"path": dir_entry.path}
        )
        return None
    except OSError as exc:
        _log.error(
            "cannot get file info, skipping entry", extra={"path": dir_entry.path, "error": exc}
        )
        return None

    is_dir = stat.S_ISDIR(info.st_mode)
    checksum = ""
    if not is_dir:
        try:
            checksum = _retry(
                "checksum", rel_path, lambda: generate_checksum(dir_entry.path)
            ).hex()
        except SyncerError as exc:
            if _is_missing(exc):
                _log.warning(
                    "file disappeared before checksum, skipping entry",
                    extra={"path": dir_entry.path},
                )
                return None
            _log.warning("checksum failed", extra={"path": dir_entry.path, "error": exc})

    entry = EntryInfo(
        relative_path=rel_path,
        mtime=_mtime_of(info),
        size=info.st_size,
        is_dir=is_dir,
        checksum=checksum,
        permissions=info.st_mode,
    )
    _log.debug("scanned entry", extra={"path": rel_path, "isDir": is_dir})
    return entry


def scan_source(root_dir: str | os.PathLike) -> dict[str, EntryInfo]:
    """Scan `root_dir` recursively and map each relative path to its metadata.

    Unreadable subdirectories are skipped; other walk failures raise SyncerError.
    """
    root_text = os.fspath(root_dir)
    _log.debug("starting scan", extra={"operation": "ScanSource", "dir": root_text})
    if not root_text:
        raise SyncerError("src dir is empty")
    root = os.path.normpath(root_text)

    try:
        info = _retry("exists", root, lambda: os.stat(root))
    except OSError as exc:
        raise SyncerError(f"src dir does not exist: {exc}") from exc
    if not stat.S_ISDIR(info.st_mode):
        raise SyncerError("src is not a dir")

    entries: dict[str, EntryInfo] = {}
    for dir_entry in _walk(root):
        rel_path = os.path.normpath(os.path.relpath(dir_entry.path, root))
        if should_exclude(rel_path, DEFAULT_EXCLUDE_PATTERNS):
            _log.debug("skipping entry", extra={"path": rel_path})
            continue
        entry = _scan_entry(dir_entry, rel_path)
        if entry is not None:
            entries[rel_path] = entry

    _log.info(
        "scan finished successfully",
        extra={"operation": "ScanSource", "dir": root, "entries_found": len(entries)},
    )
    return entries


def should_exclude(rel_path: str, matchers: Iterable[str]) -> bool:
    """Tell whether `rel_path` matches any pattern.

    A pattern ending in "/" matches that directory and everything inside it;
    other patterns are globs against the base name or exact relative paths.
    """
    base_name = os.path.basename(rel_path)
    for pattern in matchers:
        if pattern.endswith("/"):
            dir_pattern = pattern[:-1]
            if rel_path == dir_pattern or rel_path.startswith(dir_pattern + "/"):
                return True
        elif fnmatchcase(base_name, pattern) or pattern == rel_path:
            return True
    return False


def _stat_existing(path: str | os.PathLike) -> os.stat_result:
    try:
        return os.stat(path)
    except OSError as exc:
        raise SyncerError(f"src dir does not exist: {exc}") from exc


def generate_checksum(file_path: str | os.PathLike) -> bytes:
    """Return an 8-byte content hash of a file.

    Raises SyncerError if the file is missing, unreadable, or changes while read.
    """
    initial = _stat_existing(file_path)
    try:
        handle = open(file_path, "rb")
    except OSError as exc:
        raise SyncerError(f"read error: {exc}") from exc

    digest = hashlib.blake2b(digest_size=8)
    with handle:
        try:
            for chunk in iter(lambda: handle.read(_HASH_READ_SIZE), b""):
                digest.update(chunk)
        except OSError as exc:
            raise SyncerError(f"checksum calculation failed: {exc}") from exc

    current = _stat_existing(file_path)
    if current.st_mtime_ns != initial.st_mtime_ns or current.st_size != initial.st_size:
        _log.warning(
            "file modified during checksum calculation",
            extra={
                "path": os.fspath(file_path),
                "initial_mtime": _mtime_of(initial),
                "current_mtime": _mtime_of(current),
            },
        )
        raise SyncerError("checksum calculation failed: file modified during read")
    return digest.digest()


def compare_states(
    source_scan: Mapping[str, EntryInfo], loaded_state_entries: Mapping[str, EntryInfo]
) -> list[SyncAction]:
    """Plan actions: creates and updates in source order, then deletes.

    An entry is unchanged when its size matches and its mtime is within one second.
    """
    actions: list[SyncAction] = []
    for path, source in source_scan.items():
        previous = loaded_state_entries.get(path)
        if previous is None:
            actions.append(SyncAction(ActionType.CREATE, path, source))
        elif (
            abs(source.mtime - previous.mtime) < _TIME_DIFF_THRESHOLD
            and source.size == previous.size
        ):
            actions.append(SyncAction(ActionType.NONE, path))
        else:
            actions.append(SyncAction(ActionType.UPDATE, path, source))

    actions.extend(
        SyncAction(ActionType.DELETE, path)
        for path in loaded_state_entries
        if path not in source_scan
    )
    return actions


def execute_actions(
    src_root: str | os.PathLike,
    dst_root: str | os.PathLike,
    actions: Iterable[SyncAction],
    cfg: Config,
) -> None:
    """Apply each action to the destination tree, stopping at the first failure."""
    for action in actions:
        read_path = os.path.join(src_root, action.relative_path)
        write_path = os.path.join(dst_root, action.relative_path)

        if action.type == ActionType.NONE:
            continue
        if action.type in (ActionType.CREATE, ActionType.UPDATE):
            if action.source_info.is_dir:
                create_dir(write_path)
            else:
                copy_file(read_path, write_path, cfg.chunk_size)
        elif action.type == ActionType.DELETE:
            delete_path(write_path)
        else:
            _log.error("unknown action", extra={"action": action.type})