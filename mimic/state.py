"""Persisted record of the last sync, stored in the destination directory."""

from __future__ import annotations

import json
import os
import re
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from mimic.logger import get_logger
from mimic.syncer import ZERO_TIME, EntryInfo

_log = get_logger()

STATE_FILE = ".sync_state"
STATE_VERSION = 1

_TIME_RE = re.compile(
    r"^(\d{4}-\d{2}-\d{2}T\d{2}:\d{2}:\d{2})(?:\.(\d+))?(Z|[+-]\d{2}:\d{2})$"
)


class SyncStateError(Exception):
    """Loading or saving the state file failed."""

    def __init__(self, message: str) -> None:
        super().__init__(f"sync_state: {message}")


@dataclass
class SyncState:
    """Schema version, time of the last sync in ms, and entries by relative path."""

    version: int = STATE_VERSION
    last_sync: int = 0
    entries: dict[str, EntryInfo] = field(default_factory=dict)


def _now_ms() -> int:
    return time.time_ns() // 1_000_000


def _format_time(moment: datetime) -> str:
    return moment.astimezone(timezone.utc).isoformat().replace("+00:00", "Z")


def _parse_time(text: str) -> datetime:
    match = _TIME_RE.match(text)
    if match is None:
        raise ValueError(f"invalid timestamp {text!r}")
    base, fraction, offset = match.groups()
    micros = (fraction or "").ljust(6, "0")[:6]
    offset = "+00:00" if offset == "Z" else offset
    return datetime.fromisoformat(f"{base}.{micros}{offset}")


def _typed(raw: dict[str, Any], key: str, kind: type, default: Any) -> Any:
    value = raw.get(key)
    if value is None:
        return default
    if not isinstance(value, kind) or (kind is int and isinstance(value, bool)):
        raise TypeError(f"field {key!r} has the wrong type")
    return value


def _encode_entry(entry: EntryInfo) -> dict[str, Any]:
    return {
        "RelativePath": entry.relative_path,
        "Mtime": _format_time(entry.mtime),
        "Size": entry.size,
        "IsDir": entry.is_dir,
        "Checksum": entry.checksum,
        "Permissions": entry.permissions,
    }


def _decode_entry(raw: Any) -> EntryInfo:
    if not isinstance(raw, dict):
        raise TypeError("entry is not an object")
    mtime_text = _typed(raw, "Mtime", str, None)
    return EntryInfo(
        relative_path=_typed(raw, "RelativePath", str, ""),
        mtime=ZERO_TIME if mtime_text is None else _parse_time(mtime_text),
        size=_typed(raw, "Size", int, 0),
        is_dir=_typed(raw, "IsDir", bool, False),
        checksum=_typed(raw, "Checksum", str, ""),
        permissions=_typed(raw, "Permissions", int, 0),
    )


def _decode_state(payload: Any) -> SyncState:
    if payload is None:
        payload = {}
    if not isinstance(payload, dict):
        raise TypeError("state is not an object")
    raw_entries = _typed(payload, "e", dict, {})
    return SyncState(
        version=_typed(payload, "v", int, 0),
        last_sync=_typed(payload, "ls", int, 0),
        entries={path: _decode_entry(raw) for path, raw in raw_entries.items()},
    )


def load_state(dst_dir: str | os.PathLike) -> SyncState:
    """Read the state file from `dst_dir`, creating a fresh one if there is none."""
    if not os.fspath(dst_dir):
        raise SyncStateError("dst is empty")
    _log.debug("loading state", extra={"operation": "LoadState", "dir": os.fspath(dst_dir)})
    location = Path(dst_dir, STATE_FILE)

    try:
        raw = location.read_bytes()
    except FileNotFoundError:
        _log.info(
            "state file does not exist, creating new one",
            extra={"operation": "LoadState", "path": str(location)},
        )
        state = SyncState(version=STATE_VERSION, last_sync=_now_ms(), entries={})
        save_state(dst_dir, state)
        return state
    except OSError as exc:
        raise SyncStateError(f"failed to read a file: {exc}") from exc

    try:
        return _decode_state(json.loads(raw))
    except (ValueError, TypeError, AttributeError) as exc:
        raise SyncStateError(f"failed to parse JSON: {exc}") from exc


def save_state(dst_dir: str | os.PathLike, state: SyncState | None) -> None:
    """Stamp `state` with the current time and write it atomically into `dst_dir`."""
    if state is None:
        raise SyncStateError("nil state provided")
    if not os.fspath(dst_dir):
        raise SyncStateError("dst is empty")
    _log.debug("saving state", extra={"operation": "SaveState", "dir": os.fspath(dst_dir)})
    location = Path(dst_dir, STATE_FILE)

    state.last_sync = _now_ms()
    try:
        data = json.dumps(
            {
                "v": state.version,
                "ls": state.last_sync,
                "e": {path: _encode_entry(entry) for path, entry in state.entries.items()},
            },
            separators=(",", ":"),
        )
    except (TypeError, ValueError, AttributeError) as exc:
        raise SyncStateError(f"failed to serialize JSON: {exc}") from exc

    try:
        os.makedirs(dst_dir, exist_ok=True)
    except OSError as exc:
        raise SyncStateError(f"failed to create dst dir: {exc}") from exc

    temp = location.with_name(location.name + ".tmp")
    try:
        temp.write_text(data, encoding="utf-8")
    except OSError as exc:
        raise SyncStateError(f"failed to write a file: {exc}") from exc

    try:
        os.replace(temp, location)
    except OSError as exc:
        temp.unlink(missing_ok=True)
        raise SyncStateError(f"failed to replace the state file: {exc}") from exc

    _log.info("state saved successfully", extra={"operation": "SaveState"})