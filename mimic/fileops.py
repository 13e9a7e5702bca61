"""Filesystem primitives used while mirroring: copy, mkdir, delete, exists."""

from __future__ import annotations

import os
import shutil
import stat
from pathlib import Path
from typing import BinaryIO, Iterator

from mimic.config import DEFAULT_CHUNK_SIZE
from mimic.logger import get_logger

_log = get_logger()


class FileOpsError(Exception):
    """A filesystem operation failed."""

    def __init__(self, message: str) -> None:
        super().__init__(f"file_ops: {message}")


def _open_for_write(path: Path, mode: int) -> BinaryIO:
    fd = os.open(path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, stat.S_IMODE(mode))
    return os.fdopen(fd, "wb")


def _ensure_parent(path: Path) -> None:
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
    except OSError as exc:
        raise FileOpsError(f"failed to make a dir: {exc}") from exc


def _read_chunks(src: BinaryIO, chunk_size: int) -> Iterator[bytes]:
    while True:
        try:
            chunk = src.read(chunk_size)
        except OSError as exc:
            raise FileOpsError(f"failed to batch read: {exc}") from exc
        if not chunk:
            return
        yield chunk


def _copy_in_chunks(read_path: Path, write_path: Path, chunk_size: int, size: int, mode: int) -> int:
    _ensure_parent(write_path)
    _log.debug(
        "Starting batch file copy",
        extra={"source": str(read_path), "destination": str(write_path), "size": size},
    )
    try:
        src = read_path.open("rb")
    except OSError as exc:
        raise FileOpsError(f"failed to read a file: {exc}") from exc

    progress_step = chunk_size * 10
    written = 0
    with src:
        try:
            dst = _open_for_write(write_path, mode)
        except OSError as exc:
            raise FileOpsError(f"failed to open destination file: {exc}") from exc
        try:
            with dst:
                for chunk in _read_chunks(src, chunk_size):
                    dst.write(chunk)
                    written += len(chunk)
                    if written % progress_step == 0:
                        _log.debug(
                            "Writing progress",
                            extra={
                                "path": str(write_path),
                                "bytesWritten": written,
                                "percentage": written / size * 100,
                            },
                        )
        except OSError as exc:
            _log.error("Error writing to file", extra={"path": str(write_path), "error": exc})
            raise FileOpsError(f"failed to batch write: {exc}") from exc

    _log.debug(
        "Batch file copy completed",
        extra={"source": str(read_path), "destination": str(write_path), "size": written},
    )
    return written


def copy_file(read_path: str | os.PathLike, write_path: str | os.PathLike,
              chunk_size: int = DEFAULT_CHUNK_SIZE) -> int:
    """Copy a file, creating parent directories and keeping permission bits.

    Files of at least `chunk_size` bytes are streamed in chunks of that size.
    Returns the number of bytes written.
    """
    if chunk_size <= 0:
        raise ValueError("chunk_size must be positive")
    read_path, write_path = Path(read_path), Path(write_path)
    try:
        src_stat = read_path.stat()
    except OSError as exc:
        raise FileOpsError(f"failed to stat path: {exc}") from exc

    if src_stat.st_size >= chunk_size:
        _log.debug("Running batched copy", extra={"file": read_path.name, "size": src_stat.st_size})
        return _copy_in_chunks(read_path, write_path, chunk_size, src_stat.st_size, src_stat.st_mode)

    _ensure_parent(write_path)
    try:
        data = read_path.read_bytes()
    except OSError as exc:
        raise FileOpsError(f"failed to read a file: {exc}") from exc
    try:
        with _open_for_write(write_path, src_stat.st_mode) as dst:
            dst.write(data)
    except OSError as exc:
        raise FileOpsError(f"failed to write a file: {exc}") from exc

    _log.debug(
        "File copied successfully",
        extra={"source": str(read_path), "destination": str(write_path), "size": len(data)},
    )
    return len(data)


def create_dir(name: str | os.PathLike) -> Path:
    """Create a directory with all missing parents; an existing one is fine."""
    path = Path(name)
    try:
        path.mkdir(parents=True, exist_ok=True)
    except OSError as exc:
        _log.error("Failed to create directory", extra={"path": str(path), "error": exc})
        raise FileOpsError(f"failed to make a dir: {exc}") from exc
    _log.debug("Directory created", extra={"path": str(path)})
    return path


def delete_path(name: str | os.PathLike) -> None:
    """Remove a file or a directory tree; a missing path is not an error."""
    path = Path(name)
    try:
        if path.is_dir() and not path.is_symlink():
            _log.debug("Removing path", extra={"path": str(path), "isDirectory": True})
            shutil.rmtree(path)
        else:
            _log.debug("Removing path", extra={"path": str(path), "isDirectory": False})
            path.unlink()
    except FileNotFoundError:
        pass
    except OSError as exc:
        _log.error("Failed to remove path", extra={"path": str(path), "error": exc})
        raise FileOpsError(f"failed to remove a dir: {exc}") from exc
    _log.debug("Path removed successfully", extra={"path": str(path)})


def path_exists(path: str | os.PathLike) -> bool:
    """Tell whether a path exists; errors other than absence are raised."""
    try:
        info = os.stat(path)
    except FileNotFoundError:
        _log.debug("Path does not exist", extra={"path": str(path)})
        return False
    except OSError as exc:
        _log.error("Error checking if path exists", extra={"path": str(path), "error": exc})
        raise FileOpsError(f"failed to stat path: {exc}") from exc
    is_dir = stat.S_ISDIR(info.st_mode)
    _log.debug(
        "Path exists",
        extra={"path": str(path), "isDirectory": is_dir, "size": 0 if is_dir else info.st_size},
    )
    return True