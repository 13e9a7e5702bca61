"""User-configurable settings for a sync run."""

from __future__ import annotations

from dataclasses import dataclass, field

DEFAULT_CHUNK_SIZE = 32 << 20  # 32 MiB
DEFAULT_VERBOSE = False
DEFAULT_DRY_RUN = False
DEFAULT_CHECKSUM = False
DEFAULT_BANDWIDTH_LIMIT = 0  # no limit
DEFAULT_EXCLUDE_PATTERNS: tuple[str, ...] = (".DS_Store",)


@dataclass
class Config:
    """Settings that control behaviour, performance and safety of a sync.

    verbose: emit debug-level logging.
    dry_run: report planned operations without touching the filesystem.
    checksum: compare content hashes instead of mtime and size.
    chunk_size: buffer size in bytes for file copying.
    exclude_patterns: glob patterns for files or directories to skip.
    bandwidth_limit: transfer limit in KB/s, 0 for unlimited.
    """

    verbose: bool = DEFAULT_VERBOSE
    dry_run: bool = DEFAULT_DRY_RUN
    checksum: bool = DEFAULT_CHECKSUM
    chunk_size: int = DEFAULT_CHUNK_SIZE
    exclude_patterns: list[str] = field(
        default_factory=lambda: list(DEFAULT_EXCLUDE_PATTERNS)
    )
    bandwidth_limit: int = DEFAULT_BANDWIDTH_LIMIT