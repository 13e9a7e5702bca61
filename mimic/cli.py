"""Command-line entry point: mirror a source directory into a destination."""

from __future__ import annotations

import argparse
import logging
import os
import sys
from typing import Sequence

from mimic.config import (
    DEFAULT_BANDWIDTH_LIMIT,
    DEFAULT_CHECKSUM,
    DEFAULT_CHUNK_SIZE,
    DEFAULT_DRY_RUN,
    DEFAULT_VERBOSE,
    Config,
)
from mimic.dry_run import print_full_report
from mimic.fileops import FileOpsError
from mimic.logger import get_logger, initialize
from mimic.state import SyncStateError, load_state, save_state
from mimic.syncer import (
    ActionType,
    SyncAction,
    SyncerError,
    compare_states,
    execute_actions,
    scan_source,
)

_log = get_logger()

_USAGE = "mimic [options] <source_directory> <destination_directory>"


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="mimic", usage=_USAGE, allow_abbrev=False)
    parser.add_argument(
        "-verbose", "--verbose", dest="verbose", action="store_true",
        default=DEFAULT_VERBOSE, help="Enable detailed debug logging",
    )
    parser.add_argument(
        "-dry-run", "--dry-run", dest="dry_run", action="store_true",
        default=DEFAULT_DRY_RUN, help="Simulate operations without making changes",
    )
    parser.add_argument(
        "-checksum", "--checksum", dest="checksum", action="store_true",
        default=DEFAULT_CHECKSUM, help="Use checksum comparison instead of mtime/size",
    )
    parser.add_argument(
        "-chunk-size", "--chunk-size", dest="chunk_size", type=int,
        default=DEFAULT_CHUNK_SIZE, help="Buffer size in bytes for file copying",
    )
    parser.add_argument(
        "-bandwidth-limit", "--bandwidth-limit", dest="bandwidth_limit", type=int,
        default=DEFAULT_BANDWIDTH_LIMIT, help="Bandwidth limit in KB/s (0 for unlimited)",
    )
    parser.add_argument("paths", nargs="*", help=argparse.SUPPRESS)
    return parser


def parse_args(argv: Sequence[str] | None = None) -> tuple[Config, str, str]:
    """Parse options and the two directories; exit with status 1 on a wrong count."""
    parser = _build_parser()
    namespace = parser.parse_args(argv)
    if len(namespace.paths) != 2:
        _log.error(f"Usage: {_USAGE}")
        parser.print_help(sys.stderr)
        raise SystemExit(1)
    cfg = Config(
        verbose=namespace.verbose,
        dry_run=namespace.dry_run,
        checksum=namespace.checksum,
        chunk_size=namespace.chunk_size,
        bandwidth_limit=namespace.bandwidth_limit,
    )
    source, destination = namespace.paths
    return cfg, source, destination


def run_sync(src_dir: str | os.PathLike, dst_dir: str | os.PathLike, cfg: Config) -> list[SyncAction]:
    """Bring `dst_dir` in line with `src_dir` and record the new state.

    In dry-run mode only a report is written. Returns the planned actions.
    """
    state = load_state(dst_dir)
    source_entries = scan_source(src_dir)

    _log.info("Comparing states")
    actions = compare_states(source_entries, state.entries)

    if cfg.dry_run:
        print_full_report(actions)
        return actions

    pending = sum(1 for action in actions if action.type != ActionType.NONE)
    _log.info("Found actions to perform", extra={"count": pending})

    _log.info("Executing sync actions")
    execute_actions(src_dir, dst_dir, actions, cfg)

    state.entries = source_entries
    save_state(dst_dir, state)
    return actions


def main(argv: Sequence[str] | None = None) -> int:
    """Run the command; returns the process exit status."""
    cfg, src_dir, dst_dir = parse_args(argv)
    initialize(logging.DEBUG if cfg.verbose else logging.INFO, sys.stderr)

    _log.info(
        "Starting sync process",
        extra={"source": src_dir, "destination": dst_dir, "config": cfg},
    )
    try:
        run_sync(src_dir, dst_dir, cfg)
    except (SyncerError, SyncStateError, FileOpsError, OSError) as exc:
        _log.error("Sync process failed", extra={"error": exc})
        return 1

    _log.info("Sync process completed successfully")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())