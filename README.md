# mimic

`mimic` mirrors a source directory into a destination directory, one way.
It keeps a small state file, `.sync_state`, in the destination. The file
records what was synced last time. On the next run, mimic compares that record
with a fresh scan of the source. It then creates, updates or deletes whatever
the destination needs to match the source.

## Installation

```
pip install .
```

No third-party libraries are needed. Python 3.10 or later is required.

## Usage

```
mimic [options] <source_directory> <destination_directory>
```

Options. Each can be written with one dash or two, for example `-dry-run` or `--dry-run`:

| Option | Default | Meaning |
| --- | --- | --- |
| `--verbose` | off | Log at debug level instead of info |
| `--dry-run` | off | Print a report of the planned actions instead of carrying them out |
| `--checksum` | off | Accepted and stored in the configuration; see "Limits" below |
| `--chunk-size N` | 33554432 (32 MiB) | Buffer size in bytes for copying large files |
| `--bandwidth-limit N` | 0 | Accepted and stored in the configuration; see "Limits" below |

Exit status:

- 0 on success.
- 1 if the sync fails, or if you do not pass exactly two directories. In the
  second case the usage and help text are printed.
- 2 if the options themselves cannot be parsed, for example a non-numeric
  `--chunk-size`.

Log lines go to standard error as `key=value` pairs, for example
`time=... level=INFO msg="Comparing states"`.

### Dry run

```
mimic --dry-run ./photos /mnt/backup/photos
```

The report is written to standard error. It has two parts:

- A summary: how many files will be created, updated and deleted, with their
  total size in MB, and how many entries are unchanged.
- A tree of every path with its action (`CREATE`, `UPDATE`, `DELETE`, `NONE`)
  and its size.

A dry run changes no files. There is one exception: if the destination has no
`.sync_state` yet, the destination directory and an empty state file are
created.

## How changes are detected

- A path in the source that is missing from the state is **created**.
  Directories are made. Files are copied, and missing parent directories are
  created on the way.
- A path that is in both the source and the state is **unchanged** when its
  size matches and its modification time differs by less than one second.
  Otherwise it is **updated**, which means the file is copied again.
- A path in the state that is no longer in the source is **deleted** from the
  destination. A directory is removed together with its contents. A path that
  is already gone is not an error.

Creates and updates run first, then deletes. The first failure stops the run,
and the state file is not updated. After a successful run, the state file is
replaced atomically with the new scan.

### Scanning and copying

- Entries named `.DS_Store` are always skipped.
- Subdirectories that cannot be read are skipped with a warning.
- Symbolic links are not followed while walking the tree.
- Each scanned file gets a content hash, which is stored in the state file.
- Files of at least the chunk size are streamed in chunks of that size.
  Smaller files are read in one go.
- New destination files are created with the source file's permission bits,
  subject to the umask.

## Using it from Python

```python
from mimic.config import Config
from mimic.cli import run_sync

actions = run_sync("./photos", "/mnt/backup/photos", Config(dry_run=True))
```

`run_sync` returns the list of planned `SyncAction` objects.

The building blocks can also be used on their own:

- `mimic.syncer`: `scan_source`, `compare_states`, `execute_actions`,
  `generate_checksum` and `should_exclude`.
- `mimic.state`: `load_state` and `save_state`.
- `mimic.fileops`: `copy_file`, `create_dir`, `delete_path` and `path_exists`.
- `mimic.dry_run`: `generate_tree`, `collect_stats`, `summary_lines`,
  `tree_lines`, `format_size` and `print_full_report`.
- `mimic.logger`: `initialize`, `init_noop` and `get_logger`.

Failures raise exceptions:

- `SyncerError`, for scanning and checksumming.
- `SyncStateError`, for the state file.
- `FileOpsError`, for copying, creating and deleting.

## Limits

- Changes are detected by size and modification time only. `--checksum` does
  not switch to hash comparison.
- `--bandwidth-limit` does not throttle copying.
- `Config.exclude_patterns` is not applied during scanning. Only `.DS_Store`
  is excluded.
- Each run is a single pass. There is no watching for changes and no
  scheduling.