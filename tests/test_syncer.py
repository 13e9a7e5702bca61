import os
from datetime import datetime, timedelta, timezone

import pytest

from mimic.config import Config
from mimic.fileops import FileOpsError
from mimic.syncer import (
    ActionType,
    EntryInfo,
    SyncAction,
    SyncerError,
    compare_states,
    execute_actions,
    generate_checksum,
    scan_source,
    should_exclude,
)

FIXED_TIME = datetime(2023, 1, 1, 12, 0, 0, tzinfo=timezone.utc)


def test_scan_source_empty_dir_argument():
    with pytest.raises(SyncerError, match="src dir is empty"):
        scan_source("")


def test_scan_source_non_existent(tmp_path):
    with pytest.raises(SyncerError, match="src dir does not exist"):
        scan_source(tmp_path / "non-existent")


def test_scan_source_is_file(tmp_path):
    test_file = tmp_path / "testfile.txt"
    test_file.write_text("test content")
    with pytest.raises(SyncerError, match="src is not a dir"):
        scan_source(test_file)


@pytest.fixture
def valid_dir(tmp_path):
    test_dir = tmp_path / "valid-dir"
    sub_dir = test_dir / "subdir"
    sub_dir.mkdir(parents=True)
    (test_dir / "root.txt").write_text("root content")
    (sub_dir / "sub.txt").write_text("sub content")
    return test_dir


def test_scan_source_valid_dir(valid_dir):
    entries = scan_source(str(valid_dir))
    assert set(entries) == {"root.txt", "subdir", os.path.join("subdir", "sub.txt")}

    root_entry = entries["root.txt"]
    assert root_entry.relative_path == "root.txt"
    assert root_entry.is_dir is False
    assert root_entry.size == len("root content")
    assert len(root_entry.checksum) == 16

    subdir_entry = entries["subdir"]
    assert subdir_entry.is_dir is True
    assert subdir_entry.checksum == ""


def test_scan_source_checksum_and_mtime_match_file(valid_dir):
    entries = scan_source(valid_dir)
    root_file = valid_dir / "root.txt"
    assert entries["root.txt"].checksum == generate_checksum(root_file).hex()
    assert abs(entries["root.txt"].mtime.timestamp() - root_file.stat().st_mtime) < 1e-3


def test_scan_source_skips_default_exclusions(valid_dir):
    (valid_dir / ".DS_Store").write_text("junk")
    entries = scan_source(valid_dir)
    assert ".DS_Store" not in entries
    assert len(entries) == 3


def test_scan_source_permission_denied_subdir(tmp_path):
    no_read_dir = tmp_path / "no-read"
    noperm_dir = no_read_dir / "noperm"
    noperm_dir.mkdir(parents=True)
    os.chmod(noperm_dir, 0)
    try:
        entries = scan_source(no_read_dir)
    finally:
        os.chmod(noperm_dir, 0o755)
    assert "noperm" in entries
    assert entries["noperm"].is_dir is True


def test_generate_checksum_non_existent(tmp_path):
    with pytest.raises(SyncerError, match="src dir does not exist"):
        generate_checksum(tmp_path / "non-existent.txt")


def test_generate_checksum_valid_file(tmp_path):
    test_file = tmp_path / "test.txt"
    test_file.write_text("test content for checksum")

    checksum1 = generate_checksum(test_file)
    assert len(checksum1) == 8

    checksum2 = generate_checksum(test_file)
    assert checksum1 == checksum2

    test_file.write_text("modified content for checksum")
    checksum3 = generate_checksum(test_file)
    assert checksum3 != checksum1
    assert len(checksum3) == 8


@pytest.mark.parametrize(
    "rel_path, matchers, expected",
    [
        ("file.txt", ["file.txt"], True),
        ("temp.log", ["*.log"], True),
        ("data.csv", ["*.log", "*.tmp"], False),
        ("node_modules/package/file.js", ["node_modules/"], True),
        ("src/components/file.js", ["node_modules/"], False),
        (".DS_Store", ["*.log", ".DS_Store"], True),
        ("node_modules", ["node_modules/"], True),
    ],
    ids=[
        "exact-file-match",
        "file-with-glob",
        "file-not-matching",
        "directory-prefix",
        "directory-not-matching",
        "multiple-patterns-one-match",
        "directory-as-exact-path",
    ],
)
def test_should_exclude(rel_path, matchers, expected):
    assert should_exclude(rel_path, matchers) is expected


def _file(path, mtime, size, is_dir=False):
    return EntryInfo(relative_path=path, mtime=mtime, size=size, is_dir=is_dir)


@pytest.mark.parametrize(
    "source_scan, loaded_entries, expected",
    [
        pytest.param(
            {"file1.txt": _file("file1.txt", FIXED_TIME, 100)},
            {},
            [SyncAction(ActionType.CREATE, "file1.txt", _file("file1.txt", FIXED_TIME, 100))],
            id="create-new-file",
        ),
        pytest.param(
            {"file1.txt": _file("file1.txt", FIXED_TIME, 200)},
            {"file1.txt": _file("file1.txt", FIXED_TIME - timedelta(minutes=10), 100)},
            [SyncAction(ActionType.UPDATE, "file1.txt", _file("file1.txt", FIXED_TIME, 200))],
            id="update-existing-file",
        ),
        pytest.param(
            {},
            {"file1.txt": _file("file1.txt", FIXED_TIME - timedelta(minutes=10), 100)},
            [SyncAction(ActionType.DELETE, "file1.txt", EntryInfo())],
            id="delete-removed-file",
        ),
        pytest.param(
            {"file1.txt": _file("file1.txt", FIXED_TIME, 100)},
            {"file1.txt": _file("file1.txt", FIXED_TIME, 100)},
            [SyncAction(ActionType.NONE, "file1.txt", EntryInfo())],
            id="no-change-needed",
        ),
        pytest.param(
            {
                "file1.txt": _file("file1.txt", FIXED_TIME, 100),
                "file2.txt": _file("file2.txt", FIXED_TIME, 200),
                "dir1": _file("dir1", FIXED_TIME, 0, is_dir=True),
            },
            {
                "file1.txt": _file("file1.txt", FIXED_TIME, 100),
                "oldfile.txt": _file("oldfile.txt", FIXED_TIME - timedelta(hours=24), 50),
            },
            [
                SyncAction(ActionType.NONE, "file1.txt", EntryInfo()),
                SyncAction(ActionType.CREATE, "file2.txt", _file("file2.txt", FIXED_TIME, 200)),
                SyncAction(ActionType.CREATE, "dir1", _file("dir1", FIXED_TIME, 0, is_dir=True)),
                SyncAction(ActionType.DELETE, "oldfile.txt", EntryInfo()),
            ],
            id="mixed-operations",
        ),
        pytest.param(
            {"file1.txt": _file("file1.txt", FIXED_TIME + timedelta(milliseconds=500), 100)},
            {"file1.txt": _file("file1.txt", FIXED_TIME, 100)},
            [SyncAction(ActionType.NONE, "file1.txt", EntryInfo())],
            id="within-time-threshold",
        ),
    ],
)
def test_compare_states(source_scan, loaded_entries, expected):
    assert compare_states(source_scan, loaded_entries) == expected


def test_compare_states_outside_time_threshold_is_update():
    source = _file("a", FIXED_TIME + timedelta(seconds=1), 10)
    result = compare_states({"a": source}, {"a": _file("a", FIXED_TIME, 10)})
    assert result == [SyncAction(ActionType.UPDATE, "a", source)]


def test_execute_actions_applies_each_action(tmp_path):
    src = tmp_path / "src"
    dst = tmp_path / "dst"
    (src / "dir1").mkdir(parents=True)
    (src / "new.txt").write_text("new")
    (src / "changed.txt").write_text("v2")
    dst.mkdir()
    (dst / "changed.txt").write_text("v1")
    (dst / "gone.txt").write_text("x")
    (dst / "keep.txt").write_text("keep")

    actions = [
        SyncAction(ActionType.CREATE, "dir1", EntryInfo(relative_path="dir1", is_dir=True)),
        SyncAction(ActionType.CREATE, "new.txt", EntryInfo(relative_path="new.txt", size=3)),
        SyncAction(ActionType.UPDATE, "changed.txt", EntryInfo(relative_path="changed.txt", size=2)),
        SyncAction(ActionType.DELETE, "gone.txt"),
        SyncAction(ActionType.NONE, "keep.txt"),
    ]
    execute_actions(str(src), str(dst), actions, Config())

    assert (dst / "dir1").is_dir()
    assert (dst / "new.txt").read_text() == "new"
    assert (dst / "changed.txt").read_text() == "v2"
    assert not (dst / "gone.txt").exists()
    assert (dst / "keep.txt").read_text() == "keep"


def test_execute_actions_missing_source_raises(tmp_path):
    src = tmp_path / "src"
    src.mkdir()
    actions = [SyncAction(ActionType.CREATE, "absent.txt", EntryInfo(relative_path="absent.txt"))]
    with pytest.raises(FileOpsError, match="failed to stat path"):
        execute_actions(src, tmp_path / "dst", actions, Config())


def test_scan_compare_execute_mirrors_tree(valid_dir, tmp_path):
    dst = tmp_path / "mirror"
    scan = scan_source(valid_dir)
    actions = compare_states(scan, {})
    assert {a.type for a in actions} == {ActionType.CREATE}

    execute_actions(valid_dir, dst, actions, Config())
    assert (dst / "root.txt").read_text() == "root content"
    assert (dst / "subdir" / "sub.txt").read_text() == "sub content"

    again = compare_states(scan_source(valid_dir), scan)
    assert [a.type for a in again] == [ActionType.NONE] * 3