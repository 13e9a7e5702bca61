import io

import pytest

from mimic.dry_run import (
    Node,
    collect_stats,
    format_size,
    generate_tree,
    print_full_report,
    summary_lines,
    tree_lines,
)
from mimic.syncer import ActionType, EntryInfo, SyncAction


def _create(path, size):
    return SyncAction(ActionType.CREATE, path, EntryInfo(relative_path=path, size=size))


def test_generate_tree_nests_components():
    actions = [_create("a/b.txt", 10), SyncAction(ActionType.UPDATE, "a/c.txt", EntryInfo(size=5))]
    root = generate_tree(actions)
    assert root.file_name == "(root)"
    assert [child.file_name for child in root.children] == ["a"]
    assert [child.file_name for child in root.children[0].children] == ["b.txt", "c.txt"]


def test_intermediate_node_takes_first_action():
    root = generate_tree([_create("a/b.txt", 10), SyncAction(ActionType.DELETE, "a/z")])
    folder = root.children[0]
    assert folder.action_type == ActionType.CREATE
    assert folder.file_size == 10
    assert folder.children[1].action_type == ActionType.DELETE


def test_leading_slash_is_trimmed():
    root = generate_tree([_create("/x", 1)])
    assert [child.file_name for child in root.children] == ["x"]


def test_collect_stats_sums_sizes_and_counts_root():
    creates = [_create("a.txt", 3), _create("b.txt", 4)]
    root = generate_tree(creates + [SyncAction(ActionType.NONE, "c.txt")])
    stats = collect_stats(root)
    assert stats[ActionType.CREATE].count == len(creates)
    assert stats[ActionType.CREATE].size == sum(a.source_info.size for a in creates)
    assert stats[ActionType.NONE].count == 2
    assert sum(entry.count for entry in stats.values()) == len(list(tree_lines(root)))


@pytest.mark.parametrize(
    "size, expected",
    [(0, "0 B"), (1023, "1023 B"), (1024, "1.0 KB"), (1024 * 1024, "1.0 MB"), (1024**3, "1.0 GB")],
)
def test_format_size(size, expected):
    assert format_size(size) == expected


def test_format_size_unit_boundaries():
    assert format_size(1024 * 1024 - 1).endswith(" KB")
    assert format_size(1024**3 - 1).endswith(" MB")


def test_summary_lines_layout():
    creates = [_create("a.txt", 3), _create("b.txt", 4)]
    lines = summary_lines(collect_stats(generate_tree(creates)))
    assert lines[0] == "==== DRY RUN MODE: No changes will be made ===="
    assert lines[1] == "SUMMARY OF ACTIONS:"
    assert lines[2].startswith(f"* Files to create: {len(creates)} ")
    assert lines[5].startswith("* Directories to create:")
    assert lines[7].startswith("* Unchanged:")


def test_summary_lines_with_empty_stats_reports_zero_everywhere():
    lines = summary_lines({})
    assert all(line.split(": ", 1)[1].startswith("0") for line in lines[2:])


def test_tree_lines_indentation_follows_depth():
    root = generate_tree([_create("a/b.txt", 10)])
    lines = list(tree_lines(root))
    assert lines[0].startswith("- (root) [NONE]")
    assert lines[1].startswith("  - a [CREATE]")
    assert lines[2].startswith("    - b.txt [CREATE]")


def test_tree_lines_unknown_action():
    lines = list(tree_lines(Node("odd", 0, 7)))
    assert "[UNKNOWN]" in lines[0]


def test_print_full_report_writes_summary_then_tree():
    out = io.StringIO()
    print_full_report([_create("dir/file.bin", 2048)], out)
    text = out.getvalue().splitlines()
    assert text[0] == "==== DRY RUN MODE: No changes will be made ===="
    assert any("file.bin [CREATE]" in line for line in text)
    assert text.index("SUMMARY OF ACTIONS:") < next(
        i for i, line in enumerate(text) if "(root)" in line
    )