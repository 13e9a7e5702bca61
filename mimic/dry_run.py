"""Report of planned sync actions as a summary and a path tree, without changes."""

from __future__ import annotations

import sys
from dataclasses import dataclass, field
from typing import IO, Iterable, Iterator

from mimic.syncer import ActionType, SyncAction

_MIB = 1024 * 1024
_GIB = 1024 * 1024 * 1024
_DIR_FLAG = 0x10


@dataclass
class Node:
    """One path component in the report tree, with the action that introduced it."""

    file_name: str
    file_size: int = 0
    action_type: int = ActionType.NONE
    children: list[Node] = field(default_factory=list)


@dataclass
class _Stats:
    count: int = 0
    size: int = 0


def generate_tree(actions: Iterable[SyncAction]) -> Node:
    """Arrange actions by their path components under a "(root)" node.

    A node created for an intermediate component takes the action and size
    of the first action whose path passes through it.
    """
    root = Node("(root)")
    for action in actions:
        current = root
        for component in action.relative_path.removeprefix("/").split("/"):
            next_node = next(
                (child for child in current.children if child.file_name == component), None
            )
            if next_node is None:
                next_node = Node(component, action.source_info.size, action.type)
                current.children.append(next_node)
            current = next_node
    return root


def _nodes(node: Node) -> Iterator[Node]:
    yield node
    for child in node.children:
        yield from _nodes(child)


def collect_stats(node: Node) -> dict[int, _Stats]:
    """Count nodes and sum their sizes per action type, the given node included."""
    stats: dict[int, _Stats] = {}
    for current in _nodes(node):
        entry = stats.setdefault(current.action_type, _Stats())
        entry.count += 1
        entry.size += current.file_size
    return stats


def format_size(size: int) -> str:
    """Render a byte count as B, KB, MB or GB with one decimal above bytes."""
    if size < 1024:
        return f"{size} B"
    if size < _MIB:
        return f"{size / 1024:.1f} KB"
    if size < _GIB:
        return f"{size / _MIB:.1f} MB"
    return f"{size / _GIB:.1f} GB"


def summary_lines(stats: dict[int, _Stats]) -> list[str]:
    """Lines of the summary block for statistics from collect_stats."""

    def get(key: int) -> _Stats:
        return stats.get(key, _Stats())

    create = get(ActionType.CREATE)
    update = get(ActionType.UPDATE)
    delete = get(ActionType.DELETE)
    return [
        "==== DRY RUN MODE: No changes will be made ====",
        "SUMMARY OF ACTIONS:",
        f"* Files to create: {create.count} (total size: {create.size / _MIB:.1f} MB)",
        f"* Files to update: {update.count} (total size: {update.size / _MIB:.1f} MB)",
        f"* Files to delete: {delete.count} (total size: {delete.size / _MIB:.1f} MB)",
        f"* Directories to create: {get(ActionType.CREATE | _DIR_FLAG).count}",
        f"* Directories to delete: {get(ActionType.DELETE | _DIR_FLAG).count}",
        f"* Unchanged: {get(ActionType.NONE).count}",
    ]


def _action_name(action_type: int) -> str:
    try:
        return ActionType(action_type).name
    except ValueError:
        return "UNKNOWN"


def tree_lines(node: Node, indent: str = "") -> Iterator[str]:
    """Yield one line per node, children indented two spaces below their parent."""
    yield (
        f"{indent}- {node.file_name} [{_action_name(node.action_type)}] "
        f"({format_size(node.file_size)})"
    )
    for child in node.children:
        yield from tree_lines(child, indent + "  ")


def print_full_report(actions: Iterable[SyncAction], out: IO[str] | None = None) -> None:
    """Write the summary and the tree of `actions` to `out` (stderr by default)."""
    stream = out if out is not None else sys.stderr
    root = generate_tree(actions)
    stats = collect_stats(root)
    for line in summary_lines(stats):
        stream.write(line + "\n")
    for line in tree_lines(root):
        stream.write(line + "\n")