# src/promptpack/core/tree.py
from dataclasses import dataclass, field
from typing import Dict, List, Tuple

from promptpack.models import NodeKind, TreeNode

# Counts are reported as unsigned 64-bit values and saturate here
MAX_COUNT = 2**64 - 1


def saturating_add(a: int, b: int) -> Tuple[int, bool]:
    """Returns (a + b capped at MAX_COUNT, whether the cap was hit)."""
    total = a + b
    if total > MAX_COUNT:
        return MAX_COUNT, True
    return total, False


@dataclass
class _Slot:
    name: str
    kind: NodeKind
    token_count: int = 0
    children: List[int] = field(default_factory=list)


class TreeBuilder:
    """
    Builds the TreeNode hierarchy from a flat, ordered list of file paths.

    Nodes live in an arena (a list) and are found through a path-keyed index,
    so nobody holds parent pointers. Adding a file adds its token count to
    every directory on its path, which keeps each directory's count equal to
    the sum of its children.
    """

    def __init__(self, root_name: str):
        self._slots: List[_Slot] = [_Slot(root_name, NodeKind.DIR)]
        self._index: Dict[Tuple[str, ...], int] = {(): 0}
        self.truncated = False

    def _add_to(self, slot_id: int, tokens: int) -> None:
        slot = self._slots[slot_id]
        slot.token_count, capped = saturating_add(slot.token_count, tokens)
        self.truncated = self.truncated or capped

    def add_file(self, rel_path: str, token_count: int) -> None:
        parts = tuple(rel_path.split("/"))
        if parts in self._index:
            raise ValueError(f"Duplicate path in tree: {rel_path}")

        parent = 0
        ancestry = [0]
        for depth in range(1, len(parts)):
            key = parts[:depth]
            slot_id = self._index.get(key)
            if slot_id is None:
                slot_id = len(self._slots)
                self._slots.append(_Slot(parts[depth - 1], NodeKind.DIR))
                self._slots[parent].children.append(slot_id)
                self._index[key] = slot_id
            elif self._slots[slot_id].kind is not NodeKind.DIR:
                raise ValueError(f"'{'/'.join(key)}' is both a file and a directory")
            parent = slot_id
            ancestry.append(slot_id)

        file_id = len(self._slots)
        self._slots.append(_Slot(parts[-1], NodeKind.FILE, token_count=token_count))
        self._slots[parent].children.append(file_id)
        self._index[parts] = file_id

        for slot_id in ancestry:
            self._add_to(slot_id, token_count)

    def build(self) -> TreeNode:
        """Freezes the arena into immutable TreeNodes, children in insertion order."""
        frozen: Dict[int, TreeNode] = {}
        # Children always have a higher arena id than their parent
        for slot_id in range(len(self._slots) - 1, -1, -1):
            slot = self._slots[slot_id]
            frozen[slot_id] = TreeNode(
                name=slot.name,
                kind=slot.kind,
                token_count=slot.token_count,
                children=tuple(frozen[c] for c in slot.children),
            )
        return frozen[0]


def generate_project_tree(root: TreeNode, show_tokens: bool = True) -> str:
    """Generates a string representation of the project tree."""

    def _label(node: TreeNode) -> str:
        name = f"{node.name}/" if node.is_dir else node.name
        if show_tokens:
            return f"{name} ({node.token_count} tokens)"
        return name

    lines = [_label(root)]

    def _generate_lines_recursive(node: TreeNode, prefix: str):
        for i, child in enumerate(node.children):
            is_last = (i == len(node.children) - 1)
            connector = "└── " if is_last else "├── "
            lines.append(f"{prefix}{connector}{_label(child)}")

            if child.children:
                new_prefix = prefix + ("    " if is_last else "│   ")
                _generate_lines_recursive(child, new_prefix)

    _generate_lines_recursive(root, "")
    return "\n".join(lines) + "\n"
