"""Hierarchical key list: tree building, filtering, navigation, multi-select."""

from __future__ import annotations

import weakref
from dataclasses import dataclass, field
from typing import Iterable, Optional

from memtui_core.models import KeyRecord, filter_keys

from memtui_cli.messages import KeyMsg, KeySelectedMsg, Message

DEFAULT_DELIMITER = ":"
DEFAULT_HEIGHT = 20

Fragments = list[tuple[str, str]]


@dataclass(eq=False)
class TreeNode:
    """A Folder (``record is None``) or a Leaf carrying one KeyRecord."""

    name: str
    record: Optional[KeyRecord] = None
    expanded: bool = True
    children: list[TreeNode] = field(default_factory=list)
    _parent: Optional[weakref.ReferenceType] = field(default=None, repr=False)

    @property
    def is_leaf(self) -> bool:
        return self.record is not None

    @property
    def parent(self) -> Optional[TreeNode]:
        return self._parent() if self._parent is not None else None

    def add(self, child: TreeNode) -> TreeNode:
        child._parent = weakref.ref(self)
        self.children.append(child)
        return child

    def folder(self, name: str) -> TreeNode:
        """Return the child folder ``name``, creating it (expanded) on first use."""
        for c in self.children:
            if not c.is_leaf and c.name == name:
                return c
        return self.add(TreeNode(name))

    def path(self) -> tuple[str, ...]:
        parts: list[str] = []
        node: Optional[TreeNode] = self
        while node is not None and node.parent is not None:
            parts.append(node.name)
            node = node.parent
        return tuple(reversed(parts))


def build_tree(records: Iterable[KeyRecord], delimiter: str) -> TreeNode:
    """
    Split each key on ``delimiter``; inner components become folders in
    first-seen order, the last component becomes the leaf. Keys without the
    delimiter (or any key when the delimiter is empty) are root leaves named
    by the full key.
    """
    root = TreeNode("root")
    for rec in records:
        if not delimiter or delimiter not in rec.key:
            root.add(TreeNode(rec.key, rec))
            continue
        *dirs, leaf = rec.key.split(delimiter)
        node = root
        for d in dirs:
            node = node.folder(d)
        node.add(TreeNode(leaf, rec))
    return root


def flatten(root: TreeNode) -> list[tuple[TreeNode, int]]:
    """Pre-order (node, depth) pairs, skipping children of collapsed folders."""
    out: list[tuple[TreeNode, int]] = []

    def walk(node: TreeNode, depth: int) -> None:
        for child in node.children:
            out.append((child, depth))
            if not child.is_leaf and child.expanded:
                walk(child, depth + 1)

    walk(root, 0)
    return out


def _walk_folders(node: TreeNode) -> Iterable[TreeNode]:
    for child in node.children:
        if not child.is_leaf:
            yield child
            yield from _walk_folders(child)


class KeyTree:
    """Key list pane state. Rebuilt on reload and on every filter change."""

    def __init__(self, delimiter: str = DEFAULT_DELIMITER):
        self.delimiter = delimiter
        self.width = 0
        self.height = DEFAULT_HEIGHT
        self.cursor = 0
        self.offset = 0
        self.filter = ""
        self.selected: set[str] = set()
        self.multi_select = False
        self._records: list[KeyRecord] = []
        self._filtered: list[KeyRecord] = []
        self._collapsed: set[tuple[str, ...]] = set()
        self.root = TreeNode("root")
        self.visible: list[tuple[TreeNode, int]] = []

    # ---------- data ----------
    def set_keys(self, records: list[KeyRecord]) -> None:
        self._records = list(records)
        present = {r.key for r in self._records}
        self.selected &= present
        self._rebuild()

    def set_delimiter(self, delimiter: str) -> None:
        self.delimiter = delimiter
        self._collapsed.clear()
        self._rebuild()

    def set_filter(self, pattern: str) -> None:
        self.filter = pattern
        self._rebuild()

    def set_size(self, width: int, height: int) -> None:
        self.width = width
        self.height = height if height > 0 else DEFAULT_HEIGHT
        self._scroll_to_cursor()

    @property
    def key_count(self) -> int:
        return len(self._records)

    @property
    def records(self) -> list[KeyRecord]:
        return list(self._records)

    @property
    def filtered_records(self) -> list[KeyRecord]:
        return list(self._filtered)

    def _rebuild(self) -> None:
        self._filtered = filter_keys(self._records, self.filter)
        self.root = build_tree(self._filtered, self.delimiter)
        for folder in _walk_folders(self.root):
            if folder.path() in self._collapsed:
                folder.expanded = False
        self._reflatten()

    def _reflatten(self) -> None:
        self.visible = flatten(self.root)
        self._clamp()

    def _clamp(self) -> None:
        if not self.visible:
            self.cursor = 0
            self.offset = 0
            return
        self.cursor = max(0, min(self.cursor, len(self.visible) - 1))
        self._scroll_to_cursor()

    def _scroll_to_cursor(self) -> None:
        if self.cursor < self.offset:
            self.offset = self.cursor
        elif self.cursor >= self.offset + self.height:
            self.offset = self.cursor - self.height + 1
        self.offset = max(0, self.offset)

    # ---------- cursor ----------
    def current(self) -> Optional[TreeNode]:
        if 0 <= self.cursor < len(self.visible):
            return self.visible[self.cursor][0]
        return None

    def selected_record(self) -> Optional[KeyRecord]:
        node = self.current()
        return node.record if node is not None else None

    def move(self, delta: int) -> None:
        if not self.visible:
            return
        self.cursor = max(0, min(self.cursor + delta, len(self.visible) - 1))
        self._scroll_to_cursor()

    def _set_expanded(self, node: TreeNode, expanded: bool) -> None:
        node.expanded = expanded
        if expanded:
            self._collapsed.discard(node.path())
        else:
            self._collapsed.add(node.path())
        self._reflatten()

    def left(self) -> None:
        node = self.current()
        if node is None:
            return
        if not node.is_leaf and node.expanded:
            self._set_expanded(node, False)
            return
        parent = node.parent
        if parent is None or parent is self.root:
            return
        for i, (n, _depth) in enumerate(self.visible):
            if n is parent:
                self.cursor = i
                self._scroll_to_cursor()
                return

    def right(self) -> None:
        node = self.current()
        if node is not None and not node.is_leaf and not node.expanded:
            self._set_expanded(node, True)

    def enter(self) -> Optional[Message]:
        node = self.current()
        if node is None:
            return None
        if node.is_leaf:
            return KeySelectedMsg(node.record)
        self._set_expanded(node, not node.expanded)
        return None

    # ---------- selection ----------
    def toggle_selection(self) -> None:
        node = self.current()
        if node is None or not node.is_leaf:
            return
        key = node.record.key
        if key in self.selected:
            self.selected.discard(key)
        else:
            self.selected.add(key)

    def is_selected(self, key: str) -> bool:
        return key in self.selected

    def has_selection(self) -> bool:
        return bool(self.selected)

    def selected_keys(self) -> list[str]:
        """Selected keys in enumeration order."""
        return [r.key for r in self._records if r.key in self.selected]

    def select_all(self) -> None:
        for node, _depth in self.visible:
            if node.is_leaf:
                self.selected.add(node.record.key)

    def clear_selection(self) -> None:
        self.selected.clear()

    def set_multi_select_mode(self, enabled: bool) -> None:
        self.multi_select = enabled
        if not enabled:
            self.clear_selection()

    # ---------- input ----------
    def update(self, msg: KeyMsg) -> Optional[Message]:
        key = msg.key
        if key in ("up", "k"):
            self.move(-1)
        elif key in ("down", "j"):
            self.move(1)
        elif key == "pgup":
            self.move(-self.height)
        elif key == "pgdown":
            self.move(self.height)
        elif key in ("home", "g"):
            self.move(-len(self.visible))
        elif key in ("end", "G"):
            self.move(len(self.visible))
        elif key in ("left", "h"):
            self.left()
        elif key in ("right", "l"):
            self.right()
        elif key == "enter":
            return self.enter()
        elif key == "space":
            self.toggle_selection()
        elif key == "a":
            self.select_all()
        elif key == "x":
            self.clear_selection()
        return None

    # ---------- rendering ----------
    def _line(self, node: TreeNode, depth: int) -> str:
        if node.is_leaf:
            prefix = "[x] " if node.record.key in self.selected else "[ ] "
        else:
            prefix = "▼ " if node.expanded else "▶ "
        line = "  " * depth + prefix + node.name
        if self.width > 3 and len(line) > self.width:
            line = line[: self.width - 3] + "..."
        return line

    def render(self) -> Fragments:
        if not self.visible:
            return [("class:keylist.empty", "No keys")]
        self._scroll_to_cursor()
        out: Fragments = []
        end = min(len(self.visible), self.offset + self.height)
        for i in range(self.offset, end):
            node, depth = self.visible[i]
            marked = node.is_leaf and node.record.key in self.selected
            if i == self.cursor:
                style = "class:keylist.cursor"
            elif marked:
                style = "class:keylist.marked"
            elif node.is_leaf:
                style = "class:keylist.leaf"
            else:
                style = "class:keylist.folder"
            out.append((style, self._line(node, depth)))
            out.append(("", "\n"))
        return out
