"""Concrete syntax tree and the cursor used to walk it.

The parser builds a tree of `CstNode`s that mirrors the concrete grammar,
including operator and punctuation leaves. The translator never touches the
nodes directly; it moves a `TreeCursor` around the tree and reads node type
names and source offsets.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional


@dataclass(frozen=True)
class NodeType:
    name: str


@dataclass(eq=False)
class CstNode:
    type: NodeType
    start: int
    end: int
    children: list[CstNode] = field(default_factory=list)
    parent: Optional[CstNode] = field(default=None, repr=False)

    @classmethod
    def make(cls, name: str, start: int, end: int, children: Optional[list[CstNode]] = None) -> CstNode:
        node = cls(NodeType(name), start, end, list(children or []))
        for child in node.children:
            child.parent = node
        return node

    def text(self, src: str) -> str:
        return src[self.start:self.end]

    def pretty(self, src: str, indent: int = 0) -> str:
        """Debug dump of the subtree, one node per line."""
        pad = "  " * indent
        if not self.children:
            return f"{pad}{self.type.name} {self.text(src)!r}"
        lines = [f"{pad}{self.type.name}"]
        lines.extend(c.pretty(src, indent + 1) for c in self.children)
        return "\n".join(lines)


@dataclass
class ConcreteTree:
    root: CstNode
    source: str

    def cursor(self) -> TreeCursor:
        return TreeCursor(self.root)


class TreeCursor:
    """A movable pointer into a concrete syntax tree.

    Every move returns True if it succeeded; on failure the cursor stays put.
    """

    def __init__(self, node: CstNode):
        self._node = node

    @property
    def node(self) -> CstNode:
        return self._node

    @property
    def type(self) -> NodeType:
        return self._node.type

    @property
    def start(self) -> int:
        return self._node.start

    @property
    def end(self) -> int:
        return self._node.end

    def first_child(self) -> bool:
        if not self._node.children:
            return False
        self._node = self._node.children[0]
        return True

    def last_child(self) -> bool:
        if not self._node.children:
            return False
        self._node = self._node.children[-1]
        return True

    def next_sibling(self) -> bool:
        parent = self._node.parent
        if parent is None:
            return False
        idx = self._index_in(parent)
        if idx + 1 >= len(parent.children):
            return False
        self._node = parent.children[idx + 1]
        return True

    def parent(self) -> bool:
        if self._node.parent is None:
            return False
        self._node = self._node.parent
        return True

    def _index_in(self, parent: CstNode) -> int:
        for i, child in enumerate(parent.children):
            if child is self._node:
                return i
        raise ValueError("cursor node is not a child of its parent")
