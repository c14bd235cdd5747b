"""Node arena: proof nodes addressed by stable integer ids.

Nodes never hold references to each other, only ids. Whoever mutates a
node publishes its id afterwards; subscribers (displays, feedback
invalidation) are told which node changed and look it up again.
"""

from __future__ import annotations

from typing import Callable, Optional

DEFAULT_FEEDBACK_DEBOUNCE_MS = 300

Listener = Callable[["Arena", int], None]


class Subscription:
    def __init__(self, arena: Arena, key: int):
        self._arena = arena
        self._key = key

    def unsubscribe(self) -> None:
        self._arena._listeners.pop(self._key, None)


class ArenaNode:
    """Base for anything stored in an arena. `id` is set by `Arena.add`."""

    id: int = -1


class Arena:
    def __init__(self, feedback_debounce_ms: int = DEFAULT_FEEDBACK_DEBOUNCE_MS):
        self.feedback_debounce_ms = feedback_debounce_ms
        self._nodes: list[ArenaNode] = []
        self._listeners: dict[int, Listener] = {}
        self._next_key = 0

    def add(self, node: ArenaNode) -> int:
        node.id = len(self._nodes)
        self._nodes.append(node)
        return node.id

    def get(self, node_id: int) -> ArenaNode:
        return self._nodes[node_id]

    def find(self, node_id: int) -> Optional[ArenaNode]:
        if 0 <= node_id < len(self._nodes):
            return self._nodes[node_id]
        return None

    def __len__(self) -> int:
        return len(self._nodes)

    def subscribe(self, listener: Listener) -> Subscription:
        key = self._next_key
        self._next_key += 1
        self._listeners[key] = listener
        return Subscription(self, key)

    def publish(self, node_id: int) -> None:
        """Tell every listener that node `node_id` changed."""
        # Listeners may unsubscribe while we iterate.
        for key, listener in list(self._listeners.items()):
            if key in self._listeners:
                listener(self, node_id)

    @property
    def listener_count(self) -> int:
        return len(self._listeners)
