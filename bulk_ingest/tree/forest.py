"""Batch container owning every node of one ingestion session."""
from typing import Dict, Iterator, List, Optional
import logging

from ..exceptions import ForestError
from ..models import Node, NodeKind, TempId

logger = logging.getLogger(__name__)


class Forest:
    """
    Index of nodes keyed by temporary id, in discovery order.

    Parent links are plain id lookups; children are derived on demand so the
    container stays the single owner of every node.
    """

    def __init__(self, max_depth: int = 10):
        self._nodes: Dict[TempId, Node] = {}
        self._max_depth = max_depth

    @property
    def max_depth(self) -> int:
        return self._max_depth

    def __len__(self) -> int:
        return len(self._nodes)

    def __iter__(self) -> Iterator[Node]:
        return iter(list(self._nodes.values()))

    def __contains__(self, temp_id: object) -> bool:
        return temp_id in self._nodes

    def get(self, temp_id: TempId) -> Optional[Node]:
        return self._nodes.get(temp_id)

    def require(self, temp_id: TempId) -> Node:
        node = self._nodes.get(temp_id)
        if node is None:
            raise ForestError(f"Unknown node: {temp_id}")
        return node

    def add(self, node: Node) -> Node:
        if node.temp_id in self._nodes:
            raise ForestError(f"Duplicate temporary id: {node.temp_id}")
        if node.parent_temp_id is not None:
            parent = self._nodes.get(node.parent_temp_id)
            if parent is None:
                raise ForestError(f"Parent {node.parent_temp_id} not found for {node.name!r}")
            if not parent.is_folder:
                raise ForestError(f"Parent {parent.name!r} is a file and cannot hold children")
        self._nodes[node.temp_id] = node
        return node

    def roots(self) -> List[Node]:
        return [n for n in self._nodes.values() if n.parent_temp_id is None]

    def children_of(self, temp_id: Optional[TempId]) -> List[Node]:
        return [n for n in self._nodes.values() if n.parent_temp_id == temp_id]

    def folders(self) -> List[Node]:
        return [n for n in self._nodes.values() if n.kind is NodeKind.FOLDER]

    def files(self) -> List[Node]:
        return [n for n in self._nodes.values() if n.kind is NodeKind.FILE]

    def descendants(self, temp_id: TempId) -> List[Node]:
        """All nodes below temp_id, parents before their children."""
        self.require(temp_id)
        children: Dict[TempId, List[Node]] = {}
        for node in self._nodes.values():
            if node.parent_temp_id is not None:
                children.setdefault(node.parent_temp_id, []).append(node)

        result: List[Node] = []
        seen = {temp_id}
        stack = list(reversed(children.get(temp_id, [])))
        while stack:
            node = stack.pop()
            if node.temp_id in seen:
                # corrupted parent graph
                logger.warning(f"Cycle detected below {temp_id} at {node.temp_id}")
                continue
            seen.add(node.temp_id)
            result.append(node)
            stack.extend(reversed(children.get(node.temp_id, [])))
        return result

    def depth_of(self, temp_id: TempId) -> int:
        """Root nodes are depth 0. Raises ForestError on a dangling or cyclic chain."""
        node = self.require(temp_id)
        depth = 0
        limit = len(self._nodes)
        while node.parent_temp_id is not None:
            parent = self._nodes.get(node.parent_temp_id)
            if parent is None:
                raise ForestError(f"Dangling parent reference on {node.temp_id}")
            depth += 1
            if depth > limit:
                raise ForestError(f"Cycle in parent chain of {temp_id}")
            node = parent
        return depth

    def height(self) -> int:
        """Number of levels in the forest (0 when empty)."""
        if not self._nodes:
            return 0
        return 1 + max(self.depth_of(t) for t in self._nodes)

    def remove(self, temp_id: TempId) -> List[Node]:
        """Remove a node and all its descendants, releasing their payloads."""
        node = self.require(temp_id)
        removed = [node] + self.descendants(temp_id)
        for item in removed:
            del self._nodes[item.temp_id]
            if item.payload is not None:
                item.payload.release()
        logger.debug(f"Removed {len(removed)} node(s) starting at {node.name!r}")
        return removed

    def move(self, temp_id: TempId, new_parent: Optional[TempId]) -> Node:
        """Re-parent a node, refusing cycles, file parents and excess depth."""
        node = self.require(temp_id)
        if new_parent is None:
            node.parent_temp_id = None
            return node
        if new_parent == temp_id:
            raise ForestError("Cannot set a folder as its own parent")
        parent = self.require(new_parent)
        if not parent.is_folder:
            raise ForestError(f"Parent {parent.name!r} is a file and cannot hold children")

        subtree = self.descendants(temp_id)
        if any(d.temp_id == new_parent for d in subtree):
            raise ForestError("Cannot move a folder under one of its descendants")

        subtree_height = 1 + max(
            (self._relative_depth(d, temp_id) for d in subtree), default=0
        )
        if self.depth_of(new_parent) + 1 + subtree_height > self._max_depth:
            raise ForestError(f"Maximum folder depth ({self._max_depth} levels) exceeded")

        node.parent_temp_id = new_parent
        return node

    def _relative_depth(self, node: Node, ancestor: TempId) -> int:
        depth = 0
        current = node
        while current.temp_id != ancestor and current.parent_temp_id is not None:
            depth += 1
            current = self._nodes[current.parent_temp_id]
        return depth

    def toggle_expanded(self, temp_id: TempId) -> bool:
        node = self.require(temp_id)
        if node.is_folder:
            node.expanded = not node.expanded
        return node.expanded

    def expand_all(self) -> None:
        for node in self.folders():
            node.expanded = True

    def collapse_all(self) -> None:
        for node in self.folders():
            node.expanded = False

    def stats(self) -> Dict[str, int]:
        return {
            "folders": len(self.folders()),
            "files": len(self.files()),
            "errors": sum(1 for n in self._nodes.values() if n.errors),
        }

    def release_payloads(self) -> int:
        """Release every payload still held. Returns how many were released now."""
        released = 0
        for node in self._nodes.values():
            if node.payload is not None and node.payload.release():
                released += 1
        return released

    def clear(self) -> None:
        self.release_payloads()
        self._nodes.clear()
