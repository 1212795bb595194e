"""Persistence order: every parent before its children."""
from typing import List, Optional

from ..exceptions import ForestError
from ..models import Node, NodeKind
from .forest import Forest


def order_for_persistence(forest: Forest, max_depth: Optional[int] = None) -> List[Node]:
    """
    Sort nodes by depth, folders before files at equal depth, then by
    discovery order.

    Raises ForestError on dangling parents, cycles or chains deeper than
    max_depth.
    """
    limit = max_depth if max_depth is not None else forest.max_depth
    depths = {}

    def depth(node: Node) -> int:
        chain = []
        current = node
        while current.temp_id not in depths:
            chain.append(current)
            if len(chain) > limit:
                raise ForestError(f"Parent chain of {node.temp_id} exceeds {limit} levels")
            if current.parent_temp_id is None:
                depths[current.temp_id] = 0
                chain.pop()
                break
            parent = forest.get(current.parent_temp_id)
            if parent is None:
                raise ForestError(f"Dangling parent reference on {current.temp_id}")
            current = parent
        base = depths[current.temp_id]
        for offset, item in enumerate(reversed(chain), 1):
            depths[item.temp_id] = base + offset
        if depths[node.temp_id] >= limit:
            raise ForestError(f"{node.name!r} is nested deeper than {limit} levels")
        return depths[node.temp_id]

    indexed = list(enumerate(forest))
    keyed = [
        (depth(node), 0 if node.kind is NodeKind.FOLDER else 1, idx, node)
        for idx, node in indexed
    ]
    keyed.sort(key=lambda k: k[:3])
    return [k[3] for k in keyed]
