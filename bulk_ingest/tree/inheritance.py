"""Attribute inheritance along parent links."""
from typing import Any, List, Optional
import logging

from ..exceptions import ForestError
from ..models import Node, TempId
from .forest import Forest

logger = logging.getLogger(__name__)

INHERITABLE = {"link": "", "association": None}


def _is_set(value: Any) -> bool:
    if value is None:
        return False
    if isinstance(value, str):
        return bool(value.strip())
    return True


class InheritanceResolver:
    """
    Read-time fallback to the nearest ancestor's value.

    Never mutates the forest. The walk is capped at ``max_depth`` hops so a
    corrupted parent graph resolves to "no inherited value".
    """

    def __init__(self, forest: Forest, max_depth: Optional[int] = None):
        self._forest = forest
        self._max_depth = max_depth if max_depth is not None else forest.max_depth

    def resolve(self, node: Node, attribute: str) -> Any:
        source = self.inherited_from(node, attribute)
        if source is None:
            return INHERITABLE[attribute]
        return getattr(source, attribute)

    def inherited_from(self, node: Node, attribute: str) -> Optional[Node]:
        """Node supplying the effective value: node itself or an ancestor."""
        if attribute not in INHERITABLE:
            raise ValueError(f"Attribute is not inheritable: {attribute}")

        current: Optional[Node] = node
        hops = 0
        while current is not None:
            if _is_set(getattr(current, attribute)):
                return current
            if current.parent_temp_id is None:
                return None
            hops += 1
            if hops > self._max_depth:
                logger.warning(f"Inheritance walk for {node.temp_id} exceeded {self._max_depth} levels")
                return None
            current = self._forest.get(current.parent_temp_id)
        return None


def batch_assign(forest: Forest, folder_id: TempId, association: Optional[str]) -> List[Node]:
    """
    Write an association onto a folder and every descendant.

    Overwrites descendants' own values; ``None`` clears them.
    """
    folder = forest.require(folder_id)
    if not folder.is_folder:
        raise ForestError(f"{folder.name!r} is not a folder")
    updated = [folder] + forest.descendants(folder_id)
    for node in updated:
        node.association = association
    logger.debug(f"Assigned association {association!r} to {len(updated)} node(s) under {folder.name!r}")
    return updated
