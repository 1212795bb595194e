"""Tree construction: temporary ids and parent wiring."""
from typing import Callable, Optional, Set
import random
import string
import time

from ..models import ErrorCode, LocalPayload, Node, NodeKind, TempId
from .forest import Forest

_ALPHABET = string.digits + string.ascii_lowercase


def generate_temp_id(clock: Callable[[], float] = time.time) -> TempId:
    """temp-<epoch ms>-<9 base36 chars>"""
    suffix = "".join(random.choices(_ALPHABET, k=9))
    return TempId(f"temp-{int(clock() * 1000)}-{suffix}")


class TreeBuilder:
    """
    Assigns temporary ids and links nodes to their parents as they are
    discovered. Purely structural: no filtering, no validation.
    """

    def __init__(self, forest: Optional[Forest] = None, max_depth: int = 10,
                 id_factory: Callable[[], TempId] = generate_temp_id):
        self._forest = forest if forest is not None else Forest(max_depth=max_depth)
        self._id_factory = id_factory
        self._issued: Set[TempId] = {n.temp_id for n in self._forest}

    @property
    def forest(self) -> Forest:
        return self._forest

    def next_id(self) -> TempId:
        temp_id = self._id_factory()
        while temp_id in self._issued:
            temp_id = self._id_factory()
        self._issued.add(temp_id)
        return temp_id

    def add_folder(self, name: str, parent: Optional[TempId] = None, link: str = "") -> Node:
        node = Node(
            temp_id=self.next_id(),
            name=name,
            kind=NodeKind.FOLDER,
            parent_temp_id=parent,
            link=link,
            expanded=True,
        )
        if not link.strip():
            node.errors["link"] = ErrorCode.REQUIRED
        return self._forest.add(node)

    def add_file(self, name: str, payload: LocalPayload, parent: Optional[TempId] = None) -> Node:
        node = Node(
            temp_id=self.next_id(),
            name=name,
            kind=NodeKind.FILE,
            parent_temp_id=parent,
            payload=payload,
        )
        return self._forest.add(node)

    def build(self) -> Forest:
        return self._forest
