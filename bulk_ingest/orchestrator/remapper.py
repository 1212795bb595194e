"""Temporary to final identifier translation."""
from datetime import datetime, timezone
from typing import Callable, Dict, List, Mapping, Optional
import itertools
import logging
import time

from ..exceptions import ForestError
from ..models import AssetRecord, FinalId, Node, TempId
from ..tree.inheritance import InheritanceResolver
from .models import RemapResult

logger = logging.getLogger(__name__)


class IdRemapper:
    """
    Assigns final ids in one pass over topologically ordered nodes and
    rewires parent references through a lookup built as parents go by.

    Final ids look like ``<prefix>_<epoch ms>_<sequence>``; the sequence
    keeps increasing for the lifetime of the remapper, so ids stay distinct
    even within the same millisecond.
    """

    def __init__(self, prefix: str = "asset", clock: Callable[[], float] = time.time):
        self._prefix = prefix
        self._clock = clock
        self._sequence = itertools.count(1)

    def next_id(self) -> FinalId:
        return FinalId(f"{self._prefix}_{int(self._clock() * 1000)}_{next(self._sequence)}")

    def remap(
        self,
        ordered: List[Node],
        resolver: InheritanceResolver,
        destination: Optional[FinalId] = None,
        known: Optional[Mapping[TempId, FinalId]] = None,
    ) -> RemapResult:
        """
        Build persisted records for ``ordered``.

        Args:
            ordered: Nodes with every parent before its children
            resolver: Supplies inherited link/association values
            destination: Existing folder the batch's roots are added into
            known: Final ids of parents persisted by an earlier commit

        Raises:
            ForestError: a parent was neither processed earlier nor known
        """
        lookup: Dict[TempId, FinalId] = dict(known or {})
        id_map: Dict[TempId, FinalId] = {}
        records: List[AssetRecord] = []
        created_at = datetime.fromtimestamp(self._clock(), tz=timezone.utc).isoformat()

        for node in ordered:
            if node.parent_temp_id is None:
                parent_id = destination
            else:
                parent_id = lookup.get(node.parent_temp_id)
                if parent_id is None:
                    raise ForestError(
                        f"Parent {node.parent_temp_id} of {node.name!r} has no final id; "
                        "nodes are not in persistence order"
                    )

            final_id = self.next_id()
            lookup[node.temp_id] = final_id
            id_map[node.temp_id] = final_id

            records.append(AssetRecord(
                id=final_id,
                asset_name=node.name.strip(),
                asset_type=node.kind.value,
                link=(resolver.resolve(node, "link") or "").strip(),
                asset_id=resolver.resolve(node, "association"),
                parent_id=parent_id,
                preview_url=node.remote_ref if node.is_file else None,
                created_at=created_at,
            ))

        logger.debug(f"Remapped {len(records)} record(s)")
        return RemapResult(records=records, id_map=id_map)
