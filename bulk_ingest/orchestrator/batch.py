"""Editable ingestion batch: one forest per session."""
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence, Union
import logging

from ..exceptions import ForestError
from ..models import (
    CatalogItem,
    DiscoveryMode,
    FinalId,
    IngestConfig,
    Node,
    TempId,
)
from ..protocols import INotificationSink
from ..scanner import Entry, EntryScanner, PathEntry, ScanResult, SkippedEntry, strip_extension
from ..tree import Forest, InheritanceResolver, TreeBuilder, Validator, batch_assign

logger = logging.getLogger(__name__)

EDITABLE_FIELDS = {"name", "link", "association", "expanded"}


class IngestBatch:
    """
    Session object around the forest of one drop.

    Edits are validated incrementally; the batch refuses edits while it is
    being committed. Nodes persisted by a partial commit stay in the forest
    (with ``final_id`` set) so failed files keep resolvable parents.
    """

    def __init__(
        self,
        forest: Optional[Forest] = None,
        mode: DiscoveryMode = DiscoveryMode.IDLE,
        config: Optional[IngestConfig] = None,
        notifier: Optional[INotificationSink] = None,
        skipped: Optional[List[SkippedEntry]] = None,
        catalog: Optional[Sequence[CatalogItem]] = None,
    ):
        self._config = config or IngestConfig()
        self._notifier = notifier
        self._forest = forest if forest is not None else Forest(max_depth=self._config.max_depth)
        self._builder = TreeBuilder(self._forest)
        self._scanner = EntryScanner(self._config, notifier)
        self._validator = Validator(self._forest)
        self._resolver = InheritanceResolver(self._forest, self._config.max_depth)
        self.mode = mode
        self.skipped: List[SkippedEntry] = list(skipped or [])
        self.catalog: List[CatalogItem] = list(catalog or [])
        self.destination: Optional[FinalId] = None
        self._committing = False
        self._persisting = False
        self._closed = False

    @classmethod
    def from_scan(cls, result: ScanResult, config: Optional[IngestConfig] = None,
                  notifier: Optional[INotificationSink] = None) -> "IngestBatch":
        return cls(result.forest, result.mode, config, notifier, result.skipped)

    # State properties
    @property
    def forest(self) -> Forest:
        return self._forest

    @property
    def config(self) -> IngestConfig:
        return self._config

    @property
    def resolver(self) -> InheritanceResolver:
        return self._resolver

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def committing(self) -> bool:
        return self._committing

    @property
    def persisting(self) -> bool:
        """True while records are being written to the project store."""
        return self._persisting

    @property
    def is_submit_ready(self) -> bool:
        return len(self.pending_nodes()) > 0 and self._validator.is_submit_ready()

    def __len__(self) -> int:
        return len(self._forest)

    # Manual additions
    def add_folder(self, name: str, parent: Optional[TempId] = None, link: str = "") -> Node:
        self._check_editable()
        self._check_depth(parent)
        node = self._builder.add_folder(name, parent, link)
        self._validator.validate_field(node, "name")
        if self.mode is not DiscoveryMode.FOLDER:
            self.mode = DiscoveryMode.FOLDER
        return node

    def add_file(self, source: Union[Entry, Path, str], parent: Optional[TempId] = None) -> Optional[Node]:
        """Add one file through the same filters as a drop. Returns None when rejected."""
        self._check_editable()
        self._check_depth(parent)
        entry = source if isinstance(source, Entry) else PathEntry(Path(source))

        if len(self._forest.files()) >= self._config.max_files:
            self._warn(f"Too many files! Maximum {self._config.max_files} files allowed")
            return None

        payload = self._scanner.admit_file(entry, self.skipped)
        if payload is None:
            return None
        node = self._builder.add_file(strip_extension(entry.name), payload, parent)
        if self.mode is DiscoveryMode.IDLE:
            self.mode = DiscoveryMode.FILES
        return node

    # Edits
    def update(self, temp_id: TempId, **changes: Any) -> Node:
        """Edit node fields, re-validating only the fields that changed."""
        self._check_editable()
        unknown = set(changes) - EDITABLE_FIELDS
        if unknown:
            raise ForestError(f"Fields cannot be edited: {', '.join(sorted(unknown))}")

        node = self._require_pending(temp_id)
        for field, value in changes.items():
            if field == "association" and value is not None:
                self._check_catalog(value)
            setattr(node, field, value)
            if field in ("name", "link"):
                self._validator.validate_field(node, field)
        return node

    def remove(self, temp_id: TempId) -> List[Node]:
        self._check_editable()
        self._require_pending(temp_id)
        return self._forest.remove(temp_id)

    def move(self, temp_id: TempId, new_parent: Optional[TempId]) -> Node:
        self._check_editable()
        self._require_pending(temp_id)
        node = self._forest.move(temp_id, new_parent)
        self._validator.validate_field(node, "parent_temp_id")
        return node

    def assign_association(self, temp_id: TempId, item_id: Optional[str]) -> Node:
        return self.update(temp_id, association=item_id)

    def batch_assign(self, folder_id: TempId, item_id: Optional[str]) -> List[Node]:
        """Set the association on a folder and every node below it."""
        self._check_editable()
        self._require_pending(folder_id)
        if item_id is not None:
            self._check_catalog(item_id)
        return batch_assign(self._forest, folder_id, item_id)

    def toggle_expanded(self, temp_id: TempId) -> bool:
        return self._forest.toggle_expanded(temp_id)

    # Queries
    def validate(self) -> bool:
        return self._validator.validate()

    def effective_link(self, temp_id: TempId) -> str:
        return self._resolver.resolve(self._forest.require(temp_id), "link")

    def effective_association(self, temp_id: TempId) -> Optional[str]:
        return self._resolver.resolve(self._forest.require(temp_id), "association")

    def pending_nodes(self) -> List[Node]:
        return [n for n in self._forest if not n.committed]

    def known_ids(self) -> Dict[TempId, FinalId]:
        return {n.temp_id: n.final_id for n in self._forest if n.final_id is not None}

    def stats(self) -> Dict[str, int]:
        stats = self._forest.stats()
        stats["committed"] = len(self.known_ids())
        stats["skipped"] = len(self.skipped)
        return stats

    # Lifecycle
    def begin_commit(self) -> None:
        self._check_editable()
        self._committing = True

    def end_commit(self) -> None:
        self._committing = False

    def begin_persist(self) -> None:
        self._persisting = True

    def end_persist(self) -> None:
        self._persisting = False

    def mark_committed(self, id_map: Dict[TempId, FinalId]) -> None:
        for temp_id, final_id in id_map.items():
            node = self._forest.get(temp_id)
            if node is not None:
                node.final_id = final_id
        if not self.pending_nodes():
            logger.info("Every node of the batch is persisted, closing it")
            self.close()

    def discard(self) -> int:
        """Abandon the batch. Returns how many payloads were released now."""
        if self._closed:
            return 0
        released = self._forest.release_payloads()
        self.close()
        logger.info(f"Batch discarded ({released} payload(s) released)")
        return released

    def close(self) -> None:
        if self._closed:
            return
        self._forest.clear()
        self._closed = True
        self.mode = DiscoveryMode.IDLE

    # Internal helpers
    def _check_editable(self) -> None:
        if self._closed:
            raise ForestError("Batch is closed")
        if self._committing:
            raise ForestError("Batch is being committed")

    def _require_pending(self, temp_id: TempId) -> Node:
        node = self._forest.require(temp_id)
        if node.committed:
            raise ForestError(f"{node.name!r} is already persisted")
        return node

    def _check_depth(self, parent: Optional[TempId]) -> None:
        if parent is None:
            return
        if self._forest.depth_of(parent) + 1 >= self._config.max_depth:
            raise ForestError(f"Maximum folder depth ({self._config.max_depth} levels) exceeded")

    def _check_catalog(self, item_id: str) -> None:
        if self.catalog and item_id not in {item.id for item in self.catalog}:
            raise ForestError(f"Unknown catalog item: {item_id}")

    def _warn(self, message: str) -> None:
        logger.warning(message)
        if self._notifier:
            self._notifier.warn(message)
