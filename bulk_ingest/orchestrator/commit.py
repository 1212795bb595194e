"""Commit workflow: order, upload, remap and persist a batch."""
from typing import Any, Dict, List, Optional, TYPE_CHECKING
import asyncio
import logging

from ..exceptions import StoreError
from ..models import CommitPolicy, FinalId, IngestConfig
from ..protocols import INotificationSink, IObjectStore, IProjectStore
from ..tree import order_for_persistence
from .models import CommitResult, CommitStatus
from .parallel_upload import ParallelUploadCoordinator, ProgressCallback
from .remapper import IdRemapper

if TYPE_CHECKING:
    from .batch import IngestBatch
    from .process import CommitProcess

logger = logging.getLogger(__name__)


def _plural(count: int, word: str = "item") -> str:
    return f"{count} {word}{'' if count == 1 else 's'}"


class CommitHandler:
    """
    Runs the submit stages for one project.

    Stage-local problems (validation, destination, policy) come back as a
    CommitResult; only unexpected exceptions propagate.
    """

    def __init__(
        self,
        project_ref: str,
        object_store: IObjectStore,
        project_store: IProjectStore,
        notifier: Optional[INotificationSink] = None,
        config: Optional[IngestConfig] = None,
        remapper: Optional[IdRemapper] = None,
    ):
        self._project_ref = project_ref
        self._project_store = project_store
        self._notifier = notifier
        self._config = config or IngestConfig()
        self._remapper = remapper or IdRemapper(prefix=self._config.id_prefix)
        self._coordinator = ParallelUploadCoordinator(
            object_store, notifier, max_parallel=self._config.max_parallel
        )

    async def commit(
        self,
        batch: "IngestBatch",
        destination: Optional[FinalId] = None,
        process: Optional["CommitProcess"] = None,
        progress_callback: Optional[ProgressCallback] = None,
    ) -> CommitResult:
        if batch.closed:
            return CommitResult(status=CommitStatus.REJECTED, error="Batch is closed")
        if not batch.pending_nodes():
            return CommitResult(status=CommitStatus.REJECTED, error="Nothing to commit")

        if not batch.validate():
            message = "Please fix validation errors before saving"
            self._notify("error", message)
            return CommitResult(status=CommitStatus.INVALID, error=message)

        if destination is None:
            destination = batch.destination
        if destination is not None:
            try:
                error = await self._check_destination(destination, batch)
            except StoreError as e:
                logger.error(f"Could not load existing records: {e}")
                self._notify("error", "Failed to load project assets. Please try again.")
                return CommitResult(status=CommitStatus.FAILED, error=str(e))
            if error:
                self._notify("error", error)
                return CommitResult(status=CommitStatus.REJECTED, error=error)
        batch.destination = destination

        batch.begin_commit()
        try:
            return await self._commit(batch, destination, process, progress_callback)
        finally:
            batch.end_commit()

    async def _commit(
        self,
        batch: "IngestBatch",
        destination: Optional[FinalId],
        process: Optional["CommitProcess"],
        progress_callback: Optional[ProgressCallback],
    ) -> CommitResult:
        policy = self._config.commit_policy
        ordered = [
            n for n in order_for_persistence(batch.forest, self._config.max_depth)
            if not n.committed
        ]
        logger.info(f"Committing {_plural(len(ordered), 'node')} to project {self._project_ref} ({policy.value})")

        uploads = await self._coordinator.upload(ordered, self._project_ref, progress_callback, process)
        if uploads.cancelled:
            return CommitResult(status=CommitStatus.CANCELLED, uploads=uploads, error="Commit cancelled")

        failed_ids = set(uploads.failed_ids)
        if failed_ids and policy is CommitPolicy.ALL_OR_NOTHING:
            message = (
                f"{_plural(len(failed_ids), 'file')} failed to upload; nothing was saved. "
                "Retry to upload the remaining files."
            )
            self._notify("error", message)
            return CommitResult(
                status=CommitStatus.REJECTED, uploads=uploads, failed=list(uploads.failed), error=message
            )

        if policy is CommitPolicy.PARTIAL:
            to_persist = [n for n in ordered if n.temp_id not in failed_ids]
        else:
            to_persist = ordered

        remap = self._remapper.remap(to_persist, batch.resolver, destination, batch.known_ids())
        records: List[Dict[str, Any]] = [r.to_dict() for r in remap.records]

        # past this point the commit can no longer be abandoned
        batch.begin_persist()
        try:
            if records:
                try:
                    await asyncio.shield(self._project_store.upsert(self._project_ref, records))
                except StoreError as e:
                    logger.error(f"Project store rejected {_plural(len(records), 'record')}: {e}")
                    self._notify("error", "Failed to save files. Please try again.")
                    return CommitResult(
                        status=CommitStatus.FAILED, uploads=uploads, failed=list(uploads.failed), error=str(e)
                    )
            batch.mark_committed(remap.id_map)
        finally:
            batch.end_persist()

        kept_back = [o for o in uploads.failed if policy is CommitPolicy.PARTIAL]
        if kept_back:
            self._notify(
                "warn",
                f"Added {_plural(len(remap.records))}; {_plural(len(kept_back), 'file')} failed to upload "
                "and can be retried",
            )
            status = CommitStatus.PARTIAL
        elif uploads.failed:
            names = ", ".join(o.filename for o in uploads.failed)
            self._notify(
                "warn",
                f"Added {_plural(len(remap.records))}; "
                f"{_plural(len(uploads.failed), 'file')} saved without a preview: {names}",
            )
            status = CommitStatus.COMMITTED
        else:
            self._notify("info", f"Added {_plural(len(remap.records))}")
            status = CommitStatus.COMMITTED

        logger.info(f"Commit {status.value}: {len(remap.records)} persisted, {len(uploads.failed)} upload failure(s)")
        return CommitResult(status=status, records=remap.records, uploads=uploads, failed=list(uploads.failed))

    async def _check_destination(self, destination: FinalId, batch: "IngestBatch") -> Optional[str]:
        """Existing folder the batch goes into, within the depth limit."""
        records = await self._project_store.get_records(self._project_ref)
        by_id = {str(r.get("id")): r for r in records}
        target = by_id.get(str(destination))
        if target is None:
            return f"Destination folder not found: {destination}"
        if target.get("asset_type") != "folder":
            return f"Destination is not a folder: {target.get('asset_name', destination)}"

        depth = 0
        current = target
        while current.get("parent_id"):
            depth += 1
            if depth >= self._config.max_depth:
                return f"Maximum folder depth ({self._config.max_depth} levels) exceeded"
            current = by_id.get(str(current["parent_id"]))
            if current is None:
                break

        if depth + 1 + batch.forest.height() > self._config.max_depth:
            return f"Maximum folder depth ({self._config.max_depth} levels) exceeded"
        return None

    def _notify(self, level: str, message: str) -> None:
        if self._notifier:
            getattr(self._notifier, level)(message)
