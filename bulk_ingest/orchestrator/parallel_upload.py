from typing import Callable, Dict, List, Optional, TYPE_CHECKING
import asyncio
import logging

from ..exceptions import UploadError
from ..models import Node, TempId
from ..protocols import INotificationSink, IObjectStore
from ..utils.events import BatchProgress
from .models import BatchUploadResult, UploadOutcome

if TYPE_CHECKING:
    from .process import CommitProcess

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[int, int, UploadOutcome], None]


class ParallelUploadCoordinator:
    """
    Uploads the file payloads of a batch with bounded concurrency.

    Outcomes settle in a single loop, which is the only place that counts
    progress and writes upload state back onto nodes, so progress reports
    never go backwards. A failed item never stops the batch, and nothing
    is retried.
    """

    def __init__(
        self,
        object_store: IObjectStore,
        notifier: Optional[INotificationSink] = None,
        max_parallel: int = 4,
    ):
        self._store = object_store
        self._notifier = notifier
        self._max_parallel = max_parallel

    async def upload(
        self,
        nodes: List[Node],
        project_ref: str,
        progress_callback: Optional[ProgressCallback] = None,
        process: Optional["CommitProcess"] = None,
    ) -> BatchUploadResult:
        """
        Upload every file node without a remote reference.

        Files uploaded by an earlier attempt count as succeeded and are not
        sent again.
        """
        files = [n for n in nodes if n.is_file]
        result = BatchUploadResult(total=len(files))
        pending: List[Node] = []
        for node in files:
            if node.remote_ref:
                result.succeeded.append(UploadOutcome.ok(node.temp_id, node.name, node.remote_ref))
            else:
                pending.append(node)

        if not pending:
            logger.info(f"No payloads to upload ({len(result.succeeded)} already uploaded)")
            return result

        logger.info(
            f"Starting upload: {len(pending)} file(s), max {self._max_parallel} parallel"
            + (f", {len(result.succeeded)} already uploaded" if result.succeeded else "")
        )

        by_id: Dict[TempId, Node] = {n.temp_id: n for n in pending}
        semaphore = asyncio.Semaphore(self._max_parallel)
        total = result.total
        tasks = [
            asyncio.create_task(
                self._upload_single(node, project_ref, semaphore, idx, len(pending), process)
            )
            for idx, node in enumerate(pending, 1)
        ]

        completed = result.completed
        try:
            for next_done in asyncio.as_completed(tasks):
                outcome = await next_done
                if process and process.is_cancelled:
                    logger.info("Upload cancelled, abandoning remaining items")
                    result.cancelled = True
                    await self._cancel_remaining_tasks(tasks)
                    break

                self._apply(by_id[outcome.temp_id], outcome)
                completed += 1
                if outcome.success:
                    result.succeeded.append(outcome)
                else:
                    result.failed.append(outcome)
                    if self._notifier:
                        self._notifier.warn(f"Failed to upload preview for {outcome.filename}: {outcome.error}")

                if progress_callback:
                    progress_callback(completed, total, outcome)
                if process:
                    await process.item_settled(
                        outcome,
                        BatchProgress(completed, total, len(result.succeeded), len(result.failed)),
                    )
        except asyncio.CancelledError:
            await self._cancel_remaining_tasks(tasks)
            raise

        logger.info(
            f"File uploads complete: {len(result.succeeded)} successful, {len(result.failed)} failed"
        )
        return result

    async def _upload_single(
        self,
        node: Node,
        project_ref: str,
        semaphore: asyncio.Semaphore,
        index: int,
        total_files: int,
        process: Optional["CommitProcess"],
    ) -> UploadOutcome:
        async with semaphore:
            if process and process.is_cancelled:
                return UploadOutcome.fail(node.temp_id, node.name, "Process cancelled")

            payload = node.payload
            if payload is None:
                return UploadOutcome.fail(node.temp_id, node.name, "No payload attached")

            logger.debug(f"[{index}/{total_files}] Uploading: {payload.filename} ({payload.size / 1024:.1f} KB)")
            if process:
                await process.item_started(node)

            try:
                remote_ref = await self._store.upload(project_ref, payload, str(node.temp_id))
                if not remote_ref:
                    raise UploadError("Object store returned an empty reference")
            except asyncio.CancelledError:
                raise
            except Exception as e:
                error_msg = str(e) or f"{type(e).__name__}"
                logger.warning(f"[{index}/{total_files}] Error uploading {payload.filename}: {error_msg}")
                return UploadOutcome.fail(node.temp_id, node.name, error_msg)

            logger.debug(f"[{index}/{total_files}] Uploaded: {payload.filename}")
            return UploadOutcome.ok(node.temp_id, node.name, remote_ref)

    @staticmethod
    def _apply(node: Node, outcome: UploadOutcome) -> None:
        if outcome.success:
            node.remote_ref = outcome.remote_ref
            node.upload_error = None
            if node.payload is not None:
                node.payload.release()
        else:
            node.remote_ref = None
            node.upload_error = outcome.error

    async def _cancel_remaining_tasks(self, tasks: List[asyncio.Task]) -> None:
        """Cancel all remaining tasks and let them drain."""
        for task in tasks:
            if not task.done():
                task.cancel()

        await asyncio.gather(*tasks, return_exceptions=True)
