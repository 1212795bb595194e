from enum import Enum
from typing import Any, Callable, Dict, Optional, TYPE_CHECKING
import asyncio
import logging

from ..models import FinalId, Node
from ..utils.events import BatchProgress, EventEmitter
from .models import CommitResult, CommitStatus, UploadOutcome

if TYPE_CHECKING:
    from .batch import IngestBatch
    from .commit import CommitHandler

logger = logging.getLogger(__name__)


class ProcessState(Enum):
    """State of a commit process."""
    PENDING = "pending"
    RUNNING = "running"
    CANCELLED = "cancelled"
    COMPLETED = "completed"
    FAILED = "failed"


class CommitProcess:
    """
    Process object for committing a batch with event-based progress tracking.

    Usage:
        process = orchestrator.commit(batch, destination)
        process.on_item_start(lambda node: print(f"Uploading: {node.name}"))
        process.on_progress(lambda p: print(f"{p.completed}/{p.total}"))
        process.on_item_fail(lambda outcome: print(f"Failed: {outcome.filename}"))
        process.on_finish(lambda result: print(result.status))

        result = await process.wait()  # wait() starts automatically if needed

    Cancelling before the records are saved abandons the batch: in-flight
    uploads are dropped without further events and payloads are released.
    """

    def __init__(
        self,
        handler: "CommitHandler",
        batch: "IngestBatch",
        destination: Optional[FinalId] = None,
    ):
        self._handler = handler
        self._batch = batch
        self._destination = destination
        self._events = EventEmitter()
        self._state = ProcessState.PENDING
        self._task: Optional[asyncio.Task] = None
        self._result: Optional[CommitResult] = None
        self._error: Optional[Exception] = None

        self._stats: Dict[str, Any] = {
            "total_files": 0,
            "completed": 0,
            "uploaded": 0,
            "failed": 0,
            "current_file": None,
        }
        self._stats_lock = asyncio.Lock()

    # Event subscription methods
    def on_start(self, callback: Callable[[], None]):
        """Called when the commit starts."""
        self._events.on("start", callback)

    def on_item_start(self, callback: Callable[[Node], None]):
        """Called when a file starts uploading. Receives the Node."""
        self._events.on("item_start", callback)

    def on_item_complete(self, callback: Callable[[UploadOutcome], None]):
        """Called when a file upload succeeds. Receives UploadOutcome."""
        self._events.on("item_complete", callback)

    def on_item_fail(self, callback: Callable[[UploadOutcome], None]):
        """Called when a file upload fails. Receives UploadOutcome."""
        self._events.on("item_fail", callback)

    def on_progress(self, callback: Callable[[BatchProgress], None]):
        """Called after every settled item. Receives BatchProgress."""
        self._events.on("progress", callback)

    def on_finish(self, callback: Callable[[CommitResult], None]):
        """Called when the commit step ends. Receives CommitResult."""
        self._events.on("finish", callback)

    def on_error(self, callback: Callable[[Exception], None]):
        """Called when an unexpected error aborts the commit."""
        self._events.on("error", callback)

    # Control methods
    async def start(self):
        """Start the commit (non-blocking)."""
        if self._state != ProcessState.PENDING:
            raise RuntimeError(f"Cannot start process in state: {self._state}")

        self._state = ProcessState.RUNNING
        self._task = asyncio.create_task(self._run())
        await self._events.emit("start")

    async def cancel(self):
        """
        Abandon the commit and the batch.

        Once records are being written to the project store the commit can
        no longer be abandoned: cancel() then waits for the store's answer
        and the process ends with the real result.
        """
        if self._state in (ProcessState.COMPLETED, ProcessState.CANCELLED, ProcessState.FAILED):
            return

        if self._batch.persisting:
            logger.warning("Records are being saved, waiting for the project store instead of cancelling")
            await self.wait()
            return

        self._state = ProcessState.CANCELLED
        self._events.mute()

        if self._task and not self._task.done():
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass

        self._batch.end_commit()
        self._batch.discard()
        self._result = CommitResult(status=CommitStatus.CANCELLED, error="Commit cancelled")

    async def wait(self) -> CommitResult:
        """Wait for the commit to finish and return its result."""
        if self._state == ProcessState.PENDING:
            await self.start()

        if self._task:
            try:
                await self._task
            except asyncio.CancelledError:
                if not self.is_cancelled:
                    raise

        if self._result is None:
            self._result = CommitResult(
                status=CommitStatus.CANCELLED,
                error="Process was cancelled or failed without result",
            )
        return self._result

    # State properties
    @property
    def state(self) -> ProcessState:
        return self._state

    @property
    def stats(self) -> Dict[str, Any]:
        return self._stats.copy()

    @property
    def result(self) -> Optional[CommitResult]:
        return self._result

    @property
    def batch(self) -> "IngestBatch":
        return self._batch

    @property
    def is_running(self) -> bool:
        return self._state == ProcessState.RUNNING

    @property
    def is_completed(self) -> bool:
        return self._state == ProcessState.COMPLETED

    @property
    def is_cancelled(self) -> bool:
        return self._state == ProcessState.CANCELLED

    # Hooks called by the upload coordinator
    async def item_started(self, node: Node):
        async with self._stats_lock:
            self._stats["current_file"] = node.name
        await self._events.emit("item_start", node)

    async def item_settled(self, outcome: UploadOutcome, progress: BatchProgress):
        async with self._stats_lock:
            self._stats["total_files"] = progress.total
            self._stats["completed"] = progress.completed
            self._stats["uploaded"] = progress.succeeded
            self._stats["failed"] = progress.failed

        await self._events.emit("item_complete" if outcome.success else "item_fail", outcome)
        await self._events.emit("progress", progress)

    # Internal methods
    async def _run(self):
        try:
            result = await self._handler.commit(self._batch, self._destination, process=self)
            if self.is_cancelled:
                return
            self._result = result
            self._state = ProcessState.COMPLETED
            await self._events.emit("finish", result)

        except asyncio.CancelledError:
            self._state = ProcessState.CANCELLED
            raise
        except Exception as e:
            self._state = ProcessState.FAILED
            self._error = e
            logger.error(f"Commit process failed: {e}", exc_info=True)
            await self._events.emit("error", e)
            self._result = CommitResult(status=CommitStatus.FAILED, error=str(e) or type(e).__name__)
