"""Core orchestrator - wires services and hands out batches and commits."""
from pathlib import Path
from typing import Iterable, List, Optional, Sequence, Union
import logging

from ..models import CatalogItem, DiscoveryMode, FinalId, IngestConfig
from ..protocols import ICatalog, INotificationSink, IObjectStore, IProjectStore
from ..scanner import Entry, EntryScanner, entries_from_paths
from ..services.api_client import HTTPAPIClient
from ..services.catalog import HTTPCatalog
from ..services.notifications import LoggingNotifier
from ..services.object_store import HTTPObjectStore
from ..services.project_store import HTTPProjectStore
from .batch import IngestBatch
from .commit import CommitHandler
from .process import CommitProcess

logger = logging.getLogger(__name__)


class IngestOrchestrator:
    """
    Orchestrates bulk ingestion into one project using injected services.

    Usage:
        # HTTP services built from URLs
        async with IngestOrchestrator("project-1", api_url=api, storage_url=storage) as ingest:
            batch = ingest.scan([Path("Designs")])
            batch.update(folder.temp_id, link="https://drive.google.com/...")
            result = await ingest.commit(batch).wait()

        # Pre-built services (tests, other backends)
        ingest = IngestOrchestrator("project-1", object_store=store, project_store=repo)
    """

    def __init__(
        self,
        project_ref: str,
        api_url: Optional[str] = None,
        storage_url: Optional[str] = None,
        object_store: Optional[IObjectStore] = None,
        project_store: Optional[IProjectStore] = None,
        catalog: Optional[ICatalog] = None,
        notifier: Optional[INotificationSink] = None,
        config: Optional[IngestConfig] = None,
    ):
        self._project_ref = project_ref
        self._api_url = api_url
        self._storage_url = storage_url or api_url
        self._config = config or IngestConfig()
        self._notifier = notifier or LoggingNotifier()
        self._object_store = object_store
        self._project_store = project_store
        self._catalog = catalog

        self._api_client: Optional[HTTPAPIClient] = None
        self._storage_client: Optional[HTTPAPIClient] = None
        self._handler: Optional[CommitHandler] = None
        self._scanner = EntryScanner(self._config, self._notifier)
        self._catalog_items: List[CatalogItem] = []

    async def __aenter__(self):
        """Open HTTP clients for services that were not injected."""
        if self._project_store is None and not self._api_url:
            raise ValueError("Either api_url or project_store must be provided")
        if self._api_url and (self._project_store is None or self._catalog is None):
            self._api_client = HTTPAPIClient(self._api_url)
            await self._api_client.__aenter__()
            if self._project_store is None:
                self._project_store = HTTPProjectStore(self._api_client)
            if self._catalog is None:
                self._catalog = HTTPCatalog(self._api_client)

        if self._object_store is None:
            if not self._storage_url:
                raise ValueError("Either storage_url or object_store must be provided")
            self._storage_client = HTTPAPIClient(self._storage_url, timeout=self._config.upload_timeout)
            await self._storage_client.__aenter__()
            self._object_store = HTTPObjectStore(self._storage_client)

        return self

    async def __aexit__(self, *args):
        """Cleanup resources."""
        for client in (self._storage_client, self._api_client):
            if client:
                await client.__aexit__(*args)

    @property
    def config(self) -> IngestConfig:
        return self._config

    @property
    def project_ref(self) -> str:
        return self._project_ref

    async def load_catalog(self) -> List[CatalogItem]:
        """Fetch assignable association targets for the project."""
        if self._catalog is None:
            return []
        self._catalog_items = list(await self._catalog.list_items(self._project_ref))
        logger.debug(f"Loaded {len(self._catalog_items)} catalog item(s)")
        return self._catalog_items

    def scan(self, sources: Iterable[Union[Entry, Path, str]]) -> IngestBatch:
        """Scan dropped paths or entries into a new batch."""
        entries: List[Entry] = []
        paths = []
        for source in sources:
            if isinstance(source, Entry):
                entries.append(source)
            else:
                paths.append(source)
        entries.extend(entries_from_paths(paths))

        result = self._scanner.scan(entries)
        batch = IngestBatch.from_scan(result, self._config, self._notifier)
        batch.catalog = list(self._catalog_items)
        return batch

    def new_batch(self, mode: DiscoveryMode = DiscoveryMode.IDLE) -> IngestBatch:
        """Empty batch for the manual "add items" flow."""
        return IngestBatch(mode=mode, config=self._config, notifier=self._notifier,
                           catalog=self._catalog_items)

    def commit(self, batch: IngestBatch, destination: Optional[Union[FinalId, str]] = None) -> CommitProcess:
        """
        Commit a batch with event-based progress tracking.

        Returns a CommitProcess that can be started, monitored and cancelled.
        Calling commit again on a partially committed batch retries the
        files that failed to upload.

        Args:
            batch: Batch to persist
            destination: Existing folder record to add the batch's roots into
        """
        if isinstance(destination, str):
            destination = FinalId(destination)
        return CommitProcess(self._get_handler(), batch, destination)

    def retry(self, batch: IngestBatch) -> CommitProcess:
        """Re-submit the nodes a previous commit left behind."""
        return self.commit(batch, batch.destination)

    def discard(self, batch: IngestBatch) -> int:
        return batch.discard()

    def _get_handler(self) -> CommitHandler:
        if self._handler is None:
            if self._object_store is None or self._project_store is None:
                raise RuntimeError("IngestOrchestrator not initialized. Use 'async with' context.")
            self._handler = CommitHandler(
                self._project_ref,
                self._object_store,
                self._project_store,
                self._notifier,
                self._config,
            )
        return self._handler
