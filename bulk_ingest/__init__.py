"""
bulk_ingest - Hierarchical bulk ingestion of dropped files and folders.

Turns a drop of files/folders into validated, ordered asset records with
uploaded previews:

    scan -> build forest -> validate -> (edit) -> submit:
    resolve inheritance -> order parents first -> upload -> remap ids -> persist

Usage:
    from bulk_ingest import IngestOrchestrator

    async with IngestOrchestrator("project-1", api_url=api, storage_url=storage) as ingest:
        batch = ingest.scan([Path("Designs")])

        for folder in batch.forest.folders():
            batch.update(folder.temp_id, link="https://drive.google.com/...")

        process = ingest.commit(batch)
        process.on_progress(lambda p: print(f"{p.completed}/{p.total}"))
        result = await process.wait()

        if result.needs_retry:
            result = await ingest.retry(batch).wait()
"""
from .exceptions import ForestError, IngestError, PayloadReleasedError, StoreError, UploadError
from .models import (
    AssetRecord,
    CatalogItem,
    CommitPolicy,
    DiscoveryMode,
    ErrorCode,
    FinalId,
    IngestConfig,
    LocalPayload,
    Node,
    NodeKind,
    TempId,
)
from .orchestrator import (
    CommitProcess,
    CommitResult,
    CommitStatus,
    IngestBatch,
    IngestOrchestrator,
)
from .scanner import EntryScanner, PathEntry, ScanResult
from .services import (
    ConsoleNotifier,
    HTTPCatalog,
    HTTPObjectStore,
    HTTPProjectStore,
    LoggingNotifier,
    MemoryNotifier,
    MemoryProjectStore,
)

__version__ = "0.1.0"
__all__ = [
    # Main
    "IngestOrchestrator",
    "IngestBatch",
    "CommitProcess",
    "CommitResult",
    "CommitStatus",
    # Models
    "AssetRecord",
    "CatalogItem",
    "CommitPolicy",
    "DiscoveryMode",
    "ErrorCode",
    "FinalId",
    "IngestConfig",
    "LocalPayload",
    "Node",
    "NodeKind",
    "TempId",
    # Scanning
    "EntryScanner",
    "PathEntry",
    "ScanResult",
    # Services
    "ConsoleNotifier",
    "HTTPCatalog",
    "HTTPObjectStore",
    "HTTPProjectStore",
    "LoggingNotifier",
    "MemoryNotifier",
    "MemoryProjectStore",
    # Errors
    "IngestError",
    "ForestError",
    "PayloadReleasedError",
    "StoreError",
    "UploadError",
]
