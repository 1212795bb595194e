"""Orchestrator package - coordinates commit workflows."""
from .batch import IngestBatch
from .commit import CommitHandler
from .core import IngestOrchestrator
from .models import (
    BatchUploadResult,
    CommitResult,
    CommitStatus,
    RemapResult,
    UploadOutcome,
    UploadStatus,
)
from .parallel_upload import ParallelUploadCoordinator
from .process import CommitProcess, ProcessState
from .remapper import IdRemapper

__all__ = [
    "IngestOrchestrator",
    "IngestBatch",
    "CommitHandler",
    "CommitProcess",
    "ProcessState",
    "ParallelUploadCoordinator",
    "IdRemapper",
    "BatchUploadResult",
    "CommitResult",
    "CommitStatus",
    "RemapResult",
    "UploadOutcome",
    "UploadStatus",
]
