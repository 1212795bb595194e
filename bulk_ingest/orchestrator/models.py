"""Orchestrator data models."""
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional

from ..models import AssetRecord, FinalId, TempId


class UploadStatus(Enum):
    """Upload operation status."""
    SUCCESS = "success"
    FAILED = "failed"


@dataclass(frozen=True)
class UploadOutcome:
    """Immutable result of one payload upload."""
    temp_id: TempId
    filename: str
    status: UploadStatus = UploadStatus.SUCCESS
    remote_ref: Optional[str] = None
    error: Optional[str] = None

    @property
    def success(self) -> bool:
        return self.status == UploadStatus.SUCCESS

    @classmethod
    def ok(cls, temp_id: TempId, filename: str, remote_ref: str):
        return cls(temp_id=temp_id, filename=filename, status=UploadStatus.SUCCESS, remote_ref=remote_ref)

    @classmethod
    def fail(cls, temp_id: TempId, filename: str, error: str):
        return cls(temp_id=temp_id, filename=filename, status=UploadStatus.FAILED, error=error)


@dataclass
class BatchUploadResult:
    """Result of uploading every file payload of a batch."""
    total: int
    succeeded: List[UploadOutcome] = field(default_factory=list)
    failed: List[UploadOutcome] = field(default_factory=list)
    cancelled: bool = False

    @property
    def completed(self) -> int:
        return len(self.succeeded) + len(self.failed)

    @property
    def all_success(self) -> bool:
        return not self.failed and not self.cancelled and self.completed == self.total

    @property
    def failed_ids(self) -> List[TempId]:
        return [o.temp_id for o in self.failed]


@dataclass
class RemapResult:
    """Records ready for the project store plus the id translation used."""
    records: List[AssetRecord]
    id_map: Dict[TempId, FinalId]


class CommitStatus(Enum):
    COMMITTED = "committed"
    PARTIAL = "partial"          # persisted, some files kept back for retry
    INVALID = "invalid"          # validation errors block submission
    REJECTED = "rejected"        # policy or destination refused the commit
    FAILED = "failed"            # project store rejected the write
    CANCELLED = "cancelled"


@dataclass
class CommitResult:
    """Result of committing a batch."""
    status: CommitStatus
    records: List[AssetRecord] = field(default_factory=list)
    uploads: Optional[BatchUploadResult] = None
    failed: List[UploadOutcome] = field(default_factory=list)
    error: Optional[str] = None

    @property
    def success(self) -> bool:
        return self.status == CommitStatus.COMMITTED

    @property
    def needs_retry(self) -> bool:
        return bool(self.failed) and self.status in (CommitStatus.PARTIAL, CommitStatus.REJECTED)
