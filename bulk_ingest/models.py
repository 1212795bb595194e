"""
Models for the ingestion pipeline.

Identifiers and records are immutable dataclasses; a Node is mutable because
the batch is edited in place until it is committed.
"""
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Optional, Dict, Any, Tuple
import os
import threading

from .exceptions import PayloadReleasedError


MB = 1024 * 1024


@dataclass(frozen=True)
class TempId:
    """Identifier of a node within one batch, before it is persisted."""
    value: str

    def __str__(self) -> str:
        return self.value


@dataclass(frozen=True)
class FinalId:
    """Stable identifier assigned to a persisted record."""
    value: str

    def __str__(self) -> str:
        return self.value


class NodeKind(Enum):
    FOLDER = "folder"
    FILE = "file"


class DiscoveryMode(Enum):
    """How a drop was interpreted."""
    IDLE = "idle"
    FOLDER = "folder"  # at least one directory dropped
    FILES = "files"    # individual files only, all at root


class ErrorCode(Enum):
    REQUIRED = "Required"
    INVALID_PARENT = "Invalid parent"


class CommitPolicy(Enum):
    """What to persist when some uploads of a batch failed."""
    PARTIAL = "partial"
    ALL_OR_NOTHING = "all-or-nothing"
    INCLUDE_FAILED = "include-failed"


class LocalPayload:
    """
    Exclusive handle on the local binary content of a file node.

    The handle may cache the bytes as a preview buffer. ``release()`` frees
    both and is effective exactly once.
    """

    def __init__(self, path: Path, size: int, content_type: str):
        self.path = Path(path)
        self.size = size
        self.content_type = content_type
        self._preview: Optional[bytes] = None
        self._released = False
        self._lock = threading.Lock()

    @property
    def filename(self) -> str:
        return self.path.name

    @property
    def released(self) -> bool:
        return self._released

    def read_bytes(self) -> bytes:
        with self._lock:
            if self._released:
                raise PayloadReleasedError(f"Payload already released: {self.path}")
            if self._preview is not None:
                return self._preview

        # unlocked; release() may run meanwhile
        data = self.path.read_bytes()
        with self._lock:
            if self._released:
                raise PayloadReleasedError(f"Payload released while reading: {self.path}")
            if self._preview is None:
                self._preview = data
            return self._preview

    def release(self) -> bool:
        """Release the handle. Returns True only for the call that released it."""
        with self._lock:
            if self._released:
                return False
            self._released = True
            self._preview = None
            return True

    def __repr__(self) -> str:
        state = "released" if self._released else "open"
        return f"LocalPayload({self.path.name!r}, {self.size} bytes, {state})"


@dataclass
class Node:
    """One file or folder entry of an ingestion batch."""
    temp_id: TempId
    name: str
    kind: NodeKind
    parent_temp_id: Optional[TempId] = None
    payload: Optional[LocalPayload] = None
    link: str = ""
    association: Optional[str] = None
    expanded: bool = False
    errors: Dict[str, ErrorCode] = field(default_factory=dict)
    remote_ref: Optional[str] = None
    upload_error: Optional[str] = None
    final_id: Optional[FinalId] = None

    def __setattr__(self, name, value):
        if name == "kind" and "kind" in self.__dict__:
            raise AttributeError("Node kind is immutable")
        super().__setattr__(name, value)

    @property
    def is_folder(self) -> bool:
        return self.kind is NodeKind.FOLDER

    @property
    def is_file(self) -> bool:
        return self.kind is NodeKind.FILE

    @property
    def has_errors(self) -> bool:
        return bool(self.errors)

    @property
    def committed(self) -> bool:
        return self.final_id is not None


@dataclass(frozen=True)
class AssetRecord:
    """Persisted record shape handed to the project store."""
    id: FinalId
    asset_name: str
    asset_type: str
    link: str
    asset_id: Optional[str]
    parent_id: Optional[FinalId]
    preview_url: Optional[str]
    created_at: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": str(self.id),
            "asset_name": self.asset_name,
            "asset_type": self.asset_type,
            "link": self.link,
            "asset_id": self.asset_id,
            "parent_id": str(self.parent_id) if self.parent_id else None,
            "preview_url": self.preview_url,
            "created_at": self.created_at,
        }


@dataclass(frozen=True)
class CatalogItem:
    """Assignable association target supplied by the catalog."""
    id: str
    label: str


@dataclass(frozen=True)
class IngestConfig:
    """Immutable configuration for scanning and committing a batch."""
    max_depth: int = 10
    max_files: int = 100
    max_file_size: int = 5 * MB
    allowed_content_types: Tuple[str, ...] = ("image/",)
    max_parallel: int = 4
    commit_policy: CommitPolicy = CommitPolicy.PARTIAL
    id_prefix: str = "asset"
    upload_timeout: int = 60

    def __post_init__(self):
        if self.max_depth < 1:
            raise ValueError("max_depth must be at least 1")
        if self.max_files < 1:
            raise ValueError("max_files must be at least 1")
        if not 1 <= self.max_parallel <= 16:
            raise ValueError("max_parallel must be between 1 and 16")

    def accepts_content_type(self, content_type: Optional[str]) -> bool:
        """Entries ending in '/' match as prefixes, others exactly."""
        if not content_type:
            return False
        for allowed in self.allowed_content_types:
            if allowed.endswith("/") and content_type.startswith(allowed):
                return True
            if content_type == allowed:
                return True
        return False

    @classmethod
    def from_env(cls, **overrides) -> "IngestConfig":
        """Build a config from INGEST_* environment variables."""
        values: Dict[str, Any] = {}
        ints = {
            "max_depth": "INGEST_MAX_DEPTH",
            "max_files": "INGEST_MAX_FILES",
            "max_file_size": "INGEST_MAX_FILE_SIZE",
            "max_parallel": "INGEST_MAX_PARALLEL",
        }
        for key, env_name in ints.items():
            raw = os.getenv(env_name)
            if raw:
                try:
                    values[key] = int(raw)
                except ValueError as exc:
                    raise ValueError(f"{env_name} must be an integer, got {raw!r}") from exc

        policy = os.getenv("INGEST_COMMIT_POLICY")
        if policy:
            values["commit_policy"] = CommitPolicy(policy.strip().lower())

        values.update({k: v for k, v in overrides.items() if v is not None})
        return cls(**values)
