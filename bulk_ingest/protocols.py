"""
Protocols (Interfaces) for the pipeline's external collaborators.

Small, focused interfaces: the pipeline only needs these narrow surfaces.
"""
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Protocol, runtime_checkable

from .models import CatalogItem, LocalPayload


@runtime_checkable
class IObjectStore(Protocol):
    """Interface for the remote object store receiving file payloads."""

    async def upload(self, project_ref: str, payload: LocalPayload, item_ref: str) -> str:
        """Upload payload and return a stable reference/URL. Raises UploadError."""
        ...


@runtime_checkable
class ICatalog(Protocol):
    """Read-only source of assignable association targets."""

    async def list_items(self, project_ref: str) -> List[CatalogItem]:
        ...


@runtime_checkable
class INotificationSink(Protocol):
    """Fire-and-forget, human-readable messages."""

    def info(self, message: str) -> None:
        ...

    def warn(self, message: str) -> None:
        ...

    def error(self, message: str) -> None:
        ...


class IProjectStore(ABC):
    """Interface for persisted hierarchical asset records (Repository Pattern)."""

    @abstractmethod
    async def get_records(self, project_ref: str) -> List[Dict[str, Any]]:
        """Return existing records of the project. Raises StoreError."""
        pass

    @abstractmethod
    async def upsert(self, project_ref: str, records: List[Dict[str, Any]]) -> None:
        """Persist records, parents before children. Raises StoreError."""
        pass
