"""
Services - external collaborators of the pipeline.

Each service handles one concern:
- HTTPObjectStore: upload file payloads
- HTTPProjectStore / MemoryProjectStore: persist asset records
- HTTPCatalog: list assignable association targets
- LoggingNotifier / MemoryNotifier / ConsoleNotifier: user messages
"""
from .api_client import APIError, HTTPAPIClient
from .catalog import HTTPCatalog
from .notifications import ConsoleNotifier, LoggingNotifier, MemoryNotifier
from .object_store import HTTPObjectStore
from .project_store import HTTPProjectStore, MemoryProjectStore

__all__ = [
    "APIError",
    "HTTPAPIClient",
    "HTTPCatalog",
    "HTTPObjectStore",
    "HTTPProjectStore",
    "MemoryProjectStore",
    "ConsoleNotifier",
    "LoggingNotifier",
    "MemoryNotifier",
]
