"""
Project Store - Single Responsibility: persist asset records.

Implements Repository Pattern for hierarchical asset records.
"""
from typing import Any, Dict, List
import copy
import logging

import httpx

from ..exceptions import StoreError
from ..protocols import IProjectStore
from .api_client import APIError, HTTPAPIClient

logger = logging.getLogger(__name__)


class HTTPProjectStore(IProjectStore):
    """Project store backed by the project API."""

    def __init__(self, api_client: HTTPAPIClient):
        self._api = api_client

    async def get_records(self, project_ref: str) -> List[Dict[str, Any]]:
        try:
            response = await self._api.get(f"/projects/{project_ref}/assets")
            body = response.json()
        except (APIError, httpx.HTTPError, ValueError) as e:
            raise StoreError(f"Could not load assets of project {project_ref}: {e}") from e

        if isinstance(body, dict):
            body = body.get("assets", [])
        return list(body or [])

    async def upsert(self, project_ref: str, records: List[Dict[str, Any]]) -> None:
        """
        Save records in one request.

        Args:
            project_ref: Target project
            records: Records with parents before children
        """
        try:
            await self._api.post(
                f"/projects/{project_ref}/assets",
                json={"assets": records},
                max_retries=1,
            )
        except (APIError, httpx.HTTPError) as e:
            raise StoreError(f"Could not save {len(records)} asset(s) to project {project_ref}: {e}") from e
        logger.info(f"Saved {len(records)} asset(s) to project {project_ref}")


class MemoryProjectStore(IProjectStore):
    """In-process project store for dry runs and tests."""

    def __init__(self, records: Dict[str, List[Dict[str, Any]]] = None):
        self._records: Dict[str, List[Dict[str, Any]]] = records or {}

    async def get_records(self, project_ref: str) -> List[Dict[str, Any]]:
        return copy.deepcopy(self._records.get(project_ref, []))

    async def upsert(self, project_ref: str, records: List[Dict[str, Any]]) -> None:
        existing = self._records.setdefault(project_ref, [])
        known = {r["id"] for r in existing}
        for record in records:
            parent = record.get("parent_id")
            if parent and parent not in known:
                raise StoreError(f"Parent {parent} of {record['id']} does not exist")
            known.add(record["id"])

        incoming = {r["id"] for r in records}
        existing[:] = [r for r in existing if r["id"] not in incoming]
        existing.extend(dict(r) for r in records)
