"""Catalog Service - read-only list of assignable association targets."""
from typing import List
import logging

import httpx

from ..exceptions import StoreError
from ..models import CatalogItem
from .api_client import APIError, HTTPAPIClient

logger = logging.getLogger(__name__)


class HTTPCatalog:
    """Actionable items of a project, fetched from the project API."""

    def __init__(self, api_client: HTTPAPIClient):
        self._api = api_client

    async def list_items(self, project_ref: str) -> List[CatalogItem]:
        try:
            response = await self._api.get(f"/projects/{project_ref}/actionable-items")
            body = response.json()
        except (APIError, httpx.HTTPError, ValueError) as e:
            raise StoreError(f"Could not load catalog of project {project_ref}: {e}") from e

        if isinstance(body, dict):
            body = body.get("items", [])
        items = []
        for raw in body or []:
            item_id = raw.get("id")
            if not item_id:
                continue
            items.append(CatalogItem(id=str(item_id), label=raw.get("label") or raw.get("name") or str(item_id)))
        return items
