"""
Object Store Service - Single Responsibility: upload file payloads.

Posts one multipart request per payload and returns the signed URL the
storage endpoint hands back.
"""
import asyncio
import logging

import httpx

from ..exceptions import PayloadReleasedError, UploadError
from ..models import LocalPayload
from .api_client import APIError, HTTPAPIClient

logger = logging.getLogger(__name__)


class HTTPObjectStore:
    """
    Remote object store over HTTP.

    Implements IObjectStore. Uploads are never retried here; a failed
    upload is reported and retried only by re-submitting the batch.
    """

    def __init__(self, client: HTTPAPIClient, endpoint: str = "/previews/upload"):
        self._client = client
        self._endpoint = endpoint

    async def upload(self, project_ref: str, payload: LocalPayload, item_ref: str) -> str:
        """
        Upload payload bytes.

        Args:
            project_ref: Project the payload belongs to
            payload: Local payload handle
            item_ref: Temporary id of the node, for server-side naming

        Returns:
            Stable reference (signed URL) of the stored object

        Raises:
            UploadError: transport failure, non-2xx response or missing URL
        """
        try:
            content = await asyncio.to_thread(payload.read_bytes)
        except (OSError, PayloadReleasedError) as e:
            raise UploadError(f"Could not read {payload.filename}: {e}") from e

        try:
            response = await self._client.post(
                self._endpoint,
                data={"projectId": project_ref, "itemId": item_ref},
                files={"file": (payload.filename, content, payload.content_type)},
                max_retries=1,
            )
        except APIError as e:
            raise UploadError(str(e), status_code=e.status_code) from e
        except httpx.HTTPError as e:
            raise UploadError(f"Upload of {payload.filename} failed: {e}") from e

        try:
            body = response.json()
        except ValueError as e:
            raise UploadError(f"Invalid response for {payload.filename}") from e

        url = body.get("signedUrl") or body.get("url")
        if not url:
            raise UploadError(f"No URL returned for {payload.filename}")

        logger.debug(f"[storage] Uploaded {payload.filename} -> {url}")
        return url
