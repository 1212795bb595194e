"""HTTP adapter for project API and object storage calls."""
from __future__ import annotations

import asyncio
from typing import Any, Dict, Optional

import httpx


class APIError(RuntimeError):
    """Non-2xx response from the API."""

    def __init__(self, message: str, status_code: int):
        super().__init__(message)
        self.status_code = status_code


class HTTPAPIClient:
    """
    HTTP client adapter for API calls.

    GET retries on 5xx and transport errors. POST is sent ``max_retries``
    times at most, which callers set to 1 where a repeat would not be safe.
    """

    def __init__(self, base_url: str, timeout: int = 60, headers: Optional[Dict[str, str]] = None,
                 transport: Optional[httpx.AsyncBaseTransport] = None):
        self._base_url = base_url
        self._timeout = timeout
        self._headers = headers or {}
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    async def __aenter__(self):
        self._client = httpx.AsyncClient(
            base_url=self._base_url,
            timeout=self._timeout,
            headers=self._headers,
            transport=self._transport,
        )
        return self

    async def __aexit__(self, *args):
        if self._client:
            await self._client.aclose()
            self._client = None

    async def post(
        self,
        endpoint: str,
        json: Optional[Dict] = None,
        data: Optional[Dict[str, Any]] = None,
        files: Optional[Dict[str, Any]] = None,
        max_retries: int = 3,
    ) -> httpx.Response:
        return await self._request("POST", endpoint, max_retries, json=json, data=data, files=files)

    async def get(self, endpoint: str, max_retries: int = 3) -> httpx.Response:
        return await self._request("GET", endpoint, max_retries)

    async def _request(self, method: str, endpoint: str, max_retries: int, **kwargs) -> httpx.Response:
        if not self._client:
            raise RuntimeError("HTTPAPIClient not initialized. Use 'async with' context.")

        max_retries = max(1, max_retries)
        last_exception: Optional[Exception] = None

        for attempt in range(max_retries):
            try:
                response = await self._client.request(method, endpoint, **kwargs)

                if response.status_code >= 500 and attempt < max_retries - 1:
                    await asyncio.sleep(0.5 * (attempt + 1))
                    continue

                if response.status_code >= 400:
                    try:
                        error_detail = response.json()
                    except Exception:
                        error_detail = response.text
                    raise APIError(
                        f"API error {response.status_code} on {method} {endpoint}: {error_detail}",
                        response.status_code,
                    )

                return response
            except (httpx.RequestError, httpx.TimeoutException) as exc:
                last_exception = exc
                if attempt < max_retries - 1:
                    await asyncio.sleep(0.5 * (attempt + 1))
                    continue
                raise

        if last_exception:
            raise last_exception
        raise RuntimeError(f"Failed to {method} {endpoint} after {max_retries} attempts")
