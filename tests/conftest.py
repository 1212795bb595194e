"""Shared fixtures for bulk_ingest tests."""
import asyncio
from pathlib import Path
from typing import List, Optional, Set

import pytest

from bulk_ingest.exceptions import UploadError
from bulk_ingest.models import LocalPayload

PNG_BYTES = b"\x89PNG\r\n\x1a\n" + b"\x00" * 24


class RecordingObjectStore:
    """Object store double: records calls, fails on chosen filenames."""

    def __init__(self, fail_on: Optional[Set[str]] = None, delay: float = 0.0):
        self.fail_on: Set[str] = set(fail_on or ())
        self.delay = delay
        self.calls: List[str] = []
        self.active = 0
        self.max_active = 0
        self.gate: Optional[asyncio.Event] = None

    async def upload(self, project_ref: str, payload: LocalPayload, item_ref: str) -> str:
        self.calls.append(payload.filename)
        self.active += 1
        self.max_active = max(self.max_active, self.active)
        try:
            if self.gate is not None:
                await self.gate.wait()
            if self.delay:
                await asyncio.sleep(self.delay)
            if payload.filename in self.fail_on:
                raise UploadError(f"storage refused {payload.filename}", status_code=500)
            return f"https://storage.test/{project_ref}/{payload.filename}"
        finally:
            self.active -= 1


@pytest.fixture
def make_file(tmp_path):
    """Create a file under tmp_path; PNG bytes by default."""

    def _make(relative: str, content: bytes = PNG_BYTES) -> Path:
        path = tmp_path / relative
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(content)
        return path

    return _make


@pytest.fixture
def make_payload(make_file):
    def _make(name: str = "a.png", size: Optional[int] = None) -> LocalPayload:
        path = make_file(name)
        return LocalPayload(path, size if size is not None else path.stat().st_size, "image/png")

    return _make


@pytest.fixture
def object_store():
    return RecordingObjectStore()
