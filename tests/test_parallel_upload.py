"""Tests for the parallel upload coordinator."""
import asyncio
from unittest.mock import AsyncMock, Mock

import pytest

from bulk_ingest.orchestrator import ParallelUploadCoordinator
from bulk_ingest.services import MemoryNotifier
from bulk_ingest.tree import Forest, TreeBuilder


@pytest.fixture
def files(make_payload):
    builder = TreeBuilder(Forest())
    folder = builder.add_folder("A", link="https://drive.test/A")
    nodes = [builder.add_file(f"f{i}", make_payload(f"f{i}.png"), folder.temp_id) for i in range(1, 4)]
    return [folder] + nodes


@pytest.mark.asyncio
async def test_failure_does_not_stop_batch(files, object_store):
    object_store.fail_on = {"f2.png"}
    notifier = MemoryNotifier()
    coordinator = ParallelUploadCoordinator(object_store, notifier, max_parallel=1)
    progress = []

    result = await coordinator.upload(files, "p1", lambda done, total, outcome: progress.append((done, total)))

    assert progress == [(1, 3), (2, 3), (3, 3)]
    assert len(result.succeeded) == 2
    assert [o.filename for o in result.failed] == ["f2"]
    assert object_store.calls == ["f1.png", "f2.png", "f3.png"]
    assert notifier.of("warn") == ["Failed to upload preview for f2: storage refused f2.png"]


@pytest.mark.asyncio
async def test_nodes_get_upload_state(files, object_store):
    object_store.fail_on = {"f2.png"}
    _, f1, f2, f3 = files
    await ParallelUploadCoordinator(object_store).upload(files, "p1")

    assert f1.remote_ref == "https://storage.test/p1/f1.png"
    assert f1.payload.released is True
    assert f2.remote_ref is None
    assert f2.upload_error == "storage refused f2.png"
    assert f2.payload.released is False
    assert f3.upload_error is None


@pytest.mark.asyncio
async def test_no_automatic_retry(files, object_store):
    object_store.fail_on = {"f1.png", "f2.png", "f3.png"}
    result = await ParallelUploadCoordinator(object_store).upload(files, "p1")
    assert len(result.failed) == 3
    assert len(object_store.calls) == 3


@pytest.mark.asyncio
async def test_concurrency_is_bounded(make_payload):
    builder = TreeBuilder(Forest())
    nodes = [builder.add_file(f"f{i}", make_payload(f"f{i}.png")) for i in range(8)]
    store = AsyncMock()
    active = {"now": 0, "max": 0}

    async def upload(project_ref, payload, item_ref):
        active["now"] += 1
        active["max"] = max(active["max"], active["now"])
        await asyncio.sleep(0.01)
        active["now"] -= 1
        return f"https://storage.test/{payload.filename}"

    store.upload.side_effect = upload
    progress = []
    result = await ParallelUploadCoordinator(store, max_parallel=3).upload(
        nodes, "p1", lambda done, total, outcome: progress.append(done)
    )

    assert result.all_success
    assert active["max"] <= 3
    assert progress == list(range(1, 9))


@pytest.mark.asyncio
async def test_already_uploaded_files_are_skipped(files, object_store):
    _, f1, f2, f3 = files
    f1.remote_ref = "https://storage.test/p1/earlier.png"
    progress = []

    result = await ParallelUploadCoordinator(object_store).upload(
        files, "p1", lambda done, total, outcome: progress.append((done, total))
    )

    assert sorted(object_store.calls) == ["f2.png", "f3.png"]
    assert len(result.succeeded) == 3
    assert progress[-1] == (3, 3)
    assert progress[0] == (2, 3)


@pytest.mark.asyncio
async def test_empty_reference_is_failure(files):
    store = Mock()
    store.upload = AsyncMock(return_value="")
    result = await ParallelUploadCoordinator(store).upload(files, "p1")
    assert len(result.failed) == 3
    assert "empty reference" in result.failed[0].error


@pytest.mark.asyncio
async def test_folders_are_not_uploaded(object_store):
    builder = TreeBuilder(Forest())
    folder = builder.add_folder("A", link="https://drive.test/A")
    result = await ParallelUploadCoordinator(object_store).upload([folder], "p1")
    assert result.total == 0
    assert object_store.calls == []
