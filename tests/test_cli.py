"""Tests for bulk_ingest CLI helpers."""
import asyncio
import logging
import os

import pytest
from rich.logging import RichHandler

from bulk_ingest import cli
from bulk_ingest.cli import (
    CLIError,
    _apply_association,
    _apply_links,
    _load_env_file,
    _parse_folder_links,
    _setup_logging,
    run_cli,
)
from bulk_ingest.exceptions import UploadError
from bulk_ingest.orchestrator import IngestBatch
from bulk_ingest.services import MemoryProjectStore


@pytest.fixture(autouse=True)
def clean_env(monkeypatch, tmp_path):
    for name in ("INGEST_API_URL", "INGEST_STORAGE_URL", "INGEST_COMMIT_POLICY", "INGEST_MAX_PARALLEL", "LOG_LEVEL"):
        # set first so the variable is restored (removed) even if a test loads it
        monkeypatch.setenv(name, "")
        monkeypatch.delenv(name)
    monkeypatch.chdir(tmp_path)
    yield
    root_logger = logging.getLogger()
    for handler in list(root_logger.handlers):
        if isinstance(handler, RichHandler):
            root_logger.removeHandler(handler)
    root_logger.setLevel(logging.WARNING)
    logging.disable(logging.NOTSET)


def test_load_env_file(tmp_path, monkeypatch):
    env_path = tmp_path / "ingest.env"
    env_path.write_text(
        "\n".join(
            [
                "# comment",
                "INGEST_API_URL=http://localhost:3312",
                "INGEST_STORAGE_URL='http://localhost:3313'",
                "export INGEST_COMMIT_POLICY=all-or-nothing",
                "not a pair",
            ]
        ),
        encoding="utf-8",
    )

    _load_env_file(env_path)

    assert os.environ["INGEST_API_URL"] == "http://localhost:3312"
    assert os.environ["INGEST_STORAGE_URL"] == "http://localhost:3313"
    assert os.environ["INGEST_COMMIT_POLICY"] == "all-or-nothing"


def test_load_env_file_keeps_existing(tmp_path, monkeypatch):
    monkeypatch.setenv("INGEST_API_URL", "http://already")
    env_path = tmp_path / ".env"
    env_path.write_text("INGEST_API_URL=http://other\n", encoding="utf-8")
    _load_env_file(env_path)
    assert os.environ["INGEST_API_URL"] == "http://already"


def test_load_env_file_missing(tmp_path):
    with pytest.raises(CLIError, match="not found"):
        _load_env_file(tmp_path / "nope.env")


def test_parse_folder_links():
    assert _parse_folder_links(["A=https://drive.test/a", " B = 'https://drive.test/b' "]) == {
        "A": "https://drive.test/a",
        "B": "https://drive.test/b",
    }
    with pytest.raises(CLIError):
        _parse_folder_links(["missing-url="])


def test_setup_logging_modes():
    assert _setup_logging(debug=False, silent=False, log_level=None) == "silent"
    assert _setup_logging(debug=False, silent=True, log_level="DEBUG") == "silent"

    assert _setup_logging(debug=True, silent=False, log_level=None) == "DEBUG"
    handlers = logging.getLogger().handlers
    assert len(handlers) == 1 and isinstance(handlers[0], RichHandler)

    assert _setup_logging(debug=False, silent=False, log_level="warning") == "WARNING"


def test_apply_links_by_name_then_fallback(make_file):
    batch = IngestBatch()
    a = batch.add_folder("A")
    b = batch.add_folder("B", a.temp_id)
    c = batch.add_folder("C")

    applied = _apply_links(batch, {"B": "https://drive.test/b"}, "https://drive.test/default")

    assert applied == 3
    assert b.link == "https://drive.test/b"
    assert a.link == c.link == "https://drive.test/default"
    assert batch.validate()


def test_apply_association_covers_roots(make_file):
    batch = IngestBatch()
    a = batch.add_folder("A", link="x")
    inner = batch.add_file(make_file("in.png"), a.temp_id)
    loose = batch.add_file(make_file("loose.png"))

    assert _apply_association(batch, "item-1") == 3
    assert inner.association == loose.association == "item-1"


def test_run_cli_without_sources_prints_help(capsys):
    assert run_cli([]) == 0
    assert "bulk-ingest" in capsys.readouterr().out


def test_run_cli_usage_errors(make_file, tmp_path):
    image = make_file("a.png")
    assert run_cli([str(image)]) == 2
    assert run_cli([str(tmp_path / "ghost"), "--project", "p1"]) == 2
    assert run_cli([str(image), "--project", "p1", "--folder-link", "oops"]) == 2
    assert run_cli([str(image), "--project", "p1", "--parallel", "99"]) == 2
    assert run_cli([str(image), "--project", "p1"]) == 2  # INGEST_API_URL missing


def test_run_cli_dry_run_commits(make_file, tmp_path, capsys):
    make_file("Designs/cover.png")
    make_file("Designs/Icons/home.png")

    code = run_cli([
        str(tmp_path / "Designs"),
        "--project", "p1",
        "--folder-link", "Icons=https://drive.test/icons",
        "--link", "https://drive.test/designs",
        "--dry-run",
    ])

    out = capsys.readouterr().out
    assert code == 0
    assert "Persistence order" in out
    assert "committed" in out


def test_run_cli_dry_run_into_destination(make_file, tmp_path):
    make_file("Designs/cover.png")
    code = run_cli([
        str(tmp_path / "Designs"), "--project", "p1", "--dest", "folder_1",
        "--link", "https://drive.test/designs", "--dry-run",
    ])
    assert code == 0


def test_run_cli_dry_run_invalid(make_file, tmp_path, capsys):
    make_file("Designs/cover.png")
    code = run_cli([str(tmp_path / "Designs"), "--project", "p1", "--dry-run"])
    assert code == 1
    assert "Please fix validation errors before saving" in capsys.readouterr().err


def test_run_cli_env_file(make_file, tmp_path):
    image = make_file("a.png")
    env_file = tmp_path / "custom.env"
    env_file.write_text("INGEST_COMMIT_POLICY=bogus\n", encoding="utf-8")
    assert run_cli([str(image), "--project", "p1", "--env-file", str(env_file), "--dry-run"]) == 2
    assert run_cli([str(image), "--project", "p1", "--env-file", str(tmp_path / "none.env")]) == 2


def test_human_size():
    from bulk_ingest.cli_progress import _human_size

    assert _human_size(512) == "512 B"
    assert _human_size(5 * 1024 * 1024) == "5.00 MB"


def test_render_batch_tree_shows_inheritance_and_errors(make_file, capsys):
    from bulk_ingest.cli_progress import render_batch_tree

    batch = IngestBatch()
    a = batch.add_folder("A", link="https://drive.test/a")
    batch.add_folder("B", a.temp_id)
    batch.add_file(make_file("pic.png"), a.temp_id)
    batch.validate()

    render_batch_tree(batch, title="drop")

    out = capsys.readouterr().out
    assert "inherits https://drive.test/a" in out
    assert "link: Required" in out


class FailingObjectStore:
    """Refuses ``filename`` for the first ``failures`` attempts."""

    def __init__(self, filename, failures):
        self.filename = filename
        self.failures = failures
        self.calls = []

    async def upload(self, project_ref, payload, item_ref):
        self.calls.append(payload.filename)
        if payload.filename == self.filename and self.failures:
            self.failures -= 1
            raise UploadError(f"storage refused {payload.filename}", status_code=500)
        return f"dry-run://{project_ref}/{item_ref}/{payload.filename}"


@pytest.fixture
def dry_run_stores(monkeypatch):
    """Swap the dry-run stores for ones the test can inspect."""
    captured = {}

    def use_object_store(store):
        monkeypatch.setattr(cli, "DryRunObjectStore", lambda: store)

    class CapturingProjectStore(MemoryProjectStore):
        def __init__(self, records=None):
            super().__init__(records)
            captured["project_store"] = self

    monkeypatch.setattr(cli, "MemoryProjectStore", CapturingProjectStore)
    captured["use_object_store"] = use_object_store
    return captured


def _records(stores):
    return asyncio.run(stores["project_store"].get_records("p1"))


def test_run_cli_retries_failed_files_in_same_batch(make_file, tmp_path, dry_run_stores):
    for name in ("f1.png", "f2.png", "f3.png"):
        make_file(f"A/{name}")
    object_store = FailingObjectStore("f2.png", failures=1)
    dry_run_stores["use_object_store"](object_store)

    code = run_cli([str(tmp_path / "A"), "--project", "p1", "--link", "https://drive.test/a", "--dry-run"])

    assert code == 0
    records = _records(dry_run_stores)
    assert sorted(r["asset_name"] for r in records) == ["A", "f1", "f2", "f3"]
    folder_id = next(r["id"] for r in records if r["asset_type"] == "folder")
    assert all(r["parent_id"] == folder_id for r in records if r["asset_type"] == "file")
    assert sorted(object_store.calls) == ["f1.png", "f2.png", "f2.png", "f3.png"]


def test_run_cli_reports_unsaved_files_with_parent(make_file, tmp_path, dry_run_stores, capsys):
    for name in ("f1.png", "f2.png"):
        make_file(f"A/{name}")
    dry_run_stores["use_object_store"](FailingObjectStore("f2.png", failures=5))

    code = run_cli([
        str(tmp_path / "A"), "--project", "p1", "--link", "https://drive.test/a",
        "--retries", "1", "--dry-run",
    ])

    assert code == 1
    records = _records(dry_run_stores)
    assert sorted(r["asset_name"] for r in records) == ["A", "f1"]
    folder_id = next(r["id"] for r in records if r["asset_type"] == "folder")
    err = capsys.readouterr().err
    assert "1 file(s) were not saved" in err
    assert f"f2 (--dest {folder_id})" in err


def test_run_cli_rejects_negative_retries(make_file):
    assert run_cli([str(make_file("a.png")), "--project", "p1", "--retries", "-1", "--dry-run"]) == 2
