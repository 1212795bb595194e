"""Command line interface for bulk_ingest package."""
from __future__ import annotations

import argparse
import asyncio
import logging
import os
import sys
from pathlib import Path
from typing import Dict, List, Optional, Sequence

from rich.logging import RichHandler

from .cli_progress import (
    BatchUploadProgressDisplay,
    console,
    render_batch_tree,
    render_configuration_summary,
    render_order,
)
from .models import CommitPolicy, IngestConfig, LocalPayload
from .orchestrator import CommitProcess, CommitResult, CommitStatus, IngestBatch, IngestOrchestrator
from .services import ConsoleNotifier, MemoryProjectStore
from .tree import order_for_persistence


EXIT_OK = 0
EXIT_INCOMPLETE = 1
EXIT_USAGE = 2


class CLIError(RuntimeError):
    """Raised when CLI validation/execution fails."""


class DryRunObjectStore:
    """Object store that hands out local references instead of uploading."""

    async def upload(self, project_ref: str, payload: LocalPayload, item_ref: str) -> str:
        return f"dry-run://{project_ref}/{item_ref}/{payload.filename}"


def _setup_logging(debug: bool, silent: bool, log_level: Optional[str]) -> str:
    """
    Configure logging.

    Default behavior is silent unless --debug, --log-level or LOG_LEVEL is
    provided. Returns a string describing effective mode.
    """
    root_logger = logging.getLogger()
    for handler in list(root_logger.handlers):
        root_logger.removeHandler(handler)

    logging.disable(logging.NOTSET)

    env_level = os.getenv("LOG_LEVEL")
    if silent or (not debug and not log_level and not env_level):
        logging.disable(logging.CRITICAL)
        root_logger.setLevel(logging.CRITICAL + 1)
        return "silent"

    if debug:
        level = logging.DEBUG
    else:
        level = getattr(logging, (log_level or env_level or "INFO").upper(), logging.INFO)

    handler = RichHandler(
        rich_tracebacks=True,
        markup=False,
        show_time=False,
        show_path=False,
    )
    handler.setFormatter(logging.Formatter("%(message)s"))
    root_logger.addHandler(handler)
    root_logger.setLevel(level)
    return logging.getLevelName(level)


def _strip_optional_quotes(value: str) -> str:
    if len(value) >= 2 and value[0] == value[-1] and value[0] in {"'", '"'}:
        return value[1:-1]
    return value


def _load_env_file(path: Path, override: bool = False) -> None:
    if not path.exists():
        raise CLIError(f"env file not found: {path}")
    if not path.is_file():
        raise CLIError(f"env path is not a file: {path}")

    try:
        content = path.read_text(encoding="utf-8")
    except OSError as exc:
        raise CLIError(f"could not read env file {path}: {exc}") from exc

    for raw_line in content.splitlines():
        line = raw_line.strip()
        if not line or line.startswith("#"):
            continue
        if line.startswith("export "):
            line = line[len("export ") :].strip()
        if "=" not in line:
            continue

        key, value = line.split("=", 1)
        key = key.strip()
        if not key:
            continue

        value = _strip_optional_quotes(value.strip())
        if override or key not in os.environ:
            os.environ[key] = value


def _resolve_default_env_file() -> Optional[Path]:
    default_env = Path(".env")
    return default_env if default_env.exists() and default_env.is_file() else None


def _parse_folder_links(values: Sequence[str]) -> Dict[str, str]:
    links: Dict[str, str] = {}
    for value in values:
        name, sep, url = value.partition("=")
        if not sep or not name.strip() or not url.strip():
            raise CLIError(f"--folder-link expects NAME=URL, got {value!r}")
        links[name.strip()] = _strip_optional_quotes(url.strip())
    return links


def _build_config(policy: Optional[str], parallel: Optional[int]) -> IngestConfig:
    try:
        return IngestConfig.from_env(
            commit_policy=CommitPolicy(policy) if policy else None,
            max_parallel=parallel,
        )
    except ValueError as exc:
        raise CLIError(f"invalid configuration: {exc}") from exc


def _apply_links(batch: IngestBatch, folder_links: Dict[str, str], fallback: Optional[str]) -> int:
    """Set folder links by name, then fill the remaining blanks. Returns the count applied."""
    applied = 0
    for folder in batch.forest.folders():
        link = folder_links.get(folder.name)
        if link:
            batch.update(folder.temp_id, link=link)
            applied += 1

    if fallback:
        for folder in batch.forest.folders():
            if not (folder.link or "").strip():
                batch.update(folder.temp_id, link=fallback)
                applied += 1
    return applied


def _apply_association(batch: IngestBatch, association: str) -> int:
    updated = 0
    for root in batch.forest.roots():
        if root.is_folder:
            updated += len(batch.batch_assign(root.temp_id, association))
        else:
            batch.assign_association(root.temp_id, association)
            updated += 1
    return updated


def _exit_code(status: CommitStatus) -> int:
    if status is CommitStatus.COMMITTED:
        return EXIT_OK
    return EXIT_INCOMPLETE


async def _run_ingest(
    sources: List[Path],
    project_ref: str,
    destination: Optional[str],
    config: IngestConfig,
    folder_links: Dict[str, str],
    fallback_link: Optional[str],
    association: Optional[str],
    dry_run: bool,
    retries: int = 0,
) -> int:
    notifier = ConsoleNotifier()
    api_url = os.getenv("INGEST_API_URL")
    storage_url = os.getenv("INGEST_STORAGE_URL")

    if dry_run:
        seeded = {}
        if destination:
            seeded[project_ref] = [
                {"id": destination, "asset_name": destination, "asset_type": "folder", "parent_id": None}
            ]
        orchestrator = IngestOrchestrator(
            project_ref,
            object_store=DryRunObjectStore(),
            project_store=MemoryProjectStore(seeded),
            notifier=notifier,
            config=config,
        )
    else:
        if not api_url:
            raise CLIError("INGEST_API_URL environment variable is not set")
        orchestrator = IngestOrchestrator(
            project_ref,
            api_url=api_url,
            storage_url=storage_url,
            notifier=notifier,
            config=config,
        )

    async with orchestrator as ingest:
        if association and not dry_run:
            await ingest.load_catalog()

        batch = ingest.scan(sources)
        if not batch.forest.files() and not batch.forest.folders():
            return EXIT_INCOMPLETE

        _apply_links(batch, folder_links, fallback_link)
        if association:
            _apply_association(batch, association)

        valid = batch.validate()
        render_batch_tree(batch, title=", ".join(s.name for s in sources))
        if not valid:
            print("ERROR: Please fix validation errors before saving", file=sys.stderr)
            batch.discard()
            return EXIT_INCOMPLETE

        if dry_run:
            render_order(order_for_persistence(batch.forest, config.max_depth))

        result = await _watch(ingest.commit(batch, destination), len(batch.forest.files()))
        attempt = 0
        while result.needs_retry and attempt < retries:
            attempt += 1
            console.print(f"Retrying {len(result.failed)} file(s) (attempt {attempt}/{retries})")
            result = await _watch(ingest.retry(batch), len(result.failed))

        if result.error and not result.success:
            print(f"ERROR: {result.error}", file=sys.stderr)
        if result.needs_retry:
            _report_unsaved(batch, result)
        batch.discard()
        return _exit_code(result.status)


async def _watch(process: CommitProcess, total: int) -> CommitResult:
    """Run a commit process behind a progress display."""
    display = BatchUploadProgressDisplay(total=total)
    process.on_item_start(display.on_item_start)
    process.on_item_complete(display.on_item_complete)
    process.on_item_fail(display.on_item_fail)
    process.on_progress(display.on_progress)
    process.on_error(display.on_error)

    try:
        result = await process.wait()
    except (KeyboardInterrupt, asyncio.CancelledError):
        await process.cancel()
        display.stop()
        raise
    display.on_finish(result)
    return result


def _report_unsaved(batch: IngestBatch, result: CommitResult) -> None:
    """List files still missing, with the saved folder a targeted re-run can use as --dest."""
    print(f"{len(result.failed)} file(s) were not saved:", file=sys.stderr)
    for outcome in result.failed:
        node = batch.forest.get(outcome.temp_id)
        parent = batch.forest.get(node.parent_temp_id) if node and node.parent_temp_id else None
        if parent is not None and parent.final_id is not None:
            target = f"--dest {parent.final_id}"
        elif parent is None:
            target = f"--dest {batch.destination}" if batch.destination else "project root"
        else:
            target = "parent folder not saved"
        print(f"  {outcome.filename} ({target})", file=sys.stderr)


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="bulk-ingest",
        description="Ingest dropped files and folders into a project as linked asset records.",
    )
    parser.add_argument("sources", nargs="*", type=Path, help="Files or folders to ingest")
    parser.add_argument("-p", "--project", default=None, help="Target project reference")
    parser.add_argument(
        "-g",
        "--dest",
        default=None,
        help="Existing folder record id to add the batch into (default: project root)",
    )
    parser.add_argument("-l", "--link", default=None, help="Link for folders that have none")
    parser.add_argument(
        "-f",
        "--folder-link",
        action="append",
        default=[],
        metavar="NAME=URL",
        help="Link for the folder named NAME (repeatable)",
    )
    parser.add_argument(
        "-a",
        "--association",
        default=None,
        help="Association id assigned to every root and its descendants",
    )
    parser.add_argument(
        "--policy",
        choices=[p.value for p in CommitPolicy],
        default=None,
        help="What to do when some uploads fail (default from INGEST_COMMIT_POLICY or partial)",
    )
    parser.add_argument("-j", "--parallel", type=int, default=None, help="Concurrent uploads (1-16)")
    parser.add_argument(
        "-r",
        "--retries",
        type=int,
        default=2,
        help="Re-submit files that failed to upload up to N times (default: 2)",
    )
    parser.add_argument(
        "-n",
        "--dry-run",
        action="store_true",
        help="Print the tree and persistence order without uploading or saving remotely",
    )
    parser.add_argument(
        "--env-file",
        type=Path,
        default=None,
        help="Load environment variables from this .env file",
    )
    parser.add_argument("--debug", action="store_true", help="Enable debug logs")
    parser.add_argument("--silent", action="store_true", help="Only print errors")
    parser.add_argument(
        "--log-level",
        default=None,
        help="Explicit log level (DEBUG/INFO/WARNING/ERROR)",
    )
    parser.add_argument("--version", action="version", version="bulk-ingest 0.1.0")
    return parser


def run_cli(argv: Optional[Sequence[str]] = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)

    used_env_file = args.env_file or _resolve_default_env_file()
    if used_env_file is not None:
        try:
            _load_env_file(Path(used_env_file))
        except CLIError as exc:
            print(f"ERROR: {exc}", file=sys.stderr)
            return EXIT_USAGE

    effective_log_mode = _setup_logging(
        debug=args.debug,
        silent=args.silent,
        log_level=args.log_level,
    )

    if not args.sources:
        parser.print_help()
        return EXIT_OK

    if not args.project:
        print("ERROR: --project is required", file=sys.stderr)
        return EXIT_USAGE

    sources = [Path(s).expanduser() for s in args.sources]
    missing = [s for s in sources if not s.exists()]
    if missing:
        print(f"ERROR: source does not exist: {missing[0]}", file=sys.stderr)
        return EXIT_USAGE

    try:
        folder_links = _parse_folder_links(args.folder_link)
        if args.retries < 0:
            raise CLIError("--retries must be 0 or more")
        config = _build_config(args.policy, args.parallel)
    except CLIError as exc:
        print(f"ERROR: {exc}", file=sys.stderr)
        return EXIT_USAGE

    render_configuration_summary(
        {
            "Sources": ", ".join(str(s) for s in sources),
            "Project": args.project,
            "Dest": args.dest or "(project root)",
            "API": os.getenv("INGEST_API_URL") or "(missing)",
            "Storage": os.getenv("INGEST_STORAGE_URL") or "(same as API)",
            "Policy": config.commit_policy.value,
            "Parallel": config.max_parallel,
            "Retries": args.retries,
            "Limits": f"{config.max_files} files, {config.max_depth} levels",
            "Dry Run": "yes" if args.dry_run else "no",
            "Env File": str(used_env_file) if used_env_file else "-",
            "Logging": effective_log_mode,
        }
    )

    try:
        return asyncio.run(
            _run_ingest(
                sources=sources,
                project_ref=args.project,
                destination=args.dest,
                config=config,
                folder_links=folder_links,
                fallback_link=args.link,
                association=args.association,
                dry_run=args.dry_run,
                retries=args.retries,
            )
        )
    except CLIError as exc:
        print(f"ERROR: {exc}", file=sys.stderr)
        return EXIT_USAGE
    except KeyboardInterrupt:
        print("Cancelled.", file=sys.stderr)
        return 130


def main() -> None:
    raise SystemExit(run_cli())


if __name__ == "__main__":
    main()
