"""Entry scanner: turns a drop of entries into a forest of nodes."""
from dataclasses import dataclass, field
from typing import List, Optional, Sequence, Tuple
import logging

from ..models import DiscoveryMode, IngestConfig, LocalPayload, MB, TempId
from ..protocols import INotificationSink
from ..tree.builder import TreeBuilder
from ..tree.forest import Forest
from .entries import Entry, strip_extension

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SkippedEntry:
    """An entry left out of the batch, with the reason shown to the user."""
    name: str
    reason: str


@dataclass
class ScanResult:
    """Outcome of one scan."""
    mode: DiscoveryMode
    forest: Forest
    skipped: List[SkippedEntry] = field(default_factory=list)
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None and len(self.forest) > 0


class _CountExceeded(Exception):
    pass


class EntryScanner:
    """
    Walks dropped entries, enforcing depth, count, type and size limits
    during the walk.

    Folder mode is used for the whole batch as soon as one dropped entry is
    a directory; otherwise every file is placed at root.
    """

    def __init__(self, config: Optional[IngestConfig] = None, notifier: Optional[INotificationSink] = None):
        self._config = config or IngestConfig()
        self._notifier = notifier

    def scan(self, entries: Sequence[Entry]) -> ScanResult:
        entries = list(entries)
        builder = TreeBuilder(max_depth=self._config.max_depth)

        if not entries:
            self._error("No files detected")
            return ScanResult(DiscoveryMode.IDLE, builder.build(), error="No files detected")

        has_folder = any(self._is_dir(e) for e in entries)
        mode = DiscoveryMode.FOLDER if has_folder else DiscoveryMode.FILES
        skipped: List[SkippedEntry] = []
        logger.info(f"Scanning {len(entries)} dropped entr{'y' if len(entries) == 1 else 'ies'} ({mode.value} mode)")

        try:
            if has_folder:
                self._walk(entries, builder, skipped)
            else:
                self._collect_files(entries, builder, skipped)
        except _CountExceeded:
            forest = builder.build()
            forest.clear()
            message = f"Too many files! Maximum {self._config.max_files} files allowed"
            self._error(message)
            logger.warning(f"Scan aborted: more than {self._config.max_files} files")
            return ScanResult(mode, forest, skipped, error=message)

        forest = builder.build()
        stats = forest.stats()
        logger.info(
            f"Scan complete: {stats['folders']} folder(s), {stats['files']} file(s), "
            f"{len(skipped)} skipped"
        )
        return ScanResult(mode, forest, skipped)

    def admit_file(self, entry: Entry, skipped: Optional[List[SkippedEntry]] = None) -> Optional[LocalPayload]:
        """
        Apply type and size filters to a single file entry.

        Returns a payload handle for accepted files, None (with a warning)
        otherwise.
        """
        try:
            content_type = entry.content_type()
            size = entry.size()
        except OSError as e:
            self._skip(entry.name, f"Skipped unreadable file: {entry.name} ({e})", skipped)
            return None

        if not self._config.accepts_content_type(content_type):
            self._skip(entry.name, f"Skipped non-image file: {entry.name}", skipped)
            return None

        if size > self._config.max_file_size:
            limit_mb = self._config.max_file_size / MB
            self._skip(
                entry.name,
                f"Skipped file > {limit_mb:g}MB: {entry.name} ({size / MB:.1f}MB)",
                skipped,
            )
            return None

        return LocalPayload(entry.path(), size, content_type)

    def _walk(self, entries: List[Entry], builder: TreeBuilder, skipped: List[SkippedEntry]) -> None:
        max_depth = self._config.max_depth
        file_count = 0
        stack: List[Tuple[Entry, Optional[TempId], int]] = [(e, None, 0) for e in reversed(entries)]

        while stack:
            entry, parent, depth = stack.pop()
            if depth >= max_depth:
                self._skip(
                    entry.name,
                    f"Maximum folder depth ({max_depth} levels) exceeded for: {entry.name}",
                    skipped,
                )
                continue

            if self._is_dir(entry):
                folder = builder.add_folder(entry.name, parent)
                try:
                    children = entry.children()
                except OSError as e:
                    self._skip(entry.name, f"Could not read folder: {entry.name} ({e})", skipped)
                    continue
                for child in reversed(children):
                    stack.append((child, folder.temp_id, depth + 1))
                continue

            payload = self.admit_file(entry, skipped)
            if payload is None:
                continue
            file_count += 1
            builder.add_file(strip_extension(entry.name), payload, parent)
            if file_count > self._config.max_files:
                raise _CountExceeded()

    def _collect_files(self, entries: List[Entry], builder: TreeBuilder, skipped: List[SkippedEntry]) -> None:
        file_count = 0
        for entry in entries:
            payload = self.admit_file(entry, skipped)
            if payload is None:
                continue
            file_count += 1
            builder.add_file(strip_extension(entry.name), payload)
            if file_count > self._config.max_files:
                raise _CountExceeded()

    @staticmethod
    def _is_dir(entry: Entry) -> bool:
        try:
            return entry.is_dir
        except OSError:
            return False

    def _skip(self, name: str, message: str, skipped: Optional[List[SkippedEntry]]) -> None:
        logger.warning(message)
        if skipped is not None:
            skipped.append(SkippedEntry(name, message))
        if self._notifier:
            self._notifier.warn(message)

    def _error(self, message: str) -> None:
        logger.error(message)
        if self._notifier:
            self._notifier.error(message)
