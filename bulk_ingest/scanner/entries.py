"""Native filesystem entries as seen by the scanner."""
from pathlib import Path
from typing import Iterable, List, Optional, Protocol, runtime_checkable
import mimetypes


@runtime_checkable
class Entry(Protocol):
    """A dropped or selected file-system entry."""

    @property
    def name(self) -> str:
        ...

    @property
    def is_dir(self) -> bool:
        ...

    def children(self) -> List["Entry"]:
        ...

    def size(self) -> int:
        ...

    def content_type(self) -> Optional[str]:
        ...

    def path(self) -> Path:
        ...


class PathEntry:
    """Entry backed by a local path."""

    def __init__(self, path: Path):
        self._path = Path(path)

    def __repr__(self) -> str:
        return f"PathEntry({str(self._path)!r})"

    @property
    def name(self) -> str:
        return self._path.name

    @property
    def is_dir(self) -> bool:
        return self._path.is_dir()

    def children(self) -> List["PathEntry"]:
        return [PathEntry(p) for p in sorted(self._path.iterdir(), key=lambda p: p.name)]

    def size(self) -> int:
        return self._path.stat().st_size

    def content_type(self) -> Optional[str]:
        mimetype, _ = mimetypes.guess_type(str(self._path))
        return mimetype

    def path(self) -> Path:
        return self._path


def entries_from_paths(paths: Iterable) -> List[PathEntry]:
    return [PathEntry(Path(p)) for p in paths]


def strip_extension(filename: str) -> str:
    """Drop the final extension; hidden files like '.gitignore' keep their name."""
    idx = filename.rfind(".")
    if idx <= 0:
        return filename
    return filename[:idx]
