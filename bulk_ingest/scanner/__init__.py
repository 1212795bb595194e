"""Entry discovery for dropped files and folders."""
from .entries import Entry, PathEntry, entries_from_paths, strip_extension
from .scanner import EntryScanner, ScanResult, SkippedEntry

__all__ = [
    "Entry",
    "PathEntry",
    "entries_from_paths",
    "strip_extension",
    "EntryScanner",
    "ScanResult",
    "SkippedEntry",
]
