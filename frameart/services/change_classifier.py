"""
Turns raw git status / name-status entries into a closed set of change variants
and sync-badge counts.

    Added(path) | Modified(path) | Deleted(path) | Renamed(old_path, new_path)

Renames come from git's own rename status (R), so a `git mv` is one change.
Thumbnails are regenerable and never counted; metadata.json is counted on its own.
"""

from __future__ import annotations
from dataclasses import dataclass
from typing import Iterable, List, Optional, Union

from frameart.adapters.git.porcelain import FileStatus
from frameart.models.sync import ChangeSummary

LIBRARY_DIR = "library"
THUMBS_DIR = "thumbs"
METADATA_FILE = "metadata.json"


@dataclass(frozen=True)
class Added:
    path: str


@dataclass(frozen=True)
class Modified:
    path: str


@dataclass(frozen=True)
class Deleted:
    path: str


@dataclass(frozen=True)
class Renamed:
    old_path: str
    new_path: str


Change = Union[Added, Modified, Deleted, Renamed]


def to_change(entry: FileStatus) -> Optional[Change]:
    """Map one status entry to a variant. Unmerged entries are not changes; see StatusSnapshot.conflicted."""
    if entry.unmerged:
        return None
    code = entry.effective
    if code in ("A", "?", "C"):
        return Added(entry.path)
    if code in ("M", "T"):
        return Modified(entry.path)
    if code == "D":
        return Deleted(entry.path)
    if code == "R":
        return Renamed(entry.orig_path or entry.path, entry.path)
    return None


def to_changes(entries: Iterable[FileStatus]) -> List[Change]:
    changes = []
    for e in entries:
        c = to_change(e)
        if c is not None:
            changes.append(c)
    return changes


def is_image_path(path: str) -> bool:
    return path.startswith(f"{LIBRARY_DIR}/")


def is_metadata_path(path: str) -> bool:
    return path == METADATA_FILE


def summarize(changes: Iterable[Change]) -> ChangeSummary:
    summary = ChangeSummary()
    for change in changes:
        if isinstance(change, Renamed):
            if is_image_path(change.new_path) or is_image_path(change.old_path):
                summary.renamed_images += 1
            elif is_metadata_path(change.new_path):
                summary.metadata_changes += 1
            continue
        if isinstance(change, (Added, Modified, Deleted)):
            path = change.path
        else:
            raise TypeError(f"unhandled change variant: {change!r}")

        if is_metadata_path(path):
            # A metadata.json that appears or disappears wholesale is not a tag/settings edit.
            if isinstance(change, Modified):
                summary.metadata_changes += 1
            continue
        if not is_image_path(path):
            continue
        if isinstance(change, Added):
            summary.new_images += 1
        elif isinstance(change, Modified):
            summary.modified_images += 1
        else:
            summary.deleted_images += 1
    return summary


def classify(entries: Iterable[FileStatus]) -> ChangeSummary:
    return summarize(to_changes(entries))


def managed_paths(entries: Iterable[FileStatus]) -> List[str]:
    """Paths (both sides of a rename) that belong to the library, thumbnails or metadata."""
    out: List[str] = []
    for e in entries:
        for p in (e.orig_path, e.path):
            if p and (is_image_path(p) or p.startswith(f"{THUMBS_DIR}/") or is_metadata_path(p)):
                if p not in out:
                    out.append(p)
    return out
