"""
Builds human-readable commit messages from a change summary and a semantic diff
of metadata.json (committed version vs working copy).
"""

from __future__ import annotations
from typing import Any, Dict, List, Optional

from frameart.models.sync import ChangeSummary

# Fields whose churn alone is not worth reporting
_IGNORED_FIELDS = {"updated"}
_DESCRIBED_FIELDS = ("matte", "filter")


def _plural(word: str, n: int) -> str:
    return word if n == 1 else f"{word}s"


def format_image_changes(name: str, added_tags: List[str], removed_tags: List[str],
                         property_changes: List[str]) -> str:
    parts: List[str] = []
    if added_tags:
        parts.append(f"added {_plural('tag', len(added_tags))} {', '.join(added_tags)}")
    if removed_tags:
        parts.append(f"removed {_plural('tag', len(removed_tags))} {', '.join(removed_tags)}")
    parts.extend(property_changes)
    return f"{name}: {'; '.join(parts)}"


def diff_metadata(old: Optional[Dict[str, Any]], new: Dict[str, Any]) -> List[str]:
    """One line per image/TV/vocabulary change between two raw metadata documents."""
    old = old or {}
    lines: List[str] = []

    old_images: Dict[str, Any] = old.get("images") or {}
    new_images: Dict[str, Any] = new.get("images") or {}

    for name in new_images:
        if name not in old_images:
            lines.append(f"{name}: added")
    for name in old_images:
        if name not in new_images:
            lines.append(f"{name}: removed")

    for name, record in new_images.items():
        before = old_images.get(name)
        if before is None:
            continue
        old_tags = list(before.get("tags") or [])
        new_tags = list(record.get("tags") or [])
        added = [t for t in new_tags if t not in old_tags]
        removed = [t for t in old_tags if t not in new_tags]
        props = []
        for field in _DESCRIBED_FIELDS:
            if before.get(field) != record.get(field):
                props.append(f"{field} {before.get(field)} → {record.get(field)}")
        other = sorted(
            k for k in set(before) | set(record)
            if k not in _IGNORED_FIELDS and k not in _DESCRIBED_FIELDS and k != "tags"
            and before.get(k) != record.get(k)
        )
        props.extend(f"{k} changed" for k in other)
        if added or removed or props:
            lines.append(format_image_changes(name, added, removed, props))

    old_tvs = {tv.get("id"): tv for tv in old.get("tvs") or []}
    new_tvs = {tv.get("id"): tv for tv in new.get("tvs") or []}
    for tv_id, tv in new_tvs.items():
        before = old_tvs.get(tv_id)
        label = f"TV {tv.get('name', tv_id)}"
        if before is None:
            lines.append(f"{label}: added")
            continue
        added = [t for t in tv.get("tags") or [] if t not in (before.get("tags") or [])]
        removed = [t for t in before.get("tags") or [] if t not in (tv.get("tags") or [])]
        props = [f"{k} changed" for k in ("name", "ip", "home") if before.get(k) != tv.get(k)]
        if added or removed or props:
            lines.append(format_image_changes(label, added, removed, props))
    for tv_id, tv in old_tvs.items():
        if tv_id not in new_tvs:
            lines.append(f"TV {tv.get('name', tv_id)}: removed")

    old_vocab = list(old.get("tags") or [])
    new_vocab = list(new.get("tags") or [])
    created = [t for t in new_vocab if t not in old_vocab]
    deleted = [t for t in old_vocab if t not in new_vocab]
    if created:
        lines.append(f"tag library: added {', '.join(created)}")
    if deleted:
        lines.append(f"tag library: removed {', '.join(deleted)}")
    return lines


def summary_line(summary: ChangeSummary) -> str:
    parts = []
    for label, n in (
        ("added", summary.new_images),
        ("modified", summary.modified_images),
        ("deleted", summary.deleted_images),
        ("renamed", summary.renamed_images),
    ):
        if n:
            parts.append(f"{n} {label}")
    head = f"Sync: {', '.join(parts)} {_plural('image', summary.image_changes)}" if parts else "Sync:"
    if summary.metadata_changes:
        head = f"{head}; metadata updated" if parts else "Sync: metadata updated"
    if head == "Sync:":
        head = "Sync: library update"
    return head


def build_commit_message(summary: ChangeSummary, metadata_lines: List[str]) -> str:
    head = summary_line(summary)
    if not metadata_lines:
        return head
    return head + "\n\n" + "\n".join(f"- {line}" for line in metadata_lines)
