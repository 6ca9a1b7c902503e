"""
Tag filtering and TV shortcut state.

A TV's tag set drives what it shows: an empty set matches every image.
Shortcut state mirrors the tag picker: `all` when every tag of the TV is
selected, `partial` when only some are, `none` otherwise.
"""

from __future__ import annotations
from typing import Dict, Iterable, List, Optional

from frameart.models.document import MetadataDocument
from frameart.models.image import ImageRecord
from frameart.models.tv import TVRecord

ALL = "all"
PARTIAL = "partial"
NONE = "none"
NO_TVS_ID = "no-tvs"


def filter_images(
    images: Dict[str, ImageRecord],
    search: Optional[str] = None,
    selected_tags: Optional[Iterable[str]] = None,
) -> Dict[str, ImageRecord]:
    term = (search or "").strip().lower()
    selected = set(selected_tags or [])
    out: Dict[str, ImageRecord] = {}
    for filename, record in images.items():
        if term and term not in filename.lower():
            continue
        if selected and not selected.intersection(record.tags):
            continue
        out[filename] = record
    return out


def images_for_tv(images: Dict[str, ImageRecord], tv: TVRecord) -> Dict[str, ImageRecord]:
    if not tv.tags:
        return dict(images)
    return filter_images(images, selected_tags=tv.tags)


def tv_selection_state(tv_tags: Iterable[str], selected_tags: Iterable[str]) -> str:
    tags = list(tv_tags)
    selected = set(selected_tags)
    if all(t in selected for t in tags):
        return ALL
    if any(t in selected for t in tags):
        return PARTIAL
    return NONE


def non_tv_tags(vocabulary: Iterable[str], tvs: Iterable[TVRecord]) -> List[str]:
    used = {t for tv in tvs for t in tv.tags}
    return [t for t in vocabulary if t not in used]


def no_tvs_selection_state(non_tv: Iterable[str], selected_tags: Iterable[str]) -> str:
    """`all` only when exactly the tags outside every TV are selected."""
    non_tv_set = set(non_tv)
    selected = set(selected_tags)
    if not selected or selected - non_tv_set:
        return NONE
    if non_tv_set and selected == non_tv_set:
        return ALL
    return PARTIAL


def tv_shortcuts(doc: MetadataDocument, selected_tags: Iterable[str]) -> List[dict]:
    selected = list(selected_tags)
    shortcuts = [
        {"id": tv.id, "name": tv.name, "tags": list(tv.tags), "state": tv_selection_state(tv.tags, selected)}
        for tv in doc.tvs
        if tv.tags
    ]
    leftover = non_tv_tags(doc.tags, doc.tvs)
    shortcuts.append({
        "id": NO_TVS_ID,
        "name": "*No TVs",
        "tags": leftover,
        "state": no_tvs_selection_state(leftover, selected),
    })
    return shortcuts
