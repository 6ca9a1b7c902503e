"""
Results returned by the artifact coordinator. `touched` lists the repo-relative
paths an operation changed, which is exactly what a follow-up commit stages.
"""

from __future__ import annotations
from pydantic import BaseModel, Field
from typing import Dict, List

from .image import ImageView


class UploadResult(BaseModel):
    image: ImageView
    touched: List[str] = Field(default_factory=list)


class RenameResult(BaseModel):
    old_filename: str
    new_filename: str
    image: ImageView
    thumbnail_moved: bool = False
    recorded_as_move: bool = False
    touched: List[str] = Field(default_factory=list)


class DeleteResult(BaseModel):
    filename: str
    library_removed: bool
    thumbnail_removed: bool
    touched: List[str] = Field(default_factory=list)


class BulkTagResult(BaseModel):
    """Per-item outcome: a batch is never aborted by one bad filename."""
    tags: List[str]
    updated: List[str] = Field(default_factory=list)
    unchanged: List[str] = Field(default_factory=list)
    failed: Dict[str, str] = Field(default_factory=dict)
    tags_added_to_library: List[str] = Field(default_factory=list)
    touched: List[str] = Field(default_factory=list)

    @property
    def partial(self) -> bool:
        return bool(self.failed) and bool(self.updated or self.unchanged)
