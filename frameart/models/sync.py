"""
Models describing the working tree's relationship to its remote and the sync log.
"""

from __future__ import annotations
from enum import Enum
from pydantic import BaseModel, Field
from typing import Dict, List, Optional

from frameart.utils.clock import utc_now_iso


class SyncState(str, Enum):
    UNVERIFIED = "unverified"
    VERIFIED = "verified"
    CLEAN = "clean"
    DIRTY = "dirty"
    AHEAD = "ahead"
    BEHIND = "behind"
    DIVERGED = "diverged"
    SYNCING = "syncing"
    CONFLICT = "conflict"


class Verification(BaseModel):
    is_valid: bool
    checks: Dict[str, object] = Field(default_factory=dict)
    errors: List[str] = Field(default_factory=list)


class ChangeSummary(BaseModel):
    """Sync-badge counts. A rename is one change, never a delete plus an add."""
    new_images: int = 0
    modified_images: int = 0
    deleted_images: int = 0
    renamed_images: int = 0
    metadata_changes: int = 0

    @property
    def image_changes(self) -> int:
        return self.new_images + self.modified_images + self.deleted_images + self.renamed_images

    @property
    def count(self) -> int:
        return self.image_changes + self.metadata_changes

    def __add__(self, other: "ChangeSummary") -> "ChangeSummary":
        return ChangeSummary(
            new_images=self.new_images + other.new_images,
            modified_images=self.modified_images + other.modified_images,
            deleted_images=self.deleted_images + other.deleted_images,
            renamed_images=self.renamed_images + other.renamed_images,
            metadata_changes=self.metadata_changes + other.metadata_changes,
        )

    def to_dict(self) -> dict:
        return {**self.model_dump(), "count": self.count}


class RepoStatus(BaseModel):
    state: SyncState
    branch: Optional[str] = None
    tracking: Optional[str] = None
    ahead: int = 0
    behind: int = 0
    changed_files: List[str] = Field(default_factory=list)
    conflicted_files: List[str] = Field(default_factory=list)
    local_changes: ChangeSummary = Field(default_factory=ChangeSummary)


class SyncOutcome(BaseModel):
    """Result of a guarded pull or commit+push attempt."""
    operation: str
    success: bool
    state: SyncState
    message: str
    skipped: bool = False
    pulled_commits: int = 0
    committed: bool = False
    pushed: bool = False
    files: List[str] = Field(default_factory=list)


class SyncLogEntry(BaseModel):
    timestamp: str = Field(default_factory=utc_now_iso)
    operation: str
    status: str
    message: str
    files: List[str] = Field(default_factory=list)
