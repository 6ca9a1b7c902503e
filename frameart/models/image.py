from __future__ import annotations
from pydantic import BaseModel, ConfigDict, Field, field_validator
from typing import Any, List, Optional

from .options import DEFAULT_FILTER, DEFAULT_MATTE


def dedupe_tags(values: Any) -> List[str]:
    """Tag sets are stored as JSON arrays; keep first occurrence order, drop blanks."""
    if values is None:
        return []
    if isinstance(values, str):
        values = values.split(",")
    seen: List[str] = []
    for v in values:
        tag = str(v).strip()
        if tag and tag not in seen:
            seen.append(tag)
    return seen


class Dimensions(BaseModel):
    width: int
    height: int

    model_config = ConfigDict(extra="allow")


class ImageRecord(BaseModel):
    """
    Metadata for one library image. The filename is the key in the document's
    `images` mapping, not a field of the record.

    `added`, `dimensions` and `aspectRatio` are written once at upload.
    Unknown keys are kept so newer writers' fields survive a load/save cycle.
    """
    matte: str = DEFAULT_MATTE
    filter: str = DEFAULT_FILTER
    tags: List[str] = Field(default_factory=list)
    dimensions: Optional[Dimensions] = None
    aspect_ratio: Optional[float] = Field(default=None, alias="aspectRatio")
    added: Optional[str] = None
    updated: Optional[str] = None

    model_config = ConfigDict(extra="allow", populate_by_name=True)

    @field_validator("tags", mode="before")
    @classmethod
    def validate_tags(cls, v: Any) -> List[str]:
        return dedupe_tags(v)


class ImageView(BaseModel):
    """API-facing pairing of a filename with its record."""
    filename: str
    record: ImageRecord

    def to_dict(self) -> dict:
        data = self.record.model_dump(mode="json", by_alias=True, exclude_unset=True)
        return {"filename": self.filename, **data}
