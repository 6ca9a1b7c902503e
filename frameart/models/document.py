from __future__ import annotations
from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from typing import Any, Dict, List

from .image import ImageRecord, dedupe_tags
from .tv import TVRecord

REQUIRED_KEYS = ("images", "tags")
CURRENT_VERSION = "1.0"


class MetadataDocument(BaseModel):
    """
    The whole of metadata.json: images keyed by filename, TVs, and the tag vocabulary.

    Serialised with exclude_unset so records keep exactly the keys they were read
    with; services always assign (never mutate in place) fields they change.
    """
    version: str = CURRENT_VERSION
    images: Dict[str, ImageRecord]
    tvs: List[TVRecord] = Field(default_factory=list)
    tags: List[str]

    model_config = ConfigDict(extra="allow")

    @model_validator(mode="before")
    @classmethod
    def fill_containers(cls, data: Any) -> Any:
        # Older documents predate TVs; make the key explicit so it is always written back.
        if isinstance(data, dict) and "tvs" not in data:
            data = {**data, "tvs": []}
        return data

    @field_validator("tags", mode="before")
    @classmethod
    def validate_tags(cls, v: Any) -> List[str]:
        return dedupe_tags(v)

    @classmethod
    def empty(cls) -> "MetadataDocument":
        return cls(version=CURRENT_VERSION, images={}, tvs=[], tags=[])

    def to_json(self) -> dict:
        return self.model_dump(mode="json", by_alias=True, exclude_unset=True)

    # --------------- tag vocabulary helpers ---------------
    def ensure_tags(self, tags: List[str]) -> List[str]:
        """Add any unknown tags to the vocabulary; returns the ones that were new."""
        new = [t for t in dedupe_tags(tags) if t not in self.tags]
        if new:
            self.tags = self.tags + new
        return new

    def find_tv(self, tv_id: str) -> TVRecord | None:
        for tv in self.tvs:
            if tv.id == tv_id:
                return tv
        return None
