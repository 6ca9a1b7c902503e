from __future__ import annotations
import re
from pydantic import BaseModel, ConfigDict, Field, field_validator
from typing import Any, List, Optional

from .image import dedupe_tags


def normalize_mac_address(mac: Optional[str]) -> Optional[str]:
    """
    Accepts AA:BB:CC:DD:EE:FF, aa-bb-cc-dd-ee-ff, aabbccddeeff, ...
    Returns aa:bb:cc:dd:ee:ff or None if the value is not a MAC address.
    """
    if not mac or not isinstance(mac, str):
        return None
    cleaned = re.sub(r"[^0-9a-fA-F]", "", mac)
    if len(cleaned) != 12:
        return None
    cleaned = cleaned.lower()
    return ":".join(cleaned[i:i + 2] for i in range(0, 12, 2))


class TVRecord(BaseModel):
    """
    A Frame TV. An empty `tags` list means "show everything", not "show nothing".
    """
    id: str
    name: str
    ip: str
    added: Optional[str] = None
    tags: List[str] = Field(default_factory=list)
    home: Optional[str] = None
    mac: Optional[str] = None

    model_config = ConfigDict(extra="allow")

    @field_validator("tags", mode="before")
    @classmethod
    def validate_tags(cls, v: Any) -> List[str]:
        return dedupe_tags(v)
