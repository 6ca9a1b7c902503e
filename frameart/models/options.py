"""
Frame TV art display options (matte and filter), matching the TV's art-mode settings.
"""

from __future__ import annotations
from typing import List, Optional

MATTE_STYLES: List[str] = [
    "modernthin",
    "modern",
    "modernwide",
    "flexible",
    "shadowbox",
    "panoramic",
    "triptych",
    "mix",
    "squares",
]

# 'burgandy' is the TV's own spelling
MATTE_COLORS: List[str] = [
    "black",
    "neutral",
    "antique",
    "warm",
    "polar",
    "sand",
    "seafoam",
    "sage",
    "burgandy",
    "navy",
    "apricot",
    "byzantine",
    "lavender",
    "redorange",
    "skyblue",
    "turquoise",
]

DEFAULT_MATTE = "none"
DEFAULT_FILTER = "none"

MATTE_TYPES: List[str] = [DEFAULT_MATTE] + [
    f"{style}_{color}" for style in MATTE_STYLES for color in MATTE_COLORS
]

FILTER_TYPES: List[str] = [DEFAULT_FILTER, "Aqua", "ArtDeco", "Ink", "Wash", "Pastel", "Feuve"]


def _normalize(value: Optional[str], options: List[str], default: str) -> str:
    if value is None:
        return default
    candidate = str(value).strip().lower()
    for option in options:
        if option.lower() == candidate:
            return option
    return default


def normalize_matte(value: Optional[str]) -> str:
    return _normalize(value, MATTE_TYPES, DEFAULT_MATTE)


def normalize_filter(value: Optional[str]) -> str:
    return _normalize(value, FILTER_TYPES, DEFAULT_FILTER)
