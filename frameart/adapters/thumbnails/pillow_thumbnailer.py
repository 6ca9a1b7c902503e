from __future__ import annotations
from pathlib import Path
from typing import Tuple

from PIL import Image, ImageOps, UnidentifiedImageError


class PillowThumbnailer:
    """
    Reads pixel dimensions and renders fit-inside thumbnails (no upscaling),
    honouring EXIF orientation the way the TV displays the original.
    """

    def __init__(self, size: Tuple[int, int] = (400, 300)) -> None:
        self.size = size

    def dimensions(self, path: Path) -> Tuple[int, int]:
        try:
            with Image.open(path) as img:
                img = ImageOps.exif_transpose(img)
                width, height = img.size
        except (UnidentifiedImageError, Image.DecompressionBombError, OSError) as e:
            raise ValueError(f"not a readable image: {path.name} ({e})") from e
        if not width or not height:
            raise ValueError(f"missing image dimensions: {path.name}")
        return width, height

    def create(self, source: Path, target: Path) -> Path:
        target.parent.mkdir(parents=True, exist_ok=True)
        try:
            with Image.open(source) as img:
                img = ImageOps.exif_transpose(img)
                img.thumbnail(self.size)
                if img.mode not in ("RGB", "RGBA", "L") or (
                    img.mode == "RGBA" and target.suffix.lower() in (".jpg", ".jpeg")
                ):
                    img = img.convert("RGB")
                img.save(target, format=_format_for(target, img))
        except (UnidentifiedImageError, Image.DecompressionBombError, OSError) as e:
            raise ValueError(f"cannot render thumbnail for {source.name} ({e})") from e
        return target


def _format_for(target: Path, img: Image.Image) -> str:
    ext = target.suffix.lower().lstrip(".")
    fmt = Image.registered_extensions().get(f".{ext}")
    if fmt and fmt in Image.SAVE:
        return fmt
    return "PNG" if img.mode in ("RGBA", "LA") else "JPEG"
