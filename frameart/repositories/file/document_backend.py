from __future__ import annotations
from pathlib import Path

from frameart.utils.jsonio import read_json, write_json


class JsonFileDocumentBackend:
    """
    metadata.json on disk. Writes go through a temp file + rename so an interrupted
    write never leaves a half-written document behind.
    """

    def __init__(self, path: Path) -> None:
        self.path = Path(path)

    def exists(self) -> bool:
        return self.path.exists()

    def read(self) -> dict:
        return read_json(self.path)

    def write(self, data: dict) -> None:
        write_json(self.path, data)
