from __future__ import annotations
from copy import deepcopy
from typing import Optional

from frameart.core.errors import CorruptStoreError


class MemoryDocumentBackend:
    """
    In-memory persistence for the metadata document.
    Holds raw JSON-shaped data so it exercises the same validation path as the file backend.
    """

    def __init__(self, data: Optional[dict] = None) -> None:
        self._data: Optional[dict] = deepcopy(data) if data is not None else None
        self.writes = 0

    def exists(self) -> bool:
        return self._data is not None

    def read(self) -> dict:
        if self._data is None:
            raise CorruptStoreError("metadata document has not been initialised")
        return deepcopy(self._data)

    def write(self, data: dict) -> None:
        self._data = deepcopy(data)
        self.writes += 1
