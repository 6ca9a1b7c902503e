"""
Bounded, append-only sync log persisted as a JSON array (newest first).
"""

from __future__ import annotations
import logging
import threading
from pathlib import Path
from typing import List

from frameart.core.errors import CorruptStoreError
from frameart.models.sync import SyncLogEntry
from frameart.utils.jsonio import read_json, write_json

logger = logging.getLogger(__name__)


class SyncLogRepo:
    def __init__(self, path: Path, limit: int = 100) -> None:
        self.path = Path(path)
        self.limit = limit
        self._lock = threading.Lock()

    def _read(self) -> List[dict]:
        if not self.path.exists():
            return []
        try:
            data = read_json(self.path)
        except CorruptStoreError as e:
            # The log is diagnostic only; start over rather than block syncing.
            logger.warning(f"⚠ Sync log unreadable, starting a new one: {e}")
            return []
        return data if isinstance(data, list) else []

    def append(self, entry: SyncLogEntry) -> SyncLogEntry:
        with self._lock:
            logs = self._read()
            logs.insert(0, entry.model_dump(mode="json"))
            write_json(self.path, logs[: self.limit])
        return entry

    def list(self) -> List[SyncLogEntry]:
        with self._lock:
            return [SyncLogEntry.model_validate(e) for e in self._read()]

    def clear(self) -> None:
        with self._lock:
            write_json(self.path, [])
