"""Helpers for JSON input/output with atomic writes."""

from __future__ import annotations

import json
import os
import time
from pathlib import Path
from typing import Any

from frameart.core.errors import CorruptStoreError


def read_json(path: Path) -> Any:
    """Read JSON from *path*; unreadable or missing files raise CorruptStoreError."""

    try:
        with path.open("r", encoding="utf-8") as handle:
            return json.load(handle)
    except FileNotFoundError as exc:
        raise CorruptStoreError(f"JSON file not found: {path}") from exc
    except (json.JSONDecodeError, UnicodeDecodeError) as exc:
        raise CorruptStoreError(f"Invalid JSON data in {path}: {exc}") from exc


def atomic_write_text(path: Path, data: str) -> None:
    """Atomically write *data* into *path* (write temp file, fsync, rename over)."""

    tmp_path = path.with_suffix(path.suffix + ".tmp")
    path.parent.mkdir(parents=True, exist_ok=True)
    with tmp_path.open("w", encoding="utf-8") as handle:
        handle.write(data)
        handle.flush()
        os.fsync(handle.fileno())
    # ``Path.replace`` can fail transiently on Windows while another process holds
    # the destination open; retry briefly and never unlink the existing document.
    for attempt in range(5):
        try:
            tmp_path.replace(path)
            return
        except PermissionError:
            if attempt == 4:
                tmp_path.unlink(missing_ok=True)
                raise
            time.sleep(0.05 * (attempt + 1))


def write_json(path: Path, data: Any) -> None:
    """Write *data* into *path* atomically, keeping key order so git diffs stay small."""

    payload = json.dumps(data, ensure_ascii=False, indent=2)
    atomic_write_text(path, payload)
