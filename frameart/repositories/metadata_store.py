from __future__ import annotations
import logging
from typing import Callable, Optional, Protocol, TypeVar

from pydantic import ValidationError

from frameart.concurrency.read_write_lock import ReadWriteLock
from frameart.core.errors import CorruptStoreError
from frameart.models.document import REQUIRED_KEYS, MetadataDocument

logger = logging.getLogger(__name__)

T = TypeVar("T")


class DocumentBackend(Protocol):
    def exists(self) -> bool: ...
    def read(self) -> dict: ...
    def write(self, data: dict) -> None: ...


class MetadataStore:
    """
    Owns the metadata document and serialises every change to it.

      - load()      -> validated copy of the current document (read lock)
      - mutate(fn)  -> fn edits a fresh copy; the result is written once, atomically
                       (write lock, so concurrent mutations queue rather than interleave)

    The document is re-read from the backend on every call: a git pull may
    replace metadata.json underneath the process.
    """

    def __init__(self, backend: DocumentBackend, lock: Optional[ReadWriteLock] = None,
                 lock_timeout: Optional[float] = None) -> None:
        self.backend = backend
        self._lock = lock or ReadWriteLock()
        self._lock_timeout = lock_timeout
        self._closed = False

    # --------------- lifecycle ---------------
    def initialize(self) -> bool:
        """Create an empty document if none exists. Returns True if one was created."""
        self._check_open()
        with self._lock.write_lock(self._lock_timeout):
            if self.backend.exists():
                # Validate eagerly so a corrupt document is reported at startup.
                self._parse(self.backend.read())
                return False
            self.backend.write(MetadataDocument.empty().to_json())
            logger.info("✓ Created initial metadata document")
            return True

    def close(self) -> None:
        with self._lock.write_lock(self._lock_timeout):
            self._closed = True

    def _check_open(self) -> None:
        if self._closed:
            raise RuntimeError("MetadataStore is closed")

    # --------------- access ---------------
    @staticmethod
    def _parse(raw: object) -> MetadataDocument:
        if not isinstance(raw, dict):
            raise CorruptStoreError("metadata document is not a JSON object")
        missing = [k for k in REQUIRED_KEYS if k not in raw]
        if missing:
            raise CorruptStoreError(f"metadata document missing required keys: {', '.join(missing)}")
        try:
            return MetadataDocument.model_validate(raw)
        except ValidationError as e:
            raise CorruptStoreError(f"metadata document failed validation: {e}") from e

    def load(self) -> MetadataDocument:
        self._check_open()
        with self._lock.read_lock(self._lock_timeout):
            return self._parse(self.backend.read())

    def mutate(self, fn: Callable[[MetadataDocument], T]) -> T:
        """
        Apply fn to an in-memory copy and persist it in a single write.
        If fn raises, nothing is written and the exception propagates.
        """
        self._check_open()
        with self._lock.write_lock(self._lock_timeout):
            doc = self._parse(self.backend.read())
            result = fn(doc)
            self.backend.write(doc.to_json())
            return result
