"""
Artifact coordinator: keeps {library file, thumbnail, metadata record} consistent
across upload, rename, delete and tagging.

Ordering rules:
  - upload:  files first, record last; any failure removes the files again
  - rename:  move library file (as a git rename), move thumbnail best-effort, then
             migrate the record; a failed migration moves the library file back
  - delete:  record first, then files, so no record ever points at a missing file
"""

from __future__ import annotations
import logging
import re
import threading
import unicodedata
from pathlib import Path, PurePath
from typing import Dict, Iterable, List, Optional, Protocol, Tuple
from uuid import uuid4

from frameart.adapters.thumbnails.pillow_thumbnailer import PillowThumbnailer
from frameart.core.config import Settings, settings as default_settings
from frameart.core.errors import (
    ConflictError,
    FrameArtError,
    MalformedFilenameError,
    NotFoundError,
    UploadError,
)
from frameart.models.document import MetadataDocument
from frameart.models.image import Dimensions, ImageRecord, ImageView, dedupe_tags
from frameart.models.options import normalize_filter, normalize_matte
from frameart.models.results import BulkTagResult, DeleteResult, RenameResult, UploadResult
from frameart.repositories.metadata_store import MetadataStore
from frameart.services.change_classifier import LIBRARY_DIR, METADATA_FILE, THUMBS_DIR
from frameart.services.filtering import filter_images
from frameart.utils.clock import utc_now_iso

logger = logging.getLogger(__name__)

FALLBACK_BASE_NAME = "image"
IMAGE_EXTENSIONS = {".jpg", ".jpeg", ".png", ".gif", ".webp", ".avif"}
CONTENT_TYPE_EXTENSIONS = {
    "image/jpeg": ".jpg",
    "image/jpg": ".jpg",
    "image/png": ".png",
    "image/webp": ".webp",
    "image/gif": ".gif",
    "image/avif": ".avif",
}

FILENAME_RE = re.compile(r"^(?P<base>.+)-(?P<uuid>[0-9a-f]{8})(?P<ext>\.[^.]+)$", re.IGNORECASE)


# --------------- naming ---------------
def sanitize_base_name(raw: Optional[str], fallback: str = FALLBACK_BASE_NAME) -> str:
    """Lowercase, spaces/underscores to hyphens, only [a-z0-9-], no repeated or edge hyphens."""
    if not raw or not isinstance(raw, str):
        return fallback
    decomposed = unicodedata.normalize("NFKD", raw)
    ascii_only = "".join(c for c in decomposed if not unicodedata.combining(c))
    name = re.sub(r"[\s_]+", "-", ascii_only.lower())
    name = re.sub(r"[^a-z0-9-]", "", name)
    name = re.sub(r"-{2,}", "-", name).strip("-")
    return name or fallback


def parse_filename(filename: str) -> Tuple[str, str, str]:
    """Split `base-uuid8.ext` into (base, uuid, ext)."""
    m = FILENAME_RE.match(filename or "")
    if not m:
        raise MalformedFilenameError(f"{filename!r} does not match the base-uuid8.ext pattern")
    return m.group("base"), m.group("uuid"), m.group("ext")


def check_plain_name(filename: str) -> str:
    if not filename or filename in (".", "..") or "/" in filename or "\\" in filename:
        raise MalformedFilenameError(f"invalid filename: {filename!r}")
    return filename


def _extension_for(original_filename: Optional[str], content_type: Optional[str]) -> str:
    ext = PurePath(original_filename or "").suffix.lower()
    if not ext:
        return CONTENT_TYPE_EXTENSIONS.get((content_type or "").lower(), ".jpg")
    if ext not in IMAGE_EXTENSIONS:
        raise UploadError(f"Unsupported file type: {ext}")
    return ext


class ArtifactMover(Protocol):
    def move(self, src: str, dst: str) -> bool: ...


class FilesystemMover:
    """Plain rename for libraries that are not under version control."""

    def __init__(self, root: Path) -> None:
        self.root = Path(root)

    def move(self, src: str, dst: str) -> bool:
        target = self.root / dst
        target.parent.mkdir(parents=True, exist_ok=True)
        (self.root / src).rename(target)
        return False


class ImageService:
    def __init__(
        self,
        store: MetadataStore,
        settings: Optional[Settings] = None,
        mover: Optional[ArtifactMover] = None,
        thumbnailer: Optional[PillowThumbnailer] = None,
    ) -> None:
        self.settings = settings or default_settings
        self.store = store
        self.root = Path(self.settings.FRAME_ART_PATH)
        self.library = self.settings.library_path
        self.thumbs = self.settings.thumbs_path
        self.mover = mover or FilesystemMover(self.root)
        self.thumbnailer = thumbnailer or PillowThumbnailer(
            (self.settings.THUMBNAIL_WIDTH, self.settings.THUMBNAIL_HEIGHT)
        )
        # One multi-artifact operation at a time; the store lock only covers the document.
        self._artifacts = threading.RLock()

    def ensure_directories(self) -> None:
        self.library.mkdir(parents=True, exist_ok=True)
        self.thumbs.mkdir(parents=True, exist_ok=True)

    # --------------- reads ---------------
    def list(self, search: Optional[str] = None, tags: Optional[Iterable[str]] = None) -> List[ImageView]:
        doc = self.store.load()
        found = filter_images(doc.images, search=search, selected_tags=tags)
        return [ImageView(filename=k, record=v) for k, v in found.items()]

    def get(self, filename: str) -> ImageView:
        doc = self.store.load()
        record = doc.images.get(filename)
        if record is None:
            raise NotFoundError(f"Image {filename} not found")
        return ImageView(filename=filename, record=record)

    def verify_library(self) -> Dict[str, List[str]]:
        """Cross-check metadata keys against the files on disk."""
        doc = self.store.load()
        on_disk = sorted(
            p.name for p in self.library.glob("*")
            if p.is_file() and p.suffix.lower() in IMAGE_EXTENSIONS
        ) if self.library.exists() else []
        disk_set = set(on_disk)
        return {
            "synced": [f for f in doc.images if f in disk_set],
            "in_metadata_not_on_disk": [f for f in doc.images if f not in disk_set],
            "on_disk_not_in_metadata": [f for f in on_disk if f not in doc.images],
            "missing_thumbnails": [f for f in doc.images if f in disk_set and not (self.thumbs / f).exists()],
        }

    # --------------- upload ---------------
    def _unique_filename(self, base: str, ext: str, doc: MetadataDocument) -> str:
        taken = {k.lower() for k in doc.images}
        while True:
            candidate = f"{base}-{uuid4().hex[:8]}{ext}"
            if candidate.lower() not in taken and not (self.library / candidate).exists():
                return candidate

    def upload(
        self,
        data: bytes,
        original_filename: Optional[str] = None,
        base_name: Optional[str] = None,
        matte: Optional[str] = None,
        filter: Optional[str] = None,
        tags: Optional[Iterable[str]] = None,
        content_type: Optional[str] = None,
    ) -> UploadResult:
        if not data:
            raise UploadError("Uploaded file is empty")
        if len(data) > self.settings.MAX_UPLOAD_BYTES:
            raise UploadError(f"Uploaded file exceeds {self.settings.MAX_UPLOAD_BYTES} bytes")
        ext = _extension_for(original_filename, content_type)
        fallback = sanitize_base_name(PurePath(original_filename or "").stem, FALLBACK_BASE_NAME)
        base = sanitize_base_name(base_name, fallback) if base_name and base_name.strip() else fallback
        tag_list = dedupe_tags(tags)

        with self._artifacts:
            self.ensure_directories()
            filename = self._unique_filename(base, ext, self.store.load())
            image_path = self.library / filename
            thumb_path = self.thumbs / filename
            image_path.write_bytes(data)
            try:
                width, height = self.thumbnailer.dimensions(image_path)
                self.thumbnailer.create(image_path, thumb_path)
            except ValueError as e:
                self._discard(image_path, thumb_path)
                logger.error(f"❌ Upload of {filename} rolled back: {e}")
                raise UploadError(f"Uploaded file is not a valid image: {e}") from e

            record = ImageRecord(
                matte=normalize_matte(matte),
                filter=normalize_filter(filter),
                tags=tag_list,
                dimensions=Dimensions(width=width, height=height),
                aspect_ratio=round(width / height, 2),
                added=utc_now_iso(),
            )

            def insert(doc: MetadataDocument) -> None:
                if filename in doc.images:
                    raise ConflictError(f"Image {filename} already exists in metadata")
                doc.ensure_tags(tag_list)
                doc.images[filename] = record

            try:
                self.store.mutate(insert)
            except Exception:
                self._discard(image_path, thumb_path)
                logger.error(f"❌ Metadata insert for {filename} failed; upload rolled back")
                raise

        logger.info(f"✓ Uploaded {filename} ({width}x{height})")
        return UploadResult(
            image=ImageView(filename=filename, record=record),
            touched=[f"{LIBRARY_DIR}/{filename}", f"{THUMBS_DIR}/{filename}", METADATA_FILE],
        )

    @staticmethod
    def _discard(*paths: Path) -> None:
        for p in paths:
            try:
                p.unlink(missing_ok=True)
            except OSError as e:
                logger.error(f"❌ Could not remove {p}: {e}")

    # --------------- rename ---------------
    def rename(self, old_filename: str, new_base_name: str) -> RenameResult:
        check_plain_name(old_filename)
        _, suffix, ext = parse_filename(old_filename)
        if not new_base_name or not new_base_name.strip():
            raise MalformedFilenameError("New base name is required")
        new_filename = f"{sanitize_base_name(new_base_name)}-{suffix}{ext}"

        with self._artifacts:
            doc = self.store.load()
            if old_filename not in doc.images:
                raise NotFoundError(f"Image {old_filename} not found")
            if new_filename == old_filename:
                return RenameResult(
                    old_filename=old_filename,
                    new_filename=new_filename,
                    image=ImageView(filename=old_filename, record=doc.images[old_filename]),
                )
            case_only = new_filename.lower() == old_filename.lower()
            clash = [k for k in doc.images if k != old_filename and k.lower() == new_filename.lower()]
            if clash or (not case_only and (self.library / new_filename).exists()):
                raise ConflictError(f"A file named {new_filename} already exists")
            if not (self.library / old_filename).exists():
                raise NotFoundError(f"Library file for {old_filename} is missing")

            old_rel, new_rel = f"{LIBRARY_DIR}/{old_filename}", f"{LIBRARY_DIR}/{new_filename}"
            old_thumb, new_thumb = f"{THUMBS_DIR}/{old_filename}", f"{THUMBS_DIR}/{new_filename}"

            try:
                recorded_as_move = self.mover.move(old_rel, new_rel)
            except (OSError, FrameArtError):
                # The move may have landed before failing; the record still names the old file.
                if not case_only and (self.library / new_filename).exists() \
                        and not (self.library / old_filename).exists():
                    self._restore_file(self.library / new_filename, self.library / old_filename)
                raise

            thumbnail_moved = False
            if (self.thumbs / old_filename).exists():
                try:
                    self.mover.move(old_thumb, new_thumb)
                    thumbnail_moved = True
                except (OSError, FrameArtError) as e:
                    # Thumbnails are regenerable; the library file and record must still move.
                    logger.warning(f"⚠ Thumbnail rename {old_filename} -> {new_filename} failed: {e}")
            else:
                logger.warning(f"⚠ No thumbnail for {old_filename}; skipping thumbnail rename")

            def migrate(doc: MetadataDocument) -> ImageRecord:
                if new_filename in doc.images:
                    raise ConflictError(f"Image {new_filename} already exists in metadata")
                if old_filename not in doc.images:
                    raise NotFoundError(f"Image {old_filename} not found")
                # Rebuild to keep the entry's position in the document.
                doc.images = {
                    (new_filename if k == old_filename else k): v for k, v in doc.images.items()
                }
                return doc.images[new_filename]

            try:
                record = self.store.mutate(migrate)
            except Exception:
                logger.error(f"❌ Metadata rename {old_filename} -> {new_filename} failed; moving files back")
                self._undo_move(new_rel, old_rel)
                if thumbnail_moved:
                    self._undo_move(new_thumb, old_thumb)
                raise

        logger.info(f"✓ Renamed {old_filename} -> {new_filename}")
        return RenameResult(
            old_filename=old_filename,
            new_filename=new_filename,
            image=ImageView(filename=new_filename, record=record),
            thumbnail_moved=thumbnail_moved,
            recorded_as_move=recorded_as_move,
            touched=[old_rel, new_rel, old_thumb, new_thumb, METADATA_FILE],
        )

    def _undo_move(self, src: str, dst: str) -> None:
        try:
            self.mover.move(src, dst)
        except (OSError, FrameArtError) as e:
            logger.critical(f"❌ Could not restore {dst} from {src}: {e}")

    @staticmethod
    def _restore_file(src: Path, dst: Path) -> None:
        try:
            src.rename(dst)
            logger.warning(f"⚠ Moved {src.name} back to {dst.name} after a failed rename")
        except OSError as e:
            logger.critical(f"❌ Could not restore {dst} from {src}: {e}")

    # --------------- delete ---------------
    def delete(self, filename: str) -> DeleteResult:
        check_plain_name(filename)
        with self._artifacts:
            def remove(doc: MetadataDocument) -> None:
                if filename not in doc.images:
                    raise NotFoundError(f"Image {filename} not found")
                doc.images = {k: v for k, v in doc.images.items() if k != filename}

            self.store.mutate(remove)

            library_removed = True
            try:
                (self.library / filename).unlink(missing_ok=True)
            except OSError as e:
                # The record is already gone; an orphan file is reported, never a dangling record.
                library_removed = False
                logger.error(f"❌ Record for {filename} removed but the file could not be deleted: {e}")

            thumbnail_removed = False
            thumb = self.thumbs / filename
            try:
                thumb.unlink()
                thumbnail_removed = True
            except FileNotFoundError:
                logger.warning(f"⚠ Thumbnail for {filename} was already missing")
            except OSError as e:
                logger.warning(f"⚠ Could not delete thumbnail for {filename}: {e}")

        logger.info(f"✓ Deleted {filename}")
        return DeleteResult(
            filename=filename,
            library_removed=library_removed,
            thumbnail_removed=thumbnail_removed,
            touched=[f"{LIBRARY_DIR}/{filename}", f"{THUMBS_DIR}/{filename}", METADATA_FILE],
        )

    # --------------- metadata edits ---------------
    def update(
        self,
        filename: str,
        matte: Optional[str] = None,
        filter: Optional[str] = None,
        tags: Optional[Iterable[str]] = None,
    ) -> ImageView:
        """Edit matte/filter/tags. `added` and `dimensions` are never touched here."""
        def apply(doc: MetadataDocument) -> ImageRecord:
            record = doc.images.get(filename)
            if record is None:
                raise NotFoundError(f"Image {filename} not found")
            if matte is not None:
                record.matte = normalize_matte(matte)
            if filter is not None:
                record.filter = normalize_filter(filter)
            if tags is not None:
                record.tags = dedupe_tags(tags)
                doc.ensure_tags(record.tags)
            record.updated = utc_now_iso()
            return record

        record = self.store.mutate(apply)
        return ImageView(filename=filename, record=record)

    def bulk_tag(self, filenames: Iterable[str], tags: Iterable[str]) -> BulkTagResult:
        wanted = dedupe_tags(tags)
        names = list(dict.fromkeys(filenames))
        result = BulkTagResult(tags=wanted)

        def apply(doc: MetadataDocument) -> None:
            # Vocabulary first, so every reference below is to a known tag.
            result.tags_added_to_library = doc.ensure_tags(wanted)
            for name in names:
                record = doc.images.get(name)
                if record is None:
                    result.failed[name] = "not found"
                    continue
                merged = record.tags + [t for t in wanted if t not in record.tags]
                if merged == record.tags:
                    result.unchanged.append(name)
                    continue
                record.tags = merged
                record.updated = utc_now_iso()
                result.updated.append(name)

        self.store.mutate(apply)
        if result.failed:
            logger.warning(f"⚠ Bulk tag: {len(result.failed)} of {len(names)} image(s) failed")
        result.touched = [METADATA_FILE] if result.updated or result.tags_added_to_library else []
        return result

    def bulk_untag(self, filenames: Iterable[str], tags: Iterable[str]) -> BulkTagResult:
        unwanted = dedupe_tags(tags)
        names = list(dict.fromkeys(filenames))
        result = BulkTagResult(tags=unwanted)

        def apply(doc: MetadataDocument) -> None:
            for name in names:
                record = doc.images.get(name)
                if record is None:
                    result.failed[name] = "not found"
                    continue
                kept = [t for t in record.tags if t not in unwanted]
                if kept == record.tags:
                    result.unchanged.append(name)
                    continue
                record.tags = kept
                record.updated = utc_now_iso()
                result.updated.append(name)

        self.store.mutate(apply)
        result.touched = [METADATA_FILE] if result.updated else []
        return result

    # --------------- thumbnails ---------------
    def regenerate_thumbnail(self, filename: str) -> str:
        check_plain_name(filename)
        self.get(filename)
        source = self.library / filename
        if not source.exists():
            raise NotFoundError(f"Library file for {filename} is missing")
        try:
            self.thumbnailer.create(source, self.thumbs / filename)
        except ValueError as e:
            raise UploadError(str(e)) from e
        return f"{THUMBS_DIR}/{filename}"
