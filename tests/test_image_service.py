"""
Artifact coordinator tests: library file, thumbnail and metadata record stay consistent.
"""
import re

import pytest
from PIL import Image

from conftest import image_bytes, seed_image
from frameart.core.errors import ConflictError, MalformedFilenameError, NotFoundError, SyncTimeoutError, UploadError
from frameart.repositories.memory.document_backend import MemoryDocumentBackend
from frameart.repositories.metadata_store import MetadataStore
from frameart.services.image_service import FilesystemMover, ImageService, parse_filename, sanitize_base_name


class FailingWriteBackend(MemoryDocumentBackend):
    def __init__(self):
        super().__init__({"version": "1.0", "images": {}, "tvs": [], "tags": []})
        self.fail = True

    def write(self, data):
        if self.fail:
            raise OSError("disk full")
        super().write(data)


class ThumbnailFailingMover(FilesystemMover):
    """Moves library files normally and fails every thumbnail move."""

    def __init__(self, root, error):
        super().__init__(root)
        self.error = error

    def move(self, src, dst):
        if src.startswith("thumbs/"):
            raise self.error
        return super().move(src, dst)


class LateFailingMover(FilesystemMover):
    """The file lands, then the move still reports a timeout."""

    def move(self, src, dst):
        super().move(src, dst)
        raise SyncTimeoutError("git operation did not complete within 60s; try again later")


class TestNaming:
    """Base-name sanitising and filename parsing."""

    def test_sanitize_punctuation_and_spaces(self):
        """Spaces become hyphens and punctuation is dropped."""
        assert sanitize_base_name("Sunset Beach!!") == "sunset-beach"

    def test_sanitize_collapses_and_trims_hyphens(self):
        """Underscores, runs of hyphens and edge hyphens collapse."""
        assert sanitize_base_name("  __Foo--Bar__ ") == "foo-bar"

    def test_sanitize_strips_accents(self):
        """Accented letters fold to plain ASCII."""
        assert sanitize_base_name("Café Olé") == "cafe-ole"

    def test_sanitize_empty_falls_back(self):
        """Nothing usable left means the fallback name."""
        assert sanitize_base_name("!!!") == "image"
        assert sanitize_base_name("", fallback="holiday") == "holiday"

    def test_parse_filename(self):
        """Filenames split into base, uuid suffix and extension."""
        assert parse_filename("sunset-beach-a1b2c3d4.jpg") == ("sunset-beach", "a1b2c3d4", ".jpg")

    def test_parse_filename_rejects_missing_suffix(self):
        """A name without the 8-hex suffix is malformed."""
        with pytest.raises(MalformedFilenameError):
            parse_filename("sunset.jpg")


class TestUpload:
    """Upload-finalize writes the original, the thumbnail and the record."""

    def test_upload_sanitizes_and_records(self, images):
        """Scenario: base name 'Sunset Beach!!' gives a sanitized, suffixed filename with metadata."""
        result = images.upload(image_bytes(), original_filename="IMG_0001.jpg", base_name="Sunset Beach!!",
                               tags=["beach", "summer"])
        filename = result.image.filename
        assert re.match(r"^sunset-beach-[0-9a-f]{8}\.jpg$", filename)

        record = images.get(filename).record
        assert record.dimensions.width == 800
        assert record.dimensions.height == 600
        assert record.aspect_ratio == 1.33
        assert record.added is not None
        assert record.matte == "none"
        assert record.filter == "none"
        assert record.tags == ["beach", "summer"]

        assert (images.library / filename).exists()
        with Image.open(images.thumbs / filename) as thumb:
            assert thumb.size == (400, 300)

    def test_upload_adds_tags_to_vocabulary(self, images):
        """Every tag referenced by a record is in the tag library."""
        images.upload(image_bytes(), original_filename="a.jpg", tags=["new-tag"])
        assert "new-tag" in images.store.load().tags

    def test_upload_falls_back_to_original_name(self, images):
        """An empty base name uses the sanitized original filename."""
        result = images.upload(image_bytes(fmt="PNG"), original_filename="My Photo.PNG", base_name="   ")
        assert re.match(r"^my-photo-[0-9a-f]{8}\.png$", result.image.filename)

    def test_upload_reports_touched_paths(self, images):
        """The result lists exactly the paths a follow-up commit should stage."""
        result = images.upload(image_bytes(), original_filename="a.jpg")
        name = result.image.filename
        assert result.touched == [f"library/{name}", f"thumbs/{name}", "metadata.json"]

    def test_invalid_image_rolls_back(self, images):
        """Bytes that are not an image leave no file and no record behind."""
        with pytest.raises(UploadError):
            images.upload(b"definitely not an image", original_filename="broken.jpg")
        assert list(images.library.iterdir()) == []
        assert list(images.thumbs.iterdir()) == []
        assert images.store.load().images == {}

    def test_unsupported_extension_rejected(self, images):
        """Formats outside the supported list are refused before anything is written."""
        with pytest.raises(UploadError):
            images.upload(image_bytes(), original_filename="photo.heic")
        assert list(images.library.iterdir()) == []

    def test_failed_metadata_write_removes_files(self, settings):
        """If the record cannot be written, the saved files are removed again."""
        svc = ImageService(MetadataStore(FailingWriteBackend()), settings)
        with pytest.raises(OSError):
            svc.upload(image_bytes(), original_filename="a.jpg")
        assert list(svc.library.iterdir()) == []
        assert list(svc.thumbs.iterdir()) == []

    def test_matte_and_filter_are_normalized(self, images):
        """Options are matched case-insensitively; unknown values fall back to none."""
        result = images.upload(image_bytes(), original_filename="a.jpg", matte="Modern_Black", filter="bogus")
        assert result.image.record.matte == "modern_black"
        assert result.image.record.filter == "none"


class TestRename:
    """Rename keeps the uuid suffix and moves file, thumbnail and record together."""

    def test_rename_moves_everything(self, images):
        """Library file, thumbnail and record all follow the new name."""
        seed_image(images, "landscape-a1b2c3d4.jpg", tags=["nature"])
        result = images.rename("landscape-a1b2c3d4.jpg", "Sunset Beach")

        assert result.new_filename == "sunset-beach-a1b2c3d4.jpg"
        assert result.thumbnail_moved
        assert not (images.library / "landscape-a1b2c3d4.jpg").exists()
        assert (images.library / "sunset-beach-a1b2c3d4.jpg").exists()
        assert (images.thumbs / "sunset-beach-a1b2c3d4.jpg").exists()
        doc = images.store.load()
        assert "landscape-a1b2c3d4.jpg" not in doc.images
        assert doc.images["sunset-beach-a1b2c3d4.jpg"].tags == ["nature"]

    def test_rename_conflict_leaves_everything_untouched(self, images):
        """Scenario: the target name already exists, so the rename fails and nothing changes."""
        seed_image(images, "landscape-a1b2c3d4.jpg", tags=["nature"])
        seed_image(images, "sunset-beach-a1b2c3d4.jpg", tags=["beach"])
        before = images.store.load().to_json()

        with pytest.raises(ConflictError):
            images.rename("landscape-a1b2c3d4.jpg", "sunset beach")

        assert images.store.load().to_json() == before
        assert (images.library / "landscape-a1b2c3d4.jpg").exists()
        assert (images.thumbs / "landscape-a1b2c3d4.jpg").exists()

    def test_round_trip_restores_record(self, images):
        """Renaming A to B and back to A leaves the record field-for-field identical."""
        seed_image(images, "landscape-a1b2c3d4.jpg", tags=["nature"], matte="modern_black", custom="kept")
        original = images.store.load().to_json()

        images.rename("landscape-a1b2c3d4.jpg", "interim")
        images.rename("interim-a1b2c3d4.jpg", "landscape")

        assert images.store.load().to_json() == original

    def test_rename_without_thumbnail_still_succeeds(self, images):
        """A missing thumbnail is logged and skipped."""
        seed_image(images, "landscape-a1b2c3d4.jpg")
        (images.thumbs / "landscape-a1b2c3d4.jpg").unlink()
        result = images.rename("landscape-a1b2c3d4.jpg", "renamed")
        assert not result.thumbnail_moved
        assert "renamed-a1b2c3d4.jpg" in images.store.load().images

    @pytest.mark.parametrize("error", [
        OSError("permission denied"),
        SyncTimeoutError("git operation did not complete within 60s; try again later"),
    ])
    def test_thumbnail_move_failure_still_migrates_record(self, store, settings, error):
        """The library file and record move together even when the thumbnail cannot follow."""
        images = ImageService(store, settings, mover=ThumbnailFailingMover(settings.FRAME_ART_PATH, error))
        seed_image(images, "landscape-a1b2c3d4.jpg", tags=["nature"])

        result = images.rename("landscape-a1b2c3d4.jpg", "sunset")

        assert result.thumbnail_moved is False
        assert list(images.store.load().images) == ["sunset-a1b2c3d4.jpg"]
        assert (images.library / "sunset-a1b2c3d4.jpg").exists()
        assert not (images.library / "landscape-a1b2c3d4.jpg").exists()
        assert images.verify_library()["in_metadata_not_on_disk"] == []

    def test_failed_library_move_is_put_back(self, store, settings):
        """A move that errors after the file landed is reverted, so the record still has its file."""
        images = ImageService(store, settings, mover=LateFailingMover(settings.FRAME_ART_PATH))
        seed_image(images, "landscape-a1b2c3d4.jpg")

        with pytest.raises(SyncTimeoutError):
            images.rename("landscape-a1b2c3d4.jpg", "sunset")

        assert list(images.store.load().images) == ["landscape-a1b2c3d4.jpg"]
        assert (images.library / "landscape-a1b2c3d4.jpg").exists()
        assert not (images.library / "sunset-a1b2c3d4.jpg").exists()

    def test_rename_unknown_image(self, images):
        """Renaming an image with no record is NotFound."""
        with pytest.raises(NotFoundError):
            images.rename("ghost-a1b2c3d4.jpg", "anything")

    def test_rename_malformed_filename(self, images):
        """Names without the uuid suffix cannot be renamed."""
        with pytest.raises(MalformedFilenameError):
            images.rename("ghost.jpg", "anything")

    def test_rename_to_same_name_is_noop(self, images):
        """A base name that sanitizes to the current one changes nothing."""
        seed_image(images, "landscape-a1b2c3d4.jpg")
        result = images.rename("landscape-a1b2c3d4.jpg", "Landscape")
        assert result.new_filename == "landscape-a1b2c3d4.jpg"
        assert result.touched == []


class TestDelete:
    """Delete removes the record first, then the files."""

    def test_delete_removes_all_artifacts(self, images):
        """Record, library file and thumbnail are all gone."""
        seed_image(images, "landscape-a1b2c3d4.jpg")
        result = images.delete("landscape-a1b2c3d4.jpg")
        assert result.library_removed and result.thumbnail_removed
        assert "landscape-a1b2c3d4.jpg" not in images.store.load().images
        assert not (images.library / "landscape-a1b2c3d4.jpg").exists()
        assert not (images.thumbs / "landscape-a1b2c3d4.jpg").exists()

    def test_delete_with_missing_thumbnail(self, images):
        """A missing thumbnail does not fail the delete."""
        seed_image(images, "landscape-a1b2c3d4.jpg")
        (images.thumbs / "landscape-a1b2c3d4.jpg").unlink()
        result = images.delete("landscape-a1b2c3d4.jpg")
        assert not result.thumbnail_removed
        assert images.store.load().images == {}

    def test_delete_unknown(self, images):
        """Deleting an unknown image is NotFound and touches nothing."""
        with pytest.raises(NotFoundError):
            images.delete("ghost-a1b2c3d4.jpg")

    def test_delete_rejects_paths(self, images):
        """Filenames may not escape the library directory."""
        with pytest.raises(MalformedFilenameError):
            images.delete("../metadata.json")


class TestTagging:
    """Bulk tag/untag report per-item results."""

    def test_bulk_tag_partial_success(self, images):
        """Unknown filenames are reported without aborting the batch."""
        seed_image(images, "a-11111111.jpg")
        seed_image(images, "b-22222222.jpg", tags=["sunset"])
        result = images.bulk_tag(["a-11111111.jpg", "b-22222222.jpg", "ghost-33333333.jpg"], ["sunset", "beach"])

        assert result.updated == ["a-11111111.jpg", "b-22222222.jpg"]
        assert result.failed == {"ghost-33333333.jpg": "not found"}
        assert result.partial
        doc = images.store.load()
        assert doc.images["a-11111111.jpg"].tags == ["sunset", "beach"]
        assert doc.images["b-22222222.jpg"].tags == ["sunset", "beach"]
        assert {"sunset", "beach"} <= set(doc.tags)

    def test_bulk_tag_is_idempotent(self, images):
        """Tagging with tags already present leaves the image unchanged."""
        seed_image(images, "a-11111111.jpg", tags=["sunset"])
        result = images.bulk_tag(["a-11111111.jpg"], ["sunset"])
        assert result.unchanged == ["a-11111111.jpg"]
        assert result.touched == []

    def test_bulk_untag(self, images):
        """Removing tags only touches images that had them."""
        seed_image(images, "a-11111111.jpg", tags=["sunset", "beach"])
        seed_image(images, "b-22222222.jpg", tags=["beach"])
        result = images.bulk_untag(["a-11111111.jpg", "b-22222222.jpg"], ["sunset"])
        assert result.updated == ["a-11111111.jpg"]
        assert result.unchanged == ["b-22222222.jpg"]
        assert images.store.load().images["a-11111111.jpg"].tags == ["beach"]

    def test_update_image(self, images):
        """Update replaces matte, filter and tags but never added/dimensions."""
        seed_image(images, "a-11111111.jpg", tags=["old"])
        view = images.update("a-11111111.jpg", matte="SHADOWBOX_NAVY", filter="aqua", tags=["new"])
        assert view.record.matte == "shadowbox_navy"
        assert view.record.filter == "Aqua"
        assert view.record.tags == ["new"]
        assert view.record.added == "2024-01-01T00:00:00.000Z"
        assert view.record.updated is not None
        assert "new" in images.store.load().tags


class TestLibraryChecks:
    """Verification and thumbnail regeneration."""

    def test_verify_library(self, images):
        """Orphans on either side and missing thumbnails are reported."""
        seed_image(images, "a-11111111.jpg")
        seed_image(images, "b-22222222.jpg")
        (images.library / "b-22222222.jpg").unlink()
        (images.library / "stray-33333333.png").write_bytes(image_bytes(fmt="PNG", size=(10, 10)))
        (images.thumbs / "a-11111111.jpg").unlink()

        report = images.verify_library()
        assert report["synced"] == ["a-11111111.jpg"]
        assert report["in_metadata_not_on_disk"] == ["b-22222222.jpg"]
        assert report["on_disk_not_in_metadata"] == ["stray-33333333.png"]
        assert report["missing_thumbnails"] == ["a-11111111.jpg"]

    def test_regenerate_thumbnail(self, images):
        """A lost thumbnail can be rebuilt from the library file."""
        seed_image(images, "a-11111111.jpg")
        (images.thumbs / "a-11111111.jpg").unlink()
        assert images.regenerate_thumbnail("a-11111111.jpg") == "thumbs/a-11111111.jpg"
        assert (images.thumbs / "a-11111111.jpg").exists()

    def test_list_filters_by_search_and_tags(self, images):
        """Search matches filenames case-insensitively; tags match any."""
        seed_image(images, "sunset-11111111.jpg", tags=["beach"])
        seed_image(images, "forest-22222222.jpg", tags=["nature"])
        assert [v.filename for v in images.list(search="SUN")] == ["sunset-11111111.jpg"]
        assert [v.filename for v in images.list(tags=["nature"])] == ["forest-22222222.jpg"]
        assert len(images.list()) == 2
