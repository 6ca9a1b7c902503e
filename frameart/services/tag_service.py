from __future__ import annotations
import logging
from typing import Dict, List

from frameart.core.errors import InvalidRequestError, NotFoundError
from frameart.models.document import MetadataDocument
from frameart.models.image import dedupe_tags
from frameart.repositories.metadata_store import MetadataStore
from frameart.utils.clock import utc_now_iso

logger = logging.getLogger(__name__)


class TagService:
    """The tag vocabulary. Deleting a tag cascades to every image and TV in one write."""

    def __init__(self, store: MetadataStore):
        self.store = store

    def list(self) -> List[str]:
        return list(self.store.load().tags)

    def add(self, tag: str) -> List[str]:
        """Returns the vocabulary after the add; adding an existing tag is a no-op."""
        cleaned = dedupe_tags([tag])
        if not cleaned:
            raise InvalidRequestError("Tag name is required")

        def apply(doc: MetadataDocument) -> List[str]:
            doc.ensure_tags(cleaned)
            return list(doc.tags)

        return self.store.mutate(apply)

    def delete(self, tag: str) -> Dict[str, object]:
        def apply(doc: MetadataDocument) -> Dict[str, object]:
            images = [k for k, rec in doc.images.items() if tag in rec.tags]
            tvs = [tv.id for tv in doc.tvs if tag in tv.tags]
            if tag not in doc.tags and not images and not tvs:
                raise NotFoundError(f"Tag {tag} not found")
            now = utc_now_iso()
            for name in images:
                record = doc.images[name]
                record.tags = [t for t in record.tags if t != tag]
                record.updated = now
            for tv in doc.tvs:
                if tag in tv.tags:
                    tv.tags = [t for t in tv.tags if t != tag]
            doc.tags = [t for t in doc.tags if t != tag]
            return {"tag": tag, "images": images, "tvs": tvs}

        result = self.store.mutate(apply)
        logger.info(f"✓ Deleted tag {tag} from {len(result['images'])} image(s) and {len(result['tvs'])} TV(s)")
        return result
