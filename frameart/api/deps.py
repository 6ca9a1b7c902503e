from __future__ import annotations
import logging
from dataclasses import dataclass
from typing import Iterable, Optional

from fastapi import Request

from frameart.core.config import Settings
from frameart.core.errors import FrameArtError
from frameart.repositories.metadata_store import MetadataStore
from frameart.services.image_service import ImageService
from frameart.services.sync_service import SyncEngine
from frameart.services.tag_service import TagService
from frameart.services.tv_service import TVService

logger = logging.getLogger(__name__)


@dataclass
class Services:
    """Everything a router needs, built once per app by create_app()."""
    settings: Settings
    store: MetadataStore
    images: ImageService
    tags: TagService
    tvs: TVService
    sync: SyncEngine


def get_services(request: Request) -> Services:
    return request.app.state.services


def auto_sync(services: Services, touched: Iterable[str]) -> Optional[dict]:
    """
    Commit+push exactly the files a request touched, when AUTO_SYNC is on.
    The local change already succeeded, so a sync failure is reported, not raised.
    """
    files = list(touched)
    if not services.settings.AUTO_SYNC or not files:
        return None
    try:
        outcome = services.sync.commit_and_push(files=files)
    except FrameArtError as e:
        logger.warning(f"⚠ Auto-sync failed: {e.message}")
        return {"success": False, **e.to_dict()}
    return outcome.model_dump(mode="json")
