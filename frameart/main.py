from __future__ import annotations
import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI
from fastapi.concurrency import run_in_threadpool

from frameart.api.deps import Services
from frameart.api.errors import translate_errors
from frameart.api.routers.images import router as images_router
from frameart.api.routers.sync import router as sync_router
from frameart.api.routers.tags import router as tags_router
from frameart.api.routers.tvs import router as tvs_router
from frameart.core.config import Settings, settings as default_settings
from frameart.core.errors import CorruptStoreError, SyncTimeoutError
from frameart.repositories.file.document_backend import JsonFileDocumentBackend
from frameart.repositories.metadata_store import MetadataStore
from frameart.services.image_service import ImageService
from frameart.services.sync_service import SyncEngine
from frameart.services.tag_service import TagService
from frameart.services.tv_service import TVService

logger = logging.getLogger(__name__)


def build_services(settings: Settings, sync: Optional[SyncEngine] = None) -> Services:
    store = MetadataStore(JsonFileDocumentBackend(settings.metadata_path))
    engine = sync or SyncEngine(settings)
    return Services(
        settings=settings,
        store=store,
        # Renames go through the git worker so they are recorded as moves.
        images=ImageService(store, settings, mover=engine),
        tags=TagService(store),
        tvs=TVService(store),
        sync=engine,
    )


def startup(services: Services) -> None:
    settings = services.settings
    services.images.ensure_directories()
    try:
        if services.store.initialize():
            logger.info(f"✓ Initialised {settings.metadata_path}")
    except CorruptStoreError as e:
        logger.critical(f"❌ {settings.metadata_path} is corrupt; refusing to start over it: {e.message}")
        raise

    if settings.AUTO_PULL_ON_STARTUP:
        try:
            outcome = services.sync.guarded_pull()
            logger.info(f"Startup sync: {outcome.state.value} - {outcome.message}")
        except SyncTimeoutError as e:
            logger.warning(f"⚠ Startup sync still running: {e.message}")


def create_app(settings: Optional[Settings] = None, sync: Optional[SyncEngine] = None) -> FastAPI:
    settings = settings or default_settings
    logging.basicConfig(
        level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    services = build_services(settings, sync)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        # Startup may wait on a git fetch; keep it off the event loop.
        await run_in_threadpool(startup, services)
        yield
        await run_in_threadpool(services.sync.close)
        services.store.close()

    app = FastAPI(title="Frame Art Manager", lifespan=lifespan)
    app.state.services = services

    app.include_router(images_router, prefix="/api/images", tags=["images"])
    app.include_router(tags_router, prefix="/api/tags", tags=["tags"])
    app.include_router(tvs_router, prefix="/api/tvs", tags=["tvs"])
    app.include_router(sync_router, prefix="/api/sync", tags=["sync"])

    @app.get("/api/health")
    def health():
        return {
            "status": "ok",
            "frame_art_path": str(settings.FRAME_ART_PATH),
            "sync_state": services.sync.state.value,
        }

    @app.get("/api/metadata")
    def metadata():
        with translate_errors():
            return services.store.load().to_json()

    return app


app = create_app()
