from contextlib import asynccontextmanager
from typing import Optional

import structlog
import uvicorn
from fastapi import FastAPI
from fastapi.staticfiles import StaticFiles

from image_api.core.config import Settings, load_settings
from image_api.core.database import Database
from image_api.core.errors import register_error_handlers
from image_api.core.logging_config import configure_logging
from image_api.core.security import TokenService
from image_api.routers import images, root, users
from image_api.services.blob_storage import (
    PUBLIC_PREFIX,
    LocalBlobStorage,
    MinioBlobStorage,
    build_blob_storage,
)

logger = structlog.get_logger(__name__)


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    settings = settings or load_settings()
    configure_logging(settings.log_level)

    db = Database(settings.database_url)
    blobs = build_blob_storage(settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        await db.create_all()
        if isinstance(blobs, MinioBlobStorage):
            await blobs.ensure_bucket()
        logger.info("app.started", **settings.masked())
        yield
        await db.dispose()
        logger.info("app.stopped")

    app = FastAPI(title="Image Workflow API", lifespan=lifespan)
    app.state.settings = settings
    app.state.db = db
    app.state.blobs = blobs
    app.state.tokens = TokenService.from_settings(settings)

    register_error_handlers(app)

    app.include_router(root.router, tags=["health-check"])
    app.include_router(users.router, prefix="/api/users", tags=["users"])
    app.include_router(images.router, prefix="/api/images", tags=["images"])

    if isinstance(blobs, LocalBlobStorage):
        app.mount(f"/{PUBLIC_PREFIX}", StaticFiles(directory=blobs.root), name=PUBLIC_PREFIX)

    return app


if __name__ == "__main__":
    uvicorn.run("image_api.main:create_app", factory=True, host="0.0.0.0", port=8000, reload=True)
