import uvicorn
from contextlib import asynccontextmanager
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.staticfiles import StaticFiles
from loguru import logger

from app.core.config import settings
from app.core.database import DatabaseManager
from app.api.routes import (
    auth_router, users_router, collectibles_router,
    bids_router, websocket_router
)
from app.services.store.media import MEDIA_URL_PREFIX, media_storage


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info(f"Starting up {settings.app_name} v{settings.version}...")

    media_storage.ensure_root()
    await DatabaseManager.init()

    try:
        yield
    finally:
        logger.info("Shutting down...")
        await DatabaseManager.close()


def create_app() -> FastAPI:
    app = FastAPI(
        title=settings.app_name,
        version=settings.version,
        lifespan=lifespan,
        debug=settings.debug
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ALLOWED_ORIGINS,
        allow_credentials=True,
        allow_methods=settings.CORS_ALLOWED_METHODS,
        allow_headers=settings.CORS_ALLOWED_HEADERS,
        expose_headers=settings.CORS_EXPOSE_HEADERS
    )

    @app.get("/health")
    async def health_check():
        return {"status": "healthy"}

    prefix = settings.api_prefix
    app.include_router(auth_router, prefix=f"{prefix}/auth", tags=["Auth"])
    app.include_router(users_router, prefix=f"{prefix}/users", tags=["Users"])
    app.include_router(collectibles_router, prefix=f"{prefix}/collectibles", tags=["Collectibles"])
    app.include_router(bids_router, prefix=f"{prefix}/bids", tags=["Bids"])
    app.include_router(websocket_router, tags=["Currency"])

    # the directory is created at startup, it may not exist yet at import time
    app.mount(
        MEDIA_URL_PREFIX,
        StaticFiles(directory=settings.media_root, check_dir=False),
        name="uploads"
    )
    return app


app = create_app()


if __name__ == "__main__":
    uvicorn.run("app.main:app", host=settings.host, port=settings.port)
