"""VideoTube API - Main application entry point."""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.staticfiles import StaticFiles
from starlette.middleware.base import BaseHTTPMiddleware

from videotube.api import (
    comments_router,
    dashboard_router,
    health_router,
    likes_router,
    playlists_router,
    subscriptions_router,
    tweets_router,
    users_router,
    videos_router,
)
from videotube.api.limiting import limiter
from videotube.config import get_settings
from videotube.db.models import Base
from videotube.db.session import dispose_engine, get_engine
from videotube.engagement import KeyedLocks, build_like_cache
from videotube.errors import register_exception_handlers
from videotube.logging import setup_logging
from videotube.storage import MEDIA_ROUTE, get_media_storage

logger = logging.getLogger(__name__)

API_PREFIX = "/api/v1"


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """Middleware to add security headers to all responses."""

    async def dispatch(self, request: Request, call_next):
        response = await call_next(request)

        # Prevent MIME type sniffing
        response.headers["X-Content-Type-Options"] = "nosniff"

        # Prevent clickjacking attacks
        response.headers["X-Frame-Options"] = "DENY"

        response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"

        return response


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Lifespan context manager for startup and shutdown events."""
    settings = get_settings()

    # Startup
    if settings.env == "dev":
        async with get_engine().begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

    app.state.like_cache = build_like_cache(settings)
    app.state.key_locks = KeyedLocks()
    app.state.media_storage = get_media_storage(settings)
    logger.info(
        f"VideoTube API started: env={settings.env}, "
        f"like_cache={settings.like_cache_backend}, media={settings.media_storage_backend}"
    )

    yield

    # Shutdown
    await app.state.like_cache.close()
    await dispose_engine()


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = get_settings()
    setup_logging()

    app = FastAPI(
        title="VideoTube API",
        description="Video sharing backend with comments, tweets, playlists, likes and subscriptions",
        version="1.0.0",
        lifespan=lifespan,
    )

    # Configure rate limiting
    limiter.enabled = settings.rate_limit_enabled
    app.state.limiter = limiter
    register_exception_handlers(app)

    # Add security headers middleware
    app.add_middleware(SecurityHeadersMiddleware)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=[settings.frontend_origin],
        allow_credentials=True,
        allow_methods=["GET", "POST", "PATCH", "DELETE", "OPTIONS"],
        allow_headers=["Content-Type", "Accept", "Authorization"],
    )

    # Include routers
    app.include_router(health_router)
    for router in (
        users_router,
        videos_router,
        comments_router,
        tweets_router,
        playlists_router,
        likes_router,
        subscriptions_router,
        dashboard_router,
    ):
        app.include_router(router, prefix=API_PREFIX)

    # Serve locally stored uploads
    if settings.media_storage_backend == "local":
        app.mount(
            MEDIA_ROUTE,
            StaticFiles(directory=settings.media_local_path, check_dir=False),
            name="media",
        )

    return app


app = create_app()


def main():
    """Entry point for running the application."""
    import uvicorn

    uvicorn.run(
        "main:app",
        host="0.0.0.0",
        port=8000,
        reload=True,
    )


if __name__ == "__main__":
    main()
