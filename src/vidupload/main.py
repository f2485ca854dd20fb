"""Main application entrypoint for the vidupload origin service."""

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from vidupload.api.v1 import routes_health
from vidupload.api.v1.routes_videos import router as videos_router
from vidupload.core.config import settings
from vidupload.core.logging import setup_logging


def create_app() -> FastAPI:
    """Create and configure the FastAPI application.

    Returns:
        FastAPI: Configured FastAPI application instance
    """
    setup_logging()

    app = FastAPI(
        title=settings.SERVICE_NAME,
        version=settings.SERVICE_VERSION,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
        allow_headers=["Origin", "Content-Type", "Accept", "Authorization"],
        expose_headers=["Content-Length"],
        allow_credentials=True,
    )

    app.include_router(routes_health.router, tags=["health"])
    app.include_router(videos_router)

    return app


# Export app instance for ASGI servers
app = create_app()
