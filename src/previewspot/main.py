"""FastAPI application entry point.

Run locally:
    uvicorn previewspot.main:app --reload
"""

from fastapi import FastAPI

from previewspot import __version__
from previewspot.api.exception_handlers import register_exception_handlers
from previewspot.api.routers import api_router, health
from previewspot.config import Settings, get_settings
from previewspot.infrastructure.lifecycle import lifespan
from previewspot.infrastructure.observability import RequestLoggingMiddleware


# Hey future me, create_app() is a factory so tests can build an app with their own Settings
# (fake client id, tiny budgets) without touching env vars or the lru_cache in get_settings().
# Settings go on app.state BEFORE the lifespan runs - lifespan and dependencies read them there.
def create_app(settings: Settings | None = None) -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = settings or get_settings()

    app = FastAPI(
        title="previewspot",
        description="Returns one playable preview track for a Spotify playlist",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.settings = settings

    app.add_middleware(RequestLoggingMiddleware)
    register_exception_handlers(app)

    app.include_router(api_router, prefix="/api")
    app.include_router(health.router, prefix="/health", tags=["Health"])

    return app


app = create_app()
