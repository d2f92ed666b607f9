"""API router initialization."""

# Hey future me, this is the API router aggregator! It gets mounted under /api in main.py, so
# tracks.router's "/get-track" becomes /api/get-track. The paths keep the hyphenated names the
# browser game already calls (get-track, diagnose-playlist, spotify-login...), don't "clean them up".
# health.router is NOT in here - health checks live at /health/* outside /api (see main.py).

from fastapi import APIRouter

from previewspot.api.routers import auth, diagnostics, health, tracks

api_router = APIRouter()

api_router.include_router(tracks.router, tags=["Tracks"])
api_router.include_router(diagnostics.router, tags=["Diagnostics"])
api_router.include_router(auth.router, tags=["Authentication"])

__all__ = [
    "api_router",
    "auth",
    "diagnostics",
    "health",
    "tracks",
]
