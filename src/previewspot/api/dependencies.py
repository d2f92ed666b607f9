"""Dependency injection for API endpoints."""

from typing import cast

from fastapi import Cookie, Depends, Header, Request, Response

from previewspot.application.services import PlaylistDiagnosticsService, TrackResolver
from previewspot.config import Settings
from previewspot.domain.entities import UserSession
from previewspot.domain.exceptions import AuthenticationError
from previewspot.domain.ports import ICredentialSource
from previewspot.infrastructure.integrations import (
    AppCredentialSource,
    TokenBroker,
    UserCredentialSource,
)

ACCESS_TOKEN_COOKIE = "sp_access_token"
REFRESH_TOKEN_COOKIE = "spotify_refresh_token"  # nosec B105 - cookie name, not a secret


# Hey future me, everything below reads from app.state! The lifespan (lifecycle.py) builds the pool,
# the broker, both executors, the resolver and the diagnostics service ONCE and parks them there.
# Missing from app.state means startup failed, and that raises RuntimeError here.
def get_app_settings(request: Request) -> Settings:
    """Get the settings the app was created with."""
    return cast(Settings, request.app.state.settings)


def get_token_broker(request: Request) -> TokenBroker:
    """Get the process-wide token broker from app state."""
    if not hasattr(request.app.state, "token_broker"):
        raise RuntimeError("Token broker not initialized. Check application startup.")
    return cast(TokenBroker, request.app.state.token_broker)


def get_track_resolver(request: Request) -> TrackResolver:
    """Get the track resolver from app state."""
    if not hasattr(request.app.state, "track_resolver"):
        raise RuntimeError("Track resolver not initialized. Check application startup.")
    return cast(TrackResolver, request.app.state.track_resolver)


def get_diagnostics_service(request: Request) -> PlaylistDiagnosticsService:
    """Get the playlist diagnostics service from app state."""
    if not hasattr(request.app.state, "diagnostics_service"):
        raise RuntimeError("Diagnostics service not initialized. Check application startup.")
    return cast(PlaylistDiagnosticsService, request.app.state.diagnostics_service)


def parse_bearer_token(authorization: str) -> str:
    """Parse Authorization header to extract the access token.

    Handles both "Bearer {token}" and raw token formats.
    Bearer prefix is case-insensitive.
    """
    if authorization.lower().startswith("bearer "):
        return authorization[7:].strip()
    return authorization.strip()


# Listen up, a session is just whatever Spotify tokens the caller brought along. Header beats
# cookie (explicit > implicit), blank values count as absent. We never store any of it.
async def get_user_session(
    authorization: str | None = Header(None),
    x_spotify_refresh_token: str | None = Header(None),
    access_cookie: str | None = Cookie(None, alias=ACCESS_TOKEN_COOKIE),
    refresh_cookie: str | None = Cookie(None, alias=REFRESH_TOKEN_COOKIE),
) -> UserSession:
    """Collect the caller's Spotify tokens from headers or cookies."""
    access_token = None
    if authorization and authorization.strip():
        access_token = parse_bearer_token(authorization) or None
    if not access_token and access_cookie and access_cookie.strip():
        access_token = access_cookie.strip()

    refresh_token = None
    if x_spotify_refresh_token and x_spotify_refresh_token.strip():
        refresh_token = x_spotify_refresh_token.strip()
    elif refresh_cookie and refresh_cookie.strip():
        refresh_token = refresh_cookie.strip()

    return UserSession(access_token=access_token, refresh_token=refresh_token)


def get_credential_source(
    session: UserSession = Depends(get_user_session),
    broker: TokenBroker = Depends(get_token_broker),
    settings: Settings = Depends(get_app_settings),
) -> ICredentialSource:
    """Pick the credential source for this request.

    Session tokens present -> user credential (can read the caller's private playlists).
    Otherwise -> shared app credential, unless the deployment insists on a user session.

    Raises:
        AuthenticationError: No session while RESOLVER_REQUIRE_USER_SESSION is on (401)
    """
    if session.is_empty:
        if settings.resolver.require_user_session:
            raise AuthenticationError("No session", session_required=True)
        return AppCredentialSource(broker)
    return UserCredentialSource(broker, session)


# Same attributes for every token cookie: HttpOnly (page scripts never see it), Secure,
# SameSite=Lax so the redirect back from accounts.spotify.com still carries it.
def set_token_cookie(response: Response, name: str, value: str, max_age: int) -> None:
    """Write a Spotify token cookie onto the response."""
    response.set_cookie(
        key=name,
        value=value,
        max_age=max_age,
        path="/",
        httponly=True,
        secure=True,
        samesite="lax",
    )
