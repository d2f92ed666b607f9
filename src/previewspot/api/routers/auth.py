"""Spotify login endpoints (OAuth authorization code flow + access-token minting).

Hey future me - the flow the browser goes through:

1. GET /api/spotify-login      -> 302 to accounts.spotify.com, random `state` in a cookie
2. Spotify redirects back to   -> GET /api/spotify-callback?code=...&state=...
3. Callback checks state, swaps the code for tokens, stores them as cookies, 302 to "/"
4. From then on every /api/get-track call carries the cookies, so the resolver runs with
   the USER's token (private playlists work) instead of the shared app token.
5. GET /api/spotify-access-token mints a fresh access token from the refresh cookie for
   the frontend when it needs one.

Nothing is stored server-side. Lose the cookie, log in again.
"""

import logging
import secrets
from typing import Any

from fastapi import APIRouter, Cookie, Depends, Query
from fastapi.responses import JSONResponse, RedirectResponse

from previewspot.api.dependencies import (
    ACCESS_TOKEN_COOKIE,
    REFRESH_TOKEN_COOKIE,
    get_token_broker,
    get_user_session,
    set_token_cookie,
)
from previewspot.domain.entities import UserSession
from previewspot.domain.exceptions import TokenRefreshException, ValidationError
from previewspot.infrastructure.integrations import TokenBroker

logger = logging.getLogger(__name__)

router = APIRouter()

LOGIN_PATH = "/api/spotify-login"
STATE_COOKIE = "spotify_auth_state"
STATE_COOKIE_MAX_AGE = 600
REFRESH_COOKIE_MAX_AGE = 365 * 24 * 60 * 60


def _login_required(details: Any = None) -> JSONResponse:
    body: dict[str, Any] = {"error": "No session", "action": "login", "login_url": LOGIN_PATH}
    if details is not None:
        body["details"] = details
    return JSONResponse(status_code=401, content=body)


@router.get("/spotify-login")
async def spotify_login(
    broker: TokenBroker = Depends(get_token_broker),
) -> RedirectResponse:
    """Redirect the browser to the Spotify consent screen."""
    state = secrets.token_urlsafe(16)
    authorization_url = broker.get_authorization_url(state, show_dialog=True)

    response = RedirectResponse(authorization_url, status_code=302)
    response.headers["Cache-Control"] = "no-store"
    set_token_cookie(response, STATE_COOKIE, state, max_age=STATE_COOKIE_MAX_AGE)
    return response


# Listen up, the state check is the CSRF protection of the whole login. The cookie was set by
# /spotify-login in THIS browser; a callback URL crafted elsewhere won't have a matching one.
@router.get("/spotify-callback")
async def spotify_callback(
    code: str | None = Query(None),
    state: str | None = Query(None),
    error: str | None = Query(None),
    state_cookie: str | None = Cookie(None, alias=STATE_COOKIE),
    broker: TokenBroker = Depends(get_token_broker),
) -> RedirectResponse:
    """Finish the login: exchange the code and store the tokens as cookies."""
    if error:
        raise ValidationError("Spotify authorization was denied", details={"error": error})
    if not code:
        raise ValidationError("Missing code parameter")
    if (
        not state
        or not state_cookie
        or not secrets.compare_digest(state.encode(), state_cookie.encode())
    ):
        logger.warning("Spotify callback with missing or mismatched state")
        raise ValidationError("Invalid state parameter")

    grant = await broker.exchange_authorization_code(code)
    logger.info("Spotify login completed (scope: %s)", grant.scope)

    response = RedirectResponse("/", status_code=302)
    if grant.refresh_token:
        set_token_cookie(
            response, REFRESH_TOKEN_COOKIE, grant.refresh_token, max_age=REFRESH_COOKIE_MAX_AGE
        )
    set_token_cookie(response, ACCESS_TOKEN_COOKIE, grant.access_token, max_age=grant.expires_in)
    response.delete_cookie(STATE_COOKIE, path="/")
    return response


@router.get("/spotify-access-token", response_model=None)
async def spotify_access_token(
    session: UserSession = Depends(get_user_session),
    broker: TokenBroker = Depends(get_token_broker),
) -> JSONResponse:
    """Mint a fresh user access token from the caller's refresh token."""
    if not session.refresh_token:
        return _login_required()

    try:
        credential = await broker.refresh_user_credential(session.refresh_token)
    except TokenRefreshException as e:
        logger.info("Refresh token rejected, asking the browser to log in again")
        return _login_required(e.details)

    response = JSONResponse(
        content={
            "access_token": credential.value,
            "expires_in": credential.expires_in,
            "token_type": "Bearer",
        }
    )
    set_token_cookie(response, ACCESS_TOKEN_COOKIE, credential.value, max_age=credential.expires_in)
    return response
