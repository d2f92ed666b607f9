"""Track endpoint: the one call the game makes per round."""

import logging

from fastapi import APIRouter, Depends, Request, Response
from pydantic import BaseModel, ConfigDict, Field, field_validator

from previewspot.api.dependencies import (
    ACCESS_TOKEN_COOKIE,
    get_credential_source,
    get_track_resolver,
    set_token_cookie,
)
from previewspot.application.services import TrackResolver
from previewspot.domain.exceptions import DomainException
from previewspot.domain.ports import ICredentialSource
from previewspot.infrastructure.integrations import UserCredentialSource

logger = logging.getLogger(__name__)

router = APIRouter()


class PlaylistRequest(BaseModel):
    """Request body carrying a playlist id."""

    model_config = ConfigDict(populate_by_name=True)

    playlist_id: str = Field(..., alias="playlistId", description="Spotify playlist ID")

    @field_validator("playlist_id")
    @classmethod
    def _not_blank(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("playlistId must not be blank")
        return value


class TrackResponse(BaseModel):
    """One playable track."""

    model_config = ConfigDict(populate_by_name=True)

    title: str = Field(..., description="Track title")
    artists: list[str] = Field(default_factory=list, description="Artist credits in order")
    artist: str = Field(..., description="Artist credits joined for display")
    preview_url: str = Field(..., alias="previewUrl", description="30s preview audio URL")
    artwork_url: str = Field("", alias="artworkUrl", description="Largest artwork URL")
    source: str = Field("spotify", description="Catalog the track came from")


# Hey future me, the resolver does ALL the work (tiers, markets, retries, fallback catalogs).
# This endpoint only picks the credential, runs it, and - if a user token had to be refreshed
# along the way - writes the fresh one back into the cookie so the next round skips the refresh.
# That holds for failed rounds too: the error handlers write request.state.pending_cookies.
@router.post("/get-track", response_model=TrackResponse)
async def get_track(
    body: PlaylistRequest,
    request: Request,
    response: Response,
    credentials: ICredentialSource = Depends(get_credential_source),
    resolver: TrackResolver = Depends(get_track_resolver),
) -> TrackResponse:
    """Return one random playable preview track for a playlist."""
    try:
        track = await resolver.resolve(body.playlist_id, credentials)
    except DomainException:
        request.state.pending_cookies = _refreshed_cookies(credentials)
        raise

    for name, value, max_age in _refreshed_cookies(credentials):
        set_token_cookie(response, name, value, max_age=max_age)

    return TrackResponse.model_validate(track.to_dict())


def _refreshed_cookies(credentials: ICredentialSource) -> list[tuple[str, str, int]]:
    if isinstance(credentials, UserCredentialSource) and credentials.refreshed is not None:
        return [
            (ACCESS_TOKEN_COOKIE, credentials.refreshed.value, credentials.refreshed.expires_in)
        ]
    return []
