"""Playlist diagnostics endpoint."""

from typing import Any

from fastapi import APIRouter, Depends

from previewspot.api.dependencies import get_credential_source, get_diagnostics_service
from previewspot.api.routers.tracks import PlaylistRequest
from previewspot.application.services import PlaylistDiagnosticsService
from previewspot.domain.ports import ICredentialSource

router = APIRouter()


# Upstream failures are NOT swallowed here (unlike the resolver tiers) - the whole point of
# this endpoint is to show what Spotify said, so they surface as 500 with details.
@router.post("/diagnose-playlist")
async def diagnose_playlist(
    body: PlaylistRequest,
    credentials: ICredentialSource = Depends(get_credential_source),
    service: PlaylistDiagnosticsService = Depends(get_diagnostics_service),
) -> dict[str, Any]:
    """Count how many tracks of a playlist have a preview, with a few examples."""
    diagnosis = await service.diagnose(body.playlist_id, credentials)
    return diagnosis.to_dict()
