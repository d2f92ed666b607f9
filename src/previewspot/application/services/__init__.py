"""Application services: track resolution, result shaping and playlist diagnostics."""

from previewspot.application.services.playlist_diagnostics import (
    PlaylistDiagnosis,
    PlaylistDiagnosticsService,
)
from previewspot.application.services.track_resolver import (
    ResolutionStage,
    TrackResolver,
)

__all__ = [
    "PlaylistDiagnosis",
    "PlaylistDiagnosticsService",
    "ResolutionStage",
    "TrackResolver",
]
