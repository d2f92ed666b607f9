"""Tests for PlaylistDiagnosticsService."""

import pytest

from previewspot.application.services.playlist_diagnostics import (
    MAX_EXAMPLES,
    PlaylistDiagnosis,
    PlaylistDiagnosticsService,
)
from previewspot.domain.exceptions import UpstreamNotFoundError, ValidationError
from previewspot.infrastructure.integrations.spotify_client import SpotifyCatalogClient

from factories import playlist_item, spotify_track


@pytest.fixture
def spotify(mocker):
    return mocker.Mock(spec=SpotifyCatalogClient)


@pytest.fixture
def service(spotify) -> PlaylistDiagnosticsService:
    return PlaylistDiagnosticsService(spotify)


def test_percentage_without_tracks_is_zero():
    assert PlaylistDiagnosis().percentage == 0


def test_percentage_is_rounded():
    diagnosis = PlaylistDiagnosis(total=3, with_preview=2, without_preview=1)
    assert diagnosis.percentage == 67


async def test_counts_previews(service, spotify, mocker):
    items = [
        playlist_item(spotify_track("a", artists=("One", "Two"))),
        playlist_item(spotify_track("b", preview_url=None)),
        playlist_item(spotify_track("c")),
        playlist_item(None),
        playlist_item(spotify_track("local"), is_local=True),
        playlist_item(spotify_track("episode", type="episode")),
    ]
    spotify.get_playlist_items.return_value = (items, {"items": items})

    diagnosis = await service.diagnose("goodlist", mocker.Mock())

    assert diagnosis.to_dict() == {
        "total": 6,
        "tracks_considered": 3,
        "withPreview": 2,
        "withoutPreview": 1,
        "percentage": 67,
        "examplesWith": [
            {"name": "a", "artist": "One, Two"},
            {"name": "c", "artist": "Artist"},
        ],
        "examplesWithout": [{"name": "b", "artist": "Artist"}],
    }
    assert spotify.get_playlist_items.await_args.kwargs["market"] is None


async def test_examples_are_capped(service, spotify, mocker):
    items = [playlist_item(spotify_track(f"t{i}")) for i in range(MAX_EXAMPLES + 3)]
    spotify.get_playlist_items.return_value = (items, {"items": items})

    diagnosis = await service.diagnose("goodlist", mocker.Mock())

    assert diagnosis.with_preview == MAX_EXAMPLES + 3
    assert len(diagnosis.examples_with) == MAX_EXAMPLES
    assert diagnosis.percentage == 100


async def test_upstream_errors_propagate(service, spotify, mocker):
    spotify.get_playlist_items.side_effect = UpstreamNotFoundError(
        "not found", details={"error": {"status": 404}}, status_code=404
    )

    with pytest.raises(UpstreamNotFoundError):
        await service.diagnose("missing", mocker.Mock())


async def test_blank_id(service, spotify, mocker):
    with pytest.raises(ValidationError):
        await service.diagnose("  ", mocker.Mock())

    spotify.get_playlist_items.assert_not_called()
