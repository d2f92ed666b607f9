"""Tests for the result shaper (payload -> PlayableTrack)."""

import pytest

from previewspot.application.services.result_shaper import (
    is_playable_deezer_track,
    is_playable_playlist_item,
    is_playable_spotify_track,
    pick_largest_image,
    shape_deezer_track,
    shape_playlist_item,
    shape_spotify_track,
)

from factories import deezer_hit, playlist_item, spotify_track


class TestPlayablePredicates:
    """Test what counts as playable."""

    def test_spotify_track_with_preview(self):
        assert is_playable_spotify_track(spotify_track("a"))

    @pytest.mark.parametrize("preview_url", [None, "", "   "])
    def test_spotify_track_without_preview(self, preview_url):
        assert not is_playable_spotify_track(spotify_track("a", preview_url=preview_url))

    def test_episodes_and_local_files_are_not_playable(self):
        assert not is_playable_spotify_track(spotify_track("a", type="episode"))
        assert not is_playable_spotify_track(spotify_track("a", is_local=True))

    def test_playlist_item(self):
        assert is_playable_playlist_item(playlist_item(spotify_track("a")))
        assert not is_playable_playlist_item(playlist_item(None))
        assert not is_playable_playlist_item(playlist_item(spotify_track("a"), is_local=True))
        assert not is_playable_playlist_item(None)

    def test_deezer_hit(self):
        assert is_playable_deezer_track(deezer_hit("a"))
        assert not is_playable_deezer_track(deezer_hit("a", preview=""))


class TestArtwork:
    """Test highest-resolution artwork selection."""

    def test_largest_area_wins(self):
        images = [
            {"url": "small", "width": 64, "height": 64},
            {"url": "large", "width": 640, "height": 640},
            {"url": "medium", "width": 300, "height": 300},
        ]
        assert pick_largest_image(images) == "large"

    def test_missing_dimensions_still_usable(self):
        assert pick_largest_image([{"url": "only", "width": None, "height": None}]) == "only"

    def test_no_images(self):
        assert pick_largest_image([]) == ""
        assert pick_largest_image(None) == ""


class TestShaping:
    """Test the public track shape."""

    def test_spotify_track(self):
        track = shape_spotify_track(
            spotify_track(
                "Song",
                artists=("First", "Second"),
                images=[
                    {"url": "https://i/64", "width": 64, "height": 64},
                    {"url": "https://i/640", "width": 640, "height": 640},
                ],
            )
        )

        assert track.title == "Song"
        assert track.artists == ("First", "Second")
        assert track.display_artist == "First, Second"
        assert track.artwork_url == "https://i/640"
        assert track.source == "spotify"

    def test_playlist_item_unwraps_track(self):
        assert shape_playlist_item(playlist_item(spotify_track("Inner"))).title == "Inner"

    def test_unplayable_track_cannot_be_shaped(self):
        with pytest.raises(ValueError):
            shape_spotify_track(spotify_track("a", preview_url=None))

    def test_deezer_track_prefers_cover_xl_and_merges_contributors(self):
        hit = deezer_hit("Dz Song")
        hit["contributors"] = [{"name": "Deezer Artist"}, {"name": "Featured"}]

        track = shape_deezer_track(hit)

        assert track.title == "Dz Song"
        assert track.artists == ("Deezer Artist", "Featured")
        assert track.artwork_url == "https://e-cdns-images.dzcdn.net/cover_xl"
        assert track.source == "deezer"

    def test_deezer_track_falls_back_to_smaller_cover(self):
        hit = deezer_hit("Dz Song")
        hit["album"] = {"cover_medium": "medium", "cover": "plain"}

        assert shape_deezer_track(hit).artwork_url == "medium"
