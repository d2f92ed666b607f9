"""Turn raw catalog payloads into PlayableTrack.

Hey future me - three payload shapes end up here:

    Spotify track      {"name", "artists": [{"name"}], "preview_url", "album": {"images": [...]}}
    Playlist item      {"track": <Spotify track>, "is_local": bool, ...}
    Deezer search hit  {"title", "artist": {"name"}, "contributors"?, "preview", "album": {"cover_xl", ...}}

The is_playable_* predicates are the ONLY filter the resolver uses, and PlayableTrack
itself refuses an empty preview, so an unplayable item can't leak out of here.
"""

from typing import Any

from previewspot.domain.entities import PlayableTrack

# Largest first. Deezer search hits carry all four sizes, older ones only "cover".
DEEZER_COVER_KEYS = ("cover_xl", "cover_big", "cover_medium", "cover")


def _has_text(value: Any) -> bool:
    return isinstance(value, str) and bool(value.strip())


def pick_largest_image(images: list[dict[str, Any]] | None) -> str:
    """Return the URL of the image with the largest width * height ("" when none).

    Spotify sometimes omits the dimensions (user-uploaded playlist covers mostly);
    those count as 0 so any sized image wins, but they still beat no image at all.
    """
    best_url = ""
    best_area = -1
    for image in images or []:
        url = image.get("url")
        if not _has_text(url):
            continue
        area = (image.get("width") or 0) * (image.get("height") or 0)
        if area > best_area:
            best_url, best_area = url, area
    return best_url


def is_playable_spotify_track(track: dict[str, Any] | None) -> bool:
    """A real catalog track (not a podcast episode, not a local file) with a preview."""
    if not isinstance(track, dict):
        return False
    if track.get("type", "track") != "track":
        return False
    if track.get("is_local"):
        return False
    return _has_text(track.get("preview_url"))


def is_playable_playlist_item(item: dict[str, Any] | None) -> bool:
    """Playlist wrapper around a playable track. Removed tracks come back as track=null."""
    if not isinstance(item, dict) or item.get("is_local"):
        return False
    return is_playable_spotify_track(item.get("track"))


def is_playable_deezer_track(hit: dict[str, Any] | None) -> bool:
    """Deezer hit with a non-empty preview MP3 (readable=false hits have preview="")."""
    return isinstance(hit, dict) and _has_text(hit.get("preview"))


def shape_spotify_track(track: dict[str, Any]) -> PlayableTrack:
    """Shape a Spotify track object.

    Raises:
        ValueError: If the track has no preview URL
    """
    artists = tuple(
        artist["name"]
        for artist in track.get("artists") or []
        if isinstance(artist, dict) and _has_text(artist.get("name"))
    )
    album = track.get("album") or {}
    return PlayableTrack(
        title=track.get("name") or "",
        artists=artists,
        preview_url=track.get("preview_url") or "",
        artwork_url=pick_largest_image(album.get("images")),
        source="spotify",
    )


def shape_playlist_item(item: dict[str, Any]) -> PlayableTrack:
    """Shape a playlist item (unwraps item["track"])."""
    return shape_spotify_track(item.get("track") or {})


def shape_deezer_track(hit: dict[str, Any]) -> PlayableTrack:
    """Shape a Deezer search hit.

    Main artist first, then any contributors that aren't the main artist again.
    """
    names: list[str] = []
    main_artist = hit.get("artist") or {}
    if _has_text(main_artist.get("name")):
        names.append(main_artist["name"])
    for contributor in hit.get("contributors") or []:
        name = contributor.get("name") if isinstance(contributor, dict) else None
        if _has_text(name) and name not in names:
            names.append(name)

    album = hit.get("album") or {}
    artwork_url = next(
        (album[key] for key in DEEZER_COVER_KEYS if _has_text(album.get(key))),
        "",
    )
    return PlayableTrack(
        title=hit.get("title") or hit.get("title_short") or "",
        artists=tuple(names),
        preview_url=hit.get("preview") or "",
        artwork_url=artwork_url,
        source="deezer",
    )


__all__ = [
    "is_playable_deezer_track",
    "is_playable_playlist_item",
    "is_playable_spotify_track",
    "pick_largest_image",
    "shape_deezer_track",
    "shape_playlist_item",
    "shape_spotify_track",
]
