"""Pure functions turning raw Web API payloads into domain records.

Required fields are indexed directly so a payload of the wrong shape raises
(KeyError/TypeError/AttributeError/ValueError); the gateway reports that as a DecodeError.
"""

from typing import Any, Dict, List, Optional

from .models import Album, Artist, Track, UserProfile


def format_duration(duration_ms: int) -> str:
    """185000 -> '3:05'."""
    seconds = int(duration_ms) // 1000
    return f"{seconds // 60}:{seconds % 60:02d}"


def join_artist_names(artists: List[Dict[str, Any]]) -> str:
    return ", ".join(str(a["name"]) for a in artists)


def _first_image(images: Optional[List[Dict[str, Any]]]) -> Optional[str]:
    if not images:
        return None
    return str(images[0]["url"])


def _items(payload: Dict[str, Any]) -> List[Dict[str, Any]]:
    items = payload["items"]
    if not isinstance(items, list):
        raise TypeError(f"'items' must be a list, got {type(items).__name__}")
    return items


def decode_artist(item: Dict[str, Any]) -> Artist:
    return Artist(
        name=str(item["name"]),
        id=str(item["id"]),
        image=_first_image(item.get("images")),
        followers=int((item.get("followers") or {}).get("total") or 0),
        external_url=str(item["external_urls"]["spotify"]),
    )


def decode_track(item: Dict[str, Any], *, played_at: Optional[str] = None) -> Track:
    album = item.get("album") or {}
    return Track(
        name=str(item["name"]),
        id=str(item["id"]),
        duration=format_duration(item["duration_ms"]),
        artist_names=join_artist_names(item["artists"]),
        album_image=_first_image(album.get("images")),
        external_url=str(item["external_urls"]["spotify"]),
        played_at=played_at,
    )


def decode_album(item: Dict[str, Any]) -> Album:
    return Album(
        name=str(item["name"]),
        id=str(item["id"]),
        release_date=str(item.get("release_date") or ""),
        total_tracks=int(item.get("total_tracks") or 0),
        image=_first_image(item.get("images")),
        external_url=str(item["external_urls"]["spotify"]),
        artist_names=join_artist_names(item.get("artists") or []),
    )


# -----------------
# Endpoint decoders
# -----------------

def decode_profile(payload: Dict[str, Any]) -> UserProfile:
    return UserProfile(
        id=str(payload["id"]),
        display_name=str(payload.get("display_name") or payload["id"]),
        email=payload.get("email"),
        country=payload.get("country"),
        product=payload.get("product"),
        followers=int((payload.get("followers") or {}).get("total") or 0),
        image=_first_image(payload.get("images")),
        external_url=(payload.get("external_urls") or {}).get("spotify"),
    )


def decode_top_artists(payload: Dict[str, Any]) -> List[Artist]:
    return [decode_artist(item) for item in _items(payload)]


def decode_top_tracks(payload: Dict[str, Any]) -> List[Track]:
    return [decode_track(item) for item in _items(payload)]


def decode_recently_played(payload: Dict[str, Any]) -> List[Track]:
    return [decode_track(item["track"], played_at=item.get("played_at")) for item in _items(payload)]


def decode_artist_search(payload: Dict[str, Any]) -> List[Artist]:
    return [decode_artist(item) for item in _items(payload["artists"])]


def decode_artist_albums(payload: Dict[str, Any]) -> List[Album]:
    return [decode_album(item) for item in _items(payload)]


def decode_album_tracks(payload: Dict[str, Any]) -> List[Track]:
    # Simplified track objects: no album, so no album art.
    return [decode_track(item) for item in _items(payload)]
