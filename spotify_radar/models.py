"""Display-ready domain records produced by spotify_radar.decoders.

Relationships (track -> artists, track -> album art) are flattened while
decoding; nothing here is resolved lazily.
"""

from dataclasses import dataclass
from typing import Optional


@dataclass(frozen=True)
class Artist:
    name: str
    id: str
    image: Optional[str]
    followers: int
    external_url: str


@dataclass(frozen=True)
class Track:
    name: str
    id: str
    duration: str
    artist_names: str
    album_image: Optional[str]
    external_url: str
    # Only set for recently played items.
    played_at: Optional[str] = None


@dataclass(frozen=True)
class Album:
    name: str
    id: str
    release_date: str
    total_tracks: int
    image: Optional[str]
    external_url: str
    artist_names: str = ""


@dataclass(frozen=True)
class UserProfile:
    id: str
    display_name: str
    email: Optional[str]
    country: Optional[str]
    product: Optional[str]
    followers: int
    image: Optional[str]
    external_url: Optional[str]
