import re
import urllib.parse
from dataclasses import dataclass
from typing import Any, Callable, Dict, Mapping, Optional, Tuple

from . import decoders

SPOTIFY_API_BASE_URL = "https://api.spotify.com"

_PLACEHOLDER = re.compile(r"\{(\w+)\}")


@dataclass(frozen=True)
class EndpointSpec:
    """One remote read operation.

    query: (name, default) pairs in the order they appear in the URL. A
    default of None means the parameter is omitted unless the caller sets it.
    """

    name: str
    path: str
    decoder: Callable[[Any], Any]
    query: Tuple[Tuple[str, Optional[str]], ...] = ()
    method: str = "GET"
    requires_auth: bool = True

    def resolve_path(self, path_params: Optional[Mapping[str, Any]] = None) -> str:
        path_params = path_params or {}

        def _sub(match: "re.Match[str]") -> str:
            key = match.group(1)
            if key not in path_params or path_params[key] in (None, ""):
                raise ValueError(f"{self.name}: missing path parameter '{key}'")
            return urllib.parse.quote(str(path_params[key]), safe="")

        return _PLACEHOLDER.sub(_sub, self.path)

    def query_string(self, params: Optional[Mapping[str, Any]] = None) -> str:
        params = dict(params or {})
        declared = [name for name, _ in self.query]
        unknown = [k for k in params if k not in declared]
        if unknown:
            raise ValueError(f"{self.name}: unknown query parameter(s) {unknown}")

        pairs = []
        for name, default in self.query:
            value = params.get(name, default)
            if value is None:
                continue
            pairs.append((name, str(value)))
        return urllib.parse.urlencode(pairs)

    def build_url(
        self,
        base_url: str = SPOTIFY_API_BASE_URL,
        *,
        params: Optional[Mapping[str, Any]] = None,
        path_params: Optional[Mapping[str, Any]] = None,
    ) -> str:
        url = f"{base_url.rstrip('/')}{self.resolve_path(path_params)}"
        query = self.query_string(params)
        return f"{url}?{query}" if query else url


ENDPOINTS: Dict[str, EndpointSpec] = {
    spec.name: spec
    for spec in (
        EndpointSpec("profile", "/v1/me", decoders.decode_profile),
        EndpointSpec(
            "top_artists",
            "/v1/me/top/artists",
            decoders.decode_top_artists,
            query=(("time_range", None), ("limit", None)),
        ),
        EndpointSpec(
            "top_tracks",
            "/v1/me/top/tracks",
            decoders.decode_top_tracks,
            query=(("time_range", None), ("limit", None)),
        ),
        EndpointSpec(
            "recently_played",
            "/v1/me/player/recently-played",
            decoders.decode_recently_played,
            query=(("limit", None),),
        ),
        EndpointSpec(
            "search_artists",
            "/v1/search",
            decoders.decode_artist_search,
            query=(("q", None), ("type", "artist"), ("limit", None)),
        ),
        EndpointSpec("artist", "/v1/artists/{id}", decoders.decode_artist),
        EndpointSpec(
            "artist_albums",
            "/v1/artists/{id}/albums",
            decoders.decode_artist_albums,
            query=(("limit", None),),
        ),
        EndpointSpec("album_tracks", "/v1/albums/{id}/tracks", decoders.decode_album_tracks),
    )
}


def get_endpoint(name: str) -> EndpointSpec:
    try:
        return ENDPOINTS[name]
    except KeyError:
        raise ValueError(f"Unknown endpoint: {name}") from None
