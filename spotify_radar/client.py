import logging
from typing import Any, List, Mapping, Optional, Union

import httpx

from .endpoints import SPOTIFY_API_BASE_URL, EndpointSpec, get_endpoint
from .errors import (
    AuthError,
    AuthNetworkError,
    DecodeError,
    HttpStatusError,
    SessionError,
    TransportError,
    UnauthenticatedError,
    UnauthorizedError,
)
from .models import Album, Artist, Track, UserProfile
from .session import SessionManager

logger = logging.getLogger(__name__)


def describe_shape(payload: Any) -> Any:
    """Summarize a payload for diagnostics without echoing its contents."""

    if isinstance(payload, dict):
        return {k: type(v).__name__ for k, v in payload.items()}
    if isinstance(payload, list):
        return f"list[{len(payload)}]"
    return type(payload).__name__


class ApiGateway:
    """Authenticated request pipeline for the Web API resource endpoints.

    Behavior:
    - the access token comes from the SessionManager; without a session the
      request is not sent (UnauthenticatedError)
    - 401: one renewal and one retry, then UnauthorizedError
    - transport failures and other statuses are surfaced, never retried
    """

    def __init__(
        self,
        session_manager: SessionManager,
        *,
        http: Optional[httpx.AsyncClient] = None,
        base_url: str = SPOTIFY_API_BASE_URL,
        timeout: float = 30.0,
    ):
        self.session_manager = session_manager
        self.http = http
        self.base_url = base_url
        self.timeout = timeout

    # -----------------
    # Token management
    # -----------------

    async def _access_token(self, spec: EndpointSpec) -> str:
        try:
            return await self.session_manager.current_access_token()
        except SessionError as e:
            raise UnauthenticatedError(f"{spec.name}: not signed in", endpoint=spec.name) from e
        except AuthNetworkError as e:
            raise TransportError(f"{spec.name}: session renewal failed: {e}", endpoint=spec.name) from e
        except AuthError as e:
            raise UnauthenticatedError(f"{spec.name}: session could not be renewed", endpoint=spec.name) from e

    async def _renew_after_401(self, spec: EndpointSpec, rejected_token: str) -> str:
        try:
            session = await self.session_manager.renew(rejected_token=rejected_token)
        except AuthNetworkError as e:
            raise TransportError(f"{spec.name}: session renewal failed: {e}", endpoint=spec.name) from e
        except (SessionError, AuthError) as e:
            raise UnauthorizedError(f"{spec.name}: access token rejected and renewal failed", endpoint=spec.name) from e
        return session.token.access_token

    # -----------------
    # HTTP helpers
    # -----------------

    async def _send(self, spec: EndpointSpec, url: str, token: Optional[str]) -> httpx.Response:
        headers = {"Accept": "application/json"}
        if token:
            headers["Authorization"] = f"Bearer {token}"

        try:
            if self.http is not None:
                return await self.http.request(spec.method, url, headers=headers)
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                return await client.request(spec.method, url, headers=headers)
        except httpx.HTTPError as e:
            raise TransportError(f"{spec.name}: request failed: {e}", endpoint=spec.name) from e

    def _decode(self, spec: EndpointSpec, resp: httpx.Response) -> Any:
        raw = resp.content
        try:
            payload = resp.json() if raw else {}
        except ValueError as e:
            raise DecodeError(
                f"{spec.name}: response was not JSON",
                endpoint=spec.name,
                payload_size=len(raw),
                payload_shape="non-json",
            ) from e

        try:
            return spec.decoder(payload)
        except (AttributeError, KeyError, IndexError, TypeError, ValueError) as e:
            raise DecodeError(
                f"{spec.name}: unexpected response shape ({e!r})",
                endpoint=spec.name,
                payload_size=len(raw),
                payload_shape=describe_shape(payload),
            ) from e

    async def call(
        self,
        endpoint: Union[str, EndpointSpec],
        params: Optional[Mapping[str, Any]] = None,
        *,
        path_params: Optional[Mapping[str, Any]] = None,
    ) -> Any:
        """Issue one endpoint request and return its decoded records."""

        spec = get_endpoint(endpoint) if isinstance(endpoint, str) else endpoint
        url = spec.build_url(self.base_url, params=params, path_params=path_params)

        token = await self._access_token(spec) if spec.requires_auth else None
        logger.debug("%s %s", spec.method, url)
        resp = await self._send(spec, url, token)

        if resp.status_code == 401 and token is not None:
            logger.info("%s: access token rejected, renewing session", spec.name)
            token = await self._renew_after_401(spec, token)
            resp = await self._send(spec, url, token)
            if resp.status_code == 401:
                raise UnauthorizedError(f"{spec.name}: access token rejected after renewal", endpoint=spec.name)

        if resp.status_code >= 400:
            raise HttpStatusError(
                f"{spec.name}: API error {resp.status_code}",
                endpoint=spec.name,
                status_code=resp.status_code,
                body=resp.text,
            )

        return self._decode(spec, resp)

    # -----------------
    # Convenience endpoints
    # -----------------

    async def profile(self) -> UserProfile:
        return await self.call("profile")

    async def top_artists(self, *, time_range: str = "medium_term", limit: int = 20) -> List[Artist]:
        return await self.call("top_artists", {"time_range": time_range, "limit": limit})

    async def top_tracks(self, *, time_range: str = "medium_term", limit: int = 20) -> List[Track]:
        return await self.call("top_tracks", {"time_range": time_range, "limit": limit})

    async def recently_played(self, *, limit: int = 20) -> List[Track]:
        return await self.call("recently_played", {"limit": limit})

    async def search_artists(self, query: str, *, limit: int = 20) -> List[Artist]:
        return await self.call("search_artists", {"q": query, "limit": limit})

    async def artist(self, artist_id: str) -> Artist:
        return await self.call("artist", path_params={"id": artist_id})

    async def artist_albums(self, artist_id: str, *, limit: int = 20) -> List[Album]:
        return await self.call("artist_albums", {"limit": limit}, path_params={"id": artist_id})

    async def album_tracks(self, album_id: str) -> List[Track]:
        return await self.call("album_tracks", path_params={"id": album_id})
