from dataclasses import dataclass
from typing import Any, Dict, Optional

import httpx

from .auth import SPOTIFY_ACCOUNTS_BASE_URL, AuthClient, ClientCredentials
from .client import ApiGateway
from .endpoints import SPOTIFY_API_BASE_URL
from .session import SessionManager
from .token_manager import DEFAULT_TOKEN_CACHE_PATH, SessionCache, TokenStore


@dataclass
class Services:
    http: httpx.AsyncClient
    auth_client: AuthClient
    session_manager: SessionManager
    gateway: ApiGateway

    async def aclose(self) -> None:
        await self.http.aclose()


def build_services(config: Dict[str, Any], *, http: Optional[httpx.AsyncClient] = None) -> Services:
    """Wire the session core from a config dict.

    The returned services share one AsyncClient; call `aclose()` when done.
    """

    config = config or {}
    timeout = float(config.get("spotify_http_timeout", 30.0))
    http = http or httpx.AsyncClient(timeout=timeout, follow_redirects=False)

    cache = SessionCache(
        cache_path=str(config.get("spotify_token_cache_path") or DEFAULT_TOKEN_CACHE_PATH),
        enabled=bool(config.get("spotify_cache_tokens", True)),
    )
    auth_client = AuthClient(
        http=http,
        accounts_base_url=str(config.get("spotify_accounts_base_url") or SPOTIFY_ACCOUNTS_BASE_URL),
        timeout=timeout,
    )
    session_manager = SessionManager(
        auth_client,
        ClientCredentials.from_config(config),
        store=TokenStore(cache),
        safety_margin=float(config.get("spotify_token_skew_seconds", 60)),
    )
    gateway = ApiGateway(
        session_manager,
        http=http,
        base_url=str(config.get("spotify_api_base_url") or SPOTIFY_API_BASE_URL),
        timeout=timeout,
    )
    session_manager.bind_profile_loader(gateway.profile)

    return Services(http=http, auth_client=auth_client, session_manager=session_manager, gateway=gateway)
