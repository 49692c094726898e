import base64
import logging
import math
import time
import urllib.parse
from dataclasses import dataclass
from typing import Any, Callable, Dict, Iterable, Optional

import httpx

from .errors import AuthNetworkError, ConfigurationError, InvalidGrantError
from .token_manager import Token

logger = logging.getLogger(__name__)

SPOTIFY_ACCOUNTS_BASE_URL = "https://accounts.spotify.com"
DEFAULT_REDIRECT_URI = "http://127.0.0.1:8888/callback"


@dataclass(frozen=True)
class ClientCredentials:
    client_id: str
    client_secret: str

    @staticmethod
    def from_config(config: Dict[str, Any]) -> "ClientCredentials":
        config = config or {}
        return ClientCredentials(
            client_id=str(config.get("spotify_client_id", "")).strip(),
            client_secret=str(config.get("spotify_client_secret", "")).strip(),
        )

    def basic_auth_header(self) -> str:
        """Return the `Authorization` value for the token endpoint."""

        if not self.client_id or not self.client_secret:
            raise ConfigurationError("Login configuration missing: client id and secret are required")
        try:
            raw = f"{self.client_id}:{self.client_secret}".encode("ascii")
        except UnicodeEncodeError as e:
            raise ConfigurationError("Client id and secret must be ASCII") from e
        return "Basic " + base64.b64encode(raw).decode("ascii")


@dataclass(frozen=True)
class AuthGrant:
    """How to obtain a token: an authorization code or a refresh token. Never persisted."""

    grant_type: str
    code: Optional[str] = None
    redirect_uri: Optional[str] = None
    refresh_token: Optional[str] = None

    @staticmethod
    def authorization_code(code: str, redirect_uri: str) -> "AuthGrant":
        return AuthGrant(grant_type="authorization_code", code=code, redirect_uri=redirect_uri)

    @staticmethod
    def refresh(refresh_token: str) -> "AuthGrant":
        return AuthGrant(grant_type="refresh_token", refresh_token=refresh_token)

    def form(self) -> Dict[str, str]:
        # Field order matches what the provider documents for each grant.
        if self.grant_type == "authorization_code":
            return {
                "code": str(self.code or ""),
                "grant_type": "authorization_code",
                "redirect_uri": str(self.redirect_uri or ""),
            }
        if self.grant_type == "refresh_token":
            return {
                "grant_type": "refresh_token",
                "refresh_token": str(self.refresh_token or ""),
            }
        raise ValueError(f"Unsupported grant type: {self.grant_type}")


class AuthClient:
    """Performs the two token-granting requests against the accounts service.

    Pure request/response: the caller decides what to do with the Token.
    """

    def __init__(
        self,
        *,
        http: Optional[httpx.AsyncClient] = None,
        accounts_base_url: str = SPOTIFY_ACCOUNTS_BASE_URL,
        timeout: float = 30.0,
        clock: Callable[[], float] = time.time,
    ):
        self.http = http
        self.token_url = f"{accounts_base_url.rstrip('/')}/api/token"
        self.timeout = timeout
        self.clock = clock

    async def exchange(self, grant: AuthGrant, credentials: ClientCredentials) -> Token:
        headers = {
            "Content-Type": "application/x-www-form-urlencoded",
            "Authorization": credentials.basic_auth_header(),
        }
        payload = await self._post_form(grant.form(), headers)

        access_token = payload.get("access_token")
        if not isinstance(access_token, str) or not access_token:
            raise InvalidGrantError("Token response did not contain an access_token")

        expires_in = payload.get("expires_in")
        try:
            if isinstance(expires_in, bool):
                raise TypeError("expires_in must be a number")
            lifetime = float(expires_in)
        except (TypeError, ValueError) as e:
            raise InvalidGrantError(f"Token response has an invalid expires_in: {expires_in!r}") from e
        if not math.isfinite(lifetime) or lifetime <= 0:
            raise InvalidGrantError(f"Token response has an invalid expires_in: {expires_in!r}")

        return Token.from_token_response(payload, now=self.clock())

    async def _post_form(self, form: Dict[str, str], headers: Dict[str, str]) -> Dict[str, Any]:
        try:
            if self.http is not None:
                resp = await self.http.post(self.token_url, data=form, headers=headers)
            else:
                async with httpx.AsyncClient(timeout=self.timeout, follow_redirects=False) as client:
                    resp = await client.post(self.token_url, data=form, headers=headers)
        except httpx.HTTPError as e:
            raise AuthNetworkError(f"Token request failed: {e}") from e

        if resp.status_code >= 500:
            raise AuthNetworkError(
                f"Token endpoint unavailable (HTTP {resp.status_code})",
                status_code=resp.status_code,
                body=resp.text,
            )
        if resp.status_code >= 400:
            raise InvalidGrantError(
                f"Token request rejected (HTTP {resp.status_code})",
                status_code=resp.status_code,
                body=resp.text,
            )

        try:
            payload = resp.json()
        except ValueError as e:
            raise InvalidGrantError(
                "Token response was not JSON", status_code=resp.status_code, body=resp.text
            ) from e

        if not isinstance(payload, dict):
            raise InvalidGrantError(
                "Token response was not an object", status_code=resp.status_code, body=resp.text
            )

        return payload


# -----------------
# Browser flow helpers
# -----------------

def get_authorize_url(
    client_id: str,
    redirect_uri: str,
    *,
    scopes: Optional[Iterable[str]] = None,
    state: Optional[str] = None,
    show_dialog: bool = False,
    accounts_base_url: str = SPOTIFY_ACCOUNTS_BASE_URL,
) -> str:
    """Build the URL the user opens to obtain an authorization code."""

    if not redirect_uri:
        raise ValueError("Missing redirect_uri")

    scope_str = " ".join([str(s).strip() for s in (scopes or []) if str(s).strip()])
    params: Dict[str, str] = {
        "client_id": client_id,
        "response_type": "code",
        "redirect_uri": redirect_uri,
        "show_dialog": "true" if show_dialog else "false",
    }
    if scope_str:
        params["scope"] = scope_str
    if state:
        params["state"] = str(state)

    return f"{accounts_base_url.rstrip('/')}/authorize?{urllib.parse.urlencode(params)}"


def extract_code_from_redirect_url(redirect_url: str) -> Dict[str, str]:
    """Parse a redirect URL and return {"code": ..., "state": ...} (missing keys omitted)."""

    parsed = urllib.parse.urlparse(str(redirect_url or "").strip())
    qs = urllib.parse.parse_qs(parsed.query)
    out: Dict[str, str] = {}
    for key in ("code", "state", "error"):
        if qs.get(key):
            out[key] = str(qs[key][0])
    return out


def check_spotify_credentials(config: Dict[str, Any]) -> Dict[str, Any]:
    """Validate the OAuth config fields and return a structured status dict."""

    config = config or {}
    redirect_uri = str(config.get("spotify_redirect_uri", "")).strip()
    credentials = ClientCredentials.from_config(config)
    status: Dict[str, Any] = {
        "ok": False,
        "client_id": credentials.client_id,
        "redirect_uri": redirect_uri,
        "scopes": list(config.get("spotify_scopes", []) or []),
    }

    if not redirect_uri:
        status["message"] = (
            "Missing spotify_redirect_uri in config.json.\n"
            f"Recommended default: {DEFAULT_REDIRECT_URI}"
        )
        return status

    try:
        credentials.basic_auth_header()
    except ConfigurationError as e:
        status["message"] = f"{e}.\n{spotify_app_setup_instructions(redirect_uri=redirect_uri)}"
        return status

    status["ok"] = True
    status["message"] = "Spotify credentials look OK."
    return status


def spotify_app_setup_instructions(*, redirect_uri: str = DEFAULT_REDIRECT_URI) -> str:
    """Return user-facing setup instructions for creating a Spotify Developer app."""

    redirect_uri = str(redirect_uri or "").strip() or DEFAULT_REDIRECT_URI
    return (
        "Spotify app setup:\n"
        "1) Go to https://developer.spotify.com/dashboard\n"
        "2) Create an app (or select an existing app)\n"
        f"3) Add this Redirect URI in the app settings: {redirect_uri}\n"
        "4) Copy the Client ID and Client Secret into config.json\n"
        "   (spotify_client_id / spotify_client_secret)\n"
    )
