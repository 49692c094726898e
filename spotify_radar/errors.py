from typing import Any, Optional


class SpotifyRadarError(RuntimeError):
    """Base class for every error raised by spotify_radar."""


class ConfigurationError(SpotifyRadarError):
    """Client credentials are missing or cannot be encoded. Not recoverable."""


# -----------------
# Token endpoint
# -----------------

class AuthError(SpotifyRadarError):
    """The token endpoint did not grant a token."""

    def __init__(self, message: str, *, status_code: Optional[int] = None, body: str = ""):
        super().__init__(message)
        self.status_code = status_code
        self.body = body


class InvalidGrantError(AuthError):
    """The code or refresh token was rejected, or the response was unusable."""


class AuthNetworkError(AuthError):
    """The token request never produced a usable HTTP answer (transport or 5xx)."""


# -----------------
# Session
# -----------------

class SessionError(SpotifyRadarError):
    pass


class NoSessionError(SessionError):
    """No user is signed in."""


class NoRefreshTokenError(SessionError):
    """The session cannot be renewed; the user has to sign in again."""


class SessionActiveError(SessionError):
    """sign_in was called while a session is still active."""


# -----------------
# Resource endpoints
# -----------------

class ApiError(SpotifyRadarError):
    def __init__(self, message: str, *, endpoint: Optional[str] = None):
        super().__init__(message)
        self.endpoint = endpoint


class UnauthenticatedError(ApiError):
    """No session exists; the request was not sent."""


class UnauthorizedError(ApiError):
    """The API kept rejecting the access token after one renewal."""


class TransportError(ApiError):
    """Timeout, DNS failure, connection reset and friends."""


class HttpStatusError(ApiError):
    def __init__(self, message: str, *, endpoint: Optional[str] = None, status_code: int = 0, body: str = ""):
        super().__init__(message, endpoint=endpoint)
        self.status_code = status_code
        self.body = body


class DecodeError(ApiError):
    """The response body could not be turned into domain records."""

    def __init__(
        self,
        message: str,
        *,
        endpoint: Optional[str] = None,
        payload_size: int = 0,
        payload_shape: Any = None,
    ):
        super().__init__(message, endpoint=endpoint)
        self.payload_size = payload_size
        self.payload_shape = payload_shape
