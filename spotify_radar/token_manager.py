import json
import logging
import os
import time
from dataclasses import dataclass
from typing import Any, Dict, Optional

logger = logging.getLogger(__name__)

DEFAULT_TOKEN_CACHE_PATH = os.path.join("data", "spotify_session.json")


@dataclass(frozen=True)
class Token:
    """Access/refresh credential pair with the instant it stops being valid."""

    access_token: str
    expires_at: float
    refresh_token: Optional[str] = None
    token_type: str = "Bearer"
    scope: Optional[str] = None

    @staticmethod
    def from_token_response(payload: Dict[str, Any], *, now: Optional[float] = None) -> "Token":
        """Convert the token endpoint JSON into a Token.

        The endpoint returns:
        - access_token
        - token_type
        - expires_in (seconds)
        - refresh_token (optional, usually omitted on refresh)
        - scope (space-delimited string)
        """

        now_ts = float(time.time() if now is None else now)
        expires_in = float(payload.get("expires_in", 0))

        return Token(
            access_token=str(payload.get("access_token", "")),
            expires_at=now_ts + expires_in,
            refresh_token=payload.get("refresh_token") or None,
            token_type=str(payload.get("token_type") or "Bearer"),
            scope=payload.get("scope"),
        )

    def is_expired(self, *, now: Optional[float] = None, skew_seconds: float = 60) -> bool:
        now_ts = float(time.time() if now is None else now)
        return now_ts >= float(self.expires_at) - float(skew_seconds)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "access_token": self.access_token,
            "token_type": self.token_type,
            "expires_at": self.expires_at,
            "refresh_token": self.refresh_token,
            "scope": self.scope,
        }


@dataclass(frozen=True)
class Session:
    token: Token
    user_id: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {"token": self.token.to_dict(), "user_id": self.user_id}

    @staticmethod
    def from_dict(data: Dict[str, Any]) -> "Session":
        raw = data.get("token") or {}
        token = Token(
            access_token=str(raw.get("access_token", "")),
            expires_at=float(raw.get("expires_at", 0)),
            refresh_token=raw.get("refresh_token") or None,
            token_type=str(raw.get("token_type") or "Bearer"),
            scope=raw.get("scope"),
        )
        return Session(token=token, user_id=data.get("user_id"))


class SessionCache:
    """Persists the session as JSON so it survives process restarts.

    Persistence is best effort: failures are logged and reported through the
    boolean return value, never raised.
    """

    def __init__(self, *, cache_path: str = DEFAULT_TOKEN_CACHE_PATH, enabled: bool = True):
        self.cache_path = cache_path
        self.enabled = enabled

    def ensure_cache_dir(self) -> None:
        directory = os.path.dirname(self.cache_path)
        if directory:
            os.makedirs(directory, exist_ok=True)

    def load(self) -> Optional[Session]:
        if not self.enabled or not os.path.exists(self.cache_path):
            return None

        try:
            with open(self.cache_path, "r", encoding="utf-8") as f:
                data = json.load(f)
            session = Session.from_dict(data)
        except (OSError, ValueError, TypeError, AttributeError) as e:
            logger.warning("Ignoring unreadable session cache %s: %s", self.cache_path, e)
            return None

        if not session.token.access_token:
            return None
        return session

    def save(self, session: Session) -> bool:
        if not self.enabled:
            return False

        try:
            self.ensure_cache_dir()
            with open(self.cache_path, "w", encoding="utf-8") as f:
                json.dump(session.to_dict(), f, indent=2)
            return True
        except OSError as e:
            logger.warning("Could not write session cache %s: %s", self.cache_path, e)
            return False

    def clear(self) -> bool:
        try:
            if os.path.exists(self.cache_path):
                os.remove(self.cache_path)
            return True
        except OSError as e:
            logger.warning("Could not remove session cache %s: %s", self.cache_path, e)
            return False


class TokenStore:
    """Holds the current session in memory, mirroring changes to an optional cache."""

    def __init__(self, cache: Optional[SessionCache] = None):
        self.cache = cache
        self._session: Optional[Session] = None

    def get(self) -> Optional[Session]:
        return self._session

    def set(self, session: Session) -> None:
        self._session = session
        if self.cache is not None:
            self.cache.save(session)

    def clear(self) -> None:
        self._session = None
        if self.cache is not None:
            self.cache.clear()

    def load_persisted(self) -> Optional[Session]:
        """Populate memory from the cache (if any) and return what was found."""
        if self.cache is None:
            return None
        session = self.cache.load()
        if session is not None:
            self._session = session
        return session
