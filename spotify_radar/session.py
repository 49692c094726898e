import asyncio
import dataclasses
import enum
import logging
import time
from typing import Awaitable, Callable, List, Optional

from .auth import AuthClient, AuthGrant, ClientCredentials
from .errors import (
    InvalidGrantError,
    NoRefreshTokenError,
    NoSessionError,
    SessionActiveError,
    SessionError,
)
from .models import UserProfile
from .token_manager import Session, TokenStore

logger = logging.getLogger(__name__)

SessionListener = Callable[[Optional[Session]], None]
ProfileLoader = Callable[[], Awaitable[UserProfile]]


class SessionState(str, enum.Enum):
    NO_SESSION = "no_session"
    ACTIVE = "active"
    REFRESHING = "refreshing"
    SIGNED_OUT = "signed_out"


class SessionManager:
    """Owns the session lifecycle: sign in, renewal and sign out.

    This is the only place that writes the session. Renewal is single-flight:
    while one refresh request is in flight every other caller awaits that same
    request and receives its result (or its failure).
    """

    def __init__(
        self,
        auth_client: AuthClient,
        credentials: ClientCredentials,
        *,
        store: Optional[TokenStore] = None,
        safety_margin: float = 60,
        clock: Callable[[], float] = time.time,
    ):
        self.auth_client = auth_client
        self.credentials = credentials
        self.store = store or TokenStore()
        self.safety_margin = float(safety_margin)
        self.clock = clock

        self._renewal: Optional["asyncio.Task[Session]"] = None
        self._renewal_generation = 0
        # Bumped on every sign in / sign out so a late renewal cannot resurrect
        # a session that ended while it was in flight.
        self._generation = 0
        self._signed_out = False
        self._profile: Optional[UserProfile] = None
        self._profile_loader: Optional[ProfileLoader] = None
        self._signed_in_listeners: List[SessionListener] = []
        self._signed_out_listeners: List[SessionListener] = []

    # -----------------
    # State & notifications
    # -----------------

    @property
    def session(self) -> Optional[Session]:
        return self.store.get()

    @property
    def state(self) -> SessionState:
        if self._renewal_in_flight():
            return SessionState.REFRESHING
        if self.store.get() is not None:
            return SessionState.ACTIVE
        return SessionState.SIGNED_OUT if self._signed_out else SessionState.NO_SESSION

    def on_signed_in(self, callback: SessionListener) -> SessionListener:
        self._signed_in_listeners.append(callback)
        return callback

    def on_signed_out(self, callback: SessionListener) -> SessionListener:
        self._signed_out_listeners.append(callback)
        return callback

    def bind_profile_loader(self, loader: ProfileLoader) -> None:
        self._profile_loader = loader

    # -----------------
    # Lifecycle
    # -----------------

    def restore(self) -> Optional[Session]:
        """Load a previously persisted session without touching the network."""
        session = self.store.load_persisted()
        if session is not None:
            self._generation += 1
            self._signed_out = False
            logger.info("Restored persisted session (user=%s)", session.user_id or "unknown")
        return session

    async def sign_in(self, code: str, redirect_uri: str, *, user_id: Optional[str] = None) -> Session:
        if self.store.get() is not None:
            raise SessionActiveError("Already signed in; sign out first")

        token = await self.auth_client.exchange(
            AuthGrant.authorization_code(code, redirect_uri), self.credentials
        )

        if self.store.get() is not None:
            raise SessionActiveError("Another sign in completed first")

        session = Session(token=token, user_id=user_id)
        self._generation += 1
        self._signed_out = False
        self._profile = None
        self.store.set(session)
        logger.info("Signed in; token valid for %.0fs", token.expires_at - self.clock())

        for callback in list(self._signed_in_listeners):
            callback(session)
        return session

    def sign_out(self) -> None:
        """Drop the session. Safe to call any number of times."""
        previous = self.store.get()
        self._generation += 1
        self._signed_out = True
        self._profile = None
        self.store.clear()

        if previous is None:
            return

        logger.info("Signed out")
        for callback in list(self._signed_out_listeners):
            callback(previous)

    # -----------------
    # Tokens
    # -----------------

    async def current_access_token(self) -> str:
        """Return a live access token, renewing the session first if needed."""
        if self._renewal_in_flight():
            session = await asyncio.shield(self._renewal)
            return session.token.access_token

        session = self.store.get()
        if session is None:
            raise NoSessionError("No active session")

        if not session.token.is_expired(now=self.clock(), skew_seconds=self.safety_margin):
            return session.token.access_token

        logger.debug("Access token expired or about to expire")
        session = await self.renew()
        return session.token.access_token

    async def renew(self, *, rejected_token: Optional[str] = None) -> Session:
        """Exchange the refresh token for a new access token.

        rejected_token: the access token the API just refused. When the session
        already holds a different token it was renewed meanwhile, and is
        returned as is.
        """

        if not self._renewal_in_flight():
            session = self.store.get()
            if session is None:
                raise NoSessionError("No active session")

            if rejected_token is not None and session.token.access_token != rejected_token:
                return session

            if not session.token.refresh_token:
                logger.warning("Session has no refresh token; signing out")
                self.sign_out()
                raise NoRefreshTokenError("Session cannot be renewed without a refresh token")

            task = asyncio.ensure_future(self._refresh(session, self._generation))
            task.add_done_callback(self._renewal_finished)
            self._renewal = task
            self._renewal_generation = self._generation

        # shield: a cancelled waiter must not cancel the renewal other callers share.
        return await asyncio.shield(self._renewal)

    async def _refresh(self, session: Session, generation: int) -> Session:
        logger.info("Renewing session...")
        try:
            token = await self.auth_client.exchange(
                AuthGrant.refresh(session.token.refresh_token), self.credentials
            )
        except InvalidGrantError:
            logger.warning("Refresh token rejected; signing out")
            if generation == self._generation:
                self.sign_out()
            raise

        current = self.store.get()
        if generation != self._generation or current is None:
            raise NoSessionError("Session ended while it was being renewed")

        if not token.refresh_token:
            token = dataclasses.replace(token, refresh_token=session.token.refresh_token)

        renewed = Session(token=token, user_id=current.user_id)
        self.store.set(renewed)
        logger.info("Session has been renewed.")
        return renewed

    def _renewal_in_flight(self) -> bool:
        # A renewal started before the last sign in / sign out no longer counts.
        return (
            self._renewal is not None
            and not self._renewal.done()
            and self._renewal_generation == self._generation
        )

    def _renewal_finished(self, task: "asyncio.Task[Session]") -> None:
        if self._renewal is task:
            self._renewal = None
        # Mark the failure as retrieved; waiters already received it.
        if not task.cancelled():
            task.exception()

    # -----------------
    # Profile projection
    # -----------------

    async def user_profile(self) -> UserProfile:
        """Profile of the signed-in user, fetched once per session."""
        if self.store.get() is None:
            raise NoSessionError("No active session")
        if self._profile is not None:
            return self._profile
        if self._profile_loader is None:
            raise SessionError("No profile loader bound to this session manager")

        generation = self._generation
        profile = await self._profile_loader()
        if generation != self._generation:
            return profile

        self._profile = profile
        session = self.store.get()
        if session is not None and session.user_id != profile.id:
            self.store.set(dataclasses.replace(session, user_id=profile.id))
        return profile
