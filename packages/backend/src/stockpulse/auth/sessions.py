"""In-memory session store — opaque token → identity.

Learn: A session token is a random opaque string (secrets.token_urlsafe),
not a JWT. The server is the only place that knows what a token means,
so logout really logs out: once destroy() runs, the token is gone for good.

Expiry is lazy. There's no background sweeper — resolve() checks the
session's age and evicts it on the spot if it's past max_age.

Thread safety: FastAPI runs sync handlers in a thread pool, so every
mutation takes a threading.Lock. Nothing here awaits, so the lock is
never held across I/O.
"""

import secrets
import threading
import time
from dataclasses import dataclass, field
from typing import Callable, Optional

import structlog

logger = structlog.get_logger()


class SessionStoreError(Exception):
    """Raised when the session store can't fulfil a request."""


class SessionStoreFull(SessionStoreError):
    """Raised when max_sessions live sessions already exist."""


@dataclass(frozen=True)
class Identity:
    """Who a session belongs to. Attached to request.state.user by the gate."""

    user_id: str
    username: str
    display_name: Optional[str] = None

    @property
    def name(self) -> str:
        return self.display_name or self.username


@dataclass
class Session:
    token: str
    identity: Identity
    created_at: float
    max_age: float

    def is_expired(self, now: float) -> bool:
        return now - self.created_at > self.max_age


@dataclass
class SessionStore:
    """Process-wide session table.

    Built once in create_app() and kept on app.state — never a module global.
    """

    max_age_seconds: float = 24 * 60 * 60
    max_sessions: int = 10_000
    clock: Callable[[], float] = time.monotonic
    _sessions: dict[str, Session] = field(default_factory=dict, repr=False)
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False)

    def __len__(self) -> int:
        return len(self._sessions)

    def create(self, identity: Identity) -> str:
        """Allocate a new token bound to identity.

        Raises SessionStoreFull when the table is at capacity.
        """
        with self._lock:
            if len(self._sessions) >= self.max_sessions:
                self._evict_expired_locked()
            if len(self._sessions) >= self.max_sessions:
                logger.error("sessions.store_full", limit=self.max_sessions)
                raise SessionStoreFull(
                    f"Session limit reached ({self.max_sessions})"
                )

            token = secrets.token_urlsafe(32)
            while token in self._sessions:
                token = secrets.token_urlsafe(32)

            self._sessions[token] = Session(
                token=token,
                identity=identity,
                created_at=self.clock(),
                max_age=self.max_age_seconds,
            )

        logger.info("sessions.created", user_id=identity.user_id)
        return token

    def resolve(self, token: Optional[str]) -> Optional[Identity]:
        """Return the identity for token, or None if unknown or expired.

        An expired session is destroyed as a side effect.
        """
        if not token:
            return None

        with self._lock:
            session = self._sessions.get(token)
            if session is None:
                return None
            if session.is_expired(self.clock()):
                del self._sessions[token]
                expired_user = session.identity.user_id
            else:
                return session.identity

        logger.info("sessions.expired", user_id=expired_user)
        return None

    def destroy(self, token: Optional[str]) -> None:
        """Forget token. Unknown tokens are a no-op."""
        if not token:
            return
        with self._lock:
            session = self._sessions.pop(token, None)
        if session is not None:
            logger.info("sessions.destroyed", user_id=session.identity.user_id)

    def clear(self) -> None:
        """Drop every session (process shutdown)."""
        with self._lock:
            self._sessions.clear()

    def _evict_expired_locked(self) -> None:
        # Only called from create() at capacity, with the lock held
        now = self.clock()
        expired = [t for t, s in self._sessions.items() if s.is_expired(now)]
        for token in expired:
            del self._sessions[token]
