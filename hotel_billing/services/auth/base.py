"""
Auth Service Abstract Base Class

Defines the interface contract for the authentication collaborator.
MockAuthService (development) and HostedAuthService (staging/production)
both implement these methods, so routes and the session registry behave
identically whichever one is active.

Design Pattern: Strategy Pattern
    - Runtime switching between auth providers via ENV_MODE
    - Listeners get the same session-change events from every provider
"""

import enum
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable, Optional

logger = logging.getLogger(__name__)


class SessionEvent(str, enum.Enum):
    """Session-change notifications delivered to listeners."""
    SIGNED_IN = "SIGNED_IN"
    SIGNED_OUT = "SIGNED_OUT"
    SESSION_EXPIRED = "SESSION_EXPIRED"


@dataclass
class AuthSession:
    """
    An authenticated session as reported by the auth collaborator.

    Attributes:
        access_token: Bearer token the client sends with every request
        user_id: Identity of the signed-in user
        email: User's email address
        expires_at: When the token stops being valid (UTC)
    """
    access_token: str
    user_id: str
    email: Optional[str] = None
    expires_at: Optional[datetime] = None

    @property
    def is_expired(self) -> bool:
        if self.expires_at is None:
            return False
        return datetime.now(timezone.utc) >= self.expires_at

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization."""
        return {
            "access_token": self.access_token,
            "user_id": self.user_id,
            "email": self.email,
            "expires_at": self.expires_at.isoformat() if self.expires_at else None,
        }


SessionListener = Callable[[SessionEvent, Optional[AuthSession]], None]


class BaseAuthService(ABC):
    """
    Abstract base class for auth services.

    Subclasses implement the collaborator calls; listener bookkeeping is
    shared here. Listeners are called synchronously and must not raise.

    Example:
        >>> service = get_auth_service()
        >>> session = await service.sign_in("admin@hotel.local", "admin123")
        >>> current = await service.get_current_session(session.access_token)
    """

    def __init__(self):
        self._listeners: list[SessionListener] = []

    @property
    @abstractmethod
    def provider_name(self) -> str:
        """Return the name of the auth provider (e.g. "mock", "hosted")."""
        pass

    @abstractmethod
    async def sign_in(self, email: str, password: str) -> AuthSession:
        """
        Exchange credentials for a session.

        Raises:
            AuthError: credentials rejected
            PersistenceError: the collaborator could not be reached
        """
        pass

    @abstractmethod
    async def get_current_session(self, access_token: str) -> Optional[AuthSession]:
        """
        Resolve a token to its session.

        Returns:
            AuthSession if the token is valid, None if it is unknown,
            expired or signed out
        """
        pass

    @abstractmethod
    async def sign_out(self, access_token: str) -> None:
        """End the session behind ``access_token``."""
        pass

    @abstractmethod
    async def health_check(self) -> bool:
        """
        Verify connectivity to the auth service.

        Returns:
            bool: True if service is reachable and operational
        """
        pass

    def on_session_change(self, callback: SessionListener) -> Callable[[], None]:
        """
        Subscribe to session-change events.

        Returns:
            A function that removes the subscription
        """
        self._listeners.append(callback)

        def unsubscribe() -> None:
            if callback in self._listeners:
                self._listeners.remove(callback)

        return unsubscribe

    def _notify(self, event: SessionEvent, session: Optional[AuthSession]) -> None:
        logger.debug(f"Session event {event.value} for {session.user_id if session else 'unknown user'}")
        for listener in list(self._listeners):
            try:
                listener(event, session)
            except Exception:
                logger.exception(f"Session listener failed on {event.value}")
