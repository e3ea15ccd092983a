"""
Mock Auth Service Implementation

Signs users in against a fixed list of accounts without any hosted
service. Used in development mode (ENV_MODE=development) to:
    - Run the whole billing flow locally
    - Drive the simulation script with known accounts
    - Test session expiry and sign-out handling

Behavior:
    - Accounts come from MOCK_AUTH_USERS (email:password:role)
    - User ids are stable UUIDs derived from the email address
    - Tokens live in memory and expire after SESSION_TTL_MINUTES
"""

import logging
import secrets
import uuid
from datetime import datetime, timedelta, timezone
from typing import Optional

from hotel_billing.core.exceptions import AuthError
from hotel_billing.services.auth.base import (
    AuthSession,
    BaseAuthService,
    SessionEvent,
)

logger = logging.getLogger(__name__)

_USER_NAMESPACE = uuid.UUID("6f1c2a52-3b0e-4a8e-9d55-6b1f0f0c7a11")


def mock_user_id(email: str) -> str:
    """Stable user id for a mock account."""
    return str(uuid.uuid5(_USER_NAMESPACE, email.strip().lower()))


class MockAuthService(BaseAuthService):
    """
    In-memory implementation of the auth service.

    Attributes:
        users: email -> password
        session_ttl: lifetime of issued sessions

    Example:
        >>> service = MockAuthService({"staff@hotel.local": "staff123"})
        >>> session = await service.sign_in("staff@hotel.local", "staff123")
    """

    def __init__(self, users: dict[str, str], session_ttl_minutes: int = 720):
        super().__init__()
        self.users = {email.lower(): password for email, password in users.items()}
        self.session_ttl = timedelta(minutes=session_ttl_minutes)
        self._sessions: dict[str, AuthSession] = {}

        logger.info(
            f"MockAuthService initialized "
            f"({len(self.users)} account(s), ttl={session_ttl_minutes}min)"
        )

    @property
    def provider_name(self) -> str:
        """Return the provider name."""
        return "mock"

    async def sign_in(self, email: str, password: str) -> AuthSession:
        email = email.strip().lower()
        if self.users.get(email) != password:
            logger.warning(f"Mock sign-in rejected for {email}")
            raise AuthError("Invalid login credentials")

        session = AuthSession(
            access_token=f"mock_{secrets.token_urlsafe(24)}",
            user_id=mock_user_id(email),
            email=email,
            expires_at=datetime.now(timezone.utc) + self.session_ttl,
        )
        self._drop_expired()
        self._sessions[session.access_token] = session
        logger.info(f"Mock sign-in: {email}")
        self._notify(SessionEvent.SIGNED_IN, session)
        return session

    def _drop_expired(self) -> None:
        """Forget expired tokens that were never used again and notify listeners."""
        expired = [session for session in self._sessions.values() if session.is_expired]
        for session in expired:
            del self._sessions[session.access_token]
            logger.info(f"Mock session expired for {session.email}")
            self._notify(SessionEvent.SESSION_EXPIRED, session)

    async def get_current_session(self, access_token: str) -> Optional[AuthSession]:
        session = self._sessions.get(access_token)
        if session is None:
            return None
        if session.is_expired:
            del self._sessions[access_token]
            logger.info(f"Mock session expired for {session.email}")
            self._notify(SessionEvent.SESSION_EXPIRED, session)
            return None
        return session

    async def sign_out(self, access_token: str) -> None:
        session = self._sessions.pop(access_token, None)
        if session is not None:
            logger.info(f"Mock sign-out: {session.email}")
        self._notify(SessionEvent.SIGNED_OUT, session or AuthSession(access_token=access_token, user_id=""))

    async def health_check(self) -> bool:
        """Mock service is always healthy."""
        return True
