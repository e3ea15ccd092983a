"""
Session Registry

Per-process record of the sessions this server has seen. A session is
started explicitly when its token is first resolved, owns the bill
composer (cart) for that user, and is invalidated on sign-out or when
the auth service reports it expired.

The registry is created in the application lifespan and stored on
``app.state``; routes reach it through the ``get_session_registry``
dependency.
"""

import logging
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Optional

from hotel_billing.billing.composer import TAX_RATE, BillComposer
from hotel_billing.models import Role
from hotel_billing.services.auth.base import AuthSession, SessionEvent

logger = logging.getLogger(__name__)


@dataclass
class SessionContext:
    """Who is acting: the authenticated session plus its role."""
    session: AuthSession
    role: Optional[str] = None

    @property
    def user_id(self) -> str:
        return self.session.user_id

    @property
    def email(self) -> Optional[str]:
        return self.session.email

    @property
    def is_admin(self) -> bool:
        return self.role == Role.ADMIN.value

    @property
    def role_label(self) -> str:
        """Display label, e.g. "Admin". Users without a role show as "Staff"."""
        return (self.role or Role.STAFF.value).capitalize()


@dataclass
class SessionState:
    context: SessionContext
    composer: BillComposer = field(default_factory=BillComposer)


class SessionRegistry:
    """
    Map of access token -> SessionState.

    Example:
        >>> registry = SessionRegistry(tax_rate=Decimal("0.05"))
        >>> state = registry.start(session, role="admin")
        >>> state.composer.add(item)
        >>> registry.invalidate(session.access_token)
    """

    def __init__(self, tax_rate: Decimal = TAX_RATE, bill_number_prefix: str = "BILL"):
        self.tax_rate = tax_rate
        self.bill_number_prefix = bill_number_prefix
        self._states: dict[str, SessionState] = {}

    def __len__(self) -> int:
        return len(self._states)

    def __contains__(self, access_token: str) -> bool:
        return access_token in self._states

    def start(self, session: AuthSession, role: Optional[str]) -> SessionState:
        """Initialize state for a session, replacing any previous state for its token."""
        self.drop_expired()
        state = SessionState(
            context=SessionContext(session=session, role=role),
            composer=BillComposer(
                tax_rate=self.tax_rate,
                bill_number_prefix=self.bill_number_prefix,
            ),
        )
        self._states[session.access_token] = state
        logger.info(f"Session started for {session.email or session.user_id} (role={role or 'none'})")
        return state

    def get(self, access_token: str) -> Optional[SessionState]:
        self.drop_expired()
        return self._states.get(access_token)

    def drop_expired(self) -> int:
        """
        Forget every session whose token has expired, with its cart.

        Abandoned tokens are never signed out, so they are swept here.

        Returns:
            Number of sessions dropped
        """
        expired = [
            token for token, state in self._states.items()
            if state.context.session.is_expired
        ]
        for token in expired:
            self.invalidate(token)
        return len(expired)

    def invalidate(self, access_token: str) -> bool:
        """
        Drop a session and its cart.

        Returns:
            True if the session was known
        """
        state = self._states.pop(access_token, None)
        if state is None:
            return False
        if not state.composer.is_empty:
            logger.info(
                f"Session for {state.context.email or state.context.user_id} ended "
                f"with {len(state.composer.lines)} unsubmitted cart line(s)"
            )
        else:
            logger.info(f"Session ended for {state.context.email or state.context.user_id}")
        return True

    def handle_session_change(self, event: SessionEvent, session: Optional[AuthSession]) -> None:
        """Auth service listener: forget sessions that were signed out or expired."""
        if session is None:
            return
        if event in (SessionEvent.SIGNED_OUT, SessionEvent.SESSION_EXPIRED):
            self.invalidate(session.access_token)
