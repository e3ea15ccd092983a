"""
FastAPI dependencies: stores, auth service, session registry and the
signed-in user's session state.
"""

import logging
from typing import Optional

from fastapi import Depends, Header, Request
from sqlalchemy.ext.asyncio import AsyncSession

from hotel_billing.core.config import get_settings
from hotel_billing.core.exceptions import AuthError, PermissionDeniedError
from hotel_billing.core.session import SessionRegistry, SessionState
from hotel_billing.database import get_db
from hotel_billing.services.auth import BaseAuthService, get_auth_service
from hotel_billing.services.storage import (
    BaseBillStore,
    BaseMenuStore,
    BaseRoleStore,
    SqlAlchemyBillStore,
    SqlAlchemyMenuStore,
    SqlAlchemyRoleStore,
)

logger = logging.getLogger(__name__)


def get_menu_store(db: AsyncSession = Depends(get_db)) -> BaseMenuStore:
    return SqlAlchemyMenuStore(db)


def get_bill_store(db: AsyncSession = Depends(get_db)) -> BaseBillStore:
    return SqlAlchemyBillStore(db)


def get_role_store(db: AsyncSession = Depends(get_db)) -> BaseRoleStore:
    return SqlAlchemyRoleStore(db)


def get_auth() -> BaseAuthService:
    return get_auth_service()


def get_session_registry(request: Request) -> SessionRegistry:
    return request.app.state.sessions


def get_access_token(authorization: Optional[str] = Header(None)) -> str:
    """Extract the bearer token; a missing one sends the client to sign in."""
    if not authorization:
        raise AuthError("Authentication required", redirect_to=get_settings().auth_redirect_path)

    scheme, _, token = authorization.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        raise AuthError("Invalid authorization header", redirect_to=get_settings().auth_redirect_path)
    return token.strip()


async def get_session_state(
    access_token: str = Depends(get_access_token),
    auth: BaseAuthService = Depends(get_auth),
    registry: SessionRegistry = Depends(get_session_registry),
    roles: BaseRoleStore = Depends(get_role_store),
) -> SessionState:
    """
    Resolve the caller's session state.

    The token is checked with the auth service on every request. A token
    it no longer knows is invalidated here, discarding its cart. The first
    request of a session looks up the role and starts the session.
    """
    session = await auth.get_current_session(access_token)
    if session is None:
        registry.invalidate(access_token)
        raise AuthError("Session expired or signed out", redirect_to=get_settings().auth_redirect_path)

    state = registry.get(access_token)
    if state is None or state.context.user_id != session.user_id:
        role = await roles.get_role(session.user_id)
        state = registry.start(session, role)
    return state


def require_admin(state: SessionState = Depends(get_session_state)) -> SessionState:
    if not state.context.is_admin:
        logger.warning(f"Menu write denied for {state.context.email or state.context.user_id}")
        raise PermissionDeniedError("Only administrators can change the menu")
    return state
