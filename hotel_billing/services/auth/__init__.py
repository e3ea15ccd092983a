"""
Auth Service Factory

Provides a single entry point for obtaining the auth service instance.
The rest of the application stays agnostic about which implementation
is being used.

Usage:
    from hotel_billing.services.auth import get_auth_service

    # Returns MockAuthService or HostedAuthService based on ENV_MODE
    auth_service = get_auth_service()

    session = await auth_service.get_current_session(token)

Environment Switching:
    - ENV_MODE=development → MockAuthService (accounts from MOCK_AUTH_USERS)
    - ENV_MODE=staging → HostedAuthService (test project)
    - ENV_MODE=production → HostedAuthService (live project)
"""

import logging
from functools import lru_cache

from hotel_billing.core.config import get_settings
from hotel_billing.services.auth.base import (
    AuthSession,
    BaseAuthService,
    SessionEvent,
    SessionListener,
)
from hotel_billing.services.auth.hosted import HostedAuthService
from hotel_billing.services.auth.mock import MockAuthService, mock_user_id

logger = logging.getLogger(__name__)


@lru_cache()
def get_auth_service() -> BaseAuthService:
    """
    Get the configured auth service instance.

    The instance is cached so every request sees the same sessions and
    the same session-change listeners.

    Raises:
        ValueError: If hosted mode but AUTH_URL/AUTH_API_KEY not configured
    """
    settings = get_settings()

    if settings.is_development:
        logger.info("Auth Service: Using MockAuthService (development mode)")
        return MockAuthService(
            users={email: password for email, password, _ in settings.mock_auth_users_list},
            session_ttl_minutes=settings.session_ttl_minutes,
        )
    else:
        logger.info(
            f"Auth Service: Using HostedAuthService "
            f"({settings.env_mode.value} mode)"
        )
        return HostedAuthService(base_url=settings.auth_url, api_key=settings.auth_api_key)


def reset_auth_service() -> None:
    """
    Clear the cached auth service instance.

    The next call to get_auth_service() will create a new instance.
    """
    get_auth_service.cache_clear()
    logger.debug("Auth service cache cleared")


__all__ = [
    "get_auth_service",
    "reset_auth_service",
    "mock_user_id",
    "AuthSession",
    "BaseAuthService",
    "SessionEvent",
    "SessionListener",
    "MockAuthService",
    "HostedAuthService",
]
