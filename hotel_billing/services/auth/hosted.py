"""
Hosted Auth Service Implementation

Production implementation that talks to the hosted authentication REST
API (GoTrue-compatible, as exposed by Supabase under /auth/v1).
Used when ENV_MODE=production or ENV_MODE=staging.

Requirements:
    - AUTH_URL, e.g. https://<project>.supabase.co/auth/v1
    - AUTH_API_KEY, the project's public (anon) key

Endpoints used:
    POST /token?grant_type=password   sign in
    GET  /user                        resolve a token
    POST /logout                      sign out
    GET  /health                      health check
"""

import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Optional

import httpx

from hotel_billing.core.config import get_settings
from hotel_billing.core.exceptions import AuthError, PersistenceError
from hotel_billing.services.auth.base import (
    AuthSession,
    BaseAuthService,
    SessionEvent,
)

logger = logging.getLogger(__name__)


class HostedAuthService(BaseAuthService):
    """
    Auth service backed by the hosted auth REST API.

    Every request re-validates its token with ``GET /user`` so a session
    revoked elsewhere is noticed on the next call.

    Example:
        >>> service = HostedAuthService()
        >>> session = await service.sign_in("admin@hotel.example", "secret")
    """

    def __init__(
        self,
        base_url: Optional[str] = None,
        api_key: Optional[str] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        Initialize the HTTP client.

        Raises:
            ValueError: If AUTH_URL or AUTH_API_KEY is not configured
        """
        super().__init__()
        settings = get_settings()
        base_url = base_url or settings.auth_url
        api_key = api_key or settings.auth_api_key

        if not base_url or not api_key:
            raise ValueError(
                "AUTH_URL and AUTH_API_KEY are required for staging/production mode. "
                "Set them in your .env file or environment variables."
            )

        self._client = httpx.AsyncClient(
            base_url=base_url.rstrip("/"),
            headers={"apikey": api_key, "Content-Type": "application/json"},
            timeout=settings.auth_timeout_seconds,
            transport=transport,
        )

        logger.info(f"HostedAuthService initialized ({base_url})")

    @property
    def provider_name(self) -> str:
        """Return the provider name."""
        return "hosted"

    @staticmethod
    def _error_message(response: httpx.Response) -> str:
        """Pull the human-readable message out of an error response."""
        try:
            body = response.json()
        except ValueError:
            return response.text or f"HTTP {response.status_code}"
        return (
            body.get("error_description")
            or body.get("msg")
            or body.get("message")
            or body.get("error")
            or f"HTTP {response.status_code}"
        )

    @staticmethod
    def _session_from_payload(access_token: str, user: dict[str, Any], expires_in: Optional[int] = None) -> AuthSession:
        expires_at = None
        if expires_in:
            expires_at = datetime.now(timezone.utc) + timedelta(seconds=int(expires_in))
        return AuthSession(
            access_token=access_token,
            user_id=str(user["id"]),
            email=user.get("email"),
            expires_at=expires_at,
        )

    async def _request(self, method: str, url: str, **kwargs) -> httpx.Response:
        try:
            return await self._client.request(method, url, **kwargs)
        except httpx.HTTPError as e:
            logger.error(f"Auth service unreachable ({method} {url}): {e}")
            raise PersistenceError(f"Auth service unreachable: {e}") from e

    async def sign_in(self, email: str, password: str) -> AuthSession:
        response = await self._request(
            "POST",
            "/token",
            params={"grant_type": "password"},
            json={"email": email, "password": password},
        )
        if response.status_code in (400, 401, 403):
            message = self._error_message(response)
            logger.warning(f"Hosted sign-in rejected for {email}: {message}")
            raise AuthError(message)
        if response.is_error:
            raise PersistenceError(self._error_message(response))

        body = response.json()
        session = self._session_from_payload(body["access_token"], body["user"], body.get("expires_in"))
        logger.info(f"Hosted sign-in: {session.email}")
        self._notify(SessionEvent.SIGNED_IN, session)
        return session

    async def get_current_session(self, access_token: str) -> Optional[AuthSession]:
        response = await self._request(
            "GET",
            "/user",
            headers={"Authorization": f"Bearer {access_token}"},
        )
        if response.status_code in (401, 403):
            self._notify(
                SessionEvent.SESSION_EXPIRED,
                AuthSession(access_token=access_token, user_id=""),
            )
            return None
        if response.is_error:
            raise PersistenceError(self._error_message(response))

        return self._session_from_payload(access_token, response.json())

    async def sign_out(self, access_token: str) -> None:
        response = await self._request(
            "POST",
            "/logout",
            headers={"Authorization": f"Bearer {access_token}"},
        )
        # An already-invalid token is as signed out as it gets
        if response.is_error and response.status_code not in (401, 403, 404):
            raise PersistenceError(self._error_message(response))
        self._notify(SessionEvent.SIGNED_OUT, AuthSession(access_token=access_token, user_id=""))

    async def health_check(self) -> bool:
        try:
            response = await self._client.get("/health")
            return response.status_code == 200
        except httpx.HTTPError as e:
            logger.error(f"Auth health check failed: {e}")
            return False

    async def aclose(self) -> None:
        await self._client.aclose()
