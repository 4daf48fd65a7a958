# =============================================================================
# arwords_core/auth/identity.py
# Identity Provider Contract and Supabase Implementation
# =============================================================================

from __future__ import annotations
from dataclasses import dataclass
from typing import Optional, Protocol, runtime_checkable

from supabase import AsyncClient, AuthError

from arwords_core.errors import AuthenticationError
from arwords_core.logging import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class AuthSession:
    """The signed-in user as seen by the core."""
    user_id: str
    email: Optional[str] = None
    access_token: Optional[str] = None


@runtime_checkable
class IdentityProvider(Protocol):
    """Source of the current user id; sign-in flows stay with the provider."""

    async def current_user_id(self) -> Optional[str]: ...

    async def sign_in(self, email: str, password: str) -> AuthSession: ...

    async def sign_up(self, email: str, password: str) -> AuthSession: ...

    async def sign_out(self) -> None: ...

    async def delete_account(self, user_id: str) -> None: ...


class SupabaseIdentity:
    """IdentityProvider backed by Supabase Auth."""

    def __init__(self, client: AsyncClient):
        self.client = client

    async def current_user_id(self) -> Optional[str]:
        try:
            session = await self.client.auth.get_session()
        except AuthError as e:
            logger.debug(f"No active session: {e}")
            return None
        if session is None or session.user is None:
            return None
        return session.user.id

    @staticmethod
    def _to_session(response, action: str) -> AuthSession:
        user = getattr(response, "user", None)
        if user is None:
            raise AuthenticationError(f"{action} returned no user")
        session = getattr(response, "session", None)
        return AuthSession(
            user_id=user.id,
            email=user.email,
            access_token=session.access_token if session else None,
        )

    async def sign_in(self, email: str, password: str) -> AuthSession:
        try:
            response = await self.client.auth.sign_in_with_password(
                {"email": email, "password": password}
            )
        except AuthError as e:
            raise AuthenticationError(f"Sign-in failed: {e.message}") from e
        return self._to_session(response, "Sign-in")

    async def sign_up(self, email: str, password: str) -> AuthSession:
        try:
            response = await self.client.auth.sign_up({"email": email, "password": password})
        except AuthError as e:
            raise AuthenticationError(f"Registration failed: {e.message}") from e
        return self._to_session(response, "Registration")

    async def sign_out(self) -> None:
        try:
            await self.client.auth.sign_out()
        except AuthError as e:
            raise AuthenticationError(f"Sign-out failed: {e.message}") from e

    async def delete_account(self, user_id: str) -> None:
        """Delete the auth user; requires a service-role key."""
        try:
            await self.client.auth.admin.delete_user(user_id)
        except AuthError as e:
            raise AuthenticationError(f"Account deletion failed: {e.message}") from e
