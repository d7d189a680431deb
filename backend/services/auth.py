"""Session lookup and sign-out through Supabase Auth."""
import logging
from dataclasses import dataclass
from typing import Optional

from supabase import AsyncClient, AuthError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class UserSession:
    """An authenticated user and the access token that proved it."""
    user_id: str
    email: Optional[str]
    access_token: str


class AuthService:
    """Resolves bearer tokens to sessions; the pipelines only run for a session."""

    def __init__(self, client: AsyncClient):
        self.client = client
        logger.info("AuthService initialized with Supabase")

    async def get_session(self, access_token: Optional[str]) -> Optional[UserSession]:
        """
        Validate an access token.

        Args:
            access_token: JWT issued by Supabase Auth

        Returns:
            UserSession, or None when the token is missing, expired or invalid
        """
        if not access_token:
            return None

        try:
            response = await self.client.auth.get_user(access_token)
        except AuthError as e:
            logger.info(f"Rejected access token: {e}")
            return None

        if response is None or response.user is None:
            return None

        user = response.user
        return UserSession(user_id=str(user.id), email=user.email, access_token=access_token)

    async def sign_out(self, session: UserSession) -> None:
        """
        Revoke the session's refresh tokens at the auth provider.

        Raises:
            AuthError: If the provider rejects the sign-out
        """
        await self.client.auth.admin.sign_out(session.access_token)
        logger.info(f"Signed out user {session.user_id}")
