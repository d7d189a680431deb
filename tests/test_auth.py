"""Unit tests for AuthService."""
import sys
sys.path.insert(0, 'backend')

import pytest
from unittest.mock import AsyncMock, MagicMock
from supabase import AuthError

from services.auth import AuthService, UserSession


class RejectedToken(AuthError):
    """AuthError raised by the mocked auth client."""

    def __init__(self, message):
        Exception.__init__(self, message)
        self.message = message


def mock_auth_client(user=None, error=None):
    client = MagicMock()
    if error is not None:
        client.auth.get_user = AsyncMock(side_effect=error)
    else:
        client.auth.get_user = AsyncMock(return_value=MagicMock(user=user))
    client.auth.admin.sign_out = AsyncMock()
    return client


class TestAuthService:
    """Test suite for AuthService."""

    @pytest.mark.asyncio
    async def test_valid_token_resolves_session(self):
        """Test a valid token becomes a UserSession."""
        user = MagicMock(id="user-1", email="pat@example.com")
        service = AuthService(mock_auth_client(user=user))

        session = await service.get_session("jwt-token")

        assert session == UserSession(user_id="user-1", email="pat@example.com", access_token="jwt-token")
        service.client.auth.get_user.assert_awaited_once_with("jwt-token")

    @pytest.mark.asyncio
    async def test_missing_token_has_no_session(self):
        """Test no provider call is made without a token."""
        service = AuthService(mock_auth_client())

        assert await service.get_session(None) is None
        assert await service.get_session("") is None
        service.client.auth.get_user.assert_not_called()

    @pytest.mark.asyncio
    async def test_rejected_token_has_no_session(self):
        """Test an auth error means signed out."""
        service = AuthService(mock_auth_client(error=RejectedToken("invalid JWT")))

        assert await service.get_session("expired") is None

    @pytest.mark.asyncio
    async def test_response_without_user_has_no_session(self):
        """Test an empty user response means signed out."""
        service = AuthService(mock_auth_client(user=None))

        assert await service.get_session("jwt-token") is None

    @pytest.mark.asyncio
    async def test_unexpected_errors_propagate(self):
        """Test non-auth failures are not mistaken for a signed-out user."""
        service = AuthService(mock_auth_client(error=ConnectionError("auth service unreachable")))

        with pytest.raises(ConnectionError):
            await service.get_session("jwt-token")

    @pytest.mark.asyncio
    async def test_sign_out_revokes_token(self):
        """Test sign-out is forwarded to the auth provider."""
        service = AuthService(mock_auth_client())
        session = UserSession(user_id="user-1", email=None, access_token="jwt-token")

        await service.sign_out(session)

        service.client.auth.admin.sign_out.assert_awaited_once_with("jwt-token")
