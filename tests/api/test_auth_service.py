"""
Unit tests for the authentication core.
"""

from unittest.mock import AsyncMock, Mock, call, patch

import pytest

from api.auth import AuthService
from api.database import UserRepository
from api.errors import ErrorKind, Forbidden, NotFound
from api.models import TokenPair, UserCredentials, UserRecord
from api.security import TokenCodec


@pytest.fixture
def mock_users():
    users = AsyncMock(spec=UserRepository)
    users.get_user_by_name.return_value = UserRecord(
        id="user-id-123",
        name="usuario123",
        password_hash="$2b$10$hashedPassword",
    )
    return users


@pytest.fixture
def mock_codecs():
    """Access and refresh codecs sharing one parent mock so call order is observable."""
    parent = Mock()
    parent.refresh = Mock(spec=TokenCodec)
    parent.refresh.encode.return_value = "mock-refresh-token"
    parent.access = Mock(spec=TokenCodec)
    parent.access.encode.return_value = "mock-access-token"
    return parent


@pytest.fixture
def auth_service(mock_users, mock_codecs):
    return AuthService(mock_users, mock_users, mock_codecs.access, mock_codecs.refresh)


@pytest.fixture
def credentials():
    return UserCredentials(name="usuario123", password="senha123")


class TestSignin:
    """Test cases for AuthService.signin."""

    @pytest.mark.asyncio
    async def test_signin_success(self, auth_service, mock_users, mock_codecs, credentials):
        with patch("api.auth.verify_password", return_value=True) as mock_verify:
            result = await auth_service.signin(credentials)

        mock_users.get_user_by_name.assert_awaited_once_with("usuario123")
        mock_verify.assert_called_once_with("senha123", "$2b$10$hashedPassword")
        mock_users.update_refresh_token.assert_awaited_once_with("user-id-123", "mock-refresh-token")
        assert result == TokenPair(access_token="mock-access-token", refresh_token="mock-refresh-token")

    @pytest.mark.asyncio
    async def test_signin_issues_refresh_before_access(self, auth_service, mock_codecs, credentials):
        with patch("api.auth.verify_password", return_value=True):
            await auth_service.signin(credentials)

        assert mock_codecs.mock_calls == [
            call.refresh.encode("user-id-123"),
            call.access.encode("user-id-123"),
        ]

    @pytest.mark.asyncio
    async def test_signin_unknown_user_short_circuits(self, auth_service, mock_users, mock_codecs, credentials):
        """Unknown names never reach the hasher, the codecs or the store."""
        mock_users.get_user_by_name.return_value = None

        with patch("api.auth.verify_password") as mock_verify:
            with pytest.raises(NotFound) as exc_info:
                await auth_service.signin(credentials)

        assert exc_info.value.kind == ErrorKind.NOT_FOUND
        assert exc_info.value.status_code == 404
        assert exc_info.value.message == "Usuário não encontrado"
        mock_verify.assert_not_called()
        mock_codecs.refresh.encode.assert_not_called()
        mock_codecs.access.encode.assert_not_called()
        mock_users.update_refresh_token.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_signin_wrong_password(self, auth_service, mock_users, mock_codecs, credentials):
        with patch("api.auth.verify_password", return_value=False):
            with pytest.raises(Forbidden) as exc_info:
                await auth_service.signin(credentials)

        assert exc_info.value.status_code == 403
        assert exc_info.value.message == "Usuário ou senha incorretos"
        mock_codecs.refresh.encode.assert_not_called()
        mock_codecs.access.encode.assert_not_called()
        mock_users.update_refresh_token.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_signin_with_real_hash(self, mock_users, token_codecs, credentials):
        """End to end through bcrypt and PyJWT: the stored token is the returned one."""
        from api.security import hash_password

        mock_users.get_user_by_name.return_value = UserRecord(
            id="user-id-123", name="usuario123", password_hash=hash_password("senha123")
        )
        access, refresh = token_codecs
        service = AuthService(mock_users, mock_users, access, refresh)

        tokens = await service.signin(credentials)

        assert access.decode(tokens.access_token).sub == "user-id-123"
        assert refresh.decode(tokens.refresh_token).sub == "user-id-123"
        mock_users.update_refresh_token.assert_awaited_once_with("user-id-123", tokens.refresh_token)

    @pytest.mark.asyncio
    async def test_store_errors_propagate(self, auth_service, mock_users, credentials):
        mock_users.update_refresh_token.side_effect = RuntimeError("connection lost")

        with patch("api.auth.verify_password", return_value=True):
            with pytest.raises(RuntimeError, match="connection lost"):
                await auth_service.signin(credentials)

        mock_users.update_refresh_token.assert_awaited_once()


class TestGuestTokens:
    """Test cases for AuthService.generate_tokens_for_guest."""

    @pytest.mark.asyncio
    async def test_generate_tokens_for_guest(self, auth_service, mock_users, mock_codecs):
        result = await auth_service.generate_tokens_for_guest("guest-user-id-123")

        assert mock_codecs.mock_calls == [
            call.refresh.encode("guest-user-id-123"),
            call.access.encode("guest-user-id-123"),
        ]
        mock_users.update_refresh_token.assert_awaited_once_with("guest-user-id-123", "mock-refresh-token")
        mock_users.get_user_by_name.assert_not_awaited()
        assert result.access_token == "mock-access-token"
        assert result.refresh_token == "mock-refresh-token"


class TestLogout:
    """Test cases for AuthService.logout."""

    @pytest.mark.asyncio
    async def test_logout_clears_refresh_token(self, auth_service, mock_users):
        result = await auth_service.logout("user-id-123")

        mock_users.remove_refresh_token.assert_awaited_once_with("user-id-123")
        assert result == {"message": "Logout realizado com sucesso"}

    @pytest.mark.asyncio
    async def test_logout_twice_is_not_an_error(self, user_repository, token_codecs):
        access, refresh = token_codecs
        user = await user_repository.create_user("usuario123", "hash")
        service = AuthService(user_repository, user_repository, access, refresh)
        await service.generate_tokens_for_guest(user.id)

        await service.logout(user.id)
        result = await service.logout(user.id)

        assert result == {"message": "Logout realizado com sucesso"}
        assert user_repository.users[user.id].refresh_token is None
