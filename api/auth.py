"""
Authentication core: signin, guest token issuance and logout.

The service owns the rule that a user has at most one live refresh token:
every issuance overwrites the stored value and logout clears it.
"""

from typing import Dict, Optional, Protocol

import structlog

from api.errors import Forbidden, NotFound, USER_NOT_FOUND, WRONG_CREDENTIALS
from api.models import TokenPair, UserCredentials, UserRecord
from api.security import TokenCodec, verify_password

logger = structlog.get_logger(__name__)


class UserLookup(Protocol):
    """Finds users by name or identifier."""

    async def get_user_by_id(self, user_id: str) -> Optional[UserRecord]: ...

    async def get_user_by_name(self, name: str) -> Optional[UserRecord]: ...


class TokenStore(Protocol):
    """Persists the single current refresh token of each user."""

    async def get_user_by_refresh_token(self, refresh_token: str) -> Optional[UserRecord]: ...

    async def update_refresh_token(self, user_id: str, refresh_token: str) -> None: ...

    async def remove_refresh_token(self, user_id: str) -> None: ...


class AuthService:
    """Credential verification and token issuance."""

    def __init__(
        self,
        users: UserLookup,
        token_store: TokenStore,
        access_tokens: TokenCodec,
        refresh_tokens: TokenCodec,
    ):
        self.users = users
        self.token_store = token_store
        self.access_tokens = access_tokens
        self.refresh_tokens = refresh_tokens

    async def signin(self, credentials: UserCredentials) -> TokenPair:
        """
        Verify a name/password pair and issue a token pair.

        Args:
            credentials: Name and plain text password

        Returns:
            TokenPair whose refresh half is now the user's stored token

        Raises:
            NotFound: no user with that name
            Forbidden: password does not match
        """
        user = await self.users.get_user_by_name(credentials.name)
        if not user:
            logger.warning("Signin rejected", reason="unknown_user")
            raise NotFound(USER_NOT_FOUND)

        if not verify_password(credentials.password, user.password_hash):
            logger.warning("Signin rejected", reason="wrong_password", user_id=user.id)
            raise Forbidden(WRONG_CREDENTIALS)

        tokens = await self._issue_tokens(user.id)
        logger.info("User signed in", user_id=user.id)
        return tokens

    async def generate_tokens_for_guest(self, user_id: str) -> TokenPair:
        """Issue a token pair for a freshly created guest, skipping credential checks."""
        tokens = await self._issue_tokens(user_id)
        logger.info("Guest tokens issued", user_id=user_id)
        return tokens

    async def logout(self, user_id: str) -> Dict[str, str]:
        """Revoke the caller's refresh token."""
        await self.token_store.remove_refresh_token(user_id)
        logger.info("User logged out", user_id=user_id)
        return {"message": "Logout realizado com sucesso"}

    async def _issue_tokens(self, user_id: str) -> TokenPair:
        # refresh is signed and persisted before the access token is minted
        refresh_token = self.refresh_tokens.encode(user_id)
        await self.token_store.update_refresh_token(user_id, refresh_token)
        access_token = self.access_tokens.encode(user_id)
        return TokenPair(access_token=access_token, refresh_token=refresh_token)
