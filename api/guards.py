"""
Request guards for protected and refresh routes.

Both guards verify on every request: there is no cache of verified tokens,
so a token for a deleted user or a revoked refresh token is refused at once.
"""

from typing import Optional

import structlog

from api.auth import TokenStore, UserLookup
from api.errors import (
    EXPIRED_REFRESH_TOKEN,
    EXPIRED_TOKEN,
    INVALID_ACCESS,
    INVALID_REFRESH_TOKEN,
    INVALID_TOKEN,
    Unauthorized,
)
from api.models import Caller
from api.security import ExpiredTokenError, InvalidTokenError, MissingClaimError, TokenCodec

logger = structlog.get_logger(__name__)

BEARER_PREFIX = "Bearer "


class AccessGuard:
    """Resolves an ``Authorization`` header to a caller."""

    def __init__(self, access_tokens: TokenCodec, users: UserLookup):
        self.access_tokens = access_tokens
        self.users = users

    async def authenticate(self, authorization: Optional[str]) -> Caller:
        """
        Validate an access token header.

        A header without the ``Bearer`` prefix is verified as-is and fails
        signature verification like any other garbage token.

        Raises:
            Unauthorized: missing header, bad or expired token, unknown user
        """
        if not authorization:
            raise self._reject(INVALID_ACCESS, "missing_header")

        token = authorization.replace(BEARER_PREFIX, "", 1)
        if not token:
            raise self._reject(INVALID_ACCESS, "empty_token")

        try:
            claims = self.access_tokens.decode(token)
        except ExpiredTokenError:
            raise self._reject(EXPIRED_TOKEN, "expired_token")
        except InvalidTokenError:
            raise self._reject(INVALID_TOKEN, "invalid_token")
        except MissingClaimError:
            raise self._reject(INVALID_ACCESS, "missing_subject")

        user = await self.users.get_user_by_id(claims.sub)
        if not user:
            raise self._reject(INVALID_ACCESS, "unknown_user")

        return Caller(user_id=claims.sub)

    @staticmethod
    def _reject(message: str, reason: str) -> Unauthorized:
        logger.warning("Access token rejected", reason=reason)
        return Unauthorized(message)


class RefreshGuard:
    """Checks a refresh token cookie against the stored token and mints a new access token."""

    def __init__(self, access_tokens: TokenCodec, refresh_tokens: TokenCodec, token_store: TokenStore):
        self.access_tokens = access_tokens
        self.refresh_tokens = refresh_tokens
        self.token_store = token_store

    async def authenticate(self, refresh_token: Optional[str]) -> Caller:
        """
        Validate a refresh token and issue a replacement access token.

        The refresh token itself is left untouched.

        Raises:
            Unauthorized: missing, bad, expired, revoked or mismatched token
        """
        if not refresh_token:
            raise self._reject(INVALID_ACCESS, "missing_cookie")

        try:
            claims = self.refresh_tokens.decode(refresh_token)
        except ExpiredTokenError:
            raise self._reject(EXPIRED_REFRESH_TOKEN, "expired_token")
        except InvalidTokenError:
            raise self._reject(INVALID_REFRESH_TOKEN, "invalid_token")
        except MissingClaimError:
            raise self._reject(INVALID_ACCESS, "missing_subject")

        # lookup by stored value, not by subject: cleared or replaced tokens miss here
        user = await self.token_store.get_user_by_refresh_token(refresh_token)
        if not user:
            raise self._reject(INVALID_ACCESS, "revoked_token")
        if user.id != claims.sub:
            raise self._reject(INVALID_ACCESS, "subject_mismatch")

        access_token = self.access_tokens.encode(user.id)
        logger.info("Access token refreshed", user_id=user.id)
        return Caller(user_id=user.id, access_token=access_token)

    @staticmethod
    def _reject(message: str, reason: str) -> Unauthorized:
        logger.warning("Refresh token rejected", reason=reason)
        return Unauthorized(message)
