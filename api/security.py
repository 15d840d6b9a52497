"""
Security helpers:
- JWT creation/verification via PyJWT
- bcrypt password hashing
"""

import uuid
from datetime import datetime, timedelta, timezone
from typing import Tuple

import bcrypt
import jwt
from pydantic import ValidationError

from api.config import APIConfig
from api.models import TokenClaims

BCRYPT_ROUNDS = 10
BCRYPT_MAX_BYTES = 72


class TokenError(Exception):
    """Base class for token verification failures."""


class ExpiredTokenError(TokenError):
    """Signature is valid but the token is past its expiry."""


class InvalidTokenError(TokenError):
    """Token is malformed or its signature does not verify."""


class MissingClaimError(TokenError):
    """Token verified but does not carry a usable subject."""


class TokenCodec:
    """
    Signs and verifies tokens for one purpose (access or refresh).

    Each purpose has its own secret and lifetime, so a token minted by one codec
    never verifies against the other.
    """

    def __init__(self, secret: str, lifetime: timedelta, algorithm: str = "HS256"):
        self.secret = secret
        self.lifetime = lifetime
        self.algorithm = algorithm

    def encode(self, subject: str) -> str:
        """
        Create a signed token for a subject.

        Args:
            subject: User identifier carried in the ``sub`` claim

        Returns:
            Compact JWT string
        """
        now = datetime.now(timezone.utc)
        payload = {
            "sub": str(subject),
            "iat": int(now.timestamp()),
            "exp": int((now + self.lifetime).timestamp()),
            "jti": uuid.uuid4().hex,
        }
        return jwt.encode(payload, self.secret, algorithm=self.algorithm)

    def decode(self, token: str) -> TokenClaims:
        """
        Verify a token and return its claims.

        Raises:
            ExpiredTokenError: signature valid, token expired
            InvalidTokenError: bad signature, bad format or wrong secret
            MissingClaimError: verified payload has no subject
        """
        try:
            payload = jwt.decode(
                token,
                self.secret,
                algorithms=[self.algorithm],
                options={"require": ["exp"]},
            )
        except jwt.ExpiredSignatureError as e:
            raise ExpiredTokenError(str(e)) from e
        except jwt.InvalidTokenError as e:
            raise InvalidTokenError(str(e)) from e

        try:
            return TokenClaims(**payload)
        except ValidationError as e:
            raise MissingClaimError("token has no subject") from e


def build_token_codecs(config: APIConfig) -> Tuple[TokenCodec, TokenCodec]:
    """Create the (access, refresh) codec pair from configuration."""
    access = TokenCodec(
        config.access_token_secret,
        timedelta(minutes=config.access_token_expire_minutes),
        config.jwt_algorithm,
    )
    refresh = TokenCodec(
        config.refresh_token_secret,
        timedelta(days=config.refresh_token_expire_days),
        config.jwt_algorithm,
    )
    return access, refresh


def _password_bytes(password: str) -> bytes:
    # bcrypt only looks at the first 72 bytes
    return password.encode("utf-8")[:BCRYPT_MAX_BYTES]


def hash_password(password: str) -> str:
    """Hash a password using bcrypt."""
    hashed = bcrypt.hashpw(_password_bytes(password), bcrypt.gensalt(rounds=BCRYPT_ROUNDS))
    return hashed.decode("utf-8")


def verify_password(password: str, password_hash: str) -> bool:
    """Verify a password against a stored hash."""
    try:
        return bcrypt.checkpw(_password_bytes(password), password_hash.encode("utf-8"))
    except (ValueError, TypeError, AttributeError):
        return False
