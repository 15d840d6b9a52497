"""
User accounts: lookup, signup and guest account creation.

Guest creation needs both a new user record and a token pair, so it lives here
and calls into the auth core; the auth core never calls back into this module.
"""

import uuid
from typing import Dict, Optional

import structlog
from pymongo.errors import DuplicateKeyError

from api.auth import AuthService
from api.database import UserRepository
from api.errors import Conflict, NotFound, USER_EXISTS, USER_NOT_FOUND
from api.models import TokenPair, UserCredentials, UserRecord
from api.security import hash_password

logger = structlog.get_logger(__name__)

GUEST_PREFIX = "guest_"
GUEST_PASSWORD_LENGTH = 16


def generate_guest_name() -> str:
    """``guest_`` followed by the last segment of a random uuid4."""
    return GUEST_PREFIX + str(uuid.uuid4()).split("-")[-1]


def generate_guest_password() -> str:
    return str(uuid.uuid4()).replace("-", "")[:GUEST_PASSWORD_LENGTH]


class UserService:
    """User account operations."""

    def __init__(self, users: UserRepository, auth: AuthService):
        self.users = users
        self.auth = auth

    async def get_user_by_id(self, user_id: str) -> UserRecord:
        user = await self.users.get_user_by_id(user_id)
        if not user:
            raise NotFound(USER_NOT_FOUND)
        return user

    async def get_user_by_name(self, name: str, required: bool = True) -> Optional[UserRecord]:
        user = await self.users.get_user_by_name(name)
        if not user and required:
            raise NotFound(USER_NOT_FOUND)
        return user

    async def signup(self, credentials: UserCredentials) -> Dict[str, str]:
        """
        Create a user from a name/password pair.

        Raises:
            Conflict: the name is already taken
        """
        existing = await self.get_user_by_name(credentials.name, required=False)
        if existing:
            raise Conflict(USER_EXISTS)

        try:
            user = await self.users.create_user(credentials.name, hash_password(credentials.password))
        except DuplicateKeyError as e:
            raise Conflict(USER_EXISTS) from e

        logger.info("User signed up", user_id=user.id)
        return {"message": "Usuário criado com sucesso"}

    async def create_guest_account(self) -> TokenPair:
        """
        Create a guest user with random credentials and sign it in.

        A name collision is not retried; the store error propagates.
        """
        name = generate_guest_name()
        password_hash = hash_password(generate_guest_password())

        user = await self.users.create_user(name, password_hash)
        logger.info("Guest account created", user_id=user.id)

        return await self.auth.generate_tokens_for_guest(user.id)
