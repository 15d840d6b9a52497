"""
Pytest configuration and shared fixtures.
"""

from datetime import datetime, timezone
from typing import Dict, List, Optional

import pytest
from bson import ObjectId
from fastapi.testclient import TestClient
from pymongo.errors import DuplicateKeyError

from api.config import APIConfig
from api.main import create_app
from api.models import BookResponse, UserRecord
from api.security import build_token_codecs

TEST_USER = {"name": "aaaaaa11", "password": "aaaaaa11"}


class InMemoryUserRepository:
    """Dict-backed stand-in for UserRepository with the same contract."""

    def __init__(self):
        self.users: Dict[str, UserRecord] = {}

    async def create_user(self, name: str, password_hash: str) -> UserRecord:
        if any(user.name == name for user in self.users.values()):
            raise DuplicateKeyError(f"E11000 duplicate key error: name {name}")
        now = datetime.now(timezone.utc)
        user = UserRecord(
            id=str(ObjectId()),
            name=name,
            password_hash=password_hash,
            refresh_token=None,
            created_at=now,
            updated_at=now,
        )
        self.users[user.id] = user
        return user

    async def get_user_by_id(self, user_id: str) -> Optional[UserRecord]:
        return self.users.get(user_id)

    async def get_user_by_name(self, name: str) -> Optional[UserRecord]:
        return next((user for user in self.users.values() if user.name == name), None)

    async def get_user_by_refresh_token(self, refresh_token: str) -> Optional[UserRecord]:
        return next(
            (user for user in self.users.values() if user.refresh_token == refresh_token),
            None,
        )

    async def update_refresh_token(self, user_id: str, refresh_token: str) -> None:
        if user_id in self.users:
            self.users[user_id].refresh_token = refresh_token

    async def remove_refresh_token(self, user_id: str) -> None:
        if user_id in self.users:
            self.users[user_id].refresh_token = None


class InMemoryBookRepository:
    """Dict-backed stand-in for BookRepository with the same contract."""

    def __init__(self):
        self.books: Dict[tuple, dict] = {}

    async def create_book(self, user_id: str, data: dict) -> BookResponse:
        key = (data["isbn"], user_id)
        if key in self.books:
            raise DuplicateKeyError("E11000 duplicate key error: isbn_user_id")
        now = datetime.now(timezone.utc)
        self.books[key] = {**data, "is_favorite": False, "created_at": now, "updated_at": now}
        return BookResponse(**self.books[key])

    async def get_book(self, isbn: str, user_id: str) -> Optional[BookResponse]:
        doc = self.books.get((isbn, user_id))
        return BookResponse(**doc) if doc else None

    async def list_books(self, user_id: str) -> List[BookResponse]:
        docs = [doc for (_, owner), doc in self.books.items() if owner == user_id]
        docs.sort(key=lambda doc: doc["created_at"], reverse=True)
        return [BookResponse(**doc) for doc in docs]

    async def update_book(self, isbn: str, user_id: str, data: dict) -> Optional[BookResponse]:
        doc = self.books.get((isbn, user_id))
        if not doc:
            return None
        doc.update(data, updated_at=datetime.now(timezone.utc))
        return BookResponse(**doc)

    async def delete_book(self, isbn: str, user_id: str) -> bool:
        return self.books.pop((isbn, user_id), None) is not None

    async def set_favorite(self, isbn: str, user_id: str, is_favorite: bool) -> Optional[BookResponse]:
        return await self.update_book(isbn, user_id, {"is_favorite": is_favorite})


@pytest.fixture
def api_config():
    """Configuration with distinct test secrets."""
    return APIConfig(
        access_token_secret="test-access-secret",
        refresh_token_secret="test-refresh-secret",
        mongodb_url="mongodb://localhost:27017",
        mongodb_database="bookstack_test",
        log_level="WARNING",
    )


@pytest.fixture
def token_codecs(api_config):
    """(access, refresh) codecs built from the test configuration."""
    return build_token_codecs(api_config)


@pytest.fixture
def user_repository():
    return InMemoryUserRepository()


@pytest.fixture
def book_repository():
    return InMemoryBookRepository()


@pytest.fixture
def app(api_config, user_repository, book_repository):
    return create_app(api_config, user_repository=user_repository, book_repository=book_repository)


@pytest.fixture
def client(app):
    """Create test client."""
    return TestClient(app)


def extract_refresh_token(response) -> str:
    """Pull the refresh token value out of a Set-Cookie header."""
    set_cookie = response.headers["set-cookie"]
    return set_cookie.split("refreshToken=")[1].split(";")[0]


def create_test_user(client, user_data=None):
    user_data = user_data or dict(TEST_USER)
    response = client.post("/user/signup", json=user_data)
    return user_data, response


def signin_test_user(client, user_data=None):
    user_data, _ = create_test_user(client, user_data)
    return client.post("/auth/signin", json=user_data)
