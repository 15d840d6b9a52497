"""
MongoDB persistence for users, refresh tokens and books.

Every operation is a single-document read or update, so the store's own
atomicity is the only concurrency control the service relies on.
"""

from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

import structlog
from bson import ObjectId
from bson.errors import InvalidId
from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorDatabase
from pymongo import ReturnDocument
from pymongo.errors import ConnectionFailure

from api.models import BookResponse, UserRecord

logger = structlog.get_logger(__name__)


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _to_object_id(user_id: str) -> Optional[ObjectId]:
    try:
        return ObjectId(user_id)
    except (InvalidId, TypeError):
        return None


class MongoDBManager:
    """
    Async MongoDB manager.
    Handles connection, indexing and health checks.
    """

    def __init__(self, connection_url: str, database_name: str):
        """
        Initialize MongoDB manager.

        Args:
            connection_url: MongoDB connection URL
            database_name: Name of the database
        """
        self.connection_url = connection_url
        self.database_name = database_name
        self.client: Optional[AsyncIOMotorClient] = None
        self.database: Optional[AsyncIOMotorDatabase] = None

    async def connect(self) -> None:
        """Establish connection to MongoDB."""
        try:
            self.client = AsyncIOMotorClient(self.connection_url)
            self.database = self.client[self.database_name]

            # Test connection
            await self.client.admin.command('ping')
            logger.info("Successfully connected to MongoDB", database=self.database_name)

            await self._create_indexes()

        except ConnectionFailure as e:
            logger.error("Failed to connect to MongoDB", error=str(e))
            raise

    async def disconnect(self) -> None:
        """Close MongoDB connection."""
        if self.client:
            self.client.close()
            logger.info("Disconnected from MongoDB")

    async def _create_indexes(self) -> None:
        """Create indexes backing the uniqueness rules and common lookups."""
        try:
            # One account per name
            await self.database.users.create_index("name", unique=True)

            # Refresh token lookup during /auth/refresh
            await self.database.users.create_index("refresh_token", sparse=True)

            # One copy of an ISBN per user
            await self.database.books.create_index([("isbn", 1), ("user_id", 1)], unique=True)

            # Catalog listing, newest first
            await self.database.books.create_index([("user_id", 1), ("created_at", -1)])

            logger.info("Successfully created MongoDB indexes")

        except Exception as e:
            logger.error("Failed to create indexes", error=str(e))
            raise

    async def health_check(self) -> Dict:
        """
        Perform database health check.

        Returns:
            Dictionary with health status
        """
        try:
            await self.database.command("ping")
            users_count = await self.database.users.count_documents({})
            books_count = await self.database.books.count_documents({})

            return {
                "status": "healthy",
                "users_count": users_count,
                "books_count": books_count
            }
        except Exception as e:
            logger.error("Database health check failed", error=str(e))
            return {
                "status": "unhealthy",
                "error": str(e)
            }


class UserRepository:
    """
    User persistence.

    Implements both collaborator capabilities the auth core needs: looking
    users up by name or id, and storing/clearing the current refresh token.
    """

    def __init__(self, database: AsyncIOMotorDatabase):
        self.database = database
        self.collection = database.users

    @staticmethod
    def _to_record(doc: Optional[Dict[str, Any]]) -> Optional[UserRecord]:
        if not doc:
            return None
        return UserRecord(
            id=str(doc["_id"]),
            name=doc["name"],
            password_hash=doc["password"],
            refresh_token=doc.get("refresh_token"),
            created_at=doc.get("created_at"),
            updated_at=doc.get("updated_at"),
        )

    async def create_user(self, name: str, password_hash: str) -> UserRecord:
        """
        Insert a new user.

        Raises:
            pymongo.errors.DuplicateKeyError: if the name is taken
        """
        now = _now()
        doc = {
            "name": name,
            "password": password_hash,
            "refresh_token": None,
            "created_at": now,
            "updated_at": now,
        }
        result = await self.collection.insert_one(doc)
        doc["_id"] = result.inserted_id
        logger.debug("User created", user_id=str(result.inserted_id))
        return self._to_record(doc)

    async def get_user_by_id(self, user_id: str) -> Optional[UserRecord]:
        object_id = _to_object_id(user_id)
        if object_id is None:
            return None
        return self._to_record(await self.collection.find_one({"_id": object_id}))

    async def get_user_by_name(self, name: str) -> Optional[UserRecord]:
        return self._to_record(await self.collection.find_one({"name": name}))

    async def get_user_by_refresh_token(self, refresh_token: str) -> Optional[UserRecord]:
        return self._to_record(await self.collection.find_one({"refresh_token": refresh_token}))

    async def update_refresh_token(self, user_id: str, refresh_token: str) -> None:
        """Store the user's refresh token, replacing any previous one."""
        await self.collection.update_one(
            {"_id": ObjectId(user_id)},
            {"$set": {"refresh_token": refresh_token, "updated_at": _now()}},
        )

    async def remove_refresh_token(self, user_id: str) -> None:
        """Clear the user's refresh token. A no-op when none is stored."""
        await self.collection.update_one(
            {"_id": ObjectId(user_id)},
            {"$set": {"refresh_token": None, "updated_at": _now()}},
        )


class BookRepository:
    """Per-user book persistence keyed by (isbn, user_id)."""

    projection = {"_id": 0, "user_id": 0}

    def __init__(self, database: AsyncIOMotorDatabase):
        self.database = database
        self.collection = database.books

    @staticmethod
    def _to_book(doc: Optional[Dict[str, Any]]) -> Optional[BookResponse]:
        if not doc:
            return None
        return BookResponse(**doc)

    async def create_book(self, user_id: str, data: Dict[str, Any]) -> BookResponse:
        now = _now()
        doc = {
            **data,
            "user_id": user_id,
            "is_favorite": False,
            "created_at": now,
            "updated_at": now,
        }
        await self.collection.insert_one(doc)
        return self._to_book(doc)

    async def get_book(self, isbn: str, user_id: str) -> Optional[BookResponse]:
        doc = await self.collection.find_one({"isbn": isbn, "user_id": user_id}, self.projection)
        return self._to_book(doc)

    async def list_books(self, user_id: str) -> List[BookResponse]:
        cursor = self.collection.find({"user_id": user_id}, self.projection).sort("created_at", -1)
        docs = await cursor.to_list(length=None)
        return [self._to_book(doc) for doc in docs]

    async def update_book(self, isbn: str, user_id: str, data: Dict[str, Any]) -> Optional[BookResponse]:
        doc = await self.collection.find_one_and_update(
            {"isbn": isbn, "user_id": user_id},
            {"$set": {**data, "updated_at": _now()}},
            projection=self.projection,
            return_document=ReturnDocument.AFTER,
        )
        return self._to_book(doc)

    async def delete_book(self, isbn: str, user_id: str) -> bool:
        result = await self.collection.delete_one({"isbn": isbn, "user_id": user_id})
        return result.deleted_count > 0

    async def set_favorite(self, isbn: str, user_id: str, is_favorite: bool) -> Optional[BookResponse]:
        doc = await self.collection.find_one_and_update(
            {"isbn": isbn, "user_id": user_id},
            {"$set": {"is_favorite": is_favorite, "updated_at": _now()}},
            projection=self.projection,
            return_document=ReturnDocument.AFTER,
        )
        return self._to_book(doc)
