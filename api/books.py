"""
Per-user book catalog.
"""

from typing import Any, Dict

import structlog
from pymongo.errors import DuplicateKeyError

from api.database import BookRepository
from api.errors import BOOK_EXISTS, BOOK_NOT_FOUND, Conflict, NotFound
from api.models import BookCreate, BookResponse, BookUpdate

logger = structlog.get_logger(__name__)


def _serialize(book: BookResponse) -> Dict[str, Any]:
    return book.model_dump(by_alias=True)


class BookService:
    """CRUD and favorites over the caller's own books."""

    def __init__(self, books: BookRepository):
        self.books = books

    async def _require_book(self, isbn: str, user_id: str) -> BookResponse:
        book = await self.books.get_book(isbn, user_id)
        if not book:
            raise NotFound(BOOK_NOT_FOUND)
        return book

    async def get_book(self, isbn: str, user_id: str) -> Dict[str, Any]:
        return _serialize(await self._require_book(isbn, user_id))

    async def list_books(self, user_id: str) -> Dict[str, Any]:
        books = await self.books.list_books(user_id)
        return {"data": [_serialize(book) for book in books]}

    async def create_book(self, data: BookCreate, user_id: str) -> Dict[str, Any]:
        """
        Add a book to the caller's catalog.

        Raises:
            Conflict: the caller already has a book with this ISBN
        """
        if await self.books.get_book(data.isbn, user_id):
            raise Conflict(BOOK_EXISTS)

        try:
            await self.books.create_book(user_id, data.model_dump())
        except DuplicateKeyError as e:
            raise Conflict(BOOK_EXISTS) from e

        logger.info("Book created", isbn=data.isbn, user_id=user_id)
        return {"message": "Livro adicionado com sucesso"}

    async def update_book(self, isbn: str, user_id: str, data: BookUpdate) -> Dict[str, Any]:
        await self._require_book(isbn, user_id)
        book = await self.books.update_book(isbn, user_id, data.model_dump())
        if not book:
            raise NotFound(BOOK_NOT_FOUND)

        logger.info("Book updated", isbn=isbn, user_id=user_id)
        return {"data": _serialize(book), "message": "Livro atualizado com sucesso"}

    async def delete_book(self, isbn: str, user_id: str) -> Dict[str, Any]:
        await self._require_book(isbn, user_id)
        await self.books.delete_book(isbn, user_id)

        logger.info("Book deleted", isbn=isbn, user_id=user_id)
        return {"message": "Livro removido com sucesso"}

    async def toggle_favorite(self, isbn: str, user_id: str) -> Dict[str, Any]:
        book = await self._require_book(isbn, user_id)
        updated = await self.books.set_favorite(isbn, user_id, not book.is_favorite)
        if not updated:
            raise NotFound(BOOK_NOT_FOUND)

        if updated.is_favorite:
            message = "Livro adicionado aos favoritos com sucesso"
        else:
            message = "Livro removido dos favoritos"
        return {"data": {"isbn": isbn, "isFavorite": updated.is_favorite}, "message": message}
