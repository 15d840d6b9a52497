"""
Domain error taxonomy.

Services and guards raise ``AppError`` subclasses tagged with an ``ErrorKind``.
The exception handlers registered in ``api.main`` are the only place where a
kind is turned into an HTTP response.
"""

from enum import Enum


class ErrorKind(str, Enum):
    """Error categories and the HTTP status each one maps to."""
    VALIDATION = "validation"
    UNAUTHORIZED = "unauthorized"
    FORBIDDEN = "forbidden"
    NOT_FOUND = "not_found"
    CONFLICT = "conflict"
    INTERNAL = "internal"

    @property
    def status_code(self) -> int:
        return _STATUS_CODES[self]


_STATUS_CODES = {
    ErrorKind.VALIDATION: 400,
    ErrorKind.UNAUTHORIZED: 401,
    ErrorKind.FORBIDDEN: 403,
    ErrorKind.NOT_FOUND: 404,
    ErrorKind.CONFLICT: 409,
    ErrorKind.INTERNAL: 500,
}


class AppError(Exception):
    """Base class for errors that carry a user-facing message."""

    kind: ErrorKind = ErrorKind.INTERNAL

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    @property
    def status_code(self) -> int:
        return self.kind.status_code

    def __repr__(self):
        return f"{type(self).__name__}({self.message!r})"


class ValidationFailed(AppError):
    kind = ErrorKind.VALIDATION


class Unauthorized(AppError):
    kind = ErrorKind.UNAUTHORIZED


class Forbidden(AppError):
    kind = ErrorKind.FORBIDDEN


class NotFound(AppError):
    kind = ErrorKind.NOT_FOUND


class Conflict(AppError):
    kind = ErrorKind.CONFLICT


class InternalError(AppError):
    kind = ErrorKind.INTERNAL


# User-facing messages shared between services, guards and tests
INVALID_ACCESS = "Acesso inválido"
INVALID_TOKEN = "Token inválido"
EXPIRED_TOKEN = "Token expirado"
INVALID_REFRESH_TOKEN = "Refresh token inválido"
EXPIRED_REFRESH_TOKEN = "Refresh token expirado"
USER_NOT_FOUND = "Usuário não encontrado"
WRONG_CREDENTIALS = "Usuário ou senha incorretos"
USER_EXISTS = "Usuário já existe"
BOOK_NOT_FOUND = "Livro não encontrado"
BOOK_EXISTS = "Você já possui um livro com este ISBN"
ROUTE_NOT_FOUND = "Rota não encontrada"
