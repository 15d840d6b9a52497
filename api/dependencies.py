"""
FastAPI dependencies exposing the wired services and guards.
"""

from fastapi import Request

from api.auth import AuthService
from api.books import BookService
from api.config import APIConfig
from api.errors import InternalError
from api.models import Caller
from api.users import UserService


def _state(request: Request, name: str):
    service = getattr(request.app.state, name, None)
    if service is None:
        raise InternalError("Serviço indisponível")
    return service


def get_config(request: Request) -> APIConfig:
    return request.app.state.config


def get_auth_service(request: Request) -> AuthService:
    return _state(request, "auth_service")


def get_user_service(request: Request) -> UserService:
    return _state(request, "user_service")


def get_book_service(request: Request) -> BookService:
    return _state(request, "book_service")


async def require_access(request: Request) -> Caller:
    """Protect a route with the ``Authorization: Bearer`` access token."""
    guard = _state(request, "access_guard")
    caller = await guard.authenticate(request.headers.get("Authorization"))
    request.state.user_id = caller.user_id
    return caller


async def require_refresh(request: Request) -> Caller:
    """Protect a route with the refresh token cookie; the returned caller carries a new access token."""
    guard = _state(request, "refresh_guard")
    cookie_name = request.app.state.config.refresh_cookie_name
    caller = await guard.authenticate(request.cookies.get(cookie_name))
    request.state.user_id = caller.user_id
    return caller
