"""
HTTP routes: authentication, user accounts, books and health.
"""

from datetime import datetime, timezone
from typing import Annotated

from fastapi import APIRouter, Depends, Path, Request, Response, status

from api.auth import AuthService
from api.books import BookService
from api.config import APIConfig
from api.dependencies import (
    get_auth_service,
    get_book_service,
    get_config,
    get_user_service,
    require_access,
    require_refresh,
)
from api.models import (
    BookCreate,
    BookUpdate,
    Caller,
    HealthResponse,
    SuccessResponse,
    UserCredentials,
)
from api.users import UserService


auth_router = APIRouter(prefix="/auth", tags=["Auth"])
user_router = APIRouter(prefix="/user", tags=["Users"])
books_router = APIRouter(prefix="/books", tags=["Books"])
health_router = APIRouter(tags=["Health"])

IsbnParam = Annotated[str, Path(min_length=1, max_length=20, description="Book ISBN")]


def set_refresh_cookie(response: Response, config: APIConfig, refresh_token: str) -> None:
    response.set_cookie(
        key=config.refresh_cookie_name,
        value=refresh_token,
        max_age=config.refresh_cookie_max_age,
        path=config.cookie_path,
        domain=config.cookie_domain,
        secure=config.cookie_secure,
        httponly=True,
        samesite=config.cookie_samesite,
    )


def clear_refresh_cookie(response: Response, config: APIConfig) -> None:
    response.delete_cookie(
        key=config.refresh_cookie_name,
        path=config.cookie_path,
        domain=config.cookie_domain,
        secure=config.cookie_secure,
        httponly=True,
        samesite=config.cookie_samesite,
    )


# Auth endpoints
@auth_router.post("/signin", response_model=SuccessResponse)
async def signin(
    credentials: UserCredentials,
    response: Response,
    auth: AuthService = Depends(get_auth_service),
    config: APIConfig = Depends(get_config),
):
    """Exchange name and password for an access token and a refresh cookie."""
    tokens = await auth.signin(credentials)
    set_refresh_cookie(response, config, tokens.refresh_token)
    return SuccessResponse(data={"accessToken": tokens.access_token})


@auth_router.post("/refresh", response_model=SuccessResponse)
async def refresh(caller: Caller = Depends(require_refresh)):
    """Issue a new access token from the refresh cookie."""
    return SuccessResponse(
        data={
            "accessToken": caller.access_token,
            "message": "Token renovado com sucesso",
        }
    )


@auth_router.post("/logout", status_code=status.HTTP_204_NO_CONTENT, response_class=Response)
async def logout(
    caller: Caller = Depends(require_refresh),
    auth: AuthService = Depends(get_auth_service),
    config: APIConfig = Depends(get_config),
):
    """Revoke the refresh token and clear its cookie."""
    await auth.logout(caller.user_id)
    response = Response(status_code=status.HTTP_204_NO_CONTENT)
    clear_refresh_cookie(response, config)
    return response


# User endpoints
@user_router.post("/signup", response_model=SuccessResponse, status_code=status.HTTP_201_CREATED)
async def signup(credentials: UserCredentials, users: UserService = Depends(get_user_service)):
    result = await users.signup(credentials)
    return SuccessResponse(message=result["message"])


@user_router.post("/guest", response_model=SuccessResponse, status_code=status.HTTP_201_CREATED)
async def create_guest_account(
    response: Response,
    users: UserService = Depends(get_user_service),
    config: APIConfig = Depends(get_config),
):
    """Create a guest account and sign it in."""
    tokens = await users.create_guest_account()
    set_refresh_cookie(response, config, tokens.refresh_token)
    return SuccessResponse(
        data={"accessToken": tokens.access_token},
        message="Conta de visitante criada com sucesso",
    )


# Books endpoints
@books_router.post("", response_model=SuccessResponse, status_code=status.HTTP_201_CREATED)
async def create_book(
    data: BookCreate,
    caller: Caller = Depends(require_access),
    books: BookService = Depends(get_book_service),
):
    return SuccessResponse(**await books.create_book(data, caller.user_id))


@books_router.get("", response_model=SuccessResponse)
async def list_books(
    caller: Caller = Depends(require_access),
    books: BookService = Depends(get_book_service),
):
    return SuccessResponse(**await books.list_books(caller.user_id))


@books_router.get("/{isbn}", response_model=SuccessResponse)
async def get_book(
    isbn: IsbnParam,
    caller: Caller = Depends(require_access),
    books: BookService = Depends(get_book_service),
):
    return SuccessResponse(data=await books.get_book(isbn, caller.user_id))


@books_router.put("/{isbn}", response_model=SuccessResponse)
async def update_book(
    data: BookUpdate,
    isbn: IsbnParam,
    caller: Caller = Depends(require_access),
    books: BookService = Depends(get_book_service),
):
    return SuccessResponse(**await books.update_book(isbn, caller.user_id, data))


@books_router.patch("/{isbn}/favorite", response_model=SuccessResponse)
async def toggle_favorite(
    isbn: IsbnParam,
    caller: Caller = Depends(require_access),
    books: BookService = Depends(get_book_service),
):
    return SuccessResponse(**await books.toggle_favorite(isbn, caller.user_id))


@books_router.delete("/{isbn}", response_model=SuccessResponse)
async def delete_book(
    isbn: IsbnParam,
    caller: Caller = Depends(require_access),
    books: BookService = Depends(get_book_service),
):
    return SuccessResponse(**await books.delete_book(isbn, caller.user_id))


# Health check endpoint (no authentication required)
@health_router.get("/health", response_model=HealthResponse)
async def health_check(request: Request):
    """Health check endpoint."""
    config = request.app.state.config
    db_manager = getattr(request.app.state, "db_manager", None)

    db_status = "not_configured"
    if db_manager:
        health_info = await db_manager.health_check()
        db_status = health_info.get("status", "unknown")

    return HealthResponse(
        status="healthy" if db_status in ("healthy", "not_configured") else "degraded",
        timestamp=datetime.now(timezone.utc),
        version=config.api_version,
        database_status=db_status
    )
