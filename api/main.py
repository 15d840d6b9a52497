"""
FastAPI main application for the BookStack API.
"""

import time
from contextlib import asynccontextmanager
from typing import Optional

import structlog
from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from api.auth import AuthService
from api.books import BookService
from api.config import APIConfig
from api.database import BookRepository, MongoDBManager, UserRepository
from api.errors import AppError, ROUTE_NOT_FOUND
from api.guards import AccessGuard, RefreshGuard
from api.models import ErrorResponse
from api.routes import auth_router, books_router, health_router, user_router
from api.security import build_token_codecs
from api.users import UserService
from utilities.logger import bind_request_context, clear_request_context, log_request, setup_logging

logger = structlog.get_logger(__name__)


def wire_services(app: FastAPI, user_repository, book_repository) -> None:
    """Build services and guards on top of the repositories and attach them to ``app.state``."""
    config: APIConfig = app.state.config
    access_tokens, refresh_tokens = build_token_codecs(config)

    auth_service = AuthService(user_repository, user_repository, access_tokens, refresh_tokens)
    app.state.auth_service = auth_service
    app.state.user_service = UserService(user_repository, auth_service)
    app.state.book_service = BookService(book_repository)
    app.state.access_guard = AccessGuard(access_tokens, user_repository)
    app.state.refresh_guard = RefreshGuard(access_tokens, refresh_tokens, user_repository)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager."""
    # Startup
    logger.info("Starting BookStack API")
    config: APIConfig = app.state.config

    db_manager = None
    if getattr(app.state, "auth_service", None) is None:
        db_manager = MongoDBManager(config.mongodb_url, config.mongodb_database)
        try:
            await db_manager.connect()
        except Exception as e:
            logger.error("Failed to connect to database", error=str(e))
            raise

        app.state.db_manager = db_manager
        wire_services(app, UserRepository(db_manager.database), BookRepository(db_manager.database))

    yield

    # Shutdown
    logger.info("Shutting down BookStack API")
    if db_manager:
        await db_manager.disconnect()


def feature_for_path(path: str) -> str:
    """Coarse feature name used to group request logs."""
    if path.startswith("/books"):
        return "books"
    if path.startswith("/auth"):
        return "auth"
    if path.startswith("/user"):
        return "users"
    return "system"


def error_response(status_code: int, message: str, headers=None) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=ErrorResponse(message=message).model_dump(),
        headers=headers,
    )


def validation_message(exc: RequestValidationError) -> str:
    """Describe the first failing field the way clients expect."""
    errors = exc.errors()
    if not errors:
        return "Dados inválidos"

    err = errors[0]
    field = ".".join(str(part) for part in err.get("loc", ()) if part not in ("body", "query", "path"))
    message = f"Erro:'{err.get('msg', '')}'."
    if err.get("type") == "missing":
        return f"O campo '{field}' é obrigatório. {message}"
    return f"O campo '{field}' recebeu '{err.get('input')}'. {message}"


def register_exception_handlers(app: FastAPI) -> None:

    @app.exception_handler(AppError)
    async def app_error_handler(request: Request, exc: AppError):
        """Translate domain errors into the response envelope."""
        return error_response(exc.kind.status_code, exc.message)

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError):
        return error_response(status.HTTP_400_BAD_REQUEST, validation_message(exc))

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException):
        """Handle HTTP exceptions raised by the framework."""
        if exc.status_code == status.HTTP_404_NOT_FOUND:
            return error_response(exc.status_code, ROUTE_NOT_FOUND)
        return error_response(exc.status_code, str(exc.detail), headers=getattr(exc, "headers", None))

    @app.exception_handler(Exception)
    async def general_exception_handler(request: Request, exc: Exception):
        """Handle general exceptions."""
        logger.error("Unhandled exception", error=str(exc), path=request.url.path, exc_info=exc)
        return error_response(status.HTTP_500_INTERNAL_SERVER_ERROR, str(exc) or repr(exc))


def create_app(
    config: Optional[APIConfig] = None,
    user_repository=None,
    book_repository=None,
) -> FastAPI:
    """
    Build the FastAPI application.

    Args:
        config: API configuration; read from the environment when omitted
        user_repository: Pre-built user repository. When given (with
            ``book_repository``) services are wired immediately and the
            lifespan does not open a MongoDB connection.
        book_repository: Pre-built book repository

    Returns:
        Configured FastAPI application
    """
    config = config or APIConfig()
    setup_logging(
        log_level=config.log_level,
        log_format=config.log_format,
        log_file=config.log_file,
        debug=config.debug,
    )

    app = FastAPI(
        title=config.api_title,
        description=config.api_description,
        version=config.api_version,
        lifespan=lifespan,
    )
    app.state.config = config

    if user_repository is not None:
        wire_services(app, user_repository, book_repository)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.cors_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS", "PATCH"],
        allow_headers=["Origin", "X-Requested-With", "Content-Type", "Accept", "Authorization", "Cookie"],
    )

    @app.middleware("http")
    async def log_requests(request: Request, call_next):
        """Log one line per request with timing and caller."""
        start = time.perf_counter()
        bind_request_context(
            method=request.method,
            route=request.url.path,
            ip=request.client.host if request.client else "unknown",
            feature=feature_for_path(request.url.path),
        )
        status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
        try:
            response = await call_next(request)
            status_code = response.status_code
            return response
        finally:
            # unhandled errors are rendered as 500 by the outermost middleware
            log_request(
                logger,
                status_code,
                round((time.perf_counter() - start) * 1000, 2),
                user_id=getattr(request.state, "user_id", None),
            )
            clear_request_context()

    register_exception_handlers(app)

    app.include_router(auth_router)
    app.include_router(user_router)
    app.include_router(books_router)
    app.include_router(health_router)

    return app


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "api.main:create_app",
        factory=True,
        host="0.0.0.0",
        port=8000,
        reload=True,
        log_level="info"
    )
