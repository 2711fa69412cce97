"""
FastAPI application factory for the Dusty Shelf API.
"""

import uuid
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from http import HTTPStatus
from typing import Optional

import structlog
from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.concurrency import run_in_threadpool
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.middleware.base import BaseHTTPMiddleware

from dusty_shelf import __version__
from dusty_shelf.auth import AuthGuard
from dusty_shelf.config import Settings
from dusty_shelf.database import BookStore
from dusty_shelf.errors import DustyShelfError, NotFoundError
from dusty_shelf.models import ErrorResponse, HealthResponse
from dusty_shelf.pool import ConnectionPool, create_db_engine
from dusty_shelf.routes import router
from utilities.logger import setup_logging

logger = structlog.get_logger(__name__)

HSTS_MAX_AGE = 3 * 7 * 24 * 60 * 60


def error_response(body: ErrorResponse, headers: Optional[dict] = None) -> JSONResponse:
    return JSONResponse(status_code=body.code, content=body.model_dump(), headers=headers)


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """Adds the browser hardening headers to every response."""

    async def dispatch(self, request: Request, call_next):
        response = await call_next(request)
        response.headers.setdefault("X-XSS-Protection", "1; mode=block")
        response.headers.setdefault("X-Content-Type-Options", "nosniff")
        response.headers.setdefault("X-Frame-Options", "SAMEORIGIN")
        response.headers.setdefault("Strict-Transport-Security", f"max-age={HSTS_MAX_AGE}")
        response.headers.setdefault("Referrer-Policy", "no-referrer")
        return response


class RequestContextMiddleware(BaseHTTPMiddleware):
    """Binds a request id, method and path to every log line of a request."""

    async def dispatch(self, request: Request, call_next):
        structlog.contextvars.clear_contextvars()
        structlog.contextvars.bind_contextvars(
            request_id=request.headers.get("x-request-id", uuid.uuid4().hex),
            method=request.method,
            path=request.url.path,
        )
        response = await call_next(request)
        logger.debug("Request handled", status_code=response.status_code)
        return response


def register_exception_handlers(app: FastAPI, settings: Settings) -> None:
    """Render every failure as an ``ErrorResponse`` body."""

    @app.exception_handler(DustyShelfError)
    async def dusty_shelf_exception_handler(request: Request, exc: DustyShelfError):
        return error_response(exc.to_response(), headers=exc.headers)

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException):
        if exc.status_code == status.HTTP_404_NOT_FOUND:
            return error_response(NotFoundError().to_response())
        return error_response(
            ErrorResponse(err=HTTPStatus(exc.status_code).phrase, msg=str(exc.detail), code=exc.status_code),
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        errors = exc.errors()
        msg = None
        if errors:
            first = errors[0]
            location = ".".join(str(part) for part in first.get("loc", ()))
            msg = f"{location}: {first.get('msg')}"
        return error_response(ErrorResponse(
            err="Unprocessable Entity",
            msg=msg,
            code=HTTPStatus.UNPROCESSABLE_ENTITY.value,
        ))

    @app.exception_handler(Exception)
    async def general_exception_handler(request: Request, exc: Exception):
        logger.error("Unhandled exception", error=str(exc), path=request.url.path)
        return error_response(ErrorResponse(
            err="Internal Server Error",
            msg=str(exc) if settings.is_debug() else None,
            code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        ))


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    """
    Build the Dusty Shelf application.

    Args:
        settings: Explicit settings; read from the environment when omitted

    Returns:
        Configured FastAPI application
    """
    if settings is None:
        settings = Settings()

    setup_logging(
        log_level=settings.effective_log_level(),
        log_format=settings.effective_log_format(),
        log_file=settings.log_file,
        debug=settings.is_debug(),
    )

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Application lifespan manager."""
        logger.info("Starting Dusty Shelf API", profile=settings.dusty_profile)

        engine = create_db_engine(settings.database_url, settings.db_pool_size, settings.db_pool_timeout)
        pool = ConnectionPool(engine, settings.db_pool_size, settings.db_pool_timeout)
        store = BookStore(pool)
        try:
            if settings.create_schema:
                await run_in_threadpool(store.create_schema)
        except Exception as e:
            logger.error("Failed to prepare database", error=str(e))
            pool.close()
            raise

        app.state.book_store = store
        logger.info("Database pool ready", pool_size=pool.size)

        yield

        logger.info("Shutting down Dusty Shelf API")
        pool.close()

    app = FastAPI(
        title=settings.api_title,
        description=settings.api_description,
        version=settings.api_version,
        docs_url="/v1/swagger",
        redoc_url="/v1",
        openapi_url="/v1/openapi.json",
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.auth_guard = AuthGuard(settings.jwt_secret)

    # Last added runs first
    app.add_middleware(SecurityHeadersMiddleware)
    app.add_middleware(RequestContextMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    register_exception_handlers(app, settings)

    @app.get("/health", response_model=HealthResponse, tags=["Health"])
    async def health_check(request: Request):
        """Health check endpoint (no authentication required)."""
        store: Optional[BookStore] = getattr(request.app.state, "book_store", None)
        db_status = "unavailable"
        if store is not None:
            db_status = "healthy" if await store.ping() else "unhealthy"

        return HealthResponse(
            status="healthy" if db_status == "healthy" else "degraded",
            timestamp=datetime.now(timezone.utc),
            version=__version__,
            database_status=db_status,
        )

    app.include_router(router)

    return app
