"""Exception handlers that render every failure as ``{"detail", "code"}`` JSON."""

import structlog
from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy.exc import DBAPIError, InterfaceError, OperationalError
from sqlalchemy.exc import TimeoutError as PoolTimeoutError
from starlette.exceptions import HTTPException as StarletteHTTPException

from questclash.errors import QuestClashError, StoreTimeout, StoreUnavailable

logger = structlog.get_logger()


def _error_response(exc: QuestClashError) -> JSONResponse:
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.detail, "code": exc.code},
    )


def setup_error_handlers(app: FastAPI) -> None:
    """Register global exception handlers."""

    @app.exception_handler(QuestClashError)
    async def domain_error_handler(request: Request, exc: QuestClashError) -> JSONResponse:
        if exc.status_code >= 500:
            logger.warning("store_error", path=request.url.path, code=exc.code, error=exc.detail)
        return _error_response(exc)

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(_request: Request, exc: StarletteHTTPException) -> JSONResponse:
        return JSONResponse(
            status_code=exc.status_code,
            content={"detail": exc.detail, "code": f"http_{exc.status_code}"},
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(_request: Request, exc: RequestValidationError) -> JSONResponse:
        return JSONResponse(
            status_code=422,
            content={
                "detail": "Validation error",
                "code": "validation_error",
                "errors": jsonable_encoder(exc.errors()),
            },
        )

    @app.exception_handler(TimeoutError)
    @app.exception_handler(PoolTimeoutError)
    async def timeout_handler(request: Request, exc: Exception) -> JSONResponse:
        logger.warning("store_timeout", path=request.url.path, error=str(exc))
        return _error_response(StoreTimeout())

    @app.exception_handler(OperationalError)
    @app.exception_handler(InterfaceError)
    async def store_unavailable_handler(request: Request, exc: DBAPIError) -> JSONResponse:
        logger.warning("store_unavailable", path=request.url.path, error=str(exc.orig))
        return _error_response(StoreUnavailable())

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        """Catch-all: log with traceback, never leak internals to the client."""
        logger.error(
            "unhandled_exception",
            path=request.url.path,
            method=request.method,
            error=str(exc),
            exc_info=exc,
        )
        return JSONResponse(
            status_code=500,
            content={"detail": "Internal server error", "code": "internal_error"},
        )
