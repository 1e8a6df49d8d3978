"""Exception handlers with request_id in responses."""

from asgi_correlation_id import correlation_id
from fastapi import FastAPI, HTTPException, Request, status
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from src.project_index.core.errors import (
    DecodingError,
    HttpError,
    IndexClientError,
    InvalidResponseError,
    InvalidURLError,
    MissingRequiredFieldsError,
    NetworkError,
    NotConfiguredError,
    ProjectNotFoundError,
)
from src.project_index.core.logging import get_logger

logger = get_logger(__name__)

# Transport and contract failures are upstream problems: 502
_ERROR_STATUS: dict[type[IndexClientError], int] = {
    NotConfiguredError: status.HTTP_503_SERVICE_UNAVAILABLE,
    InvalidURLError: status.HTTP_400_BAD_REQUEST,
    NetworkError: status.HTTP_502_BAD_GATEWAY,
    HttpError: status.HTTP_502_BAD_GATEWAY,
    InvalidResponseError: status.HTTP_502_BAD_GATEWAY,
    DecodingError: status.HTTP_502_BAD_GATEWAY,
    MissingRequiredFieldsError: status.HTTP_502_BAD_GATEWAY,
    ProjectNotFoundError: status.HTTP_404_NOT_FOUND,
}


def status_for_error(exc: IndexClientError) -> int:
    """Map an index client error to the HTTP status returned to callers."""
    for error_type, status_code in _ERROR_STATUS.items():
        if isinstance(exc, error_type):
            return status_code
    return status.HTTP_500_INTERNAL_SERVER_ERROR


def setup_exception_handlers(app: FastAPI) -> None:
    """Configure exception handlers that include request_id in responses."""

    @app.exception_handler(IndexClientError)
    async def index_client_exception_handler(
        request: Request, exc: IndexClientError
    ) -> JSONResponse:
        status_code = status_for_error(exc)
        logger.warning(
            "Index client error",
            error=exc.code,
            message=exc.message,
            path=request.url.path,
        )
        return JSONResponse(
            status_code=status_code,
            content={
                "detail": exc.message,
                "error": exc.code,
                "request_id": correlation_id.get(),
            },
        )

    @app.exception_handler(StarletteHTTPException)
    async def starlette_exception_handler(
        request: Request, exc: StarletteHTTPException
    ) -> JSONResponse:
        return JSONResponse(
            status_code=exc.status_code,
            content={
                "detail": exc.detail,
                "request_id": correlation_id.get(),
            },
        )

    @app.exception_handler(HTTPException)
    async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
        return JSONResponse(
            status_code=exc.status_code,
            content={
                "detail": exc.detail,
                "request_id": correlation_id.get(),
            },
        )

    @app.exception_handler(Exception)
    async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        request_id = correlation_id.get()
        logger.exception(
            "Unhandled exception",
            exc_info=exc,
            request_id=request_id,
            path=request.url.path,
        )
        return JSONResponse(
            status_code=500,
            content={
                "detail": "Internal server error",
                "request_id": request_id,
            },
        )
