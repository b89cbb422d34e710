"""FastAPI application factory."""

from __future__ import annotations

import logging

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from . import __version__
from .api.router import api_router
from .config import get_settings
from .database import init_database
from .errors import (
    AuthenticationError,
    ConcurrencyConflictError,
    DuplicateError,
    InsufficientStockError,
    NotFoundError,
    ProductInUseError,
    StorageError,
    ValidationError,
    VitaSportError,
)
from .logging_config import setup_logging

API_PREFIX = "/api/v1"
REQUEST_LOCATIONS = ("body", "query", "path", "header", "cookie")

STATUS_CODES: dict[type[VitaSportError], int] = {
    ValidationError: 422,
    InsufficientStockError: status.HTTP_409_CONFLICT,
    ConcurrencyConflictError: status.HTTP_409_CONFLICT,
    NotFoundError: status.HTTP_404_NOT_FOUND,
    DuplicateError: status.HTTP_400_BAD_REQUEST,
    ProductInUseError: status.HTTP_400_BAD_REQUEST,
    AuthenticationError: status.HTTP_401_UNAUTHORIZED,
    StorageError: status.HTTP_503_SERVICE_UNAVAILABLE,
}

logger = logging.getLogger(__name__)


def status_code_for(exc: VitaSportError) -> int:
    for cls in type(exc).__mro__:
        if cls in STATUS_CODES:
            return STATUS_CODES[cls]
    return status.HTTP_500_INTERNAL_SERVER_ERROR


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""

    settings = get_settings()
    setup_logging(settings)
    init_database()

    app = FastAPI(title=settings.app_name, version=__version__)

    @app.exception_handler(VitaSportError)
    async def handle_domain_error(request: Request, exc: VitaSportError) -> JSONResponse:
        code = status_code_for(exc)
        if code >= 500:
            logger.error("%s %s failed: %s", request.method, request.url.path, exc)
        return JSONResponse(status_code=code, content=exc.to_dict())

    @app.exception_handler(RequestValidationError)
    async def handle_request_validation(request: Request, exc: RequestValidationError) -> JSONResponse:
        error = ValidationError.from_pydantic(exc, skip_locations=REQUEST_LOCATIONS)
        return JSONResponse(status_code=status_code_for(error), content=error.to_dict())

    app.include_router(api_router, prefix=API_PREFIX)
    return app
