"""Domain exceptions and the JSON error handlers that render them."""

import logging

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)


class ODRLabError(Exception):
    """Base class for errors that map onto an HTTP status."""

    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(self, message: str, status_code: int = None):
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code


class NotFoundError(ODRLabError):
    status_code = status.HTTP_404_NOT_FOUND


class ConflictError(ODRLabError):
    status_code = status.HTTP_409_CONFLICT


class InvalidStateError(ODRLabError):
    status_code = status.HTTP_400_BAD_REQUEST


class PermissionDeniedError(ODRLabError):
    status_code = status.HTTP_403_FORBIDDEN


class ConfigurationError(ODRLabError):
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR


def register_error_handlers(app: FastAPI) -> None:
    @app.exception_handler(ODRLabError)
    async def domain_error(request: Request, exc: ODRLabError):
        if exc.status_code >= 500:
            logger.error(f"{request.method} {request.url.path} failed: {exc.message}")
            # Configuration problems are not the caller's business
            return JSONResponse({"detail": "Server configuration error"}, status_code=exc.status_code)
        logger.warning(f"{request.method} {request.url.path} -> {exc.status_code}: {exc.message}")
        return JSONResponse({"detail": exc.message}, status_code=exc.status_code)

    @app.exception_handler(RequestValidationError)
    async def validation_error(request: Request, exc: RequestValidationError):
        logger.info(f"{request.method} {request.url.path} rejected: invalid input")
        return JSONResponse(
            {"detail": "Invalid input", "errors": jsonable_encoder(exc.errors())},
            status_code=status.HTTP_400_BAD_REQUEST,
        )

    @app.exception_handler(Exception)
    async def unexpected_error(request: Request, exc: Exception):
        logger.exception(f"Unhandled error on {request.method} {request.url.path}")
        return JSONResponse(
            {"detail": "Internal server error"},
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        )
