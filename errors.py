"""
Error taxonomy for the marketplace API.

Handlers raise these; `register_error_handlers` turns them into JSON bodies of
the form {"error": "<message>"} at the request boundary.
"""
import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pymongo.errors import PyMongoError
from starlette.exceptions import HTTPException as StarletteHTTPException

logger = logging.getLogger(__name__)


class ApiError(Exception):
    status_code = 500
    default_message = "Internal server error"

    def __init__(self, message: str = None, status_code: int = None):
        self.message = message or self.default_message
        if status_code is not None:
            self.status_code = status_code
        super().__init__(self.message)


class Unauthenticated(ApiError):
    status_code = 401
    default_message = "No token provided"


class InvalidToken(ApiError):
    status_code = 400
    default_message = "Invalid token"


class Forbidden(ApiError):
    status_code = 403
    default_message = "Forbidden"


class NotFound(ApiError):
    status_code = 404
    default_message = "Not found"


class ValidationFailed(ApiError):
    status_code = 400
    default_message = "Missing or invalid required fields"


class InvalidStatus(ValidationFailed):
    default_message = "Invalid status"


class Conflict(ApiError):
    status_code = 409
    default_message = "Conflict"


class StorageFailure(ApiError):
    status_code = 500
    default_message = "Internal server error"


async def api_error_handler(request: Request, exc: ApiError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
    else:
        logger.info("%s %s -> %s %s", request.method, request.url.path, exc.status_code, exc.message)
    return JSONResponse(status_code=exc.status_code, content={"error": exc.message})


async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    logger.info("Validation error on %s %s: %d errors", request.method, request.url.path, len(exc.errors()))
    return await api_error_handler(request, ValidationFailed())


async def http_error_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    logger.info("%s %s -> %s %s", request.method, request.url.path, exc.status_code, exc.detail)
    return JSONResponse(status_code=exc.status_code, content={"error": exc.detail}, headers=exc.headers)


async def storage_error_handler(request: Request, exc: PyMongoError) -> JSONResponse:
    logger.exception("Storage error on %s %s", request.method, request.url.path, exc_info=exc)
    return await api_error_handler(request, StorageFailure())


def register_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(ApiError, api_error_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)
    app.add_exception_handler(StarletteHTTPException, http_error_handler)
    app.add_exception_handler(PyMongoError, storage_error_handler)
