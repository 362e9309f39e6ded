"""Map service results to HTTP responses."""

from typing import Optional, TypeVar
from uuid import uuid4

import structlog
from fastapi import Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from src.models.response import ErrorResponse
from src.models.result import Err, ErrorKind, Result, ServiceError

logger = structlog.get_logger(__name__)

T = TypeVar("T")

STATUS_BY_KIND = {
    ErrorKind.VALIDATION: status.HTTP_400_BAD_REQUEST,
    ErrorKind.BAD_REQUEST: status.HTTP_400_BAD_REQUEST,
    ErrorKind.CONFLICT: status.HTTP_409_CONFLICT,
    ErrorKind.UNAUTHORIZED: status.HTTP_401_UNAUTHORIZED,
    ErrorKind.FORBIDDEN: status.HTTP_403_FORBIDDEN,
    ErrorKind.NOT_FOUND: status.HTTP_404_NOT_FOUND,
    ErrorKind.INTERNAL: status.HTTP_500_INTERNAL_SERVER_ERROR,
}

INTERNAL_MESSAGE = "Internal Server Error"


class ApiError(Exception):
    """A service failure on its way to becoming an HTTP error response."""

    def __init__(
        self,
        status_code: int,
        message: str,
        errors: Optional[dict[str, list[str]]] = None,
    ):
        super().__init__(message)
        self.status_code = status_code
        self.message = message
        self.errors = errors or {}

    @classmethod
    def from_service_error(cls, error: ServiceError) -> "ApiError":
        return cls(STATUS_BY_KIND[error.kind], error.message, error.field_errors)


def unwrap(result: Result[T]) -> T:
    """Return the Ok value or raise ApiError for an Err."""
    if isinstance(result, Err):
        raise ApiError.from_service_error(result.error)
    return result.value


def _correlation_id(request: Request) -> str:
    return getattr(request.state, "correlation_id", None) or str(uuid4())


def _error_response(
    request: Request, status_code: int, message: str, errors: dict[str, list[str]]
) -> JSONResponse:
    correlation_id = _correlation_id(request)
    body = ErrorResponse(message=message, errors=errors, correlation_id=correlation_id)
    return JSONResponse(
        status_code=status_code,
        content=body.model_dump(),
        headers={"X-Correlation-Id": correlation_id},
    )


async def api_error_handler(request: Request, exc: ApiError) -> JSONResponse:
    """Render a known service failure."""
    log = logger.warning if exc.status_code < 500 else logger.error
    log("request_failed", path=request.url.path, status_code=exc.status_code, detail=exc.message)
    return _error_response(request, exc.status_code, exc.message, exc.errors)


async def http_exception_handler(
    request: Request, exc: StarletteHTTPException
) -> JSONResponse:
    """Render routing and framework HTTP errors (unknown path, wrong method)."""
    logger.warning("http_error", path=request.url.path, status_code=exc.status_code)
    response = _error_response(request, exc.status_code, str(exc.detail), {})
    for name, value in (exc.headers or {}).items():
        response.headers[name] = value
    return response


async def validation_exception_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    """Handle FastAPI request-shape errors as 400 with field detail."""
    errors: dict[str, list[str]] = {}
    for error in exc.errors():
        loc = [str(part) for part in error.get("loc", ()) if part not in ("body", "query", "path")]
        key = ".".join(loc) or "formErrors"
        errors.setdefault(key, []).append(error.get("msg", "Invalid value"))

    logger.warning("validation_error", path=request.url.path, errors=errors)
    return _error_response(request, status.HTTP_400_BAD_REQUEST, "Validation failed", errors)


async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Flatten anything unexpected to a generic 500 without internals."""
    logger.error(
        "unhandled_exception",
        path=request.url.path,
        error_type=type(exc).__name__,
        exc_info=exc,
    )
    return _error_response(
        request, status.HTTP_500_INTERNAL_SERVER_ERROR, INTERNAL_MESSAGE, {}
    )
