"""Centralized error handling: every failure reaches the client as ``{"error": message}``."""

from typing import Any

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from cryptodash.services.errors import MarketDataError, UpstreamError
from cryptodash.utils.logger import StructuredLogger

logger = StructuredLogger("ErrorHandlers")


class ErrorResponse:
    """Standardized error response format."""

    def __init__(
        self,
        message: str,
        details: dict[str, Any] | None = None,
        status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR,
    ):
        """
        Initialize error response.

        Args:
            message: Human-readable error message
            details: Additional error details (field-specific errors, etc.)
            status_code: HTTP status code
        """
        self.message = message
        self.details = details
        self.status_code = status_code

    def to_dict(self) -> dict[str, Any]:
        response: dict[str, Any] = {"error": self.message}
        if self.details:
            response["details"] = self.details
        return response

    def to_response(self) -> JSONResponse:
        return JSONResponse(status_code=self.status_code, content=self.to_dict())


def create_validation_error_response(errors: list[dict[str, Any]]) -> ErrorResponse:
    """
    Create a 400 response from request validation errors.

    Args:
        errors: List of validation errors from FastAPI/Pydantic

    Returns:
        ErrorResponse with field-specific validation errors
    """
    field_errors = {}
    for error in errors:
        field_path = ".".join(str(loc) for loc in error["loc"])
        field_errors[field_path] = error["msg"]

    return ErrorResponse(
        message="Invalid request parameters",
        details=field_errors,
        status_code=status.HTTP_400_BAD_REQUEST,
    )


async def market_data_exception_handler(request: Request, exc: MarketDataError) -> JSONResponse:
    """Refresh or upstream failure with no cached fallback."""
    context: dict[str, Any] = {"path": request.url.path, "error_type": type(exc).__name__}
    if isinstance(exc, UpstreamError):
        context["upstream_status"] = exc.status_code
        context["upstream_path"] = exc.path
    logger.error("Request failed", context=context)
    return ErrorResponse(message=str(exc) or type(exc).__name__).to_response()


async def validation_exception_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    return create_validation_error_response(exc.errors()).to_response()


async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    message = exc.detail if isinstance(exc.detail, str) else "Request failed"
    if exc.status_code == status.HTTP_404_NOT_FOUND:
        message = "Not found"
    return ErrorResponse(message=message, status_code=exc.status_code).to_response()


async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.error("Unhandled exception", context={"path": request.url.path}, exception=exc)
    return ErrorResponse(message=str(exc) or "Internal server error").to_response()


def register_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(MarketDataError, market_data_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)
