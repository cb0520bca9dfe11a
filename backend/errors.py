"""Domain errors and the global handlers that render them.

Every error carries a machine-readable code and the HTTP status it maps to.
Validation runs before any mutation; store errors abort the operation in
flight without rolling back steps that already committed.
"""

import logging

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)


class SarvamError(Exception):
    """Base exception for all service-level failures."""

    def __init__(self, message: str, code: str, http_status: int = 500):
        super().__init__(message)
        self.message = message
        self.code = code
        self.http_status = http_status

    def to_response(self) -> dict:
        return {"detail": self.message, "code": self.code}


class ValidationError(SarvamError):
    """Required input missing or malformed."""
    def __init__(self, message: str, field: str | None = None):
        super().__init__(message, "VALIDATION_ERROR", status.HTTP_400_BAD_REQUEST)
        self.field = field


class NotFoundError(SarvamError):
    """Referenced resource does not exist."""
    def __init__(self, resource_type: str, resource_id):
        super().__init__(
            f"{resource_type} not found",
            "NOT_FOUND", status.HTTP_404_NOT_FOUND,
        )
        self.resource_type = resource_type
        self.resource_id = resource_id


class ConflictError(SarvamError):
    """A unique value could not be allocated."""
    def __init__(self, message: str):
        super().__init__(message, "CONFLICT", status.HTTP_409_CONFLICT)


class StoreUnavailableError(SarvamError):
    """Backing store unreachable, locked past its timeout, or otherwise failing.

    Safe for the caller to retry.
    """
    def __init__(self, operation: str, reason: str = ""):
        super().__init__(
            f"Store unavailable during {operation}",
            "STORE_UNAVAILABLE", status.HTTP_500_INTERNAL_SERVER_ERROR,
        )
        self.operation = operation
        self.reason = reason
        self.retryable = True


def register_error_handlers(app: FastAPI) -> None:
    """Register the domain and request-validation handlers on the app."""

    @app.exception_handler(SarvamError)
    async def sarvam_error_handler(request: Request, exc: SarvamError):
        if exc.http_status >= 500:
            logger.error(f"{exc.code} on {request.url.path}: {exc.message}")
        else:
            logger.info(f"{exc.code} on {request.url.path}: {exc.message}")
        return JSONResponse(status_code=exc.http_status, content=exc.to_response())

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError):
        logger.warning(f"Validation error on {request.url.path}: {exc.errors()}")
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content={
                "detail": "Invalid request data",
                "code": "VALIDATION_ERROR",
                "errors": [
                    {
                        "field": ".".join(str(loc) for loc in e["loc"]),
                        "message": e["msg"],
                    }
                    for e in exc.errors()
                ],
            },
        )
