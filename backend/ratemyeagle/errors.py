"""API error taxonomy and the FastAPI handlers that render it as JSON."""

import logging
from typing import Any, Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)

# pydantic error types that mean "field absent or empty"
_MISSING_TYPES = {"missing", "string_too_short"}


class RatingsAPIError(Exception):
    """Base exception for errors surfaced to API callers."""

    status_code = 500

    def __init__(self, error: str, details: Optional[Any] = None):
        self.error = error
        self.details = details
        super().__init__(error)

    def to_dict(self) -> dict:
        body = {"error": self.error}
        if self.details is not None:
            body["details"] = self.details
        return body


class ValidationFailed(RatingsAPIError):
    """Raised when a request is missing required fields or breaks a rule."""

    status_code = 400


class Unauthorized(RatingsAPIError):
    """Raised when no bearer credential is present or it cannot be resolved."""

    status_code = 401

    def __init__(self):
        super().__init__("Unauthorized")


class NotFound(RatingsAPIError):
    status_code = 404


class StorageError(RatingsAPIError):
    """Raised when the database call fails; the driver message is passed through."""

    status_code = 500


async def _api_error_handler(request: Request, exc: RatingsAPIError):
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


async def _validation_error_handler(request: Request, exc: RequestValidationError):
    details = [
        {"field": ".".join(str(p) for p in err["loc"] if p != "body"), "message": err["msg"]}
        for err in exc.errors()
    ]
    missing = any(err["type"] in _MISSING_TYPES for err in exc.errors())
    error = "Missing required fields" if missing else "Invalid request"
    logger.info("Rejected %s %s: %s", request.method, request.url.path, details)
    return JSONResponse(status_code=400, content={"error": error, "details": details})


def register_exception_handlers(app: FastAPI):
    app.add_exception_handler(RatingsAPIError, _api_error_handler)
    app.add_exception_handler(RequestValidationError, _validation_error_handler)
