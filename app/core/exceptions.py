"""
Application exceptions and the handlers that turn them into the error envelope.

Every failure leaves the API as:
    {"success": false, "status_code": 404, "message": "...", "error": "..."}
"""
import logging
from typing import Any, Dict, Optional

from fastapi import FastAPI, HTTPException, Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError

logger = logging.getLogger(__name__)


class AppException(HTTPException):
    """Base for all domain errors. `code` is a stable machine-readable tag."""

    status_code_default: int = status.HTTP_400_BAD_REQUEST
    code: str = "ERROR"
    message: str = "Request failed"

    def __init__(
        self,
        message: Optional[str] = None,
        *,
        code: Optional[str] = None,
        error: Any = None,
        status_code: Optional[int] = None,
    ):
        self.message = message or self.message
        self.code = code or self.code
        self.error = error
        super().__init__(
            status_code=status_code or self.status_code_default,
            detail={"code": self.code, "message": self.message},
        )


# --- Authentication ---

class NotAuthenticated(AppException):
    status_code_default = status.HTTP_401_UNAUTHORIZED
    code = "NOT_AUTHENTICATED"
    message = "Not authenticated"


class SessionExpired(AppException):
    status_code_default = status.HTTP_401_UNAUTHORIZED
    code = "SESSION_EXPIRED"
    message = "Session expired or invalid. Please log in again."


class InvalidCredentials(AppException):
    status_code_default = status.HTTP_401_UNAUTHORIZED
    code = "INVALID_CREDENTIALS"
    message = "Invalid credentials"


class EmailAlreadyExists(AppException):
    status_code_default = status.HTTP_409_CONFLICT
    code = "EMAIL_IN_USE"
    message = "Email already in use"


class WeakPassword(AppException):
    status_code_default = status.HTTP_400_BAD_REQUEST
    code = "WEAK_PASSWORD"
    message = "Weak password"


class AccountDisabled(AppException):
    status_code_default = status.HTTP_403_FORBIDDEN
    code = "ACCOUNT_DISABLED"
    message = "Account disabled or banned"


# --- Authorization ---

class Forbidden(AppException):
    status_code_default = status.HTTP_403_FORBIDDEN
    code = "FORBIDDEN"
    message = "Permission denied"


class NotOwner(Forbidden):
    code = "NOT_OWNER"
    message = "You can only modify your own resources"


class RoleMismatch(Forbidden):
    code = "ROLE_MISMATCH"
    message = "Your role does not allow this action"


# --- Lookup / validation ---

class NotFound(AppException):
    status_code_default = status.HTTP_404_NOT_FOUND
    code = "NOT_FOUND"

    def __init__(self, resource: str = "Resource", **kwargs):
        super().__init__(f"{resource} not found", **kwargs)


class ValidationFailed(AppException):
    status_code_default = status.HTTP_400_BAD_REQUEST
    code = "VALIDATION_FAILED"
    message = "Validation failed"

    def __init__(self, errors: Optional[Dict[str, str]] = None, message: Optional[str] = None, **kwargs):
        super().__init__(message, error=errors, **kwargs)


class TooManyRequests(AppException):
    status_code_default = status.HTTP_429_TOO_MANY_REQUESTS
    code = "RATE_LIMITED"
    message = "Too many attempts. Please wait and try again."


# --- I/O ---

class ServiceUnavailable(AppException):
    status_code_default = status.HTTP_503_SERVICE_UNAVAILABLE
    code = "SERVICE_ERROR"
    message = "Service temporarily unavailable"


def error_envelope(status_code: int, message: str, error: Any = None) -> Dict[str, Any]:
    body: Dict[str, Any] = {
        "success": False,
        "status_code": status_code,
        "message": message,
    }
    if error is not None:
        body["error"] = error
    return body


async def app_exception_handler(request: Request, exc: AppException) -> JSONResponse:
    error = exc.error if exc.error is not None else exc.code
    return JSONResponse(
        status_code=exc.status_code,
        content=error_envelope(exc.status_code, exc.message, error),
        headers=getattr(exc, "headers", None),
    )


async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    detail = exc.detail
    if isinstance(detail, dict):
        message = detail.get("message") or str(detail)
        error = detail.get("code")
    else:
        message = str(detail)
        error = None
    return JSONResponse(
        status_code=exc.status_code,
        content=error_envelope(exc.status_code, message, error),
        headers=getattr(exc, "headers", None),
    )


async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    errors = {
        ".".join(str(p) for p in err.get("loc", ()) if p != "body"): err.get("msg")
        for err in jsonable_encoder(exc.errors())
    }
    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content=error_envelope(status.HTTP_422_UNPROCESSABLE_ENTITY, "Validation failed", errors),
    )


async def sqlalchemy_exception_handler(request: Request, exc: SQLAlchemyError) -> JSONResponse:
    logger.exception("Database error on %s %s", request.method, request.url.path)
    return JSONResponse(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        content=error_envelope(
            status.HTTP_503_SERVICE_UNAVAILABLE,
            "Service temporarily unavailable",
            "SERVICE_ERROR",
        ),
    )


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(AppException, app_exception_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)
    app.add_exception_handler(SQLAlchemyError, sqlalchemy_exception_handler)
