"""
Error taxonomy and global exception handlers.

Every failure leaves the API as:
    {"success": false, "category": "<Category>", "messages": [...]}
plus a "diagnostic" field when the app runs with DEBUG enabled.
"""

import traceback
from typing import Iterable, List, Optional

import structlog
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pymongo.errors import PyMongoError

from app.core.config import get_settings

logger = structlog.get_logger()


class ProvisioningError(Exception):
    """Base class for failures surfaced to API callers."""

    category = "ProvisioningError"
    status_code = 400

    def __init__(self, messages, status_code: Optional[int] = None):
        if isinstance(messages, str):
            messages = [messages]
        self.messages: List[str] = list(messages)
        if status_code is not None:
            self.status_code = status_code
        super().__init__("; ".join(self.messages))


class RequestRejected(ProvisioningError):
    """Malformed or missing input. Raised before any write."""

    category = "RequestRejected"


class DuplicateAccount(ProvisioningError):
    """Email already bound to an existing account."""

    category = "DuplicateAccount"

    def __init__(self, email: str):
        self.email = email
        super().__init__(
            f"An account already exists for {email}. "
            "Sign in or recover your password instead."
        )


class ProfileValidationFailed(ProvisioningError):
    """Role-specific profile data is invalid. The account was rolled back."""

    category = "ProfileValidationFailed"


class StorageUnavailable(ProvisioningError):
    """Transient storage failure. The caller must resubmit."""

    category = "StorageUnavailable"
    status_code = 500

    def __init__(self, messages="Storage is temporarily unavailable. Please try again."):
        super().__init__(messages)


class UploadRejected(ProvisioningError):
    """Uploaded file violates the extension/size policy for its field."""

    category = "UploadRejected"


class AuthenticationFailed(ProvisioningError):
    """Missing, expired or invalid credentials or tokens."""

    category = "AuthenticationFailed"
    status_code = 401


class PermissionDenied(ProvisioningError):
    """Authenticated, but the account role may not do this."""

    category = "PermissionDenied"
    status_code = 403


def error_body(category: str, messages: Iterable[str], exc: Optional[BaseException] = None) -> dict:
    body = {"success": False, "category": category, "messages": list(messages)}
    if exc is not None and get_settings().debug:
        body["diagnostic"] = "".join(
            traceback.format_exception(type(exc), exc, exc.__traceback__)
        )
    return body


def format_validation_errors(errors: list) -> List[str]:
    messages = []
    for err in errors:
        loc = [str(part) for part in err.get("loc", ()) if part not in ("body", "form")]
        field = ".".join(loc)
        msg = err.get("msg", "Invalid value")
        messages.append(f"{field}: {msg}" if field else msg)
    return messages or ["Invalid request"]


def setup_exception_handlers(app: FastAPI) -> None:
    """Register global exception handlers."""

    @app.exception_handler(ProvisioningError)
    async def provisioning_error_handler(request: Request, exc: ProvisioningError) -> JSONResponse:
        log_method = logger.error if exc.status_code >= 500 else logger.warning
        log_method(
            "Request failed",
            category=exc.category,
            messages=exc.messages,
            path=request.url.path,
        )
        headers = {"WWW-Authenticate": "Bearer"} if exc.status_code == 401 else None
        return JSONResponse(
            status_code=exc.status_code,
            content=error_body(exc.category, exc.messages, exc if exc.status_code >= 500 else None),
            headers=headers,
        )

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
        messages = format_validation_errors(exc.errors())
        logger.warning("Validation error", messages=messages, path=request.url.path)
        return JSONResponse(
            status_code=400,
            content=error_body(RequestRejected.category, messages),
        )

    @app.exception_handler(PyMongoError)
    async def database_error_handler(request: Request, exc: PyMongoError) -> JSONResponse:
        logger.error("Database error", error=str(exc), path=request.url.path)
        return JSONResponse(
            status_code=500,
            content=error_body(StorageUnavailable.category, StorageUnavailable().messages, exc),
        )

    @app.exception_handler(Exception)
    async def generic_error_handler(request: Request, exc: Exception) -> JSONResponse:
        logger.exception(
            "Unexpected error",
            error=str(exc),
            error_type=type(exc).__name__,
            path=request.url.path,
        )
        return JSONResponse(
            status_code=500,
            content=error_body("InternalError", ["An unexpected error occurred"], exc),
        )
