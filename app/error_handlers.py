"""Custom error handlers and exceptions for the application."""
from fastapi import Request, status
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError
from sqlalchemy.exc import SQLAlchemyError, IntegrityError, OperationalError, InterfaceError
from typing import Union

from .core.cookies import clear_auth_cookies
from .logging_config import get_logger

logger = get_logger("error_handlers")


class AppException(Exception):
    """Base exception for application-specific errors."""

    # Auth failures must not leave session cookies behind
    clears_session = False

    def __init__(self, message: str, status_code: int = 500, details: dict = None):
        self.message = message
        self.status_code = status_code
        self.details = details or {}
        super().__init__(self.message)


class ResourceNotFoundError(AppException):
    """Raised when a requested resource is not found."""

    def __init__(self, resource: str, identifier: Union[int, str]):
        super().__init__(
            message=f"{resource} with identifier '{identifier}' not found",
            status_code=404,
            details={"resource": resource, "identifier": str(identifier)}
        )


class Conflict(AppException):
    """Raised when a unique constraint rejects a new record."""

    def __init__(self, message: str = "Error during user registration", field: str = None):
        super().__init__(
            message=message,
            status_code=409,
            details={"field": field} if field else {}
        )


class ValidationFailure(AppException):
    """Raised when request data fails validation. Errors are keyed by field name."""

    def __init__(self, fields: dict[str, str], message: str = "Validation failed"):
        super().__init__(
            message=message,
            status_code=422,
            details={"fields": fields}
        )
        self.fields = fields


class AuthenticationError(AppException):
    """Base for 401 responses."""

    clears_session = True

    def __init__(self, message: str = "Unauthorized", details: dict = None):
        super().__init__(message=message, status_code=401, details=details)


class InvalidCredentials(AuthenticationError):
    def __init__(self):
        super().__init__("Invalid email or password")


class AccountDisabled(AuthenticationError):
    def __init__(self):
        super().__init__("User disabled")


class NotVerified(AuthenticationError):
    """Carries a reason marker so clients can offer to resend the verification email."""

    def __init__(self):
        super().__init__("Not verified", details={"reason": "not_verified"})


class Unauthorized(AuthenticationError):
    def __init__(self):
        super().__init__("Unauthorized")


class Forbidden(AppException):
    def __init__(self, message: str = "Admin access required"):
        super().__init__(message=message, status_code=403)


class InvalidToken(AppException):
    """Raised when a federated id token is invalid or carries no email."""

    clears_session = True

    def __init__(self, provider: str):
        super().__init__(
            message=f"Invalid or missing email in {provider.capitalize()} token",
            status_code=400,
            details={"provider": provider}
        )


class FederatedSignInFailed(AppException):
    clears_session = True

    def __init__(self, provider: str):
        super().__init__(
            message=f"Error during {provider.capitalize()} sign-in",
            status_code=400,
            details={"provider": provider}
        )


class UpstreamUnavailable(AppException):
    """Raised when the database, session store or identity service cannot be reached."""

    def __init__(self, service: str):
        super().__init__(
            message="Service temporarily unavailable",
            status_code=503,
            details={"service": service}
        )


async def app_exception_handler(request: Request, exc: AppException):
    """Handler for custom application exceptions."""
    log = logger.warning if exc.status_code < 500 else logger.error
    log(
        f"[{_request_id(request)}] {exc.status_code} {exc.message}",
        extra={
            "status_code": exc.status_code,
            "path": request.url.path,
            "method": request.method,
            "details": exc.details
        }
    )

    response = JSONResponse(
        status_code=exc.status_code,
        content={
            "error": exc.message,
            "details": exc.details,
            "path": request.url.path
        }
    )
    if exc.clears_session:
        clear_auth_cookies(response)
    return response


def _field_name(loc: tuple) -> str:
    # ("body", "confirmPassword") -> "confirmPassword"
    parts = [str(part) for part in loc if part not in ("body", "query", "path")]
    return ".".join(parts) if parts else "body"


async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """Render request validation errors as a field-indexed ValidationFailure."""
    fields: dict[str, str] = {}
    for error in exc.errors():
        # Validators raise ValueError with the client-facing text
        cause = error.get("ctx", {}).get("error")
        message = str(cause) if isinstance(cause, ValueError) else error["msg"]
        # First message per field wins
        fields.setdefault(_field_name(error["loc"]), message)

    logger.warning(
        f"Validation error on {request.method} {request.url.path}",
        extra={"validation_errors": list(fields)}
    )

    return await app_exception_handler(request, ValidationFailure(fields))


def _request_id(request: Request):
    return getattr(request.state, "request_id", None)


async def sqlalchemy_exception_handler(request: Request, exc: SQLAlchemyError):
    """
    Map database errors that escaped the repositories. Driver messages
    can contain SQL and parameters, so they are logged but never returned.
    """
    if isinstance(exc, IntegrityError):
        error_msg = "Data integrity constraint violated"
        status_code = status.HTTP_409_CONFLICT
    elif isinstance(exc, (OperationalError, InterfaceError)):
        error_msg = "Service temporarily unavailable"
        status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    else:
        error_msg = "Database error occurred"
        status_code = status.HTTP_500_INTERNAL_SERVER_ERROR

    logger.error(
        f"[{_request_id(request)}] {type(exc).__name__} on {request.method} {request.url.path}",
        exc_info=True
    )

    return JSONResponse(
        status_code=status_code,
        content={
            "error": error_msg,
            "details": {"request_id": _request_id(request)},
            "path": request.url.path
        }
    )


async def generic_exception_handler(request: Request, exc: Exception):
    """Last resort: log the traceback, return an opaque 500."""
    logger.critical(
        f"[{_request_id(request)}] Unhandled {type(exc).__name__} on "
        f"{request.method} {request.url.path}",
        exc_info=True
    )

    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={
            "error": "Internal server error",
            "details": {"request_id": _request_id(request)},
            "path": request.url.path
        }
    )
