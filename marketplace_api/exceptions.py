"""
Custom exception classes and FastAPI exception handlers.

The service layer raises domain-specific errors (InvalidCredentialsError,
StalePasswordError, ...) without importing HTTP concepts. Each class carries
its own status code and error type, and a single handler translates any of
them into the uniform response envelope:

    {"status": "fail", "error_type": "...", "detail": "..."}

Exception hierarchy:
    MarketplaceAPIError (base)
    ├── InputValidationError            400  malformed or missing input
    ├── DuplicateEmailError             400  signup with a registered email
    ├── InvalidOrExpiredResetTokenError 400  unknown, used or expired reset token
    ├── AuthenticationError             401  (base for bearer-token failures)
    │   ├── NotAuthenticatedError            no token presented
    │   ├── InvalidTokenError                bad signature, expired, malformed
    │   ├── TokenUserNotFoundError           token subject no longer exists
    │   └── StalePasswordError               token predates a password change
    ├── InvalidCredentialsError         401  login failure (undifferentiated)
    ├── WrongCurrentPasswordError       401  update-password check failed
    ├── ForbiddenError                  403  role not in the allow-list
    ├── UserNotFoundError               404  forgot-password for unknown email, admin lookups
    └── EmailDeliveryError              500  outbound email failed

Messages never include passwords, raw tokens, or signing keys.
"""

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse


# ---------------------------------------------------------------------------
# Base exception
# ---------------------------------------------------------------------------

class MarketplaceAPIError(Exception):
    """Base exception for all domain errors."""

    status_code: int = status.HTTP_400_BAD_REQUEST
    error_type: str = "error"
    headers: dict[str, str] | None = None

    def __init__(self, detail: str = "An error occurred"):
        self.detail = detail
        super().__init__(self.detail)


# ---------------------------------------------------------------------------
# 400
# ---------------------------------------------------------------------------

class InputValidationError(MarketplaceAPIError):
    """
    Raised when request data fails validation.

    Attributes:
        reasons: Every failed check, in the order they were evaluated.
    """

    error_type = "validation_error"

    def __init__(self, reasons: list[str] | str):
        if isinstance(reasons, str):
            reasons = [reasons]
        self.reasons = reasons
        super().__init__(". ".join(reasons))


class DuplicateEmailError(MarketplaceAPIError):
    """Raised when attempting to register with an email that's already in use."""

    error_type = "duplicate_email"

    def __init__(self, email: str):
        self.email = email
        super().__init__("User with this email already exists")


class InvalidOrExpiredResetTokenError(MarketplaceAPIError):
    """Raised when a reset token is unknown, already used, or past its expiry."""

    error_type = "invalid_or_expired_token"

    def __init__(self):
        super().__init__("Token is invalid or has expired")


# ---------------------------------------------------------------------------
# 401
# ---------------------------------------------------------------------------

class AuthenticationError(MarketplaceAPIError):
    """Base class for rejected bearer tokens. Callers are told to log in again."""

    status_code = status.HTTP_401_UNAUTHORIZED
    error_type = "unauthenticated"
    headers = {"WWW-Authenticate": "Bearer"}


class NotAuthenticatedError(AuthenticationError):
    """Raised when a protected route is called without a token."""

    def __init__(self):
        super().__init__("You are not logged in! Please log in to get access.")


class InvalidTokenError(AuthenticationError):
    """Raised when the token signature is bad, the token expired, or it is malformed."""

    error_type = "invalid_token"

    def __init__(self):
        super().__init__("Invalid token. Please log in again!")


class TokenUserNotFoundError(AuthenticationError):
    """Raised when the user a valid token was issued for no longer exists."""

    error_type = "token_user_not_found"

    def __init__(self):
        super().__init__("The user belonging to this token no longer exists.")


class StalePasswordError(AuthenticationError):
    """Raised when the token was issued before the user's last password change."""

    error_type = "stale_password"

    def __init__(self):
        super().__init__("User recently changed password! Please log in again.")


class InvalidCredentialsError(MarketplaceAPIError):
    """Raised when login credentials are incorrect."""

    status_code = status.HTTP_401_UNAUTHORIZED
    error_type = "invalid_credentials"

    def __init__(self):
        super().__init__("Incorrect email or password")


class WrongCurrentPasswordError(MarketplaceAPIError):
    """Raised when the current password supplied to update-password is wrong."""

    status_code = status.HTTP_401_UNAUTHORIZED
    error_type = "wrong_current_password"

    def __init__(self):
        super().__init__("Your current password is wrong.")


# ---------------------------------------------------------------------------
# 403 / 404 / 500
# ---------------------------------------------------------------------------

class ForbiddenError(MarketplaceAPIError):
    """Raised when the user's role is not allowed to perform an action."""

    status_code = status.HTTP_403_FORBIDDEN
    error_type = "forbidden"

    def __init__(self, detail: str = "You do not have permission to perform this action"):
        super().__init__(detail)


class UserNotFoundError(MarketplaceAPIError):
    """Raised when a looked-up user does not exist (forgot-password, admin lookups)."""

    status_code = status.HTTP_404_NOT_FOUND
    error_type = "user_not_found"

    def __init__(self, detail: str = "There is no user with that email address."):
        super().__init__(detail)


class EmailDeliveryError(MarketplaceAPIError):
    """Raised when the outbound email could not be sent."""

    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    error_type = "email_delivery_failed"

    def __init__(self, detail: str = "There was an error sending the email. Try again later!"):
        super().__init__(detail)


# ---------------------------------------------------------------------------
# FastAPI exception handlers
# ---------------------------------------------------------------------------

def _envelope(status_code: int, error_type: str, detail: str, headers=None) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={"status": "fail", "error_type": error_type, "detail": detail},
        headers=headers,
    )


def register_exception_handlers(app: FastAPI) -> None:
    """
    Register exception handlers with the FastAPI application.

    Starlette resolves handlers along the exception's MRO, so the base-class
    handler covers every MarketplaceAPIError subclass.

    This is called once during app startup in main.py.
    """

    @app.exception_handler(MarketplaceAPIError)
    async def marketplace_error_handler(
        request: Request, exc: MarketplaceAPIError
    ) -> JSONResponse:
        return _envelope(exc.status_code, exc.error_type, exc.detail, exc.headers)

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(
        request: Request, exc: RequestValidationError
    ) -> JSONResponse:
        # Missing or mistyped fields are a 400, same as failed field validators.
        # Only field locations and messages are echoed, never the submitted input.
        messages = []
        for error in exc.errors():
            location = ".".join(str(part) for part in error["loc"] if part != "body")
            messages.append(f"{location}: {error['msg']}" if location else error["msg"])
        return _envelope(
            status.HTTP_400_BAD_REQUEST,
            InputValidationError.error_type,
            ". ".join(messages) or "Invalid request",
        )
