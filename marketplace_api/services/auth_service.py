"""
Authentication service: the credential lifecycle, separated from HTTP concerns.

The router calls these functions and translates the results into HTTP
responses. The hasher, token issuer, reset-token generator and email sender
are passed in, so the flows can be tested with low cost factors, fixed
clocks and fake mailboxes.

Signup flow:
  1. Normalize and validate every field (marketplace_api.validation)
  2. Reject an email that is already registered
  3. Hash the password and persist the user
  4. Return a bearer token so the user is immediately logged in

Login flow:
  1. Look up user by email (hash explicitly requested)
  2. Verify password against stored hash
  3. Return a bearer token

Password reset flow:
  1. forgot_password: store the digest + expiry of a new reset token
     (overwriting any previous one), email the raw token in a link.
     If the email fails, clear the fields again and surface the error.
  2. reset_password: find the user by the token digest, check expiry, set the
     new password, clear the fields, return a fresh bearer token.

Every password change stamps password_changed_at with the token issuer's
clock, so any bearer token issued earlier is rejected by access control.

Security notes:
  - Login returns the same error for "wrong password" and "email not found"
    to prevent user enumeration; the unknown-email path still spends one
    hash verification so response times do not tell the two apart
  - Plaintext passwords and raw reset tokens are never logged
"""

import logging
import uuid

from sqlalchemy.ext.asyncio import AsyncSession

from marketplace_api.exceptions import (
    DuplicateEmailError,
    EmailDeliveryError,
    InputValidationError,
    InvalidCredentialsError,
    InvalidOrExpiredResetTokenError,
    TokenUserNotFoundError,
    UserNotFoundError,
    WrongCurrentPasswordError,
)
from marketplace_api.models.user import User, UserRole
from marketplace_api.security import PasswordHasher, ResetTokenGenerator, TokenIssuer
from marketplace_api.services import user_service
from marketplace_api.services.email_service import EmailSender
from marketplace_api.validation import (
    failures,
    normalize_email,
    normalize_location,
    validate_new_password,
    validate_new_user,
)

logger = logging.getLogger(__name__)


RESET_EMAIL_SUBJECT = "Your password reset token (valid for {minutes} min)"
RESET_EMAIL_BODY = (
    "Forgot your password? Set a new one here: {reset_url}\n"
    "If you didn't forget your password, please ignore this email!"
)


def _set_password(user: User, password: str, hasher: PasswordHasher, issuer: TokenIssuer) -> None:
    user.hashed_password = hasher.hash(password)
    # Same clock that stamps "iat", so freshness comparisons are consistent
    user.password_changed_at = issuer.clock()


def build_reset_url(frontend_url: str, raw_token: str) -> str:
    return f"{frontend_url.rstrip('/')}/change-password?token={raw_token}"


async def signup(
    db: AsyncSession,
    hasher: PasswordHasher,
    issuer: TokenIssuer,
    username: str,
    email: str,
    password: str,
    password_confirm: str,
    phone_number: str,
    location: dict,
    role: UserRole | None = None,
) -> tuple[User, str]:
    """
    Register a new user.

    Returns:
        Tuple of (User instance, bearer token).

    Raises:
        InputValidationError: If any field fails validation.
        DuplicateEmailError: If the email is already registered.
    """
    email = normalize_email(email)
    username = username.strip()
    location = normalize_location(location)

    errors = failures(
        validate_new_user(
            username=username,
            email=email,
            password=password,
            password_confirm=password_confirm,
            phone_number=phone_number,
            location=location,
            role=role,
        )
    )
    if errors:
        raise InputValidationError(errors)

    if await user_service.get_user_by_email(db, email) is not None:
        raise DuplicateEmailError(email)

    # password_changed_at stays unset: the first change happens after creation
    user = User(
        username=username,
        email=email,
        hashed_password=hasher.hash(password),
        role=role or UserRole.CUSTOMER,
        phone_number=phone_number,
        address=location["address"],
        city=location["city"],
        zip_code=location["zip_code"],
        country=location["country"],
    )
    db.add(user)
    await db.flush()

    logger.info("User registered: %s (%s)", user.id, user.role.value)
    return user, issuer.issue(user.id)


async def login(
    db: AsyncSession,
    hasher: PasswordHasher,
    issuer: TokenIssuer,
    email: str,
    password: str,
) -> tuple[User, str]:
    """
    Authenticate a user and return a bearer token.

    Raises:
        InputValidationError: If email or password is empty.
        InvalidCredentialsError: If email doesn't exist or password is wrong.
    """
    if not email or not password:
        raise InputValidationError("Please provide email and password")

    user = await user_service.get_user_by_email(db, email, with_password=True)

    # Same error for both cases, prevents user enumeration
    if user is None:
        hasher.dummy_verify()
        logger.info("Login failed: unknown email")
        raise InvalidCredentialsError()

    if not hasher.verify(password, user.hashed_password):
        logger.info("Login failed for user %s: wrong password", user.id)
        raise InvalidCredentialsError()

    return user, issuer.issue(user.id)


async def forgot_password(
    db: AsyncSession,
    reset_tokens: ResetTokenGenerator,
    email_sender: EmailSender,
    email: str,
    frontend_url: str,
) -> None:
    """
    Issue a reset token and email it to the user.

    Raises:
        UserNotFoundError: If no user has this email.
        EmailDeliveryError: If the email could not be sent. The reset fields
            have been cleared again by then, so a retry starts clean.
    """
    user = await user_service.get_user_by_email(db, email)
    if user is None:
        raise UserNotFoundError()

    token = reset_tokens.generate()
    user.set_reset_token(token.hashed_token, token.expires_at)
    await db.flush()
    logger.info("Password reset token issued for user %s", user.id)

    minutes = int(reset_tokens.lifetime.total_seconds() // 60)
    try:
        await email_sender.send(
            recipient=user.email,
            subject=RESET_EMAIL_SUBJECT.format(minutes=minutes),
            body=RESET_EMAIL_BODY.format(reset_url=build_reset_url(frontend_url, token.raw_token)),
        )
    except EmailDeliveryError:
        # The user never received this token, so discard it
        logger.error("Reset email for user %s could not be delivered; token discarded", user.id)
        user.clear_reset_token()
        await db.flush()
        raise


async def reset_password(
    db: AsyncSession,
    hasher: PasswordHasher,
    issuer: TokenIssuer,
    reset_tokens: ResetTokenGenerator,
    raw_token: str,
    password: str,
    password_confirm: str,
) -> tuple[User, str]:
    """
    Set a new password using a reset token, then log the user in.

    The token is single-use: the stored digest is cleared on success, so
    submitting the same raw token again fails.

    Raises:
        InvalidOrExpiredResetTokenError: Unknown, already used, or expired token.
        InputValidationError: If the new password is invalid.
    """
    user = await user_service.get_user_by_reset_token(db, reset_tokens.digest(raw_token))
    if user is None:
        raise InvalidOrExpiredResetTokenError()

    if not reset_tokens.verify(raw_token, user.password_reset_token, user.password_reset_expires):
        # Expired: drop the stale fields now that we've seen them
        user.clear_reset_token()
        await db.flush()
        raise InvalidOrExpiredResetTokenError()

    errors = failures(validate_new_password(password, password_confirm))
    if errors:
        raise InputValidationError(errors)

    _set_password(user, password, hasher, issuer)
    user.clear_reset_token()
    await db.flush()

    logger.info("Password reset completed for user %s", user.id)
    return user, issuer.issue(user.id)


async def update_password(
    db: AsyncSession,
    hasher: PasswordHasher,
    issuer: TokenIssuer,
    user_id: uuid.UUID,
    password_current: str,
    password: str,
    password_confirm: str,
) -> tuple[User, str]:
    """
    Change the password of an authenticated user.

    Returns a fresh token: the one used for this request was issued before
    the change and is now stale.

    Raises:
        WrongCurrentPasswordError: If password_current doesn't match.
        InputValidationError: If the new password is invalid.
    """
    user = await user_service.get_user_by_id(db, user_id, with_password=True)
    if user is None:
        raise TokenUserNotFoundError()

    if not hasher.verify(password_current, user.hashed_password):
        logger.info("Password change refused for user %s: wrong current password", user.id)
        raise WrongCurrentPasswordError()

    errors = failures(validate_new_password(password, password_confirm))
    if errors:
        raise InputValidationError(errors)

    _set_password(user, password, hasher, issuer)
    await db.flush()

    logger.info("Password changed for user %s", user.id)
    return user, issuer.issue(user.id)
