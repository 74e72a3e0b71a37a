"""
FastAPI dependencies for authentication and authorization.

Dependencies are reusable functions that FastAPI injects into route handlers.
They form a dependency chain:

  get_auth_context (bearer token -> AuthContext)        hard: rejects with 401
      ├── get_current_user (AuthContext -> User)
      └── require_roles(*roles) (User -> User)          rejects with 403
  get_optional_auth_context (-> AuthContext | None)     soft: never rejects

The token is read from the "Authorization: Bearer <token>" header, or, when
the header is absent, from the httpOnly auth cookie set at login.

The security primitives are dependencies too (get_password_hasher,
get_token_issuer, ...), which lets tests swap in low cost factors, fixed
clocks and fake mailboxes through app.dependency_overrides.
"""

import logging
from dataclasses import dataclass
from datetime import timedelta
from functools import lru_cache

from fastapi import Depends, Request
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from marketplace_api.config import settings
from marketplace_api.database import get_db
from marketplace_api.exceptions import (
    AuthenticationError,
    ForbiddenError,
    InvalidTokenError,
    NotAuthenticatedError,
    StalePasswordError,
    TokenUserNotFoundError,
)
from marketplace_api.models.user import User, UserRole
from marketplace_api.security import (
    ExpiredTokenError,
    InvalidSignatureError,
    PasswordHasher,
    ResetTokenGenerator,
    TokenClaims,
    TokenIssuer,
    role_permitted,
)
from marketplace_api.services import user_service
from marketplace_api.services.email_service import EmailSender, build_email_sender

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Security primitives
# ---------------------------------------------------------------------------

@lru_cache
def get_password_hasher() -> PasswordHasher:
    return PasswordHasher(rounds=settings.BCRYPT_ROUNDS)


@lru_cache
def get_token_issuer() -> TokenIssuer:
    return TokenIssuer(
        secret_key=settings.SECRET_KEY,
        algorithm=settings.ALGORITHM,
        lifetime=timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES),
    )


@lru_cache
def get_reset_token_generator() -> ResetTokenGenerator:
    return ResetTokenGenerator(
        lifetime=timedelta(minutes=settings.PASSWORD_RESET_TOKEN_EXPIRE_MINUTES),
    )


@lru_cache
def get_email_sender() -> EmailSender:
    return build_email_sender()


# ---------------------------------------------------------------------------
# Authentication
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class AuthContext:
    """The resolved, fresh user behind a request, plus the verified token claims."""
    user: User
    claims: TokenClaims


def extract_token(request: Request) -> str | None:
    """Bearer header first, then the auth cookie."""
    authorization = request.headers.get("Authorization")
    if authorization:
        scheme, _, credentials = authorization.partition(" ")
        if scheme.lower() == "bearer" and credentials.strip():
            return credentials.strip()
    return request.cookies.get(settings.AUTH_COOKIE_NAME) or None


async def authenticate(db: AsyncSession, issuer: TokenIssuer, token: str | None) -> AuthContext:
    """
    Resolve a bearer token to a fresh AuthContext.

    Raises:
        NotAuthenticatedError: No token.
        InvalidTokenError: Bad signature, expired, or malformed.
        TokenUserNotFoundError: The token's user no longer exists.
        StalePasswordError: The password changed after the token was issued.
    """
    if not token:
        raise NotAuthenticatedError()

    try:
        claims = issuer.verify(token)
    except ExpiredTokenError:
        logger.info("Rejected expired bearer token")
        raise InvalidTokenError()
    except InvalidSignatureError:
        logger.warning("Rejected bearer token with invalid signature")
        raise InvalidTokenError()

    user = await user_service.get_user_by_id(db, claims.subject)
    if user is None:
        logger.info("Rejected bearer token for missing user %s", claims.subject)
        raise TokenUserNotFoundError()

    if user.changed_password_after(claims.issued_at):
        logger.info("Rejected stale bearer token for user %s", user.id)
        raise StalePasswordError()

    return AuthContext(user=user, claims=claims)


async def get_auth_context(
    request: Request,
    db: AsyncSession = Depends(get_db),
    issuer: TokenIssuer = Depends(get_token_issuer),
) -> AuthContext:
    """Hard access check: the request is rejected with 401 unless the token is valid and fresh."""
    return await authenticate(db, issuer, extract_token(request))


async def get_optional_auth_context(
    request: Request,
    db: AsyncSession = Depends(get_db),
    issuer: TokenIssuer = Depends(get_token_issuer),
) -> AuthContext | None:
    """
    Soft access check for routes that render differently for logged-in callers.

    Runs the same checks as get_auth_context but returns None on any failure.
    """
    try:
        return await authenticate(db, issuer, extract_token(request))
    except AuthenticationError:
        return None
    except SQLAlchemyError:
        logger.exception("Soft session check failed on the user lookup; treating caller as anonymous")
        await db.rollback()
        return None


async def get_current_user(
    context: AuthContext = Depends(get_auth_context),
) -> User:
    return context.user


# ---------------------------------------------------------------------------
# Authorization
# ---------------------------------------------------------------------------

def require_roles(*roles: UserRole):
    """
    Build a dependency that only lets users with one of roles through.

    Usage:
        @router.get("/users")
        async def list_users(admin: User = Depends(require_roles(UserRole.ADMIN))):
            ...
    """
    allowed_roles = frozenset(roles)

    async def check_role(user: User = Depends(get_current_user)) -> User:
        if not role_permitted(user.role, allowed_roles):
            raise ForbiddenError()
        return user

    return check_role


require_admin = require_roles(UserRole.ADMIN)
