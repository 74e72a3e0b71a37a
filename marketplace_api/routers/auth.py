"""
Authentication router: credential lifecycle endpoints.

Endpoints:
  POST  /signup/user             — Register and get a token (public)
  POST  /login                   — Authenticate and get a token (public)
  GET   /logout                  — Overwrite the auth cookie (public)
  POST  /forgotPassword          — Email a password reset link (public)
  PATCH /resetPassword/{token}   — Set a new password with a reset token (public)
  PATCH /updateMyPassword        — Change password (authenticated)
  GET   /session                 — Who is logged in, if anyone (public, never 401)

Every endpoint that returns a token also sets it as an httpOnly cookie
(Secure outside development), expiring with the token itself.

Security audit notes:
  - Plaintext passwords exist only in memory during request processing
  - Raw reset tokens appear only in the emailed link and the request path;
    neither the token nor the link is logged
  - No request body logging middleware is installed
"""

from fastapi import APIRouter, Depends, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from marketplace_api.config import settings
from marketplace_api.database import get_db
from marketplace_api.dependencies import (
    AuthContext,
    get_auth_context,
    get_email_sender,
    get_optional_auth_context,
    get_password_hasher,
    get_reset_token_generator,
    get_token_issuer,
)
from marketplace_api.models.user import User
from marketplace_api.schemas.auth import (
    AuthResponse,
    ForgotPasswordRequest,
    LoginRequest,
    MessageResponse,
    ResetPasswordRequest,
    SessionResponse,
    SignupRequest,
    UpdatePasswordRequest,
)
from marketplace_api.schemas.user import UserResponse
from marketplace_api.security import PasswordHasher, ResetTokenGenerator, TokenIssuer
from marketplace_api.services import auth_service
from marketplace_api.services.email_service import EmailSender

router = APIRouter()

LOGGED_OUT_COOKIE_VALUE = "loggedout"
LOGGED_OUT_COOKIE_SECONDS = 10


def send_token(response: Response, user: User, token: str, issuer: TokenIssuer) -> AuthResponse:
    """Set the auth cookie and build the {status, token, user} body."""
    response.set_cookie(
        key=settings.AUTH_COOKIE_NAME,
        value=token,
        max_age=int(issuer.lifetime.total_seconds()),
        httponly=True,
        secure=settings.secure_cookies,
        samesite="lax",
    )
    return AuthResponse(token=token, user=UserResponse.model_validate(user))


@router.post(
    "/signup/user",
    response_model=AuthResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Register a new user",
)
async def signup(
    request: SignupRequest,
    response: Response,
    db: AsyncSession = Depends(get_db),
    hasher: PasswordHasher = Depends(get_password_hasher),
    issuer: TokenIssuer = Depends(get_token_issuer),
):
    """
    Register a new customer (or engineer).

    - **email**: Valid format, not already registered (stored lower-cased)
    - **password** / **passwordConfirm**: At least 8 characters, must match
    - **phoneNumber**: UK format
    - **location**: address, city, UK postcode, country
    - **role**: Optional, `customer` (default) or `engineer`
    """
    user, token = await auth_service.signup(
        db=db,
        hasher=hasher,
        issuer=issuer,
        username=request.username,
        email=request.email,
        password=request.password,
        password_confirm=request.password_confirm,
        phone_number=request.phone_number,
        location=request.location.model_dump(),
        role=request.role,
    )
    return send_token(response, user, token, issuer)


@router.post(
    "/login",
    response_model=AuthResponse,
    summary="Authenticate and get a token",
)
async def login(
    request: LoginRequest,
    response: Response,
    db: AsyncSession = Depends(get_db),
    hasher: PasswordHasher = Depends(get_password_hasher),
    issuer: TokenIssuer = Depends(get_token_issuer),
):
    """
    Authenticate with email and password.

    Returns a bearer token to send on subsequent requests:

        Authorization: Bearer <token>

    A wrong password and an unknown email produce the identical 401.
    """
    user, token = await auth_service.login(
        db=db,
        hasher=hasher,
        issuer=issuer,
        email=request.email,
        password=request.password,
    )
    return send_token(response, user, token, issuer)


@router.get(
    "/logout",
    response_model=MessageResponse,
    summary="Log out",
)
async def logout(response: Response):
    """
    Overwrite the auth cookie with a placeholder that expires in seconds.

    Bearer tokens held by the client are stateless; the client discards them.
    """
    response.set_cookie(
        key=settings.AUTH_COOKIE_NAME,
        value=LOGGED_OUT_COOKIE_VALUE,
        max_age=LOGGED_OUT_COOKIE_SECONDS,
        httponly=True,
        secure=settings.secure_cookies,
        samesite="lax",
    )
    return MessageResponse()


@router.post(
    "/forgotPassword",
    response_model=MessageResponse,
    summary="Request a password reset email",
)
async def forgot_password(
    request: ForgotPasswordRequest,
    db: AsyncSession = Depends(get_db),
    reset_tokens: ResetTokenGenerator = Depends(get_reset_token_generator),
    email_sender: EmailSender = Depends(get_email_sender),
):
    """
    Email a single-use reset link, valid for 10 minutes.

    Requesting again replaces the previous link. Returns 404 for an unknown
    email and 500 if the email could not be sent.
    """
    await auth_service.forgot_password(
        db=db,
        reset_tokens=reset_tokens,
        email_sender=email_sender,
        email=request.email,
        frontend_url=settings.FRONTEND_URL,
    )
    return MessageResponse(message="Token sent to email!")


@router.patch(
    "/resetPassword/{token}",
    response_model=AuthResponse,
    summary="Reset password with an emailed token",
)
async def reset_password(
    token: str,
    request: ResetPasswordRequest,
    response: Response,
    db: AsyncSession = Depends(get_db),
    hasher: PasswordHasher = Depends(get_password_hasher),
    issuer: TokenIssuer = Depends(get_token_issuer),
    reset_tokens: ResetTokenGenerator = Depends(get_reset_token_generator),
):
    """Set a new password and log the user in. All earlier bearer tokens stop working."""
    user, session_token = await auth_service.reset_password(
        db=db,
        hasher=hasher,
        issuer=issuer,
        reset_tokens=reset_tokens,
        raw_token=token,
        password=request.password,
        password_confirm=request.password_confirm,
    )
    return send_token(response, user, session_token, issuer)


@router.patch(
    "/updateMyPassword",
    response_model=AuthResponse,
    summary="Change password",
)
async def update_my_password(
    request: UpdatePasswordRequest,
    response: Response,
    context: AuthContext = Depends(get_auth_context),
    db: AsyncSession = Depends(get_db),
    hasher: PasswordHasher = Depends(get_password_hasher),
    issuer: TokenIssuer = Depends(get_token_issuer),
):
    """
    Change the password after re-checking the current one.

    The response carries a new token: the one used for this request is
    rejected from now on.
    """
    user, token = await auth_service.update_password(
        db=db,
        hasher=hasher,
        issuer=issuer,
        user_id=context.user.id,
        password_current=request.password_current,
        password=request.password,
        password_confirm=request.password_confirm,
    )
    return send_token(response, user, token, issuer)


@router.get(
    "/session",
    response_model=SessionResponse,
    summary="Current session, if any",
)
async def session(context: AuthContext | None = Depends(get_optional_auth_context)):
    """Report whether the caller is logged in. Invalid or stale tokens read as anonymous."""
    if context is None:
        return SessionResponse(authenticated=False)
    return SessionResponse(authenticated=True, user=UserResponse.model_validate(context.user))
