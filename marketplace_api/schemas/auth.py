"""
Pydantic schemas for authentication endpoints.

These only describe the shape of each body. Missing keys or wrong types are
rejected by FastAPI with a 400 before our code runs; format rules (email
pattern, password length, matching confirmation) are applied by the
services through marketplace_api.validation.
"""

from pydantic import BaseModel

from marketplace_api.models.user import UserRole
from marketplace_api.schemas.user import CamelModel, Location, UserResponse


class SignupRequest(CamelModel):
    """Request body for POST /signup/user."""
    username: str
    email: str
    password: str
    password_confirm: str
    phone_number: str
    location: Location
    role: UserRole | None = None


class LoginRequest(CamelModel):
    """Request body for POST /login."""
    email: str
    password: str


class ForgotPasswordRequest(CamelModel):
    """Request body for POST /forgotPassword."""
    email: str


class ResetPasswordRequest(CamelModel):
    """Request body for PATCH /resetPassword/{token}."""
    password: str
    password_confirm: str


class UpdatePasswordRequest(CamelModel):
    """Request body for PATCH /updateMyPassword."""
    password_current: str
    password: str
    password_confirm: str


class AuthResponse(BaseModel):
    """Response body for signup, login, reset and update-password: token + user."""
    status: str = "success"
    token: str
    token_type: str = "bearer"
    user: UserResponse


class MessageResponse(BaseModel):
    status: str = "success"
    message: str | None = None


class SessionResponse(BaseModel):
    """Response body for GET /session (never fails on a bad token)."""
    authenticated: bool
    user: UserResponse | None = None
