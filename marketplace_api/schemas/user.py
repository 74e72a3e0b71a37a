"""
Pydantic schemas for user profile requests and responses.

JSON bodies use camelCase (phoneNumber, zipCode, createdAt); Python code uses
snake_case. CamelModel maps between the two and accepts either on input.

hashed_password and the reset-token fields are NEVER included in any
response schema.
"""

import uuid
from datetime import datetime

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

from marketplace_api.models.user import DEFAULT_COUNTRY, UserRole


class CamelModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )


class Location(CamelModel):
    address: str
    city: str
    zip_code: str
    country: str = DEFAULT_COUNTRY


class UserResponse(CamelModel):
    """Public representation of a User."""
    id: uuid.UUID
    username: str
    email: str
    role: UserRole
    phone_number: str
    location: Location
    created_at: datetime


class UserEnvelope(BaseModel):
    status: str = "success"
    user: UserResponse


class UpdateMeRequest(CamelModel):
    """
    Request body for PATCH /updateMe.

    Only username, phoneNumber and location are applied. The password fields
    are declared so the service can refuse them explicitly instead of
    ignoring them; any other key is dropped.
    """
    username: str | None = None
    phone_number: str | None = None
    location: Location | None = None
    password: str | None = None
    password_confirm: str | None = None
