"""
User model: the credential record.

Each User is a login identity (email + hashed password) with a role and the
marketplace profile fields (username, phone number, location).

User roles:
  - CUSTOMER: Requests emergency services (the default role for signup)
  - ENGINEER: Fulfils service requests; may also self-register
  - ADMIN: Operator account, only ever assigned by demo/promote_admin.py

Credential fields:
  - hashed_password: bcrypt digest. Deferred: ordinary queries do not load it,
    and touching it without undefer() raises instead of silently querying.
  - password_changed_at: set on every password change after creation. Bearer
    tokens issued before this instant are rejected.
  - password_reset_token / password_reset_expires: SHA-256 digest of the
    outstanding reset token and its expiry. Set and cleared together.
"""

import enum
import uuid
from datetime import datetime, timezone

from sqlalchemy import String, DateTime, Enum
from sqlalchemy.orm import Mapped, mapped_column

from marketplace_api.database import Base
from marketplace_api.security import as_utc


DEFAULT_COUNTRY = "United Kingdom"


class UserRole(str, enum.Enum):
    """
    Defines the role a user holds within the marketplace.

    Inherits from str so the enum value serializes naturally to JSON.
    """
    CUSTOMER = "customer"
    ENGINEER = "engineer"
    ADMIN = "admin"


class User(Base):
    __tablename__ = "users"

    id: Mapped[uuid.UUID] = mapped_column(
        primary_key=True,
        default=uuid.uuid4,
    )

    username: Mapped[str] = mapped_column(
        String(100),
        nullable=False,
        index=True,
    )

    # Login key: stored lower-cased, unique and indexed
    email: Mapped[str] = mapped_column(
        String(255),
        unique=True,
        nullable=False,
        index=True,
    )

    hashed_password: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
        deferred=True,
        deferred_raiseload=True,
    )

    role: Mapped[UserRole] = mapped_column(
        Enum(UserRole),
        default=UserRole.CUSTOMER,
        nullable=False,
    )

    phone_number: Mapped[str] = mapped_column(String(30), nullable=False)

    # Location
    address: Mapped[str] = mapped_column(String(255), nullable=False)
    city: Mapped[str] = mapped_column(String(100), nullable=False)
    zip_code: Mapped[str] = mapped_column(String(10), nullable=False)
    country: Mapped[str] = mapped_column(
        String(100),
        default=DEFAULT_COUNTRY,
        nullable=False,
    )

    # --- Credential lifecycle ---
    password_changed_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )
    password_reset_token: Mapped[str | None] = mapped_column(
        String(64),
        nullable=True,
        index=True,
    )
    password_reset_expires: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )

    # Audit timestamps
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False,
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
        nullable=False,
    )

    @property
    def location(self) -> dict:
        return {
            "address": self.address,
            "city": self.city,
            "zip_code": self.zip_code,
            "country": self.country,
        }

    @property
    def has_pending_reset(self) -> bool:
        return self.password_reset_token is not None

    def changed_password_after(self, issued_at: datetime) -> bool:
        """True if the password changed after a token issued at issued_at."""
        if self.password_changed_at is None:
            return False
        return as_utc(self.password_changed_at) > as_utc(issued_at)

    def set_reset_token(self, hashed_token: str, expires_at: datetime) -> None:
        # Overwrites any outstanding token: only the newest one stays valid
        self.password_reset_token = hashed_token
        self.password_reset_expires = expires_at

    def clear_reset_token(self) -> None:
        self.password_reset_token = None
        self.password_reset_expires = None
