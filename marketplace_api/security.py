"""
Security primitives: password hashing, JWT bearer tokens, reset tokens.

This module centralizes all cryptographic operations so they're easy to
audit and update. Every primitive is a small class that receives its
configuration (cost factor, signing secret, lifetimes, clock) when it is
constructed; default instances built from settings live in dependencies.py.

1. PASSWORD HASHING (bcrypt)
   - Passwords are never stored in plaintext
   - bcrypt with a fixed work factor (12 rounds by default) makes brute-force
     and rainbow-table attacks infeasible at rest; the salt is embedded in
     each hash, so hashing the same password twice gives different digests
   - passlib's CryptContext performs the comparison in constant time

2. JWT BEARER TOKENS
   - Payload: {"sub": <user id>, "iat": <issued at>, "exp": <expiry>}
   - Signed with SECRET_KEY using HS256 (HMAC-SHA256)
   - "iat" keeps sub-second precision so a token issued right after a
     password change is never mistaken for one issued before it
   - Rotating SECRET_KEY invalidates every outstanding token

3. PASSWORD RESET TOKENS
   - 32 random bytes (hex encoded) are emailed to the user
   - Only the SHA-256 digest and an expiry are persisted: a database leak
     does not yield usable reset tokens. The token's entropy, not a cost
     factor, provides the margin, so a fast hash is sufficient.

4. ROLE CHECKS
   - role_permitted() is the pure allow-list test behind require_roles()
"""

import hashlib
import hmac
import secrets
import uuid
from collections.abc import Callable, Collection, Hashable
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

from jose import JWTError, jwt
from passlib.context import CryptContext


Clock = Callable[[], datetime]


def utcnow() -> datetime:
    """Default clock: the current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


def as_utc(value: datetime) -> datetime:
    """
    Normalize a datetime to aware UTC.

    SQLite hands back naive datetimes even for timezone-aware columns; every
    value this service writes is UTC, so a naive value is interpreted as UTC.
    """
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


# ---------------------------------------------------------------------------
# 1. Password Hashing (bcrypt)
# ---------------------------------------------------------------------------


class PasswordHasher:
    """Salted one-way password hashing. Stateless and safe to share across requests."""

    def __init__(self, rounds: int = 12):
        self.rounds = rounds
        self._context = CryptContext(
            schemes=["bcrypt"],
            deprecated="auto",
            bcrypt__rounds=rounds,
        )

    def hash(self, plain_password: str) -> str:
        """
        Hash a plaintext password.

        Returns:
            A bcrypt hash string (e.g., "$2b$12$...").
        """
        return self._context.hash(plain_password)

    def verify(self, plain_password: str, hashed_password: str) -> bool:
        """
        Check a plaintext password against a stored hash.

        A wrong password is not an error: this returns False. A malformed
        stored hash also returns False rather than raising.
        """
        try:
            return self._context.verify(plain_password, hashed_password)
        except ValueError:
            return False

    def dummy_verify(self) -> bool:
        """Spend the time of one verification. Used when there is no hash to check."""
        return self._context.dummy_verify()


# ---------------------------------------------------------------------------
# 2. JWT Bearer Tokens
# ---------------------------------------------------------------------------


class TokenVerificationError(Exception):
    """Base class for bearer-token verification failures."""


class ExpiredTokenError(TokenVerificationError):
    """The token's signature is valid but its expiry has passed."""


class InvalidSignatureError(TokenVerificationError):
    """The signature check failed or the token is malformed."""


@dataclass(frozen=True)
class TokenClaims:
    """The verified contents of a bearer token."""
    subject: uuid.UUID
    issued_at: datetime
    expires_at: datetime


class TokenIssuer:
    """Creates and verifies signed, time-bound bearer tokens."""

    def __init__(
        self,
        secret_key: str,
        algorithm: str = "HS256",
        lifetime: timedelta = timedelta(minutes=30),
        clock: Clock = utcnow,
    ):
        self._secret_key = secret_key
        self.algorithm = algorithm
        self.lifetime = lifetime
        self.clock = clock

    def issue(self, subject_id: uuid.UUID) -> str:
        """Create a signed token for subject_id, valid for the configured lifetime."""
        now = self.clock()
        claims = {
            "sub": str(subject_id),
            "iat": now.timestamp(),
            "exp": now + self.lifetime,
        }
        return jwt.encode(claims, self._secret_key, algorithm=self.algorithm)

    def verify(self, token: str) -> TokenClaims:
        """
        Check the token's signature and expiry.

        Expiry is evaluated against this issuer's clock rather than the
        library's, so tests can move time deterministically.

        Raises:
            ExpiredTokenError: The token is authentic but past its expiry.
            InvalidSignatureError: Tampered, signed with another key, or malformed.
        """
        try:
            payload = jwt.decode(
                token,
                self._secret_key,
                algorithms=[self.algorithm],
                options={"verify_exp": False},
            )
        except JWTError as exc:
            raise InvalidSignatureError("Token signature is invalid") from exc

        try:
            subject = uuid.UUID(payload["sub"])
            issued_at = datetime.fromtimestamp(float(payload["iat"]), tz=timezone.utc)
            expires_at = datetime.fromtimestamp(float(payload["exp"]), tz=timezone.utc)
        except (KeyError, TypeError, ValueError) as exc:
            raise InvalidSignatureError("Token claims are malformed") from exc

        if self.clock() >= expires_at:
            raise ExpiredTokenError("Token has expired")

        return TokenClaims(subject=subject, issued_at=issued_at, expires_at=expires_at)


# ---------------------------------------------------------------------------
# 3. Password Reset Tokens
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ResetToken:
    """
    A freshly generated reset token.

    raw_token goes to the user (inside the emailed link) and nowhere else;
    hashed_token and expires_at are what gets persisted.
    """
    raw_token: str
    hashed_token: str
    expires_at: datetime

    def __repr__(self) -> str:
        return f"ResetToken(hashed_token={self.hashed_token!r}, expires_at={self.expires_at!r})"


class ResetTokenGenerator:
    """One-time, time-limited password recovery tokens."""

    TOKEN_BYTES = 32

    def __init__(self, lifetime: timedelta = timedelta(minutes=10), clock: Clock = utcnow):
        self.lifetime = lifetime
        self.clock = clock

    @staticmethod
    def digest(raw_token: str) -> str:
        """Deterministic SHA-256 hex digest of a raw token."""
        return hashlib.sha256(raw_token.encode()).hexdigest()

    def generate(self) -> ResetToken:
        raw_token = secrets.token_hex(self.TOKEN_BYTES)
        return ResetToken(
            raw_token=raw_token,
            hashed_token=self.digest(raw_token),
            expires_at=self.clock() + self.lifetime,
        )

    def verify(
        self,
        raw_token: str,
        stored_hash: str | None,
        stored_expiry: datetime | None,
        now: datetime | None = None,
    ) -> bool:
        """True only if raw_token hashes to stored_hash AND now is before stored_expiry."""
        if not raw_token or stored_hash is None or stored_expiry is None:
            return False
        now = now if now is not None else self.clock()
        matches = hmac.compare_digest(self.digest(raw_token), stored_hash)
        return matches and as_utc(now) < as_utc(stored_expiry)


# ---------------------------------------------------------------------------
# 4. Role checks
# ---------------------------------------------------------------------------


def role_permitted(role: Hashable, allowed_roles: Collection[Hashable]) -> bool:
    """Whether role is one of allowed_roles."""
    return role in allowed_roles
