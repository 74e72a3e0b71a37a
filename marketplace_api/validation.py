"""
Field and record validation for user data.

Every check is a pure function returning a ValidationResult rather than
raising. The record-level composers (validate_new_user, validate_new_password,
validate_profile_update) gather the results for one write; the auth and user
services turn any failures into a single InputValidationError before anything
is persisted.

Pydantic schemas only guarantee shape (required keys, types). The rules
below (formats, lengths, matching confirmation) live here so they can be
exercised without HTTP or a database.
"""

import re
from collections.abc import Iterable
from dataclasses import dataclass

from email_validator import EmailNotValidError, validate_email as check_email_address

from marketplace_api.models.user import UserRole


PASSWORD_MIN_LENGTH = 8

LOCATION_FIELDS = ("address", "city", "zip_code", "country")

UK_PHONE_PATTERN = re.compile(r"^(\+44\s?|0)[0-9\s\-]{9,}$")
UK_POSTCODE_PATTERN = re.compile(r"^[A-Z]{1,2}[0-9][A-Z0-9]?\s?[0-9][A-Z]{2}$", re.IGNORECASE)

# Roles a user may pick for themselves at signup
SELF_ASSIGNABLE_ROLES = frozenset({UserRole.CUSTOMER, UserRole.ENGINEER})


@dataclass(frozen=True)
class ValidationResult:
    valid: bool
    reason: str | None = None

    @classmethod
    def ok(cls) -> "ValidationResult":
        return cls(valid=True)

    @classmethod
    def fail(cls, reason: str) -> "ValidationResult":
        return cls(valid=False, reason=reason)


def failures(results: Iterable[ValidationResult]) -> list[str]:
    """Reasons of every failed result, in order."""
    return [result.reason for result in results if not result.valid]


# ---------------------------------------------------------------------------
# Field validators
# ---------------------------------------------------------------------------

def normalize_email(email: str) -> str:
    return email.strip().lower()


def normalize_location(location: dict) -> dict:
    """The known location fields, trimmed. Missing or non-string values are left for validation."""
    cleaned = {}
    for key in LOCATION_FIELDS:
        value = location.get(key)
        cleaned[key] = value.strip() if isinstance(value, str) else value
    return cleaned


def validate_required(value: str | None, label: str) -> ValidationResult:
    if value is None or not value.strip():
        return ValidationResult.fail(f"Please provide {label}")
    return ValidationResult.ok()


def validate_email(email: str | None) -> ValidationResult:
    if not email:
        return ValidationResult.fail("Please provide an email")
    try:
        check_email_address(email, check_deliverability=False)
    except EmailNotValidError:
        return ValidationResult.fail("Please provide a valid email")
    return ValidationResult.ok()


def validate_password(password: str | None) -> ValidationResult:
    if not password:
        return ValidationResult.fail("Please provide a password")
    if len(password) < PASSWORD_MIN_LENGTH:
        return ValidationResult.fail(
            f"Password must be at least {PASSWORD_MIN_LENGTH} characters"
        )
    return ValidationResult.ok()


def validate_password_confirm(password: str | None, password_confirm: str | None) -> ValidationResult:
    if not password_confirm:
        return ValidationResult.fail("Please confirm your password")
    if password != password_confirm:
        return ValidationResult.fail("Passwords are not the same")
    return ValidationResult.ok()


def validate_phone_number(phone_number: str | None) -> ValidationResult:
    if not phone_number:
        return ValidationResult.fail("Please provide a phone number")
    if not UK_PHONE_PATTERN.match(phone_number):
        return ValidationResult.fail("Please provide a valid UK phone number")
    return ValidationResult.ok()


def validate_postcode(zip_code: str | None) -> ValidationResult:
    if not zip_code or not zip_code.strip():
        return ValidationResult.fail("Please provide a postcode")
    if not UK_POSTCODE_PATTERN.match(zip_code.strip()):
        return ValidationResult.fail("Please provide a valid UK postcode")
    return ValidationResult.ok()


def validate_role(role: UserRole | str | None, allowed=SELF_ASSIGNABLE_ROLES) -> ValidationResult:
    if role is None:
        return ValidationResult.ok()
    try:
        role = UserRole(role)
    except ValueError:
        return ValidationResult.fail("Role must be either customer, engineer, or admin")
    if role not in allowed:
        return ValidationResult.fail(f"Role '{role.value}' cannot be self-assigned")
    return ValidationResult.ok()


# ---------------------------------------------------------------------------
# Record validators
# ---------------------------------------------------------------------------

def validate_location(location: dict | None) -> list[ValidationResult]:
    if location is None:
        return [ValidationResult.fail("Please provide a location")]
    return [
        validate_required(location.get("address"), "an address"),
        validate_required(location.get("city"), "a city"),
        validate_postcode(location.get("zip_code")),
        validate_required(location.get("country"), "a country"),
    ]


def validate_new_password(password: str | None, password_confirm: str | None) -> list[ValidationResult]:
    return [
        validate_password(password),
        validate_password_confirm(password, password_confirm),
    ]


def validate_new_user(
    username: str | None,
    email: str | None,
    password: str | None,
    password_confirm: str | None,
    phone_number: str | None,
    location: dict,
    role: UserRole | str | None = None,
) -> list[ValidationResult]:
    """All checks for a signup, in field order."""
    return [
        validate_required(username, "a username"),
        validate_email(email),
        *validate_new_password(password, password_confirm),
        validate_phone_number(phone_number),
        *validate_location(location),
        validate_role(role),
    ]


def validate_profile_update(updates: dict) -> list[ValidationResult]:
    """Checks for the allow-listed fields present in a profile update."""
    results = []
    if "username" in updates:
        results.append(validate_required(updates["username"], "a username"))
    if "phone_number" in updates:
        results.append(validate_phone_number(updates["phone_number"]))
    if "location" in updates:
        results.extend(validate_location(updates["location"]))
    return results
