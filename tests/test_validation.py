"""
Tests for the pure validation functions.

Each validator returns a ValidationResult instead of raising; the record
validators collect every failure so a client sees all problems at once.
"""

import time

import pytest

from marketplace_api.models.user import UserRole
from marketplace_api.validation import (
    failures,
    normalize_email,
    normalize_location,
    validate_email,
    validate_new_password,
    validate_new_user,
    validate_password,
    validate_password_confirm,
    validate_phone_number,
    validate_postcode,
    validate_profile_update,
    validate_role,
)


VALID_LOCATION = {
    "address": "221B Baker Street",
    "city": "London",
    "zip_code": "NW1 6XE",
    "country": "United Kingdom",
}


class TestFieldValidators:

    @pytest.mark.parametrize("email", ["a@b.com", "first.last@example.co.uk", "x-y@mail.org"])
    def test_valid_emails(self, email):
        assert validate_email(email).valid

    @pytest.mark.parametrize("email", ["not-an-email", "a@b", "@example.com", ""])
    def test_invalid_emails(self, email):
        result = validate_email(email)
        assert not result.valid
        assert result.reason

    def test_normalize_email(self):
        assert normalize_email("  Alice@Example.COM ") == "alice@example.com"

    def test_normalize_location_trims_known_fields(self):
        location = normalize_location(
            {"address": " 1 New Road ", "city": "Leeds ", "zip_code": " LS1 4AP", "country": "UK", "extra": "x"}
        )
        assert location == {"address": "1 New Road", "city": "Leeds", "zip_code": "LS1 4AP", "country": "UK"}

    def test_normalize_location_keeps_missing_values_for_validation(self):
        location = normalize_location({"address": "1 New Road", "city": None, "zip_code": "LS1 4AP"})
        assert location["city"] is None
        assert location["country"] is None
        assert failures(validate_profile_update({"location": location})) == [
            "Please provide a city",
            "Please provide a country",
        ]

    def test_long_email_without_at_sign_is_rejected_quickly(self):
        started = time.perf_counter()
        result = validate_email("a" * 5000 + "!")
        assert not result.valid
        assert time.perf_counter() - started < 1

    def test_overlong_email_rejected(self):
        assert not validate_email("a" * 300 + "@example.com").valid

    def test_long_phone_and_postcode_rejected_quickly(self):
        started = time.perf_counter()
        assert not validate_phone_number("0" + "1" * 5000 + "x").valid
        assert not validate_postcode("A" * 5000).valid
        assert time.perf_counter() - started < 1

    def test_short_password(self):
        result = validate_password("short")
        assert not result.valid
        assert "at least 8" in result.reason

    def test_password_confirm_mismatch(self):
        result = validate_password_confirm("Password123", "Password124")
        assert result.reason == "Passwords are not the same"

    @pytest.mark.parametrize("phone", ["+44 7700 900123", "07700900123", "020 7946 0000"])
    def test_valid_uk_phone_numbers(self, phone):
        assert validate_phone_number(phone).valid

    @pytest.mark.parametrize("phone", ["+1 555 123 4567", "12345", "0770"])
    def test_invalid_phone_numbers(self, phone):
        assert not validate_phone_number(phone).valid

    @pytest.mark.parametrize("postcode", ["NW1 6XE", "sw1a1aa", "M3 2BW", "EC1A 1BB"])
    def test_valid_postcodes(self, postcode):
        assert validate_postcode(postcode).valid

    @pytest.mark.parametrize("postcode", ["12345", "ABC", ""])
    def test_invalid_postcodes(self, postcode):
        assert not validate_postcode(postcode).valid

    def test_roles(self):
        assert validate_role(None).valid
        assert validate_role(UserRole.CUSTOMER).valid
        assert validate_role("engineer").valid
        assert not validate_role(UserRole.ADMIN).valid
        assert not validate_role("superuser").valid


class TestRecordValidators:

    def test_valid_new_user(self):
        results = validate_new_user(
            username="alice",
            email="alice@example.com",
            password="Password123",
            password_confirm="Password123",
            phone_number="07700900123",
            location=VALID_LOCATION,
        )
        assert failures(results) == []

    def test_new_user_collects_every_failure(self):
        results = validate_new_user(
            username=" ",
            email="nope",
            password="short",
            password_confirm="different",
            phone_number="123",
            location={**VALID_LOCATION, "zip_code": "00000"},
        )
        reasons = failures(results)
        assert "Please provide a username" in reasons
        assert "Please provide a valid email" in reasons
        assert "Passwords are not the same" in reasons
        assert "Please provide a valid UK phone number" in reasons
        assert "Please provide a valid UK postcode" in reasons

    def test_new_password(self):
        assert failures(validate_new_password("Password123", "Password123")) == []
        assert failures(validate_new_password("Password123", "")) == ["Please confirm your password"]

    def test_profile_update_only_checks_present_fields(self):
        assert validate_profile_update({}) == []
        assert failures(validate_profile_update({"username": "bob"})) == []
        assert failures(validate_profile_update({"phone_number": "nope"})) == [
            "Please provide a valid UK phone number"
        ]

    def test_profile_update_null_location(self):
        assert failures(validate_profile_update({"location": None})) == ["Please provide a location"]
