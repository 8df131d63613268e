"""Unit tests for Pydantic models."""

import pytest
from pydantic import ValidationError

from fakes import make_user
from ikiraha.models.auth import (
    ChangePasswordRequest,
    LoginRequest,
    RegisterRequest,
    UpdateProfileRequest,
)

VALID = {
    "email": "Alice@Example.com",
    "password": "Secret123",
    "firstName": "Alice",
    "lastName": "O'Brien-Baker",
}


class TestRegisterRequest:
    """Tests for RegisterRequest model validation."""

    def test_valid_registration(self):
        request = RegisterRequest(**VALID)

        assert request.email == "alice@example.com"
        assert request.first_name == "Alice"
        assert request.phone_number is None

    def test_accepts_snake_case_names(self):
        request = RegisterRequest(
            email="a@x.com", password="Secret123", first_name="Alice", last_name="Baker"
        )
        assert request.last_name == "Baker"

    def test_names_are_trimmed(self):
        request = RegisterRequest(**{**VALID, "firstName": "  Alice  "})
        assert request.first_name == "Alice"

    @pytest.mark.parametrize(
        "password, message",
        [
            ("Ab1", "at least 6 characters"),
            ("alllower1", "uppercase"),
            ("NoDigitsHere", "uppercase"),
            ("A1" + "a" * 71, "72 bytes"),
        ],
    )
    def test_weak_passwords_rejected(self, password, message):
        with pytest.raises(ValidationError) as exc_info:
            RegisterRequest(**{**VALID, "password": password})

        assert message in str(exc_info.value)

    @pytest.mark.parametrize("name", ["A", "x" * 51, "Al1ce", "Alice!"])
    def test_invalid_names_rejected(self, name):
        with pytest.raises(ValidationError):
            RegisterRequest(**{**VALID, "firstName": name})

    def test_invalid_email_rejected(self):
        with pytest.raises(ValidationError):
            RegisterRequest(**{**VALID, "email": "not-an-email"})

    def test_phone_validation(self):
        assert RegisterRequest(**VALID, phoneNumber="+250 (788) 123-456").phone_number
        with pytest.raises(ValidationError):
            RegisterRequest(**VALID, phoneNumber="call me")

    def test_phone_fits_twenty_characters(self):
        assert RegisterRequest(**VALID, phoneNumber="+" + "1" * 19).phone_number == "+" + "1" * 19
        with pytest.raises(ValidationError):
            RegisterRequest(**VALID, phoneNumber="+" + "1" * 20)


class TestOtherRequests:
    def test_login_requires_password(self):
        with pytest.raises(ValidationError):
            LoginRequest(email="a@x.com", password="")

    def test_login_normalizes_email(self):
        assert LoginRequest(email="A@X.com", password="x").email == "a@x.com"

    def test_change_password_checks_new_password_only(self):
        request = ChangePasswordRequest(currentPassword="weak", newPassword="Strong123")
        assert request.current_password == "weak"

        with pytest.raises(ValidationError):
            ChangePasswordRequest(currentPassword="Strong123", newPassword="weak")

    def test_update_profile_changes_only_supplied_fields(self):
        request = UpdateProfileRequest(lastName="Stone")
        assert request.changes() == {"last_name": "Stone"}

    def test_update_profile_empty(self):
        assert UpdateProfileRequest().changes() == {}

    def test_update_profile_null_clears_optional_fields(self):
        request = UpdateProfileRequest.model_validate({"phoneNumber": None, "profileImageUrl": None})
        assert request.changes() == {"phone_number": None, "profile_image_url": None}

    def test_update_profile_null_name_rejected(self):
        with pytest.raises(ValidationError):
            UpdateProfileRequest.model_validate({"firstName": None})


class TestUserProfile:
    def test_serializes_camel_case_without_password(self):
        data = make_user(user_id=3).to_json()

        assert data["id"] == 3
        assert "firstName" in data
        assert "isEmailVerified" in data
        assert "password" not in data
        assert "passwordHash" not in data
