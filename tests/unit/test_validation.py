"""Unit tests for request-shape validation."""

from src.models.auth import ChangePasswordRequest, LoginRequest, RegisterRequest
from src.models.result import Err, ErrorKind, Ok
from src.services.validation import validate


class TestValidate:
    def test_valid_register_payload(self):
        result = validate(
            RegisterRequest,
            {"username": "alice", "email": "alice@x.com", "fullName": "Alice A", "password": "secret1"},
        )

        assert isinstance(result, Ok)
        assert result.value.full_name == "Alice A"

    def test_field_errors_keyed_by_input_name(self):
        result = validate(
            RegisterRequest,
            {"username": "alice", "email": "alice@x.com", "fullName": "A", "password": "secret1"},
        )

        assert isinstance(result, Err)
        assert result.error.kind is ErrorKind.VALIDATION
        assert list(result.error.field_errors) == ["fullName"]

    def test_missing_fields(self):
        result = validate(RegisterRequest, {})
        assert set(result.error.field_errors) == {"username", "email", "fullName", "password"}

    def test_username_with_whitespace(self):
        result = validate(
            RegisterRequest,
            {"username": "al ice", "email": "a@x.com", "fullName": "Alice", "password": "secret1"},
        )
        assert result.error.field_errors["username"] == ["Username must not contain whitespace"]

    def test_login_requires_identifier(self):
        result = validate(LoginRequest, {"password": "secret1"})
        assert result.error.field_errors == {
            "formErrors": ["Either username or email is required"]
        }

    def test_login_with_email_only(self):
        result = validate(LoginRequest, {"email": "alice@x.com", "password": "secret1"})
        assert isinstance(result, Ok)
        assert result.value.username is None

    def test_login_bad_email(self):
        result = validate(LoginRequest, {"email": "not-an-email", "password": "secret1"})
        assert "email" in result.error.field_errors

    def test_change_password_short(self):
        result = validate(ChangePasswordRequest, {"oldPassword": "x", "newPassword": "12"})
        assert "newPassword" in result.error.field_errors

    def test_password_limit_counts_utf8_bytes(self):
        # 30 characters but 90 bytes
        result = validate(
            RegisterRequest,
            {"username": "alice", "email": "a@x.com", "fullName": "Alice", "password": "€" * 30},
        )
        assert result.error.field_errors["password"] == ["Password must be at most 72 bytes"]

    def test_password_at_byte_limit_is_accepted(self):
        result = validate(
            RegisterRequest,
            {"username": "alice", "email": "a@x.com", "fullName": "Alice", "password": "p" * 72},
        )
        assert isinstance(result, Ok)

    def test_minimum_length_from_context(self):
        payload = {"oldPassword": "x", "newPassword": "eight-ch"}

        assert isinstance(validate(ChangePasswordRequest, payload), Ok)
        result = validate(ChangePasswordRequest, payload, context={"password_min_length": 12})
        assert result.error.field_errors["newPassword"] == [
            "Password must be at least 12 characters"
        ]

    def test_login_accepts_any_non_empty_password(self):
        result = validate(LoginRequest, {"username": "alice", "password": "x" * 100})
        assert isinstance(result, Ok)
