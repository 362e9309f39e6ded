"""Auth request and response models with validation."""

import re
from typing import Optional

from pydantic import Field, ValidationInfo, field_validator, model_validator

from src.models.user import CamelModel, User

EMAIL_PATTERN = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
MIN_PASSWORD_LENGTH = 6
# bcrypt only reads the first 72 bytes and newer releases reject longer input
MAX_PASSWORD_BYTES = 72


def _check_email(v: str) -> str:
    if not EMAIL_PATTERN.match(v):
        raise ValueError("Invalid email address")
    return v.strip()


def _check_new_password(v: str, info: ValidationInfo) -> str:
    """Apply the password policy to a password about to be hashed.

    The minimum length comes from the ``password_min_length`` validation
    context key when the caller supplies one.
    """
    min_length = (info.context or {}).get("password_min_length", MIN_PASSWORD_LENGTH)
    if len(v) < min_length:
        raise ValueError(f"Password must be at least {min_length} characters")
    if len(v.encode("utf-8")) > MAX_PASSWORD_BYTES:
        raise ValueError(f"Password must be at most {MAX_PASSWORD_BYTES} bytes")
    return v


class RegisterRequest(CamelModel):
    """Registration form fields (the avatar file travels separately).

    Attributes:
        username: Unique handle, stored lowercase (min 2 chars)
        email: Unique email address
        full_name: Display name (min 2 chars)
        password: Plain-text password (configured minimum length, at most
            72 UTF-8 bytes)
    """

    username: str = Field(..., min_length=2, max_length=100)
    email: str = Field(..., max_length=255)
    full_name: str = Field(..., min_length=2, max_length=255)
    password: str

    @field_validator("username")
    @classmethod
    def username_no_whitespace(cls, v: str) -> str:
        """Reject usernames containing whitespace."""
        if re.search(r"\s", v):
            raise ValueError("Username must not contain whitespace")
        return v

    @field_validator("email")
    @classmethod
    def email_valid(cls, v: str) -> str:
        return _check_email(v)

    @field_validator("password")
    @classmethod
    def password_policy(cls, v: str, info: ValidationInfo) -> str:
        return _check_new_password(v, info)


class LoginRequest(CamelModel):
    """Login credentials; either username or email identifies the user."""

    username: Optional[str] = None
    email: Optional[str] = None
    password: str = Field(..., min_length=1)

    @field_validator("email")
    @classmethod
    def email_valid(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return v
        return _check_email(v)

    @model_validator(mode="after")
    def username_or_email(self) -> "LoginRequest":
        """Require at least one identifier."""
        if not self.username and not self.email:
            raise ValueError("Either username or email is required")
        return self


class ChangePasswordRequest(CamelModel):
    """Current password plus its replacement."""

    old_password: str = Field(..., min_length=1)
    new_password: str

    @field_validator("new_password")
    @classmethod
    def password_policy(cls, v: str, info: ValidationInfo) -> str:
        return _check_new_password(v, info)


class RefreshRequest(CamelModel):
    """Body form of the refresh call (the cookie takes precedence)."""

    refresh_token: Optional[str] = None


class TokenPair(CamelModel):
    """Freshly issued access and refresh tokens."""

    access_token: str
    refresh_token: str


class SessionPayload(CamelModel):
    """Result of a successful login or refresh.

    Attributes:
        user: Sanitized user record
        access_token: Short-lived JWT for API access
        refresh_token: Rotating token for obtaining new access tokens
    """

    user: User
    access_token: str
    refresh_token: str
