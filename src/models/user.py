"""User and channel models."""

from datetime import datetime
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """Base model serialized with camelCase keys (``fullName``, ``coverImage``)."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class User(CamelModel):
    """Sanitized user: never carries the password hash or refresh token."""

    id: UUID
    username: str
    email: str
    full_name: str
    avatar: str
    cover_image: Optional[str] = None
    created_at: datetime
    updated_at: datetime


class UserRecord(User):
    """Full credential-store row. Stays inside the service layer."""

    password_hash: str
    refresh_token: Optional[str] = None

    def sanitized(self) -> User:
        """Drop the password hash and refresh token."""
        return User.model_validate(
            self.model_dump(exclude={"password_hash", "refresh_token"})
        )


class ChannelProfile(CamelModel):
    """Public channel view with subscription counts."""

    id: UUID
    username: str
    full_name: str
    email: str
    avatar: str
    cover_image: Optional[str] = None
    subscribers_count: int
    channels_subscribed_to_count: int
    is_subscribed: bool
