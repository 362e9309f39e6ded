"""Registration, login, logout, refresh-token rotation and password changes.

Each user has at most one live refresh token, stored on the user row. Login
overwrites it, refresh swaps it with a compare-and-set, logout clears it.
Access tokens are never stored and simply expire.
"""

import asyncio
import functools
import secrets
from typing import Any, Awaitable, Callable, Mapping, Optional, TypeVar
from uuid import UUID

import structlog

from src.models.auth import (
    ChangePasswordRequest,
    LoginRequest,
    MIN_PASSWORD_LENGTH,
    RegisterRequest,
    SessionPayload,
)
from src.models.result import Err, ErrorKind, Ok, Result, fail
from src.models.user import User, UserRecord
from src.services.media_service import MediaFile, MediaUploader, UploadError
from src.services.password_service import PasswordHasher
from src.services.token_service import TokenKind, TokenService, VerificationFailure
from src.services.user_store import DuplicateUserError, StoreError, UserStore
from src.services.validation import validate

logger = structlog.get_logger(__name__)

T = TypeVar("T")

MISMATCH_MESSAGE = "Refresh token is expired or already used"


def store_errors_as_internal(
    func: Callable[..., Awaitable[Result[T]]],
) -> Callable[..., Awaitable[Result[T]]]:
    """Turn credential-store failures raised inside an operation into INTERNAL."""

    @functools.wraps(func)
    async def wrapper(*args, **kwargs) -> Result[T]:
        try:
            return await func(*args, **kwargs)
        except StoreError as e:
            logger.error(
                "session_operation_store_failure",
                operation=func.__name__,
                error=str(e),
            )
            return fail(ErrorKind.INTERNAL, "Something went wrong while accessing user data")

    return wrapper


def parse_user_id(subject: str) -> Optional[UUID]:
    """Decode a token subject into a user UUID, or None if it is not one."""
    try:
        return UUID(subject)
    except (ValueError, TypeError):
        return None


class SessionManager:
    """Orchestrates the session lifecycle against the credential store.

    Args:
        store: Credential store
        hasher: Password hasher
        tokens: Token service
        uploader: Media upload client for avatar/cover images
        password_min_length: Minimum length for a new or registered password
        revoke_sessions_on_password_change: Clear the stored refresh token
            when the password changes, forcing other sessions to log in again
    """

    def __init__(
        self,
        store: UserStore,
        hasher: PasswordHasher,
        tokens: TokenService,
        uploader: MediaUploader,
        password_min_length: int = MIN_PASSWORD_LENGTH,
        revoke_sessions_on_password_change: bool = True,
    ):
        self.store = store
        self.hasher = hasher
        self.tokens = tokens
        self.uploader = uploader
        self.password_min_length = password_min_length
        self._password_policy = {"password_min_length": password_min_length}
        self.revoke_sessions_on_password_change = revoke_sessions_on_password_change

    # ------------------------------------------------------------------
    # Registration
    # ------------------------------------------------------------------

    @store_errors_as_internal
    async def register(
        self,
        form: Mapping[str, Any],
        avatar: Optional[MediaFile],
        cover_image: Optional[MediaFile] = None,
    ) -> Result[User]:
        """Create a user account.

        Args:
            form: Raw username/email/fullName/password fields
            avatar: Required avatar file
            cover_image: Optional cover image file

        Returns:
            Ok(User) with secrets stripped, or Err with VALIDATION, CONFLICT,
            BAD_REQUEST or INTERNAL
        """
        parsed = validate(RegisterRequest, form, context=self._password_policy)
        if isinstance(parsed, Err):
            return parsed
        request = parsed.value
        username = request.username.lower()

        existing = await self.store.find_by_username_or_email(username, request.email)
        if existing is not None:
            logger.info("registration_conflict", username=username)
            return fail(ErrorKind.CONFLICT, "User already registered with username or email")

        if avatar is None or not avatar.content:
            return fail(ErrorKind.BAD_REQUEST, "Avatar file is required")

        try:
            avatar_media = await self.uploader.upload(avatar)
        except UploadError as e:
            logger.warning("avatar_upload_failed", username=username, error=str(e))
            return fail(ErrorKind.BAD_REQUEST, "Failed to upload avatar")

        cover_url = None
        if cover_image is not None and cover_image.content:
            try:
                cover_url = (await self.uploader.upload(cover_image)).url
            except UploadError as e:
                logger.warning("cover_image_upload_failed", username=username, error=str(e))

        password_hash = await asyncio.to_thread(self.hasher.hash, request.password)
        try:
            user_id = await self.store.create(
                username=username,
                email=request.email,
                full_name=request.full_name,
                password_hash=password_hash,
                avatar=avatar_media.url,
                cover_image=cover_url,
            )
        except DuplicateUserError:
            # Lost a race against a concurrent registration
            return fail(ErrorKind.CONFLICT, "User already registered with username or email")

        created = await self.store.find_by_id(user_id)
        if created is None:
            logger.error("registered_user_missing", user_id=str(user_id))
            return fail(ErrorKind.INTERNAL, "Something went wrong while registering the user")

        logger.info("user_registered", user_id=str(user_id), username=username)
        return Ok(created.sanitized())

    # ------------------------------------------------------------------
    # Login / logout
    # ------------------------------------------------------------------

    async def _start_session(self, user: UserRecord) -> Result[SessionPayload]:
        """Issue a token pair and overwrite the stored refresh token."""
        access_token = self.tokens.issue_access(str(user.id))
        refresh_token = self.tokens.issue_refresh(str(user.id))

        if not await self.store.set_refresh_token(user.id, refresh_token):
            return fail(ErrorKind.NOT_FOUND, "User not found")

        return Ok(
            SessionPayload(
                user=user.sanitized(),
                access_token=access_token,
                refresh_token=refresh_token,
            )
        )

    @store_errors_as_internal
    async def login(self, credentials: Mapping[str, Any]) -> Result[SessionPayload]:
        """Verify credentials and start a new session.

        Any previously issued refresh token stops working immediately.

        Args:
            credentials: Raw username-or-email plus password

        Returns:
            Ok(SessionPayload), or Err with VALIDATION or UNAUTHORIZED
        """
        parsed = validate(LoginRequest, credentials)
        if isinstance(parsed, Err):
            return parsed
        request = parsed.value

        user = await self.store.find_by_username_or_email(
            request.username.lower() if request.username else None,
            request.email,
        )
        if user is None:
            logger.info("login_failed", reason="user_not_found")
            return fail(ErrorKind.UNAUTHORIZED, "Invalid credentials")

        if not await asyncio.to_thread(
            self.hasher.verify, request.password, user.password_hash
        ):
            logger.info("login_failed", reason="wrong_password", user_id=str(user.id))
            return fail(ErrorKind.UNAUTHORIZED, "Invalid credentials")

        result = await self._start_session(user)
        if isinstance(result, Ok):
            logger.info("user_logged_in", user_id=str(user.id), username=user.username)
        return result

    @store_errors_as_internal
    async def logout(self, user_id: UUID) -> Result[None]:
        """Clear the stored refresh token so no refresh can succeed."""
        if not await self.store.set_refresh_token(user_id, None):
            return fail(ErrorKind.NOT_FOUND, "User not found")

        logger.info("user_logged_out", user_id=str(user_id))
        return Ok(None)

    # ------------------------------------------------------------------
    # Refresh
    # ------------------------------------------------------------------

    @store_errors_as_internal
    async def refresh(self, presented_token: Optional[str]) -> Result[SessionPayload]:
        """Exchange a refresh token for a new pair, rotating the stored value.

        Args:
            presented_token: Refresh token from cookie or body

        Returns:
            Ok(SessionPayload), or Err with UNAUTHORIZED (missing/invalid),
            NOT_FOUND (user gone) or FORBIDDEN (not the current token)
        """
        if not presented_token:
            return fail(ErrorKind.UNAUTHORIZED, "Unauthorized request")

        verified = self.tokens.verify(presented_token, TokenKind.REFRESH)
        if isinstance(verified, Err):
            if verified.error is VerificationFailure.EXPIRED:
                return fail(ErrorKind.UNAUTHORIZED, "Refresh token has expired")
            return fail(ErrorKind.UNAUTHORIZED, "Invalid refresh token")

        user_id = parse_user_id(verified.value.subject)
        if user_id is None:
            return fail(ErrorKind.UNAUTHORIZED, "Invalid refresh token")

        user = await self.store.find_by_id(user_id)
        if user is None:
            return fail(ErrorKind.NOT_FOUND, "User not found")

        stored = user.refresh_token or ""
        if not secrets.compare_digest(stored.encode(), presented_token.encode()):
            logger.warning("refresh_token_mismatch", user_id=str(user_id))
            return fail(ErrorKind.FORBIDDEN, MISMATCH_MESSAGE)

        access_token = self.tokens.issue_access(str(user_id))
        new_refresh = self.tokens.issue_refresh(str(user_id))

        swapped = await self.store.compare_and_set_refresh_token(
            user_id, expected=presented_token, new=new_refresh
        )
        if not swapped:
            # A concurrent refresh/login/logout replaced the token first
            logger.warning("refresh_token_race_lost", user_id=str(user_id))
            return fail(ErrorKind.FORBIDDEN, MISMATCH_MESSAGE)

        logger.info("refresh_token_rotated", user_id=str(user_id))
        return Ok(
            SessionPayload(
                user=user.sanitized(),
                access_token=access_token,
                refresh_token=new_refresh,
            )
        )

    # ------------------------------------------------------------------
    # Account changes (caller already authenticated)
    # ------------------------------------------------------------------

    @store_errors_as_internal
    async def change_password(
        self, user_id: UUID, payload: Mapping[str, Any]
    ) -> Result[None]:
        """Replace the password after checking the current one.

        Args:
            user_id: Authenticated user's UUID
            payload: Raw oldPassword/newPassword fields

        Returns:
            Ok(None), or Err with VALIDATION, NOT_FOUND or UNAUTHORIZED
        """
        parsed = validate(ChangePasswordRequest, payload, context=self._password_policy)
        if isinstance(parsed, Err):
            return parsed
        request = parsed.value

        user = await self.store.find_by_id(user_id)
        if user is None:
            return fail(ErrorKind.NOT_FOUND, "User not found")

        if not await asyncio.to_thread(
            self.hasher.verify, request.old_password, user.password_hash
        ):
            logger.info("password_change_rejected", user_id=str(user_id))
            return fail(ErrorKind.UNAUTHORIZED, "Invalid old password")

        new_hash = await asyncio.to_thread(self.hasher.hash, request.new_password)
        changes: dict[str, Any] = {"password_hash": new_hash}
        if self.revoke_sessions_on_password_change:
            changes["refresh_token"] = None

        if await self.store.update_by_id(user_id, **changes) is None:
            return fail(ErrorKind.NOT_FOUND, "User not found")

        logger.info(
            "password_changed",
            user_id=str(user_id),
            sessions_revoked=self.revoke_sessions_on_password_change,
        )
        return Ok(None)

    async def _replace_image(
        self, user_id: UUID, media: Optional[MediaFile], column: str, label: str
    ) -> Result[User]:
        if media is None or not media.content:
            return fail(ErrorKind.BAD_REQUEST, f"{label} file is missing")

        try:
            uploaded = await self.uploader.upload(media)
        except UploadError as e:
            logger.warning("image_upload_failed", user_id=str(user_id), field=column, error=str(e))
            return fail(ErrorKind.BAD_REQUEST, f"Error while uploading {label.lower()}")

        updated = await self.store.update_by_id(user_id, **{column: uploaded.url})
        if updated is None:
            return fail(ErrorKind.NOT_FOUND, "User not found")

        logger.info(f"{column}_updated", user_id=str(user_id))
        return Ok(updated.sanitized())

    @store_errors_as_internal
    async def update_avatar(self, user_id: UUID, media: Optional[MediaFile]) -> Result[User]:
        """Upload a new avatar and store its URL."""
        return await self._replace_image(user_id, media, "avatar", "Avatar")

    @store_errors_as_internal
    async def update_cover_image(
        self, user_id: UUID, media: Optional[MediaFile]
    ) -> Result[User]:
        """Upload a new cover image and store its URL."""
        return await self._replace_image(user_id, media, "cover_image", "Cover image")
