"""User account endpoints: registration, sessions, profile and channel."""

from typing import Any, Optional

import structlog
from fastapi import APIRouter, Depends, Request, status
from fastapi.responses import JSONResponse
from starlette.datastructures import UploadFile

from src.api.dependencies import (
    get_channel_service,
    get_current_user,
    get_optional_user,
    get_session_manager,
    get_token_service,
)
from src.api.errors import unwrap
from src.config import get_settings
from src.models.auth import SessionPayload
from src.models.response import ApiResponse
from src.models.user import User
from src.services.auth_guard import ACCESS_TOKEN_COOKIE
from src.services.channel_service import ChannelService
from src.services.media_service import MediaFile
from src.services.session_manager import SessionManager
from src.services.token_service import TokenService

logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/api/v1/users", tags=["Users"])

REFRESH_TOKEN_COOKIE = "refreshToken"
REGISTER_FIELDS = ("username", "email", "fullName", "password")


def _respond(status_code: int, data: Any, message: str) -> JSONResponse:
    """Wrap a payload in the success envelope."""
    if hasattr(data, "model_dump"):
        data = data.model_dump(by_alias=True, mode="json")
    body = ApiResponse(status_code=status_code, data=data, message=message)
    return JSONResponse(status_code=status_code, content=body.model_dump(by_alias=True))


async def _to_media(upload: Any) -> Optional[MediaFile]:
    """Read a multipart file part into memory; None when absent or empty."""
    if not isinstance(upload, UploadFile):
        return None
    content = await upload.read()
    await upload.close()
    if not content:
        return None
    return MediaFile(
        filename=upload.filename or "upload",
        content=content,
        content_type=upload.content_type or "application/octet-stream",
    )


async def _read_json(request: Request) -> dict:
    """Parse a JSON object body; anything else counts as empty."""
    try:
        body = await request.json()
    except ValueError:
        return {}
    return body if isinstance(body, dict) else {}


def _set_session_cookies(
    response: JSONResponse,
    session: SessionPayload,
    tokens: TokenService,
    samesite: str = "lax",
) -> None:
    secure = get_settings().cookie_secure
    response.set_cookie(
        ACCESS_TOKEN_COOKIE,
        session.access_token,
        max_age=int(tokens.access_ttl.total_seconds()),
        httponly=True,
        secure=secure,
        samesite=samesite,
    )
    response.set_cookie(
        REFRESH_TOKEN_COOKIE,
        session.refresh_token,
        max_age=int(tokens.refresh_ttl.total_seconds()),
        httponly=True,
        secure=secure,
        samesite=samesite,
    )


@router.post("/register", status_code=status.HTTP_201_CREATED)
async def register(
    request: Request,
    sessions: SessionManager = Depends(get_session_manager),
) -> JSONResponse:
    """Register with multipart form fields plus an ``avatar`` file.

    An optional ``coverImage`` file may be included.
    """
    form = await request.form()
    fields = {name: form.get(name) for name in REGISTER_FIELDS if form.get(name) is not None}
    avatar = await _to_media(form.get("avatar"))
    cover_image = await _to_media(form.get("coverImage"))

    user = unwrap(await sessions.register(fields, avatar, cover_image))
    return _respond(status.HTTP_201_CREATED, user, "User registered successfully")


@router.post("/login")
async def login(
    request: Request,
    sessions: SessionManager = Depends(get_session_manager),
    tokens: TokenService = Depends(get_token_service),
) -> JSONResponse:
    """Log in with username or email plus password."""
    session = unwrap(await sessions.login(await _read_json(request)))

    response = _respond(status.HTTP_200_OK, session, "User logged in successfully")
    _set_session_cookies(response, session, tokens)
    return response


@router.post("/logout")
async def logout(
    current_user: User = Depends(get_current_user),
    sessions: SessionManager = Depends(get_session_manager),
) -> JSONResponse:
    """Invalidate the stored refresh token and clear session cookies."""
    unwrap(await sessions.logout(current_user.id))

    secure = get_settings().cookie_secure
    response = _respond(status.HTTP_200_OK, {}, "User logged out successfully")
    response.delete_cookie(ACCESS_TOKEN_COOKIE, httponly=True, secure=secure)
    response.delete_cookie(REFRESH_TOKEN_COOKIE, httponly=True, secure=secure)
    return response


@router.post("/refresh-token")
async def refresh_token(
    request: Request,
    sessions: SessionManager = Depends(get_session_manager),
    tokens: TokenService = Depends(get_token_service),
) -> JSONResponse:
    """Rotate the refresh token (cookie first, then ``refreshToken`` in the body)."""
    presented = request.cookies.get(REFRESH_TOKEN_COOKIE)
    if not presented:
        presented = (await _read_json(request)).get("refreshToken")

    session = unwrap(await sessions.refresh(presented))

    response = _respond(status.HTTP_200_OK, session, "Access token refreshed")
    _set_session_cookies(response, session, tokens, samesite="strict")
    return response


@router.post("/change-current-password")
async def change_current_password(
    request: Request,
    current_user: User = Depends(get_current_user),
    sessions: SessionManager = Depends(get_session_manager),
) -> JSONResponse:
    """Change the caller's password after checking the current one."""
    unwrap(await sessions.change_password(current_user.id, await _read_json(request)))
    return _respond(status.HTTP_200_OK, {}, "Password changed successfully")


@router.get("/current-user")
async def current_user(current_user: User = Depends(get_current_user)) -> JSONResponse:
    """Return the authenticated user."""
    return _respond(status.HTTP_200_OK, current_user, "Current user fetched successfully")


@router.post("/update-user-avatar")
async def update_user_avatar(
    request: Request,
    current_user: User = Depends(get_current_user),
    sessions: SessionManager = Depends(get_session_manager),
) -> JSONResponse:
    """Replace the caller's avatar with the uploaded ``avatar`` file."""
    form = await request.form()
    media = await _to_media(form.get("avatar"))
    user = unwrap(await sessions.update_avatar(current_user.id, media))
    return _respond(status.HTTP_200_OK, user, "Avatar updated successfully")


@router.post("/update-user-cover-image")
async def update_user_cover_image(
    request: Request,
    current_user: User = Depends(get_current_user),
    sessions: SessionManager = Depends(get_session_manager),
) -> JSONResponse:
    """Replace the caller's cover image with the uploaded ``coverImage`` file."""
    form = await request.form()
    media = await _to_media(form.get("coverImage"))
    user = unwrap(await sessions.update_cover_image(current_user.id, media))
    return _respond(status.HTTP_200_OK, user, "Cover image updated successfully")


@router.get("/user-channel/{username}")
async def user_channel(
    username: str,
    viewer: Optional[User] = Depends(get_optional_user),
    channels: ChannelService = Depends(get_channel_service),
) -> JSONResponse:
    """Public channel profile; ``isSubscribed`` reflects the caller if logged in."""
    profile = unwrap(
        await channels.get_channel_profile(username, viewer.id if viewer else None)
    )
    return _respond(status.HTTP_200_OK, profile, "User channel fetched successfully")
