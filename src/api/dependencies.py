"""FastAPI dependencies: service wiring and authentication."""

from datetime import timedelta
from functools import lru_cache
from typing import Optional

from fastapi import Depends, Request

from src.api.errors import unwrap
from src.config import get_settings
from src.models.result import Ok
from src.models.user import User
from src.services.auth_guard import AuthGuard, extract_token
from src.services.channel_service import ChannelService
from src.services.media_service import MediaUploader
from src.services.password_service import PasswordHasher
from src.services.session_manager import SessionManager
from src.services.subscription_store import SubscriptionStore
from src.services.token_service import TokenService
from src.services.user_store import UserStore


@lru_cache
def get_token_service() -> TokenService:
    """Token service configured from settings."""
    settings = get_settings()
    return TokenService(
        access_secret=settings.access_token_secret,
        refresh_secret=settings.refresh_token_secret,
        access_ttl=timedelta(minutes=settings.access_token_expire_minutes),
        refresh_ttl=timedelta(days=settings.refresh_token_expire_days),
        algorithm=settings.jwt_algorithm,
    )


@lru_cache
def get_media_uploader() -> MediaUploader:
    settings = get_settings()
    return MediaUploader(
        upload_url=settings.media_upload_url,
        upload_preset=settings.media_upload_preset,
        api_key=settings.media_api_key,
        api_secret=settings.media_api_secret,
        timeout=settings.media_upload_timeout,
    )


def get_user_store() -> UserStore:
    return UserStore()


def get_session_manager(
    store: UserStore = Depends(get_user_store),
    tokens: TokenService = Depends(get_token_service),
    uploader: MediaUploader = Depends(get_media_uploader),
) -> SessionManager:
    settings = get_settings()
    return SessionManager(
        store=store,
        hasher=PasswordHasher(rounds=settings.bcrypt_rounds),
        tokens=tokens,
        uploader=uploader,
        password_min_length=settings.password_min_length,
        revoke_sessions_on_password_change=settings.revoke_sessions_on_password_change,
    )


def get_auth_guard(
    tokens: TokenService = Depends(get_token_service),
    store: UserStore = Depends(get_user_store),
) -> AuthGuard:
    return AuthGuard(tokens=tokens, store=store)


def get_channel_service(
    store: UserStore = Depends(get_user_store),
) -> ChannelService:
    return ChannelService(store=store, subscriptions=SubscriptionStore())


async def get_current_user(
    request: Request,
    guard: AuthGuard = Depends(get_auth_guard),
) -> User:
    """Resolve the caller from the accessToken cookie or Bearer header.

    Raises:
        ApiError 401: No token
        ApiError 403: Invalid or expired token
        ApiError 404: Token user no longer exists
    """
    token = extract_token(request.cookies, request.headers.get("Authorization"))
    user = unwrap(await guard.authenticate(token))
    request.state.user = user
    return user


async def get_optional_user(
    request: Request,
    guard: AuthGuard = Depends(get_auth_guard),
) -> Optional[User]:
    """Like get_current_user, but anonymous (None) when no valid token is present."""
    token = extract_token(request.cookies, request.headers.get("Authorization"))
    if not token:
        return None
    result = await guard.authenticate(token)
    return result.value if isinstance(result, Ok) else None
