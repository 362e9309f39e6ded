"""Resolve an inbound access token to the user it was issued for."""

from typing import Mapping, Optional

import structlog

from src.models.result import Err, ErrorKind, Ok, Result, fail
from src.models.user import User
from src.services.session_manager import parse_user_id, store_errors_as_internal
from src.services.token_service import TokenKind, TokenService
from src.services.user_store import UserStore

logger = structlog.get_logger(__name__)

ACCESS_TOKEN_COOKIE = "accessToken"
BEARER_PREFIX = "bearer "


def extract_token(
    cookies: Mapping[str, str], authorization: Optional[str] = None
) -> Optional[str]:
    """Pick the access token from the cookie first, the Bearer header second."""
    token = cookies.get(ACCESS_TOKEN_COOKIE)
    if token:
        return token

    if authorization and authorization.lower().startswith(BEARER_PREFIX):
        token = authorization[len(BEARER_PREFIX):].strip()
        return token or None

    return None


class AuthGuard:
    """Gate for protected operations. Read-only: never touches refresh tokens."""

    def __init__(self, tokens: TokenService, store: UserStore):
        self.tokens = tokens
        self.store = store

    @store_errors_as_internal
    async def authenticate(self, token: Optional[str]) -> Result[User]:
        """Verify an access token and load its user.

        Args:
            token: Raw access token, or None if the request carried none

        Returns:
            Ok(User) sanitized; Err UNAUTHORIZED when no token, FORBIDDEN when
            the token is invalid or expired, NOT_FOUND when the user is gone
        """
        if not token:
            return fail(ErrorKind.UNAUTHORIZED, "Unauthorized request - token missing")

        verified = self.tokens.verify(token, TokenKind.ACCESS)
        if isinstance(verified, Err):
            logger.info("access_token_rejected", reason=verified.error.value)
            return fail(ErrorKind.FORBIDDEN, "Access token is invalid or expired")

        user_id = parse_user_id(verified.value.subject)
        if user_id is None:
            return fail(ErrorKind.FORBIDDEN, "Access token is invalid or expired")

        user = await self.store.find_by_id(user_id)
        if user is None:
            return fail(ErrorKind.NOT_FOUND, "User not found with provided token")

        return Ok(user.sanitized())
