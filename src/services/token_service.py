"""Signed access and refresh tokens (JWT, HS256).

Both kinds carry ``sub`` (user id), ``iat``, ``exp``, a random ``jti`` and a
``type`` claim. They differ only in signing secret and lifetime, so a leaked
access-token secret cannot forge refresh tokens.
"""

import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Callable

import jwt
import structlog

from src.models.result import Err, Ok, Result

logger = structlog.get_logger(__name__)

# Constants
JWT_ALGORITHM = "HS256"
ACCESS_TOKEN_EXPIRE_MINUTES = 15
REFRESH_TOKEN_EXPIRE_DAYS = 10


class TokenKind(str, Enum):
    ACCESS = "access"
    REFRESH = "refresh"


class VerificationFailure(str, Enum):
    """Why a presented token was rejected."""

    EXPIRED = "expired"
    MALFORMED = "malformed"


@dataclass(frozen=True)
class TokenClaims:
    """Decoded token contents."""

    subject: str
    kind: TokenKind
    issued_at: datetime
    expires_at: datetime
    token_id: str


class TokenService:
    """Issues and verifies access/refresh tokens.

    Args:
        access_secret: HMAC key for access tokens
        refresh_secret: HMAC key for refresh tokens (must differ)
        access_ttl: Access token lifetime
        refresh_ttl: Refresh token lifetime
        algorithm: JWS algorithm name
        clock: Returns the current UTC time, used both when issuing and when
            checking expiry; overridable in tests
    """

    def __init__(
        self,
        access_secret: str,
        refresh_secret: str,
        access_ttl: timedelta = timedelta(minutes=ACCESS_TOKEN_EXPIRE_MINUTES),
        refresh_ttl: timedelta = timedelta(days=REFRESH_TOKEN_EXPIRE_DAYS),
        algorithm: str = JWT_ALGORITHM,
        clock: Callable[[], datetime] = lambda: datetime.now(timezone.utc),
    ):
        if not access_secret or not refresh_secret:
            raise ValueError("Token secrets must be non-empty")
        if access_secret == refresh_secret:
            raise ValueError("Access and refresh tokens require distinct secrets")

        self._secrets = {
            TokenKind.ACCESS: access_secret,
            TokenKind.REFRESH: refresh_secret,
        }
        self._ttls = {
            TokenKind.ACCESS: access_ttl,
            TokenKind.REFRESH: refresh_ttl,
        }
        self.algorithm = algorithm
        self._clock = clock

    @property
    def access_ttl(self) -> timedelta:
        return self._ttls[TokenKind.ACCESS]

    @property
    def refresh_ttl(self) -> timedelta:
        return self._ttls[TokenKind.REFRESH]

    def _issue(self, user_id: str, kind: TokenKind) -> str:
        now = self._clock()
        payload = {
            "sub": str(user_id),
            "type": kind.value,
            "jti": uuid.uuid4().hex,
            "iat": now,
            "exp": now + self._ttls[kind],
        }
        token = jwt.encode(payload, self._secrets[kind], algorithm=self.algorithm)
        logger.debug(
            "token_issued",
            user_id=str(user_id),
            kind=kind.value,
            expires_seconds=int(self._ttls[kind].total_seconds()),
        )
        return token

    def issue_access(self, user_id: str) -> str:
        """Create a signed short-lived access token for ``user_id``."""
        return self._issue(user_id, TokenKind.ACCESS)

    def issue_refresh(self, user_id: str) -> str:
        """Create a signed long-lived refresh token for ``user_id``."""
        return self._issue(user_id, TokenKind.REFRESH)

    def verify(self, token: str, kind: TokenKind) -> Result[TokenClaims]:
        """Check signature, structure and expiry of a token.

        Args:
            token: Encoded JWT string
            kind: Which secret/type the token must match

        Returns:
            Ok(TokenClaims) when valid; Err(VerificationFailure.EXPIRED) when
            past its expiry; Err(VerificationFailure.MALFORMED) otherwise
        """
        try:
            payload = jwt.decode(
                token,
                self._secrets[kind],
                algorithms=[self.algorithm],
                options={
                    "require": ["sub", "exp", "iat", "type"],
                    # expiry is checked against the injected clock below
                    "verify_exp": False,
                    "verify_iat": False,
                },
            )
        except jwt.InvalidTokenError as e:
            logger.debug("token_rejected", kind=kind.value, reason=str(e))
            return Err(VerificationFailure.MALFORMED)

        if payload["type"] != kind.value or not payload["sub"]:
            return Err(VerificationFailure.MALFORMED)

        try:
            issued_at = datetime.fromtimestamp(payload["iat"], tz=timezone.utc)
            expires_at = datetime.fromtimestamp(payload["exp"], tz=timezone.utc)
        except (TypeError, ValueError, OverflowError, OSError):
            return Err(VerificationFailure.MALFORMED)

        if expires_at <= self._clock():
            return Err(VerificationFailure.EXPIRED)

        return Ok(
            TokenClaims(
                subject=str(payload["sub"]),
                kind=kind,
                issued_at=issued_at,
                expires_at=expires_at,
                token_id=str(payload.get("jti", "")),
            )
        )
