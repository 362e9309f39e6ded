"""Credential store: user rows in Postgres."""

from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import AsyncIterator, Optional
from uuid import UUID, uuid4

import asyncpg
import structlog

from src.database import get_pool
from src.models.user import UserRecord

logger = structlog.get_logger(__name__)

USER_COLUMNS = (
    "id, username, email, full_name, password_hash, avatar, cover_image, "
    "refresh_token, created_at, updated_at"
)

# Columns update_by_id may touch
UPDATABLE_FIELDS = frozenset(
    {"email", "full_name", "password_hash", "avatar", "cover_image", "refresh_token"}
)


class StoreError(Exception):
    """The credential store could not complete a read or write."""


class DuplicateUserError(StoreError):
    """A unique index on username or email rejected the write."""


def _row_to_record(row) -> UserRecord:
    return UserRecord(
        id=row["id"],
        username=row["username"],
        email=row["email"],
        full_name=row["full_name"],
        password_hash=row["password_hash"],
        avatar=row["avatar"],
        cover_image=row["cover_image"],
        refresh_token=row["refresh_token"],
        created_at=row["created_at"],
        updated_at=row["updated_at"],
    )


@asynccontextmanager
async def store_connection() -> AsyncIterator[asyncpg.Connection]:
    """Acquire a pooled connection, translating driver errors to StoreError."""
    try:
        pool = await get_pool()
        async with pool.acquire() as conn:
            yield conn
    except asyncpg.UniqueViolationError as e:
        raise DuplicateUserError(str(e)) from e
    except (asyncpg.PostgresError, OSError, RuntimeError) as e:
        logger.error("credential_store_error", error=str(e), error_type=type(e).__name__)
        raise StoreError(str(e)) from e


class UserStore:
    """CRUD for user records, including the single live refresh token."""

    async def find_by_username_or_email(
        self,
        username: Optional[str] = None,
        email: Optional[str] = None,
    ) -> Optional[UserRecord]:
        """Find a user whose username or email matches (both case-insensitive).

        Args:
            username: Username to match, or None
            email: Email to match, or None

        Returns:
            UserRecord or None if neither identifier matches
        """
        if not username and not email:
            return None

        async with store_connection() as conn:
            row = await conn.fetchrow(
                f"""
                SELECT {USER_COLUMNS}
                FROM users
                WHERE LOWER(username) = LOWER($1) OR LOWER(email) = LOWER($2)
                LIMIT 1
                """,
                username or "",
                email or "",
            )

        return _row_to_record(row) if row is not None else None

    async def find_by_id(self, user_id: UUID) -> Optional[UserRecord]:
        """Get a user by UUID."""
        async with store_connection() as conn:
            row = await conn.fetchrow(
                f"SELECT {USER_COLUMNS} FROM users WHERE id = $1",
                user_id,
            )

        return _row_to_record(row) if row is not None else None

    async def find_by_username(self, username: str) -> Optional[UserRecord]:
        """Get a user by username (case-insensitive)."""
        async with store_connection() as conn:
            row = await conn.fetchrow(
                f"SELECT {USER_COLUMNS} FROM users WHERE LOWER(username) = LOWER($1)",
                username,
            )

        return _row_to_record(row) if row is not None else None

    async def create(
        self,
        username: str,
        email: str,
        full_name: str,
        password_hash: str,
        avatar: str,
        cover_image: Optional[str] = None,
    ) -> UUID:
        """Insert a new user row.

        Returns:
            The new user's UUID

        Raises:
            DuplicateUserError: If username or email is already taken
            StoreError: On any other database failure
        """
        user_id = uuid4()
        now = datetime.now(timezone.utc)

        async with store_connection() as conn:
            await conn.execute(
                """
                INSERT INTO users (id, username, email, full_name, password_hash,
                                   avatar, cover_image, refresh_token, created_at, updated_at)
                VALUES ($1, $2, $3, $4, $5, $6, $7, NULL, $8, $9)
                """,
                user_id,
                username,
                email,
                full_name,
                password_hash,
                avatar,
                cover_image,
                now,
                now,
            )

        logger.info("user_row_created", user_id=str(user_id), username=username)
        return user_id

    async def update_by_id(self, user_id: UUID, **fields) -> Optional[UserRecord]:
        """Update the given columns and return the fresh row.

        Args:
            user_id: UUID of the user to update
            **fields: Column values; keys must be in UPDATABLE_FIELDS

        Returns:
            Updated UserRecord, or None if user not found
        """
        unknown = set(fields) - UPDATABLE_FIELDS
        if unknown:
            raise ValueError(f"Cannot update columns: {sorted(unknown)}")

        if not fields:
            return await self.find_by_id(user_id)

        set_clauses = []
        params = []
        for idx, (column, value) in enumerate(fields.items(), start=1):
            set_clauses.append(f"{column} = ${idx}")
            params.append(value)

        params.append(datetime.now(timezone.utc))
        set_clauses.append(f"updated_at = ${len(params)}")
        params.append(user_id)

        query = f"""
            UPDATE users
            SET {', '.join(set_clauses)}
            WHERE id = ${len(params)}
            RETURNING {USER_COLUMNS}
        """

        async with store_connection() as conn:
            row = await conn.fetchrow(query, *params)

        if row is None:
            return None

        logger.info("user_row_updated", user_id=str(user_id), fields_updated=sorted(fields))
        return _row_to_record(row)

    async def set_refresh_token(self, user_id: UUID, token: Optional[str]) -> bool:
        """Overwrite the stored refresh token (None clears it).

        Returns:
            True if the user row exists
        """
        async with store_connection() as conn:
            result = await conn.execute(
                "UPDATE users SET refresh_token = $1, updated_at = $2 WHERE id = $3",
                token,
                datetime.now(timezone.utc),
                user_id,
            )
        return result == "UPDATE 1"

    async def compare_and_set_refresh_token(
        self, user_id: UUID, expected: str, new: str
    ) -> bool:
        """Atomically replace the stored refresh token if it still equals ``expected``.

        Returns:
            True if the swap happened; False if another writer got there first
        """
        async with store_connection() as conn:
            result = await conn.execute(
                """
                UPDATE users
                SET refresh_token = $1, updated_at = $2
                WHERE id = $3 AND refresh_token = $4
                """,
                new,
                datetime.now(timezone.utc),
                user_id,
                expected,
            )
        return result == "UPDATE 1"
