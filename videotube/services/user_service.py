"""User record persistence.

Plain-text passwords enter this service only as arguments to ``create_user``
and ``update_password``; both hash before anything is written.
"""

from datetime import datetime, timezone
from typing import Optional
from uuid import UUID, uuid4

import asyncpg
import structlog
from fastapi.concurrency import run_in_threadpool

from videotube.database import get_pool
from videotube.errors import ConflictError, InvalidInputError, NotFoundError
from videotube.models.user import User, UserCredentials
from videotube.services.auth_service import AuthService

logger = structlog.get_logger(__name__)

# Public profile columns; credential columns are selected explicitly where needed
USER_COLUMNS = (
    "id, username, email, full_name, avatar, cover_image, watch_history, "
    "created_at, updated_at"
)


def normalize_identifier(value: Optional[str]) -> Optional[str]:
    """Trim and lowercase a username or email; blank becomes None."""
    if value is None:
        return None
    value = value.strip().lower()
    return value or None


def _row_to_user(row) -> User:
    return User(
        id=row["id"],
        username=row["username"],
        email=row["email"],
        full_name=row["full_name"],
        avatar=row["avatar"],
        cover_image=row["cover_image"] or None,
        watch_history=list(row["watch_history"] or []),
        created_at=row["created_at"],
        updated_at=row["updated_at"],
    )


class UserService:
    """Service for user CRUD and refresh-token bookkeeping."""

    def __init__(self):
        self.auth_service = AuthService()

    async def create_user(
        self,
        username: str,
        email: str,
        password: str,
        full_name: str,
        avatar: str,
        cover_image: Optional[str] = None,
    ) -> User:
        """Create a new user with a hashed password.

        Args:
            username: Unique username (normalized to lowercase)
            email: Unique email (normalized to lowercase)
            password: Plain-text password (will be hashed)
            full_name: Display name
            avatar: Avatar URL
            cover_image: Optional cover image URL

        Returns:
            Created User model

        Raises:
            ConflictError: If the username or email is already taken
        """
        user_id = uuid4()
        now = datetime.now(timezone.utc)
        username = normalize_identifier(username)
        email = normalize_identifier(email)
        full_name = full_name.strip()
        password_hash = await run_in_threadpool(self.auth_service.hash_password, password)

        pool = await get_pool()

        try:
            async with pool.acquire() as conn:
                await conn.execute(
                    """
                    INSERT INTO users (id, username, email, full_name, avatar, cover_image,
                                       password_hash, created_at, updated_at)
                    VALUES ($1, $2, $3, $4, $5, $6, $7, $8, $9)
                    """,
                    user_id,
                    username,
                    email,
                    full_name,
                    avatar,
                    cover_image,
                    password_hash,
                    now,
                    now,
                )
        except asyncpg.UniqueViolationError:
            logger.warning("user_create_conflict", username=username)
            raise ConflictError("User with email or username already exists")

        logger.info("user_created", user_id=str(user_id), username=username)

        return User(
            id=user_id,
            username=username,
            email=email,
            full_name=full_name,
            avatar=avatar,
            cover_image=cover_image or None,
            watch_history=[],
            created_at=now,
            updated_at=now,
        )

    async def exists(self, username: Optional[str], email: Optional[str]) -> bool:
        """Check whether a user with this username OR email exists."""
        pool = await get_pool()

        async with pool.acquire() as conn:
            found = await conn.fetchval(
                """
                SELECT EXISTS (
                    SELECT 1 FROM users WHERE username = $1 OR email = $2
                )
                """,
                normalize_identifier(username),
                normalize_identifier(email),
            )

        return bool(found)

    async def find_credentials(
        self, username: Optional[str] = None, email: Optional[str] = None
    ) -> Optional[UserCredentials]:
        """Look up a user by username OR email, including stored hashes.

        Args:
            username: Username to match (optional)
            email: Email to match (optional)

        Returns:
            UserCredentials or None if no user matches
        """
        username = normalize_identifier(username)
        email = normalize_identifier(email)
        if username is None and email is None:
            return None

        pool = await get_pool()

        async with pool.acquire() as conn:
            row = await conn.fetchrow(
                f"""
                SELECT {USER_COLUMNS}, password_hash, refresh_token_hash
                FROM users
                WHERE username = $1 OR email = $2
                ORDER BY (username = $1) DESC NULLS LAST
                LIMIT 1
                """,
                username,
                email,
            )

        if row is None:
            return None

        return UserCredentials(
            user=_row_to_user(row),
            password_hash=row["password_hash"],
            refresh_token_hash=row["refresh_token_hash"],
        )

    async def get_credentials(self, user_id: UUID) -> Optional[UserCredentials]:
        """Get a user and its stored hashes by UUID."""
        pool = await get_pool()

        async with pool.acquire() as conn:
            row = await conn.fetchrow(
                f"""
                SELECT {USER_COLUMNS}, password_hash, refresh_token_hash
                FROM users
                WHERE id = $1
                """,
                user_id,
            )

        if row is None:
            return None

        return UserCredentials(
            user=_row_to_user(row),
            password_hash=row["password_hash"],
            refresh_token_hash=row["refresh_token_hash"],
        )

    async def get_by_id(self, user_id: UUID) -> Optional[User]:
        """Get a user by UUID, without any credential columns.

        Args:
            user_id: User UUID

        Returns:
            User model or None if not found
        """
        pool = await get_pool()

        async with pool.acquire() as conn:
            row = await conn.fetchrow(
                f"SELECT {USER_COLUMNS} FROM users WHERE id = $1",
                user_id,
            )

        if row is None:
            return None

        return _row_to_user(row)

    async def set_refresh_token_hash(self, user_id: UUID, token_hash: str) -> bool:
        """Overwrite the stored refresh token digest (login).

        Returns:
            True if the user row was updated
        """
        pool = await get_pool()

        async with pool.acquire() as conn:
            result = await conn.execute(
                """
                UPDATE users
                SET refresh_token_hash = $1, updated_at = $2
                WHERE id = $3
                """,
                token_hash,
                datetime.now(timezone.utc),
                user_id,
            )

        return result == "UPDATE 1"

    async def rotate_refresh_token_hash(
        self, user_id: UUID, expected_hash: str, new_hash: str
    ) -> bool:
        """Replace the stored digest only if it still equals ``expected_hash``.

        Returns:
            True if rotated, False if the stored token moved on meanwhile
        """
        pool = await get_pool()

        async with pool.acquire() as conn:
            result = await conn.execute(
                """
                UPDATE users
                SET refresh_token_hash = $1, updated_at = $2
                WHERE id = $3 AND refresh_token_hash = $4
                """,
                new_hash,
                datetime.now(timezone.utc),
                user_id,
                expected_hash,
            )

        rotated = result == "UPDATE 1"
        if not rotated:
            logger.warning("refresh_token_rotation_lost", user_id=str(user_id))
        return rotated

    async def clear_refresh_token(self, user_id: UUID) -> None:
        """Remove the stored refresh token digest (logout)."""
        pool = await get_pool()

        async with pool.acquire() as conn:
            await conn.execute(
                """
                UPDATE users
                SET refresh_token_hash = NULL, updated_at = $1
                WHERE id = $2
                """,
                datetime.now(timezone.utc),
                user_id,
            )

        logger.info("refresh_token_cleared", user_id=str(user_id))

    async def update_password(self, user_id: UUID, new_password: str) -> bool:
        """Re-hash and store a new password.

        Args:
            user_id: UUID of the user to update
            new_password: New plain-text password

        Returns:
            True if the user row was updated
        """
        password_hash = await run_in_threadpool(self.auth_service.hash_password, new_password)

        pool = await get_pool()

        async with pool.acquire() as conn:
            result = await conn.execute(
                """
                UPDATE users
                SET password_hash = $1, updated_at = $2
                WHERE id = $3
                """,
                password_hash,
                datetime.now(timezone.utc),
                user_id,
            )

        updated = result == "UPDATE 1"
        if updated:
            logger.info("user_password_changed", user_id=str(user_id))
        return updated

    async def change_password(
        self, user_id: UUID, old_password: str, new_password: str
    ) -> None:
        """Replace the password after checking the current one.

        Raises:
            NotFoundError: If the user no longer exists
            InvalidInputError: If ``old_password`` does not match
        """
        credentials = await self.get_credentials(user_id)
        if credentials is None:
            raise NotFoundError("User does not exist")

        password_ok = await run_in_threadpool(
            self.auth_service.verify_password, old_password, credentials.password_hash
        )
        if not password_ok:
            logger.info("password_change_rejected", user_id=str(user_id))
            raise InvalidInputError("Invalid old password")

        if not await self.update_password(user_id, new_password):
            raise NotFoundError("User does not exist")
