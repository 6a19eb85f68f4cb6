"""Session lifecycle: login, refresh-token rotation and logout.

Each account holds at most one valid refresh token, stored as a SHA-256
digest on the user row. Login overwrites it, refresh swaps it with a
conditional update keyed on the previous digest, logout clears it.
"""

import secrets
from dataclasses import dataclass
from typing import Optional
from uuid import UUID

import asyncpg
import jwt
import structlog
from fastapi.concurrency import run_in_threadpool

from videotube.errors import InternalError, InvalidTokenError, UnauthorizedError
from videotube.models.auth import LoginData, TokenPair
from videotube.models.user import User
from videotube.services.auth_service import AuthService, hash_refresh_token
from videotube.services.user_service import UserService

logger = structlog.get_logger(__name__)

INVALID_CREDENTIALS = "Invalid user credentials"
INVALID_REFRESH_TOKEN = "Invalid refresh token"
REFRESH_TOKEN_REUSED = "Refresh token is expired or used"
TOKEN_GENERATION_FAILED = "Something went wrong while generating access and refresh token"


@dataclass
class _IssuedTokens:
    access_token: str
    refresh_token: str
    refresh_token_hash: str


class SessionService:
    """Orchestrates credential checks, token issuing and refresh rotation."""

    def __init__(self):
        self.auth_service = AuthService()
        self.user_service = UserService()

    async def _issue_tokens(self, user_id: UUID) -> _IssuedTokens:
        try:
            access_token = await run_in_threadpool(
                self.auth_service.create_access_token, user_id
            )
            refresh_token = await run_in_threadpool(
                self.auth_service.create_refresh_token, user_id
            )
        except jwt.PyJWTError as e:
            logger.error("token_signing_failed", user_id=str(user_id), error=str(e))
            raise InternalError(TOKEN_GENERATION_FAILED)

        return _IssuedTokens(
            access_token=access_token,
            refresh_token=refresh_token,
            refresh_token_hash=hash_refresh_token(refresh_token),
        )

    async def login(
        self,
        password: str,
        username: Optional[str] = None,
        email: Optional[str] = None,
    ) -> LoginData:
        """Verify credentials and start a new session.

        Args:
            password: Plain-text password
            username: Username to match (optional)
            email: Email to match (optional)

        Returns:
            LoginData with the token pair and the sanitized user

        Raises:
            UnauthorizedError: Unknown user or wrong password (same message)
            InternalError: Token signing or persistence failure
        """
        credentials = await self.user_service.find_credentials(username=username, email=email)

        if credentials is None:
            logger.info("login_rejected", reason="unknown_user")
            raise UnauthorizedError(INVALID_CREDENTIALS)

        password_ok = await run_in_threadpool(
            self.auth_service.verify_password, password, credentials.password_hash
        )
        if not password_ok:
            logger.info(
                "login_rejected",
                reason="wrong_password",
                user_id=str(credentials.user.id),
            )
            raise UnauthorizedError(INVALID_CREDENTIALS)

        user = credentials.user
        issued = await self._issue_tokens(user.id)

        try:
            stored = await self.user_service.set_refresh_token_hash(
                user.id, issued.refresh_token_hash
            )
        except asyncpg.PostgresError as e:
            logger.error("refresh_token_store_failed", user_id=str(user.id), error=str(e))
            raise InternalError(TOKEN_GENERATION_FAILED)

        if not stored:
            # Row vanished between lookup and update
            raise UnauthorizedError(INVALID_CREDENTIALS)

        logger.info("user_logged_in", user_id=str(user.id), username=user.username)

        return LoginData(
            user=user,
            access_token=issued.access_token,
            refresh_token=issued.refresh_token,
        )

    async def refresh(self, incoming_token: Optional[str]) -> TokenPair:
        """Exchange a refresh token for a brand-new token pair.

        The presented token must be the one currently stored for the user;
        a superseded token is rejected even while its signature is valid.

        Raises:
            UnauthorizedError: Missing, invalid, expired, superseded token or
                deleted account
            InternalError: Token signing or persistence failure
        """
        if not incoming_token:
            raise UnauthorizedError("Unauthorized request")

        try:
            claims = await run_in_threadpool(
                self.auth_service.verify_refresh_token, incoming_token
            )
        except InvalidTokenError as e:
            logger.info("refresh_token_rejected", reason=str(e))
            raise UnauthorizedError(INVALID_REFRESH_TOKEN)

        credentials = await self.user_service.get_credentials(claims.user_id)
        if credentials is None:
            logger.info("refresh_token_rejected", reason="user_not_found")
            raise UnauthorizedError(INVALID_REFRESH_TOKEN)

        incoming_hash = hash_refresh_token(incoming_token)
        stored_hash = credentials.refresh_token_hash
        if stored_hash is None or not secrets.compare_digest(incoming_hash, stored_hash):
            logger.warning(
                "refresh_token_rejected",
                reason="not_current",
                user_id=str(claims.user_id),
            )
            raise UnauthorizedError(REFRESH_TOKEN_REUSED)

        issued = await self._issue_tokens(claims.user_id)

        try:
            rotated = await self.user_service.rotate_refresh_token_hash(
                claims.user_id, stored_hash, issued.refresh_token_hash
            )
        except asyncpg.PostgresError as e:
            logger.error(
                "refresh_token_store_failed", user_id=str(claims.user_id), error=str(e)
            )
            raise InternalError(TOKEN_GENERATION_FAILED)

        if not rotated:
            raise UnauthorizedError(REFRESH_TOKEN_REUSED)

        logger.info("session_refreshed", user_id=str(claims.user_id))

        return TokenPair(
            access_token=issued.access_token,
            refresh_token=issued.refresh_token,
        )

    async def logout(self, user: User) -> None:
        """End the user's session by clearing the stored refresh token."""
        await self.user_service.clear_refresh_token(user.id)
        logger.info("user_logged_out", user_id=str(user.id))
