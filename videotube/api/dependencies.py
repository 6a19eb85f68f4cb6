"""FastAPI dependencies for authentication and authorization."""

from typing import Optional
from uuid import UUID

import structlog
from fastapi import Depends, Request
from fastapi.concurrency import run_in_threadpool
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from videotube.errors import ForbiddenError, InvalidTokenError, UnauthorizedError
from videotube.models.user import User
from videotube.services.auth_service import AuthService
from videotube.services.user_service import UserService

logger = structlog.get_logger(__name__)

ACCESS_TOKEN_COOKIE = "accessToken"
REFRESH_TOKEN_COOKIE = "refreshToken"

bearer_scheme = HTTPBearer(auto_error=False)


def extract_access_token(
    request: Request, credentials: Optional[HTTPAuthorizationCredentials]
) -> Optional[str]:
    """Return the access token from the cookie, else from the Bearer header."""
    cookie_token = request.cookies.get(ACCESS_TOKEN_COOKIE)
    if cookie_token:
        return cookie_token
    if credentials is not None and credentials.credentials:
        return credentials.credentials
    return None


async def get_current_user(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
) -> User:
    """Resolve the request's access token to a live user.

    Args:
        request: Incoming request (cookie source, and where the user is attached)
        credentials: Bearer token from Authorization header, if any

    Returns:
        Authenticated User model (no credential fields)

    Raises:
        UnauthorizedError: If no token is present, the token is invalid or
            expired, or the account no longer exists
    """
    token = extract_access_token(request, credentials)
    if not token:
        raise UnauthorizedError("Unauthorized request")

    auth_service = AuthService()
    try:
        claims = await run_in_threadpool(auth_service.verify_access_token, token)
    except InvalidTokenError as e:
        logger.info("access_token_rejected", reason=str(e))
        raise UnauthorizedError("Invalid access token")

    user_service = UserService()
    user = await user_service.get_by_id(claims.user_id)

    if user is None:
        logger.info("access_token_rejected", reason="user_not_found", user_id=str(claims.user_id))
        raise UnauthorizedError("Invalid access token")

    request.state.user = user
    structlog.contextvars.bind_contextvars(user_id=str(user.id))
    return user


def ensure_owner(owner_id: UUID, current_user: User) -> None:
    """Require the authenticated user to own the resource.

    Raises:
        ForbiddenError: If ``owner_id`` is not the current user's id
    """
    if owner_id != current_user.id:
        logger.warning(
            "ownership_check_failed",
            owner_id=str(owner_id),
            user_id=str(current_user.id),
        )
        raise ForbiddenError("You do not have permission to modify this resource")
