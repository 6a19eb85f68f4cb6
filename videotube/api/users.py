"""User account and session endpoints."""

from typing import Optional

import structlog
from fastapi import APIRouter, Body, Depends, File, Form, Request, Response, UploadFile, status

from videotube.api.dependencies import (
    ACCESS_TOKEN_COOKIE,
    REFRESH_TOKEN_COOKIE,
    get_current_user,
)
from videotube.config import get_settings
from videotube.errors import ConflictError, InvalidInputError
from videotube.models.auth import (
    ChangePasswordRequest,
    LoginData,
    LoginRequest,
    RefreshRequest,
    TokenPair,
)
from videotube.models.response import ApiResponse
from videotube.models.user import User
from videotube.services.media_service import (
    get_media_uploader,
    remove_local_file,
    spool_upload,
)
from videotube.services.session_service import SessionService
from videotube.services.user_service import UserService

logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/api/v1/users", tags=["Users"])


def _set_auth_cookies(response: Response, access_token: str, refresh_token: str) -> None:
    """Mirror the token pair into http-only cookies (session-scoped)."""
    secure = get_settings().cookie_secure
    response.set_cookie(ACCESS_TOKEN_COOKIE, access_token, httponly=True, secure=secure)
    response.set_cookie(REFRESH_TOKEN_COOKIE, refresh_token, httponly=True, secure=secure)


def _clear_auth_cookies(response: Response) -> None:
    secure = get_settings().cookie_secure
    response.delete_cookie(ACCESS_TOKEN_COOKIE, httponly=True, secure=secure)
    response.delete_cookie(REFRESH_TOKEN_COOKIE, httponly=True, secure=secure)


def _has_file(upload: Optional[UploadFile]) -> bool:
    return upload is not None and bool(upload.filename)


@router.post("/register", status_code=status.HTTP_201_CREATED)
async def register(
    full_name: str = Form("", alias="fullName"),
    username: str = Form(""),
    email: str = Form(""),
    password: str = Form(""),
    avatar: Optional[UploadFile] = File(None),
    cover_image: Optional[UploadFile] = File(None, alias="coverImage"),
) -> ApiResponse[User]:
    """Register a new account with an avatar and optional cover image.

    Raises:
        InvalidInputError 400: Blank fields, or avatar missing / not uploaded
        ConflictError 409: Username or email already taken
    """
    if any(not field.strip() for field in (full_name, username, email, password)):
        raise InvalidInputError("All fields are required")

    user_service = UserService()
    if await user_service.exists(username=username, email=email):
        logger.info("registration_conflict", username=username.strip().lower())
        raise ConflictError("User with email or username already exists")

    if not _has_file(avatar):
        raise InvalidInputError("Avatar file is required")

    settings = get_settings()
    spooled = []
    try:
        avatar_path = await spool_upload(avatar, settings.upload_temp_dir)
        spooled.append(avatar_path)
        cover_path = None
        if _has_file(cover_image):
            cover_path = await spool_upload(cover_image, settings.upload_temp_dir)
            spooled.append(cover_path)

        uploader = get_media_uploader()
        avatar_media = await uploader.upload(avatar_path)
        cover_media = await uploader.upload(cover_path)
    finally:
        for path in spooled:
            remove_local_file(path)

    if avatar_media is None:
        raise InvalidInputError("Avatar file is required")

    user = await user_service.create_user(
        username=username,
        email=email,
        password=password,
        full_name=full_name,
        avatar=avatar_media.url,
        cover_image=cover_media.url if cover_media else None,
    )

    return ApiResponse(
        status_code=status.HTTP_201_CREATED,
        data=user,
        message="User registered successfully",
    )


@router.post("/login")
async def login(request: LoginRequest, response: Response) -> ApiResponse[LoginData]:
    """Login with username or email and password.

    Tokens are returned in the body and set as http-only cookies.

    Raises:
        UnauthorizedError 401: Unknown user or wrong password
    """
    session_service = SessionService()
    data = await session_service.login(
        password=request.password,
        username=request.username,
        email=request.email,
    )

    _set_auth_cookies(response, data.access_token, data.refresh_token)
    return ApiResponse(status_code=200, data=data, message="User logged in successfully")


@router.post("/logout")
async def logout(
    response: Response,
    current_user: User = Depends(get_current_user),
) -> ApiResponse[dict]:
    """Invalidate the stored refresh token and clear both cookies."""
    session_service = SessionService()
    await session_service.logout(current_user)

    _clear_auth_cookies(response)
    return ApiResponse(status_code=200, data={}, message="User logged out")


@router.post("/refresh-token")
async def refresh_token(
    request: Request,
    response: Response,
    body: Optional[RefreshRequest] = Body(None),
) -> ApiResponse[TokenPair]:
    """Rotate the session: exchange a refresh token for a new token pair.

    The refresh token is read from the cookie first, then from the body.

    Raises:
        UnauthorizedError 401: Missing, invalid, expired or already used token
    """
    incoming = request.cookies.get(REFRESH_TOKEN_COOKIE) or (
        body.refresh_token if body is not None else None
    )

    session_service = SessionService()
    tokens = await session_service.refresh(incoming)

    _set_auth_cookies(response, tokens.access_token, tokens.refresh_token)
    return ApiResponse(status_code=200, data=tokens, message="Access token refreshed")


@router.post("/change-password")
async def change_password(
    request: ChangePasswordRequest,
    current_user: User = Depends(get_current_user),
) -> ApiResponse[dict]:
    """Change the current user's password.

    Raises:
        InvalidInputError 400: Old password does not match
    """
    user_service = UserService()
    await user_service.change_password(
        current_user.id, request.old_password, request.new_password
    )
    return ApiResponse(status_code=200, data={}, message="Password changed successfully")


@router.get("/current-user")
async def get_current_user_profile(
    current_user: User = Depends(get_current_user),
) -> ApiResponse[User]:
    """Return the authenticated user's profile."""
    return ApiResponse(
        status_code=200,
        data=current_user,
        message="Current user fetched successfully",
    )
