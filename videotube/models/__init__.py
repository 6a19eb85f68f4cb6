"""Models package exports."""

from videotube.models.auth import (
    ChangePasswordRequest,
    LoginData,
    LoginRequest,
    RefreshRequest,
    TokenPair,
)
from videotube.models.response import ApiResponse, ErrorResponse
from videotube.models.user import User, UserCredentials

__all__ = [
    "ApiResponse",
    "ChangePasswordRequest",
    "ErrorResponse",
    "LoginData",
    "LoginRequest",
    "RefreshRequest",
    "TokenPair",
    "User",
    "UserCredentials",
]
