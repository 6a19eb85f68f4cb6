"""Services package exports."""

from videotube.services.auth_service import AuthService
from videotube.services.logging_service import configure_logging, get_logger
from videotube.services.media_service import MediaUploader
from videotube.services.session_service import SessionService
from videotube.services.user_service import UserService

__all__ = [
    "AuthService",
    "MediaUploader",
    "SessionService",
    "UserService",
    "configure_logging",
    "get_logger",
]
