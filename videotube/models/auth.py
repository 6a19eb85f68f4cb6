"""Auth request and response models with validation."""

from typing import Optional

from pydantic import BaseModel, ConfigDict, field_validator, model_validator
from pydantic.alias_generators import to_camel

from videotube.models.user import User


class CamelModel(BaseModel):
    """Base model that reads and writes camelCase JSON keys."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class LoginRequest(CamelModel):
    """Login credentials.

    At least one of username / email must be given; both are matched with OR.

    Attributes:
        username: Account username (case-insensitive)
        email: Account email (case-insensitive)
        password: Plain-text password
    """

    username: Optional[str] = None
    email: Optional[str] = None
    password: str

    @field_validator("username", "email")
    @classmethod
    def normalize_identifier(cls, v: Optional[str]) -> Optional[str]:
        """Trim and lowercase; blank becomes None."""
        if v is None:
            return None
        v = v.strip().lower()
        return v or None

    @field_validator("password")
    @classmethod
    def password_not_empty(cls, v: str) -> str:
        """Ensure password is not empty or whitespace only."""
        if not v.strip():
            raise ValueError("Password is required")
        return v

    @model_validator(mode="after")
    def identifier_required(self) -> "LoginRequest":
        """Require a username or an email."""
        if self.username is None and self.email is None:
            raise ValueError("username or email is required")
        return self


class RefreshRequest(CamelModel):
    """Body form of a refresh call; the cookie takes precedence when present."""

    refresh_token: Optional[str] = None


class ChangePasswordRequest(CamelModel):
    """Request to replace the current password.

    Attributes:
        old_password: The password currently on record
        new_password: The replacement password
    """

    old_password: str
    new_password: str

    @field_validator("old_password", "new_password")
    @classmethod
    def password_not_empty(cls, v: str) -> str:
        """Ensure password is not empty or whitespace only."""
        if not v.strip():
            raise ValueError("Password cannot be empty or whitespace only")
        return v


class TokenPair(CamelModel):
    """Access + refresh token pair returned by login and refresh."""

    access_token: str
    refresh_token: str


class LoginData(TokenPair):
    """Login payload: the token pair plus the sanitized user profile."""

    user: User
