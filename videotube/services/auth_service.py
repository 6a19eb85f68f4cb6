"""Authentication primitives: password hashing and JWT issue/verify."""

import base64
import hashlib
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from uuid import UUID, uuid4

import bcrypt
import jwt
import structlog

from videotube.config import get_settings
from videotube.errors import InvalidTokenError

logger = structlog.get_logger(__name__)

ACCESS_TOKEN_TYPE = "access"
REFRESH_TOKEN_TYPE = "refresh"


@dataclass(frozen=True)
class TokenClaims:
    """Verified contents of an access or refresh token."""

    user_id: UUID
    token_type: str
    issued_at: datetime
    expires_at: datetime


def hash_refresh_token(token: str) -> str:
    """SHA-256 digest under which a refresh token is stored on the user row."""
    return hashlib.sha256(token.encode("utf-8")).hexdigest()


def prehash_password(password: str) -> bytes:
    """Fixed-length bcrypt input for a password of any length.

    bcrypt only accepts 72 bytes, so the password is reduced to the base64
    SHA-256 digest (44 ASCII bytes, no NUL) first.
    """
    return base64.b64encode(hashlib.sha256(password.encode("utf-8")).digest())


class AuthService:
    """Password hashing plus access/refresh token issuing and verification.

    All methods are synchronous and CPU-bound; async callers run them through
    a thread pool.
    """

    def __init__(self):
        self.settings = get_settings()

    def hash_password(self, password: str) -> str:
        """Hash a password using bcrypt.

        Args:
            password: Plain-text password to hash

        Returns:
            Bcrypt hash string
        """
        salt = bcrypt.gensalt(rounds=self.settings.bcrypt_rounds)
        hashed = bcrypt.hashpw(prehash_password(password), salt)
        return hashed.decode("utf-8")

    def verify_password(self, password: str, password_hash: str) -> bool:
        """Verify a password against a bcrypt hash.

        Args:
            password: Plain-text password to check
            password_hash: Bcrypt hash to verify against

        Returns:
            True if the password matches, False otherwise (including a
            malformed stored hash)
        """
        try:
            return bcrypt.checkpw(
                prehash_password(password),
                password_hash.encode("utf-8"),
            )
        except ValueError:
            logger.warning("password_hash_malformed")
            return False

    def _secret_for(self, token_type: str) -> str:
        if token_type == ACCESS_TOKEN_TYPE:
            return self.settings.access_token_secret
        if token_type == REFRESH_TOKEN_TYPE:
            return self.settings.refresh_token_secret
        raise ValueError(f"Unknown token type: {token_type}")

    def _encode(self, user_id: UUID | str, token_type: str, lifetime: timedelta) -> str:
        now = datetime.now(timezone.utc)
        payload = {
            "sub": str(user_id),
            "type": token_type,
            "jti": uuid4().hex,
            "iat": now,
            "exp": now + lifetime,
        }
        return jwt.encode(
            payload,
            self._secret_for(token_type),
            algorithm=self.settings.jwt_algorithm,
        )

    def create_access_token(self, user_id: UUID | str) -> str:
        """Create a signed, short-lived JWT access token.

        Only the user id is embedded; profile data is re-read on each request.

        Args:
            user_id: User UUID (placed in 'sub' claim)

        Returns:
            Encoded JWT string
        """
        token = self._encode(
            user_id,
            ACCESS_TOKEN_TYPE,
            timedelta(minutes=self.settings.access_token_expire_minutes),
        )
        logger.debug(
            "access_token_created",
            user_id=str(user_id),
            expires_minutes=self.settings.access_token_expire_minutes,
        )
        return token

    def create_refresh_token(self, user_id: UUID | str) -> str:
        """Create a signed, long-lived JWT refresh token.

        Args:
            user_id: User UUID (placed in 'sub' claim)

        Returns:
            Encoded JWT string
        """
        token = self._encode(
            user_id,
            REFRESH_TOKEN_TYPE,
            timedelta(days=self.settings.refresh_token_expire_days),
        )
        logger.debug(
            "refresh_token_created",
            user_id=str(user_id),
            expires_days=self.settings.refresh_token_expire_days,
        )
        return token

    def verify_token(self, token: str, expected_type: str) -> TokenClaims:
        """Decode and validate a JWT of the given purpose.

        Args:
            token: Encoded JWT string
            expected_type: "access" or "refresh"

        Returns:
            Verified token claims

        Raises:
            InvalidTokenError: If the token is expired, forged, malformed or
                issued for a different purpose
        """
        try:
            payload = jwt.decode(
                token,
                self._secret_for(expected_type),
                algorithms=[self.settings.jwt_algorithm],
                options={"require": ["sub", "exp", "iat"]},
            )
        except jwt.ExpiredSignatureError:
            raise InvalidTokenError(f"{expected_type.capitalize()} token has expired")
        except jwt.InvalidTokenError as e:
            raise InvalidTokenError(f"Invalid {expected_type} token: {e}")

        if payload.get("type") != expected_type:
            raise InvalidTokenError(
                f"Invalid {expected_type} token: wrong token type {payload.get('type')!r}"
            )

        try:
            user_id = UUID(str(payload["sub"]))
        except ValueError:
            raise InvalidTokenError(f"Invalid {expected_type} token: malformed subject")

        return TokenClaims(
            user_id=user_id,
            token_type=expected_type,
            issued_at=datetime.fromtimestamp(payload["iat"], tz=timezone.utc),
            expires_at=datetime.fromtimestamp(payload["exp"], tz=timezone.utc),
        )

    def verify_access_token(self, token: str) -> TokenClaims:
        """Validate an access token. See ``verify_token``."""
        return self.verify_token(token, ACCESS_TOKEN_TYPE)

    def verify_refresh_token(self, token: str) -> TokenClaims:
        """Validate a refresh token. See ``verify_token``."""
        return self.verify_token(token, REFRESH_TOKEN_TYPE)
