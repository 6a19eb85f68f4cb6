"""Unit tests for AuthService.

Covers bcrypt password hashing and JWT access/refresh token issue and
verification.
"""

import hashlib
from datetime import datetime, timedelta, timezone
from unittest.mock import MagicMock, patch
from uuid import uuid4

import jwt
import pytest

from videotube.errors import InvalidTokenError
from videotube.services.auth_service import (
    ACCESS_TOKEN_TYPE,
    REFRESH_TOKEN_TYPE,
    AuthService,
    hash_refresh_token,
)

ACCESS_SECRET = "unit-access-secret"
REFRESH_SECRET = "unit-refresh-secret"


@pytest.fixture
def auth_service():
    """Create an AuthService with deterministic secrets and cheap bcrypt."""
    with patch("videotube.services.auth_service.get_settings") as mock_settings:
        mock_settings.return_value = MagicMock(
            access_token_secret=ACCESS_SECRET,
            refresh_token_secret=REFRESH_SECRET,
            access_token_expire_minutes=15,
            refresh_token_expire_days=10,
            jwt_algorithm="HS256",
            bcrypt_rounds=4,
        )
        yield AuthService()


def _craft(secret, **overrides):
    now = datetime.now(timezone.utc)
    payload = {
        "sub": str(uuid4()),
        "type": ACCESS_TOKEN_TYPE,
        "jti": uuid4().hex,
        "iat": now,
        "exp": now + timedelta(minutes=15),
    }
    payload.update(overrides)
    payload = {k: v for k, v in payload.items() if v is not None}
    return jwt.encode(payload, secret, algorithm="HS256")


# ---------------------------------------------------------------------------
# Password hashing
# ---------------------------------------------------------------------------

class TestPasswordHashing:
    """Tests for bcrypt hash_password / verify_password."""

    def test_hash_password_returns_bcrypt_string(self, auth_service):
        hashed = auth_service.hash_password("secret123")
        assert hashed.startswith("$2b$") or hashed.startswith("$2a$")
        assert len(hashed) == 60

    def test_hash_is_not_plaintext(self, auth_service):
        hashed = auth_service.hash_password("secret123")
        assert "secret123" not in hashed

    def test_hash_password_different_salts(self, auth_service):
        h1 = auth_service.hash_password("same-password")
        h2 = auth_service.hash_password("same-password")
        assert h1 != h2, "Each call should produce a unique salt"

    def test_uses_configured_cost(self, auth_service):
        hashed = auth_service.hash_password("secret123")
        assert hashed.split("$")[2] == "04"

    def test_verify_password_correct(self, auth_service):
        hashed = auth_service.hash_password("correct-horse-battery")
        assert auth_service.verify_password("correct-horse-battery", hashed) is True

    def test_verify_password_wrong(self, auth_service):
        hashed = auth_service.hash_password("right-password")
        assert auth_service.verify_password("wrong-password", hashed) is False

    def test_verify_password_malformed_hash(self, auth_service):
        assert auth_service.verify_password("anything", "not-a-bcrypt-hash") is False

    def test_password_longer_than_72_bytes(self, auth_service):
        long_password = "correct horse battery staple " * 3
        assert len(long_password.encode()) > 72

        hashed = auth_service.hash_password(long_password)

        assert auth_service.verify_password(long_password, hashed) is True
        assert auth_service.verify_password(long_password[:72], hashed) is False

    def test_multibyte_password_past_72_bytes(self, auth_service):
        password = "\u00e9" * 40
        hashed = auth_service.hash_password(password)

        assert auth_service.verify_password(password, hashed) is True
        assert auth_service.verify_password("\u00e9" * 39, hashed) is False


# ---------------------------------------------------------------------------
# Access tokens
# ---------------------------------------------------------------------------

class TestAccessToken:
    """Tests for access token creation and verification."""

    def test_round_trip_returns_user_id(self, auth_service):
        user_id = uuid4()
        token = auth_service.create_access_token(user_id)
        claims = auth_service.verify_access_token(token)
        assert claims.user_id == user_id
        assert claims.token_type == ACCESS_TOKEN_TYPE

    def test_embeds_only_identity_claims(self, auth_service):
        token = auth_service.create_access_token(uuid4())
        payload = jwt.decode(token, ACCESS_SECRET, algorithms=["HS256"])
        assert set(payload) == {"sub", "type", "jti", "iat", "exp"}

    def test_expiry_is_minutes_scale(self, auth_service):
        token = auth_service.create_access_token(uuid4())
        claims = auth_service.verify_access_token(token)
        assert claims.expires_at - claims.issued_at == timedelta(minutes=15)

    def test_tokens_are_unique_per_call(self, auth_service):
        user_id = uuid4()
        assert auth_service.create_access_token(user_id) != auth_service.create_access_token(user_id)

    def test_expired_token_raises(self, auth_service):
        now = datetime.now(timezone.utc)
        token = _craft(
            ACCESS_SECRET,
            iat=now - timedelta(hours=1),
            exp=now - timedelta(minutes=1),
        )
        with pytest.raises(InvalidTokenError, match="expired"):
            auth_service.verify_access_token(token)

    def test_tampered_token_raises(self, auth_service):
        token = _craft("wrong-secret")
        with pytest.raises(InvalidTokenError, match="Invalid"):
            auth_service.verify_access_token(token)

    def test_garbage_string_raises(self, auth_service):
        with pytest.raises(InvalidTokenError, match="Invalid"):
            auth_service.verify_access_token("not.a.jwt.token")

    def test_missing_subject_raises(self, auth_service):
        token = _craft(ACCESS_SECRET, sub=None)
        with pytest.raises(InvalidTokenError):
            auth_service.verify_access_token(token)

    def test_non_uuid_subject_raises(self, auth_service):
        token = _craft(ACCESS_SECRET, sub="not-a-uuid")
        with pytest.raises(InvalidTokenError, match="subject"):
            auth_service.verify_access_token(token)

    def test_invalid_token_error_is_value_error(self, auth_service):
        with pytest.raises(ValueError):
            auth_service.verify_access_token("garbage")


# ---------------------------------------------------------------------------
# Refresh tokens
# ---------------------------------------------------------------------------

class TestRefreshToken:
    """Tests for refresh token creation and purpose separation."""

    def test_round_trip(self, auth_service):
        user_id = uuid4()
        token = auth_service.create_refresh_token(user_id)
        claims = auth_service.verify_refresh_token(token)
        assert claims.user_id == user_id
        assert claims.token_type == REFRESH_TOKEN_TYPE

    def test_expiry_is_days_scale(self, auth_service):
        claims = auth_service.verify_refresh_token(auth_service.create_refresh_token(uuid4()))
        assert claims.expires_at - claims.issued_at == timedelta(days=10)

    def test_signed_with_refresh_secret(self, auth_service):
        token = auth_service.create_refresh_token(uuid4())
        payload = jwt.decode(token, REFRESH_SECRET, algorithms=["HS256"])
        assert payload["type"] == REFRESH_TOKEN_TYPE

    def test_refresh_token_rejected_as_access_token(self, auth_service):
        token = auth_service.create_refresh_token(uuid4())
        with pytest.raises(InvalidTokenError):
            auth_service.verify_access_token(token)

    def test_access_token_rejected_as_refresh_token(self, auth_service):
        token = auth_service.create_access_token(uuid4())
        with pytest.raises(InvalidTokenError):
            auth_service.verify_refresh_token(token)

    def test_wrong_type_claim_with_right_secret_rejected(self, auth_service):
        token = _craft(REFRESH_SECRET, type=ACCESS_TOKEN_TYPE)
        with pytest.raises(InvalidTokenError, match="wrong token type"):
            auth_service.verify_refresh_token(token)


class TestHashRefreshToken:
    def test_is_sha256_hex(self):
        assert hash_refresh_token("abc") == hashlib.sha256(b"abc").hexdigest()

    def test_distinct_tokens_distinct_digests(self):
        assert hash_refresh_token("a") != hash_refresh_token("b")
