"""
Unit tests for JWT handling and the get_current_user dependency
"""
from unittest.mock import patch

import pytest

from auth import get_current_user
from auth_utils import create_jwt, create_expired_jwt, decode_jwt
from services.errors import Unauthorized


def test_jwt_round_trip_carries_identity(app_settings):
    token = create_jwt("user-1", "one@example.com")
    payload = decode_jwt(token)

    assert payload["sub"] == "user-1"
    assert payload["email"] == "one@example.com"


def test_jwt_security_missing_key():
    """
    create_jwt() raises a ValueError if settings.jwt_secret_key is None or an empty string.
    """
    with patch('auth_utils.settings.jwt_secret_key', None):
        with pytest.raises(ValueError, match="JWT_SECRET_KEY is not set"):
            create_jwt("test_user_id", "test@example.com")

    with patch('auth_utils.settings.jwt_secret_key', ""):
        with pytest.raises(ValueError, match="JWT_SECRET_KEY is not set"):
            create_jwt("test_user_id", "test@example.com")


@pytest.mark.asyncio
async def test_get_current_user_resolves_bearer_token(app_settings):
    token = create_jwt("user-1", "one@example.com")

    user = await get_current_user(authorization=f"Bearer {token}")

    assert user.id == "user-1"
    assert user.email == "one@example.com"


@pytest.mark.asyncio
@pytest.mark.parametrize("header", [None, "", "Token abc", "Bearer ", "Bearer garbage"])
async def test_get_current_user_rejects_bad_headers(app_settings, header):
    with pytest.raises(Unauthorized):
        await get_current_user(authorization=header)


@pytest.mark.asyncio
async def test_get_current_user_rejects_expired_token(app_settings):
    token = create_expired_jwt("user-1", "one@example.com", expired_seconds_ago=5)

    with pytest.raises(Unauthorized, match="Invalid or expired token"):
        await get_current_user(authorization=f"Bearer {token}")


@pytest.mark.asyncio
async def test_get_current_user_requires_email_claim(app_settings):
    import jwt
    token = jwt.encode({"sub": "user-1"}, app_settings.jwt_secret_key, algorithm="HS256")

    with pytest.raises(Unauthorized, match="Invalid token payload"):
        await get_current_user(authorization=f"Bearer {token}")


@pytest.mark.asyncio
async def test_get_current_user_without_secret_is_unauthorized(app_settings, monkeypatch):
    token = create_jwt("user-1", "one@example.com")
    monkeypatch.setattr(app_settings, "jwt_secret_key", None)

    with pytest.raises(Unauthorized):
        await get_current_user(authorization=f"Bearer {token}")
