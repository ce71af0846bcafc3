import asyncio
from unittest.mock import MagicMock

import pytest
from fastapi import HTTPException
from jose import jwt

from reservations.auth import decode_bearer, get_current_principal, get_key_by_user_id_or_ip
from reservations.config import settings
from reservations.models import UserRole


def _bearer(claims: dict) -> str:
    return "Bearer " + jwt.encode(claims, settings.SECRET_KEY, algorithm=settings.ALGORITHM)


def test_principal_from_token():
    principal = asyncio.run(get_current_principal(_bearer({"sub": "10", "role": "property_owner"})))
    assert principal.user_id == 10
    assert principal.role == UserRole.PROPERTY_OWNER
    assert principal.is_system is False


def test_missing_role_means_plain_user():
    principal = asyncio.run(get_current_principal(_bearer({"sub": "3"})))
    assert principal.role == UserRole.USER


@pytest.mark.parametrize("header", [
    "Token abc",
    "Bearer",
    _bearer({"role": "user"}),
    _bearer({"sub": "1", "role": "superuser"}),
    "Bearer " + jwt.encode({"sub": "1"}, "wrong-secret", algorithm="HS256"),
])
def test_bad_tokens_are_rejected(header):
    with pytest.raises(HTTPException) as exc_info:
        asyncio.run(get_current_principal(header))
    assert exc_info.value.status_code == 401


def test_decode_bearer_requires_header():
    with pytest.raises(ValueError):
        decode_bearer(None)


def test_rate_limit_key_prefers_user_id():
    request = MagicMock()
    request.client.host = "203.0.113.7"

    request.headers = {"Authorization": _bearer({"sub": "42"})}
    assert asyncio.run(get_key_by_user_id_or_ip(request)) == "user:42"

    request.headers = {}
    assert asyncio.run(get_key_by_user_id_or_ip(request)) == "203.0.113.7"
