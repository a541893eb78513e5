"""JWT verification tests."""

from datetime import datetime, timedelta, timezone

import jwt
import pytest

from copet.auth.jwt import create_access_token, verify_token
from copet.config import get_settings
from tests.conftest import _ensure_test_keys


@pytest.fixture(autouse=True)
def _keys():
    _ensure_test_keys()


def _private_key() -> str:
    with open(get_settings().jwt_private_key_path) as f:
        return f.read()


def _encode(**overrides) -> str:
    settings = get_settings()
    now = datetime.now(timezone.utc)
    payload = {
        "sub": "42",
        "iat": now,
        "exp": now + timedelta(minutes=5),
        "iss": settings.jwt_issuer,
        "type": "access",
    }
    payload.update(overrides)
    return jwt.encode(payload, _private_key(), algorithm="RS256")


def test_round_trip_subject():
    payload = verify_token(create_access_token(42))
    assert payload["sub"] == "42"
    assert payload["type"] == "access"


def test_expired_token_rejected():
    token = _encode(exp=datetime.now(timezone.utc) - timedelta(seconds=1))
    with pytest.raises(jwt.InvalidTokenError, match="expired"):
        verify_token(token)


def test_wrong_issuer_rejected():
    with pytest.raises(jwt.InvalidTokenError):
        verify_token(_encode(iss="someone-else"))


def test_wrong_type_rejected():
    with pytest.raises(jwt.InvalidTokenError, match="Expected token type"):
        verify_token(_encode(type="refresh"))


def test_non_numeric_subject_rejected():
    with pytest.raises(jwt.InvalidTokenError, match="subject"):
        verify_token(_encode(sub="alice"))


def test_garbage_rejected():
    with pytest.raises(jwt.InvalidTokenError):
        verify_token("not-a-token")
