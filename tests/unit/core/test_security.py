import pytest
import time_machine
from jose import jwt, JWTError
from datetime import datetime, timezone, timedelta
import ticketcore.core.security as security


@time_machine.travel("2025-01-01 12:00:00", tick=False)
def test_create_access_token_contains_expected_claims(monkeypatch):
    monkeypatch.setattr(security, "SECRET_KEY", "fake-key")

    token = security.create_access_token(subject=1)
    payload = jwt.decode(token, "fake-key", algorithms=[security.ALGORITHM], audience=security.JWT_AUDIENCE)

    now = datetime.now(timezone.utc)
    assert payload["iat"] == int(now.timestamp())
    assert payload["exp"] == int((now + timedelta(minutes=15)).timestamp())
    assert payload["sub"] == "1"
    assert payload["typ"] == "access"
    assert payload["iss"] == security.JWT_ISSUER


def test_decode_access_token_round_trip(monkeypatch):
    monkeypatch.setattr(security, "SECRET_KEY", "fake-key")

    payload = security.decode_access_token(security.create_access_token(subject=7, expires_minutes=5))

    assert payload["sub"] == "7"


def test_decode_access_token_with_wrong_key_fails(monkeypatch):
    monkeypatch.setattr(security, "SECRET_KEY", "fake-key")
    token = security.create_access_token(subject=7)
    monkeypatch.setattr(security, "SECRET_KEY", "other-key")

    with pytest.raises(JWTError):
        security.decode_access_token(token)


def test_decode_access_token_expired_fails(monkeypatch):
    monkeypatch.setattr(security, "SECRET_KEY", "fake-key")
    with time_machine.travel("2025-01-01 12:00:00", tick=False):
        token = security.create_access_token(subject=7, expires_minutes=1)

    with time_machine.travel("2025-01-01 12:10:00", tick=False):
        with pytest.raises(JWTError):
            security.decode_access_token(token)
