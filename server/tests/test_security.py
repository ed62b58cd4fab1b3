"""Tests for token helpers and the bearer dependency."""

import pytest

from horse_chat.utils.security import InvalidToken, authenticate_token, create_access_token, decode_access_token


def test_token_round_trip_carries_role():
    token = create_access_token("65f0c0ffee0000000000abcd", role="admin")
    payload = decode_access_token(token)
    assert payload.sub == "65f0c0ffee0000000000abcd"
    assert payload.role == "admin"


def test_expired_token_rejected():
    token = create_access_token("65f0c0ffee0000000000abcd", expires_minutes=-1)
    with pytest.raises(InvalidToken):
        decode_access_token(token)


def test_token_signed_with_other_secret_rejected():
    from jose import jwt

    forged = jwt.encode({"sub": "x", "exp": 9999999999}, "not-the-secret", algorithm="HS256")
    with pytest.raises(InvalidToken):
        authenticate_token(forged)


@pytest.mark.parametrize("token", [None, ""])
def test_missing_token_rejected(token):
    with pytest.raises(InvalidToken, match="No token provided"):
        authenticate_token(token)


def test_authenticate_token_returns_user():
    user = authenticate_token(create_access_token("u-1", role="seller"))
    assert user.id == "u-1"
    assert user.role == "seller"
