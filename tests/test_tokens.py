"""Tests for signing and verifying bearer tokens."""

from __future__ import annotations

from datetime import timedelta

import pytest
from bson.objectid import ObjectId

from portfolio_api.models.user import User
from portfolio_api.services.tokens import (
    ACCESS,
    REFRESH,
    create_tokens,
    decode_access_token,
    decode_refresh_token,
    mint_token,
    verify_token,
)
from portfolio_api.utils.errors import InvalidSignatureOrExpired, Unauthorized


def _user() -> User:
    return User(id=ObjectId(), username="alice", email="alice@x.com", full_name="Alice Example", password="x")


def test_mint_and_verify_round_trip():
    token = mint_token("abc", {"email": "a@x.com"}, "secret", timedelta(minutes=5), ACCESS)

    claims = verify_token(token, "secret", ACCESS)

    assert claims["sub"] == "abc"
    assert claims["email"] == "a@x.com"
    assert claims["typ"] == ACCESS
    assert claims["exp"] > claims["iat"]


def test_verify_rejects_wrong_secret():
    token = mint_token("abc", {}, "secret", timedelta(minutes=5), ACCESS)

    with pytest.raises(InvalidSignatureOrExpired):
        verify_token(token, "other-secret", ACCESS)


def test_verify_rejects_expired_token():
    token = mint_token("abc", {}, "secret", timedelta(seconds=-10), ACCESS)

    with pytest.raises(InvalidSignatureOrExpired):
        verify_token(token, "secret", ACCESS)


def test_verify_rejects_wrong_token_type():
    token = mint_token("abc", {}, "secret", timedelta(minutes=5), REFRESH)

    with pytest.raises(InvalidSignatureOrExpired) as exc:
        verify_token(token, "secret", ACCESS)

    assert isinstance(exc.value, Unauthorized)


def test_tokens_minted_together_are_distinct():
    first = mint_token("abc", {}, "secret", timedelta(minutes=5), REFRESH)
    second = mint_token("abc", {}, "secret", timedelta(minutes=5), REFRESH)

    assert first != second


def test_create_tokens_uses_separate_secrets_and_claims(test_settings):
    user = _user()

    pair = create_tokens(user, test_settings)

    access = decode_access_token(pair.access_token, test_settings)
    refresh = decode_refresh_token(pair.refresh_token, test_settings)
    assert access["username"] == "alice"
    assert access["full_name"] == "Alice Example"
    assert refresh["sub"] == str(user.id)
    assert "email" not in refresh
    assert refresh["exp"] - refresh["iat"] == test_settings.refresh_token_expires_days * 24 * 3600

    with pytest.raises(InvalidSignatureOrExpired):
        decode_refresh_token(pair.access_token, test_settings)
    with pytest.raises(InvalidSignatureOrExpired):
        decode_access_token(pair.refresh_token, test_settings)
