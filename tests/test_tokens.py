"""Tests for token issuance and verification."""
from datetime import timedelta

import pytest
from jose import jwt

from eportfolio.config import AuthSettings
from eportfolio.core.exceptions import AuthenticationError, TokenSigningError
from eportfolio.core.tokens import TokenClaims, TokenIssuer, parse_duration

from .conftest import TEST_ACCESS_SECRET, TEST_REFRESH_SECRET


def test_issue_signs_with_distinct_secrets(token_issuer):
    pair = token_issuer.issue("user-1", "a@x.com", "USER")

    access = jwt.decode(pair.access_token, TEST_ACCESS_SECRET, algorithms=["HS256"])
    refresh = jwt.decode(pair.refresh_token, TEST_REFRESH_SECRET, algorithms=["HS256"])

    assert access["sub"] == refresh["sub"] == "user-1"
    assert access["email"] == "a@x.com"
    assert access["role"] == "USER"
    assert access["type"] == "access"
    assert refresh["type"] == "refresh"
    assert access["exp"] - access["iat"] == 15 * 60
    assert refresh["exp"] - refresh["iat"] == 7 * 24 * 60 * 60


def test_pairs_issued_back_to_back_differ(token_issuer):
    first = token_issuer.issue("user-1", "a@x.com", "USER")
    second = token_issuer.issue("user-1", "a@x.com", "USER")

    assert first.refresh_token != second.refresh_token
    assert first.access_token != second.access_token


def test_verify_returns_claims(token_issuer):
    pair = token_issuer.issue("user-1", "a@x.com", "ADMIN")

    assert token_issuer.verify_access(pair.access_token) == TokenClaims("user-1", "a@x.com", "ADMIN")
    assert token_issuer.verify_refresh(pair.refresh_token).subject_id == "user-1"


def test_tokens_are_not_interchangeable(token_issuer):
    pair = token_issuer.issue("user-1", "a@x.com", "USER")

    with pytest.raises(AuthenticationError):
        token_issuer.verify_access(pair.refresh_token)
    with pytest.raises(AuthenticationError):
        token_issuer.verify_refresh(pair.access_token)
    with pytest.raises(AuthenticationError):
        token_issuer.verify_access("not-a-jwt")


def test_expired_access_token_rejected():
    issuer = TokenIssuer("a-secret", "r-secret", access_ttl=timedelta(seconds=-60))
    pair = issuer.issue("user-1", "a@x.com", "USER")

    with pytest.raises(AuthenticationError):
        issuer.verify_access(pair.access_token)


@pytest.mark.parametrize(
    "access_secret,refresh_secret",
    [(None, "r-secret"), ("a-secret", None), ("", "r-secret"), ("  ", "r-secret"), ("same", "same")],
)
def test_missing_or_shared_secret_fails_fast(access_secret, refresh_secret):
    with pytest.raises(TokenSigningError):
        TokenIssuer(access_secret, refresh_secret)


def test_from_settings_uses_configured_expirations():
    issuer = TokenIssuer.from_settings(
        AuthSettings(
            access_secret="a-secret",
            refresh_secret="r-secret",
            access_expiration="30m",
            refresh_expiration="14d",
        )
    )

    assert issuer.access_ttl == timedelta(minutes=30)
    assert issuer.refresh_ttl == timedelta(days=14)
    assert issuer.access_expires_in == 1800


@pytest.mark.parametrize(
    "value,expected",
    [
        ("15m", timedelta(minutes=15)),
        ("7d", timedelta(days=7)),
        ("2h", timedelta(hours=2)),
        ("30s", timedelta(seconds=30)),
        ("3600", timedelta(seconds=3600)),
        ("1w", timedelta(weeks=1)),
    ],
)
def test_parse_duration(value, expected):
    assert parse_duration(value) == expected


@pytest.mark.parametrize("value", ["", "abc", "15x", "0m", "-5m"])
def test_parse_duration_rejects_garbage(value):
    with pytest.raises(ValueError):
        parse_duration(value)
