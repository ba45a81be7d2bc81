"""Tests for password hashing and credential input rules."""
import pytest

from eportfolio.core.exceptions import ValidationError
from eportfolio.core.passwords import (
    is_strong_password,
    normalize_email,
    validate_email,
    validate_name,
)


@pytest.mark.parametrize(
    "password,strong",
    [
        ("Abc123", True),
        ("abc123", False),
        ("ABC123", False),
        ("Abcdef", False),
        ("Abc12", False),
        ("", False),
        ("aB3" * 10, True),
        ("Ab\nc12", True),
        ("Ab\n1", False),
    ],
)
def test_password_policy(password, strong):
    assert is_strong_password(password) is strong


def test_hash_round_trip(hasher):
    hashed = hasher.hash_password("Abc123")

    assert hashed != "Abc123"
    assert hasher.verify_password("Abc123", hashed)
    assert not hasher.verify_password("Abc124", hashed)


def test_hash_is_salted(hasher):
    assert hasher.hash_password("Abc123") != hasher.hash_password("Abc123")


def test_verify_against_garbage_hash(hasher):
    assert hasher.verify_password("Abc123", "not-a-bcrypt-hash") is False


def test_email_normalization():
    assert normalize_email("  Ana@Example.COM ") == "ana@example.com"
    assert validate_email(" Ana@Example.com") == "ana@example.com"


@pytest.mark.parametrize("email", ["", "ana", "ana@", "ana@x", "a na@x.com", "a" * 95 + "@x.com"])
def test_invalid_email(email):
    with pytest.raises(ValidationError):
        validate_email(email)


def test_name_rules():
    assert validate_name("  Ana ") == "Ana"
    with pytest.raises(ValidationError):
        validate_name("A")
    with pytest.raises(ValidationError):
        validate_name("x" * 101)


@pytest.mark.parametrize("email", ["a@x..com", "a@.x.com", ".ana@x.com", "ana.@x.com", "ana@-x.com"])
def test_malformed_email_rejected_by_syntax_check(email):
    with pytest.raises(ValidationError) as exc_info:
        validate_email(email)

    assert exc_info.value.details == {"field": "email"}
