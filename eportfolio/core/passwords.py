"""Password hashing and credential input rules."""
import re

import bcrypt
from email_validator import EmailNotValidError
from email_validator import validate_email as check_email_syntax

from .exceptions import ValidationError

EMAIL_MAX_LEN = 100
NAME_MIN_LEN = 2
NAME_MAX_LEN = 100
PASSWORD_MIN_LEN = 6

EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
PASSWORD_PATTERN = re.compile(
    r"^(?=.*[a-z])(?=.*[A-Z])(?=.*\d).{%d,}$" % PASSWORD_MIN_LEN, re.DOTALL
)

PASSWORD_POLICY_MESSAGE = (
    "Password must contain an upper-case letter, a lower-case letter and a digit "
    f"(at least {PASSWORD_MIN_LEN} characters)"
)


class PasswordHasher:
    """bcrypt hashing with a cost fixed at construction."""

    def __init__(self, rounds: int = 10):
        self.rounds = rounds

    def hash_password(self, password: str) -> str:
        """Hash password using bcrypt."""
        # bcrypt only looks at the first 72 bytes.
        pw_bytes = password.encode("utf-8")[:72]
        return bcrypt.hashpw(pw_bytes, bcrypt.gensalt(rounds=self.rounds)).decode("utf-8")

    def verify_password(self, plain_password: str, hashed_password: str) -> bool:
        """Verify password against hash."""
        pw_bytes = plain_password.encode("utf-8")[:72]
        try:
            return bcrypt.checkpw(pw_bytes, hashed_password.encode("utf-8"))
        except (ValueError, TypeError):
            return False


def normalize_email(email: str) -> str:
    return (email or "").strip().lower()


def is_strong_password(password: str) -> bool:
    return bool(password) and PASSWORD_PATTERN.match(password) is not None


def validate_email(email: str) -> str:
    """Return the normalized email or raise ValidationError."""
    normalized = normalize_email(email)
    if len(normalized) > EMAIL_MAX_LEN or not EMAIL_PATTERN.match(normalized):
        raise ValidationError("Invalid email format", details={"field": "email"})
    try:
        check_email_syntax(normalized, check_deliverability=False)
    except EmailNotValidError as e:
        raise ValidationError("Invalid email format", details={"field": "email"}) from e
    return normalized


def validate_name(name: str) -> str:
    stripped = (name or "").strip()
    if len(stripped) < NAME_MIN_LEN:
        raise ValidationError(
            f"Name must be at least {NAME_MIN_LEN} characters", details={"field": "name"}
        )
    if len(stripped) > NAME_MAX_LEN:
        raise ValidationError(
            f"Name must be at most {NAME_MAX_LEN} characters", details={"field": "name"}
        )
    return stripped


def validate_password_strength(password: str, field: str = "password") -> None:
    if not is_strong_password(password):
        raise ValidationError(PASSWORD_POLICY_MESSAGE, details={"field": field})
