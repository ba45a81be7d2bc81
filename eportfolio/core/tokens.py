"""JWT access/refresh token issuance and verification."""
import re
import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import TYPE_CHECKING, Optional

from jose import JWTError, jwt

from .exceptions import AuthenticationError, TokenSigningError

if TYPE_CHECKING:
    from ..config.settings import AuthSettings


ACCESS_TOKEN_TYPE = "access"
REFRESH_TOKEN_TYPE = "refresh"

_DURATION_RE = re.compile(r"^\s*(\d+)\s*(ms|s|m|h|d|w)?\s*$", re.IGNORECASE)
_DURATION_UNITS = {
    "ms": timedelta(milliseconds=1),
    "s": timedelta(seconds=1),
    "m": timedelta(minutes=1),
    "h": timedelta(hours=1),
    "d": timedelta(days=1),
    "w": timedelta(weeks=1),
}


def parse_duration(value: str) -> timedelta:
    """Parse an expiry such as ``15m`` or ``7d``; a bare number means seconds."""
    match = _DURATION_RE.match(str(value))
    if not match:
        raise ValueError(f"Invalid duration: {value!r}")
    amount, unit = match.groups()
    delta = int(amount) * _DURATION_UNITS[(unit or "s").lower()]
    if delta <= timedelta(0):
        raise ValueError(f"Duration must be positive: {value!r}")
    return delta


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class TokenClaims:
    """Identity carried by both token types."""

    subject_id: str
    email: str
    role: str


@dataclass(frozen=True)
class TokenPair:
    """Freshly signed access/refresh tokens."""

    access_token: str
    refresh_token: str


class TokenIssuer:
    """Signs and verifies access and refresh tokens with independent secrets."""

    def __init__(
        self,
        access_secret: Optional[str],
        refresh_secret: Optional[str],
        access_ttl: timedelta = timedelta(minutes=15),
        refresh_ttl: timedelta = timedelta(days=7),
        algorithm: str = "HS256",
    ):
        if not access_secret or not access_secret.strip():
            raise TokenSigningError("JWT_SECRET is not configured")
        if not refresh_secret or not refresh_secret.strip():
            raise TokenSigningError("JWT_REFRESH_SECRET is not configured")
        if access_secret == refresh_secret:
            raise TokenSigningError("JWT_SECRET and JWT_REFRESH_SECRET must differ")

        self._access_secret = access_secret
        self._refresh_secret = refresh_secret
        self.access_ttl = access_ttl
        self.refresh_ttl = refresh_ttl
        self.algorithm = algorithm

    @classmethod
    def from_settings(cls, auth: "AuthSettings") -> "TokenIssuer":
        return cls(
            access_secret=auth.access_secret,
            refresh_secret=auth.refresh_secret,
            access_ttl=parse_duration(auth.access_expiration),
            refresh_ttl=parse_duration(auth.refresh_expiration),
            algorithm=auth.algorithm,
        )

    @property
    def access_expires_in(self) -> int:
        """Access token lifetime in seconds."""
        return int(self.access_ttl.total_seconds())

    def refresh_expires_at(self, now: Optional[datetime] = None) -> datetime:
        """Server-side expiry to persist alongside a new refresh token."""
        return (now or utcnow()) + self.refresh_ttl

    def issue(self, subject_id: str, email: str, role: str) -> TokenPair:
        """Sign a new access/refresh pair for the given identity."""
        claims = TokenClaims(subject_id=str(subject_id), email=email, role=str(role))
        now = utcnow()
        return TokenPair(
            access_token=self._sign(
                claims, ACCESS_TOKEN_TYPE, self._access_secret, now, self.access_ttl
            ),
            refresh_token=self._sign(
                claims, REFRESH_TOKEN_TYPE, self._refresh_secret, now, self.refresh_ttl
            ),
        )

    def verify_access(self, token: str) -> TokenClaims:
        return self._verify(token, ACCESS_TOKEN_TYPE, self._access_secret)

    def verify_refresh(self, token: str) -> TokenClaims:
        return self._verify(token, REFRESH_TOKEN_TYPE, self._refresh_secret)

    def _sign(
        self,
        claims: TokenClaims,
        token_type: str,
        secret: str,
        now: datetime,
        ttl: timedelta,
    ) -> str:
        payload = {
            "sub": claims.subject_id,
            "email": claims.email,
            "role": claims.role,
            "type": token_type,
            "iat": int(now.timestamp()),
            "exp": int((now + ttl).timestamp()),
            "jti": uuid.uuid4().hex,
        }
        try:
            return jwt.encode(payload, secret, algorithm=self.algorithm)
        except JWTError as e:
            raise TokenSigningError(f"Failed to sign {token_type} token") from e

    def _verify(self, token: str, token_type: str, secret: str) -> TokenClaims:
        try:
            payload = jwt.decode(token, secret, algorithms=[self.algorithm])
        except JWTError as e:
            raise AuthenticationError(f"Invalid or expired {token_type} token") from e

        if payload.get("type") != token_type:
            raise AuthenticationError(f"Invalid or expired {token_type} token")

        subject_id = payload.get("sub")
        if not subject_id:
            raise AuthenticationError("Invalid token payload")

        return TokenClaims(
            subject_id=str(subject_id),
            email=payload.get("email", ""),
            role=payload.get("role", ""),
        )
