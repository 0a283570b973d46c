"""Password hashing, stored-password classification and JWT creation/verification."""

import hmac
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from typing import Any

import bcrypt
import jwt

from app.core.config import settings

# Bcrypt cost (rounds); 12 is a good default for security vs speed.
BCRYPT_ROUNDS = 12

# bcrypt digests written by any of the common implementations.
BCRYPT_PREFIXES = ("$2a$", "$2b$", "$2y$")

EMAIL_MIN_LEN = 3
EMAIL_MAX_LEN = 255
PASSWORD_MIN_LEN = 8
PASSWORD_MAX_LEN = 128


@dataclass(frozen=True)
class HashedPassword:
    """A bcrypt digest."""

    digest: str


@dataclass(frozen=True)
class LegacyPlainPassword:
    """A password stored before hashing was introduced. Rewritten on next login."""

    value: str


StoredPassword = HashedPassword | LegacyPlainPassword


def hash_password(plain_password: str) -> str:
    """Hash a plain-text password for storage. Do not store plain passwords."""
    # bcrypt has a 72-byte limit; truncate to avoid errors (validation already limits length).
    pw_bytes = plain_password.encode("utf-8")[:72]
    return bcrypt.hashpw(pw_bytes, bcrypt.gensalt(rounds=BCRYPT_ROUNDS)).decode("utf-8")


def verify_password(plain_password: str, hashed: str) -> bool:
    """Verify a plain password against a stored hash."""
    pw_bytes = plain_password.encode("utf-8")[:72]
    try:
        return bcrypt.checkpw(pw_bytes, hashed.encode("utf-8"))
    except (ValueError, TypeError):
        return False


def classify_stored_password(stored: str | None) -> StoredPassword | None:
    """Tag a password_hash column value; None when the account has no password."""
    if not stored:
        return None
    if stored.startswith(BCRYPT_PREFIXES):
        return HashedPassword(stored)
    return LegacyPlainPassword(stored)


def verify_stored_password(
    plain_password: str,
    stored: str | None,
    *,
    allow_legacy: bool = True,
) -> tuple[bool, bool]:
    """
    Check a password against the stored column value.

    Returns (matched, needs_upgrade). needs_upgrade is True only when a legacy
    plaintext value matched, so the caller can rewrite it as a bcrypt hash.
    """
    tagged = classify_stored_password(stored)
    if tagged is None:
        return (False, False)
    if isinstance(tagged, HashedPassword):
        return (verify_password(plain_password, tagged.digest), False)
    if not allow_legacy:
        return (False, False)
    # TODO: drop this branch once run_password_migration reports zero legacy rows in prod.
    matched = hmac.compare_digest(
        plain_password.encode("utf-8"), tagged.value.encode("utf-8")
    )
    return (matched, matched)


def create_access_token(claims: dict[str, Any]) -> str:
    """Create a JWT access token from principal claims (must include sub and role)."""
    now = datetime.now(UTC)
    expire = now + timedelta(minutes=settings.JWT_EXPIRE_MINUTES)
    payload: dict[str, Any] = {
        **claims,
        "sub": str(claims["sub"]),
        "role": claims["role"],
        "exp": expire,
        "iat": now,
    }
    secret = settings.JWT_SECRET.get_secret_value()
    return jwt.encode(
        payload,
        secret,
        algorithm=settings.JWT_ALGORITHM,
    )


def decode_access_token(token: str) -> dict[str, Any]:
    """
    Decode and validate JWT; return payload (sub, role, tenant_id, exp, iat, ...).
    Raises jwt.PyJWTError on invalid or expired token.
    """
    secret = settings.JWT_SECRET.get_secret_value()
    return jwt.decode(
        token,
        secret,
        algorithms=[settings.JWT_ALGORITHM],
    )
