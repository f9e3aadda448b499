"""Password hashing, password policy, and JWT creation/verification for authentication."""

import re
import uuid
from datetime import UTC, datetime, timedelta
from typing import Any, Literal

import bcrypt
import jwt

from app.core.config import Settings

TokenType = Literal["access", "refresh"]

# Min/max lengths for input validation.
NAME_MIN_LEN = 2
NAME_MAX_LEN = 50
PASSWORD_MIN_LEN = 8
PASSWORD_MAX_LEN = 128
EMAIL_MAX_LEN = 255

ROLES = frozenset({"admin", "user"})

_PASSWORD_CLASSES = (
    (re.compile(r"[a-z]"), "one lowercase letter"),
    (re.compile(r"[A-Z]"), "one uppercase letter"),
    (re.compile(r"\d"), "one number"),
)


def password_policy_violations(password: str) -> list[str]:
    """Return human-readable reasons the password fails the policy (empty when it passes)."""
    problems: list[str] = []
    if not (PASSWORD_MIN_LEN <= len(password) <= PASSWORD_MAX_LEN):
        problems.append(
            f"Password must be between {PASSWORD_MIN_LEN} and {PASSWORD_MAX_LEN} characters long"
        )
    missing = [label for pattern, label in _PASSWORD_CLASSES if not pattern.search(password)]
    if missing:
        problems.append("Password must contain at least " + ", ".join(missing))
    return problems


def hash_password(plain_password: str, rounds: int = 12) -> str:
    """Hash a plain-text password for storage. Do not store plain passwords."""
    # bcrypt has a 72-byte limit; truncate to avoid errors (validation already limits length).
    pw_bytes = plain_password.encode("utf-8")[:72]
    return bcrypt.hashpw(pw_bytes, bcrypt.gensalt(rounds=rounds)).decode("utf-8")


def verify_password(plain_password: str, hashed: str) -> bool:
    """Verify a plain password against a stored hash."""
    pw_bytes = plain_password.encode("utf-8")[:72]
    try:
        return bcrypt.checkpw(pw_bytes, hashed.encode("utf-8"))
    except (ValueError, TypeError):
        return False


def token_lifetime(token_type: TokenType, settings: Settings) -> timedelta:
    if token_type == "access":
        return timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)
    return timedelta(days=settings.REFRESH_TOKEN_EXPIRE_DAYS)


def create_token(account_id: int, token_type: TokenType, settings: Settings) -> str:
    """
    Create a signed JWT for the account with a type marker and exp.

    jti keeps tokens unique even when two are minted for one account in the same second.
    """
    now = datetime.now(UTC)
    payload: dict[str, Any] = {
        "sub": str(account_id),
        "accountId": account_id,
        "type": token_type,
        "iat": now,
        "exp": now + token_lifetime(token_type, settings),
        "jti": uuid.uuid4().hex,
    }
    return jwt.encode(
        payload,
        settings.JWT_SECRET.get_secret_value(),
        algorithm=settings.JWT_ALGORITHM,
    )


def decode_token(token: str, expected_type: TokenType, settings: Settings) -> int:
    """
    Decode and validate a JWT; return the account id it was issued for.

    Raises jwt.PyJWTError on a bad signature, expiry, wrong type marker, or malformed claims.
    """
    payload = jwt.decode(
        token,
        settings.JWT_SECRET.get_secret_value(),
        algorithms=[settings.JWT_ALGORITHM],
        options={"require": ["exp", "sub"]},
    )
    if payload.get("type") != expected_type:
        raise jwt.InvalidTokenError(f"Expected a {expected_type} token")
    account_id = payload.get("accountId")
    if not isinstance(account_id, int) or isinstance(account_id, bool):
        raise jwt.InvalidTokenError("Invalid token payload")
    return account_id
