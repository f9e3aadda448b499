"""
Password authentication with failed-login lockout and access/refresh token issuance.

Lockout state per account is (failed_login_attempts, locked_until):

    Active(n) --success-->          Active(0)
    Active(n) --fail, n+1 < max-->  Active(n+1)
    Active(max-1) --fail-->         Locked(now + lockout)
    Locked(u) --attempt, now < u--> Locked(u)   (rejected before any hash comparison)
    Locked(u) --attempt, now >= u-> Active(0), then evaluated as a fresh login

Concurrent failed logins for the same account may lose an increment (read-modify-write
without a row lock). Every counter update is committed before the response returns.
"""

import logging
from dataclasses import dataclass
from datetime import timedelta

import jwt
from email_validator import EmailNotValidError, validate_email

from app.core.clock import Clock, as_utc, utcnow
from app.core.config import Settings
from app.core.errors import (
    AuthError,
    ConflictError,
    ForbiddenError,
    LockedError,
    NotFoundError,
    UnauthenticatedError,
    ValidationError,
)
from app.core.security import (
    EMAIL_MAX_LEN,
    NAME_MAX_LEN,
    NAME_MIN_LEN,
    ROLES,
    create_token,
    decode_token,
    hash_password,
    password_policy_violations,
    token_lifetime,
    verify_password,
)
from app.models import Account
from app.repositories import AccountRepository, RefreshTokenRepository

logger = logging.getLogger(__name__)

INVALID_CREDENTIALS = "Invalid email or password"
INVALID_REFRESH_TOKEN = "Invalid or expired refresh token"


@dataclass(frozen=True)
class TokenPair:
    access_token: str
    refresh_token: str
    expires_in: int


def normalize_email(email: str) -> str:
    return (email or "").strip().lower()


def _validate_name(name: str | None, details: list[dict]) -> str:
    cleaned = (name or "").strip()
    if not (NAME_MIN_LEN <= len(cleaned) <= NAME_MAX_LEN):
        details.append(
            {
                "field": "name",
                "message": f"Name must be between {NAME_MIN_LEN} and {NAME_MAX_LEN} characters",
            }
        )
    return cleaned


class Authenticator:
    """Account registration, login lockout, and token lifecycle over injected repositories."""

    def __init__(
        self,
        accounts: AccountRepository,
        tokens: RefreshTokenRepository,
        settings: Settings,
        now: Clock = utcnow,
    ) -> None:
        self.accounts = accounts
        self.tokens = tokens
        self.settings = settings
        self.now = now

    def _issue_tokens(self, account_id: int) -> TokenPair:
        access = create_token(account_id, "access", self.settings)
        refresh = create_token(account_id, "refresh", self.settings)
        self.tokens.add(
            account_id,
            refresh,
            self.now() + token_lifetime("refresh", self.settings),
        )
        return TokenPair(
            access_token=access,
            refresh_token=refresh,
            expires_in=int(token_lifetime("access", self.settings).total_seconds()),
        )

    def register(
        self, email: str, password: str, name: str, role: str = "user"
    ) -> tuple[Account, TokenPair]:
        """Create an account and issue its first token pair."""
        details: list[dict] = []
        normalized = normalize_email(email)
        try:
            validate_email(normalized, check_deliverability=False)
        except EmailNotValidError:
            details.append({"field": "email", "message": "Please provide a valid email address"})
        if len(normalized) > EMAIL_MAX_LEN:
            details.append({"field": "email", "message": "Email address is too long"})
        for problem in password_policy_violations(password or ""):
            details.append({"field": "password", "message": problem})
        cleaned_name = _validate_name(name, details)
        if role not in ROLES:
            details.append({"field": "role", "message": "Role must be either admin or user"})
        if details:
            raise ValidationError(details=details)

        if self.accounts.email_exists(normalized):
            raise ConflictError("Email already registered")

        now = self.now()
        account = self.accounts.add(
            Account(
                email=normalized,
                password_hash=hash_password(password, rounds=self.settings.BCRYPT_ROUNDS),
                name=cleaned_name,
                role=role,
                is_active=True,
                failed_login_attempts=0,
                created_at=now,
                updated_at=now,
            )
        )
        logger.info("Registered account id=%s role=%s", account.id, account.role)
        return account, self._issue_tokens(account.id)

    def login(self, email: str, password: str) -> tuple[Account, TokenPair]:
        """Verify credentials, applying the lockout rules in the documented order."""
        account = self.accounts.get_active_by_email(normalize_email(email))
        if account is None:
            raise AuthError(INVALID_CREDENTIALS)

        now = self.now()
        locked_until = as_utc(account.locked_until)
        if locked_until is not None and now < locked_until:
            logger.info("Login rejected for locked account id=%s", account.id)
            raise LockedError()
        if locked_until is not None:
            # lock expired: this attempt starts from a clean counter
            account.failed_login_attempts = 0
            account.locked_until = None

        if not verify_password(password or "", account.password_hash):
            account.failed_login_attempts = (account.failed_login_attempts or 0) + 1
            if account.failed_login_attempts >= self.settings.LOGIN_MAX_FAILED_ATTEMPTS:
                account.locked_until = now + timedelta(minutes=self.settings.LOGIN_LOCKOUT_MINUTES)
                logger.warning(
                    "Account id=%s locked until %s after %s failed attempts",
                    account.id,
                    account.locked_until.isoformat(),
                    account.failed_login_attempts,
                )
            self.accounts.save(account)
            raise AuthError(INVALID_CREDENTIALS)

        account.failed_login_attempts = 0
        account.locked_until = None
        account.last_login_at = now
        self.accounts.save(account)
        return account, self._issue_tokens(account.id)

    def refresh(self, refresh_token: str | None) -> tuple[str, int]:
        """Mint a new access token from a valid refresh token. The refresh token is not rotated."""
        if not refresh_token:
            raise AuthError("Refresh token required")
        try:
            account_id = decode_token(refresh_token, "refresh", self.settings)
        except jwt.PyJWTError:
            raise AuthError(INVALID_REFRESH_TOKEN)
        record = self.tokens.get(refresh_token)
        if (
            record is None
            or record.is_revoked
            or record.account_id != account_id
            or not self.now() < as_utc(record.expires_at)
        ):
            raise AuthError(INVALID_REFRESH_TOKEN)
        access = create_token(account_id, "access", self.settings)
        return access, int(token_lifetime("access", self.settings).total_seconds())

    def logout(self, refresh_token: str | None) -> None:
        """Revoke the refresh token if present. Unknown or missing tokens are ignored."""
        if refresh_token:
            self.tokens.revoke(refresh_token)

    def authenticate(self, bearer_token: str | None) -> int:
        """Return the account id of a valid access token."""
        return verify_access_token(bearer_token, self.settings)

    def get_profile(self, account_id: int) -> Account:
        account = self.accounts.get(account_id)
        if account is None or not account.is_active:
            raise NotFoundError("User not found")
        return account

    def update_profile(self, account_id: int, name: str | None) -> Account:
        details: list[dict] = []
        cleaned = _validate_name(name, details)
        if details:
            raise ValidationError(details=details)
        account = self.get_profile(account_id)
        account.name = cleaned
        account.updated_at = self.now()
        return self.accounts.save(account)


def verify_access_token(bearer_token: str | None, settings: Settings) -> int:
    """Stateless bearer check: missing token is unauthenticated, any bad token is forbidden."""
    if not bearer_token:
        raise UnauthenticatedError()
    try:
        return decode_token(bearer_token, "access", settings)
    except jwt.PyJWTError:
        raise ForbiddenError()
