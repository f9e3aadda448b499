"""Account persistence."""

from typing import Protocol

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.core.errors import ConflictError
from app.models import Account


class AccountRepository(Protocol):
    def get(self, account_id: int) -> Account | None: ...

    def get_active_by_email(self, email: str) -> Account | None: ...

    def email_exists(self, email: str) -> bool: ...

    def add(self, account: Account) -> Account: ...

    def save(self, account: Account) -> Account: ...


class SqlAccountRepository:
    """Accounts table. Every write commits before returning so callers observe durable state."""

    def __init__(self, db: Session) -> None:
        self.db = db

    def get(self, account_id: int) -> Account | None:
        return self.db.get(Account, account_id)

    def get_active_by_email(self, email: str) -> Account | None:
        return (
            self.db.query(Account)
            .filter(func.lower(Account.email) == email.lower(), Account.is_active.is_(True))
            .first()
        )

    def email_exists(self, email: str) -> bool:
        return (
            self.db.query(Account.id).filter(func.lower(Account.email) == email.lower()).first()
            is not None
        )

    def add(self, account: Account) -> Account:
        """Insert the account. The unique email index is the final word on duplicates."""
        self.db.add(account)
        try:
            self.db.commit()
        except IntegrityError as e:
            self.db.rollback()
            raise ConflictError("Email already registered") from e
        self.db.refresh(account)
        return account

    def save(self, account: Account) -> Account:
        self.db.add(account)
        self.db.commit()
        return account
