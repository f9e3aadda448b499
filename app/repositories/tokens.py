"""Refresh token persistence."""

from datetime import datetime
from typing import Protocol

from sqlalchemy.orm import Session

from app.models import RefreshToken


class RefreshTokenRepository(Protocol):
    def add(self, account_id: int, token: str, expires_at: datetime) -> RefreshToken: ...

    def get(self, token: str) -> RefreshToken | None: ...

    def revoke(self, token: str) -> bool: ...


class SqlRefreshTokenRepository:
    def __init__(self, db: Session) -> None:
        self.db = db

    def add(self, account_id: int, token: str, expires_at: datetime) -> RefreshToken:
        row = RefreshToken(account_id=account_id, token=token, expires_at=expires_at)
        self.db.add(row)
        self.db.commit()
        return row

    def get(self, token: str) -> RefreshToken | None:
        return self.db.query(RefreshToken).filter(RefreshToken.token == token).first()

    def revoke(self, token: str) -> bool:
        """Mark the token revoked. Returns False when no such token exists."""
        updated = (
            self.db.query(RefreshToken)
            .filter(RefreshToken.token == token)
            .update({RefreshToken.is_revoked: True}, synchronize_session=False)
        )
        self.db.commit()
        return updated > 0
