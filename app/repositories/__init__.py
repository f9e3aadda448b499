"""Persistence interfaces and their SQLAlchemy implementations, injected into services."""

from app.repositories.accounts import AccountRepository, SqlAccountRepository
from app.repositories.documents import DocumentFilters, DocumentRepository, SqlDocumentRepository
from app.repositories.tokens import RefreshTokenRepository, SqlRefreshTokenRepository

__all__ = [
    "AccountRepository",
    "DocumentFilters",
    "DocumentRepository",
    "RefreshTokenRepository",
    "SqlAccountRepository",
    "SqlDocumentRepository",
    "SqlRefreshTokenRepository",
]
