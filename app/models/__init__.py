"""SQLAlchemy ORM models."""

from app.models.account import Account
from app.models.base import Base
from app.models.document import Document
from app.models.refresh_token import RefreshToken

__all__ = ["Account", "Base", "Document", "RefreshToken"]
