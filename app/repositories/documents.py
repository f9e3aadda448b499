"""Document persistence, including owner-scoped search and pagination."""

from dataclasses import dataclass
from datetime import datetime
from typing import Protocol

from sqlalchemy import or_
from sqlalchemy.orm import Query, Session

from app.core.clock import as_utc
from app.models import Account, Document


@dataclass(frozen=True)
class DocumentFilters:
    """Search criteria. owner_id=None means every owner (admin view)."""

    owner_id: int | None = None
    query: str | None = None
    mime_type: str | None = None
    min_size: int | None = None
    max_size: int | None = None
    created_from: datetime | None = None
    created_to: datetime | None = None


class DocumentRepository(Protocol):
    def add(self, document: Document) -> Document: ...

    def get(self, document_id: int) -> Document | None: ...

    def delete(self, document: Document) -> None: ...

    def search(self, filters: DocumentFilters) -> list[Document]: ...

    def page(self, owner_id: int | None, offset: int, limit: int) -> tuple[list[Document], int]: ...


def _escape_like(term: str) -> str:
    return term.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


class SqlDocumentRepository:
    def __init__(self, db: Session) -> None:
        self.db = db

    def add(self, document: Document) -> Document:
        self.db.add(document)
        self.db.commit()
        self.db.refresh(document)
        return document

    def get(self, document_id: int) -> Document | None:
        return self.db.get(Document, document_id)

    def delete(self, document: Document) -> None:
        self.db.delete(document)
        self.db.commit()

    def _scoped(self, owner_id: int | None) -> Query:
        q = self.db.query(Document)
        if owner_id is not None:
            q = q.filter(Document.owner_id == owner_id)
        return q

    def search(self, filters: DocumentFilters) -> list[Document]:
        q = self._scoped(filters.owner_id)
        if filters.query:
            pattern = f"%{_escape_like(filters.query.strip())}%"
            q = q.join(Account, Account.id == Document.owner_id).filter(
                or_(
                    Document.original_name.ilike(pattern, escape="\\"),
                    Account.email.ilike(pattern, escape="\\"),
                )
            )
        if filters.mime_type:
            q = q.filter(Document.mime_type == filters.mime_type)
        if filters.min_size is not None:
            q = q.filter(Document.size >= filters.min_size)
        if filters.max_size is not None:
            q = q.filter(Document.size <= filters.max_size)
        if filters.created_from is not None:
            q = q.filter(Document.created_at >= as_utc(filters.created_from))
        if filters.created_to is not None:
            q = q.filter(Document.created_at <= as_utc(filters.created_to))
        return q.order_by(Document.created_at.desc(), Document.id.desc()).all()

    def page(self, owner_id: int | None, offset: int, limit: int) -> tuple[list[Document], int]:
        """Return one page (newest first) and the total count for the scope."""
        q = self._scoped(owner_id)
        total = q.count()
        rows = (
            q.order_by(Document.created_at.desc(), Document.id.desc())
            .offset(offset)
            .limit(limit)
            .all()
        )
        return rows, total
