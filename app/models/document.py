"""ORM model for stored documents."""

from sqlalchemy import JSON, Column, ForeignKey, Integer, String

from app.models.base import Base, timestamp_column


class Document(Base):
    """
    A file persisted in the blob store plus its metadata.

    checksum is the hex SHA-256 of the whole stored file, computed once the file was fully written.
    """

    __tablename__ = "documents"

    id = Column(Integer, primary_key=True, autoincrement=True)
    original_name = Column(String(512), nullable=False)
    stored_name = Column(String(640), nullable=False, unique=True)
    size = Column(Integer, nullable=False)
    mime_type = Column(String(255), nullable=False, default="application/octet-stream")
    owner_id = Column(
        Integer,
        ForeignKey("accounts.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    checksum = Column(String(64), nullable=False)
    # "metadata" is reserved on declarative classes
    metadata_ = Column("metadata", JSON, nullable=True)
    created_at = timestamp_column(index=True)
