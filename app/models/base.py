"""SQLAlchemy declarative Base and the timestamp column shared by every table."""

from sqlalchemy import Column, DateTime, func
from sqlalchemy.orm import DeclarativeBase

from app.core.clock import utcnow


class Base(DeclarativeBase):
    """Declarative base for all ORM models."""

    pass


def timestamp_column(index: bool = False) -> Column:
    """Non-null UTC timestamp set by the application, with a server default for raw inserts."""
    return Column(
        DateTime(timezone=True),
        nullable=False,
        default=utcnow,
        server_default=func.now(),
        index=index,
    )
