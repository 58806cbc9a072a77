"""SQLAlchemy ORM models."""

import uuid
from datetime import datetime, timezone

from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    DateTime,
    Enum,
    Index,
    Integer,
    String,
)
from sqlalchemy.orm import DeclarativeBase


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _new_id() -> str:
    return uuid.uuid4().hex


class Base(DeclarativeBase):
    pass


class Book(Base):
    """Catalog entry, as exposed by the document store."""

    __tablename__ = "books"

    id = Column(String(64), primary_key=True, default=_new_id)
    title = Column(String(500), nullable=False, index=True)
    author = Column(String(300), nullable=True, index=True)
    categories = Column(JSON, default=list)
    tags = Column(JSON, default=list)
    format = Column(String(50), nullable=True)
    publisher = Column(String(300), nullable=True)
    year = Column(Integer, nullable=True)
    available = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime(timezone=True), default=_utcnow)


class UserInteraction(Base):
    """Append-only interaction log row. Rows are never updated or deleted."""

    __tablename__ = "user_interactions"
    __table_args__ = (
        Index("ix_interactions_user_time", "user_id", "created_at"),
        Index("ix_interactions_book_time", "book_id", "created_at"),
    )

    id = Column(String(64), primary_key=True, default=_new_id)
    user_id = Column(String(64), nullable=False)
    book_id = Column(String(64), nullable=False)
    interaction_type = Column(
        Enum("view", "borrow", "bookmark", name="interaction_type_enum"),
        nullable=False,
    )
    categories = Column(JSON, default=list)
    tags = Column(JSON, default=list)
    author = Column(String(300), nullable=True)
    format = Column(String(50), nullable=True)
    publisher = Column(String(300), nullable=True)
    year = Column(Integer, nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow, index=True)
