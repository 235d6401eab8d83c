"""
NoteForge Backend - Document and Document Content Models
=========================================================

What:  ORM models for the `files` and `file_contents` tables.
How:   Inherit from the shared DeclarativeBase; Alembic reads the metadata.
Who:   ContentStore reads and writes FileContent. File rows are created by the
       collection-management flow elsewhere and only referenced here.

Table Design:
    - file_contents.file_id is UNIQUE: at most one content row per document,
      enforced by the database so concurrent lazy creation cannot duplicate.
    - ON DELETE CASCADE: removing a document removes its content.
    - version increments on every save and is never compared (last write wins).
    - Generic Uuid / DateTime(timezone=True) types render natively on
      PostgreSQL and as CHAR/TEXT on SQLite.
"""

import uuid
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import (
    DateTime,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
    Uuid,
    text,
)
from sqlalchemy.orm import Mapped, mapped_column

from noteforge.database import Base


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class File(Base):
    """A document in a user's collection. Never created by this service."""

    __tablename__ = "files"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    name: Mapped[str] = mapped_column(String(255), nullable=False, default="Untitled")
    owner_id: Mapped[Optional[uuid.UUID]] = mapped_column(Uuid, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=_utcnow,
        server_default=text("CURRENT_TIMESTAMP"),
    )

    def __repr__(self) -> str:
        return f"<File(id={self.id}, name='{self.name}')>"


class FileContent(Base):
    """
    The persisted rich-text HTML of one document.

    Lifecycle:
        1. Created lazily by ContentStore.load (content '', version 1)
        2. Replaced by every ContentStore.save (version + 1, timestamps refreshed)
        3. Deleted only by cascade from its File
    """

    __tablename__ = "file_contents"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)

    file_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("files.id", ondelete="CASCADE"),
        nullable=False,
    )

    content: Mapped[str] = mapped_column(
        Text,
        nullable=False,
        default="",
        server_default=text("''"),
    )

    version: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=1,
        server_default=text("1"),
    )

    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=_utcnow,
        server_default=text("CURRENT_TIMESTAMP"),
    )

    # NULL until the first save
    auto_saved_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
        default=None,
    )

    __table_args__ = (
        UniqueConstraint("file_id", name="uq_file_contents_file_id"),
    )

    def __repr__(self) -> str:
        return f"<FileContent(file_id={self.file_id}, version={self.version})>"
