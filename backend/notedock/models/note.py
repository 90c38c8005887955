"""
NoteDock Backend - Note SQLAlchemy Model
=========================================

What:  ORM model representing the `notes` table.
Why:   Storage representation of a note document. The API never serializes
       this class directly; SqlNoteStore maps rows to NoteDocument and the
       routes project NoteDocument to NoteResponse.
Who:   Used by SqlNoteStore and by Alembic for schema management.

Table Design Rationale:
    - fields / tags / embedding are JSON: the note is a document, and the
      store is a replaceable document repository. No engine-specific vector
      type is required because ranking happens in the service layer.
    - version: optimistic concurrency token. Every replace bumps it, and
      writes are conditional on the version the writer read.
    - (workspace_id, note_type) index: the only query shape search uses.
"""

import uuid
from datetime import datetime, timezone
from typing import List, Optional

from sqlalchemy import JSON, DateTime, Index, Integer, String, Text, Uuid, text
from sqlalchemy.orm import Mapped, mapped_column

from notedock.database import Base


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Note(Base):
    """
    A structured note owned by exactly one workspace.

    Lifecycle:
        1. Inserted by NoteService.create_note (version 1)
        2. Replaced by update/share (version + 1 per write)
        3. A copy is a new row with a new id; the source row is untouched
        4. Hard-deleted by its author
    """

    __tablename__ = "notes"

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )

    author_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        nullable=False,
        comment="User who created the note; never changes",
    )

    # Changes only on share (move). Not a foreign key: workspaces are owned
    # by another service and may live in another database.
    workspace_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        nullable=False,
        comment="Workspace currently owning the note",
    )

    note_type: Mapped[str] = mapped_column(
        String(32),
        nullable=False,
        comment="content, template or chat",
    )

    title: Mapped[str] = mapped_column(Text, nullable=False)

    # Ordered list of {"label", "type", "content"} objects
    fields: Mapped[List[dict]] = mapped_column(JSON, nullable=False, default=list)

    tags: Mapped[List[str]] = mapped_column(JSON, nullable=False, default=list)

    # NULL when the embedding provider was unavailable at the last content write
    embedding: Mapped[Optional[List[float]]] = mapped_column(JSON, nullable=True)

    version: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=1,
        server_default=text("1"),
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=_utcnow,
    )

    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=_utcnow,
    )

    __table_args__ = (
        Index("idx_notes_workspace_type", "workspace_id", "note_type"),
        Index("idx_notes_updated_at", updated_at.desc()),
    )

    def __repr__(self) -> str:
        return (
            f"<Note(id={self.id}, workspace_id={self.workspace_id}, "
            f"version={self.version})>"
        )
