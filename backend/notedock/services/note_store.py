"""
NoteDock Backend - Note Store
==============================

What:  Persistence contract for note documents plus its SQLAlchemy implementation.
Why:   Higher layers depend on the NoteStore interface only, so the document
       repository can be swapped without touching search or access control.
How:   SqlNoteStore maps ORM rows to NoteDocument. Every operation is atomic
       for a single document; replace/delete are conditional on `version`.

Optimistic concurrency:
    UPDATE notes SET ..., version = version + 1
    WHERE id = :id AND version = :expected
    → rowcount 0 means the row vanished (NotFoundError) or another writer
      won the race (ConflictError). The two are told apart by a re-read.
"""

import logging
from abc import ABC, abstractmethod
from datetime import timezone
from typing import List, Optional
from uuid import UUID

from sqlalchemy import delete, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from notedock.exceptions import ConflictError, DatabaseError, NotFoundError
from notedock.models.note import Note
from notedock.schemas.note import NoteDocument, NoteType

logger = logging.getLogger(__name__)


class NoteStore(ABC):
    """
    Abstract document repository for notes.

    Contract:
        - get/replace/delete raise NotFoundError for unknown ids
        - replace/delete raise ConflictError when expected_version is stale
        - driver failures surface as DatabaseError
    """

    @abstractmethod
    async def get(self, note_id: UUID) -> NoteDocument:
        ...

    @abstractmethod
    async def insert(self, note: NoteDocument) -> NoteDocument:
        ...

    @abstractmethod
    async def replace(
        self, note_id: UUID, note: NoteDocument, expected_version: int
    ) -> NoteDocument:
        """Overwrite the document if its stored version equals expected_version."""
        ...

    @abstractmethod
    async def delete(
        self, note_id: UUID, expected_version: Optional[int] = None
    ) -> NoteDocument:
        """Hard-delete and return the removed document."""
        ...

    @abstractmethod
    async def query_by_workspace(
        self, workspace_id: UUID, note_type: NoteType
    ) -> List[NoteDocument]:
        ...


class SqlNoteStore(NoteStore):
    """NoteStore backed by an async SQLAlchemy session (one per request)."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def get(self, note_id: UUID) -> NoteDocument:
        row = await self._fetch(note_id)
        if row is None:
            raise NotFoundError(resource="note", resource_id=str(note_id))
        return self._row_to_document(row)

    async def insert(self, note: NoteDocument) -> NoteDocument:
        row = Note(
            id=note.id,
            author_id=note.author_id,
            workspace_id=note.workspace_id,
            note_type=note.note_type.value,
            title=note.title,
            fields=[f.model_dump(mode="json") for f in note.fields],
            tags=list(note.tags),
            embedding=note.embedding,
            version=note.version,
            created_at=note.created_at,
            updated_at=note.updated_at,
        )
        try:
            self._session.add(row)
            await self._session.flush()
        except SQLAlchemyError as e:
            logger.error("Insert failed for note %s: %s", note.id, str(e))
            raise DatabaseError(
                message="Could not save the note. Please try again.",
                context={"note_id": str(note.id), "error_type": type(e).__name__},
            ) from e
        logger.debug("Inserted note %s into workspace %s", note.id, note.workspace_id)
        return self._row_to_document(row)

    async def replace(
        self, note_id: UUID, note: NoteDocument, expected_version: int
    ) -> NoteDocument:
        stmt = (
            update(Note)
            .where(Note.id == note_id, Note.version == expected_version)
            .values(
                workspace_id=note.workspace_id,
                title=note.title,
                fields=[f.model_dump(mode="json") for f in note.fields],
                tags=list(note.tags),
                embedding=note.embedding,
                updated_at=note.updated_at,
                version=Note.version + 1,
            )
            .execution_options(synchronize_session=False)
        )
        try:
            result = await self._session.execute(stmt)
        except SQLAlchemyError as e:
            logger.error("Replace failed for note %s: %s", note_id, str(e))
            raise DatabaseError(
                message="Could not update the note. Please try again.",
                context={"note_id": str(note_id), "error_type": type(e).__name__},
            ) from e

        if result.rowcount == 0:
            await self._raise_missing_or_conflict(note_id, expected_version)

        row = await self._fetch(note_id, refresh=True)
        if row is None:
            raise NotFoundError(resource="note", resource_id=str(note_id))
        return self._row_to_document(row)

    async def delete(
        self, note_id: UUID, expected_version: Optional[int] = None
    ) -> NoteDocument:
        existing = await self.get(note_id)
        stmt = delete(Note).where(Note.id == note_id)
        if expected_version is not None:
            stmt = stmt.where(Note.version == expected_version)
        try:
            result = await self._session.execute(
                stmt.execution_options(synchronize_session=False)
            )
        except SQLAlchemyError as e:
            logger.error("Delete failed for note %s: %s", note_id, str(e))
            raise DatabaseError(
                message="Could not delete the note. Please try again.",
                context={"note_id": str(note_id), "error_type": type(e).__name__},
            ) from e

        if result.rowcount == 0:
            await self._raise_missing_or_conflict(note_id, expected_version)

        logger.debug("Deleted note %s", note_id)
        return existing

    async def query_by_workspace(
        self, workspace_id: UUID, note_type: NoteType
    ) -> List[NoteDocument]:
        query = select(Note).where(
            Note.workspace_id == workspace_id,
            Note.note_type == note_type.value,
        )
        try:
            result = await self._session.execute(query)
        except SQLAlchemyError as e:
            logger.error("Workspace query failed for %s: %s", workspace_id, str(e))
            raise DatabaseError(
                message="Could not retrieve notes. Please try again.",
                context={"workspace_id": str(workspace_id), "error_type": type(e).__name__},
            ) from e
        return [self._row_to_document(row) for row in result.scalars().all()]

    # ── Helpers ───────────────────────────────────────────────────────────

    async def _fetch(self, note_id: UUID, refresh: bool = False) -> Optional[Note]:
        query = select(Note).where(Note.id == note_id)
        if refresh:
            query = query.execution_options(populate_existing=True)
        try:
            result = await self._session.execute(query)
        except SQLAlchemyError as e:
            logger.error("Database error fetching note %s: %s", note_id, str(e))
            raise DatabaseError(
                message="Could not retrieve the note. Please try again.",
                context={"note_id": str(note_id)},
            ) from e
        return result.scalar_one_or_none()

    async def _raise_missing_or_conflict(
        self, note_id: UUID, expected_version: Optional[int]
    ) -> None:
        current = await self._fetch(note_id, refresh=True)
        if current is None:
            raise NotFoundError(resource="note", resource_id=str(note_id))
        logger.info(
            "Version conflict on note %s: expected %s, found %s",
            note_id, expected_version, current.version,
        )
        raise ConflictError(note_id=str(note_id), expected_version=expected_version)

    @staticmethod
    def _row_to_document(row: Note) -> NoteDocument:
        created_at = row.created_at
        updated_at = row.updated_at
        # SQLite drops tzinfo; everything stored is UTC
        if created_at.tzinfo is None:
            created_at = created_at.replace(tzinfo=timezone.utc)
        if updated_at.tzinfo is None:
            updated_at = updated_at.replace(tzinfo=timezone.utc)
        return NoteDocument(
            id=row.id,
            author_id=row.author_id,
            workspace_id=row.workspace_id,
            note_type=NoteType(row.note_type),
            title=row.title,
            fields=row.fields or [],
            tags=row.tags or [],
            embedding=row.embedding,
            version=row.version,
            created_at=created_at,
            updated_at=updated_at,
        )
