"""
NoteDock Backend - Access Guard (Share / Copy)
===============================================

What:  Authorizes and executes the moves of a note between workspaces.
Why:   Share and copy are the only operations that cross a workspace
       boundary, so their checks live in one place.
Who:   Called by NoteService; reads WorkspaceDirectory, writes NoteStore.

Transitions:
    share(n, actor, dest)   n.workspace_id := dest       (move, same id)
    copy(n, actor, dest)    insert n' with a fresh id    (n untouched)

Authorization (all checks finish before the first write):
    1. note exists                          → NotFoundError(note)
    2. actor is the note's author           → AccessDeniedError(not_author)
    3. destination workspace exists         → NotFoundError(workspace)
    4. actor may write in the destination   → AccessDeniedError(not_member | read_only)

Concurrency:
    Share is one optimistic replace keyed on the version read in step 1.
    Copy re-reads the source just before inserting and gives up with
    ConflictError if the version moved while it was being authorized.
    The check is best-effort: the re-read and the insert are separate
    statements, so a write landing between them goes unnoticed and the copy
    reflects the source one version back. The source itself is never written.

Reads (note → workspace resolution):
    The actor must be the author or hold any role in the owning workspace.
"""

import logging
import uuid
from datetime import datetime, timezone
from typing import List
from uuid import UUID

from notedock.exceptions import AccessDeniedError, ConflictError, NotFoundError
from notedock.schemas.note import NoteDocument
from notedock.services.note_store import NoteStore
from notedock.services.workspace_directory import WorkspaceDirectory

logger = logging.getLogger(__name__)


class AccessGuard:
    def __init__(self, store: NoteStore, workspaces: WorkspaceDirectory) -> None:
        self._store = store
        self._workspaces = workspaces

    async def share(
        self, note_id: UUID, actor_id: UUID, dest_workspace_id: UUID
    ) -> NoteDocument:
        """
        Move a note into `dest_workspace_id`.

        Sharing into the workspace that already holds the note returns the
        note unchanged (no version bump).

        Raises:
            NotFoundError:     note or destination workspace missing
            AccessDeniedError: actor is not the author, or cannot write in dest
            ConflictError:     the note changed between read and write
        """
        note = await self._authorize(note_id, actor_id, dest_workspace_id, "share")

        if note.workspace_id == dest_workspace_id:
            logger.debug("Note %s already in workspace %s", note_id, dest_workspace_id)
            return note

        moved = note.model_copy(
            update={
                "workspace_id": dest_workspace_id,
                "updated_at": datetime.now(timezone.utc),
            }
        )
        result = await self._store.replace(note_id, moved, expected_version=note.version)
        logger.info(
            "Note %s shared from workspace %s to %s by %s",
            note_id, note.workspace_id, dest_workspace_id, actor_id,
        )
        return result

    async def copy(
        self, note_id: UUID, actor_id: UUID, dest_workspace_id: UUID
    ) -> NoteDocument:
        """
        Duplicate a note into `dest_workspace_id`.

        The copy gets a fresh id, version 1 and new timestamps; the actor
        becomes its author. Content, tags and embedding are taken from the
        source as-is, so no embedding call is made.

        Raises:
            NotFoundError:     note or destination workspace missing
            AccessDeniedError: actor is not the author, or cannot write in dest
            ConflictError:     the source changed while the copy was authorized
        """
        source = await self._authorize(note_id, actor_id, dest_workspace_id, "copy")

        current = await self._store.get(note_id)
        if current.version != source.version:
            logger.info(
                "Copy of note %s aborted: version moved from %d to %d",
                note_id, source.version, current.version,
            )
            raise ConflictError(note_id=str(note_id), expected_version=source.version)

        now = datetime.now(timezone.utc)
        duplicate = NoteDocument(
            id=uuid.uuid4(),
            author_id=actor_id,
            workspace_id=dest_workspace_id,
            note_type=source.note_type,
            title=source.title,
            fields=[f.model_copy() for f in source.fields],
            tags=list(source.tags),
            embedding=list(source.embedding) if source.embedding is not None else None,
            version=1,
            created_at=now,
            updated_at=now,
        )
        result = await self._store.insert(duplicate)
        logger.info(
            "Note %s copied to workspace %s as %s by %s",
            note_id, dest_workspace_id, result.id, actor_id,
        )
        return result

    async def get_workspaces_for_note(self, note_id: UUID, actor_id: UUID) -> List[UUID]:
        """Workspaces holding the note. Always exactly one under single ownership."""
        note = await self.authorize_read(note_id, actor_id)
        return [note.workspace_id]

    async def authorize_read(self, note_id: UUID, actor_id: UUID) -> NoteDocument:
        """
        Load a note the actor may see: its author, or any member of the
        workspace that holds it.

        Raises:
            NotFoundError:     note missing
            AccessDeniedError: actor is neither the author nor a member
        """
        note = await self._store.get(note_id)
        if note.author_id == actor_id:
            return note

        try:
            await self._workspaces.require_access(note.workspace_id, actor_id, write=False)
        except AccessDeniedError:
            logger.info("Denied read of note %s to %s", note_id, actor_id)
            raise
        return note

    async def _authorize(
        self, note_id: UUID, actor_id: UUID, dest_workspace_id: UUID, action: str
    ) -> NoteDocument:
        note = await self._store.get(note_id)

        if note.author_id != actor_id:
            logger.info("Denied %s of note %s: %s is not the author", action, note_id, actor_id)
            raise AccessDeniedError(
                message=f"Access denied: only the author can {action} this note",
                reason="not_author",
                context={"note_id": str(note_id)},
            )

        try:
            await self._workspaces.require_access(dest_workspace_id, actor_id, write=True)
        except (NotFoundError, AccessDeniedError) as e:
            logger.info(
                "Denied %s of note %s to workspace %s: %s",
                action, note_id, dest_workspace_id, e.message,
            )
            raise
        return note
