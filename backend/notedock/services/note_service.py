"""
NoteDock Backend - Note Service (Business Logic Orchestrator)
==============================================================

What:  Entry point for every note operation: create, update, delete, get,
       search, share, copy and workspace resolution.
Why:   Keeps validation, ownership rules and embedding degradation out of
       the HTTP layer.
How:   Composes NoteStore, EmbeddingProvider and WorkspaceDirectory, which
       are passed in by the caller (FastAPI dependencies or tests).
       Delegates ranking to SearchEngine and cross-workspace moves to AccessGuard.

Write Flow (create / update with changed content):
    ┌──────────┐    ┌──────────────┐    ┌─────────────┐    ┌──────────┐
    │ Validate │───▶│  Authorize   │───▶│   Embed     │───▶│  Store   │
    │  input   │    │ (workspace / │    │ (null if    │    │ (insert/ │
    │          │    │   author)    │    │ unavailable)│    │ replace) │
    └──────────┘    └──────────────┘    └─────────────┘    └──────────┘

    Every check runs before the first write. Embedding failure never fails
    the write: the note is stored with embedding = null and stays searchable
    through lexical scoring.
"""

import logging
from datetime import datetime, timezone
from typing import AbstractSet, List, Optional
from uuid import UUID

from notedock.exceptions import AccessDeniedError, EmbeddingUnavailableError, ValidationError
from notedock.schemas.note import (
    NoteCreate,
    NoteDocument,
    NoteField,
    NoteType,
    NoteUpdate,
    normalize_tags,
)
from notedock.services.access_guard import AccessGuard
from notedock.services.embedding_base import (
    EmbeddingProvider,
    EmbeddingPurpose,
    build_note_text,
)
from notedock.services.note_store import NoteStore
from notedock.services.search_engine import SearchEngine
from notedock.services.workspace_directory import WorkspaceDirectory

logger = logging.getLogger(__name__)


def validate_content(title: Optional[str], fields: Optional[List[NoteField]]) -> str:
    """
    Check the title/fields invariants and return the trimmed title.

    Raises:
        ValidationError: blank title, no fields, or a field without a label
    """
    cleaned = (title or "").strip()
    if not cleaned:
        raise ValidationError(message="Title is required", field="title")
    if not fields:
        raise ValidationError(message="At least one field is required", field="fields")
    for index, item in enumerate(fields):
        if not (item.label or "").strip():
            raise ValidationError(
                message="Every field needs a label",
                field="fields",
                context={"index": index},
            )
    return cleaned


class NoteService:
    """
    Business logic layer for note operations.

    Constructed per request with its collaborators. Holds no state of its own.
    """

    def __init__(
        self,
        store: NoteStore,
        embedder: EmbeddingProvider,
        workspaces: WorkspaceDirectory,
        semantic_weight: Optional[float] = None,
    ) -> None:
        self.store = store
        self.embedder = embedder
        self.workspaces = workspaces
        self.search_engine = SearchEngine(store, embedder, semantic_weight=semantic_weight)
        self.access_guard = AccessGuard(store, workspaces)

    # ── Writes ────────────────────────────────────────────────────────────

    async def create_note(self, author_id: UUID, payload: NoteCreate) -> NoteDocument:
        """
        Validate, authorize, embed and insert a new note.

        Raises:
            ValidationError:   missing workspace/type, blank title, bad fields
            NotFoundError:     workspace does not exist
            AccessDeniedError: author cannot write in the workspace
        """
        if payload.workspace_id is None:
            raise ValidationError(message="workspaceId is required", field="workspaceId")
        if payload.note_type is None:
            raise ValidationError(message="noteType is required", field="noteType")
        title = validate_content(payload.title, payload.fields)

        await self.workspaces.require_access(payload.workspace_id, author_id, write=True)

        fields = list(payload.fields)
        embedding = await self._embed_content(title, fields)
        now = datetime.now(timezone.utc)
        note = NoteDocument(
            author_id=author_id,
            workspace_id=payload.workspace_id,
            note_type=payload.note_type,
            title=title,
            fields=fields,
            tags=normalize_tags(payload.tags),
            embedding=embedding,
            version=1,
            created_at=now,
            updated_at=now,
        )
        created = await self.store.insert(note)
        logger.info(
            "Note %s created in workspace %s (embedded=%s)",
            created.id, created.workspace_id, embedding is not None,
        )
        return created

    async def update_note(
        self, note_id: UUID, actor_id: UUID, payload: NoteUpdate
    ) -> NoteDocument:
        """
        Apply a partial update. Only keys present in the request body change.

        The embedding is recomputed only when the title or the fields changed;
        a tags-only update keeps the stored vector.

        Raises:
            NotFoundError:     note does not exist
            AccessDeniedError: actor is not the author
            ValidationError:   merged note breaks the content invariants
            ConflictError:     the note changed since it was read
        """
        current = await self.store.get(note_id)
        self._require_author(current, actor_id, "update")

        provided = payload.model_fields_set
        title = payload.title if "title" in provided else current.title
        fields = payload.fields if "fields" in provided else current.fields
        tags = normalize_tags(payload.tags) if "tags" in provided else list(current.tags)
        title = validate_content(title, fields)

        content_changed = title != current.title or [
            f.model_dump() for f in fields
        ] != [f.model_dump() for f in current.fields]

        embedding = current.embedding
        if content_changed:
            embedding = await self._embed_content(title, fields)

        updated = current.model_copy(
            update={
                "title": title,
                "fields": list(fields),
                "tags": tags,
                "embedding": embedding,
                "updated_at": datetime.now(timezone.utc),
            }
        )
        result = await self.store.replace(note_id, updated, expected_version=current.version)
        logger.info(
            "Note %s updated (content_changed=%s, version=%d)",
            note_id, content_changed, result.version,
        )
        return result

    async def delete_note(self, note_id: UUID, actor_id: UUID) -> NoteDocument:
        """
        Hard-delete a note. Author only.

        Raises:
            NotFoundError:     note does not exist
            AccessDeniedError: actor is not the author
            ConflictError:     the note changed since it was read
        """
        current = await self.store.get(note_id)
        self._require_author(current, actor_id, "delete")
        deleted = await self.store.delete(note_id, expected_version=current.version)
        logger.info("Note %s deleted by %s", note_id, actor_id)
        return deleted

    # ── Reads ─────────────────────────────────────────────────────────────

    async def get_note(self, note_id: UUID, actor_id: UUID) -> NoteDocument:
        """Read one note. The actor must be its author or a member of its workspace."""
        return await self.access_guard.authorize_read(note_id, actor_id)

    async def get_notes(
        self,
        actor_id: UUID,
        workspace_id: Optional[UUID],
        note_type: Optional[NoteType],
        tags: AbstractSet[str] = frozenset(),
        query: str = "",
    ) -> List[NoteDocument]:
        """
        Search one workspace. The actor needs any role in it.

        Raises:
            ValidationError:   workspaceId or noteType missing
            NotFoundError:     workspace does not exist
            AccessDeniedError: actor is not a member
        """
        if workspace_id is None:
            raise ValidationError(message="workspaceId is required", field="workspaceId")
        if note_type is None:
            raise ValidationError(message="noteType is required", field="noteType")

        await self.workspaces.require_access(workspace_id, actor_id, write=False)
        return await self.search_engine.search(workspace_id, note_type, tags, query)

    # ── Cross-workspace ───────────────────────────────────────────────────

    async def share_note(
        self, note_id: UUID, actor_id: UUID, dest_workspace_id: Optional[UUID]
    ) -> NoteDocument:
        if dest_workspace_id is None:
            raise ValidationError(message="workspaceId is required", field="workspaceId")
        return await self.access_guard.share(note_id, actor_id, dest_workspace_id)

    async def copy_note(
        self, note_id: UUID, actor_id: UUID, dest_workspace_id: Optional[UUID]
    ) -> NoteDocument:
        if dest_workspace_id is None:
            raise ValidationError(message="workspaceId is required", field="workspaceId")
        return await self.access_guard.copy(note_id, actor_id, dest_workspace_id)

    async def get_workspaces_for_note(self, note_id: UUID, actor_id: UUID) -> List[UUID]:
        return await self.access_guard.get_workspaces_for_note(note_id, actor_id)

    # ── Helpers ───────────────────────────────────────────────────────────

    async def _embed_content(self, title: str, fields: List[NoteField]) -> Optional[List[float]]:
        text = build_note_text(title, [(f.label, f.content) for f in fields])
        try:
            return await self.embedder.embed(text, EmbeddingPurpose.DOCUMENT)
        except EmbeddingUnavailableError as e:
            logger.warning("Storing note without embedding: %s", e.message)
            return None

    @staticmethod
    def _require_author(note: NoteDocument, actor_id: UUID, action: str) -> None:
        if note.author_id != actor_id:
            raise AccessDeniedError(
                message=f"Access denied: only the author can {action} this note",
                reason="not_author",
                context={"note_id": str(note.id)},
            )
