"""
NoteDock Backend - FastAPI Dependencies
========================================

What:  Builds the per-request object graph for route handlers.
How:   session → SqlNoteStore / SqlWorkspaceDirectory
       app.state.embedding_provider (one per process)
       → NoteService(store, embedder, workspaces)

Tests swap any layer with app.dependency_overrides.
"""

import logging
from uuid import UUID

from fastapi import Depends, Header, Request
from sqlalchemy.ext.asyncio import AsyncSession

from notedock.database import get_db_session
from notedock.exceptions import NotAuthenticatedError
from notedock.services.embedding_base import EmbeddingProvider
from notedock.services.gemini_embedding import GeminiEmbeddingProvider
from notedock.services.note_service import NoteService
from notedock.services.note_store import NoteStore, SqlNoteStore
from notedock.services.workspace_directory import SqlWorkspaceDirectory, WorkspaceDirectory

logger = logging.getLogger(__name__)


async def get_current_user_id(
    x_user_id: str | None = Header(default=None, alias="X-User-ID"),
) -> UUID:
    """
    Principal forwarded by the upstream gateway after token verification.

    Raises:
        NotAuthenticatedError: header missing or not a UUID (→ 401)
    """
    if not x_user_id:
        raise NotAuthenticatedError()
    try:
        return UUID(x_user_id.strip())
    except ValueError:
        logger.warning("Rejected malformed X-User-ID header")
        raise NotAuthenticatedError(message="Invalid user identity")


def get_embedding_provider(request: Request) -> EmbeddingProvider:
    """
    The process-wide provider created in the lifespan.

    Created on first use when the lifespan did not run (e.g. an ASGI test
    transport), so the circuit breaker is still shared across requests.
    """
    provider = getattr(request.app.state, "embedding_provider", None)
    if provider is None:
        provider = GeminiEmbeddingProvider()
        request.app.state.embedding_provider = provider
    return provider


def get_note_store(db: AsyncSession = Depends(get_db_session)) -> NoteStore:
    return SqlNoteStore(db)


def get_workspace_directory(
    db: AsyncSession = Depends(get_db_session),
) -> WorkspaceDirectory:
    return SqlWorkspaceDirectory(db)


def get_note_service(
    store: NoteStore = Depends(get_note_store),
    embedder: EmbeddingProvider = Depends(get_embedding_provider),
    workspaces: WorkspaceDirectory = Depends(get_workspace_directory),
) -> NoteService:
    """Request-scoped NoteService. Store and directory share one session."""
    return NoteService(store=store, embedder=embedder, workspaces=workspaces)
