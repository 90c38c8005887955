"""
NoteDock Backend - Notes Route Handlers
========================================

What:  HTTP surface for note create/read/update/delete, search, share and copy.
How:   Reads the principal (X-User-ID) and the request, calls NoteService,
       wraps the result in a {message, data} envelope.

Every response carries NoteResponse, which has no embedding field.
Errors are raised as NoteDockError subclasses and rendered by the
handlers in main.py.
"""

import logging
from typing import FrozenSet, List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query

from notedock.dependencies import get_current_user_id, get_note_service
from notedock.schemas.note import (
    ErrorResponse,
    NoteCreate,
    NoteData,
    NoteEnvelope,
    NoteListData,
    NoteListEnvelope,
    NoteResponse,
    NoteType,
    NoteUpdate,
    WorkspaceData,
    WorkspaceEnvelope,
    WorkspaceTarget,
    normalize_tags,
)
from notedock.services.note_service import NoteService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["Notes"])

ERROR_RESPONSES = {
    400: {"description": "Invalid input", "model": ErrorResponse},
    401: {"description": "No authenticated principal", "model": ErrorResponse},
    403: {"description": "Access denied", "model": ErrorResponse},
    404: {"description": "Note or workspace not found", "model": ErrorResponse},
    409: {"description": "Concurrent modification, retry", "model": ErrorResponse},
    500: {"description": "Server error", "model": ErrorResponse},
}


def coerce_tags(raw: Optional[List[str]]) -> FrozenSet[str]:
    """
    Accepts ?tags=a&tags=b, ?tags=a,b or no tags at all.

    Returns the normalized tag set the search engine expects.
    """
    parts: List[str] = []
    for value in raw or []:
        parts.extend(value.split(","))
    return frozenset(normalize_tags(parts))


def _envelope(message: str, note) -> NoteEnvelope:
    return NoteEnvelope(message=message, data=NoteData(note=NoteResponse.from_document(note)))


@router.post(
    "/notes",
    status_code=201,
    response_model=NoteEnvelope,
    responses=ERROR_RESPONSES,
    summary="Create a note",
)
async def create_note(
    payload: NoteCreate,
    user_id: UUID = Depends(get_current_user_id),
    service: NoteService = Depends(get_note_service),
) -> NoteEnvelope:
    note = await service.create_note(user_id, payload)
    return _envelope("Note created successfully", note)


@router.get(
    "/notes",
    response_model=NoteListEnvelope,
    responses=ERROR_RESPONSES,
    summary="Search notes in a workspace",
    description=(
        "Filters by note type and tags (a note matches if it has any of the "
        "given tags), then ranks by keyword and semantic similarity to `query`. "
        "Without a query, the most recently updated notes come first."
    ),
)
async def search_notes(
    workspace_id: Optional[UUID] = Query(default=None, alias="workspaceId"),
    note_type: Optional[NoteType] = Query(default=None, alias="noteType"),
    tags: Optional[List[str]] = Query(default=None),
    query: str = Query(default=""),
    user_id: UUID = Depends(get_current_user_id),
    service: NoteService = Depends(get_note_service),
) -> NoteListEnvelope:
    notes = await service.get_notes(
        actor_id=user_id,
        workspace_id=workspace_id,
        note_type=note_type,
        tags=coerce_tags(tags),
        query=query,
    )
    return NoteListEnvelope(
        message="Notes retrieved successfully",
        data=NoteListData(notes=[NoteResponse.from_document(n) for n in notes]),
    )


@router.get(
    "/notes/{note_id}",
    response_model=NoteEnvelope,
    responses=ERROR_RESPONSES,
    summary="Get a single note by ID",
)
async def get_note(
    note_id: UUID,
    user_id: UUID = Depends(get_current_user_id),
    service: NoteService = Depends(get_note_service),
) -> NoteEnvelope:
    note = await service.get_note(note_id, user_id)
    return _envelope("Note retrieved successfully", note)


@router.put(
    "/notes/{note_id}",
    response_model=NoteEnvelope,
    responses=ERROR_RESPONSES,
    summary="Update title, fields or tags of a note",
)
async def update_note(
    note_id: UUID,
    payload: NoteUpdate,
    user_id: UUID = Depends(get_current_user_id),
    service: NoteService = Depends(get_note_service),
) -> NoteEnvelope:
    note = await service.update_note(note_id, user_id, payload)
    return _envelope("Note updated successfully", note)


@router.delete(
    "/notes/{note_id}",
    response_model=NoteEnvelope,
    responses=ERROR_RESPONSES,
    summary="Delete a note (author only)",
)
async def delete_note(
    note_id: UUID,
    user_id: UUID = Depends(get_current_user_id),
    service: NoteService = Depends(get_note_service),
) -> NoteEnvelope:
    note = await service.delete_note(note_id, user_id)
    return _envelope("Note deleted successfully", note)


@router.post(
    "/notes/{note_id}/share",
    response_model=NoteEnvelope,
    responses=ERROR_RESPONSES,
    summary="Move a note to another workspace",
)
async def share_note(
    note_id: UUID,
    target: WorkspaceTarget,
    user_id: UUID = Depends(get_current_user_id),
    service: NoteService = Depends(get_note_service),
) -> NoteEnvelope:
    note = await service.share_note(note_id, user_id, target.workspace_id)
    return _envelope("Note shared successfully", note)


@router.post(
    "/notes/{note_id}/copy",
    status_code=201,
    response_model=NoteEnvelope,
    responses=ERROR_RESPONSES,
    summary="Copy a note into another workspace",
)
async def copy_note(
    note_id: UUID,
    target: WorkspaceTarget,
    user_id: UUID = Depends(get_current_user_id),
    service: NoteService = Depends(get_note_service),
) -> NoteEnvelope:
    note = await service.copy_note(note_id, user_id, target.workspace_id)
    return _envelope("Note copied successfully", note)


@router.get(
    "/notes/{note_id}/workspaces",
    response_model=WorkspaceEnvelope,
    responses=ERROR_RESPONSES,
    summary="Resolve the workspace that holds a note",
)
async def get_note_workspaces(
    note_id: UUID,
    user_id: UUID = Depends(get_current_user_id),
    service: NoteService = Depends(get_note_service),
) -> WorkspaceEnvelope:
    workspace_ids = await service.get_workspaces_for_note(note_id, user_id)
    return WorkspaceEnvelope(
        message="Workspace retrieved successfully",
        data=WorkspaceData(workspace_id=workspace_ids[0], workspace_ids=workspace_ids),
    )
