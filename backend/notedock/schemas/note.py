"""
NoteDock Backend - Pydantic Schemas
====================================

What:  Storage document, request bodies, response projections and envelopes.
Why:   The storage shape (NoteDocument, with embedding) and the public shape
       (NoteResponse, no embedding field at all) are different types, so a
       vector can never leak into a response by accident.
How:   JSON uses camelCase aliases; Python code uses snake_case names.

Request bodies are lenient (title/fields optional): the
business rules live in NoteService and raise ValidationError, so a missing
title and a blank title produce the same 400 response.
"""

import uuid
from datetime import datetime
from enum import Enum
from typing import Iterable, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel


def normalize_tags(tags: Optional[Iterable[str]]) -> List[str]:
    """Trim, drop blanks and deduplicate, keeping first-seen order."""
    normalized: List[str] = []
    for tag in tags or []:
        if tag is None:
            continue
        cleaned = str(tag).strip()
        if cleaned and cleaned not in normalized:
            normalized.append(cleaned)
    return normalized


class CamelModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )


class NoteType(str, Enum):
    """Category of a note. Fixed at creation."""

    CONTENT = "content"
    TEMPLATE = "template"
    CHAT = "chat"


class FieldKind(str, Enum):
    """Kind of a note field, as rendered by the clients."""

    TITLE = "title"
    TEXT = "text"
    TEXTBOX = "textbox"
    DATETIME = "datetime"
    NUMBER = "number"
    SIGNATURE = "signature"


class NoteField(CamelModel):
    label: str = Field(default="", description="Non-empty field label")
    type: FieldKind = Field(default=FieldKind.TEXT, description="Field kind")
    content: str = Field(default="", description="Field value as text")

    @field_validator("content", mode="before")
    @classmethod
    def coerce_content(cls, v):
        # Clients send numbers and dates for number/datetime fields
        if v is None:
            return ""
        return v if isinstance(v, str) else str(v)


# ══════════════════════════════════════════════════════════════════════════
# Storage Document
# ══════════════════════════════════════════════════════════════════════════


class NoteDocument(CamelModel):
    """
    What:  Full note as persisted by a NoteStore, embedding included.
    Who:   Produced by NoteStore implementations, consumed by services.
    Never returned from a route; see NoteResponse.
    """

    id: uuid.UUID = Field(default_factory=uuid.uuid4)
    author_id: uuid.UUID
    workspace_id: uuid.UUID
    note_type: NoteType
    title: str
    fields: List[NoteField]
    tags: List[str] = Field(default_factory=list)
    embedding: Optional[List[float]] = None
    version: int = 1
    created_at: datetime
    updated_at: datetime

    @field_validator("tags")
    @classmethod
    def dedupe_tags(cls, v: List[str]) -> List[str]:
        return normalize_tags(v)


# ══════════════════════════════════════════════════════════════════════════
# Response Models
# ══════════════════════════════════════════════════════════════════════════


class NoteResponse(CamelModel):
    """
    What:  Public projection of a note.
    Why:   Has no embedding attribute, so building it from a NoteDocument
           drops the vector structurally rather than by filtering keys.
    """

    id: uuid.UUID
    author_id: uuid.UUID
    workspace_id: uuid.UUID
    note_type: NoteType
    title: str
    fields: List[NoteField]
    tags: List[str]
    version: int
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_document(cls, document: NoteDocument) -> "NoteResponse":
        return cls.model_validate(document, from_attributes=True)


class NoteData(CamelModel):
    note: NoteResponse


class NoteListData(CamelModel):
    notes: List[NoteResponse]


class WorkspaceData(CamelModel):
    workspace_id: uuid.UUID
    workspace_ids: List[uuid.UUID]


class NoteEnvelope(CamelModel):
    message: str
    data: NoteData


class NoteListEnvelope(CamelModel):
    message: str
    data: NoteListData


class WorkspaceEnvelope(CamelModel):
    message: str
    data: WorkspaceData


# ══════════════════════════════════════════════════════════════════════════
# Request Models
# ══════════════════════════════════════════════════════════════════════════


class NoteCreate(CamelModel):
    """Body of POST /api/notes."""

    workspace_id: Optional[uuid.UUID] = None
    note_type: Optional[NoteType] = None
    title: Optional[str] = None
    fields: Optional[List[NoteField]] = None
    tags: List[str] = Field(default_factory=list)


class NoteUpdate(CamelModel):
    """
    Body of PUT /api/notes/{id}. Only keys present in the body are applied;
    workspace, type and author cannot be changed here.
    """

    title: Optional[str] = None
    fields: Optional[List[NoteField]] = None
    tags: Optional[List[str]] = None


class WorkspaceTarget(CamelModel):
    """Body of the share and copy endpoints."""

    workspace_id: Optional[uuid.UUID] = None


# ══════════════════════════════════════════════════════════════════════════
# Error / Health Models
# ══════════════════════════════════════════════════════════════════════════


class ErrorResponse(BaseModel):
    """
    Failure envelope for every endpoint.

    Example:
        {"error": "note with ID '...' was not found", "kind": "not_found",
         "request_id": "a1b2c3d4"}
    """
    error: str = Field(description="Human-readable error description")
    kind: str = Field(description="Machine-readable error kind")
    request_id: Optional[str] = Field(default=None, description="Request correlation ID")


class HealthResponse(BaseModel):
    status: str = Field(description="Overall service status: healthy, degraded, unhealthy")
    version: str = Field(description="Application version")
    database: str = Field(description="Database connectivity: connected, disconnected")
    embeddings: str = Field(description="Embedding provider: available, circuit_open, unconfigured")
    uptime_seconds: float = Field(description="Seconds since service started")
