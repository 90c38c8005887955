"""
NoteDock Backend - Test Configuration (conftest.py)
====================================================

What:  Shared pytest fixtures for the entire test suite.
How:   A fresh in-memory SQLite database (aiosqlite + StaticPool) per test,
       seeded with workspaces and memberships, plus a deterministic
       in-process EmbeddingProvider.

Seeded world (see `seed`):
    home     owned by `owner`
    team     owned by `owner`; `editor` is editor, `viewer` is viewer
    foreign  owned by `outsider`; nobody else is a member

Fixture Hierarchy:
    db_engine → session_factory (seeded) → db_session
                                        → store / directory
    embedder (FakeEmbeddingProvider)
    service = NoteService(store, embedder, directory)
    test_client: HTTPX AsyncClient with session and provider overridden
"""

import hashlib
import os
import re
from dataclasses import dataclass
from typing import List, Optional
from uuid import UUID

# Must be set before any notedock import reads settings
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"
os.environ["GEMINI_API_KEY"] = ""
os.environ["LOG_LEVEL"] = "WARNING"

import pytest
import pytest_asyncio
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from notedock.database import Base
from notedock.exceptions import EmbeddingUnavailableError
from notedock.models.note import Note  # noqa: F401
from notedock.models.workspace import Workspace, WorkspaceMember
from notedock.schemas.note import FieldKind, NoteCreate, NoteField, NoteType
from notedock.services.embedding_base import EmbeddingProvider, EmbeddingPurpose
from notedock.services.note_service import NoteService
from notedock.services.note_store import SqlNoteStore
from notedock.services.workspace_directory import SqlWorkspaceDirectory


# ══════════════════════════════════════════════════════════════════════════
# Test Doubles
# ══════════════════════════════════════════════════════════════════════════

class FakeEmbeddingProvider(EmbeddingProvider):
    """
    Deterministic bag-of-words embedding.

    Each word is hashed into one of `dimensions` buckets, so texts sharing
    words get a positive cosine similarity and unrelated texts get ~0.
    Set `available = False` to simulate an outage.
    """

    def __init__(self, dimensions: int = 32, available: bool = True):
        self._dimensions = dimensions
        self.available = available
        self.calls: List[tuple] = []

    @property
    def dimensions(self) -> int:
        return self._dimensions

    async def embed(self, text: str, purpose: EmbeddingPurpose = EmbeddingPurpose.DOCUMENT) -> List[float]:
        self.calls.append((text, purpose))
        if not self.available:
            raise EmbeddingUnavailableError(context={"reason": "test_outage"})
        vector = [0.0] * self._dimensions
        for term in re.findall(r"\w+", text.lower()):
            bucket = hashlib.md5(term.encode("utf-8")).digest()[0] % self._dimensions
            vector[bucket] += 1.0
        return vector

    def status(self) -> str:
        return "available" if self.available else "unconfigured"


@dataclass(frozen=True)
class Seed:
    owner: UUID
    editor: UUID
    viewer: UUID
    outsider: UUID
    home: UUID
    team: UUID
    foreign: UUID


SEED = Seed(
    owner=UUID("00000000-0000-0000-0000-000000000001"),
    editor=UUID("00000000-0000-0000-0000-000000000002"),
    viewer=UUID("00000000-0000-0000-0000-000000000003"),
    outsider=UUID("00000000-0000-0000-0000-000000000004"),
    home=UUID("10000000-0000-0000-0000-000000000001"),
    team=UUID("10000000-0000-0000-0000-000000000002"),
    foreign=UUID("10000000-0000-0000-0000-000000000003"),
)


# ══════════════════════════════════════════════════════════════════════════
# Database Fixtures
# ══════════════════════════════════════════════════════════════════════════

@pytest.fixture
def seed() -> Seed:
    return SEED


@pytest_asyncio.fixture
async def db_engine():
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest_asyncio.fixture
async def session_factory(db_engine):
    factory = async_sessionmaker(db_engine, class_=AsyncSession, expire_on_commit=False)
    async with factory() as session:
        session.add_all([
            Workspace(id=SEED.home, name="Home", owner_id=SEED.owner),
            Workspace(id=SEED.team, name="Team", owner_id=SEED.owner),
            Workspace(id=SEED.foreign, name="Foreign", owner_id=SEED.outsider),
        ])
        await session.flush()
        session.add_all([
            WorkspaceMember(workspace_id=SEED.team, user_id=SEED.editor, role="editor"),
            WorkspaceMember(workspace_id=SEED.team, user_id=SEED.viewer, role="viewer"),
        ])
        await session.commit()
    return factory


@pytest_asyncio.fixture
async def db_session(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
def store(db_session):
    return SqlNoteStore(db_session)


@pytest.fixture
def directory(db_session):
    return SqlWorkspaceDirectory(db_session)


@pytest.fixture
def embedder():
    return FakeEmbeddingProvider()


@pytest.fixture
def service(store, embedder, directory):
    return NoteService(store=store, embedder=embedder, workspaces=directory)


@pytest.fixture
def make_payload():
    """Builds a valid NoteCreate; override any part per test."""

    def _make(
        title: str = "Weekly sync",
        content: str = "Discuss the roadmap",
        tags: Optional[List[str]] = None,
        workspace_id: Optional[UUID] = None,
        note_type: NoteType = NoteType.CONTENT,
        fields: Optional[List[NoteField]] = None,
    ) -> NoteCreate:
        if fields is None:
            fields = [NoteField(label="Body", type=FieldKind.TEXTBOX, content=content)]
        return NoteCreate(
            workspace_id=workspace_id or SEED.home,
            note_type=note_type,
            title=title,
            fields=fields,
            tags=tags or [],
        )

    return _make


# ══════════════════════════════════════════════════════════════════════════
# HTTP Client
# ══════════════════════════════════════════════════════════════════════════

@pytest_asyncio.fixture
async def test_client(session_factory, embedder):
    """
    HTTPX AsyncClient talking to the app in-process.

    ASGITransport does not run the lifespan, so the session and the
    embedding provider are supplied through dependency overrides.
    """
    from notedock.database import get_db_session
    from notedock.dependencies import get_embedding_provider
    from notedock.main import app

    async def override_session():
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db_session] = override_session
    app.dependency_overrides[get_embedding_provider] = lambda: embedder

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client

    app.dependency_overrides.clear()
