"""
NoteDock Backend - Application Package
=======================================

What: Workspace-scoped structured notes with hybrid search and share/copy.
Who:  Imported by uvicorn (notedock.main:app), Alembic and pytest.

Architecture Note:
    ┌─────────────────────────────────────┐
    │           Routes (API Layer)        │  ← HTTP envelopes, status mapping
    ├─────────────────────────────────────┤
    │   NoteService / SearchEngine /      │  ← Orchestration, ranking,
    │   AccessGuard (Services)            │    authorization
    ├─────────────────────────────────────┤
    │  NoteStore / WorkspaceDirectory /   │  ← Replaceable collaborators
    │  EmbeddingProvider                  │
    ├─────────────────────────────────────┤
    │        Database (Persistence)       │  ← Async SQLAlchemy sessions
    └─────────────────────────────────────┘

    Services never import the HTTP layer. Collaborators are passed into
    service constructors so tests can substitute them.
"""

__version__ = "1.0.0"
