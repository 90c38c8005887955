# Services package init
"""
NoteDock Backend - Services Layer
==================================

What:  Business logic between routes (HTTP) and the note store (persistence).
How:   Services receive their collaborators in the constructor; routes build
       them per request through FastAPI dependencies (see dependencies.py).

Service Inventory:
    - NoteStore (abstract) / SqlNoteStore: note document persistence
    - WorkspaceDirectory (abstract) / SqlWorkspaceDirectory: workspace and role lookup
    - EmbeddingProvider (abstract) / GeminiEmbeddingProvider: text → vector
    - SearchEngine: tag filter plus hybrid lexical/semantic ranking
    - AccessGuard: share and copy between workspaces
    - NoteService: orchestrates all of the above for the routes
"""
