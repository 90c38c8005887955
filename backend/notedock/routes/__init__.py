# Routes package init
"""
NoteDock Backend - API Routes Package
======================================

Route Inventory:
    - notes.py:   POST   /api/notes                    (create)
                  GET    /api/notes                    (search a workspace)
                  GET    /api/notes/{id}               (get one)
                  PUT    /api/notes/{id}               (partial update)
                  DELETE /api/notes/{id}               (delete, author only)
                  POST   /api/notes/{id}/share         (move to another workspace)
                  POST   /api/notes/{id}/copy          (duplicate into another workspace)
                  GET    /api/notes/{id}/workspaces    (resolve owning workspace)
    - health.py:  GET    /health                       (service health check)

Routes stay thin: read the principal and the request, call NoteService,
wrap the result in a {message, data} envelope.
"""
