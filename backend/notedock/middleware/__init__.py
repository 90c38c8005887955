# Middleware package init
"""
NoteDock Backend - Middleware Package
======================================

What:  Cross-cutting concerns applied to every request.

Middleware Chain:
    Request → [Request ID] → [Logging] → [GZip] → [CORS] → Route Handler

    Request ID runs first so the access log line and every log record
    emitted by the handler share the same correlation ID. Responses pass
    back through the chain in reverse order, which is where the logging
    middleware measures status and duration.
"""
