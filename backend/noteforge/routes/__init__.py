"""
NoteForge Backend - API Routes Package
=======================================

Route Inventory:
    - content.py:    GET/PUT /api/documents/{id}/content   (session required)
    - parse.py:      POST /api/parse-pdf, /api/parse-document, /api/ingest/youtube
    - ai_stream.py:  POST /api/ai-stream                   (streamed notes)
    - uploads.py:    POST /api/uploads, GET /api/uploads/{path}
    - session.py:    GET /login, GET /
    - health.py:     GET /health

Routes stay thin: pull data out of the request, call a service, shape the
response. Errors are raised as NoteForgeError subclasses and rendered by the
handlers registered in main.py.
"""
