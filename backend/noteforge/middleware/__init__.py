"""
NoteForge Backend - Middleware Package
=======================================

Cross-cutting concerns applied to every request.

Middleware Chain (order matters):
    Request → [Rate Limit] → [Request ID] → [Logging] → [CORS] → Route Handler

    1. Rate Limit first: abusive clients are rejected before any processing
    2. Request ID: correlation id for every log line of the request
    3. Logging: method, path, status and duration with the request id
    4. CORS: FastAPI's CORSMiddleware (handles preflight)

None of these buffer response bodies, so /api/ai-stream chunks reach the
client as the provider produces them.
"""
