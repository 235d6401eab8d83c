"""
NoteForge Backend - Request ID Middleware
==========================================

What:  Assigns each request a short correlation id and echoes it back.
How:   Reuses an incoming X-Request-ID header or generates one, stores it in a
       ContextVar (read by loggers, error handlers and the summarization
       relay) and in request.state, and sets it on the response.
"""

import uuid
from contextvars import ContextVar

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

# Coroutine-local: concurrent requests on one event loop each see their own id
request_id_var: ContextVar[str] = ContextVar("request_id", default="")

REQUEST_ID_HEADER = "X-Request-ID"


def get_request_id() -> str:
    """Current request id, or '' outside a request."""
    return request_id_var.get()


class RequestIDMiddleware(BaseHTTPMiddleware):
    """Propagates a client-provided X-Request-ID or generates an 8-char one."""

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        rid = request.headers.get(REQUEST_ID_HEADER) or str(uuid.uuid4())[:8]

        token = request_id_var.set(rid)
        request.state.request_id = rid
        try:
            response = await call_next(request)
        finally:
            request_id_var.reset(token)

        response.headers[REQUEST_ID_HEADER] = rid
        return response
