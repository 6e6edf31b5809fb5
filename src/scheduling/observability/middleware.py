"""Request context middleware for HTTP request tracing.

Every response carries an ``X-Request-ID`` header (echoed from the client or
generated), and the request ID plus the caller's ``X-User-Id`` are bound into
structlog contextvars so all log entries for the request share them.
"""

from __future__ import annotations

import uuid

import structlog
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

SERVICE_NAME = "delivery-scheduling"
REQUEST_ID_HEADER = "X-Request-ID"
USER_ID_HEADER = "X-User-Id"


class RequestIdMiddleware(BaseHTTPMiddleware):
    """Attach a request ID and caller identity to every request/response cycle."""

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        """Bind ``request_id``, ``service`` and (when sent) ``user_id`` for the request.

        Args:
            request: The incoming HTTP request.
            call_next: The next middleware or route handler.

        Returns:
            The HTTP response with ``X-Request-ID`` header set.
        """
        request_id = request.headers.get(REQUEST_ID_HEADER) or str(uuid.uuid4())
        structlog.contextvars.clear_contextvars()
        structlog.contextvars.bind_contextvars(request_id=request_id, service=SERVICE_NAME)
        user_id = request.headers.get(USER_ID_HEADER)
        if user_id:
            structlog.contextvars.bind_contextvars(user_id=user_id)
        response = await call_next(request)
        response.headers[REQUEST_ID_HEADER] = request_id
        return response
