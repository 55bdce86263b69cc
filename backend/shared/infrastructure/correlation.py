"""
Request correlation IDs.

Every HTTP request runs inside a correlation scope: the X-Request-ID header
(or a fresh UUID) is bound to a context variable, stamped on log records and
copied onto outbox rows written during the request. The outbox processor
re-enters the same scope per event, so the log lines and the Redis message
for a stock change or checkout share one ID with the request that caused it.
"""

import uuid
from collections.abc import Iterator
from contextlib import contextmanager
from contextvars import ContextVar
from typing import Callable

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

REQUEST_ID_HEADER = "X-Request-ID"
MAX_REQUEST_ID_LENGTH = 64

request_id_var: ContextVar[str] = ContextVar("request_id", default="")


def get_request_id() -> str:
    """The correlation ID bound to the current context, or ''."""
    return request_id_var.get()


def new_request_id(prefix: str | None = None) -> str:
    value = str(uuid.uuid4())
    return f"{prefix}-{value}" if prefix else value


@contextmanager
def correlation_scope(request_id: str | None = None, prefix: str | None = None) -> Iterator[str]:
    """
    Bind a correlation ID for the duration of the block.

    A missing ID is generated. Oversized client IDs are cut so they fit the
    outbox column.
    """
    value = (request_id or new_request_id(prefix))[:MAX_REQUEST_ID_LENGTH]
    token = request_id_var.set(value)
    try:
        yield value
    finally:
        request_id_var.reset(token)


class CorrelationIdMiddleware(BaseHTTPMiddleware):
    """Run each request in a correlation scope and echo the ID back."""

    HEADER_NAME = REQUEST_ID_HEADER

    async def dispatch(
        self,
        request: Request,
        call_next: Callable,
    ) -> Response:
        with correlation_scope(request.headers.get(self.HEADER_NAME)) as request_id:
            request.state.request_id = request_id
            response = await call_next(request)
            response.headers[self.HEADER_NAME] = request_id
            return response


class CorrelationIdFilter:
    """Logging filter that stamps request_id on every record ('-' outside a scope)."""

    def filter(self, record) -> bool:
        record.request_id = request_id_var.get() or "-"
        return True
