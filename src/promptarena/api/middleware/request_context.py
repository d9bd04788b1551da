"""Per-request trace id, log context and access log line."""

import logging
import secrets
import time

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

from promptarena.logging_config import bind_request_context, clear_request_context

logger = logging.getLogger("promptarena.access")

TRACE_HEADER = "X-Trace-Id"


def new_trace_id() -> str:
    return f"trc_{secrets.token_hex(8)}"


class RequestContextMiddleware(BaseHTTPMiddleware):
    """Honour an incoming ``X-Trace-Id`` (or mint one) and echo it on the response.

    The id is bound into the structlog context so every log line written
    while serving the request carries it; error envelopes read it from
    ``request.state``.
    """

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        trace_id = request.headers.get(TRACE_HEADER) or new_trace_id()
        request.state.trace_id = trace_id
        clear_request_context()
        bind_request_context(trace_id=trace_id)

        started = time.perf_counter()
        response = await call_next(request)
        elapsed_ms = (time.perf_counter() - started) * 1000

        response.headers[TRACE_HEADER] = trace_id
        # Streaming responses are still open here; this times the headers
        logger.info(
            "%s %s -> %d (%.1f ms)",
            request.method,
            request.url.path,
            response.status_code,
            elapsed_ms,
        )
        return response
