"""Request correlation and access logging."""

import logging
import re
import time
import uuid
from collections.abc import Callable
from contextvars import ContextVar

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

from blindtest.services.rate_limit import get_client_ip

logger = logging.getLogger(__name__)

request_id_var: ContextVar[str | None] = ContextVar("request_id", default=None)

# Incoming IDs end up in log lines; anything else is replaced
REQUEST_ID_PATTERN = re.compile(r"^[A-Za-z0-9._-]{1,64}$")

QUIET_PATHS = ("/api/health",)


def get_request_id() -> str | None:
    """Get the current request ID from context."""
    return request_id_var.get()


class RequestIDMiddleware(BaseHTTPMiddleware):
    """Tags each request with an ID, echoed back in ``X-Request-ID``.

    A well-formed incoming ``X-Request-ID`` is kept so a caller can correlate
    its own logs; otherwise a new UUID is generated.
    """

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        incoming = request.headers.get("X-Request-ID")
        if incoming and REQUEST_ID_PATTERN.match(incoming):
            request_id = incoming
        else:
            request_id = str(uuid.uuid4())

        token = request_id_var.set(request_id)
        try:
            response = await call_next(request)
            response.headers["X-Request-ID"] = request_id
            return response
        finally:
            request_id_var.reset(token)


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Logs one line per request with status and timing.

    Only the method and path are logged; query strings may carry
    verification tokens.
    """

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        path = request.url.path
        if path.startswith(QUIET_PATHS):
            return await call_next(request)

        start_time = time.perf_counter()
        client_ip = get_client_ip(request) or "-"
        try:
            response = await call_next(request)
        except Exception as e:
            duration_ms = (time.perf_counter() - start_time) * 1000
            logger.error(
                f"{request.method} {path} from {client_ip} failed after {duration_ms:.1f}ms: {e!r}",
                extra={"duration_ms": duration_ms},
            )
            raise

        duration_ms = (time.perf_counter() - start_time) * 1000
        logger.info(
            f"{request.method} {path} from {client_ip} -> {response.status_code} in {duration_ms:.1f}ms",
            extra={"status_code": response.status_code, "duration_ms": duration_ms},
        )
        return response


class RequestContextFilter(logging.Filter):
    """Logging filter that adds ``request_id`` to every record."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.request_id = get_request_id() or "-"
        return True
