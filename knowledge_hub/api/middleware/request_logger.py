"""Per-request access logging for the knowledge API."""

import logging
import time
import uuid
from typing import Callable

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

logger = logging.getLogger(__name__)


class RequestLoggerMiddleware(BaseHTTPMiddleware):
    """Logs method, path, status and latency with the acting user.

    Echoes ``X-Request-ID`` (generated when absent) and adds
    ``X-Response-Time`` to every response.
    """

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        started = time.perf_counter()
        request_id = request.headers.get("X-Request-ID") or uuid.uuid4().hex[:12]
        fields = {"request_id": request_id, "user_id": request.headers.get("X-User-Id")}

        logger.debug(f"{request.method} {request.url.path} started", extra=fields)

        try:
            response = await call_next(request)
        except Exception as e:
            elapsed_ms = (time.perf_counter() - started) * 1000
            logger.error(
                f"{request.method} {request.url.path} failed after {elapsed_ms:.0f}ms: {e}",
                extra=fields,
            )
            raise

        elapsed_ms = (time.perf_counter() - started) * 1000
        level = logging.WARNING if response.status_code >= 500 else logging.INFO
        logger.log(
            level,
            f"{request.method} {request.url.path} {response.status_code} in {elapsed_ms:.0f}ms",
            extra=fields,
        )

        response.headers["X-Response-Time"] = f"{elapsed_ms:.2f}ms"
        response.headers["X-Request-ID"] = request_id
        return response
