"""Request id and access logging middleware."""

import logging
import time
import uuid
from typing import Callable, List

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

from bikesafe.config import settings
from bikesafe.core.request_context import RequestIdFilter, request_scope


logger = logging.getLogger("api.requests")

LOG_FORMAT = "%(asctime)s [%(request_id)s] %(name)s %(levelname)s: %(message)s"


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """
    Binds a request id to each request and logs one access line per response.

    The id comes from ``X-Request-ID`` when the caller sends one and is echoed
    back in the response. The access line includes the time spent waiting on
    the routing provider, so slow selections can be told apart from slow ORS.
    """

    # Liveness probes and the index log at debug
    QUIET_PATHS = {"/", "/health", "/api/v1/health", "/api/v1/health/ready"}

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        request_id = request.headers.get("X-Request-ID") or uuid.uuid4().hex[:8]
        request.state.request_id = request_id

        with request_scope(request_id) as provider_calls:
            start_time = time.perf_counter()
            status_code = 500
            try:
                response = await call_next(request)
                status_code = response.status_code
                response.headers["X-Request-ID"] = request_id
                return response
            finally:
                if settings.log_requests:
                    duration_ms = (time.perf_counter() - start_time) * 1000
                    self._log_access(request, status_code, duration_ms, provider_calls)

    def _log_access(
        self,
        request: Request,
        status_code: int,
        duration_ms: float,
        provider_calls: List[float],
    ):
        message = f"{request.method} {request.url.path} -> {status_code} in {duration_ms:.0f}ms"
        if provider_calls:
            noun = "call" if len(provider_calls) == 1 else "calls"
            message += f" (provider: {len(provider_calls)} {noun}, {sum(provider_calls):.0f}ms)"

        if status_code >= 500:
            logger.error(message)
        elif status_code >= 400:
            logger.warning(message)
        elif request.url.path in self.QUIET_PATHS:
            logger.debug(message)
        else:
            logger.info(message)


def setup_logging():
    """Configure root logging with the request id in every line."""
    log_level = getattr(logging, settings.log_level, logging.INFO)

    logging.basicConfig(level=log_level, format=LOG_FORMAT)
    for handler in logging.getLogger().handlers:
        if not any(isinstance(f, RequestIdFilter) for f in handler.filters):
            handler.addFilter(RequestIdFilter())

    logging.getLogger("api.requests").setLevel(log_level)
    logging.getLogger("bikesafe").setLevel(log_level)
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)

    for noisy in ("httpx", "httpcore", "asyncio"):
        logging.getLogger(noisy).setLevel(logging.WARNING)
