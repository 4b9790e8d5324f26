"""Per-request context shared by the middleware, the routing services and logging.

The request id and the list of provider call durations live in context
variables, so code running under a request (including the concurrent pool
fetches) can log and time itself without being handed the request object.
"""

import contextvars
import logging
from contextlib import contextmanager
from typing import Iterator, List, Optional

NO_REQUEST_ID = "-"

_request_id: contextvars.ContextVar[str] = contextvars.ContextVar(
    "bikesafe_request_id",
    default=NO_REQUEST_ID,
)
_provider_calls_ms: contextvars.ContextVar[Optional[List[float]]] = contextvars.ContextVar(
    "bikesafe_provider_calls_ms",
    default=None,
)


def current_request_id() -> str:
    return _request_id.get()


@contextmanager
def request_scope(request_id: str) -> Iterator[List[float]]:
    """Bind ``request_id`` for the duration of a request.

    Yields the list that provider calls made inside the scope append their
    durations (milliseconds) to.
    """
    provider_calls: List[float] = []
    id_token = _request_id.set(request_id)
    calls_token = _provider_calls_ms.set(provider_calls)
    try:
        yield provider_calls
    finally:
        _provider_calls_ms.reset(calls_token)
        _request_id.reset(id_token)


def record_provider_call(duration_ms: float):
    """Add one provider round trip to the current request; no-op outside a request."""
    provider_calls = _provider_calls_ms.get()
    if provider_calls is not None:
        provider_calls.append(duration_ms)


class RequestIdFilter(logging.Filter):
    """Stamps every record with the id of the request it was logged under."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.request_id = _request_id.get()
        return True
