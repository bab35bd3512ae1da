"""Per-request access log with the turn outcome attached.

One JSON object per request goes to the ``intake.access`` logger, so the
process log configuration decides where it ends up.
"""

from __future__ import annotations

import json
import logging
import time
from typing import Any, Awaitable, Callable, Dict

from starlette.requests import Request
from starlette.responses import Response

access_logger = logging.getLogger("intake.access")

# set on request.state by the turn endpoints
TURN_FIELDS = ("flow_state", "command", "replayed", "timed_out", "unavailable")


def turn_fields(request: Request) -> Dict[str, Any]:
    """Turn attributes the endpoint left on ``request.state``."""
    state = getattr(request, "state", None)
    if state is None:
        return {}
    return {k: getattr(state, k) for k in TURN_FIELDS if hasattr(state, k)}


def json_logger_middleware() -> Callable[[Request, Callable[[Request], Awaitable[Response]]], Awaitable[Response]]:
    async def _middleware(request: Request, call_next: Callable[[Request], Awaitable[Response]]) -> Response:
        started = time.perf_counter()
        status = 500
        try:
            response = await call_next(request)
            status = response.status_code
            return response
        finally:
            entry = {
                "method": request.method,
                "path": request.url.path,
                "status": status,
                "latency_ms": round((time.perf_counter() - started) * 1000.0, 2),
                **turn_fields(request),
            }
            level = logging.ERROR if status >= 500 else logging.INFO
            access_logger.log(level, json.dumps(entry, ensure_ascii=False))

    return _middleware
