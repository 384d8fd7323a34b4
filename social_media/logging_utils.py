import json
import logging
import time
import uuid
from datetime import datetime, timezone
from typing import Any, Callable

from fastapi import Request, Response

from .config import settings
from .metrics import inc_http_request, observe_latency_ms


logger = logging.getLogger("social_media")
logger.setLevel(settings.LOG_LEVEL)
if not logger.handlers:
    handler = logging.StreamHandler()
    handler.setLevel(settings.LOG_LEVEL)
    logger.addHandler(handler)


def iso_now() -> str:
    return datetime.now(timezone.utc).isoformat()


def log_event(level: str, **fields: Any) -> None:
    """Emit one JSON log line at the given level name."""
    record = {"ts": iso_now(), "level": level}
    record.update(fields)
    logger.log(getattr(logging, level.upper(), logging.INFO), json.dumps(record, default=str))


def route_label(request: Request) -> str:
    """Route template such as ``/messages/{message_id}``, so metric labels stay bounded."""
    route = request.scope.get("route")
    return getattr(route, "path", None) or "unmatched"


async def logging_middleware(request: Request, call_next: Callable) -> Response:
    request_id = str(uuid.uuid4())
    start = time.perf_counter()

    # handlers add outcome fields here
    request.state.request_id = request_id
    request.state.log_extra = {}

    response: Response
    try:
        response = await call_next(request)
    except Exception:
        latency_ms = (time.perf_counter() - start) * 1000.0
        inc_http_request(route_label(request), 500)
        log_event(
            "error",
            request_id=request_id,
            method=request.method,
            path=request.url.path,
            status=500,
            latency_ms=round(latency_ms, 2),
        )
        raise

    latency_ms = (time.perf_counter() - start) * 1000.0
    status_code = response.status_code

    inc_http_request(route_label(request), status_code)
    observe_latency_ms(latency_ms)

    log = {
        "request_id": request_id,
        "method": request.method,
        "path": request.url.path,
        "status": status_code,
        "latency_ms": round(latency_ms, 2),
    }

    if isinstance(getattr(request.state, "log_extra", None), dict):
        log.update(request.state.log_extra)

    log_event("info", **log)
    return response
