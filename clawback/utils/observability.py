"""Request correlation helpers shared by the middleware and endpoints."""
from __future__ import annotations
import uuid
from typing import Any, Mapping

REQUEST_ID_HEADER = "X-Request-ID"
UNKNOWN_REQUEST_ID = "unknown"

def ensure_request_id(headers: Mapping[str, str]) -> str:
    """Reuse the caller's correlation id when supplied, otherwise mint one."""
    return headers.get(REQUEST_ID_HEADER, None) or str(uuid.uuid4())

def current_request_id(request: Any) -> str:
    """Id stored on ``request.state`` by the request context middleware."""
    return getattr(request.state, "request_id", UNKNOWN_REQUEST_ID)

__all__ = ["ensure_request_id", "current_request_id", "REQUEST_ID_HEADER", "UNKNOWN_REQUEST_ID"]
