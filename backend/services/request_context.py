from __future__ import annotations

import contextvars
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone

TRACE_HEADER = "X-Trace-Id"
_MAX_TRACE_ID_LENGTH = 128


def _now_utc() -> datetime:
    return datetime.now(timezone.utc)


def new_trace_id() -> str:
    return str(uuid.uuid4())


def normalize_trace_id(raw: str | None) -> str:
    """Use the caller's trace id when it looks sane, otherwise mint a fresh one."""
    value = str(raw or "").strip()
    if not value or len(value) > _MAX_TRACE_ID_LENGTH or not value.isprintable():
        return new_trace_id()
    return value


@dataclass
class RequestScope:
    trace_id: str
    path: str
    method: str
    started_at: datetime = field(default_factory=_now_utc)
    user_id: int | None = None
    db_query_count: int = 0
    db_query_time_ms: float = 0.0


_request_scope_var: contextvars.ContextVar[RequestScope | None] = contextvars.ContextVar(
    "request_scope",
    default=None,
)


def start_request_scope(path: str, method: str, trace_id: str | None = None) -> RequestScope:
    scope = RequestScope(trace_id=normalize_trace_id(trace_id), path=path, method=method)
    _request_scope_var.set(scope)
    return scope


def current_trace_id() -> str | None:
    scope = _request_scope_var.get()
    return scope.trace_id if scope else None


def consume_request_scope() -> RequestScope | None:
    scope = _request_scope_var.get()
    _request_scope_var.set(None)
    return scope


def set_request_user(user_id: int) -> None:
    scope = _request_scope_var.get()
    if not scope:
        return
    scope.user_id = int(user_id)


def add_request_db_query(duration_ms: float) -> None:
    scope = _request_scope_var.get()
    if not scope:
        return
    scope.db_query_count += 1
    scope.db_query_time_ms += max(float(duration_ms), 0.0)
