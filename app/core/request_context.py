from __future__ import annotations

from contextvars import ContextVar
from dataclasses import dataclass


@dataclass(frozen=True)
class RequestContext:
    request_id: str | None = None
    tenant_id: str | None = None
    actor_id: str | None = None


_CONTEXT: ContextVar[RequestContext] = ContextVar("request_context", default=RequestContext())


def set_request_context(
    *, request_id: str | None = None, tenant_id: str | None = None, actor_id: str | None = None
) -> None:
    current = _CONTEXT.get()
    _CONTEXT.set(
        RequestContext(
            request_id=request_id if request_id is not None else current.request_id,
            tenant_id=tenant_id if tenant_id is not None else current.tenant_id,
            actor_id=actor_id if actor_id is not None else current.actor_id,
        )
    )


def get_request_context() -> RequestContext:
    return _CONTEXT.get()


def clear_request_context() -> None:
    _CONTEXT.set(RequestContext())
