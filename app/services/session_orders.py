from __future__ import annotations

import logging
from typing import Iterable

from fastapi import Request, Response
from itsdangerous import BadSignature, SignatureExpired, URLSafeTimedSerializer

from app.core.config import (
    SESSION_ORDERS_MAX,
    SESSION_ORDERS_MAX_AGE_SECONDS,
    SESSION_ORDERS_SECRET,
)
from app.services.admin_auth import build_cookie_options

logger = logging.getLogger(__name__)

SESSION_ORDERS_COOKIE = "session_orders"
_SALT = "session-orders"


class SessionOrderTracker:
    """Pedidos feitos neste navegador; é a única credencial do cliente anônimo."""

    def __init__(self, order_ids: Iterable[int] = (), max_orders: int | None = None) -> None:
        self._max_orders = max_orders or SESSION_ORDERS_MAX
        self._order_ids: list[int] = []
        for order_id in order_ids:
            self.record_order(order_id)

    def record_order(self, order_id: int) -> None:
        order_id = int(order_id)
        if order_id in self._order_ids:
            return
        self._order_ids.append(order_id)
        # mantém só os mais recentes
        if len(self._order_ids) > self._max_orders:
            self._order_ids = self._order_ids[-self._max_orders :]

    def list_session_orders(self) -> frozenset[int]:
        return frozenset(self._order_ids)

    def owns(self, order_id: int) -> bool:
        return order_id in self._order_ids

    def as_list(self) -> list[int]:
        return list(self._order_ids)

    def __len__(self) -> int:
        return len(self._order_ids)


def _get_serializer() -> URLSafeTimedSerializer:
    if not SESSION_ORDERS_SECRET:
        raise RuntimeError("SESSION_ORDERS_SECRET não configurado")
    return URLSafeTimedSerializer(SESSION_ORDERS_SECRET, salt=_SALT)


def dump_tracker(tracker: SessionOrderTracker) -> str:
    return _get_serializer().dumps({"orders": tracker.as_list()})


def load_tracker(token: str | None) -> SessionOrderTracker:
    if not token:
        return SessionOrderTracker()
    try:
        data = _get_serializer().loads(token, max_age=SESSION_ORDERS_MAX_AGE_SECONDS)
    except SignatureExpired:
        return SessionOrderTracker()
    except BadSignature:
        logger.info("session_orders cookie with invalid signature ignored")
        return SessionOrderTracker()
    orders = data.get("orders") if isinstance(data, dict) else None
    if not isinstance(orders, list):
        return SessionOrderTracker()
    return SessionOrderTracker(order_id for order_id in orders if isinstance(order_id, int))


def tracker_from_request(request: Request) -> SessionOrderTracker:
    return load_tracker(request.cookies.get(SESSION_ORDERS_COOKIE))


def store_tracker(response: Response, tracker: SessionOrderTracker, request: Request | None = None) -> None:
    response.set_cookie(
        SESSION_ORDERS_COOKIE,
        dump_tracker(tracker),
        max_age=SESSION_ORDERS_MAX_AGE_SECONDS,
        **build_cookie_options(request),
    )
