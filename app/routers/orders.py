from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel
from sqlalchemy.orm import Session

from app.core.database import get_db
from app.core.errors import DomainError, to_http_exception
from app.deps import STAFF_ROLES, require_role
from app.models.admin_user import AdminUser
from app.services.event_handlers import change_versions
from app.services.orders import get_order, list_orders_for_tenant, order_to_dict, parse_status, update_status

router = APIRouter(prefix="/api/restaurants/{tenant_id}", tags=["orders"])


class OrderStatusUpdate(BaseModel):
    status: str


@router.get("/orders")
def list_orders(
    tenant_id: int,
    status: Optional[str] = None,
    limit: int = Query(default=100, ge=1, le=500),
    db: Session = Depends(get_db),
    _user: AdminUser = Depends(require_role(STAFF_ROLES)),
):
    try:
        status_filter = parse_status(status) if status else None
    except DomainError as exc:
        raise to_http_exception(exc) from exc
    orders = list_orders_for_tenant(db, tenant_id, status=status_filter, limit=limit)
    return [order_to_dict(order) for order in orders]


@router.get("/orders/{order_id}")
def get_order_detail(
    tenant_id: int,
    order_id: int,
    db: Session = Depends(get_db),
    _user: AdminUser = Depends(require_role(STAFF_ROLES)),
):
    try:
        order = get_order(db, order_id, tenant_id=tenant_id)
    except DomainError as exc:
        raise to_http_exception(exc) from exc
    return order_to_dict(order)


@router.patch("/orders/{order_id}/status")
def change_order_status(
    tenant_id: int,
    order_id: int,
    payload: OrderStatusUpdate,
    db: Session = Depends(get_db),
    user: AdminUser = Depends(require_role(STAFF_ROLES)),
):
    try:
        order = update_status(db, order_id=order_id, new_status=payload.status, actor=user, tenant_id=tenant_id)
    except DomainError as exc:
        raise to_http_exception(exc) from exc
    return order_to_dict(order)


@router.get("/changes")
def get_change_versions(
    tenant_id: int,
    _user: AdminUser = Depends(require_role(STAFF_ROLES)),
):
    """Versões de ``orders`` e ``restaurant_balances``; o painel refaz o fetch quando mudam."""
    return change_versions.for_tenant(tenant_id)
