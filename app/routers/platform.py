from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Optional

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from app.core.config import TRANSACTIONS_MAX_LIMIT
from app.core.database import get_db
from app.core.errors import DomainError, to_http_exception
from app.deps import require_platform_admin
from app.models.admin_user import AdminUser
from app.services import ledger
from app.services.admin_audit import list_admin_actions, log_admin_action
from app.services.admin_ledger import admin_credit
from app.services.orders import list_all_orders, order_to_dict, parse_status, update_status
from app.services.restaurants import (
    get_restaurant,
    list_restaurants,
    platform_overview,
    restaurant_to_dict,
    set_restaurant_active,
)
from app.services.subscriptions import list_subscriptions, subscription_to_dict, update_subscription

router = APIRouter(prefix="/api/platform", tags=["platform"])


class RestaurantStatusUpdate(BaseModel):
    is_active: bool


class AdminCreditPayload(BaseModel):
    amount: Decimal = Field(..., gt=0, max_digits=12, decimal_places=2)
    description: Optional[str] = Field(default=None, max_length=255)


class SubscriptionUpdate(BaseModel):
    status: Optional[str] = None
    plan_name: Optional[str] = Field(None, min_length=1, max_length=50)
    current_period_end: Optional[datetime] = None


class OrderStatusUpdate(BaseModel):
    status: str


@router.get("/overview")
def get_overview(
    db: Session = Depends(get_db),
    _admin: AdminUser = Depends(require_platform_admin),
):
    return platform_overview(db)


@router.get("/restaurants")
def get_restaurants(
    db: Session = Depends(get_db),
    _admin: AdminUser = Depends(require_platform_admin),
):
    return list_restaurants(db)


@router.patch("/restaurants/{tenant_id}/status")
def patch_restaurant_status(
    tenant_id: int,
    payload: RestaurantStatusUpdate,
    db: Session = Depends(get_db),
    admin: AdminUser = Depends(require_platform_admin),
):
    try:
        restaurant = set_restaurant_active(db, tenant_id, payload.is_active, admin=admin)
    except DomainError as exc:
        raise to_http_exception(exc) from exc
    return restaurant_to_dict(restaurant)


@router.post("/restaurants/{tenant_id}/credit", status_code=201)
def credit_restaurant_balance(
    tenant_id: int,
    payload: AdminCreditPayload,
    db: Session = Depends(get_db),
    admin: AdminUser = Depends(require_platform_admin),
):
    try:
        transaction = admin_credit(
            db,
            tenant_id=tenant_id,
            amount=payload.amount,
            description=payload.description,
            admin=admin,
        )
    except DomainError as exc:
        raise to_http_exception(exc) from exc
    return {
        "transaction": ledger.transaction_to_dict(transaction),
        "balance": float(ledger.get_balance(db, tenant_id)),
    }


@router.get("/restaurants/{tenant_id}/transactions")
def get_restaurant_transactions(
    tenant_id: int,
    limit: Optional[int] = Query(default=None, ge=1, le=TRANSACTIONS_MAX_LIMIT),
    db: Session = Depends(get_db),
    _admin: AdminUser = Depends(require_platform_admin),
):
    try:
        get_restaurant(db, tenant_id)
    except DomainError as exc:
        raise to_http_exception(exc) from exc
    return [ledger.transaction_to_dict(tx) for tx in ledger.list_transactions(db, tenant_id, limit=limit)]


@router.post("/restaurants/{tenant_id}/reconcile")
def reconcile_restaurant_balance(
    tenant_id: int,
    db: Session = Depends(get_db),
    admin: AdminUser = Depends(require_platform_admin),
):
    try:
        previous, recomputed = ledger.recompute_balance(db, tenant_id)
    except DomainError as exc:
        raise to_http_exception(exc) from exc
    if previous != recomputed:
        log_admin_action(
            db,
            tenant_id=tenant_id,
            user_id=admin.id,
            action="balance_reconciled",
            entity_type="restaurant_balance",
            meta={"previous": previous, "recomputed": recomputed},
        )
        db.commit()
    return {
        "tenant_id": tenant_id,
        "previous_balance": float(previous),
        "balance": float(recomputed),
        "drift": float(recomputed - previous),
    }


@router.get("/subscriptions")
def get_subscriptions(
    db: Session = Depends(get_db),
    _admin: AdminUser = Depends(require_platform_admin),
):
    return [subscription_to_dict(subscription, name) for subscription, name in list_subscriptions(db)]


@router.patch("/subscriptions/{subscription_id}")
def patch_subscription(
    subscription_id: int,
    payload: SubscriptionUpdate,
    db: Session = Depends(get_db),
    admin: AdminUser = Depends(require_platform_admin),
):
    try:
        subscription = update_subscription(
            db,
            subscription_id,
            admin=admin,
            status=payload.status,
            plan_name=payload.plan_name,
            current_period_end=payload.current_period_end,
        )
    except DomainError as exc:
        raise to_http_exception(exc) from exc
    return subscription_to_dict(subscription)


@router.get("/orders")
def get_all_orders(
    status: Optional[str] = None,
    limit: int = Query(default=200, ge=1, le=1000),
    db: Session = Depends(get_db),
    _admin: AdminUser = Depends(require_platform_admin),
):
    try:
        status_filter = parse_status(status) if status else None
    except DomainError as exc:
        raise to_http_exception(exc) from exc
    rows = list_all_orders(db, status=status_filter, limit=limit)
    return [{**order_to_dict(order, include_items=False), "restaurant_name": name} for order, name in rows]


@router.patch("/orders/{order_id}/status")
def patch_any_order_status(
    order_id: int,
    payload: OrderStatusUpdate,
    db: Session = Depends(get_db),
    admin: AdminUser = Depends(require_platform_admin),
):
    try:
        order = update_status(db, order_id=order_id, new_status=payload.status, actor=admin)
    except DomainError as exc:
        raise to_http_exception(exc) from exc
    return order_to_dict(order)


@router.get("/audit-log")
def get_audit_log(
    tenant_id: Optional[int] = None,
    limit: int = Query(default=100, ge=1, le=500),
    db: Session = Depends(get_db),
    _admin: AdminUser = Depends(require_platform_admin),
):
    return [
        {
            "id": entry.id,
            "tenant_id": entry.tenant_id,
            "user_id": entry.user_id,
            "action": entry.action,
            "entity_type": entry.entity_type,
            "entity_id": entry.entity_id,
            "meta_json": entry.meta_json,
            "created_at": entry.created_at.isoformat() if entry.created_at else None,
        }
        for entry in list_admin_actions(db, tenant_id=tenant_id, limit=limit)
    ]
