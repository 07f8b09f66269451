from __future__ import annotations

from decimal import Decimal
from typing import Optional

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from app.core.config import LOW_BALANCE_WARNING, MIN_ACCEPT_BALANCE, TRANSACTIONS_MAX_LIMIT
from app.core.database import get_db
from app.core.errors import DomainError, to_http_exception
from app.deps import OWNER_ROLES, STAFF_ROLES, require_role
from app.models.admin_user import AdminUser
from app.services import ledger
from app.services.order_gate import evaluate_order_acceptance, is_low_balance
from app.services.restaurants import get_restaurant

router = APIRouter(prefix="/api/restaurants/{tenant_id}/balance", tags=["balance"])


class RechargePayload(BaseModel):
    amount: Decimal = Field(..., gt=0, max_digits=12, decimal_places=2)
    payment_method: Optional[str] = Field(default=None, max_length=50)


def _balance_summary(db: Session, tenant_id: int) -> dict:
    restaurant = get_restaurant(db, tenant_id)
    decision = evaluate_order_acceptance(db, tenant_id)
    balance = decision.balance if decision.balance is not None else ledger.get_balance(db, tenant_id)
    return {
        "tenant_id": tenant_id,
        "balance": float(balance),
        "currency": restaurant.currency,
        "accepting_orders": decision.accepted,
        "rejection_reason": decision.reason.value if decision.reason else None,
        "is_low_balance": is_low_balance(balance),
        "min_accept_balance": float(MIN_ACCEPT_BALANCE),
        "low_balance_warning": float(LOW_BALANCE_WARNING),
    }


@router.get("")
def get_balance_summary(
    tenant_id: int,
    db: Session = Depends(get_db),
    _user: AdminUser = Depends(require_role(STAFF_ROLES)),
):
    try:
        return _balance_summary(db, tenant_id)
    except DomainError as exc:
        raise to_http_exception(exc) from exc


@router.get("/transactions")
def list_balance_transactions(
    tenant_id: int,
    limit: Optional[int] = Query(default=None, ge=1, le=TRANSACTIONS_MAX_LIMIT),
    db: Session = Depends(get_db),
    _user: AdminUser = Depends(require_role(OWNER_ROLES)),
):
    transactions = ledger.list_transactions(db, tenant_id, limit=limit)
    return [ledger.transaction_to_dict(transaction) for transaction in transactions]


@router.post("/recharge", status_code=201)
def recharge_balance(
    tenant_id: int,
    payload: RechargePayload,
    db: Session = Depends(get_db),
    user: AdminUser = Depends(require_role(OWNER_ROLES)),
):
    try:
        transaction = ledger.recharge(
            db,
            tenant_id=tenant_id,
            amount=payload.amount,
            payment_method=payload.payment_method,
            actor_id=user.id,
        )
        summary = _balance_summary(db, tenant_id)
    except DomainError as exc:
        raise to_http_exception(exc) from exc
    return {"transaction": ledger.transaction_to_dict(transaction), "balance": summary}
