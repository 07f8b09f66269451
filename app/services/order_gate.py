from __future__ import annotations

import logging
from dataclasses import dataclass
from decimal import Decimal

from sqlalchemy.orm import Session

from app.core.config import LOW_BALANCE_WARNING, MIN_ACCEPT_BALANCE, ORDER_DEDUCTION_AMOUNT
from app.core.errors import NotFound, OrderRejected, RejectionReason
from app.models.balance import BalanceTransaction
from app.models.restaurant import Restaurant
from app.services import ledger

logger = logging.getLogger(__name__)
GATE_PREFIX = "[GATE]"


@dataclass(frozen=True)
class GateDecision:
    accepted: bool
    reason: RejectionReason | None = None
    balance: Decimal | None = None


def acceptance_threshold() -> Decimal:
    return MIN_ACCEPT_BALANCE


def order_fee() -> Decimal:
    return ORDER_DEDUCTION_AMOUNT


def is_low_balance(balance: Decimal) -> bool:
    return balance < LOW_BALANCE_WARNING


def evaluate_order_acceptance(db: Session, tenant_id: int) -> GateDecision:
    """Leitura consultiva, usada pela UI; a decisão real é tomada no insert."""
    restaurant = db.query(Restaurant).filter(Restaurant.id == tenant_id).first()
    if not restaurant:
        raise NotFound("Restaurant not found")
    balance = ledger.get_balance(db, tenant_id)
    if not restaurant.is_active:
        return GateDecision(accepted=False, reason=RejectionReason.INACTIVE, balance=balance)
    if balance < acceptance_threshold():
        return GateDecision(accepted=False, reason=RejectionReason.LOW_BALANCE, balance=balance)
    return GateDecision(accepted=True, balance=balance)


def can_accept_orders(db: Session, tenant_id: int) -> bool:
    try:
        return evaluate_order_acceptance(db, tenant_id).accepted
    except NotFound:
        return False


def admit_order(db: Session, restaurant: Restaurant) -> Decimal:
    """Autoriza um novo pedido dentro da transação corrente.

    Retorna a taxa reservada (pode ser zero). Levanta ``OrderRejected`` sem
    escrever nada quando o restaurante não pode aceitar o pedido.
    """
    if not restaurant.is_active:
        raise OrderRejected(RejectionReason.INACTIVE)

    fee = order_fee()
    threshold = acceptance_threshold()
    if not ledger.reserve_order_fee(db, tenant_id=restaurant.id, fee=fee, threshold=threshold):
        logger.info(
            "%s rejected order tenant_id=%s reason=low_balance threshold=%s",
            GATE_PREFIX,
            restaurant.id,
            threshold,
        )
        raise OrderRejected(RejectionReason.LOW_BALANCE)
    return fee


def record_admitted_order(db: Session, *, tenant_id: int, order_id: int, fee: Decimal) -> BalanceTransaction | None:
    if fee <= 0:
        return None
    return ledger.record_order_deduction(db, tenant_id=tenant_id, order_id=order_id, fee=fee)
