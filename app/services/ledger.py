"""Ledger de saldo pré-pago.

Todo movimento de saldo passa por aqui. ``balance_transactions`` é a fonte da
verdade; ``restaurant_balances.current_balance`` é mantido na mesma transação
por incremento atômico no banco, nunca por read-modify-write.
"""

from __future__ import annotations

import logging
from decimal import Decimal, InvalidOperation

from sqlalchemy import func, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.core.config import (
    RECHARGE_MAX_AMOUNT,
    RECHARGE_MIN_AMOUNT,
    TRANSACTIONS_DEFAULT_LIMIT,
    TRANSACTIONS_MAX_LIMIT,
)
from app.core.errors import NotFound, ValidationError
from app.models.balance import (
    CREDIT_TRANSACTION_TYPES,
    DEBIT_TRANSACTION_TYPES,
    BalanceTransaction,
    RestaurantBalance,
    TransactionType,
)
from app.models.restaurant import Restaurant
from app.services.order_events import emit_balance_changed

logger = logging.getLogger(__name__)
LEDGER_PREFIX = "[LEDGER]"

CENTS = Decimal("0.01")
ZERO = Decimal("0")
# maior valor que cabe em Numeric(12, 2)
MAX_AMOUNT = Decimal("9999999999.99")


def to_amount(value) -> Decimal:
    if isinstance(value, bool):
        raise ValidationError("Amount must be a number")
    try:
        amount = Decimal(str(value))
    except (InvalidOperation, ValueError, TypeError):
        raise ValidationError("Amount must be a number") from None
    if not amount.is_finite():
        raise ValidationError("Amount must be a number")
    if abs(amount) > MAX_AMOUNT:
        raise ValidationError(f"Amount must be at most {MAX_AMOUNT}")
    try:
        return amount.quantize(CENTS)
    except InvalidOperation:
        raise ValidationError("Amount must be a number") from None


def _validate_signed_amount(amount: Decimal, transaction_type: TransactionType) -> None:
    if amount == ZERO:
        raise ValidationError("Amount must not be zero")
    if transaction_type in CREDIT_TRANSACTION_TYPES and amount < ZERO:
        raise ValidationError(f"{transaction_type.value} must be a positive amount")
    if transaction_type in DEBIT_TRANSACTION_TYPES and amount > ZERO:
        raise ValidationError(f"{transaction_type.value} must be a negative amount")


def _get_restaurant(db: Session, tenant_id: int) -> Restaurant:
    restaurant = db.query(Restaurant).filter(Restaurant.id == tenant_id).first()
    if not restaurant:
        raise NotFound("Restaurant not found")
    return restaurant


def ensure_balance_row(db: Session, tenant_id: int) -> RestaurantBalance:
    balance = db.query(RestaurantBalance).filter(RestaurantBalance.tenant_id == tenant_id).first()
    if balance is None:
        balance = RestaurantBalance(tenant_id=tenant_id, current_balance=ZERO)
        db.add(balance)
        db.flush()
    return balance


def _apply_delta(db: Session, tenant_id: int, amount: Decimal) -> None:
    db.execute(
        update(RestaurantBalance)
        .where(RestaurantBalance.tenant_id == tenant_id)
        .values(current_balance=RestaurantBalance.current_balance + amount, updated_at=func.now())
        .execution_options(synchronize_session=False)
    )


def append_transaction(
    db: Session,
    *,
    tenant_id: int,
    amount,
    transaction_type: TransactionType | str,
    description: str | None = None,
    actor_id: int | None = None,
    order_id: int | None = None,
    commit: bool = True,
) -> BalanceTransaction:
    """Grava um lançamento e ajusta o saldo materializado.

    Com ``commit=False`` o chamador é responsável por commitar (e por emitir o
    evento de saldo), permitindo juntar o lançamento a outras escritas.
    """
    try:
        transaction_type = TransactionType(transaction_type)
    except ValueError:
        raise ValidationError(f"Unknown transaction type: {transaction_type}") from None
    amount = to_amount(amount)
    _validate_signed_amount(amount, transaction_type)
    _get_restaurant(db, tenant_id)
    ensure_balance_row(db, tenant_id)

    transaction = BalanceTransaction(
        tenant_id=tenant_id,
        amount=amount,
        transaction_type=transaction_type,
        description=(description or "").strip()[:255] or None,
        order_id=order_id,
        created_by=actor_id,
    )
    db.add(transaction)
    _apply_delta(db, tenant_id, amount)

    if not commit:
        db.flush()
        return transaction

    try:
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        logger.exception("%s failed to append transaction tenant_id=%s", LEDGER_PREFIX, tenant_id)
        raise
    db.refresh(transaction)
    logger.info(
        "%s appended %s tenant_id=%s",
        LEDGER_PREFIX,
        transaction_type.value,
        tenant_id,
        extra={"amount": amount, "transaction_type": transaction_type.value, "tenant_id": tenant_id},
    )
    emit_balance_changed(tenant_id)
    return transaction


def get_balance(db: Session, tenant_id: int) -> Decimal:
    value = (
        db.query(RestaurantBalance.current_balance)
        .filter(RestaurantBalance.tenant_id == tenant_id)
        .scalar()
    )
    if value is None:
        return ZERO
    return Decimal(str(value)).quantize(CENTS)


def ledger_sum(db: Session, tenant_id: int) -> Decimal:
    value = (
        db.query(func.coalesce(func.sum(BalanceTransaction.amount), 0))
        .filter(BalanceTransaction.tenant_id == tenant_id)
        .scalar()
    )
    return Decimal(str(value or 0)).quantize(CENTS)


def clamp_limit(limit: int | None) -> int:
    if limit is None:
        return TRANSACTIONS_DEFAULT_LIMIT
    return max(1, min(int(limit), TRANSACTIONS_MAX_LIMIT))


def list_transactions(db: Session, tenant_id: int, limit: int | None = None) -> list[BalanceTransaction]:
    return (
        db.query(BalanceTransaction)
        .filter(BalanceTransaction.tenant_id == tenant_id)
        .order_by(BalanceTransaction.created_at.desc(), BalanceTransaction.id.desc())
        .limit(clamp_limit(limit))
        .all()
    )


def recompute_balance(db: Session, tenant_id: int) -> tuple[Decimal, Decimal]:
    """Realinha o saldo materializado com a soma do ledger.

    Retorna ``(anterior, recalculado)``.
    """
    _get_restaurant(db, tenant_id)
    balance = ensure_balance_row(db, tenant_id)
    previous = Decimal(str(balance.current_balance or 0)).quantize(CENTS)
    recomputed = ledger_sum(db, tenant_id)
    if previous != recomputed:
        logger.warning(
            "%s drift detected tenant_id=%s materialized=%s ledger=%s",
            LEDGER_PREFIX,
            tenant_id,
            previous,
            recomputed,
        )
        db.execute(
            update(RestaurantBalance)
            .where(RestaurantBalance.tenant_id == tenant_id)
            .values(current_balance=recomputed, updated_at=func.now())
            .execution_options(synchronize_session=False)
        )
    try:
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        raise
    if previous != recomputed:
        emit_balance_changed(tenant_id)
    return previous, recomputed


def recharge(
    db: Session,
    *,
    tenant_id: int,
    amount,
    payment_method: str | None = None,
    actor_id: int | None = None,
) -> BalanceTransaction:
    amount = to_amount(amount)
    if amount < RECHARGE_MIN_AMOUNT:
        raise ValidationError(f"Minimum recharge is {RECHARGE_MIN_AMOUNT}")
    if amount > RECHARGE_MAX_AMOUNT:
        raise ValidationError(f"Maximum recharge is {RECHARGE_MAX_AMOUNT}")
    method = (payment_method or "").strip()
    description = f"Recharge via {method}" if method else "Recharge"
    return append_transaction(
        db,
        tenant_id=tenant_id,
        amount=amount,
        transaction_type=TransactionType.RECHARGE,
        description=description,
        actor_id=actor_id,
    )


def reserve_order_fee(db: Session, *, tenant_id: int, fee: Decimal, threshold: Decimal) -> bool:
    """Checa o limite e desconta a taxa do pedido num único UPDATE condicional.

    Retorna ``False`` se o saldo não atinge ``threshold`` (nenhuma linha
    alterada). Deve rodar na mesma transação que insere o pedido e o
    lançamento de ``record_order_deduction``.
    """
    result = db.execute(
        update(RestaurantBalance)
        .where(
            RestaurantBalance.tenant_id == tenant_id,
            RestaurantBalance.current_balance >= threshold,
        )
        .values(current_balance=RestaurantBalance.current_balance - fee, updated_at=func.now())
        .execution_options(synchronize_session=False)
    )
    return result.rowcount == 1


def record_order_deduction(db: Session, *, tenant_id: int, order_id: int, fee: Decimal) -> BalanceTransaction:
    transaction = BalanceTransaction(
        tenant_id=tenant_id,
        amount=-fee,
        transaction_type=TransactionType.ORDER_DEDUCTION,
        description=f"Order #{order_id}",
        order_id=order_id,
    )
    db.add(transaction)
    return transaction


def transaction_to_dict(transaction: BalanceTransaction) -> dict:
    return {
        "id": transaction.id,
        "tenant_id": transaction.tenant_id,
        "amount": float(transaction.amount),
        "transaction_type": TransactionType(transaction.transaction_type).value,
        "description": transaction.description,
        "order_id": transaction.order_id,
        "created_by": transaction.created_by,
        "created_at": transaction.created_at.isoformat() if transaction.created_at else None,
    }
