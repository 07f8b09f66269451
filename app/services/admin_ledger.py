from __future__ import annotations

import logging
from decimal import Decimal

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.core.errors import Forbidden, ValidationError
from app.models.admin_user import AdminRole, AdminUser
from app.models.balance import BalanceTransaction, TransactionType
from app.services import ledger
from app.services.admin_audit import log_admin_action
from app.services.order_events import emit_balance_changed

logger = logging.getLogger(__name__)


def admin_credit(
    db: Session,
    *,
    tenant_id: int,
    amount,
    description: str | None,
    admin: AdminUser,
) -> BalanceTransaction:
    """Crédito manual do master admin, gravado no ledger e no log de auditoria."""
    if admin.role != AdminRole.MASTER_ADMIN.value:
        raise Forbidden("Only the platform admin can credit balances")
    amount = ledger.to_amount(amount)
    if amount <= Decimal("0"):
        raise ValidationError("Credit amount must be positive")
    description = (description or "").strip() or None

    transaction = ledger.append_transaction(
        db,
        tenant_id=tenant_id,
        amount=amount,
        transaction_type=TransactionType.ADMIN_CREDIT,
        description=description,
        actor_id=admin.id,
        commit=False,
    )
    log_admin_action(
        db,
        tenant_id=tenant_id,
        user_id=admin.id,
        action="balance_admin_credit",
        entity_type="balance_transaction",
        entity_id=transaction.id,
        meta={"amount": amount, "description": description},
    )
    try:
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        logger.exception("%s admin credit failed tenant_id=%s", ledger.LEDGER_PREFIX, tenant_id)
        raise
    db.refresh(transaction)
    logger.info(
        "%s admin credit tenant_id=%s admin_id=%s",
        ledger.LEDGER_PREFIX,
        tenant_id,
        admin.id,
        extra={"amount": amount, "transaction_type": TransactionType.ADMIN_CREDIT.value, "tenant_id": tenant_id},
    )
    emit_balance_changed(tenant_id)
    return transaction
