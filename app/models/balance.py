import enum

from sqlalchemy import Column, DateTime, Enum, ForeignKey, Index, Integer, Numeric, String, func
from sqlalchemy.orm import relationship

from app.core.database import Base


class TransactionType(str, enum.Enum):
    RECHARGE = "recharge"
    ADMIN_CREDIT = "admin_credit"
    ORDER_DEDUCTION = "order_deduction"


CREDIT_TRANSACTION_TYPES = frozenset({TransactionType.RECHARGE, TransactionType.ADMIN_CREDIT})
DEBIT_TRANSACTION_TYPES = frozenset({TransactionType.ORDER_DEDUCTION})


class RestaurantBalance(Base):
    """Valor materializado; a fonte da verdade é ``balance_transactions``."""

    __tablename__ = "restaurant_balances"

    id = Column(Integer, primary_key=True)
    tenant_id = Column(Integer, ForeignKey("restaurants.id"), unique=True, index=True, nullable=False)
    current_balance = Column(Numeric(12, 2), nullable=False, default=0)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    restaurant = relationship("Restaurant", back_populates="balance")


class BalanceTransaction(Base):
    """Lançamento imutável do ledger (append-only)."""

    __tablename__ = "balance_transactions"
    __table_args__ = (Index("ix_balance_transactions_tenant_created", "tenant_id", "created_at"),)

    id = Column(Integer, primary_key=True)
    tenant_id = Column(Integer, ForeignKey("restaurants.id"), index=True, nullable=False)
    # positivo = crédito, negativo = débito
    amount = Column(Numeric(12, 2), nullable=False)
    transaction_type = Column(
        Enum(
            TransactionType,
            name="transaction_type",
            native_enum=False,
            values_callable=lambda members: [member.value for member in members],
        ),
        nullable=False,
    )
    description = Column(String(255), nullable=True)
    order_id = Column(Integer, ForeignKey("orders.id"), nullable=True)
    # nulo quando lançado pelo sistema
    created_by = Column(Integer, ForeignKey("admin_users.id"), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
