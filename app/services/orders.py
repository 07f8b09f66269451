"""Ciclo de vida do pedido: criação com checagem de saldo, status e cancelamento."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal
from typing import Iterable, Optional, Sequence

from sqlalchemy import func, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, selectinload

from app.core.errors import InvalidTransition, NotFound, OrderRejected, ValidationError
from app.core.metrics import order_outcomes
from app.models.admin_user import AdminUser
from app.models.menu_item import MenuItem
from app.models.order import ACTIVE_STATUSES, TERMINAL_STATUSES, Order, OrderStatus
from app.models.order_item import OrderItem
from app.models.restaurant import Restaurant
from app.models.restaurant_table import RestaurantTable
from app.services.admin_audit import log_admin_action
from app.services.order_events import emit_balance_changed, emit_order_created, emit_order_status_changed
from app.services.order_gate import admit_order, record_admitted_order
from app.services.session_orders import SessionOrderTracker

logger = logging.getLogger(__name__)
ORDERS_PREFIX = "[ORDERS]"

CENTS = Decimal("0.01")
MAX_QUANTITY_PER_LINE = 99

# status terminais não saem do lugar; nada volta para pending
ALLOWED_TRANSITIONS: dict[OrderStatus, frozenset[OrderStatus]] = {
    status: frozenset(set(OrderStatus) - {status, OrderStatus.PENDING}) for status in ACTIVE_STATUSES
}
ALLOWED_TRANSITIONS.update({status: frozenset() for status in TERMINAL_STATUSES})


@dataclass(frozen=True)
class LineItemRequest:
    menu_item_id: int
    quantity: int


@dataclass
class CancelledOrderBill:
    order_id: int
    tenant_id: int
    restaurant_name: str
    currency: str
    items: list[dict] = field(default_factory=list)
    total_amount: Decimal = Decimal("0")
    cancelled_at: Optional[datetime] = None

    def as_dict(self) -> dict:
        return {
            "order_id": self.order_id,
            "tenant_id": self.tenant_id,
            "restaurant_name": self.restaurant_name,
            "currency": self.currency,
            "items": self.items,
            "total_amount": float(self.total_amount),
            "status": OrderStatus.CANCELLED.value,
            "cancelled_at": self.cancelled_at.isoformat() if self.cancelled_at else None,
        }


def is_transition_allowed(current: OrderStatus, new_status: OrderStatus) -> bool:
    return new_status in ALLOWED_TRANSITIONS.get(current, frozenset())


def parse_status(value) -> OrderStatus:
    try:
        return OrderStatus(value)
    except ValueError:
        raise ValidationError(f"Unknown order status: {value}") from None


def _to_decimal(value) -> Decimal:
    return Decimal(str(value or 0)).quantize(CENTS)


def _validate_line_items(line_items: Sequence[LineItemRequest]) -> None:
    if not line_items:
        raise ValidationError("An order needs at least one item")
    for line in line_items:
        if not isinstance(line.quantity, int) or isinstance(line.quantity, bool) or line.quantity < 1:
            raise ValidationError("Item quantity must be a positive integer")
        if line.quantity > MAX_QUANTITY_PER_LINE:
            raise ValidationError(f"Item quantity must be at most {MAX_QUANTITY_PER_LINE}")


def _resolve_line_items(
    db: Session, tenant_id: int, line_items: Sequence[LineItemRequest]
) -> tuple[list[dict], Decimal]:
    ids = {line.menu_item_id for line in line_items}
    menu_items = {
        item.id: item
        for item in db.query(MenuItem)
        .filter(MenuItem.tenant_id == tenant_id, MenuItem.id.in_(ids))
        .all()
    }
    resolved = []
    total = Decimal("0")
    for line in line_items:
        menu_item = menu_items.get(line.menu_item_id)
        if menu_item is None or not menu_item.is_available:
            raise ValidationError(f"Menu item {line.menu_item_id} is not available")
        price = _to_decimal(menu_item.price)
        total += price * line.quantity
        resolved.append(
            {
                "menu_item_id": menu_item.id,
                "name": menu_item.name,
                "price": price,
                "quantity": line.quantity,
            }
        )
    return resolved, total.quantize(CENTS)


def _resolve_table_id(db: Session, tenant_id: int, table_id: Optional[int]) -> Optional[int]:
    if table_id is None:
        return None
    table = (
        db.query(RestaurantTable.id)
        .filter(
            RestaurantTable.id == table_id,
            RestaurantTable.tenant_id == tenant_id,
            RestaurantTable.is_active.is_(True),
        )
        .first()
    )
    if table is None:
        logger.info("%s unknown table dropped tenant_id=%s table_id=%s", ORDERS_PREFIX, tenant_id, table_id)
        return None
    return table_id


def _clean_text(value: Optional[str], limit: int) -> Optional[str]:
    value = (value or "").strip()
    return value[:limit] or None


def create_order(
    db: Session,
    *,
    tenant_id: int,
    line_items: Sequence[LineItemRequest],
    table_id: Optional[int] = None,
    customer_name: Optional[str] = None,
    customer_phone: Optional[str] = None,
    notes: Optional[str] = None,
    tracker: Optional[SessionOrderTracker] = None,
) -> Order:
    """Cria o pedido de forma atômica.

    Checagem de saldo, débito da taxa, pedido, itens e lançamento no ledger são
    commitados juntos; qualquer falha desfaz tudo.
    """
    _validate_line_items(line_items)

    restaurant = db.query(Restaurant).filter(Restaurant.id == tenant_id).first()
    if not restaurant:
        raise NotFound("Restaurant not found")

    resolved, total = _resolve_line_items(db, tenant_id, line_items)
    resolved_table_id = _resolve_table_id(db, tenant_id, table_id)

    try:
        fee = admit_order(db, restaurant)
        order = Order(
            tenant_id=tenant_id,
            table_id=resolved_table_id,
            customer_name=_clean_text(customer_name, 120),
            customer_phone=_clean_text(customer_phone, 30),
            notes=_clean_text(notes, 1000),
            total_amount=total,
            status=OrderStatus.PENDING,
        )
        db.add(order)
        db.flush()
        for line in resolved:
            db.add(OrderItem(order_id=order.id, **line))
        deduction = record_admitted_order(db, tenant_id=tenant_id, order_id=order.id, fee=fee)
        db.commit()
    except OrderRejected as exc:
        db.rollback()
        order_outcomes.incr(f"rejected_{exc.reason.value}")
        raise
    except SQLAlchemyError:
        db.rollback()
        order_outcomes.incr("failed")
        logger.exception("%s failed to create order tenant_id=%s", ORDERS_PREFIX, tenant_id)
        raise

    db.refresh(order)
    order_outcomes.incr("accepted")
    logger.info(
        "%s order created tenant_id=%s order_id=%s",
        ORDERS_PREFIX,
        tenant_id,
        order.id,
        extra={"order_id": order.id, "amount": total, "tenant_id": tenant_id},
    )
    if tracker is not None:
        tracker.record_order(order.id)
    emit_order_created(order)
    if deduction is not None:
        emit_balance_changed(tenant_id)
    return order


def _compare_and_set_status(db: Session, order: Order, expected: OrderStatus, new_status: OrderStatus) -> bool:
    result = db.execute(
        update(Order)
        .where(Order.id == order.id, Order.status == expected)
        .values(status=new_status, updated_at=func.now())
        .execution_options(synchronize_session=False)
    )
    return result.rowcount == 1


def update_status(
    db: Session,
    *,
    order_id: int,
    new_status,
    actor: Optional[AdminUser] = None,
    tenant_id: Optional[int] = None,
) -> Order:
    new_status = parse_status(new_status)
    order = get_order(db, order_id, tenant_id=tenant_id)
    previous = OrderStatus(order.status)
    if previous == new_status:
        return order
    if not is_transition_allowed(previous, new_status):
        raise InvalidTransition(f"Cannot change order from {previous.value} to {new_status.value}")

    if not _compare_and_set_status(db, order, previous, new_status):
        db.rollback()
        raise InvalidTransition("Order was changed by someone else, reload and try again")

    log_admin_action(
        db,
        tenant_id=order.tenant_id,
        user_id=actor.id if actor else None,
        action="order_status_changed",
        entity_type="order",
        entity_id=order.id,
        meta={"from": previous.value, "to": new_status.value},
    )
    try:
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        raise
    db.refresh(order)
    logger.info(
        "%s status %s -> %s order_id=%s",
        ORDERS_PREFIX,
        previous.value,
        new_status.value,
        order.id,
        extra={"order_id": order.id, "tenant_id": order.tenant_id},
    )
    emit_order_status_changed(order, previous)
    return order


def customer_cancel(db: Session, *, order_id: int, tracker: SessionOrderTracker) -> CancelledOrderBill:
    # pedido de outra sessão responde igual a pedido inexistente
    if not tracker.owns(order_id):
        raise NotFound("Order not found")
    order = get_order(db, order_id)
    if OrderStatus(order.status) != OrderStatus.PENDING:
        raise InvalidTransition("Only pending orders can be cancelled")

    if not _compare_and_set_status(db, order, OrderStatus.PENDING, OrderStatus.CANCELLED):
        db.rollback()
        raise InvalidTransition("Only pending orders can be cancelled")
    try:
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        raise
    db.refresh(order)
    logger.info("%s cancelled by customer order_id=%s", ORDERS_PREFIX, order.id, extra={"order_id": order.id})
    emit_order_status_changed(order, OrderStatus.PENDING)
    return build_cancelled_bill(db, order)


def build_cancelled_bill(db: Session, order: Order) -> CancelledOrderBill:
    restaurant = db.query(Restaurant).filter(Restaurant.id == order.tenant_id).first()
    return CancelledOrderBill(
        order_id=order.id,
        tenant_id=order.tenant_id,
        restaurant_name=restaurant.name if restaurant else "",
        currency=restaurant.currency if restaurant else "",
        items=[_item_to_dict(item) for item in order.order_items],
        total_amount=_to_decimal(order.total_amount),
        cancelled_at=order.updated_at or datetime.now(timezone.utc),
    )


def get_order(db: Session, order_id: int, tenant_id: Optional[int] = None) -> Order:
    query = db.query(Order).options(selectinload(Order.order_items)).filter(Order.id == order_id)
    if tenant_id is not None:
        query = query.filter(Order.tenant_id == tenant_id)
    order = query.first()
    if not order:
        raise NotFound("Order not found")
    return order


def list_orders_for_tenant(
    db: Session,
    tenant_id: int,
    *,
    status: Optional[OrderStatus] = None,
    limit: int = 100,
) -> list[Order]:
    query = db.query(Order).options(selectinload(Order.order_items)).filter(Order.tenant_id == tenant_id)
    if status is not None:
        query = query.filter(Order.status == status)
    return query.order_by(Order.created_at.desc(), Order.id.desc()).limit(limit).all()


def get_orders_by_ids(db: Session, order_ids: Iterable[int]) -> list[Order]:
    ids = list(order_ids)
    if not ids:
        return []
    return (
        db.query(Order)
        .options(selectinload(Order.order_items))
        .filter(Order.id.in_(ids))
        .order_by(Order.created_at.desc(), Order.id.desc())
        .all()
    )


def list_all_orders(
    db: Session, *, status: Optional[OrderStatus] = None, limit: int = 200
) -> list[tuple[Order, str]]:
    query = db.query(Order, Restaurant.name).join(Restaurant, Restaurant.id == Order.tenant_id)
    if status is not None:
        query = query.filter(Order.status == status)
    return [(order, name) for order, name in query.order_by(Order.id.desc()).limit(limit).all()]


def _item_to_dict(item: OrderItem) -> dict:
    return {
        "id": item.id,
        "menu_item_id": item.menu_item_id,
        "name": item.name,
        "price": float(item.price),
        "quantity": item.quantity,
    }


def order_to_dict(order: Order, *, include_items: bool = True) -> dict:
    status = OrderStatus(order.status)
    payload = {
        "id": order.id,
        "tenant_id": order.tenant_id,
        "table_id": order.table_id,
        "customer_name": order.customer_name,
        "customer_phone": order.customer_phone,
        "notes": order.notes,
        "total_amount": float(order.total_amount),
        "status": status.value,
        "can_cancel": status == OrderStatus.PENDING,
        "created_at": order.created_at.isoformat() if order.created_at else None,
        "updated_at": order.updated_at.isoformat() if order.updated_at else None,
    }
    if include_items:
        payload["items"] = [_item_to_dict(item) for item in order.order_items]
    return payload
