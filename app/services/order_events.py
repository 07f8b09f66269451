from __future__ import annotations

from app.models.order import Order
from app.services.event_bus import ChangeEvent, change_feed

ORDERS_TABLE = "orders"
BALANCES_TABLE = "restaurant_balances"


def emit_order_created(order: Order) -> None:
    change_feed.publish(ChangeEvent(ORDERS_TABLE, order.tenant_id, "INSERT", order.id))


def emit_order_status_changed(order: Order, previous_status) -> None:
    if previous_status == order.status:
        return
    change_feed.publish(ChangeEvent(ORDERS_TABLE, order.tenant_id, "UPDATE", order.id))


def emit_balance_changed(tenant_id: int) -> None:
    change_feed.publish(ChangeEvent(BALANCES_TABLE, tenant_id, "UPDATE"))
