import json
from decimal import Decimal
from types import SimpleNamespace

import pytest

from app.core.errors import InvalidTransition, NotFound, ValidationError
from app.models.admin_audit_log import AdminAuditLog
from app.models.order import Order, OrderStatus
from app.models.order_item import OrderItem
from app.services import ledger
from app.services.event_bus import change_feed
from app.services.orders import (
    ALLOWED_TRANSITIONS,
    LineItemRequest,
    create_order,
    customer_cancel,
    get_orders_by_ids,
    list_orders_for_tenant,
    update_status,
)
from app.services.session_orders import SessionOrderTracker
from tests.fixtures_data import make_admin, seed_restaurant

STAFF = SimpleNamespace(id=8, tenant_id=1, role="staff")


def _order(db, tracker=None, **kwargs):
    kwargs.setdefault("line_items", [LineItemRequest(101, 2), LineItemRequest(102, 1)])
    return create_order(db, tenant_id=1, tracker=tracker, **kwargs)


def test_create_order_prices_items_from_menu(db_session):
    seed_restaurant(db_session, balance="600")

    order = _order(db_session, customer_name="  Ana ", notes="No onions")

    assert Decimal(str(order.total_amount)) == Decimal("28.00")
    assert order.status == OrderStatus.PENDING
    assert order.customer_name == "Ana"
    items = db_session.query(OrderItem).filter(OrderItem.order_id == order.id).order_by(OrderItem.id).all()
    assert [(item.name, Decimal(str(item.price)), item.quantity) for item in items] == [
        ("Margherita", Decimal("12.50"), 2),
        ("Lemonade", Decimal("3.00"), 1),
    ]


def test_create_order_without_items_is_rejected(db_session):
    seed_restaurant(db_session, balance="600")

    with pytest.raises(ValidationError):
        _order(db_session, line_items=[])

    assert db_session.query(Order).count() == 0
    assert ledger.get_balance(db_session, 1) == Decimal("600.00")


@pytest.mark.parametrize("quantity", [0, -1, 100])
def test_create_order_rejects_bad_quantities(db_session, quantity):
    seed_restaurant(db_session, balance="600")

    with pytest.raises(ValidationError):
        _order(db_session, line_items=[LineItemRequest(101, quantity)])

    assert db_session.query(Order).count() == 0


def test_create_order_rejects_unavailable_or_foreign_items(db_session):
    seed_restaurant(db_session, tenant_id=1, slug="bistro", balance="600")
    seed_restaurant(db_session, tenant_id=2, slug="diner", balance="600")

    with pytest.raises(ValidationError):
        _order(db_session, line_items=[LineItemRequest(103, 1)])
    # item 1101 pertence ao restaurante 2
    with pytest.raises(ValidationError):
        _order(db_session, line_items=[LineItemRequest(1101, 1)])

    assert db_session.query(Order).count() == 0
    assert ledger.get_balance(db_session, 1) == Decimal("600.00")


def test_create_order_drops_unknown_table(db_session):
    seed_restaurant(db_session, balance="600")

    with_table = _order(db_session, table_id=101)
    unknown_table = _order(db_session, table_id=999)

    assert with_table.table_id == 101
    assert unknown_table.table_id is None


def test_create_order_records_order_in_session_tracker(db_session):
    seed_restaurant(db_session, balance="600")
    tracker = SessionOrderTracker()

    order = _order(db_session, tracker=tracker)

    assert tracker.list_session_orders() == frozenset({order.id})


def test_create_order_publishes_order_and_balance_changes(db_session):
    seed_restaurant(db_session, balance="600")
    received = []
    change_feed.subscribe("*", received.append)
    try:
        order = _order(db_session)
    finally:
        change_feed.unsubscribe("*", received.append)

    assert ("orders", 1, "INSERT", order.id) in [
        (event.table, event.tenant_id, event.event, event.row_id) for event in received
    ]
    assert "restaurant_balances" in {event.table for event in received}


def test_update_status_moves_order_forward_and_audits(db_session):
    seed_restaurant(db_session, balance="600")
    order = _order(db_session)

    updated = update_status(db_session, order_id=order.id, new_status="preparing", actor=STAFF, tenant_id=1)

    assert updated.status == OrderStatus.PREPARING
    audit = db_session.query(AdminAuditLog).filter(AdminAuditLog.action == "order_status_changed").one()
    assert audit.user_id == 8
    assert json.loads(audit.meta_json) == {"from": "pending", "to": "preparing"}


def test_update_status_same_status_is_noop(db_session):
    seed_restaurant(db_session, balance="600")
    order = _order(db_session)

    updated = update_status(db_session, order_id=order.id, new_status=OrderStatus.PENDING, actor=STAFF)

    assert updated.status == OrderStatus.PENDING
    assert db_session.query(AdminAuditLog).count() == 0


@pytest.mark.parametrize("terminal", [OrderStatus.SERVED, OrderStatus.CANCELLED])
def test_terminal_orders_cannot_change(db_session, terminal):
    seed_restaurant(db_session, balance="600")
    order = _order(db_session)
    update_status(db_session, order_id=order.id, new_status=terminal, actor=STAFF)

    with pytest.raises(InvalidTransition):
        update_status(db_session, order_id=order.id, new_status=OrderStatus.PREPARING, actor=STAFF)


def test_orders_never_return_to_pending(db_session):
    seed_restaurant(db_session, balance="600")
    order = _order(db_session)
    update_status(db_session, order_id=order.id, new_status="ready", actor=STAFF)

    with pytest.raises(InvalidTransition):
        update_status(db_session, order_id=order.id, new_status="pending", actor=STAFF)


def test_transition_table_has_no_exit_from_terminal_states():
    assert ALLOWED_TRANSITIONS[OrderStatus.SERVED] == frozenset()
    assert ALLOWED_TRANSITIONS[OrderStatus.CANCELLED] == frozenset()
    assert all(OrderStatus.PENDING not in targets for targets in ALLOWED_TRANSITIONS.values())


def test_update_status_rejects_unknown_status(db_session):
    seed_restaurant(db_session, balance="600")
    order = _order(db_session)

    with pytest.raises(ValidationError):
        update_status(db_session, order_id=order.id, new_status="delivered", actor=STAFF)


def test_update_status_scoped_to_tenant(db_session):
    seed_restaurant(db_session, tenant_id=1, slug="bistro", balance="600")
    seed_restaurant(db_session, tenant_id=2, slug="diner", balance="600")
    order = _order(db_session)

    with pytest.raises(NotFound):
        update_status(db_session, order_id=order.id, new_status="ready", actor=STAFF, tenant_id=2)


def test_customer_cancel_pending_order_returns_bill(db_session):
    seed_restaurant(db_session, balance="600")
    tracker = SessionOrderTracker()
    order = _order(db_session, tracker=tracker)

    bill = customer_cancel(db_session, order_id=order.id, tracker=tracker)

    db_session.refresh(order)
    assert order.status == OrderStatus.CANCELLED
    assert bill.order_id == order.id
    assert bill.total_amount == Decimal("28.00")
    assert [item["name"] for item in bill.items] == ["Margherita", "Lemonade"]
    assert bill.as_dict()["status"] == "cancelled"
    # a taxa do pedido não é estornada
    assert ledger.get_balance(db_session, 1) == Decimal("595.00")

    with pytest.raises(InvalidTransition):
        customer_cancel(db_session, order_id=order.id, tracker=tracker)


def test_customer_cancel_after_kitchen_started_is_rejected(db_session):
    seed_restaurant(db_session, balance="600")
    tracker = SessionOrderTracker()
    order = _order(db_session, tracker=tracker)
    update_status(db_session, order_id=order.id, new_status="preparing", actor=STAFF)

    with pytest.raises(InvalidTransition):
        customer_cancel(db_session, order_id=order.id, tracker=tracker)

    db_session.refresh(order)
    assert order.status == OrderStatus.PREPARING


def test_customer_cannot_cancel_order_from_another_session(db_session):
    seed_restaurant(db_session, balance="600")
    order = _order(db_session, tracker=SessionOrderTracker())

    with pytest.raises(NotFound):
        customer_cancel(db_session, order_id=order.id, tracker=SessionOrderTracker())

    db_session.refresh(order)
    assert order.status == OrderStatus.PENDING


def test_session_orders_lists_only_own_orders(db_session):
    seed_restaurant(db_session, balance="600")
    mine = SessionOrderTracker()
    first = _order(db_session, tracker=mine)
    _order(db_session, tracker=SessionOrderTracker())
    second = _order(db_session, tracker=mine)

    orders = get_orders_by_ids(db_session, mine.list_session_orders())

    assert [order.id for order in orders] == [second.id, first.id]


def test_list_orders_for_tenant_filters_by_status(db_session):
    seed_restaurant(db_session, balance="600")
    first = _order(db_session)
    second = _order(db_session)
    update_status(db_session, order_id=second.id, new_status="ready", actor=make_admin())

    pending = list_orders_for_tenant(db_session, 1, status=OrderStatus.PENDING)
    everything = list_orders_for_tenant(db_session, 1)

    assert [order.id for order in pending] == [first.id]
    assert {order.id for order in everything} == {first.id, second.id}
