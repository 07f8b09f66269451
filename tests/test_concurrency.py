import threading
from decimal import Decimal
from types import SimpleNamespace

import pytest

from app.core.errors import InvalidTransition, OrderRejected, RejectionReason
from app.models.balance import BalanceTransaction
from app.models.order import Order, OrderStatus
from app.services import ledger
from app.services.orders import LineItemRequest, create_order, customer_cancel, update_status
from app.services.session_orders import SessionOrderTracker
from tests.fixtures_data import seed_restaurant

STAFF = SimpleNamespace(id=8, tenant_id=1, role="staff")


def test_concurrent_orders_cannot_both_pass_the_last_affordable_slot(file_session_factory):
    setup = file_session_factory()
    seed_restaurant(setup, balance="500")
    setup.close()

    barrier = threading.Barrier(2)
    outcomes: list[object] = []
    lock = threading.Lock()

    def place_order():
        db = file_session_factory()
        try:
            barrier.wait()
            order = create_order(db, tenant_id=1, line_items=[LineItemRequest(101, 1)])
            result: object = order.id
        except OrderRejected as exc:
            result = exc.reason
        finally:
            db.close()
        with lock:
            outcomes.append(result)

    threads = [threading.Thread(target=place_order) for _ in range(2)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join(timeout=60)

    accepted = [item for item in outcomes if isinstance(item, int)]
    rejected = [item for item in outcomes if item == RejectionReason.LOW_BALANCE]
    assert len(accepted) == 1
    assert len(rejected) == 1

    check = file_session_factory()
    try:
        assert check.query(Order).count() == 1
        assert ledger.get_balance(check, 1) == Decimal("495.00")
        assert ledger.ledger_sum(check, 1) == Decimal("495.00")
        assert check.query(BalanceTransaction).filter(BalanceTransaction.order_id.isnot(None)).count() == 1
    finally:
        check.close()


def test_gate_decision_happens_at_write_time(file_session_factory):
    # duas sessões leem saldo suficiente; só a primeira escrita passa
    first = file_session_factory()
    seed_restaurant(first, balance="504")
    second = file_session_factory()
    try:
        assert ledger.get_balance(first, 1) == Decimal("504.00")
        assert ledger.get_balance(second, 1) == Decimal("504.00")

        create_order(first, tenant_id=1, line_items=[LineItemRequest(101, 1)])
        with pytest.raises(OrderRejected):
            create_order(second, tenant_id=1, line_items=[LineItemRequest(101, 1)])
    finally:
        first.close()
        second.close()


def test_stale_status_update_is_rejected(file_session_factory):
    setup = file_session_factory()
    seed_restaurant(setup, balance="600")
    order_id = create_order(setup, tenant_id=1, line_items=[LineItemRequest(101, 1)]).id
    setup.close()

    kitchen = file_session_factory()
    counter = file_session_factory()
    try:
        # a cozinha carregou o pedido ainda como pending
        stale = kitchen.get(Order, order_id)
        assert stale.status == OrderStatus.PENDING

        update_status(counter, order_id=order_id, new_status="cancelled", actor=STAFF)

        with pytest.raises(InvalidTransition):
            update_status(kitchen, order_id=order_id, new_status="preparing", actor=STAFF)
    finally:
        kitchen.close()
        counter.close()

    check = file_session_factory()
    try:
        assert check.get(Order, order_id).status == OrderStatus.CANCELLED
    finally:
        check.close()


def test_customer_cancel_loses_to_kitchen_update(file_session_factory):
    setup = file_session_factory()
    seed_restaurant(setup, balance="600")
    tracker = SessionOrderTracker()
    order_id = create_order(setup, tenant_id=1, line_items=[LineItemRequest(101, 1)], tracker=tracker).id
    setup.close()

    customer = file_session_factory()
    kitchen = file_session_factory()
    try:
        assert customer.get(Order, order_id).status == OrderStatus.PENDING

        update_status(kitchen, order_id=order_id, new_status="preparing", actor=STAFF)

        with pytest.raises(InvalidTransition):
            customer_cancel(customer, order_id=order_id, tracker=tracker)
    finally:
        customer.close()
        kitchen.close()
