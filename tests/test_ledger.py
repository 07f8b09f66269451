from decimal import Decimal

import pytest
from sqlalchemy import update

from app.core.errors import NotFound, ValidationError
from app.models.balance import BalanceTransaction, RestaurantBalance, TransactionType
from app.services import ledger
from app.services.event_bus import change_feed
from tests.fixtures_data import seed_restaurant


def _ledger_sum(db, tenant_id):
    return sum(
        (Decimal(str(tx.amount)) for tx in db.query(BalanceTransaction).filter_by(tenant_id=tenant_id)),
        Decimal("0"),
    )


def test_append_transaction_updates_materialized_balance(db_session):
    seed_restaurant(db_session)

    tx = ledger.append_transaction(
        db_session,
        tenant_id=1,
        amount="250.00",
        transaction_type=TransactionType.RECHARGE,
        description="Recharge via card",
    )

    assert tx.id is not None
    assert TransactionType(tx.transaction_type) == TransactionType.RECHARGE
    assert ledger.get_balance(db_session, 1) == Decimal("250.00")


def test_balance_always_matches_ledger_sum(db_session):
    seed_restaurant(db_session, balance="700")
    ledger.recharge(db_session, tenant_id=1, amount="150", payment_method="pix")
    ledger.append_transaction(
        db_session,
        tenant_id=1,
        amount="-5",
        transaction_type=TransactionType.ORDER_DEDUCTION,
        description="Order #1",
    )
    ledger.append_transaction(
        db_session,
        tenant_id=1,
        amount="42.10",
        transaction_type="admin_credit",
        description="Goodwill",
    )

    assert ledger.get_balance(db_session, 1) == Decimal("887.10")
    assert ledger.get_balance(db_session, 1) == _ledger_sum(db_session, 1)


@pytest.mark.parametrize(
    "amount,transaction_type",
    [
        ("0", TransactionType.RECHARGE),
        ("-10", TransactionType.RECHARGE),
        ("-10", TransactionType.ADMIN_CREDIT),
        ("5", TransactionType.ORDER_DEDUCTION),
        ("abc", TransactionType.RECHARGE),
    ],
)
def test_append_transaction_rejects_invalid_amounts(db_session, amount, transaction_type):
    seed_restaurant(db_session)

    with pytest.raises(ValidationError):
        ledger.append_transaction(db_session, tenant_id=1, amount=amount, transaction_type=transaction_type)

    assert db_session.query(BalanceTransaction).count() == 0
    assert ledger.get_balance(db_session, 1) == Decimal("0")


def test_append_transaction_unknown_restaurant(db_session):
    with pytest.raises(NotFound):
        ledger.append_transaction(db_session, tenant_id=99, amount="10", transaction_type=TransactionType.RECHARGE)


def test_unknown_transaction_type_is_rejected(db_session):
    seed_restaurant(db_session)

    with pytest.raises(ValidationError):
        ledger.append_transaction(db_session, tenant_id=1, amount="10", transaction_type="refund")


def test_get_balance_defaults_to_zero_without_row(db_session):
    assert ledger.get_balance(db_session, 42) == Decimal("0")


def test_list_transactions_newest_first_and_limited(db_session):
    seed_restaurant(db_session)
    for amount in ("100", "200", "300"):
        ledger.recharge(db_session, tenant_id=1, amount=amount)

    transactions = ledger.list_transactions(db_session, 1, limit=2)

    assert [Decimal(str(tx.amount)) for tx in transactions] == [Decimal("300"), Decimal("200")]


def test_list_transactions_clamps_limit():
    assert ledger.clamp_limit(None) == 50
    assert ledger.clamp_limit(0) == 1
    assert ledger.clamp_limit(10_000) == 200


def test_list_transactions_is_scoped_to_tenant(db_session):
    seed_restaurant(db_session, tenant_id=1, slug="bistro", balance="600")
    seed_restaurant(db_session, tenant_id=2, slug="diner", balance="900")

    transactions = ledger.list_transactions(db_session, 2)

    assert len(transactions) == 1
    assert transactions[0].tenant_id == 2


def test_recharge_enforces_limits(db_session):
    seed_restaurant(db_session)

    with pytest.raises(ValidationError):
        ledger.recharge(db_session, tenant_id=1, amount="99.99")
    with pytest.raises(ValidationError):
        ledger.recharge(db_session, tenant_id=1, amount="50000.01")
    with pytest.raises(ValidationError):
        ledger.recharge(db_session, tenant_id=1, amount=Decimal("1e30"))

    tx = ledger.recharge(db_session, tenant_id=1, amount="100", payment_method="card")
    assert tx.description == "Recharge via card"


def test_recompute_balance_repairs_drift(db_session):
    seed_restaurant(db_session, balance="800")
    db_session.execute(
        update(RestaurantBalance).where(RestaurantBalance.tenant_id == 1).values(current_balance=Decimal("1"))
    )
    db_session.commit()

    previous, recomputed = ledger.recompute_balance(db_session, 1)

    assert previous == Decimal("1.00")
    assert recomputed == Decimal("800.00")
    assert ledger.get_balance(db_session, 1) == Decimal("800.00")


def test_append_transaction_publishes_balance_change(db_session):
    seed_restaurant(db_session)
    received = []
    change_feed.subscribe("restaurant_balances", received.append)
    try:
        ledger.recharge(db_session, tenant_id=1, amount="100")
    finally:
        change_feed.unsubscribe("restaurant_balances", received.append)

    assert [(event.table, event.tenant_id) for event in received] == [("restaurant_balances", 1)]


@pytest.mark.parametrize("value", [Decimal("1e30"), "10000000000", "-9999999999.995", "NaN", "abc", True])
def test_to_amount_rejects_values_outside_the_column(value):
    with pytest.raises(ValidationError):
        ledger.to_amount(value)


def test_to_amount_accepts_column_maximum():
    assert ledger.to_amount("9999999999.99") == ledger.MAX_AMOUNT
