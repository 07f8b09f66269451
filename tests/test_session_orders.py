from itsdangerous import URLSafeTimedSerializer

from app.services import session_orders
from app.services.session_orders import SessionOrderTracker, dump_tracker, load_tracker


def test_tracker_records_each_order_once():
    tracker = SessionOrderTracker()
    tracker.record_order(3)
    tracker.record_order(3)
    tracker.record_order(5)

    assert tracker.list_session_orders() == frozenset({3, 5})
    assert tracker.owns(5)
    assert not tracker.owns(4)
    assert len(tracker) == 2


def test_tracker_keeps_most_recent_orders_when_full():
    tracker = SessionOrderTracker(range(1, 6), max_orders=3)

    assert tracker.list_session_orders() == frozenset({3, 4, 5})


def test_signed_cookie_round_trip_preserves_orders():
    tracker = SessionOrderTracker([10, 11])

    restored = load_tracker(dump_tracker(tracker))

    assert restored.list_session_orders() == frozenset({10, 11})


def test_tampered_cookie_yields_empty_session():
    token = URLSafeTimedSerializer("someone-else", salt="session-orders").dumps({"orders": [1, 2, 3]})

    assert load_tracker(token).list_session_orders() == frozenset()
    assert load_tracker("garbage").list_session_orders() == frozenset()
    assert load_tracker(None).list_session_orders() == frozenset()


def test_expired_cookie_yields_empty_session(monkeypatch):
    token = dump_tracker(SessionOrderTracker([1]))
    monkeypatch.setattr(session_orders, "SESSION_ORDERS_MAX_AGE_SECONDS", -1)

    assert load_tracker(token).list_session_orders() == frozenset()


def test_malformed_payload_is_ignored():
    serializer = URLSafeTimedSerializer(session_orders.SESSION_ORDERS_SECRET, salt="session-orders")

    assert load_tracker(serializer.dumps({"orders": "1,2"})).list_session_orders() == frozenset()
    assert load_tracker(serializer.dumps({"orders": [1, "2", None]})).list_session_orders() == frozenset({1})
