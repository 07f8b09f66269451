from fastapi import FastAPI
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from app.core.database import Base, get_db
from app.models.admin_user import AdminUser
from app.models.balance import BalanceTransaction, RestaurantBalance
from app.models.subscription import Subscription
from app.routers.onboarding import router
from app.services.passwords import verify_password
from utils.slug import is_valid_slug, normalize_slug

ONBOARDING_PAYLOAD = {
    "restaurant_name": "Loja Legal Premium",
    "owner_name": "Admin",
    "owner_email": "Admin@Example.com",
    "owner_password": "12345678",
}


def _build_client():
    engine = create_engine(
        "sqlite+pysqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    testing_session = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    Base.metadata.create_all(bind=engine)

    app = FastAPI()
    app.include_router(router)

    def override_get_db():
        db = testing_session()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = override_get_db
    return TestClient(app), testing_session


def test_normalize_slug_removes_accents_and_symbols():
    assert normalize_slug("Açaí do João - Unidade #1") == "acai-do-joao-unidade-1"
    assert normalize_slug("  --Pizza   Place--  ") == "pizza-place"
    assert normalize_slug("") == ""


def test_is_valid_slug_rules():
    assert is_valid_slug("bistro")
    assert is_valid_slug("bistro-2")
    assert not is_valid_slug("ab")
    assert not is_valid_slug("-bistro")
    assert not is_valid_slug("Bistro")


def test_onboarding_creates_restaurant_owner_balance_and_trial():
    client, testing_session = _build_client()

    response = client.post("/api/onboarding/restaurant", json=ONBOARDING_PAYLOAD)

    assert response.status_code == 201
    body = response.json()
    assert body["slug"] == "loja-legal-premium"
    assert body["currency"] == "USD"
    assert body["owner_email"] == "admin@example.com"

    db = testing_session()
    tenant_id = body["tenant_id"]
    owner = db.query(AdminUser).filter(AdminUser.tenant_id == tenant_id).one()
    balance = db.query(RestaurantBalance).filter(RestaurantBalance.tenant_id == tenant_id).one()
    subscription = db.query(Subscription).filter(Subscription.tenant_id == tenant_id).one()

    assert owner.role == "owner"
    assert verify_password("12345678", owner.password_hash)
    assert float(balance.current_balance) == 0.0
    assert db.query(BalanceTransaction).count() == 0
    assert subscription.status == "trial"
    db.close()


def test_onboarding_appends_suffix_when_name_slug_is_taken():
    client, _ = _build_client()

    first = client.post("/api/onboarding/restaurant", json=ONBOARDING_PAYLOAD)
    second = client.post(
        "/api/onboarding/restaurant",
        json={**ONBOARDING_PAYLOAD, "owner_email": "other@example.com"},
    )

    assert first.json()["slug"] == "loja-legal-premium"
    assert second.status_code == 201
    assert second.json()["slug"] == "loja-legal-premium-2"


def test_onboarding_rejects_requested_slug_already_in_use():
    client, _ = _build_client()
    client.post("/api/onboarding/restaurant", json={**ONBOARDING_PAYLOAD, "slug": "Casa Nova"})

    response = client.post(
        "/api/onboarding/restaurant",
        json={**ONBOARDING_PAYLOAD, "slug": "casa-nova", "owner_email": "other@example.com"},
    )

    assert response.status_code == 409


def test_slug_availability_endpoint():
    client, _ = _build_client()
    client.post("/api/onboarding/restaurant", json={**ONBOARDING_PAYLOAD, "slug": "casa-nova"})

    taken = client.get("/api/onboarding/availability", params={"slug": "Casa Nova"})
    free = client.get("/api/onboarding/availability", params={"slug": "casa-velha"})
    invalid = client.get("/api/onboarding/availability", params={"slug": "!!"})

    assert taken.json() == {"slug": "casa-nova", "slug_available": False}
    assert free.json() == {"slug": "casa-velha", "slug_available": True}
    assert invalid.status_code == 400
