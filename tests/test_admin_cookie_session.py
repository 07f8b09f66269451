from unittest.mock import patch

from fastapi import FastAPI
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from app.core.database import Base, get_db
from app.models.admin_audit_log import AdminAuditLog
from app.routers.admin_auth import router as admin_auth_router
from app.routers.balance import router as balance_router
from app.services.admin_auth import ADMIN_SESSION_COOKIE
from app.services.passwords import hash_password
from tests.fixtures_data import OWNER_ADMIN, PLATFORM_ADMIN, seed_admin_user, seed_restaurant

PASSWORD = "correct horse battery"


def _build_client():
    engine = create_engine(
        "sqlite+pysqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    testing_session = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    Base.metadata.create_all(bind=engine)

    db = testing_session()
    seed_restaurant(db, tenant_id=1, slug="bistro", balance="600")
    seed_restaurant(db, tenant_id=2, slug="diner", balance="600")
    seed_admin_user(db, **OWNER_ADMIN, password_hash=hash_password(PASSWORD))
    seed_admin_user(db, **PLATFORM_ADMIN, password_hash=hash_password(PASSWORD))

    app = FastAPI()
    app.include_router(admin_auth_router)
    app.include_router(balance_router)

    def override_get_db():
        session = testing_session()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db
    return TestClient(app), db


def _session_header(response) -> dict:
    return {"Cookie": f"{ADMIN_SESSION_COOKIE}={response.cookies[ADMIN_SESSION_COOKIE]}"}


def test_login_sets_http_only_session_cookie():
    client, _ = _build_client()

    with patch("app.routers.admin_auth.create_admin_session", return_value="token123"):
        response = client.post("/api/admin/auth/login", json={"email": OWNER_ADMIN["email"], "password": PASSWORD})

    assert response.status_code == 200
    assert response.json()["redirect_url"] == "/dashboard/bistro"
    set_cookie = response.headers.get("set-cookie", "")
    assert "admin_session=token123" in set_cookie
    assert "HttpOnly" in set_cookie
    assert "Path=/" in set_cookie
    assert "SameSite=lax" in set_cookie
    assert "Domain=" not in set_cookie


def test_session_cookie_authenticates_owner_routes():
    client, _ = _build_client()
    login = client.post("/api/admin/auth/login", json={"email": OWNER_ADMIN["email"], "password": PASSWORD})

    me = client.get("/api/admin/auth/me", headers=_session_header(login))
    own_balance = client.get("/api/restaurants/1/balance", headers=_session_header(login))
    other_balance = client.get("/api/restaurants/2/balance", headers=_session_header(login))

    assert me.json()["email"] == OWNER_ADMIN["email"]
    assert own_balance.status_code == 200
    assert other_balance.status_code == 403


def test_platform_admin_session_reaches_any_restaurant():
    client, _ = _build_client()
    login = client.post("/api/admin/auth/login", json={"email": PLATFORM_ADMIN["email"], "password": PASSWORD})

    response = client.get("/api/restaurants/2/balance", headers=_session_header(login))

    assert login.json()["redirect_url"] == "/admin"
    assert response.status_code == 200


def test_wrong_password_is_rejected_and_audited():
    client, db = _build_client()

    response = client.post("/api/admin/auth/login", json={"email": OWNER_ADMIN["email"], "password": "nope"})

    assert response.status_code == 401
    assert db.query(AdminAuditLog).filter(AdminAuditLog.action == "login_failed").count() == 1


def test_missing_or_forged_cookie_is_unauthorized():
    client, _ = _build_client()

    assert client.get("/api/admin/auth/me").status_code == 401
    assert client.get("/api/admin/auth/me", headers={"Cookie": f"{ADMIN_SESSION_COOKIE}=forged"}).status_code == 401


def test_logout_clears_cookie():
    client, _ = _build_client()

    response = client.post("/api/admin/auth/logout")

    assert response.status_code == 200
    set_cookie = response.headers.get("set-cookie", "")
    assert set_cookie.startswith(f"{ADMIN_SESSION_COOKIE}=")
    assert "Max-Age=0" in set_cookie
