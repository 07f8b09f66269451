from fastapi.testclient import TestClient


REQUIRED_ROUTES = {
    "/api/admin/auth/login",
    "/api/onboarding/restaurant",
    "/api/public/{slug}/menu",
    "/api/public/{slug}/orders",
    "/api/public/my-orders",
    "/api/public/orders/{order_id}/cancel",
    "/api/restaurants/{tenant_id}/orders",
    "/api/restaurants/{tenant_id}/orders/{order_id}/status",
    "/api/restaurants/{tenant_id}/changes",
    "/api/restaurants/{tenant_id}/balance",
    "/api/restaurants/{tenant_id}/balance/recharge",
    "/api/restaurants/{tenant_id}/balance/transactions",
    "/api/platform/restaurants/{tenant_id}/credit",
    "/api/platform/restaurants/{tenant_id}/reconcile",
    "/internal/metrics/orders",
}


def test_api_startup_and_router_registration(monkeypatch):
    from app import main

    monkeypatch.setattr(main, "_startup_tasks", lambda: None)

    with TestClient(main.app) as client:
        response = client.get("/")
        health_response = client.get("/health")
        openapi_response = client.get("/openapi.json")

    assert response.status_code == 200
    assert response.json() == {"status": "ok"}
    assert health_response.json() == {"status": "healthy"}
    assert openapi_response.status_code == 200

    paths = {route.path for route in main.app.routes}
    assert REQUIRED_ROUTES.issubset(paths)
