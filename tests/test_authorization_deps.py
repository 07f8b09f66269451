from types import SimpleNamespace

import pytest
from fastapi import HTTPException
from starlette.requests import Request

from app.deps import OWNER_ROLES, STAFF_ROLES, require_platform_admin, require_role
from tests.fixtures_data import TENANT_ACCESS_DENIED


def _build_request(path: str = "/api/resource", method: str = "GET", tenant_id: int | None = None) -> Request:
    scope = {
        "type": "http",
        "method": method,
        "path": path,
        "query_string": b"",
        "headers": [],
        "path_params": {"tenant_id": str(tenant_id)} if tenant_id is not None else {},
        "client": ("testclient", 50000),
        "server": ("testserver", 80),
        "scheme": "http",
    }
    return Request(scope)


def test_require_role_denies_tenant_mismatch_before_role_check():
    user = SimpleNamespace(id=11, tenant_id=TENANT_ACCESS_DENIED["admin_tenant_id"], role="staff")
    request = _build_request(path="/api/restaurants/2/orders", tenant_id=TENANT_ACCESS_DENIED["request_tenant_id"])
    dependency = require_role(OWNER_ROLES)

    with pytest.raises(HTTPException) as exc:
        dependency(request=request, user=user)

    assert exc.value.status_code == TENANT_ACCESS_DENIED["expected_status_code"]
    assert exc.value.detail == TENANT_ACCESS_DENIED["expected_detail"]


def test_require_role_denies_role_when_tenant_matches():
    user = SimpleNamespace(id=12, tenant_id=3, role="staff")
    request = _build_request(path="/api/restaurants/3/balance/recharge", method="POST", tenant_id=3)
    dependency = require_role(OWNER_ROLES)

    with pytest.raises(HTTPException) as exc:
        dependency(request=request, user=user)

    assert exc.value.status_code == 403
    assert exc.value.detail == "Insufficient permissions"


def test_require_role_accepts_staff_in_own_restaurant():
    user = SimpleNamespace(id=13, tenant_id=3, role=" Staff ")
    dependency = require_role(STAFF_ROLES)

    assert dependency(request=_build_request(tenant_id=3), user=user) is user


def test_master_admin_bypasses_tenant_and_role_checks():
    user = SimpleNamespace(id=1, tenant_id=None, role="master_admin")
    dependency = require_role(OWNER_ROLES)

    assert dependency(request=_build_request(tenant_id=99), user=user) is user


def test_require_platform_admin_rejects_restaurant_owner():
    owner = SimpleNamespace(id=7, tenant_id=1, role="owner")

    with pytest.raises(HTTPException) as exc:
        require_platform_admin(request=_build_request(path="/api/platform/overview"), user=owner)

    assert exc.value.status_code == 403


def test_require_platform_admin_accepts_master_admin():
    user = SimpleNamespace(id=1, tenant_id=None, role="master_admin")

    assert require_platform_admin(request=_build_request(), user=user) is user
