from __future__ import annotations

from fastapi import APIRouter, Depends

from app.core.metrics import order_outcomes, request_metrics
from app.deps import require_platform_admin
from app.models.admin_user import AdminUser

router = APIRouter(prefix="/internal/metrics", tags=["internal-metrics"])


@router.get("/endpoints")
def endpoint_metrics(_admin: AdminUser = Depends(require_platform_admin)):
    return {"endpoints": request_metrics.snapshot()}


@router.get("/tenants")
def tenant_metrics(_admin: AdminUser = Depends(require_platform_admin)):
    return {"tenants": request_metrics.snapshot_per_tenant()}


@router.get("/orders")
def order_metrics(_admin: AdminUser = Depends(require_platform_admin)):
    return {"outcomes": order_outcomes.snapshot()}
