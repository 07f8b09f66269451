# app/deps.py
from __future__ import annotations

import logging
from typing import Iterable

from fastapi import Depends, HTTPException, Request, status
from sqlalchemy.orm import Session

from app.core.database import get_db
from app.core.request_context import set_request_context
from app.models.admin_user import AdminRole, AdminUser
from app.services.admin_auth import ADMIN_SESSION_COOKIE, decode_admin_session

logger = logging.getLogger(__name__)

OWNER_ROLES = (AdminRole.OWNER.value,)
STAFF_ROLES = (AdminRole.OWNER.value, AdminRole.STAFF.value)
PLATFORM_ROLES = (AdminRole.MASTER_ADMIN.value,)


def _normalize_admin_role(role: str | None) -> str:
    return (role or "").strip().lower()


def is_platform_admin(user: AdminUser) -> bool:
    return _normalize_admin_role(user.role) == AdminRole.MASTER_ADMIN.value


def _resolve_tenant_id(request: Request) -> int | None:
    path_tenant = request.path_params.get("tenant_id")
    if path_tenant is None:
        return None
    try:
        return int(path_tenant)
    except (TypeError, ValueError):
        return None


def _log_access_denied(*, reason: str, user: AdminUser, tenant_id: int | None, request: Request) -> None:
    logger.warning(
        "Access denied (%s): user_id=%s user_role=%s user_tenant=%s tenant_id=%s endpoint=%s %s",
        reason,
        getattr(user, "id", None),
        getattr(user, "role", None),
        getattr(user, "tenant_id", None),
        tenant_id,
        request.method,
        request.url.path,
    )


def get_current_admin_user(
    request: Request,
    db: Session = Depends(get_db),
) -> AdminUser:
    token = request.cookies.get(ADMIN_SESSION_COOKIE)
    if not token:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Not authenticated")

    payload = decode_admin_session(token)
    if not payload:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Session expired")

    user_id = payload.get("user_id")
    if not user_id:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid session")

    user = (
        db.query(AdminUser)
        .filter(AdminUser.id == int(user_id), AdminUser.active.is_(True))
        .first()
    )
    if not user:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Admin not found")

    # sessão emitida para outro restaurante (usuário movido ou recriado)
    if payload.get("tenant_id") != user.tenant_id:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid session")

    set_request_context(
        actor_id=str(user.id),
        tenant_id=str(user.tenant_id) if user.tenant_id is not None else None,
    )
    return user


def require_role(roles: Iterable[str]):
    """Exige um dos papéis e, quando a rota tem ``tenant_id``, o mesmo restaurante.

    O master admin passa em qualquer restaurante.
    """
    allowed = {_normalize_admin_role(role) for role in roles}

    def _dependency(
        request: Request,
        user: AdminUser = Depends(get_current_admin_user),
    ) -> AdminUser:
        resolved_tenant_id = _resolve_tenant_id(request)
        if is_platform_admin(user):
            return user
        if resolved_tenant_id is not None and user.tenant_id != resolved_tenant_id:
            _log_access_denied(reason="tenant_mismatch", user=user, tenant_id=resolved_tenant_id, request=request)
            raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Tenant not authorized")
        if _normalize_admin_role(user.role) not in allowed:
            _log_access_denied(reason="role_denied", user=user, tenant_id=resolved_tenant_id, request=request)
            raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Insufficient permissions")
        return user

    return _dependency


def require_platform_admin(
    request: Request,
    user: AdminUser = Depends(get_current_admin_user),
) -> AdminUser:
    if not is_platform_admin(user):
        _log_access_denied(reason="platform_only", user=user, tenant_id=None, request=request)
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Insufficient permissions")
    return user
