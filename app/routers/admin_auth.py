from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException, Request, Response, status
from pydantic import BaseModel, EmailStr, Field
from sqlalchemy import func
from sqlalchemy.orm import Session

from app.core.database import get_db
from app.deps import get_current_admin_user, is_platform_admin
from app.models.admin_user import AdminUser
from app.models.restaurant import Restaurant
from app.services.admin_audit import log_admin_action
from app.services.admin_auth import (
    clear_admin_session_cookie,
    create_admin_session,
    set_admin_session_cookie,
)
from app.services.passwords import verify_password
from utils.slug import normalize_slug

router = APIRouter(prefix="/api/admin/auth", tags=["admin-auth"])
logger = logging.getLogger(__name__)


class AdminLoginPayload(BaseModel):
    email: EmailStr
    password: str = Field(..., min_length=1)


class AdminUserRead(BaseModel):
    id: int
    tenant_id: int | None
    email: EmailStr
    name: str
    role: str
    active: bool
    redirect_url: str


def _find_login_candidates(db: Session, email: str, tenant_slug: str) -> list[AdminUser]:
    query = db.query(AdminUser).filter(
        func.lower(AdminUser.email) == email,
        AdminUser.active.is_(True),
    )
    slug = normalize_slug(tenant_slug)
    if slug:
        restaurant_id = db.query(Restaurant.id).filter(Restaurant.slug == slug).scalar()
        if restaurant_id is None:
            return []
        query = query.filter(AdminUser.tenant_id == restaurant_id)
    return query.all()


def build_post_login_redirect(db: Session, user: AdminUser) -> str:
    if is_platform_admin(user):
        return "/admin"
    slug = db.query(Restaurant.slug).filter(Restaurant.id == user.tenant_id).scalar()
    return f"/dashboard/{slug or user.tenant_id}"


def _to_read(db: Session, user: AdminUser) -> AdminUserRead:
    return AdminUserRead(
        id=user.id,
        tenant_id=user.tenant_id,
        email=user.email,
        name=user.name,
        role=user.role,
        active=bool(user.active),
        redirect_url=build_post_login_redirect(db, user),
    )


@router.post("/login", response_model=AdminUserRead)
def admin_login(
    payload: AdminLoginPayload,
    response: Response,
    request: Request,
    db: Session = Depends(get_db),
):
    normalized_email = payload.email.strip().lower()
    candidates = _find_login_candidates(db, normalized_email, request.headers.get("x-tenant-slug") or "")
    matched = [user for user in candidates if verify_password(payload.password, user.password_hash)]

    # mesmo email em dois restaurantes sem slug informado: ambíguo
    if len(matched) != 1:
        log_admin_action(
            db,
            tenant_id=candidates[0].tenant_id if len(candidates) == 1 else None,
            user_id=candidates[0].id if len(candidates) == 1 else None,
            action="login_failed",
            entity_type="admin_user",
            meta={"email": normalized_email},
        )
        db.commit()
        logger.info("admin login failed candidates=%s", len(candidates))
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid credentials")

    user = matched[0]
    set_admin_session_cookie(response, create_admin_session(user), request)
    log_admin_action(
        db,
        tenant_id=user.tenant_id,
        user_id=user.id,
        action="login_success",
        entity_type="admin_user",
        entity_id=user.id,
    )
    db.commit()
    return _to_read(db, user)


@router.post("/logout")
def admin_logout(request: Request, response: Response):
    clear_admin_session_cookie(response, request)
    return {"ok": True}


@router.get("/me", response_model=AdminUserRead)
def admin_me(
    db: Session = Depends(get_db),
    user: AdminUser = Depends(get_current_admin_user),
):
    return _to_read(db, user)
