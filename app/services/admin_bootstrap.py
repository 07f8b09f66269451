from __future__ import annotations

from sqlalchemy import inspect
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session

from app.models.admin_user import AdminRole, AdminUser
from app.services.passwords import MIN_PASSWORD_LENGTH, hash_password


def ensure_admin_users_table(engine: Engine) -> None:
    inspector = inspect(engine)
    if not inspector.has_table("admin_users"):
        raise RuntimeError("Tabela admin_users não encontrada. Rode `alembic upgrade head` primeiro.")


def upsert_admin_user(
    db: Session,
    *,
    email: str,
    name: str,
    role: str = AdminRole.MASTER_ADMIN.value,
    tenant_id: int | None = None,
    password: str | None = None,
) -> tuple[AdminUser, bool]:
    role = AdminRole(role).value
    if role == AdminRole.MASTER_ADMIN.value:
        tenant_id = None
    elif tenant_id is None:
        raise ValueError("tenant_id é obrigatório para owner/staff.")
    email = email.strip().lower()

    query = db.query(AdminUser).filter(AdminUser.email == email)
    query = query.filter(AdminUser.tenant_id.is_(None)) if tenant_id is None else query.filter(
        AdminUser.tenant_id == tenant_id
    )
    existing = query.first()
    if existing:
        existing.name = name
        existing.role = role
        existing.active = True
        if password:
            existing.password_hash = hash_password(password)
        db.commit()
        db.refresh(existing)
        return existing, False

    if not password or len(password) < MIN_PASSWORD_LENGTH:
        raise ValueError(f"Senha com pelo menos {MIN_PASSWORD_LENGTH} caracteres é obrigatória.")

    admin = AdminUser(
        tenant_id=tenant_id,
        email=email,
        name=name,
        password_hash=hash_password(password),
        role=role,
        active=True,
    )
    db.add(admin)
    db.commit()
    db.refresh(admin)
    return admin, True
