from __future__ import annotations

import json
from typing import Any, Mapping, Optional

from sqlalchemy.orm import Session

from app.models.admin_audit_log import AdminAuditLog


def log_admin_action(
    db: Session,
    *,
    tenant_id: Optional[int],
    user_id: Optional[int],
    action: str,
    entity_type: Optional[str] = None,
    entity_id: Optional[int] = None,
    meta: Optional[Mapping[str, Any]] = None,
) -> AdminAuditLog:
    """Adiciona a entrada na sessão; o commit fica com a operação auditada."""
    entry = AdminAuditLog(
        tenant_id=tenant_id,
        user_id=user_id,
        action=action,
        entity_type=entity_type,
        entity_id=entity_id,
        # Decimal e datetime viram texto
        meta_json=json.dumps(meta, default=str) if meta else None,
    )
    db.add(entry)
    return entry


def list_admin_actions(db: Session, *, tenant_id: Optional[int] = None, limit: int = 100) -> list[AdminAuditLog]:
    query = db.query(AdminAuditLog)
    if tenant_id is not None:
        query = query.filter(AdminAuditLog.tenant_id == tenant_id)
    return query.order_by(AdminAuditLog.id.desc()).limit(limit).all()
