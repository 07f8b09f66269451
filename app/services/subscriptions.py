from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.core.config import TRIAL_DAYS
from app.core.errors import NotFound, ValidationError
from app.models.admin_user import AdminUser
from app.models.restaurant import Restaurant
from app.models.subscription import Subscription, SubscriptionStatus
from app.services.admin_audit import log_admin_action


def start_trial(db: Session, tenant_id: int, *, plan_name: str = "basic") -> Subscription:
    """Adiciona a assinatura de teste na sessão, sem commit."""
    subscription = Subscription(
        tenant_id=tenant_id,
        plan_name=plan_name,
        status=SubscriptionStatus.TRIAL,
        trial_ends_at=datetime.now(timezone.utc) + timedelta(days=TRIAL_DAYS),
    )
    db.add(subscription)
    return subscription


def list_subscriptions(db: Session) -> list[tuple[Subscription, str]]:
    rows = (
        db.query(Subscription, Restaurant.name)
        .join(Restaurant, Restaurant.id == Subscription.tenant_id)
        .order_by(Subscription.id.desc())
        .all()
    )
    return [(subscription, name) for subscription, name in rows]


def update_subscription(
    db: Session,
    subscription_id: int,
    *,
    admin: AdminUser,
    status: Optional[str] = None,
    plan_name: Optional[str] = None,
    current_period_end: Optional[datetime] = None,
) -> Subscription:
    subscription = db.query(Subscription).filter(Subscription.id == subscription_id).first()
    if not subscription:
        raise NotFound("Subscription not found")

    changes: dict[str, str] = {}
    if status is not None:
        try:
            new_status = SubscriptionStatus(status)
        except ValueError:
            raise ValidationError(f"Unknown subscription status: {status}") from None
        subscription.status = new_status
        changes["status"] = new_status.value
    if plan_name is not None:
        plan_name = plan_name.strip()
        if not plan_name:
            raise ValidationError("Plan name must not be empty")
        subscription.plan_name = plan_name
        changes["plan_name"] = plan_name
    if current_period_end is not None:
        subscription.current_period_end = current_period_end
        changes["current_period_end"] = current_period_end.isoformat()

    log_admin_action(
        db,
        tenant_id=subscription.tenant_id,
        user_id=admin.id,
        action="subscription_updated",
        entity_type="subscription",
        entity_id=subscription.id,
        meta=changes,
    )
    try:
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        raise
    db.refresh(subscription)
    return subscription


def subscription_to_dict(subscription: Subscription, restaurant_name: str | None = None) -> dict:
    payload = {
        "id": subscription.id,
        "tenant_id": subscription.tenant_id,
        "plan_name": subscription.plan_name,
        "status": SubscriptionStatus(subscription.status).value,
        "trial_ends_at": subscription.trial_ends_at.isoformat() if subscription.trial_ends_at else None,
        "current_period_end": subscription.current_period_end.isoformat()
        if subscription.current_period_end
        else None,
    }
    if restaurant_name is not None:
        payload["restaurant_name"] = restaurant_name
    return payload
