from __future__ import annotations

import logging
from decimal import Decimal
from typing import Optional

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from app.core.config import DEFAULT_CURRENCY, MIN_ACCEPT_BALANCE
from app.core.errors import DomainError, NotFound, ValidationError
from app.models.admin_user import AdminRole, AdminUser
from app.models.balance import RestaurantBalance
from app.models.order import ACTIVE_STATUSES, Order
from app.models.restaurant import Restaurant
from app.models.subscription import Subscription, SubscriptionStatus
from app.services import ledger
from app.services.admin_audit import log_admin_action
from app.services.passwords import hash_password
from app.services.subscriptions import start_trial
from utils.slug import is_valid_slug, normalize_slug

logger = logging.getLogger(__name__)

PROFILE_FIELDS = ("name", "description", "address", "phone", "logo_url", "currency")


class SlugUnavailable(DomainError):
    status_code = 409
    public_message = "Slug already in use"


def slug_exists(db: Session, slug: str) -> bool:
    return db.query(Restaurant.id).filter(Restaurant.slug == slug).first() is not None


def generate_unique_slug(db: Session, name: str, requested_slug: Optional[str] = None) -> str:
    if requested_slug:
        candidate = normalize_slug(requested_slug)
        if not is_valid_slug(candidate):
            raise ValidationError("Invalid slug")
        if slug_exists(db, candidate):
            raise SlugUnavailable("Slug already in use")
        return candidate

    candidate = normalize_slug(name)[:70].strip("-") or "restaurant"
    if len(candidate) < 3:
        candidate = f"{candidate}-restaurant"
    if not slug_exists(db, candidate):
        return candidate
    for suffix in range(2, 10000):
        with_suffix = f"{candidate}-{suffix}"
        if not slug_exists(db, with_suffix):
            return with_suffix
    raise SlugUnavailable("Could not generate a unique slug")


def get_restaurant(db: Session, tenant_id: int) -> Restaurant:
    restaurant = db.query(Restaurant).filter(Restaurant.id == tenant_id).first()
    if not restaurant:
        raise NotFound("Restaurant not found")
    return restaurant


def get_restaurant_by_slug(db: Session, slug: str) -> Restaurant:
    restaurant = db.query(Restaurant).filter(Restaurant.slug == normalize_slug(slug)).first()
    if not restaurant:
        raise NotFound("Restaurant not found")
    return restaurant


def create_restaurant_with_owner(
    db: Session,
    *,
    name: str,
    owner_name: str,
    owner_email: str,
    owner_password: str,
    slug: Optional[str] = None,
    currency: Optional[str] = None,
) -> tuple[Restaurant, AdminUser]:
    """Cadastro do restaurante: dono, saldo zerado e assinatura em teste."""
    name = name.strip()
    if not name:
        raise ValidationError("Restaurant name is required")

    restaurant = Restaurant(
        name=name,
        slug=generate_unique_slug(db, name, slug),
        currency=(currency or DEFAULT_CURRENCY).strip().upper()[:10],
        is_active=True,
    )
    db.add(restaurant)
    db.flush()

    owner = AdminUser(
        tenant_id=restaurant.id,
        email=owner_email.strip().lower(),
        name=owner_name.strip(),
        password_hash=hash_password(owner_password),
        role=AdminRole.OWNER.value,
        active=True,
    )
    db.add(owner)
    db.flush()
    restaurant.owner_id = owner.id

    db.add(RestaurantBalance(tenant_id=restaurant.id, current_balance=Decimal("0")))
    start_trial(db, restaurant.id)

    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise SlugUnavailable("Slug already in use") from None
    except SQLAlchemyError:
        db.rollback()
        raise
    db.refresh(restaurant)
    db.refresh(owner)
    logger.info("restaurant onboarded tenant_id=%s slug=%s", restaurant.id, restaurant.slug)
    return restaurant, owner


def update_restaurant_profile(db: Session, tenant_id: int, changes: dict, *, actor: AdminUser) -> Restaurant:
    restaurant = get_restaurant(db, tenant_id)
    applied = {}
    for field_name in PROFILE_FIELDS:
        if field_name not in changes or changes[field_name] is None:
            continue
        value = str(changes[field_name]).strip()
        if field_name in {"name", "currency"} and not value:
            raise ValidationError(f"Restaurant {field_name} is required")
        if field_name == "currency":
            value = value.upper()[:10]
        setattr(restaurant, field_name, value or None)
        applied[field_name] = value
    if applied:
        log_admin_action(
            db,
            tenant_id=tenant_id,
            user_id=actor.id,
            action="restaurant_profile_updated",
            entity_type="restaurant",
            entity_id=tenant_id,
            meta=applied,
        )
        try:
            db.commit()
        except SQLAlchemyError:
            db.rollback()
            raise
        db.refresh(restaurant)
    return restaurant


def set_restaurant_active(db: Session, tenant_id: int, is_active: bool, *, admin: AdminUser) -> Restaurant:
    restaurant = get_restaurant(db, tenant_id)
    if bool(restaurant.is_active) == bool(is_active):
        return restaurant
    restaurant.is_active = bool(is_active)
    log_admin_action(
        db,
        tenant_id=tenant_id,
        user_id=admin.id,
        action="restaurant_activated" if is_active else "restaurant_deactivated",
        entity_type="restaurant",
        entity_id=tenant_id,
    )
    try:
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        raise
    db.refresh(restaurant)
    logger.info("restaurant is_active=%s tenant_id=%s", restaurant.is_active, tenant_id)
    return restaurant


def list_restaurants(db: Session) -> list[dict]:
    rows = (
        db.query(Restaurant, RestaurantBalance.current_balance, Subscription.status)
        .outerjoin(RestaurantBalance, RestaurantBalance.tenant_id == Restaurant.id)
        .outerjoin(Subscription, Subscription.tenant_id == Restaurant.id)
        .order_by(Restaurant.id.asc())
        .all()
    )
    result = []
    for restaurant, balance, subscription_status in rows:
        balance = Decimal(str(balance or 0)).quantize(ledger.CENTS)
        payload = restaurant_to_dict(restaurant)
        payload.update(
            {
                "balance": float(balance),
                "accepting_orders": bool(restaurant.is_active) and balance >= MIN_ACCEPT_BALANCE,
                "subscription_status": SubscriptionStatus(subscription_status).value
                if subscription_status
                else None,
            }
        )
        result.append(payload)
    return result


def platform_overview(db: Session) -> dict:
    total_restaurants = db.query(func.count(Restaurant.id)).scalar() or 0
    active_restaurants = db.query(func.count(Restaurant.id)).filter(Restaurant.is_active.is_(True)).scalar() or 0
    total_orders = db.query(func.count(Order.id)).scalar() or 0
    open_orders = db.query(func.count(Order.id)).filter(Order.status.in_(list(ACTIVE_STATUSES))).scalar() or 0
    total_balance = db.query(func.coalesce(func.sum(RestaurantBalance.current_balance), 0)).scalar()
    below_threshold = (
        db.query(func.count(RestaurantBalance.id))
        .filter(RestaurantBalance.current_balance < MIN_ACCEPT_BALANCE)
        .scalar()
        or 0
    )
    return {
        "total_restaurants": int(total_restaurants),
        "active_restaurants": int(active_restaurants),
        "total_orders": int(total_orders),
        "open_orders": int(open_orders),
        "total_balance": float(Decimal(str(total_balance or 0))),
        "restaurants_below_threshold": int(below_threshold),
    }


def restaurant_to_dict(restaurant: Restaurant) -> dict:
    return {
        "id": restaurant.id,
        "name": restaurant.name,
        "slug": restaurant.slug,
        "description": restaurant.description,
        "address": restaurant.address,
        "phone": restaurant.phone,
        "logo_url": restaurant.logo_url,
        "currency": restaurant.currency,
        "is_active": bool(restaurant.is_active),
        "created_at": restaurant.created_at.isoformat() if restaurant.created_at else None,
    }
