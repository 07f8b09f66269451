from __future__ import annotations

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Request, Response
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from app.core.database import get_db
from app.core.errors import DomainError, to_http_exception
from app.models.menu_category import MenuCategory
from app.models.menu_item import MenuItem
from app.models.restaurant_table import RestaurantTable
from app.services.order_gate import evaluate_order_acceptance
from app.services.orders import (
    LineItemRequest,
    create_order,
    customer_cancel,
    get_orders_by_ids,
    order_to_dict,
)
from app.services.restaurants import get_restaurant_by_slug
from app.services.session_orders import store_tracker, tracker_from_request

logger = logging.getLogger(__name__)
PUBLIC_MENU_PREFIX = "[PUBLIC_MENU]"

router = APIRouter(prefix="/api/public", tags=["public-menu"])


class PublicRestaurantResponse(BaseModel):
    id: int
    slug: str
    name: str
    description: Optional[str]
    address: Optional[str]
    phone: Optional[str]
    logo_url: Optional[str]
    currency: str


class PublicMenuItem(BaseModel):
    id: int
    category_id: Optional[int]
    name: str
    description: Optional[str]
    price: float
    image_url: Optional[str]


class PublicMenuCategory(BaseModel):
    id: int
    name: str
    sort_order: int
    items: list[PublicMenuItem]


class PublicMenuResponse(BaseModel):
    restaurant: PublicRestaurantResponse
    accepting_orders: bool
    table: Optional[dict]
    categories: list[PublicMenuCategory]
    items_without_category: list[PublicMenuItem]


class PublicOrderItem(BaseModel):
    menu_item_id: int
    quantity: int = Field(..., gt=0, le=99)


class PublicOrderPayload(BaseModel):
    table_id: Optional[int] = None
    customer_name: Optional[str] = Field(default=None, max_length=120)
    customer_phone: Optional[str] = Field(default=None, max_length=30)
    notes: Optional[str] = Field(default=None, max_length=1000)
    items: list[PublicOrderItem]


def _menu_item_response(item: MenuItem) -> PublicMenuItem:
    return PublicMenuItem(
        id=item.id,
        category_id=item.category_id,
        name=item.name,
        description=item.description,
        price=float(item.price),
        image_url=item.image_url,
    )


@router.get("/{slug}/menu", response_model=PublicMenuResponse)
def get_public_menu(slug: str, table: Optional[int] = None, db: Session = Depends(get_db)):
    try:
        restaurant = get_restaurant_by_slug(db, slug)
    except DomainError as exc:
        raise to_http_exception(exc, public=True) from exc

    categories = (
        db.query(MenuCategory)
        .filter(MenuCategory.tenant_id == restaurant.id, MenuCategory.active.is_(True))
        .order_by(MenuCategory.sort_order.asc(), MenuCategory.id.asc())
        .all()
    )
    items = (
        db.query(MenuItem)
        .filter(MenuItem.tenant_id == restaurant.id, MenuItem.is_available.is_(True))
        .order_by(MenuItem.sort_order.asc(), MenuItem.id.asc())
        .all()
    )

    items_by_category: dict[int, list[PublicMenuItem]] = {category.id: [] for category in categories}
    items_without_category: list[PublicMenuItem] = []
    for item in items:
        if item.category_id in items_by_category:
            items_by_category[item.category_id].append(_menu_item_response(item))
        else:
            items_without_category.append(_menu_item_response(item))

    table_payload = None
    if table is not None:
        table_row = (
            db.query(RestaurantTable)
            .filter(
                RestaurantTable.id == table,
                RestaurantTable.tenant_id == restaurant.id,
                RestaurantTable.is_active.is_(True),
            )
            .first()
        )
        if table_row:
            table_payload = {"id": table_row.id, "table_number": table_row.table_number}

    decision = evaluate_order_acceptance(db, restaurant.id)
    logger.info("%s menu served slug=%s accepting=%s", PUBLIC_MENU_PREFIX, restaurant.slug, decision.accepted)
    return PublicMenuResponse(
        restaurant=PublicRestaurantResponse(
            id=restaurant.id,
            slug=restaurant.slug,
            name=restaurant.name,
            description=restaurant.description,
            address=restaurant.address,
            phone=restaurant.phone,
            logo_url=restaurant.logo_url,
            currency=restaurant.currency,
        ),
        accepting_orders=decision.accepted,
        table=table_payload,
        categories=[
            PublicMenuCategory(
                id=category.id,
                name=category.name,
                sort_order=category.sort_order,
                items=items_by_category[category.id],
            )
            for category in categories
        ],
        items_without_category=items_without_category,
    )


@router.get("/{slug}/accepting-orders")
def get_accepting_orders(slug: str, db: Session = Depends(get_db)):
    try:
        restaurant = get_restaurant_by_slug(db, slug)
    except DomainError as exc:
        raise to_http_exception(exc, public=True) from exc
    # sem motivo nem saldo: o cliente só precisa saber se pode pedir
    return {"accepting_orders": evaluate_order_acceptance(db, restaurant.id).accepted}


@router.post("/{slug}/orders", status_code=201)
def create_public_order(
    slug: str,
    payload: PublicOrderPayload,
    request: Request,
    response: Response,
    db: Session = Depends(get_db),
):
    tracker = tracker_from_request(request)
    try:
        restaurant = get_restaurant_by_slug(db, slug)
        order = create_order(
            db,
            tenant_id=restaurant.id,
            table_id=payload.table_id,
            customer_name=payload.customer_name,
            customer_phone=payload.customer_phone,
            notes=payload.notes,
            line_items=[LineItemRequest(item.menu_item_id, item.quantity) for item in payload.items],
            tracker=tracker,
        )
    except DomainError as exc:
        raise to_http_exception(exc, public=True) from exc

    store_tracker(response, tracker, request)
    return order_to_dict(order)


@router.get("/my-orders")
def list_my_orders(request: Request, db: Session = Depends(get_db)):
    tracker = tracker_from_request(request)
    orders = get_orders_by_ids(db, tracker.list_session_orders())
    return [order_to_dict(order) for order in orders]


@router.post("/orders/{order_id}/cancel")
def cancel_my_order(order_id: int, request: Request, db: Session = Depends(get_db)):
    tracker = tracker_from_request(request)
    try:
        bill = customer_cancel(db, order_id=order_id, tracker=tracker)
    except DomainError as exc:
        raise to_http_exception(exc, public=True) from exc
    return bill.as_dict()
