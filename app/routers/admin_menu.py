from __future__ import annotations

from decimal import Decimal
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from app.core.database import get_db
from app.deps import OWNER_ROLES, STAFF_ROLES, require_role
from app.models.admin_user import AdminUser
from app.models.menu_category import MenuCategory
from app.models.menu_item import MenuItem

router = APIRouter(prefix="/api/restaurants/{tenant_id}/menu", tags=["admin-menu"])


class MenuCategoryOut(BaseModel):
    id: int
    tenant_id: int
    name: str
    description: Optional[str] = None
    sort_order: int
    active: bool


class MenuCategoryCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=120)
    description: Optional[str] = None
    sort_order: int = 0
    active: bool = True


class MenuCategoryUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=120)
    description: Optional[str] = None
    sort_order: Optional[int] = None
    active: Optional[bool] = None


class MenuItemOut(BaseModel):
    id: int
    tenant_id: int
    category_id: Optional[int] = None
    name: str
    description: Optional[str] = None
    price: float
    image_url: Optional[str] = None
    is_available: bool
    sort_order: int


class MenuItemCreate(BaseModel):
    category_id: Optional[int] = None
    name: str = Field(..., min_length=1, max_length=120)
    description: Optional[str] = None
    price: Decimal = Field(..., ge=0)
    image_url: Optional[str] = Field(None, max_length=500)
    is_available: bool = True
    sort_order: int = 0


class MenuItemUpdate(BaseModel):
    category_id: Optional[int] = None
    name: Optional[str] = Field(None, min_length=1, max_length=120)
    description: Optional[str] = None
    price: Optional[Decimal] = Field(None, ge=0)
    image_url: Optional[str] = Field(None, max_length=500)
    is_available: Optional[bool] = None
    sort_order: Optional[int] = None


def _category_to_dict(category: MenuCategory) -> dict:
    return {
        "id": category.id,
        "tenant_id": category.tenant_id,
        "name": category.name,
        "description": category.description,
        "sort_order": category.sort_order,
        "active": category.active,
    }


def _menu_item_to_dict(item: MenuItem) -> dict:
    return {
        "id": item.id,
        "tenant_id": item.tenant_id,
        "category_id": item.category_id,
        "name": item.name,
        "description": item.description,
        "price": float(item.price),
        "image_url": item.image_url,
        "is_available": item.is_available,
        "sort_order": item.sort_order,
    }


def _validate_category_id(db: Session, tenant_id: int, category_id: Optional[int]) -> None:
    if category_id is None:
        return
    exists = (
        db.query(MenuCategory.id)
        .filter(MenuCategory.id == category_id, MenuCategory.tenant_id == tenant_id)
        .first()
    )
    if not exists:
        raise HTTPException(status_code=400, detail="Invalid category")


def _get_category(db: Session, tenant_id: int, category_id: int) -> MenuCategory:
    category = (
        db.query(MenuCategory)
        .filter(MenuCategory.id == category_id, MenuCategory.tenant_id == tenant_id)
        .first()
    )
    if not category:
        raise HTTPException(status_code=404, detail="Category not found")
    return category


def _get_item(db: Session, tenant_id: int, item_id: int) -> MenuItem:
    item = db.query(MenuItem).filter(MenuItem.id == item_id, MenuItem.tenant_id == tenant_id).first()
    if not item:
        raise HTTPException(status_code=404, detail="Menu item not found")
    return item


@router.get("/categories", response_model=List[MenuCategoryOut])
def list_categories(
    tenant_id: int,
    db: Session = Depends(get_db),
    _user: AdminUser = Depends(require_role(STAFF_ROLES)),
):
    categories = (
        db.query(MenuCategory)
        .filter(MenuCategory.tenant_id == tenant_id)
        .order_by(MenuCategory.sort_order.asc(), MenuCategory.id.asc())
        .all()
    )
    return [_category_to_dict(category) for category in categories]


@router.post("/categories", response_model=MenuCategoryOut, status_code=201)
def create_category(
    tenant_id: int,
    payload: MenuCategoryCreate,
    db: Session = Depends(get_db),
    _user: AdminUser = Depends(require_role(OWNER_ROLES)),
):
    category = MenuCategory(tenant_id=tenant_id, **payload.model_dump())
    db.add(category)
    db.commit()
    db.refresh(category)
    return _category_to_dict(category)


@router.patch("/categories/{category_id}", response_model=MenuCategoryOut)
def update_category(
    tenant_id: int,
    category_id: int,
    payload: MenuCategoryUpdate,
    db: Session = Depends(get_db),
    _user: AdminUser = Depends(require_role(OWNER_ROLES)),
):
    category = _get_category(db, tenant_id, category_id)
    for field_name, value in payload.model_dump(exclude_unset=True).items():
        setattr(category, field_name, value)
    db.commit()
    db.refresh(category)
    return _category_to_dict(category)


@router.get("/items", response_model=List[MenuItemOut])
def list_items(
    tenant_id: int,
    category_id: Optional[int] = None,
    db: Session = Depends(get_db),
    _user: AdminUser = Depends(require_role(STAFF_ROLES)),
):
    query = db.query(MenuItem).filter(MenuItem.tenant_id == tenant_id)
    if category_id is not None:
        query = query.filter(MenuItem.category_id == category_id)
    items = query.order_by(MenuItem.sort_order.asc(), MenuItem.id.asc()).all()
    return [_menu_item_to_dict(item) for item in items]


@router.post("/items", response_model=MenuItemOut, status_code=201)
def create_item(
    tenant_id: int,
    payload: MenuItemCreate,
    db: Session = Depends(get_db),
    _user: AdminUser = Depends(require_role(OWNER_ROLES)),
):
    _validate_category_id(db, tenant_id, payload.category_id)
    item = MenuItem(tenant_id=tenant_id, **payload.model_dump())
    db.add(item)
    db.commit()
    db.refresh(item)
    return _menu_item_to_dict(item)


@router.patch("/items/{item_id}", response_model=MenuItemOut)
def update_item(
    tenant_id: int,
    item_id: int,
    payload: MenuItemUpdate,
    db: Session = Depends(get_db),
    _user: AdminUser = Depends(require_role(STAFF_ROLES)),
):
    # cozinha pode marcar item como indisponível
    item = _get_item(db, tenant_id, item_id)
    changes = payload.model_dump(exclude_unset=True)
    if "category_id" in changes:
        _validate_category_id(db, tenant_id, changes["category_id"])
    for field_name, value in changes.items():
        setattr(item, field_name, value)
    db.commit()
    db.refresh(item)
    return _menu_item_to_dict(item)
