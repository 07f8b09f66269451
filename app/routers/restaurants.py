from __future__ import annotations

from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.core.database import get_db
from app.core.errors import DomainError, to_http_exception
from app.deps import OWNER_ROLES, STAFF_ROLES, require_role
from app.models.admin_user import AdminUser
from app.models.restaurant_table import RestaurantTable
from app.services.restaurants import get_restaurant, restaurant_to_dict, update_restaurant_profile

router = APIRouter(prefix="/api/restaurants/{tenant_id}", tags=["restaurants"])


class RestaurantProfileUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=120)
    description: Optional[str] = None
    address: Optional[str] = Field(None, max_length=255)
    phone: Optional[str] = Field(None, max_length=30)
    logo_url: Optional[str] = Field(None, max_length=500)
    currency: Optional[str] = Field(None, min_length=1, max_length=10)


class TableOut(BaseModel):
    id: int
    tenant_id: int
    table_number: str
    capacity: int
    is_active: bool


class TableCreate(BaseModel):
    table_number: str = Field(..., min_length=1, max_length=20)
    capacity: int = Field(4, ge=1, le=100)


class TableUpdate(BaseModel):
    table_number: Optional[str] = Field(None, min_length=1, max_length=20)
    capacity: Optional[int] = Field(None, ge=1, le=100)
    is_active: Optional[bool] = None


def _table_to_dict(table: RestaurantTable) -> dict:
    return {
        "id": table.id,
        "tenant_id": table.tenant_id,
        "table_number": table.table_number,
        "capacity": table.capacity,
        "is_active": table.is_active,
    }


@router.get("")
def get_restaurant_profile(
    tenant_id: int,
    db: Session = Depends(get_db),
    _user: AdminUser = Depends(require_role(STAFF_ROLES)),
):
    try:
        return restaurant_to_dict(get_restaurant(db, tenant_id))
    except DomainError as exc:
        raise to_http_exception(exc) from exc


@router.patch("")
def patch_restaurant_profile(
    tenant_id: int,
    payload: RestaurantProfileUpdate,
    db: Session = Depends(get_db),
    user: AdminUser = Depends(require_role(OWNER_ROLES)),
):
    try:
        restaurant = update_restaurant_profile(db, tenant_id, payload.model_dump(exclude_unset=True), actor=user)
    except DomainError as exc:
        raise to_http_exception(exc) from exc
    return restaurant_to_dict(restaurant)


@router.get("/tables", response_model=List[TableOut])
def list_tables(
    tenant_id: int,
    db: Session = Depends(get_db),
    _user: AdminUser = Depends(require_role(STAFF_ROLES)),
):
    tables = (
        db.query(RestaurantTable)
        .filter(RestaurantTable.tenant_id == tenant_id)
        .order_by(RestaurantTable.table_number.asc())
        .all()
    )
    return [_table_to_dict(table) for table in tables]


@router.post("/tables", response_model=TableOut, status_code=201)
def create_table(
    tenant_id: int,
    payload: TableCreate,
    db: Session = Depends(get_db),
    _user: AdminUser = Depends(require_role(OWNER_ROLES)),
):
    table = RestaurantTable(
        tenant_id=tenant_id,
        table_number=payload.table_number.strip(),
        capacity=payload.capacity,
        is_active=True,
    )
    db.add(table)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise HTTPException(status_code=409, detail="Table number already exists") from None
    db.refresh(table)
    return _table_to_dict(table)


@router.patch("/tables/{table_id}", response_model=TableOut)
def update_table(
    tenant_id: int,
    table_id: int,
    payload: TableUpdate,
    db: Session = Depends(get_db),
    _user: AdminUser = Depends(require_role(OWNER_ROLES)),
):
    table = (
        db.query(RestaurantTable)
        .filter(RestaurantTable.id == table_id, RestaurantTable.tenant_id == tenant_id)
        .first()
    )
    if not table:
        raise HTTPException(status_code=404, detail="Table not found")
    for field_name, value in payload.model_dump(exclude_unset=True).items():
        setattr(table, field_name, value.strip() if isinstance(value, str) else value)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise HTTPException(status_code=409, detail="Table number already exists") from None
    db.refresh(table)
    return _table_to_dict(table)
