from __future__ import annotations

from fastapi import APIRouter, Depends, Header, HTTPException, status
from pydantic import BaseModel, EmailStr, Field
from sqlalchemy.orm import Session

from app.core.config import IS_PROD, ONBOARDING_API_TOKEN
from app.core.database import get_db
from app.core.errors import DomainError, to_http_exception
from app.services.restaurants import create_restaurant_with_owner, slug_exists
from utils.slug import is_valid_slug, normalize_slug

router = APIRouter(prefix="/api/onboarding", tags=["onboarding"])


class OnboardingRequest(BaseModel):
    restaurant_name: str = Field(..., min_length=2, max_length=120)
    slug: str | None = Field(default=None, min_length=3, max_length=80)
    currency: str | None = Field(default=None, max_length=10)
    owner_name: str = Field(..., min_length=2, max_length=120)
    owner_email: EmailStr
    owner_password: str = Field(..., min_length=8, max_length=200)


class AvailabilityResponse(BaseModel):
    slug: str
    slug_available: bool


class OnboardingResponse(BaseModel):
    tenant_id: int
    slug: str
    restaurant_name: str
    currency: str
    owner_email: EmailStr


def _ensure_onboarding_security(x_onboarding_token: str | None) -> None:
    if not IS_PROD:
        return
    configured = (ONBOARDING_API_TOKEN or "").strip()
    incoming = (x_onboarding_token or "").strip()
    if not configured:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Onboarding in production requires ONBOARDING_API_TOKEN",
        )
    if incoming != configured:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token")


@router.get("/availability", response_model=AvailabilityResponse)
def check_slug_availability(slug: str, db: Session = Depends(get_db)):
    normalized_slug = normalize_slug(slug)
    if not is_valid_slug(normalized_slug):
        raise HTTPException(status_code=400, detail="Invalid slug")
    return AvailabilityResponse(slug=normalized_slug, slug_available=not slug_exists(db, normalized_slug))


@router.post("/restaurant", response_model=OnboardingResponse, status_code=201)
def create_restaurant(
    payload: OnboardingRequest,
    x_onboarding_token: str | None = Header(default=None),
    db: Session = Depends(get_db),
):
    _ensure_onboarding_security(x_onboarding_token)
    try:
        restaurant, owner = create_restaurant_with_owner(
            db,
            name=payload.restaurant_name,
            slug=payload.slug,
            currency=payload.currency,
            owner_name=payload.owner_name,
            owner_email=payload.owner_email,
            owner_password=payload.owner_password,
        )
    except DomainError as exc:
        raise to_http_exception(exc) from exc

    return OnboardingResponse(
        tenant_id=restaurant.id,
        slug=restaurant.slug,
        restaurant_name=restaurant.name,
        currency=restaurant.currency,
        owner_email=owner.email,
    )
