from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Integer, String, Text, func
from sqlalchemy.orm import relationship

from app.core.database import Base


class Restaurant(Base):
    __tablename__ = "restaurants"

    id = Column(Integer, primary_key=True)
    name = Column(String(120), nullable=False)
    slug = Column(String(80), unique=True, index=True, nullable=False)
    description = Column(Text, nullable=True)
    address = Column(String(255), nullable=True)
    phone = Column(String(30), nullable=True)
    logo_url = Column(String(500), nullable=True)
    # apenas rótulo de exibição, sem conversão
    currency = Column(String(10), nullable=False, default="USD")
    owner_id = Column(Integer, ForeignKey("admin_users.id"), nullable=True)

    # controlado pelo master admin, independente do saldo
    is_active = Column(Boolean, nullable=False, default=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    balance = relationship("RestaurantBalance", back_populates="restaurant", uselist=False)
    subscription = relationship("Subscription", back_populates="restaurant", uselist=False)
