import enum
from datetime import datetime

from sqlalchemy import Boolean, Column, DateTime, Integer, String, UniqueConstraint

from app.core.database import Base


class AdminRole(str, enum.Enum):
    OWNER = "owner"
    STAFF = "staff"
    MASTER_ADMIN = "master_admin"


class AdminUser(Base):
    __tablename__ = "admin_users"
    __table_args__ = (UniqueConstraint("tenant_id", "email", name="uq_admin_users_tenant_email"),)

    id = Column(Integer, primary_key=True, index=True)
    # nulo para master admin (acesso a todos os restaurantes)
    tenant_id = Column(Integer, nullable=True, index=True)

    email = Column(String, nullable=False)
    name = Column(String, nullable=False)
    password_hash = Column(String, nullable=False)
    role = Column(String, nullable=False, default=AdminRole.STAFF.value)
    active = Column(Boolean, default=True)
    created_at = Column(DateTime, default=datetime.utcnow)
