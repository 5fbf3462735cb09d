from enum import Enum

from sqlalchemy import Column, Integer, String, DateTime, Boolean, JSON
from sqlalchemy import Enum as SQLEnum
from sqlalchemy.sql import func

from estate_api.core.database import Base


class UserRole(str, Enum):
    USER = "user"
    AGENT = "agent"
    ADMIN = "admin"


class User(Base):
    """
    Account record. Credentials are issued and verified by the auth
    service; this API only reads identity and role.
    """
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    email = Column(String(255), nullable=False, unique=True, index=True)
    password_hash = Column(String(255), nullable=False)
    name = Column(String(100), nullable=False)
    phone = Column(String(30))
    avatar = Column(String(500))
    preferences = Column(JSON, default=dict)

    role = Column(
        SQLEnum(UserRole, values_callable=lambda e: [m.value for m in e], native_enum=False, length=10),
        nullable=False,
        default=UserRole.USER,
    )
    is_active = Column(Boolean, nullable=False, default=True)
    email_verified = Column(Boolean, nullable=False, default=False)
    last_login = Column(DateTime(timezone=True))

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    def __repr__(self):
        return f"<User(id={self.id}, email={self.email}, role={self.role})>"
