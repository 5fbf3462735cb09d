"""
Service model for the agency's service catalogue (valuations, legal help, ...).
"""

from enum import Enum

from sqlalchemy import Column, Integer, String, Float, Text, DateTime, Boolean, JSON, Index
from sqlalchemy import Enum as SQLEnum
from sqlalchemy.sql import func

from estate_api.core.database import Base
from estate_api.services.pricing import format_price


class ServiceCategory(str, Enum):
    PROPERTY_SERVICES = "Property Services"
    FINANCIAL_SERVICES = "Financial Services"
    LEGAL_SERVICES = "Legal Services"
    CONSULTATION = "Consultation"


class PriceType(str, Enum):
    FREE = "free"
    FIXED = "fixed"
    HOURLY = "hourly"
    PERCENTAGE = "percentage"
    CONSULTATION = "consultation"


def _enum_values(enum_cls):
    return [member.value for member in enum_cls]


class Service(Base):
    """
    A service offered on the site.

    Listed featured-first, then by explicit display order.
    """
    __tablename__ = "services"

    id = Column(Integer, primary_key=True, index=True)

    title = Column(String(100), nullable=False)
    description = Column(Text, nullable=False)
    icon = Column(String(200), nullable=False)
    features = Column(JSON, nullable=False, default=list)  # ordered list of strings
    category = Column(
        SQLEnum(ServiceCategory, values_callable=_enum_values, native_enum=False, length=30),
        nullable=False,
        default=ServiceCategory.PROPERTY_SERVICES,
    )

    price = Column(Float, nullable=False, default=0)
    price_type = Column(
        SQLEnum(PriceType, values_callable=_enum_values, native_enum=False, length=20),
        nullable=False,
        default=PriceType.CONSULTATION,
    )
    duration = Column(String(100))

    active = Column(Boolean, nullable=False, default=True)
    featured = Column(Boolean, nullable=False, default=False)
    order = Column(Integer, nullable=False, default=0)

    image = Column(String(500))
    contact_info = Column(JSON)  # email, phone, department
    requirements = Column(JSON, default=list)
    benefits = Column(JSON, default=list)
    tags = Column(JSON, default=list)
    availability = Column(JSON)  # days, hours {start, end}, timezone

    # Metadata counters
    views = Column(Integer, nullable=False, default=0)
    inquiries = Column(Integer, nullable=False, default=0)
    last_updated = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    __table_args__ = (
        Index("idx_services_active_order", "active", "order"),
        Index("idx_services_category_active", "category", "active"),
        Index("idx_services_featured_order", "featured", "order"),
    )

    @property
    def formatted_price(self) -> str:
        return format_price(self.price or 0, self.price_type)

    def __repr__(self):
        return f"<Service {self.id}: {self.title} ({self.category})>"
