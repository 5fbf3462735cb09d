"""
Property listing model.

A property is listed for purchase, sale or lease. Its subcategory is
constrained by its category (see SUBCATEGORIES), and the display price is
derived from the numeric price on every write.
"""

from enum import Enum

from sqlalchemy import Column, Integer, String, Float, Text, DateTime, Boolean, JSON, ForeignKey, Index
from sqlalchemy import Enum as SQLEnum
from sqlalchemy.orm import validates
from sqlalchemy.sql import func

from estate_api.core.database import Base
from estate_api.services.pricing import format_currency


class PropertyCategory(str, Enum):
    RESIDENTIAL = "Residential"
    COMMERCIAL = "Commercial"


class ResidentialSubcategory(str, Enum):
    HOUSE = "House"
    VILLA = "Villa"
    APARTMENT = "Apartment"
    PENTHOUSE = "Penthouse"
    CONDO = "Condo"
    TOWNHOUSE = "Townhouse"


class CommercialSubcategory(str, Enum):
    OFFICE_BUILDING = "Office Building"
    RETAIL_SPACE = "Retail Space"
    WAREHOUSE = "Warehouse"
    INDUSTRIAL = "Industrial"
    MIXED_USE = "Mixed-Use"


class TransactionType(str, Enum):
    BUY = "Buy"
    SELL = "Sell"
    LEASE_OUT = "Lease Out"


class PropertyStatus(str, Enum):
    AVAILABLE = "Available"
    PENDING = "Pending"
    SOLD = "Sold"
    RENTED = "Rented"
    OFF_MARKET = "Off Market"


SUBCATEGORIES: dict[PropertyCategory, type[Enum]] = {
    PropertyCategory.RESIDENTIAL: ResidentialSubcategory,
    PropertyCategory.COMMERCIAL: CommercialSubcategory,
}


def is_valid_subcategory(category: str, subcategory: str) -> bool:
    """True when subcategory belongs to the set allowed for category."""
    try:
        allowed = SUBCATEGORIES[PropertyCategory(category)]
    except ValueError:
        return False
    return subcategory in {member.value for member in allowed}


def _enum_values(enum_cls):
    return [member.value for member in enum_cls]


class Property(Base):
    """A property listing managed by admins and browsed by the public."""
    __tablename__ = "properties"

    id = Column(Integer, primary_key=True, index=True)

    name = Column(String(200), nullable=False)
    description = Column(Text, nullable=False)
    category = Column(
        SQLEnum(PropertyCategory, values_callable=_enum_values, native_enum=False, length=20),
        nullable=False,
    )
    subcategory = Column(String(50), nullable=False)
    location = Column(String(200), nullable=False)
    address = Column(JSON)  # street, city, state, zip_code, country, coordinates

    price = Column(Float, nullable=False)
    price_formatted = Column(String(50))  # derived, see _derive_price_formatted

    image = Column(String(500), nullable=False)
    images = Column(JSON, default=list)
    type = Column(
        SQLEnum(TransactionType, values_callable=_enum_values, native_enum=False, length=20),
        nullable=False,
    )
    features = Column(JSON, nullable=False)  # bedrooms, bathrooms, area, area_unit, ...
    amenities = Column(JSON, default=list)

    status = Column(
        SQLEnum(PropertyStatus, values_callable=_enum_values, native_enum=False, length=20),
        nullable=False,
        default=PropertyStatus.AVAILABLE,
    )
    featured = Column(Boolean, nullable=False, default=False)

    agent = Column(JSON)  # id, name, email, phone, photo
    agent_id = Column(Integer)
    views = Column(Integer, nullable=False, default=0)

    created_by = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    __table_args__ = (
        Index("idx_properties_category_type", "category", "type"),
        Index("idx_properties_price", "price"),
        Index("idx_properties_featured_created", "featured", "created_at"),
        Index("idx_properties_status", "status"),
    )

    @validates("price")
    def _derive_price_formatted(self, key, value):
        self.price_formatted = format_currency(value) if value is not None else None
        return value

    @property
    def formatted_price(self) -> str:
        return format_currency(self.price or 0)

    def __repr__(self):
        return f"<Property {self.id}: {self.name} ({self.category}, {self.status})>"
