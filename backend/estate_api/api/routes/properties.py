"""
Property listing API endpoints.

Public browsing (filtered list, ranked search, featured, detail) and admin
CRUD plus aggregate statistics.
"""

import logging
from datetime import date, datetime
from enum import Enum
from typing import Annotated, Any, List, Literal, Optional, Union

from fastapi import APIRouter, BackgroundTasks, Body, Depends, Query
from pydantic import EmailStr, Field, HttpUrl, field_validator
from sqlalchemy import func
from sqlalchemy.orm import Session

from estate_api.core.access import admin_only
from estate_api.core.database import get_db
from estate_api.core.errors import NotFoundError, ValidationFailed
from estate_api.core.responses import CamelModel, envelope
from estate_api.models.property import (
    Property,
    PropertyCategory,
    PropertyStatus,
    TransactionType,
    ResidentialSubcategory,
    CommercialSubcategory,
    is_valid_subcategory,
)
from estate_api.models.user import User
from estate_api.services.query_engine import (
    PropertyFilter,
    parse_flag,
    list_properties,
    search_properties,
    featured_properties,
)
from estate_api.services.view_counter import increment_property_views

router = APIRouter(prefix="/properties", tags=["properties"])
logger = logging.getLogger(__name__)


# =============================================================================
# Request/Response Models
# =============================================================================

class Coordinates(CamelModel):
    latitude: Optional[float] = Field(None, ge=-90, le=90)
    longitude: Optional[float] = Field(None, ge=-180, le=180)


class Address(CamelModel):
    street: str = Field(..., min_length=1)
    city: str = Field(..., min_length=1)
    state: str = Field(..., min_length=1)
    zip_code: str = Field(..., min_length=1)
    country: str = "USA"
    coordinates: Optional[Coordinates] = None


class Features(CamelModel):
    bedrooms: int = Field(0, ge=0)
    bathrooms: float = Field(0, ge=0)
    area: float = Field(..., ge=1)
    area_unit: Literal["sqft", "sqm"] = "sqft"
    parking_spaces: int = Field(0, ge=0)
    year_built: Optional[int] = Field(None, ge=1800)
    floors: int = Field(1, ge=1)

    @field_validator("year_built")
    @classmethod
    def year_not_too_far_ahead(cls, v):
        if v is not None and v > date.today().year + 5:
            raise ValueError("Year built cannot be more than 5 years in the future")
        return v


class Agent(CamelModel):
    id: int
    name: str = Field(..., min_length=1)
    email: EmailStr
    phone: str = Field(..., min_length=1)
    photo: Optional[str] = None


class PropertyCreateBase(CamelModel):
    name: str = Field(..., min_length=1, max_length=200)
    description: str = Field(..., min_length=10, max_length=2000)
    location: str = Field(..., min_length=1, max_length=200)
    address: Optional[Address] = None
    price: float = Field(..., ge=0)
    image: HttpUrl
    images: List[HttpUrl] = []
    type: TransactionType
    features: Features
    amenities: List[str] = []
    status: PropertyStatus = PropertyStatus.AVAILABLE
    featured: bool = False
    agent: Optional[Agent] = None
    agent_id: Optional[int] = None

    @field_validator("name", "description", "location", mode="before")
    @classmethod
    def strip_text(cls, v):
        return v.strip() if isinstance(v, str) else v


class ResidentialPropertyCreate(PropertyCreateBase):
    category: Literal["Residential"]
    subcategory: ResidentialSubcategory


class CommercialPropertyCreate(PropertyCreateBase):
    category: Literal["Commercial"]
    subcategory: CommercialSubcategory


# The category tag decides which subcategory enum applies, so an invalid
# category/subcategory pair fails validation before reaching the database.
PropertyCreate = Annotated[
    Union[ResidentialPropertyCreate, CommercialPropertyCreate],
    Body(discriminator="category"),
]


class PropertyUpdate(CamelModel):
    """Partial update. category/subcategory are checked against the merged record."""
    name: Optional[str] = Field(None, min_length=1, max_length=200)
    description: Optional[str] = Field(None, min_length=10, max_length=2000)
    category: Optional[PropertyCategory] = None
    subcategory: Optional[str] = None
    location: Optional[str] = Field(None, min_length=1, max_length=200)
    address: Optional[Address] = None
    price: Optional[float] = Field(None, ge=0)
    image: Optional[HttpUrl] = None
    images: Optional[List[HttpUrl]] = None
    type: Optional[TransactionType] = None
    features: Optional[Features] = None
    amenities: Optional[List[str]] = None
    status: Optional[PropertyStatus] = None
    featured: Optional[bool] = None
    agent: Optional[Agent] = None
    agent_id: Optional[int] = None


class PropertyResponse(CamelModel):
    id: int
    name: str
    description: str
    category: PropertyCategory
    subcategory: str
    location: str
    address: Optional[dict] = None
    price: float
    price_formatted: Optional[str] = None
    formatted_price: str
    image: str
    images: List[str] = []
    type: TransactionType
    features: dict
    amenities: List[str] = []
    status: PropertyStatus
    featured: bool
    agent: Optional[dict] = None
    agent_id: Optional[int] = None
    views: int
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @field_validator("images", "amenities", mode="before")
    @classmethod
    def none_as_empty(cls, v):
        return v or []


def _to_response(prop: Property) -> PropertyResponse:
    return PropertyResponse.model_validate(prop)


# Columns a caller may clear by sending null; nulls for other fields are ignored
NULLABLE_FIELDS = {"address", "agent", "agent_id"}


def _column_values(data: dict[str, Any]) -> dict[str, Any]:
    """Convert validated request fields to column values (nested models become JSON)."""
    values = {}
    for field, value in data.items():
        if isinstance(value, Enum):
            value = value.value
        elif isinstance(value, CamelModel):
            value = value.model_dump(mode="json", by_alias=True, exclude_none=True)
        elif isinstance(value, list):
            value = [str(v) if isinstance(v, HttpUrl) else v for v in value]
        elif isinstance(value, HttpUrl):
            value = str(value)
        values[field] = value
    return values


# =============================================================================
# Public endpoints
# =============================================================================

@router.get("/")
def get_properties(
    type: Optional[TransactionType] = Query(None),
    category: Optional[PropertyCategory] = Query(None),
    location: Optional[str] = Query(None, min_length=1, max_length=200),
    min_price: Optional[float] = Query(None, alias="minPrice", ge=0),
    max_price: Optional[float] = Query(None, alias="maxPrice", ge=0),
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    sort: Optional[str] = Query(None, description="e.g. -createdAt, price, -featured,price"),
    featured: Optional[str] = Query(None, description="'true' or 'false'"),
    status: PropertyStatus = Query(PropertyStatus.AVAILABLE),
    db: Session = Depends(get_db),
):
    """
    List properties with filtering, sorting and pagination.

    - **location**: case-insensitive substring matched against location, name and description
    - **minPrice/maxPrice**: inclusive price range, either bound optional
    - **sort**: defaults to newest first
    """
    filters = PropertyFilter(
        category=category,
        type=type,
        status=status,
        featured=parse_flag(featured),
        min_price=min_price,
        max_price=max_price,
        location=location.strip() if location else None,
    )
    result = list_properties(db, filters, sort=sort, page=page, limit=limit)

    return envelope(
        {
            "properties": [_to_response(p) for p in result.items],
            "pagination": result.page_info,
        },
        "Properties retrieved successfully",
    )


@router.get("/search")
def search(
    q: Optional[str] = Query(None, max_length=200),
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    db: Session = Depends(get_db),
):
    """Ranked keyword search over available properties."""
    result = search_properties(db, q, page=page, limit=limit)
    total = result.page_info.total_items

    return envelope(
        {
            "properties": [_to_response(p) for p in result.items],
            "pagination": result.page_info,
            "searchQuery": q,
        },
        f'Found {total} properties matching "{q}"',
    )


@router.get("/featured")
def get_featured_properties(
    limit: int = Query(6, ge=1, le=100),
    db: Session = Depends(get_db),
):
    properties = featured_properties(db, limit=limit)
    return envelope(
        {"properties": [_to_response(p) for p in properties]},
        "Featured properties retrieved successfully",
    )


# =============================================================================
# Admin endpoints
# =============================================================================

@router.get("/admin/stats")
def get_property_stats(
    db: Session = Depends(get_db),
    _admin: User = Depends(admin_only),
):
    """Aggregate counts and price statistics across all properties."""
    total, avg_price, min_price, max_price = db.query(
        func.count(Property.id),
        func.avg(Property.price),
        func.min(Property.price),
        func.max(Property.price),
    ).one()

    by_status = db.query(Property.status, func.count(Property.id)).group_by(Property.status).all()
    by_category = db.query(
        Property.category, func.count(Property.id), func.avg(Property.price)
    ).group_by(Property.category).all()
    by_type = db.query(Property.type, func.count(Property.id)).group_by(Property.type).all()

    return envelope(
        {
            "overview": {
                "totalProperties": total or 0,
                "averagePrice": float(avg_price) if avg_price is not None else 0,
                "minPrice": min_price or 0,
                "maxPrice": max_price or 0,
            },
            "byStatus": {status.value: count for status, count in by_status},
            "byCategory": {
                category.value: {"count": count, "averagePrice": float(avg) if avg is not None else 0}
                for category, count, avg in by_category
            },
            "byType": {ptype.value: count for ptype, count in by_type},
        },
        "Property statistics retrieved successfully",
    )


@router.post("/", status_code=201)
def create_property(
    property_data: PropertyCreate,
    db: Session = Depends(get_db),
    admin: User = Depends(admin_only),
):
    """Create a property listing (admin only)."""
    values = _column_values(dict(property_data))
    db_property = Property(**values, created_by=admin.id)

    db.add(db_property)
    db.commit()
    db.refresh(db_property)

    logger.info(f"Property #{db_property.id} created by user {admin.id}: {db_property.name}")
    return envelope(_to_response(db_property), "Property created successfully")


# =============================================================================
# Single-property endpoints
# =============================================================================

@router.get("/{property_id}")
def get_property(
    property_id: int,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db),
):
    """Get a single property. The view counter is bumped after the response is sent."""
    db_property = db.query(Property).filter(Property.id == property_id).first()

    if not db_property:
        raise NotFoundError("Property not found")

    background_tasks.add_task(increment_property_views, db_property.id)

    return envelope(_to_response(db_property), "Property retrieved successfully")


@router.put("/{property_id}")
def update_property(
    property_id: int,
    property_data: PropertyUpdate,
    db: Session = Depends(get_db),
    admin: User = Depends(admin_only),
):
    """Update only the provided fields of a property (admin only)."""
    db_property = db.query(Property).filter(Property.id == property_id).first()

    if not db_property:
        raise NotFoundError("Property not found")

    update_data = _column_values({
        field: getattr(property_data, field)
        for field in property_data.model_fields_set
        if getattr(property_data, field) is not None or field in NULLABLE_FIELDS
    })

    if "category" in update_data or "subcategory" in update_data:
        category = update_data.get("category", db_property.category)
        subcategory = update_data.get("subcategory", db_property.subcategory)
        if not is_valid_subcategory(getattr(category, "value", category), subcategory):
            raise ValidationFailed(
                "Invalid input data",
                details=[{"field": "subcategory", "message": "Invalid subcategory for the selected category"}],
            )

    for field, value in update_data.items():
        setattr(db_property, field, value)

    db.commit()
    db.refresh(db_property)

    logger.info(f"Property #{db_property.id} updated by user {admin.id}: {sorted(update_data)}")
    return envelope(_to_response(db_property), "Property updated successfully")


@router.delete("/{property_id}")
def delete_property(
    property_id: int,
    db: Session = Depends(get_db),
    admin: User = Depends(admin_only),
):
    """Permanently delete a property (admin only)."""
    db_property = db.query(Property).filter(Property.id == property_id).first()

    if not db_property:
        raise NotFoundError("Property not found")

    db.delete(db_property)
    db.commit()

    logger.info(f"Property #{property_id} deleted by user {admin.id}")
    return envelope(None, "Property deleted successfully")
