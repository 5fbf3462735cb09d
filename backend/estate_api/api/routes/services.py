"""
Service catalogue API endpoints.

Public listing (featured first, then display order), featured and
per-category views, detail with background view counting; admin CRUD,
inquiry counting and statistics.
"""

import logging
from datetime import datetime
from enum import Enum
from typing import Annotated, Any, List, Literal, Optional

from fastapi import APIRouter, BackgroundTasks, Depends, Query
from pydantic import EmailStr, Field, StringConstraints, field_validator
from sqlalchemy import func, case, inspect
from sqlalchemy.orm import Session

from estate_api.core.access import admin_only
from estate_api.core.database import get_db
from estate_api.core.errors import NotFoundError
from estate_api.core.responses import CamelModel, envelope
from estate_api.models.service import Service, ServiceCategory, PriceType
from estate_api.models.user import User
from estate_api.services.query_engine import (
    ServiceFilter,
    parse_flag,
    list_services,
    featured_services,
    services_by_category,
)
from estate_api.services.view_counter import increment_service_views

router = APIRouter(prefix="/services", tags=["services"])
logger = logging.getLogger(__name__)

Weekday = Literal["monday", "tuesday", "wednesday", "thursday", "friday", "saturday", "sunday"]
FeatureText = Annotated[str, StringConstraints(strip_whitespace=True, min_length=1, max_length=200)]
Tag = Annotated[str, StringConstraints(strip_whitespace=True, to_lower=True, min_length=1)]


# =============================================================================
# Request/Response Models
# =============================================================================

class ContactInfo(CamelModel):
    email: Optional[EmailStr] = None
    phone: Optional[str] = None
    department: Optional[str] = None


class Hours(CamelModel):
    start: Optional[str] = None
    end: Optional[str] = None


class Availability(CamelModel):
    days: List[Weekday] = []
    hours: Optional[Hours] = None
    timezone: str = "UTC"


class ServiceCreate(CamelModel):
    title: str = Field(..., min_length=1, max_length=100)
    description: str = Field(..., min_length=10, max_length=500)
    icon: str = Field(..., min_length=1)
    features: List[FeatureText] = Field(..., min_length=1)
    category: ServiceCategory = ServiceCategory.PROPERTY_SERVICES
    price: float = Field(0, ge=0)
    price_type: PriceType = PriceType.CONSULTATION
    duration: Optional[str] = None
    active: bool = True
    featured: bool = False
    order: int = 0
    image: Optional[str] = None
    contact_info: Optional[ContactInfo] = None
    requirements: List[str] = []
    benefits: List[str] = []
    tags: List[Tag] = []
    availability: Optional[Availability] = None

    @field_validator("title", "description", "icon", mode="before")
    @classmethod
    def strip_text(cls, v):
        return v.strip() if isinstance(v, str) else v


class ServiceUpdate(CamelModel):
    title: Optional[str] = Field(None, min_length=1, max_length=100)
    description: Optional[str] = Field(None, min_length=10, max_length=500)
    icon: Optional[str] = Field(None, min_length=1)
    features: Optional[List[FeatureText]] = Field(None, min_length=1)
    category: Optional[ServiceCategory] = None
    price: Optional[float] = Field(None, ge=0)
    price_type: Optional[PriceType] = None
    duration: Optional[str] = None
    active: Optional[bool] = None
    featured: Optional[bool] = None
    order: Optional[int] = None
    image: Optional[str] = None
    contact_info: Optional[ContactInfo] = None
    requirements: Optional[List[str]] = None
    benefits: Optional[List[str]] = None
    tags: Optional[List[Tag]] = None
    availability: Optional[Availability] = None


class ServiceMetadata(CamelModel):
    views: int = 0
    inquiries: int = 0
    last_updated: Optional[datetime] = None


class ServiceResponse(CamelModel):
    id: int
    title: str
    description: str
    icon: str
    features: List[str]
    category: ServiceCategory
    price: float
    price_type: PriceType
    formatted_price: str
    duration: Optional[str] = None
    active: bool
    featured: bool
    order: int
    image: Optional[str] = None
    contact_info: Optional[dict] = None
    requirements: List[str] = []
    benefits: List[str] = []
    tags: List[str] = []
    availability: Optional[dict] = None
    metadata: Optional[ServiceMetadata] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @field_validator("requirements", "benefits", "tags", mode="before")
    @classmethod
    def none_as_empty(cls, v):
        return v or []


# Columns a caller may clear by sending null
NULLABLE_FIELDS = {"duration", "image", "contact_info", "availability"}


def _to_response(service: Service, include_counters: bool = True) -> ServiceResponse:
    """Public listings hide the view/inquiry counters; detail and admin views include them."""
    # Built from mapped columns: Service.metadata is the declarative MetaData, not a column
    data = {attr.key: getattr(service, attr.key) for attr in inspect(service).mapper.column_attrs}
    data["formatted_price"] = service.formatted_price
    if include_counters:
        data["metadata"] = ServiceMetadata(
            views=service.views or 0,
            inquiries=service.inquiries or 0,
            last_updated=service.last_updated,
        )
    return ServiceResponse.model_validate(data)


def _column_values(data: dict[str, Any]) -> dict[str, Any]:
    values = {}
    for field, value in data.items():
        if isinstance(value, Enum):
            value = value.value
        elif isinstance(value, CamelModel):
            value = value.model_dump(mode="json", by_alias=True, exclude_none=True)
        values[field] = value
    return values


def _get_service_or_404(db: Session, service_id: int) -> Service:
    service = db.query(Service).filter(Service.id == service_id).first()
    if not service:
        raise NotFoundError("Service not found")
    return service


# =============================================================================
# Public endpoints
# =============================================================================

@router.get("/")
def get_services(
    category: Optional[ServiceCategory] = Query(None),
    featured: Optional[str] = Query(None, description="'true' or 'false'"),
    active: str = Query("true", description="'true' or 'false'"),
    db: Session = Depends(get_db),
):
    """List services, featured first, then by display order."""
    filters = ServiceFilter(
        active=parse_flag(active),
        category=category,
        featured=parse_flag(featured),
    )
    services = list_services(db, filters)

    return envelope(
        {"services": [_to_response(s, include_counters=False) for s in services]},
        "Services retrieved successfully",
    )


@router.get("/featured")
def get_featured_services(
    limit: int = Query(4, ge=1, le=100),
    db: Session = Depends(get_db),
):
    services = featured_services(db, limit=limit)
    return envelope(
        {"services": [_to_response(s, include_counters=False) for s in services]},
        "Featured services retrieved successfully",
    )


@router.get("/category/{category}")
def get_services_by_category(
    category: ServiceCategory,
    db: Session = Depends(get_db),
):
    services = services_by_category(db, category)
    return envelope(
        {"services": [_to_response(s) for s in services], "category": category.value},
        f"Services in {category.value} category retrieved successfully",
    )


# =============================================================================
# Admin endpoints
# =============================================================================

@router.get("/admin/stats")
def get_service_stats(
    db: Session = Depends(get_db),
    _admin: User = Depends(admin_only),
):
    """Catalogue overview, per-category counts and the most viewed/inquired services."""
    total = db.query(func.count(Service.id)).scalar() or 0
    active = db.query(func.count(Service.id)).filter(Service.active.is_(True)).scalar() or 0
    featured = db.query(func.count(Service.id)).filter(
        Service.featured.is_(True), Service.active.is_(True)
    ).scalar() or 0

    by_category = db.query(
        Service.category,
        func.count(Service.id),
        func.sum(case((Service.active.is_(True), 1), else_=0)),
    ).group_by(Service.category).all()

    most_viewed = (
        db.query(Service).filter(Service.active.is_(True))
        .order_by(Service.views.desc(), Service.id.asc()).limit(5).all()
    )
    most_inquired = (
        db.query(Service).filter(Service.active.is_(True))
        .order_by(Service.inquiries.desc(), Service.id.asc()).limit(5).all()
    )

    return envelope(
        {
            "overview": {"total": total, "active": active, "featured": featured},
            "byCategory": {
                category.value: {"total": count, "active": int(active_count or 0)}
                for category, count, active_count in by_category
            },
            "mostViewed": [{"id": s.id, "title": s.title, "views": s.views} for s in most_viewed],
            "mostInquired": [{"id": s.id, "title": s.title, "inquiries": s.inquiries} for s in most_inquired],
        },
        "Service statistics retrieved successfully",
    )


@router.post("/", status_code=201)
def create_service(
    service_data: ServiceCreate,
    db: Session = Depends(get_db),
    admin: User = Depends(admin_only),
):
    db_service = Service(**_column_values(dict(service_data)))

    db.add(db_service)
    db.commit()
    db.refresh(db_service)

    logger.info(f"Service #{db_service.id} created by user {admin.id}: {db_service.title}")
    return envelope(_to_response(db_service), "Service created successfully")


# =============================================================================
# Single-service endpoints
# =============================================================================

@router.get("/{service_id}")
def get_service(
    service_id: int,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db),
):
    """Get an active service. Inactive services are reported as not found."""
    service = db.query(Service).filter(Service.id == service_id).first()

    if not service or not service.active:
        raise NotFoundError("Service not found")

    background_tasks.add_task(increment_service_views, service.id)

    return envelope(_to_response(service), "Service retrieved successfully")


@router.put("/{service_id}")
def update_service(
    service_id: int,
    service_data: ServiceUpdate,
    db: Session = Depends(get_db),
    admin: User = Depends(admin_only),
):
    service = _get_service_or_404(db, service_id)

    update_data = _column_values({
        field: getattr(service_data, field)
        for field in service_data.model_fields_set
        if getattr(service_data, field) is not None or field in NULLABLE_FIELDS
    })
    for field, value in update_data.items():
        setattr(service, field, value)

    db.commit()
    db.refresh(service)

    logger.info(f"Service #{service.id} updated by user {admin.id}: {sorted(update_data)}")
    return envelope(_to_response(service), "Service updated successfully")


@router.delete("/{service_id}")
def delete_service(
    service_id: int,
    db: Session = Depends(get_db),
    admin: User = Depends(admin_only),
):
    service = _get_service_or_404(db, service_id)

    db.delete(service)
    db.commit()

    logger.info(f"Service #{service_id} deleted by user {admin.id}")
    return envelope(None, "Service deleted successfully")


@router.post("/{service_id}/inquiry")
def record_inquiry(
    service_id: int,
    db: Session = Depends(get_db),
    _admin: User = Depends(admin_only),
):
    """Count an inquiry against a service."""
    service = _get_service_or_404(db, service_id)

    db.query(Service).filter(Service.id == service_id).update(
        {Service.inquiries: Service.inquiries + 1}, synchronize_session=False
    )
    db.commit()
    db.refresh(service)

    return envelope(
        {"id": service.id, "inquiries": service.inquiries},
        "Service inquiry recorded successfully",
    )
