"""
Contact form API endpoints.

Public submission (classified on creation) and the admin inbox: listing,
detail, status workflow, deletion and statistics.
"""

import logging
import re
from collections import Counter
from datetime import datetime, timedelta, timezone
from typing import Optional

from fastapi import APIRouter, Depends, Query, Request
from pydantic import BaseModel, EmailStr, Field, field_validator
from sqlalchemy import func
from sqlalchemy.orm import Session

from estate_api.core.access import admin_only
from estate_api.core.database import get_db
from estate_api.core.responses import CamelModel, envelope
from estate_api.core.errors import NotFoundError
from estate_api.models.contact import Contact, ContactMethod, ContactPriority, ContactSource, ContactStatus
from estate_api.models.property import Property
from estate_api.models.user import User
from estate_api.services.classification import classify_contact
from estate_api.services.query_engine import ContactFilter, list_contacts

router = APIRouter(prefix="/contact", tags=["contact"])
logger = logging.getLogger(__name__)

PHONE_PATTERN = re.compile(r"^\+?[1-9]\d{0,15}$")


# =============================================================================
# Request/Response Models
# =============================================================================

class ContactCreate(CamelModel):
    """Public contact form submission."""
    name: str = Field(..., min_length=2, max_length=100)
    email: EmailStr
    phone: Optional[str] = None
    subject: Optional[str] = Field(None, max_length=200)
    message: str = Field(..., min_length=10, max_length=1000)
    property_id: Optional[int] = None
    preferred_contact_method: ContactMethod = ContactMethod.EMAIL

    @field_validator("name", "subject", "message", "phone", mode="before")
    @classmethod
    def strip_text(cls, v):
        return v.strip() if isinstance(v, str) else v

    @field_validator("email")
    @classmethod
    def lower_email(cls, v):
        return v.lower()

    @field_validator("phone")
    @classmethod
    def valid_phone(cls, v):
        if not v:
            return None
        if not PHONE_PATTERN.match(re.sub(r"[\s\-()]", "", v)):
            raise ValueError("Please provide a valid phone number")
        return v

    @field_validator("subject")
    @classmethod
    def blank_subject_as_none(cls, v):
        return v or None


class ContactUpdate(CamelModel):
    status: Optional[ContactStatus] = None
    notes: Optional[str] = Field(None, max_length=500)
    assigned_to: Optional[str] = Field(None, max_length=100)
    priority: Optional[ContactPriority] = None


class MarkContactedRequest(BaseModel):
    notes: Optional[str] = Field(None, max_length=500)


class LinkedProperty(CamelModel):
    id: int
    name: str
    location: str
    price: float
    image: Optional[str] = None


class ContactResponse(CamelModel):
    id: int
    name: str
    email: str
    phone: Optional[str] = None
    subject: Optional[str] = None
    message: str
    property_id: Optional[int] = None
    property_name: Optional[str] = None
    property: Optional[LinkedProperty] = None
    preferred_contact_method: ContactMethod
    status: ContactStatus
    priority: ContactPriority
    tags: list[str] = []
    source: ContactSource
    notes: Optional[str] = None
    assigned_to: Optional[str] = None
    response_date: Optional[datetime] = None
    response_time: Optional[int] = None
    time_since_submission: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


def _to_response(contact: Contact, with_image: bool = False) -> ContactResponse:
    """Serialise a contact without its request metadata (IP address, user agent)."""
    linked = None
    if contact.listing is not None:
        linked = LinkedProperty(
            id=contact.listing.id,
            name=contact.listing.name,
            location=contact.listing.location,
            price=contact.listing.price,
            image=contact.listing.image if with_image else None,
        )
    return ContactResponse(
        id=contact.id,
        name=contact.name,
        email=contact.email,
        phone=contact.phone,
        subject=contact.subject,
        message=contact.message,
        property_id=contact.property_id,
        property_name=contact.property_name,
        property=linked,
        preferred_contact_method=contact.preferred_contact_method,
        status=contact.status,
        priority=contact.priority,
        tags=contact.tags or [],
        source=contact.source,
        notes=contact.notes,
        assigned_to=contact.assigned_to,
        response_date=contact.response_date,
        response_time=contact.response_time_hours,
        time_since_submission=contact.time_since_submission,
        created_at=contact.created_at,
        updated_at=contact.updated_at,
    )


def _get_contact_or_404(db: Session, contact_id: int) -> Contact:
    contact = db.query(Contact).filter(Contact.id == contact_id).first()
    if not contact:
        raise NotFoundError("Contact not found")
    return contact


# =============================================================================
# Public endpoints
# =============================================================================

@router.post("/", status_code=201)
def submit_contact(
    contact_data: ContactCreate,
    request: Request,
    db: Session = Depends(get_db),
):
    """
    Submit the contact form.

    When propertyId refers to an existing property the inquiry is linked to
    it and the subject defaults to "Inquiry about <name>"; unknown ids are
    ignored. Priority and tags are assigned here, once.
    """
    subject = contact_data.subject
    property_id = None
    property_name = None

    if contact_data.property_id is not None:
        linked = db.query(Property).filter(Property.id == contact_data.property_id).first()
        if linked:
            property_id = linked.id
            property_name = linked.name
            if not subject:
                subject = f"Inquiry about {linked.name}"

    classification = classify_contact(contact_data.message, subject)

    contact = Contact(
        name=contact_data.name,
        email=contact_data.email,
        phone=contact_data.phone,
        subject=subject,
        message=contact_data.message,
        property_id=property_id,
        property_name=property_name,
        preferred_contact_method=contact_data.preferred_contact_method.value,
        priority=classification.priority,
        tags=list(classification.tags),
        source=ContactSource.API.value,
        ip_address=request.client.host if request.client else None,
        user_agent=request.headers.get("user-agent"),
    )

    db.add(contact)
    db.commit()
    db.refresh(contact)

    logger.info(f"Contact #{contact.id} received: priority={classification.priority} tags={list(classification.tags)}")

    return envelope(
        {
            "id": contact.id,
            "name": contact.name,
            "email": contact.email,
            "subject": contact.subject,
            "status": contact.status.value,
            "submittedAt": contact.created_at,
        },
        "Thank you for your inquiry. We will get back to you within 24 hours.",
    )


# =============================================================================
# Admin endpoints
# =============================================================================

@router.get("/")
def get_contacts(
    status: Optional[ContactStatus] = Query(None),
    priority: Optional[ContactPriority] = Query(None),
    search: Optional[str] = Query(None, max_length=200),
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    sort: Optional[str] = Query(None, description="e.g. -createdAt, priority"),
    db: Session = Depends(get_db),
    _admin: User = Depends(admin_only),
):
    """List inquiries, newest first, with optional status/priority filters and text search."""
    filters = ContactFilter(
        status=status,
        priority=priority,
        search=search.strip() if search else None,
    )
    result = list_contacts(db, filters, sort=sort, page=page, limit=limit)

    return envelope(
        {
            "contacts": [_to_response(c) for c in result.items],
            "pagination": result.page_info,
        },
        "Contacts retrieved successfully",
    )


@router.get("/stats")
def get_contact_stats(
    db: Session = Depends(get_db),
    _admin: User = Depends(admin_only),
):
    """Inbox statistics: status and priority breakdowns, response time, busiest properties."""
    total = db.query(func.count(Contact.id)).scalar() or 0
    by_status = db.query(Contact.status, func.count(Contact.id)).group_by(Contact.status).all()
    by_priority = db.query(Contact.priority, func.count(Contact.id)).group_by(Contact.priority).all()

    # Averaged in Python; date arithmetic differs between Postgres and SQLite
    responded = db.query(Contact).filter(Contact.response_date.isnot(None)).all()
    response_hours = [
        c.response_time_hours for c in responded if c.response_time_hours is not None
    ]
    avg_response_time = sum(response_hours) / len(response_hours) if response_hours else 0

    thirty_days_ago = datetime.now(timezone.utc) - timedelta(days=30)
    recent = db.query(func.count(Contact.id)).filter(Contact.created_at >= thirty_days_ago).scalar() or 0

    property_counts: Counter = Counter()
    property_names: dict[int, Optional[str]] = {}
    for property_id, property_name in (
        db.query(Contact.property_id, Contact.property_name)
        .filter(Contact.property_id.isnot(None))
        .order_by(Contact.id.asc())
        .all()
    ):
        property_counts[property_id] += 1
        property_names.setdefault(property_id, property_name)

    top_properties = [
        {"propertyId": property_id, "propertyName": property_names[property_id], "count": count}
        for property_id, count in property_counts.most_common(5)
    ]

    return envelope(
        {
            "total": total,
            "byStatus": {status.value: count for status, count in by_status},
            "averageResponseTime": avg_response_time,
            "recentContacts": recent,
            "byPriority": {priority.value: count for priority, count in by_priority},
            "topProperties": top_properties,
        },
        "Contact statistics retrieved successfully",
    )


@router.get("/{contact_id}")
def get_contact(
    contact_id: int,
    db: Session = Depends(get_db),
    _admin: User = Depends(admin_only),
):
    contact = _get_contact_or_404(db, contact_id)
    return envelope(_to_response(contact, with_image=True), "Contact retrieved successfully")


@router.put("/{contact_id}")
def update_contact(
    contact_id: int,
    contact_data: ContactUpdate,
    db: Session = Depends(get_db),
    admin: User = Depends(admin_only),
):
    """
    Update status, notes, assignment or priority.

    Moving into 'contacted' from another status records the response date.
    Tags are never recomputed.
    """
    contact = _get_contact_or_404(db, contact_id)

    if contact_data.status:
        if contact_data.status == ContactStatus.CONTACTED:
            contact.mark_contacted()
        else:
            contact.status = contact_data.status.value
    if contact_data.notes:
        contact.notes = contact_data.notes
    if contact_data.assigned_to:
        contact.assigned_to = contact_data.assigned_to
    if contact_data.priority:
        contact.priority = contact_data.priority.value

    db.commit()
    db.refresh(contact)

    logger.info(f"Contact #{contact.id} updated by user {admin.id}: status={contact.status.value}")
    return envelope(_to_response(contact), "Contact updated successfully")


@router.delete("/{contact_id}")
def delete_contact(
    contact_id: int,
    db: Session = Depends(get_db),
    admin: User = Depends(admin_only),
):
    contact = _get_contact_or_404(db, contact_id)

    db.delete(contact)
    db.commit()

    logger.info(f"Contact #{contact_id} deleted by user {admin.id}")
    return envelope(None, "Contact deleted successfully")


@router.post("/{contact_id}/contacted")
def mark_as_contacted(
    contact_id: int,
    body: Optional[MarkContactedRequest] = None,
    db: Session = Depends(get_db),
    _admin: User = Depends(admin_only),
):
    contact = _get_contact_or_404(db, contact_id)

    contact.mark_contacted(body.notes if body else None)
    db.commit()
    db.refresh(contact)

    return envelope(
        {
            "id": contact.id,
            "status": contact.status.value,
            "responseDate": contact.response_date,
            "notes": contact.notes,
        },
        "Contact marked as contacted successfully",
    )
