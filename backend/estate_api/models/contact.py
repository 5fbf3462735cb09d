"""
Contact model for inquiries submitted through the public contact form.

Priority and tags are assigned once at creation by the classification rule
(estate_api.services.classification) and are not recomputed afterwards.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Optional

from sqlalchemy import Column, Integer, String, Text, DateTime, JSON, ForeignKey, Index
from sqlalchemy import Enum as SQLEnum
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from estate_api.core.database import Base


class ContactMethod(str, Enum):
    EMAIL = "email"
    PHONE = "phone"
    BOTH = "both"


class ContactStatus(str, Enum):
    PENDING = "pending"
    CONTACTED = "contacted"
    RESOLVED = "resolved"
    SPAM = "spam"


class ContactPriority(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    URGENT = "urgent"


class ContactSource(str, Enum):
    WEBSITE = "website"
    MOBILE_APP = "mobile_app"
    API = "api"


def _enum_values(enum_cls):
    return [member.value for member in enum_cls]


def _as_utc(value: datetime) -> datetime:
    # SQLite hands back naive datetimes; they are stored as UTC
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class Contact(Base):
    """An inquiry from a site visitor, optionally about a specific property."""
    __tablename__ = "contacts"

    id = Column(Integer, primary_key=True, index=True)

    name = Column(String(100), nullable=False)
    email = Column(String(255), nullable=False, index=True)
    phone = Column(String(30))
    subject = Column(String(200))
    message = Column(Text, nullable=False)

    property_id = Column(Integer, ForeignKey("properties.id", ondelete="SET NULL"), nullable=True, index=True)
    property_name = Column(String(200))

    preferred_contact_method = Column(
        SQLEnum(ContactMethod, values_callable=_enum_values, native_enum=False, length=10),
        nullable=False,
        default=ContactMethod.EMAIL,
    )
    status = Column(
        SQLEnum(ContactStatus, values_callable=_enum_values, native_enum=False, length=20),
        nullable=False,
        default=ContactStatus.PENDING,
    )
    priority = Column(
        SQLEnum(ContactPriority, values_callable=_enum_values, native_enum=False, length=10),
        nullable=False,
        default=ContactPriority.MEDIUM,
    )
    tags = Column(JSON, nullable=False, default=list)

    # Request metadata (never returned to callers)
    source = Column(
        SQLEnum(ContactSource, values_callable=_enum_values, native_enum=False, length=20),
        nullable=False,
        default=ContactSource.WEBSITE,
    )
    ip_address = Column(String(64))
    user_agent = Column(String(500))

    # Staff workflow
    notes = Column(String(500))
    assigned_to = Column(String(100))
    response_date = Column(DateTime(timezone=True))

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    listing = relationship("Property", lazy="joined")

    __table_args__ = (
        Index("idx_contacts_status_created", "status", "created_at"),
        Index("idx_contacts_created", "created_at"),
        Index("idx_contacts_priority_status", "priority", "status"),
    )

    def mark_contacted(self, notes: Optional[str] = None) -> None:
        """
        Move the inquiry into 'contacted'.

        The response date is set on each transition into 'contacted' from
        another status; repeated calls while already contacted keep it.
        """
        if self.status != ContactStatus.CONTACTED or self.response_date is None:
            self.response_date = datetime.now(timezone.utc)
        self.status = ContactStatus.CONTACTED
        if notes:
            self.notes = notes

    @property
    def response_time_hours(self) -> Optional[int]:
        if self.response_date is None or self.created_at is None:
            return None
        delta = _as_utc(self.response_date) - _as_utc(self.created_at)
        return round(delta.total_seconds() / 3600)

    @property
    def time_since_submission(self) -> Optional[str]:
        if self.created_at is None:
            return None
        elapsed = datetime.now(timezone.utc) - _as_utc(self.created_at)
        hours = int(elapsed.total_seconds() // 3600)
        days = hours // 24
        if days > 0:
            return f"{days} day{'s' if days > 1 else ''} ago"
        if hours > 0:
            return f"{hours} hour{'s' if hours > 1 else ''} ago"
        minutes = max(int(elapsed.total_seconds() // 60), 0)
        return f"{minutes} minute{'s' if minutes > 1 else ''} ago"

    def __repr__(self):
        return f"<Contact {self.id}: {self.email} ({self.status}, {self.priority})>"
