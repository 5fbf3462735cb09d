from estate_api.models.user import User, UserRole
from estate_api.models.property import (
    Property,
    PropertyCategory,
    PropertyStatus,
    TransactionType,
    ResidentialSubcategory,
    CommercialSubcategory,
)
from estate_api.models.service import Service, ServiceCategory, PriceType
from estate_api.models.contact import Contact, ContactStatus, ContactPriority, ContactMethod, ContactSource

__all__ = [
    "User",
    "UserRole",
    "Property",
    "PropertyCategory",
    "PropertyStatus",
    "TransactionType",
    "ResidentialSubcategory",
    "CommercialSubcategory",
    "Service",
    "ServiceCategory",
    "PriceType",
    "Contact",
    "ContactStatus",
    "ContactPriority",
    "ContactMethod",
    "ContactSource",
]
