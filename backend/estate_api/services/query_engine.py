"""
Listing query engine.

Turns optional filter parameters into SQLAlchemy predicates, resolves sort
specifications against per-resource whitelists, and pages results with an
independent count query.

Two search semantics live here on purpose and are not merged:
- the `location` filter is a case-insensitive substring match OR-ed over
  location, name and description, ordered by the normal sort key;
- search_properties is a ranked keyword search ordered by relevance.
"""

import logging
import math
import re
from dataclasses import dataclass
from typing import Any, Optional, Sequence

from sqlalchemy import and_, or_, case, true
from sqlalchemy.orm import Query, Session
from sqlalchemy.sql.elements import ColumnElement

from estate_api.core.config import settings
from estate_api.core.errors import ValidationFailed
from estate_api.core.responses import PageInfo
from estate_api.models.contact import Contact
from estate_api.models.property import Property, PropertyStatus
from estate_api.models.service import Service
from estate_api.models.user import User

logger = logging.getLogger(__name__)

DEFAULT_PAGE = 1
DEFAULT_LIMIT = settings.DEFAULT_PAGE_SIZE
MAX_LIMIT = settings.MAX_PAGE_SIZE

# Relevance weight per field for ranked search
SEARCH_WEIGHTS = (
    ("name", 3),
    ("location", 2),
    ("description", 1),
)


# =============================================================================
# Filter records
# =============================================================================

@dataclass(frozen=True)
class PropertyFilter:
    """
    Optional property filters. None means "do not filter on this field".

    status defaults to Available so public listings never show sold or
    off-market properties unless asked.
    """
    category: Optional[str] = None
    type: Optional[str] = None
    status: Optional[str] = PropertyStatus.AVAILABLE.value
    featured: Optional[bool] = None
    min_price: Optional[float] = None
    max_price: Optional[float] = None
    location: Optional[str] = None


@dataclass(frozen=True)
class ServiceFilter:
    active: Optional[bool] = True
    category: Optional[str] = None
    featured: Optional[bool] = None


@dataclass(frozen=True)
class ContactFilter:
    status: Optional[str] = None
    priority: Optional[str] = None
    search: Optional[str] = None


@dataclass(frozen=True)
class UserFilter:
    role: Optional[str] = None
    is_active: Optional[bool] = None


@dataclass(frozen=True)
class Page:
    items: list
    page_info: PageInfo


def parse_flag(value: Optional[str]) -> Optional[bool]:
    """Query-string boolean: 'true' -> True, anything else -> False, missing -> None."""
    if value is None:
        return None
    return value.strip().lower() == "true"


def _value(v: Any) -> Any:
    # Enum members compare fine, but plain values keep the SQL readable in logs
    return getattr(v, "value", v)


# =============================================================================
# Predicates
# =============================================================================

def contains_any(columns: Sequence, text: str) -> ColumnElement:
    """Case-insensitive substring match of text against any of columns."""
    return or_(*[column.icontains(text, autoescape=True) for column in columns])


def build_property_predicate(filters: PropertyFilter) -> ColumnElement:
    conditions = []
    if filters.status is not None:
        conditions.append(Property.status == _value(filters.status))
    if filters.type is not None:
        conditions.append(Property.type == _value(filters.type))
    if filters.category is not None:
        conditions.append(Property.category == _value(filters.category))
    if filters.featured is not None:
        conditions.append(Property.featured == filters.featured)

    # Inclusive range; either bound may stand alone
    if filters.min_price is not None:
        conditions.append(Property.price >= filters.min_price)
    if filters.max_price is not None:
        conditions.append(Property.price <= filters.max_price)

    if filters.location:
        conditions.append(contains_any(
            (Property.location, Property.name, Property.description),
            filters.location,
        ))

    return and_(true(), *conditions)


def build_service_predicate(filters: ServiceFilter) -> ColumnElement:
    conditions = []
    if filters.active is not None:
        conditions.append(Service.active == filters.active)
    if filters.category is not None:
        conditions.append(Service.category == _value(filters.category))
    if filters.featured is not None:
        conditions.append(Service.featured == filters.featured)
    return and_(true(), *conditions)


def build_contact_predicate(filters: ContactFilter) -> ColumnElement:
    conditions = []
    if filters.status is not None:
        conditions.append(Contact.status == _value(filters.status))
    if filters.priority is not None:
        conditions.append(Contact.priority == _value(filters.priority))
    if filters.search:
        conditions.append(contains_any(
            (Contact.name, Contact.email, Contact.subject, Contact.message),
            filters.search,
        ))
    return and_(true(), *conditions)


def build_user_predicate(filters: UserFilter) -> ColumnElement:
    conditions = []
    if filters.role is not None:
        conditions.append(User.role == _value(filters.role))
    if filters.is_active is not None:
        conditions.append(User.is_active == filters.is_active)
    return and_(true(), *conditions)


# =============================================================================
# Sorting
# =============================================================================

PROPERTY_SORT_COLUMNS = {
    "createdAt": Property.created_at,
    "updatedAt": Property.updated_at,
    "price": Property.price,
    "name": Property.name,
    "views": Property.views,
    "featured": Property.featured,
    "status": Property.status,
    "category": Property.category,
    "type": Property.type,
}

SERVICE_SORT_COLUMNS = {
    "featured": Service.featured,
    "order": Service.order,
    "title": Service.title,
    "price": Service.price,
    "createdAt": Service.created_at,
    "views": Service.views,
    "inquiries": Service.inquiries,
}

CONTACT_SORT_COLUMNS = {
    "createdAt": Contact.created_at,
    "updatedAt": Contact.updated_at,
    "priority": Contact.priority,
    "status": Contact.status,
    "name": Contact.name,
    "email": Contact.email,
}

USER_SORT_COLUMNS = {
    "createdAt": User.created_at,
    "name": User.name,
    "email": User.email,
    "role": User.role,
}

PROPERTY_DEFAULT_SORT = "-createdAt"
SERVICE_DEFAULT_SORT = "-featured,order"
CONTACT_DEFAULT_SORT = "-createdAt"
USER_DEFAULT_SORT = "-createdAt"


def parse_sort(sort: Optional[str], columns: dict, default: str, tiebreak=None) -> list:
    """
    Resolve a sort spec such as '-createdAt' or 'featured,-price' to ORDER BY clauses.

    Keys are separated by commas or spaces; a leading '-' means descending.
    Unknown keys are rejected so callers cannot sort on arbitrary columns.
    tiebreak (usually the primary key) is appended to keep paging stable.
    """
    spec = (sort or "").strip() or default
    clauses = []
    for key in re.split(r"[,\s]+", spec):
        if not key:
            continue
        descending = key.startswith("-")
        name = key.lstrip("+-")
        column = columns.get(name)
        if column is None:
            raise ValidationFailed(
                "Invalid sort field",
                details=[{"field": "sort", "message": f"Cannot sort by '{name}'. Allowed: {', '.join(sorted(columns))}"}],
            )
        clauses.append(column.desc() if descending else column.asc())
    if tiebreak is not None:
        clauses.append(tiebreak)
    return clauses


# =============================================================================
# Pagination
# =============================================================================

def build_page_info(page: int, limit: int, total: int) -> PageInfo:
    total_pages = math.ceil(total / limit) if total else 0
    return PageInfo(
        current_page=page,
        total_pages=total_pages,
        total_items=total,
        items_per_page=limit,
        has_next_page=page < total_pages,
        has_previous_page=page > 1,
    )


def paginate(query: Query, page: int = DEFAULT_PAGE, limit: int = DEFAULT_LIMIT, order_by: Sequence = ()) -> Page:
    """
    Fetch one page of query plus the total count of matching rows.

    The count runs as its own query against the same predicate; ordering is
    only applied to the page fetch.
    """
    if page < 1:
        raise ValidationFailed("Page must be a positive integer",
                               details=[{"field": "page", "message": "Page must be a positive integer"}])
    if limit < 1 or limit > MAX_LIMIT:
        raise ValidationFailed(f"Limit must be between 1 and {MAX_LIMIT}",
                               details=[{"field": "limit", "message": f"Limit must be between 1 and {MAX_LIMIT}"}])

    offset = (page - 1) * limit
    items = query.order_by(*order_by).offset(offset).limit(limit).all()
    total = query.order_by(None).count()

    return Page(items=items, page_info=build_page_info(page, limit, total))


# =============================================================================
# Property queries
# =============================================================================

def list_properties(
    db: Session,
    filters: PropertyFilter,
    sort: Optional[str] = None,
    page: int = DEFAULT_PAGE,
    limit: int = DEFAULT_LIMIT,
) -> Page:
    """Filtered, sorted, paged property listing."""
    order_by = parse_sort(sort, PROPERTY_SORT_COLUMNS, PROPERTY_DEFAULT_SORT, Property.id.desc())
    query = db.query(Property).filter(build_property_predicate(filters))
    return paginate(query, page, limit, order_by)


def search_tokens(q: str) -> list[str]:
    """Lower-cased word tokens of q, de-duplicated in order of appearance."""
    tokens: list[str] = []
    for token in re.findall(r"\w+", q.lower()):
        if token not in tokens:
            tokens.append(token)
    if not tokens and q.strip():
        tokens.append(q.strip().lower())
    return tokens


def relevance_score(tokens: Sequence[str]) -> ColumnElement:
    """Sum of field weights for every (token, field) pair that matches."""
    score = None
    for token in tokens:
        for field, weight in SEARCH_WEIGHTS:
            column = getattr(Property, field)
            term = case((column.icontains(token, autoescape=True), weight), else_=0)
            score = term if score is None else score + term
    return score


def search_properties(db: Session, q: Optional[str], page: int = DEFAULT_PAGE, limit: int = DEFAULT_LIMIT) -> Page:
    """
    Ranked keyword search over name, location and description of available
    properties. A property matches when any token of q appears in any of
    the three fields; results are ordered by relevance, newest first on ties.
    """
    if q is None or not q.strip():
        raise ValidationFailed("Search query is required",
                               details=[{"field": "q", "message": "Search query is required"}])

    tokens = search_tokens(q)
    matches = or_(*[
        contains_any((Property.name, Property.description, Property.location), token)
        for token in tokens
    ])
    score = relevance_score(tokens)

    query = db.query(Property).filter(Property.status == PropertyStatus.AVAILABLE.value, matches)
    order_by = (score.desc(), Property.created_at.desc(), Property.id.desc())
    logger.debug(f"Searching properties for tokens {tokens}")
    return paginate(query, page, limit, order_by)


def featured_properties(db: Session, limit: int = 6) -> list[Property]:
    return (
        db.query(Property)
        .filter(Property.featured.is_(True), Property.status == PropertyStatus.AVAILABLE.value)
        .order_by(Property.created_at.desc(), Property.id.desc())
        .limit(limit)
        .all()
    )


# =============================================================================
# Services, contacts, users
# =============================================================================

def list_services(db: Session, filters: ServiceFilter) -> list[Service]:
    """Services are not paged; listed featured first, then by display order."""
    order_by = parse_sort(None, SERVICE_SORT_COLUMNS, SERVICE_DEFAULT_SORT, Service.id.asc())
    return db.query(Service).filter(build_service_predicate(filters)).order_by(*order_by).all()


def featured_services(db: Session, limit: int = 4) -> list[Service]:
    return (
        db.query(Service)
        .filter(Service.featured.is_(True), Service.active.is_(True))
        .order_by(Service.order.asc(), Service.id.asc())
        .limit(limit)
        .all()
    )


def services_by_category(db: Session, category: str) -> list[Service]:
    return (
        db.query(Service)
        .filter(Service.category == _value(category), Service.active.is_(True))
        .order_by(Service.order.asc(), Service.id.asc())
        .all()
    )


def list_contacts(
    db: Session,
    filters: ContactFilter,
    sort: Optional[str] = None,
    page: int = DEFAULT_PAGE,
    limit: int = 20,
) -> Page:
    order_by = parse_sort(sort, CONTACT_SORT_COLUMNS, CONTACT_DEFAULT_SORT, Contact.id.desc())
    query = db.query(Contact).filter(build_contact_predicate(filters))
    return paginate(query, page, limit, order_by)


def list_users(db: Session, filters: UserFilter, page: int = DEFAULT_PAGE, limit: int = 20) -> Page:
    order_by = parse_sort(None, USER_SORT_COLUMNS, USER_DEFAULT_SORT, User.id.desc())
    query = db.query(User).filter(build_user_predicate(filters))
    return paginate(query, page, limit, order_by)
