"""Shared pytest fixtures and configuration."""

import os

# Set test environment variables before the app reads its settings
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["ENVIRONMENT"] = "test"
os.environ["LOG_LEVEL"] = "WARNING"

import pytest
from fastapi.testclient import TestClient

from estate_api.core.access import get_current_user_id
from estate_api.core.database import Base, get_engine, get_session_local, init_db
from estate_api.main import app
from estate_api.models import Contact, Property, Service, User


@pytest.fixture(scope="session", autouse=True)
def schema():
    """Create every table once in the shared in-memory database."""
    init_db()
    yield
    Base.metadata.drop_all(bind=get_engine())


@pytest.fixture
def db():
    """A session for seeding and inspecting rows; tables are emptied afterwards."""
    session = get_session_local()()
    try:
        yield session
    finally:
        session.close()
        with get_engine().begin() as conn:
            for table in reversed(Base.metadata.sorted_tables):
                conn.execute(table.delete())


@pytest.fixture
def client(db):
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


def _login(user_id):
    # The upstream auth layer normally sets request.state.user_id
    app.dependency_overrides[get_current_user_id] = lambda: user_id


@pytest.fixture
def admin_user(db):
    user = User(email="admin@realestate.com", password_hash="x", name="Admin", role="admin")
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


@pytest.fixture
def regular_user(db):
    user = User(
        email="jane@example.com",
        password_hash="x",
        name="Jane Buyer",
        role="user",
        preferences={"newsletter": True, "currency": "USD"},
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


@pytest.fixture
def as_admin(client, admin_user):
    """Client authenticated as an admin."""
    _login(admin_user.id)
    return client


@pytest.fixture
def as_user(client, regular_user):
    """Client authenticated as a plain user."""
    _login(regular_user.id)
    return client


@pytest.fixture
def make_property(db):
    """Factory for property rows; keyword arguments override the defaults."""
    def _make(**overrides):
        values = {
            "name": "Sunny Family House",
            "description": "A bright three bedroom house with a garden.",
            "category": "Residential",
            "subcategory": "House",
            "location": "Austin, TX",
            "price": 450000,
            "image": "https://images.example.com/house.jpg",
            "type": "Buy",
            "features": {"bedrooms": 3, "bathrooms": 2, "area": 1800, "areaUnit": "sqft"},
            "status": "Available",
            "featured": False,
        }
        values.update(overrides)
        prop = Property(**values)
        db.add(prop)
        db.commit()
        db.refresh(prop)
        return prop
    return _make


@pytest.fixture
def make_service(db):
    def _make(**overrides):
        values = {
            "title": "Property Valuation",
            "description": "Professional valuation of residential property.",
            "icon": "home",
            "features": ["Market analysis", "Written report"],
            "category": "Property Services",
            "price": 0,
            "price_type": "consultation",
            "active": True,
            "featured": False,
            "order": 0,
        }
        values.update(overrides)
        service = Service(**values)
        db.add(service)
        db.commit()
        db.refresh(service)
        return service
    return _make


@pytest.fixture
def make_contact(db):
    def _make(**overrides):
        values = {
            "name": "John Smith",
            "email": "john@example.com",
            "subject": "General question",
            "message": "I would like to know more about your agency.",
            "priority": "medium",
            "tags": [],
        }
        values.update(overrides)
        contact = Contact(**values)
        db.add(contact)
        db.commit()
        db.refresh(contact)
        return contact
    return _make


@pytest.fixture
def property_payload():
    """A valid residential create body, camelCase as sent by clients."""
    return {
        "name": "Lakeside Villa",
        "description": "Spacious villa with lake views and a private dock.",
        "category": "Residential",
        "subcategory": "Villa",
        "location": "Lake Travis, TX",
        "price": 4500000,
        "image": "https://images.example.com/villa.jpg",
        "type": "Sell",
        "features": {"bedrooms": 5, "bathrooms": 4.5, "area": 6200, "areaUnit": "sqft", "yearBuilt": 2019},
        "amenities": ["Pool", "Dock"],
        "featured": True,
    }
