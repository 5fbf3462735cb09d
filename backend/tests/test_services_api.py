"""Tests for the service catalogue endpoints."""

import pytest

from estate_api.models import Service

pytestmark = pytest.mark.integration

BASE = "/api/v1/services/"


@pytest.fixture
def service_payload():
    return {
        "title": "Mortgage Advice",
        "description": "Independent advice on mortgage products and rates.",
        "icon": "bank",
        "features": ["  Rate comparison ", "Broker network"],
        "category": "Financial Services",
        "price": 150,
        "priceType": "hourly",
        "tags": ["Finance", " MORTGAGE"],
        "availability": {"days": ["monday", "friday"], "hours": {"start": "09:00", "end": "17:00"}},
    }


class TestPublicCatalogue:

    def test_featured_first_then_display_order(self, client, make_service):
        make_service(title="Third", order=1)
        make_service(title="First", featured=True, order=5)
        make_service(title="Second", order=0)
        make_service(title="Hidden", active=False)

        body = client.get(BASE).json()

        assert [s["title"] for s in body["data"]["services"]] == ["First", "Second", "Third"]
        assert body["message"] == "Services retrieved successfully"

    def test_listing_hides_counters(self, client, make_service):
        make_service(views=10)

        service = client.get(BASE).json()["data"]["services"][0]

        assert service["metadata"] is None
        assert service["formattedPrice"] == "Contact for pricing"

    def test_inactive_listing_on_request(self, client, make_service):
        make_service(title="Retired", active=False)

        services = client.get(BASE, params={"active": "false"}).json()["data"]["services"]

        assert [s["title"] for s in services] == ["Retired"]

    def test_featured_limit(self, client, make_service):
        for i in range(6):
            make_service(title=f"Featured {i}", featured=True, order=i)

        services = client.get(BASE + "featured").json()["data"]["services"]

        assert [s["title"] for s in services] == [f"Featured {i}" for i in range(4)]

    def test_by_category(self, client, make_service):
        make_service(title="Title Search", category="Legal Services")
        make_service(title="Valuation")

        body = client.get(BASE + "category/Legal Services").json()

        assert body["data"]["category"] == "Legal Services"
        assert [s["title"] for s in body["data"]["services"]] == ["Title Search"]
        assert body["message"] == "Services in Legal Services category retrieved successfully"

    def test_unknown_category(self, client):
        response = client.get(BASE + "category/Plumbing")

        assert response.status_code == 400
        assert response.json()["error"]["code"] == "VALIDATION_ERROR"

    def test_detail_counts_a_view(self, client, db, make_service):
        service = make_service(price=6, price_type="percentage")

        data = client.get(f"{BASE}{service.id}").json()["data"]

        assert data["formattedPrice"] == "6%"
        assert data["metadata"]["views"] == 0
        db.expire_all()
        assert db.get(Service, service.id).views == 1

    def test_inactive_detail_is_not_found(self, client, make_service):
        service = make_service(active=False)

        response = client.get(f"{BASE}{service.id}")

        assert response.status_code == 404
        assert response.json()["error"]["message"] == "Service not found"


class TestAdminCatalogue:

    def test_create(self, as_admin, service_payload):
        response = as_admin.post(BASE, json=service_payload)

        assert response.status_code == 201
        data = response.json()["data"]
        assert data["features"] == ["Rate comparison", "Broker network"]
        assert data["tags"] == ["finance", "mortgage"]
        assert data["formattedPrice"] == "$150.00/hour"
        assert data["priceType"] == "hourly"
        assert data["availability"]["days"] == ["monday", "friday"]
        assert data["availability"]["timezone"] == "UTC"

    def test_create_requires_a_feature(self, as_admin, service_payload):
        service_payload["features"] = []

        response = as_admin.post(BASE, json=service_payload)

        assert response.status_code == 400
        assert response.json()["error"]["details"][0]["field"] == "features"

    def test_create_rejects_unknown_weekday(self, as_admin, service_payload):
        service_payload["availability"]["days"] = ["someday"]

        assert as_admin.post(BASE, json=service_payload).status_code == 400

    def test_update_replaces_features(self, as_admin, make_service):
        service = make_service(features=["Old one", "Old two"])

        response = as_admin.put(f"{BASE}{service.id}", json={"features": ["New"], "priceType": "free"})

        data = response.json()["data"]
        assert data["features"] == ["New"]
        assert data["formattedPrice"] == "Free"

    def test_delete(self, as_admin, db, make_service):
        service = make_service()

        response = as_admin.delete(f"{BASE}{service.id}")

        assert response.json()["data"] is None
        db.expire_all()
        assert db.get(Service, service.id) is None

    def test_record_inquiry(self, as_admin, make_service):
        service = make_service(inquiries=2)

        response = as_admin.post(f"{BASE}{service.id}/inquiry")

        assert response.json()["data"] == {"id": service.id, "inquiries": 3}

    def test_writes_are_admin_only(self, as_user, make_service, service_payload):
        service = make_service()

        assert as_user.post(BASE, json=service_payload).status_code == 403
        assert as_user.put(f"{BASE}{service.id}", json={"title": "x"}).status_code == 403
        assert as_user.delete(f"{BASE}{service.id}").status_code == 403
        assert as_user.post(f"{BASE}{service.id}/inquiry").status_code == 403

    def test_stats(self, as_admin, make_service):
        make_service(title="Popular", views=50, inquiries=1, featured=True)
        make_service(title="Asked", views=5, inquiries=9, category="Legal Services")
        make_service(title="Retired", active=False, views=500)

        data = as_admin.get(BASE + "admin/stats").json()["data"]

        assert data["overview"] == {"total": 3, "active": 2, "featured": 1}
        assert data["byCategory"]["Property Services"] == {"total": 2, "active": 1}
        assert data["byCategory"]["Legal Services"] == {"total": 1, "active": 1}
        assert [s["title"] for s in data["mostViewed"]] == ["Popular", "Asked"]
        assert data["mostInquired"][0] == {"id": data["mostInquired"][0]["id"], "title": "Asked", "inquiries": 9}
