"""Tests for the property listing endpoints."""

import logging

import pytest

from estate_api.models import Property
from estate_api.services import view_counter

pytestmark = pytest.mark.integration

BASE = "/api/v1/properties/"


class TestPublicListing:

    def test_envelope_and_pagination(self, client, make_property):
        for price in (1, 2, 3, 4, 5):
            make_property(price=price)

        response = client.get(BASE, params={"page": 2, "limit": 2, "sort": "price"})

        assert response.status_code == 200
        body = response.json()
        assert body["success"] is True
        assert body["message"] == "Properties retrieved successfully"
        assert [p["price"] for p in body["data"]["properties"]] == [3, 4]
        assert body["data"]["pagination"] == {
            "currentPage": 2,
            "totalPages": 3,
            "totalItems": 5,
            "itemsPerPage": 2,
            "hasNextPage": True,
            "hasPreviousPage": True,
        }

    def test_camel_case_query_and_payload(self, client, make_property):
        villa = make_property(name="Residential Villa", subcategory="Villa", price=4_500_000)
        make_property(
            name="Commercial Building",
            category="Commercial",
            subcategory="Office Building",
            price=15_000_000,
        )

        response = client.get(
            BASE, params={"category": "Residential", "minPrice": 1_000_000, "maxPrice": 5_000_000}
        )

        properties = response.json()["data"]["properties"]
        assert [p["id"] for p in properties] == [villa.id]
        assert properties[0]["priceFormatted"] == "$4,500,000.00"
        assert properties[0]["formattedPrice"] == "$4,500,000.00"
        assert properties[0]["features"]["areaUnit"] == "sqft"
        assert "createdAt" in properties[0]

    def test_lease_out_type_filter(self, client, make_property):
        make_property(name="Shop Lease", type="Lease Out")
        make_property(name="House Sale", type="Sell")

        response = client.get(BASE, params={"type": "Lease Out"})

        assert [p["name"] for p in response.json()["data"]["properties"]] == ["Shop Lease"]

    def test_featured_flag(self, client, make_property):
        make_property(name="Star", featured=True)
        make_property(name="Plain")

        featured = client.get(BASE, params={"featured": "true"}).json()["data"]["properties"]
        not_featured = client.get(BASE, params={"featured": "false"}).json()["data"]["properties"]

        assert [p["name"] for p in featured] == ["Star"]
        assert [p["name"] for p in not_featured] == ["Plain"]

    def test_invalid_query_values(self, client):
        response = client.get(BASE, params={"limit": 0})

        assert response.status_code == 400
        body = response.json()
        assert body["success"] is False
        assert body["error"]["code"] == "VALIDATION_ERROR"
        assert body["error"]["details"][0]["field"] == "limit"

    def test_unknown_sort_key(self, client):
        response = client.get(BASE, params={"sort": "secret"})

        assert response.status_code == 400
        assert response.json()["error"]["code"] == "VALIDATION_ERROR"


class TestSearchAndFeatured:

    def test_search_message_and_ranking(self, client, make_property):
        make_property(name="Quiet Cottage", description="Cottage close to the lake shore.")
        make_property(name="Lake House", location="Lake Tahoe, CA")

        response = client.get(BASE + "search", params={"q": "lake"})

        body = response.json()
        assert body["message"] == 'Found 2 properties matching "lake"'
        assert body["data"]["searchQuery"] == "lake"
        assert [p["name"] for p in body["data"]["properties"]] == ["Lake House", "Quiet Cottage"]

    def test_search_requires_query(self, client):
        response = client.get(BASE + "search")

        assert response.status_code == 400
        assert response.json()["error"]["message"] == "Search query is required"

    def test_featured_defaults_to_six_available(self, client, make_property):
        for i in range(8):
            make_property(name=f"Featured {i}", featured=True)
        make_property(name="Featured but sold", featured=True, status="Sold")

        properties = client.get(BASE + "featured").json()["data"]["properties"]

        assert len(properties) == 6
        assert all(p["featured"] and p["status"] == "Available" for p in properties)


class TestDetail:

    def test_get_counts_a_view(self, client, db, make_property):
        prop = make_property()

        response = client.get(f"{BASE}{prop.id}")

        assert response.status_code == 200
        assert response.json()["data"]["id"] == prop.id
        db.expire_all()
        assert db.get(Property, prop.id).views == 1

    def test_view_counter_failure_is_only_logged(self, client, db, make_property, monkeypatch, caplog):
        """A session that cannot be opened never breaks the detail response."""
        prop = make_property()

        def pool_exhausted():
            raise RuntimeError("pool exhausted")

        monkeypatch.setattr(view_counter, "get_session_local", lambda: pool_exhausted)

        with caplog.at_level(logging.WARNING, logger=view_counter.__name__):
            response = client.get(f"{BASE}{prop.id}")

        assert response.status_code == 200
        assert any("pool exhausted" in r.getMessage() for r in caplog.records)
        db.expire_all()
        assert db.get(Property, prop.id).views == 0

    def test_view_counter_dead_connection_is_only_logged(self, client, make_property, monkeypatch, caplog):
        prop = make_property()

        class DeadSession:
            def query(self, *args):
                raise RuntimeError("connection reset")

            def rollback(self):
                raise RuntimeError("connection already closed")

            def close(self):
                pass

        monkeypatch.setattr(view_counter, "get_session_local", lambda: DeadSession)

        with caplog.at_level(logging.WARNING, logger=view_counter.__name__):
            response = client.get(f"{BASE}{prop.id}")

        assert response.status_code == 200
        messages = [r.getMessage() for r in caplog.records if r.levelno == logging.WARNING]
        assert any("connection reset" in m for m in messages)
        assert any("connection already closed" in m for m in messages)

    def test_missing_property(self, client):
        response = client.get(f"{BASE}9999")

        assert response.status_code == 404
        assert response.json()["error"] == {"code": "NOT_FOUND", "message": "Property not found"}


class TestAdminWrites:

    def test_create_requires_authentication(self, client, property_payload):
        response = client.post(BASE, json=property_payload)

        assert response.status_code == 401
        assert response.json()["error"]["code"] == "UNAUTHORIZED"

    def test_create_forbidden_for_users(self, as_user, property_payload):
        response = as_user.post(BASE, json=property_payload)

        assert response.status_code == 403
        assert response.json()["error"]["code"] == "FORBIDDEN"

    def test_create(self, as_admin, admin_user, db, property_payload):
        response = as_admin.post(BASE, json=property_payload)

        assert response.status_code == 201
        data = response.json()["data"]
        assert data["name"] == "Lakeside Villa"
        assert data["status"] == "Available"
        assert data["priceFormatted"] == "$4,500,000.00"
        assert data["features"]["yearBuilt"] == 2019
        assert data["views"] == 0
        assert db.get(Property, data["id"]).created_by == admin_user.id

    def test_create_rejects_mismatched_subcategory(self, as_admin, property_payload):
        property_payload["category"] = "Commercial"

        response = as_admin.post(BASE, json=property_payload)

        assert response.status_code == 400
        assert response.json()["error"]["code"] == "VALIDATION_ERROR"

    def test_create_rejects_year_far_in_future(self, as_admin, property_payload):
        property_payload["features"]["yearBuilt"] = 2999

        response = as_admin.post(BASE, json=property_payload)

        assert response.status_code == 400

    def test_partial_update_recomputes_price_display(self, as_admin, make_property):
        prop = make_property(price=100)

        response = as_admin.put(f"{BASE}{prop.id}", json={"price": 1250.5, "featured": True})

        data = response.json()["data"]
        assert response.status_code == 200
        assert data["priceFormatted"] == "$1,250.50"
        assert data["featured"] is True
        assert data["name"] == prop.name

    def test_update_checks_merged_subcategory(self, as_admin, make_property):
        prop = make_property(category="Residential", subcategory="House")

        response = as_admin.put(f"{BASE}{prop.id}", json={"category": "Commercial"})

        assert response.status_code == 400
        assert response.json()["error"]["details"][0]["field"] == "subcategory"

        response = as_admin.put(
            f"{BASE}{prop.id}", json={"category": "Commercial", "subcategory": "Warehouse"}
        )
        assert response.status_code == 200
        assert response.json()["data"]["subcategory"] == "Warehouse"

    def test_delete(self, as_admin, db, make_property):
        prop = make_property()

        response = as_admin.delete(f"{BASE}{prop.id}")

        assert response.status_code == 200
        assert response.json() == {"success": True, "data": None, "message": "Property deleted successfully"}
        db.expire_all()
        assert db.get(Property, prop.id) is None

    def test_stats(self, as_admin, make_property):
        make_property(price=100, type="Buy")
        make_property(price=300, type="Sell", status="Sold")
        make_property(price=200, type="Buy", category="Commercial", subcategory="Warehouse")

        data = as_admin.get(BASE + "admin/stats").json()["data"]

        assert data["overview"] == {
            "totalProperties": 3,
            "averagePrice": 200,
            "minPrice": 100,
            "maxPrice": 300,
        }
        assert data["byStatus"] == {"Available": 2, "Sold": 1}
        assert data["byType"] == {"Buy": 2, "Sell": 1}
        assert data["byCategory"]["Commercial"] == {"count": 1, "averagePrice": 200}
