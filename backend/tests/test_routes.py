"""
HTTP API tests.

Verifies:
- Principal resolution from X-User-Role (401 missing/unknown)
- Capability failures map to 403, validation to 400 with fields
- Conflicts (duplicate name, category in use, cascade incomplete, blocked delete) map to 409
- The order completion flow end to end
"""

import pytest

from stockroom.services.document_store import PRODUCTS, StoreWriteError
from stockroom.services.runtime import inventory


@pytest.fixture
def electronics(client, admin_headers):
    resp = client.post("/api/categories", json={"name": "Electronics"}, headers=admin_headers)
    assert resp.status_code == 201
    return resp.get_json()


def _create_product(client, headers, **overrides):
    payload = {"name": "Laptop", "sku": "EL-LAP-0001", "category": "Electronics", "price": 999.99, "stock": 5}
    payload.update(overrides)
    resp = client.post("/api/products", json=payload, headers=headers)
    assert resp.status_code == 201, resp.get_json()
    return resp.get_json()


class TestPrincipal:

    def test_missing_role_header(self, client):
        resp = client.get("/api/categories")
        assert resp.status_code == 401

    def test_unknown_role(self, client):
        resp = client.get("/api/categories", headers={"X-User-Role": "intern"})
        assert resp.status_code == 401

    def test_role_header_case_insensitive(self, client):
        resp = client.get("/api/categories", headers={"X-User-Role": " Staff "})
        assert resp.status_code == 200

    def test_health_needs_no_principal(self, client):
        resp = client.get("/api/health")
        assert resp.status_code == 200
        body = resp.get_json()
        assert body["checks"]["database"]["status"] == "healthy"
        assert body["checks"]["projection"]["status"] == "healthy"

    def test_version(self, client):
        assert client.get("/api/version").get_json()["api_version"] == "1.0.0"


class TestCategoryRoutes:

    def test_validation_errors_listed_per_field(self, client, admin_headers):
        resp = client.post("/api/categories", json={"name": "A", "description": "x" * 300}, headers=admin_headers)
        assert resp.status_code == 400
        assert set(resp.get_json()["fields"]) == {"name", "description"}

    def test_duplicate_name_conflict(self, client, admin_headers, electronics):
        resp = client.post("/api/categories", json={"name": "electronics"}, headers=admin_headers)
        assert resp.status_code == 409
        assert "name" in resp.get_json()["fields"]

    def test_rename_cascade_reported(self, client, admin_headers, electronics):
        product = _create_product(client, admin_headers)
        resp = client.put(f"/api/categories/{electronics['id']}", json={"name": "Gadgets"}, headers=admin_headers)
        assert resp.status_code == 200
        body = resp.get_json()
        assert body["category"]["name"] == "Gadgets"
        assert body["cascade"]["updated"] == [product["id"]]

        fetched = client.get(f"/api/products/{product['id']}", headers=admin_headers).get_json()
        assert fetched["category"] == "Gadgets"

    def test_incomplete_cascade_is_conflict_then_repaired(self, client, admin_headers, electronics, monkeypatch):
        product = _create_product(client, admin_headers)
        real_update = inventory.store.update

        def flaky_update(collection, doc_id, patch):
            if collection == PRODUCTS:
                raise StoreWriteError("simulated outage")
            return real_update(collection, doc_id, patch)

        monkeypatch.setattr(inventory.store, "update", flaky_update)
        resp = client.put(f"/api/categories/{electronics['id']}", json={"name": "Gadgets"}, headers=admin_headers)
        assert resp.status_code == 409
        assert resp.get_json()["cascade"]["failed"] == [product["id"]]

        monkeypatch.setattr(inventory.store, "update", real_update)
        resp = client.post(
            "/api/categories/cascade",
            json={"oldName": "Electronics", "newName": "Gadgets"},
            headers=admin_headers,
        )
        assert resp.status_code == 200
        assert resp.get_json()["updated"] == [product["id"]]

    def test_cascade_rejects_blank_or_unknown_names(self, client, admin_headers, electronics):
        resp = client.post(
            "/api/categories/cascade",
            json={"oldName": " ", "newName": "Nowhere"},
            headers=admin_headers,
        )
        assert resp.status_code == 400
        assert set(resp.get_json()["fields"]) == {"oldName", "newName"}

        resp = client.post("/api/categories/cascade", json={"oldName": 3, "newName": "Electronics"}, headers=admin_headers)
        assert resp.status_code == 400
        assert set(resp.get_json()["fields"]) == {"oldName"}

    def test_delete_in_use_conflict(self, client, admin_headers, electronics):
        _create_product(client, admin_headers)
        resp = client.delete(f"/api/categories/{electronics['id']}", headers=admin_headers)
        assert resp.status_code == 409
        assert resp.get_json()["product_count"] == 1

    def test_staff_delete_forbidden(self, client, staff_headers, electronics):
        resp = client.delete(f"/api/categories/{electronics['id']}", headers=staff_headers)
        assert resp.status_code == 403
        assert resp.get_json()["required_permission"] == "canDeleteItems"

    def test_unknown_category(self, client, admin_headers):
        assert client.get("/api/categories/missing", headers=admin_headers).status_code == 404


class TestProductRoutes:

    def test_payload_includes_status_and_supplier_name(self, client, admin_headers, electronics):
        product = _create_product(client, admin_headers, stock=0)
        assert product["stockStatus"] == "out_of_stock"
        assert product["supplierName"] is None

    def test_filters(self, client, admin_headers, electronics):
        _create_product(client, admin_headers)
        _create_product(client, admin_headers, name="Cable", sku="EL-CAB-0001", price=5, stock=100)

        resp = client.get("/api/products?max_price=10", headers=admin_headers)
        assert [p["name"] for p in resp.get_json()["items"]] == ["Cable"]

        resp = client.get("/api/products?stock_status=low_stock", headers=admin_headers)
        assert [p["name"] for p in resp.get_json()["items"]] == ["Laptop"]

    def test_bad_filter(self, client, admin_headers):
        resp = client.get("/api/products?min_price=cheap", headers=admin_headers)
        assert resp.status_code == 400

    def test_unknown_category_rejected(self, client, admin_headers):
        resp = client.post(
            "/api/products",
            json={"name": "Laptop", "sku": "S1", "category": "Nowhere", "price": 1},
            headers=admin_headers,
        )
        assert resp.status_code == 400
        assert "category" in resp.get_json()["fields"]

    def test_stock_update(self, client, admin_headers, electronics):
        product = _create_product(client, admin_headers)
        resp = client.post(f"/api/products/{product['id']}/stock", json={"stock": 40}, headers=admin_headers)
        assert resp.status_code == 200
        assert resp.get_json()["stock"] == 40

        resp = client.post(f"/api/products/{product['id']}/stock", json={"stock": -1}, headers=admin_headers)
        assert resp.status_code == 400

    def test_generate_sku(self, client, staff_headers):
        resp = client.get("/api/products/generate-sku?category=Electronics&name=Laptop", headers=staff_headers)
        assert resp.get_json()["sku"].startswith("EL-LAP-")

    def test_missing_product(self, client, admin_headers):
        assert client.delete("/api/products/missing", headers=admin_headers).status_code == 404


class TestSupplierRoutes:

    def test_staff_cannot_create(self, client, staff_headers):
        resp = client.post(
            "/api/suppliers",
            json={"name": "Acme", "contactPerson": "Jo", "email": "jo@acme.io", "phone": "1"},
            headers=staff_headers,
        )
        assert resp.status_code == 403

    def test_delete_reports_orphans(self, client, admin_headers, electronics):
        supplier = client.post(
            "/api/suppliers",
            json={"name": "Acme", "contactPerson": "Jo", "email": "jo@acme.io", "phone": "1"},
            headers=admin_headers,
        ).get_json()
        product = _create_product(client, admin_headers, supplier=supplier["id"])
        assert product["supplierName"] == "Acme"

        listed = client.get("/api/suppliers", headers=admin_headers).get_json()["items"]
        assert listed[0]["productsCount"] == 1

        resp = client.delete(f"/api/suppliers/{supplier['id']}", headers=admin_headers)
        assert resp.get_json()["orphaned_products"] == 1

        fetched = client.get(f"/api/products/{product['id']}", headers=admin_headers).get_json()
        assert fetched["supplierName"] == "Unknown Supplier"


class TestOrderFlow:

    def test_complete_order_deducts_once(self, client, admin_headers, electronics):
        product = _create_product(client, admin_headers, stock=5)
        order = client.post(
            "/api/orders",
            json={
                "customer": {"name": "Sam", "email": "sam@example.test", "phone": "1", "address": "Here"},
                "items": [{"productId": product["id"], "quantity": 3}],
            },
            headers=admin_headers,
        ).get_json()
        assert order["status"] == "pending"

        for _ in range(2):
            resp = client.post(f"/api/orders/{order['id']}/status", json={"status": "completed"}, headers=admin_headers)
            assert resp.status_code == 200

        assert resp.get_json()["reconciliation"]["alreadyApplied"] is True
        stock = client.get(f"/api/products/{product['id']}", headers=admin_headers).get_json()["stock"]
        assert stock == 2

        resp = client.delete(f"/api/orders/{order['id']}", headers=admin_headers)
        assert resp.status_code == 409

    def test_order_validation(self, client, admin_headers):
        resp = client.post("/api/orders", json={"items": []}, headers=admin_headers)
        assert resp.status_code == 400
        assert "items" in resp.get_json()["fields"]

    def test_bad_status(self, client, admin_headers, electronics):
        product = _create_product(client, admin_headers)
        order = client.post(
            "/api/orders",
            json={
                "customerName": "Sam", "customerEmail": "sam@example.test",
                "customerPhone": "1", "customerAddress": "Here",
                "items": [{"productId": product["id"], "quantity": 1}],
            },
            headers=admin_headers,
        ).get_json()
        resp = client.post(f"/api/orders/{order['id']}/status", json={"status": "lost"}, headers=admin_headers)
        assert resp.status_code == 400

    def test_store_outage_is_503(self, client, admin_headers, electronics, monkeypatch):
        def broken_create(collection, record):
            raise StoreWriteError("simulated outage")

        monkeypatch.setattr(inventory.store, "create", broken_create)
        resp = client.post("/api/categories", json={"name": "Garden"}, headers=admin_headers)
        assert resp.status_code == 503

    def test_unknown_order(self, client, staff_headers):
        assert client.get("/api/orders/missing", headers=staff_headers).status_code == 404


class TestReportRoutes:

    def test_staff_cannot_view_dashboard(self, client, staff_headers):
        assert client.get("/api/reports/dashboard", headers=staff_headers).status_code == 403

    def test_stock_alerts_open_to_staff(self, client, staff_headers, admin_headers, electronics):
        _create_product(client, admin_headers, stock=0)
        body = client.get("/api/alerts/stock", headers=staff_headers).get_json()
        assert body["outOfStockCount"] == 1

    def test_dashboard(self, client, manager_headers, admin_headers, electronics):
        _create_product(client, admin_headers, stock=3)
        body = client.get("/api/reports/dashboard", headers=manager_headers).get_json()
        assert body["totalProducts"] == 1
        assert body["lowStockItems"] == 1
        assert body["totalRevenue"] == 0.0

    def test_sales_report_bad_group(self, client, admin_headers):
        resp = client.get("/api/reports/sales?group_by=year", headers=admin_headers)
        assert resp.status_code == 400
