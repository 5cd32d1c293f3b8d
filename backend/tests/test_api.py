"""
HTTP API tests.

Verifies:
- Unauthenticated requests return 401
- Policy denials return a generic 403
- Validation, conflict and insufficient-stock responses
- Out-of-range numbers and non-string credentials are rejected with 400
- End-to-end stock movement through the API
"""

import pytest

from stockroom.extensions import db
from stockroom.models import MAX_QUANTITY

from conftest import PASSWORD


# =============================================================================
# UNAUTHENTICATED ACCESS — 401
# =============================================================================


class TestUnauthenticatedAccess:
    """All protected endpoints return 401 without a token."""

    @pytest.mark.parametrize(
        "method,path",
        [
            ("GET", "/api/auth/me"),
            ("GET", "/api/users"),
            ("PATCH", "/api/users/1"),
            ("GET", "/api/categories"),
            ("POST", "/api/categories"),
            ("GET", "/api/products"),
            ("POST", "/api/products"),
            ("DELETE", "/api/products/1"),
            ("GET", "/api/stock/transactions"),
            ("POST", "/api/stock/transactions"),
            ("GET", "/api/stock/reconciliation"),
            ("GET", "/api/dashboard"),
            ("GET", "/api/navigation"),
        ],
    )
    def test_requires_auth(self, client, db_session, method, path):
        resp = getattr(client, method.lower())(path)
        assert resp.status_code == 401, f"{method} {path} returned {resp.status_code}"

    def test_garbage_token(self, client, db_session):
        resp = client.get("/api/products", headers={"Authorization": "Bearer nope"})
        assert resp.status_code == 401

    def test_health_is_public(self, client, db_session):
        resp = client.get("/health")
        assert resp.status_code == 200
        assert resp.json["database"]["status"] == "healthy"


# =============================================================================
# AUTH FLOW
# =============================================================================


class TestAuthFlow:

    def test_register_login_me_logout(self, client, db_session):
        resp = client.post("/api/auth/register", json={"email": "new@example.com", "password": PASSWORD, "name": "Nia"})
        assert resp.status_code == 201
        assert resp.json["profile"]["role"] == "staff"
        assert resp.json["profile"]["name"] == "Nia"

        resp = client.post("/api/auth/login", json={"email": "new@example.com", "password": PASSWORD})
        assert resp.status_code == 200
        headers = {"Authorization": f"Bearer {resp.json['token']}"}
        assert resp.json["capabilities"]["category"] == ["read"]

        me = client.get("/api/auth/me", headers=headers)
        assert me.status_code == 200
        assert me.json["user"]["email"] == "new@example.com"

        assert client.post("/api/auth/logout", headers=headers).status_code == 200
        assert client.get("/api/auth/me", headers=headers).status_code == 401

    def test_register_duplicate(self, client, staff_user):
        resp = client.post("/api/auth/register", json={"email": "staff@example.com", "password": PASSWORD})
        assert resp.status_code == 409

    def test_register_weak_password(self, client, db_session):
        resp = client.post("/api/auth/register", json={"email": "weak@example.com", "password": "weak"})
        assert resp.status_code == 400

    def test_register_cannot_choose_role(self, client, db_session):
        resp = client.post(
            "/api/auth/register",
            json={"email": "sneaky@example.com", "password": PASSWORD, "role": "admin"},
        )
        assert resp.status_code == 201
        assert resp.json["profile"]["role"] == "staff"

    def test_login_bad_credentials(self, client, staff_user):
        resp = client.post("/api/auth/login", json={"email": "staff@example.com", "password": "Wrong123!"})
        assert resp.status_code == 401

    def test_login_missing_fields(self, client, db_session):
        assert client.post("/api/auth/login", json={}).status_code == 400

    @pytest.mark.parametrize("payload", [
        {"email": 12345, "password": PASSWORD},
        {"email": ["new@example.com"], "password": PASSWORD},
        {"email": "new@example.com", "password": 12345678},
        {"email": "new@example.com", "password": {"value": PASSWORD}},
        {"email": "new@example.com", "password": PASSWORD, "name": 42},
    ])
    def test_register_non_string_fields(self, client, db_session, payload):
        resp = client.post("/api/auth/register", json=payload)
        assert resp.status_code == 400
        assert "error" in resp.json

    @pytest.mark.parametrize("payload", [
        {"email": ["staff@example.com"], "password": PASSWORD},
        {"email": "staff@example.com", "password": 12345678},
        {"email": {"address": "staff@example.com"}, "password": [PASSWORD]},
    ])
    def test_login_non_string_fields(self, client, staff_user, payload):
        resp = client.post("/api/auth/login", json=payload)
        assert resp.status_code == 400
        assert resp.json == {"error": "email and password must be strings"}


# =============================================================================
# PRODUCTS AND STOCK
# =============================================================================


class TestProductsApi:

    def test_create_and_get(self, client, staff_headers, category):
        resp = client.post(
            "/api/products",
            json={"name": "Mouse", "sku": "MS-1", "price": "19.99", "quantity": 3, "category_id": category.id},
            headers=staff_headers,
        )
        assert resp.status_code == 201
        body = resp.json
        assert body["status"] == "low_stock"
        assert body["price"] == "19.99"
        assert body["category"]["name"] == "Electronics"

        resp = client.get(f"/api/products/{body['id']}", headers=staff_headers)
        assert resp.status_code == 200
        assert resp.json["sku"] == "MS-1"

    def test_status_not_writable(self, client, staff_headers):
        resp = client.post(
            "/api/products",
            json={"name": "Mouse", "sku": "MS-1", "status": "in_stock"},
            headers=staff_headers,
        )
        assert resp.status_code == 400

    def test_duplicate_sku_conflict(self, client, staff_headers, make_product):
        make_product(sku="DUP")
        resp = client.post("/api/products", json={"name": "Again", "sku": "DUP"}, headers=staff_headers)
        assert resp.status_code == 409

    def test_inactive_user_gets_generic_403(self, client, inactive_headers):
        resp = client.post("/api/products", json={"name": "Mouse", "sku": "MS-1"}, headers=inactive_headers)
        assert resp.status_code == 403
        assert resp.json["error"] == "You do not have permission to perform this operation"

    def test_inactive_user_can_read(self, client, inactive_headers, make_product):
        make_product(sku="R1")
        resp = client.get("/api/products", headers=inactive_headers)
        assert resp.status_code == 200
        assert resp.json["count"] == 1

    def test_staff_cannot_delete(self, client, staff_headers, make_product):
        product = make_product()
        assert client.delete(f"/api/products/{product.id}", headers=staff_headers).status_code == 403

    def test_admin_deletes(self, client, admin_headers, make_product):
        product = make_product()
        assert client.delete(f"/api/products/{product.id}", headers=admin_headers).status_code == 200
        assert client.get(f"/api/products/{product.id}", headers=admin_headers).status_code == 404

    def test_list_filters(self, client, staff_headers, make_product):
        make_product(sku="LOW", quantity=2)
        make_product(sku="FULL", quantity=50)

        resp = client.get("/api/products?status=low_stock", headers=staff_headers)
        assert [p["sku"] for p in resp.json["items"]] == ["LOW"]

        resp = client.get("/api/products?search=ful&page=1&per_page=10", headers=staff_headers)
        assert [p["sku"] for p in resp.json["items"]] == ["FULL"]
        assert resp.json["pagination"]["total"] == 1

        assert client.get("/api/products?category_id=abc", headers=staff_headers).status_code == 400

    @pytest.mark.parametrize("query", ["page=-1", "page=0", "per_page=-5", "page=1&per_page=0"])
    def test_pagination_below_one(self, client, staff_headers, query):
        assert client.get(f"/api/products?{query}", headers=staff_headers).status_code == 400

    def test_id_beyond_integer_range(self, client, staff_headers, admin_headers):
        assert client.get("/api/products/99999999999", headers=staff_headers).status_code == 404
        assert client.put("/api/products/99999999999", json={"name": "x"}, headers=staff_headers).status_code == 404
        assert client.delete("/api/products/99999999999", headers=admin_headers).status_code == 404

    @pytest.mark.parametrize("quantity", [10**20, MAX_QUANTITY + 1])
    def test_quantity_beyond_column_range(self, client, staff_headers, quantity):
        resp = client.post(
            "/api/products",
            json={"name": "Bolt", "sku": "B-1", "quantity": quantity},
            headers=staff_headers,
        )
        assert resp.status_code == 400

    def test_update_quantity_is_recorded(self, client, staff_headers, make_product):
        product = make_product(quantity=8)
        resp = client.put(f"/api/products/{product.id}", json={"quantity": 0}, headers=staff_headers)
        assert resp.status_code == 200
        assert resp.json["status"] == "out_of_stock"

        resp = client.get(f"/api/stock/transactions?product_id={product.id}", headers=staff_headers)
        assert [(t["type"], t["quantity"]) for t in resp.json["items"]] == [("OUT", 8), ("IN", 8)]


class TestStockApi:

    def test_movement_scenario(self, client, staff_headers, make_product):
        product = make_product(quantity=3)

        resp = client.post(
            "/api/stock/transactions",
            json={"product_id": product.id, "type": "in", "quantity": 2, "notes": "Delivery"},
            headers=staff_headers,
        )
        assert resp.status_code == 201
        assert resp.json["transaction"]["type"] == "IN"
        assert resp.json["product"]["quantity"] == 5
        assert resp.json["product"]["status"] == "in_stock"

        resp = client.post(
            "/api/stock/transactions",
            json={"product_id": product.id, "type": "OUT", "quantity": 5},
            headers=staff_headers,
        )
        assert resp.json["product"]["status"] == "out_of_stock"

        resp = client.post(
            "/api/stock/transactions",
            json={"product_id": product.id, "type": "OUT", "quantity": 1},
            headers=staff_headers,
        )
        assert resp.status_code == 409
        assert resp.json == {"error": "Insufficient stock quantity", "available": 0, "requested": 1}

    def test_listing_embeds_details(self, client, staff_headers, make_product):
        make_product(quantity=1)
        resp = client.get("/api/stock/transactions", headers=staff_headers)
        item = resp.json["items"][0]
        assert item["product"]["sku"] == "SKU-001"
        assert item["profile"]["name"] == "Sam Staff"

    @pytest.mark.parametrize(
        "payload",
        [
            {"product_id": 1, "type": "IN", "quantity": 0},
            {"product_id": 1, "type": "MOVE", "quantity": 1},
            {"product_id": 1, "type": "IN", "quantity": 1.5},
            {"type": "IN", "quantity": 1},
        ],
    )
    def test_bad_movements(self, client, staff_headers, payload):
        resp = client.post("/api/stock/transactions", json=payload, headers=staff_headers)
        assert resp.status_code == 400

    def test_unknown_product(self, client, staff_headers):
        resp = client.post(
            "/api/stock/transactions",
            json={"product_id": 999999, "type": "IN", "quantity": 1},
            headers=staff_headers,
        )
        assert resp.status_code == 404

    def test_quantity_beyond_column_range(self, client, staff_headers, make_product):
        product = make_product()
        resp = client.post(
            "/api/stock/transactions",
            json={"product_id": product.id, "type": "IN", "quantity": 10**20},
            headers=staff_headers,
        )
        assert resp.status_code == 400

    def test_receive_past_max_quantity(self, client, staff_headers, make_product):
        product = make_product(quantity=MAX_QUANTITY)
        resp = client.post(
            "/api/stock/transactions",
            json={"product_id": product.id, "type": "IN", "quantity": 1},
            headers=staff_headers,
        )
        assert resp.status_code == 409
        assert resp.json == {
            "error": "Quantity would exceed the maximum stock level",
            "available": MAX_QUANTITY,
            "requested": 1,
        }

    def test_listing_reports_truncation(self, client, staff_headers, make_product):
        make_product(sku="A", quantity=1)
        make_product(sku="B", quantity=1)
        resp = client.get("/api/stock/transactions?limit=1", headers=staff_headers)
        assert resp.status_code == 200
        assert resp.json["count"] == 1
        assert resp.json["limit"] == 1
        assert resp.json["truncated"] is True

    @pytest.mark.parametrize("query", ["limit=-1", "limit=0", "product_id=99999999999999999999"])
    def test_bad_listing_arguments(self, client, staff_headers, query):
        resp = client.get(f"/api/stock/transactions?{query}", headers=staff_headers)
        assert resp.status_code == 400

    def test_no_update_or_delete_routes(self, client, admin_headers):
        assert client.put("/api/stock/transactions/1", json={}, headers=admin_headers).status_code in (404, 405)
        assert client.delete("/api/stock/transactions/1", headers=admin_headers).status_code in (404, 405)

    def test_reconciliation(self, client, staff_headers, make_product):
        make_product(quantity=4)
        resp = client.get("/api/stock/reconciliation", headers=staff_headers)
        assert resp.status_code == 200
        assert resp.json["consistent"] is True
        assert resp.json["items"][0]["ledger_balance"] == 4


# =============================================================================
# CATEGORIES, USERS, DASHBOARD, NAVIGATION
# =============================================================================


class TestCategoriesApi:

    def test_staff_cannot_create(self, client, staff_headers):
        resp = client.post("/api/categories", json={"name": "Tools"}, headers=staff_headers)
        assert resp.status_code == 403

    def test_admin_crud(self, client, admin_headers):
        resp = client.post("/api/categories", json={"name": "Tools", "description": "Hand tools"}, headers=admin_headers)
        assert resp.status_code == 201
        category_id = resp.json["id"]

        resp = client.put(f"/api/categories/{category_id}", json={"name": "Power tools"}, headers=admin_headers)
        assert resp.json["name"] == "Power tools"

        resp = client.get("/api/categories", headers=admin_headers)
        assert resp.json["items"][0]["product_count"] == 0

        assert client.delete(f"/api/categories/{category_id}", headers=admin_headers).status_code == 200
        assert client.get(f"/api/categories/{category_id}", headers=admin_headers).status_code == 404

    def test_delete_detaches_products(self, client, admin_headers, category, make_product):
        product = make_product(sku="KEEP", category_id=category.id)

        resp = client.delete(f"/api/categories/{category.id}", headers=admin_headers)
        assert resp.json == {"deleted": True, "detached_products": 1}

        resp = client.get(f"/api/products/{product.id}", headers=admin_headers)
        assert resp.status_code == 200
        assert resp.json["category_id"] is None

    def test_blank_name(self, client, admin_headers):
        assert client.post("/api/categories", json={"name": "  "}, headers=admin_headers).status_code == 400


class TestUsersApi:

    def test_list(self, client, staff_headers, admin_user):
        resp = client.get("/api/users", headers=staff_headers)
        assert resp.status_code == 200
        assert resp.json["count"] == 2

    def test_staff_renames_self(self, client, staff_headers, staff_user):
        resp = client.patch(f"/api/users/{staff_user.id}", json={"name": "Samantha"}, headers=staff_headers)
        assert resp.status_code == 200
        assert resp.json["name"] == "Samantha"

    def test_staff_cannot_change_role(self, client, staff_headers, staff_user):
        resp = client.patch(f"/api/users/{staff_user.id}", json={"role": "admin"}, headers=staff_headers)
        assert resp.status_code == 403

    def test_admin_deactivates_staff(self, client, admin_headers, staff_user):
        resp = client.patch(f"/api/users/{staff_user.id}", json={"is_active": False}, headers=admin_headers)
        assert resp.status_code == 200
        assert resp.json["is_active"] is False

    def test_admin_cannot_deactivate_self(self, client, admin_headers, admin_user):
        resp = client.patch(f"/api/users/{admin_user.id}", json={"is_active": False}, headers=admin_headers)
        assert resp.status_code == 409

    def test_invalid_role(self, client, admin_headers, staff_user):
        resp = client.patch(f"/api/users/{staff_user.id}", json={"role": "owner"}, headers=admin_headers)
        assert resp.status_code == 400


class TestDashboardApi:

    def test_dashboard(self, client, staff_headers, make_product):
        make_product(sku="A", quantity=0)
        make_product(sku="B", quantity=2)
        resp = client.get("/api/dashboard", headers=staff_headers)
        assert resp.status_code == 200
        assert resp.json["stats"]["out_of_stock_count"] == 1
        assert resp.json["stats"]["low_stock_count"] == 1
        assert len(resp.json["recent_products"]) == 2


class TestNavigationApi:

    def test_staff_sees_access_denied_for_users(self, client, staff_headers):
        resp = client.get("/api/navigation?path=/users", headers=staff_headers)
        assert resp.json["view"] == "users"
        assert resp.json["allowed"] is False
        assert "users" not in [item["view"] for item in resp.json["menu"]]

    def test_admin_menu_includes_users(self, client, admin_headers):
        resp = client.get("/api/navigation?path=/users", headers=admin_headers)
        assert resp.json["allowed"] is True
        assert "users" in [item["view"] for item in resp.json["menu"]]

    def test_unknown_path_defaults_to_dashboard(self, client, staff_headers):
        resp = client.get("/api/navigation?path=/nowhere", headers=staff_headers)
        assert resp.json["view"] == "dashboard"
        assert resp.json["path"] == "/dashboard"
