"""Tests for the FastAPI API."""

import pytest
from fastapi.testclient import TestClient

from conftest import create_product, create_user
from shopapi.api import create_app
from shopapi.config import Settings
from shopapi.services import SEED_PRODUCTS, SEED_USERS, build_services


def place_order(client, user_id, *lines, **extra) -> dict:
    body = {
        "user_id": user_id,
        "items": [{"product_id": pid, "quantity": qty} for pid, qty in lines],
        "shipping_address": "1 Main St",
    }
    body.update(extra)
    return client.post("/api/orders", json=body)


def stock_of(client, product_id) -> int:
    return client.get(f"/api/products/{product_id}").json()["data"]["stock"]


class TestEnvelope:
    def test_success_envelope(self, client):
        response = client.get("/api/health")

        assert response.status_code == 200
        body = response.json()
        assert set(body) == {"status_code", "message", "data", "timestamp"}
        assert body["status_code"] == 200
        assert body["message"] == "Success"
        assert body["timestamp"].endswith("Z")
        assert body["data"]["status"] == "ok"
        assert body["data"]["product_count"] == 0

    def test_error_envelope(self, client):
        response = client.get("/api/products/nope")

        assert response.status_code == 404
        body = response.json()
        assert set(body) == {"status_code", "message", "error", "error_type", "timestamp", "path"}
        assert body["status_code"] == 404
        assert body["error"] == "Not Found"
        assert body["error_type"] == "ProductNotFoundError"
        assert body["message"] == "Product with ID nope not found"
        assert body["path"] == "/api/products/nope"

    def test_validation_error_is_400(self, client):
        response = client.post("/api/products", json={"name": "No price", "category": "X"})

        assert response.status_code == 400
        body = response.json()
        assert body["error_type"] == "RequestValidationError"
        assert "price" in body["message"]

    def test_unknown_route_uses_error_envelope(self, client):
        response = client.get("/api/nowhere")

        assert response.status_code == 404
        assert response.json()["error_type"] == "HTTPException"

    def test_custom_prefix(self):
        client = TestClient(create_app(Settings(seed=False, api_prefix="/v2")))
        assert client.get("/v2/health").status_code == 200
        assert client.get("/api/health").status_code == 404

    def test_injected_services(self):
        services = build_services(seed=True)
        client = TestClient(create_app(Settings(seed=False), services=services))

        data = client.get("/api/health").json()["data"]
        assert data["product_count"] == len(SEED_PRODUCTS)
        assert data["user_count"] == len(SEED_USERS)

    def test_payment_status_is_enumerated_in_schema(self, client):
        schemas = client.get("/openapi.json").json()["components"]["schemas"]

        assert schemas["PaymentStatus"]["enum"] == ["pending", "paid", "refunded"]
        field = schemas["OrderSchema"]["properties"]["payment_status"]
        assert field["$ref"] == "#/components/schemas/PaymentStatus"


class TestProducts:
    def test_create(self, client):
        response = client.post(
            "/api/products",
            json={"name": "Lamp", "price": 1999, "category": "Home", "stock": 4, "tags": ["light"]},
        )

        assert response.status_code == 201
        body = response.json()
        assert body["status_code"] == 201
        assert body["message"] == "Product created successfully"
        assert body["data"]["formatted_price"] == "$19.99"
        assert body["data"]["in_stock"] is True

    def test_duplicate_sku_is_409(self, client):
        create_product(client)
        response = client.post(
            "/api/products", json={"name": "Copy", "price": 1, "category": "X", "sku": "wid-001"}
        )

        assert response.status_code == 409
        assert response.json()["error"] == "Conflict"

    def test_negative_price_rejected(self, client):
        response = client.post("/api/products", json={"name": "X", "price": -1, "category": "X"})
        assert response.status_code == 400

    def test_list_pagination(self, client):
        for i in range(5):
            create_product(client, name=f"P{i}", sku=f"SKU-{i}")

        response = client.get("/api/products?page=1&limit=2")

        data = response.json()["data"]
        assert len(data["items"]) == 2
        assert data["total"] == 5
        assert data["total_pages"] == 3
        assert data["page"] == 1
        assert data["limit"] == 2

    def test_list_filters_and_sort(self, client):
        create_product(client, name="Cheap", price=100, sku="A", category="Toys")
        create_product(client, name="Dear", price=9000, sku="B", category="Toys")
        create_product(client, name="Other", price=500, sku="C", category="Books")

        response = client.get("/api/products?category=toys&sort_by=price&sort_order=desc")

        names = [p["name"] for p in response.json()["data"]["items"]]
        assert names == ["Dear", "Cheap"]

    def test_list_invalid_sort_key(self, client):
        response = client.get("/api/products?sort_by=colour")

        assert response.status_code == 400
        assert response.json()["error_type"] == "InvalidSortKeyError"

    def test_list_invalid_sort_order(self, client):
        assert client.get("/api/products?sort_order=sideways").status_code == 400

    def test_categories(self, seeded_client):
        response = seeded_client.get("/api/products/categories")

        assert response.status_code == 200
        assert response.json()["data"] == ["Accessories", "Electronics", "Sports & Outdoors"]

    def test_related(self, client):
        base = create_product(client, name="Base", sku="A", category="Toys")
        twin = create_product(client, name="Twin", sku="B", category="Toys")
        create_product(client, name="Stranger", sku="C", category="Books")

        response = client.get(f"/api/products/{base['id']}/related")

        assert [p["id"] for p in response.json()["data"]] == [twin["id"]]

    def test_update(self, client):
        product = create_product(client)

        response = client.patch(f"/api/products/{product['id']}", json={"price": 1250})

        assert response.status_code == 200
        assert response.json()["data"]["price"] == 1250
        assert response.json()["data"]["name"] == "Widget"

    def test_update_null_clears_optional_field(self, client):
        product = create_product(client, image_url="http://img/1.png")

        response = client.patch(f"/api/products/{product['id']}", json={"sku": None, "image_url": None})

        data = response.json()["data"]
        assert response.status_code == 200
        assert data["sku"] is None
        assert data["image_url"] is None
        assert data["price"] == 1000

    def test_update_null_required_field_rejected(self, client):
        product = create_product(client)

        response = client.patch(f"/api/products/{product['id']}", json={"name": None})

        assert response.status_code == 400
        assert response.json()["message"] == "name cannot be null"
        assert client.get(f"/api/products/{product['id']}").json()["data"]["name"] == "Widget"

    def test_stock_adjustment(self, client):
        product = create_product(client, stock=5)

        response = client.patch(f"/api/products/{product['id']}/stock", json={"quantity": -2})
        assert response.json()["data"]["stock"] == 3

        response = client.patch(f"/api/products/{product['id']}/stock", json={"quantity": -4})
        assert response.status_code == 400
        assert response.json()["message"] == "Insufficient stock"
        assert stock_of(client, product["id"]) == 3

    def test_delete_is_soft(self, client):
        product = create_product(client)

        response = client.delete(f"/api/products/{product['id']}")

        assert response.status_code == 204
        assert response.content == b""
        data = client.get(f"/api/products/{product['id']}").json()["data"]
        assert data["is_active"] is False

    def test_delete_missing(self, client):
        assert client.delete("/api/products/nope").status_code == 404


class TestUsers:
    def test_create_and_get(self, client):
        user = create_user(client, role="admin")

        response = client.get(f"/api/users/{user['id']}")

        assert response.json()["data"]["full_name"] == "Jo Bloggs"
        assert response.json()["data"]["role"] == "admin"

    def test_invalid_email(self, client):
        response = client.post(
            "/api/users", json={"email": "not-an-email", "first_name": "A", "last_name": "B"}
        )
        assert response.status_code == 400

    def test_duplicate_email_after_soft_delete_is_409(self, client):
        user = create_user(client)
        assert client.delete(f"/api/users/{user['id']}").status_code == 204

        response = client.post(
            "/api/users", json={"email": "JO@example.com", "first_name": "J", "last_name": "B"}
        )

        assert response.status_code == 409
        assert response.json()["message"] == "User with this email already exists"

    def test_list_filters(self, client):
        create_user(client, email="a@example.com", role="admin")
        create_user(client, email="b@example.com")

        response = client.get("/api/users?role=admin")

        items = response.json()["data"]["items"]
        assert [u["email"] for u in items] == ["a@example.com"]

    def test_update(self, client):
        user = create_user(client)

        response = client.patch(f"/api/users/{user['id']}", json={"last_name": "Smith"})

        assert response.json()["data"]["full_name"] == "Jo Smith"

    def test_update_null_clears_phone_number(self, client):
        user = create_user(client, phone_number="+15550100")

        response = client.patch(f"/api/users/{user['id']}", json={"phone_number": None})

        assert response.status_code == 200
        assert response.json()["data"]["phone_number"] is None
        assert response.json()["data"]["first_name"] == "Jo"

    def test_missing(self, client):
        assert client.get("/api/users/nope").status_code == 404


class TestOrders:
    @pytest.fixture
    def shop(self, client):
        product = create_product(client, stock=5)
        user = create_user(client)
        return client, product, user

    def test_order_then_cancel_restores_stock(self, shop):
        client, product, user = shop

        response = place_order(client, user["id"], (product["id"], 2))
        assert response.status_code == 201
        order = response.json()["data"]
        assert stock_of(client, product["id"]) == 3

        response = client.patch(f"/api/orders/{order['id']}/cancel")
        assert response.status_code == 200
        assert response.json()["data"]["status"] == "cancelled"
        assert stock_of(client, product["id"]) == 5

    def test_insufficient_stock(self, client):
        product = create_product(client, stock=3)
        user = create_user(client)

        response = place_order(client, user["id"], (product["id"], 5))

        assert response.status_code == 400
        assert "Insufficient stock" in response.json()["message"]
        assert stock_of(client, product["id"]) == 3

    def test_skipping_states_fails(self, shop):
        client, product, user = shop
        order = place_order(client, user["id"], (product["id"], 1)).json()["data"]

        response = client.patch(f"/api/orders/{order['id']}", json={"status": "delivered"})

        assert response.status_code == 400
        assert response.json()["message"] == "Invalid status transition from pending to delivered"

    def test_totals(self, shop):
        client, product, user = shop

        response = place_order(
            client, user["id"], (product["id"], 2), shipping_method="express", coupon_code="SAVE5"
        )

        data = response.json()["data"]
        assert data["subtotal"] == 2000
        assert data["tax_amount"] == 160
        assert data["shipping_cost"] == 1499
        assert data["discount_amount"] == 500
        assert data["total_amount"] == 2000 + 160 + 1499 - 500
        assert data["items"][0]["formatted_unit_price"] == "$10.00"

    def test_invalid_coupon(self, shop):
        client, product, user = shop

        response = place_order(client, user["id"], (product["id"], 2), coupon_code="NOPE")

        assert response.status_code == 400
        assert response.json()["error_type"] == "InvalidCouponError"
        assert stock_of(client, product["id"]) == 5

    def test_empty_items(self, shop):
        client, _, user = shop
        response = place_order(client, user["id"])
        assert response.status_code == 400
        assert response.json()["message"] == "Order must contain at least one item"

    def test_unknown_user(self, shop):
        client, product, _ = shop
        assert place_order(client, "nope", (product["id"], 1)).status_code == 404

    def test_status_progression(self, shop):
        client, product, user = shop
        order = place_order(client, user["id"], (product["id"], 1)).json()["data"]
        url = f"/api/orders/{order['id']}"

        for status in ("confirmed", "processing"):
            assert client.patch(url, json={"status": status}).status_code == 200
        response = client.patch(url, json={"status": "shipped", "tracking_number": "TRK1"})
        shipped = response.json()["data"]
        assert response.json()["message"] == "Order status updated to shipped"
        assert shipped["tracking_number"] == "TRK1"
        assert shipped["estimated_delivery_date"] is not None

        delivered = client.patch(url, json={"status": "delivered"}).json()["data"]
        assert delivered["payment_status"] == "paid"

        response = client.patch(f"{url}/cancel")
        assert response.status_code == 400
        assert response.json()["message"] == "Cannot cancel a delivered order"

    def test_cancel_twice(self, shop):
        client, product, user = shop
        order = place_order(client, user["id"], (product["id"], 1)).json()["data"]

        client.patch(f"/api/orders/{order['id']}/cancel")
        response = client.patch(f"/api/orders/{order['id']}/cancel")

        assert response.status_code == 400
        assert response.json()["message"] == "Order is already cancelled"

    def test_edit_pending_order(self, shop):
        client, product, user = shop
        order = place_order(client, user["id"], (product["id"], 1)).json()["data"]

        response = client.patch(
            f"/api/orders/{order['id']}",
            json={"shipping_address": "9 Elm St", "shipping_method": "overnight"},
        )

        data = response.json()["data"]
        assert data["shipping_address"] == "9 Elm St"
        assert data["shipping_cost"] == 2999
        assert data["total_amount"] == data["subtotal"] + data["tax_amount"] + 2999

    def test_edit_confirmed_order_fails(self, shop):
        client, product, user = shop
        order = place_order(client, user["id"], (product["id"], 1)).json()["data"]
        client.patch(f"/api/orders/{order['id']}", json={"status": "confirmed"})

        response = client.patch(f"/api/orders/{order['id']}", json={"notes": "late edit"})

        assert response.status_code == 400
        assert response.json()["message"] == "Only pending orders can be modified"

    def test_status_and_fields_together_rejected(self, shop):
        client, product, user = shop
        order = place_order(client, user["id"], (product["id"], 1)).json()["data"]

        response = client.patch(
            f"/api/orders/{order['id']}",
            json={"status": "confirmed", "shipping_address": "9 Elm St"},
        )

        assert response.status_code == 400
        assert response.json()["error_type"] == "HTTPException"

    def test_tracking_number_without_status_rejected(self, shop):
        client, product, user = shop
        order = place_order(client, user["id"], (product["id"], 1)).json()["data"]

        response = client.patch(f"/api/orders/{order['id']}", json={"tracking_number": "T"})

        assert response.status_code == 400

    def test_edit_null_clears_billing_address(self, shop):
        client, product, user = shop
        order = place_order(
            client, user["id"], (product["id"], 1), billing_address="PO Box 1"
        ).json()["data"]

        response = client.patch(f"/api/orders/{order['id']}", json={"billing_address": None})

        assert response.status_code == 200
        assert response.json()["data"]["billing_address"] is None
        assert response.json()["data"]["shipping_address"] == "1 Main St"

    def test_edit_null_shipping_address_rejected(self, shop):
        client, product, user = shop
        order = place_order(client, user["id"], (product["id"], 1)).json()["data"]

        response = client.patch(f"/api/orders/{order['id']}", json={"shipping_address": None})

        assert response.status_code == 400
        assert response.json()["message"] == "shipping_address cannot be null"

    def test_list_orders(self, shop):
        client, product, user = shop
        first = place_order(client, user["id"], (product["id"], 1)).json()["data"]
        second = place_order(client, user["id"], (product["id"], 1)).json()["data"]
        client.patch(f"/api/orders/{second['id']}", json={"status": "confirmed"})

        response = client.get(f"/api/orders?user_id={user['id']}&status=pending")

        data = response.json()["data"]
        assert [o["id"] for o in data["items"]] == [first["id"]]
        assert data["total"] == 1

    def test_list_invalid_date(self, client):
        response = client.get("/api/orders?date_from=yesterday")
        assert response.status_code == 400
        assert response.json()["error_type"] == "InvalidDateError"

    def test_invoice(self, shop):
        client, product, user = shop
        order = place_order(client, user["id"], (product["id"], 1)).json()["data"]

        response = client.get(f"/api/orders/{order['id']}/invoice")

        data = response.json()["data"]
        assert data["invoice_number"] == "INV-" + order["order_number"][len("ORD-"):]
        assert data["order"]["id"] == order["id"]

    def test_missing_order(self, client):
        assert client.get("/api/orders/nope").status_code == 404


class TestCarts:
    def test_cart_flow(self, client):
        product = create_product(client, price=1500)
        cart = client.post("/api/carts").json()["data"]
        url = f"/api/carts/{cart['id']}"

        response = client.post(f"{url}/items", json={"product_id": product["id"], "quantity": 2})
        assert response.json()["data"]["total"] == 3000

        response = client.put(f"{url}/items/{product['id']}", json={"quantity": 3})
        assert response.json()["data"]["total"] == 4500
        assert response.json()["data"]["formatted_total"] == "$45.00"

        response = client.delete(f"{url}/items/{product['id']}")
        assert response.json()["data"]["items"] == []

    def test_clear_and_delete(self, client):
        product = create_product(client)
        cart = client.post("/api/carts").json()["data"]
        url = f"/api/carts/{cart['id']}"
        client.post(f"{url}/items", json={"product_id": product["id"]})

        assert client.delete(f"{url}/items").status_code == 204
        assert client.get(url).json()["data"]["total"] == 0

        assert client.delete(url).status_code == 204
        assert client.get(url).status_code == 404

    def test_missing_item(self, client):
        cart = client.post("/api/carts").json()["data"]
        response = client.put(f"/api/carts/{cart['id']}/items/nope", json={"quantity": 1})
        assert response.status_code == 404
        assert response.json()["error_type"] == "CartItemNotFoundError"

    def test_unknown_product(self, client):
        cart = client.post("/api/carts").json()["data"]
        response = client.post(f"/api/carts/{cart['id']}/items", json={"product_id": "nope"})
        assert response.status_code == 404
