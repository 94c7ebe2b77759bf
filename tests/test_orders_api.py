"""API tests for order intake and lookup."""

from tests.conftest import auth


def order_body(product_id, **overrides):
    body = {
        "products": [{"productId": product_id, "quantity": 2}],
        "customerName": "Alice",
        "email": "alice@example.com",
        "phone": "555-010-0100",
        "address": "1 Main St",
    }
    body.update(overrides)
    return body


class TestCreateOrder:
    def test_anonymous_order(self, client, listing):
        resp = client.post("/api/orders", json=order_body(listing["id"]))

        order = resp.json()["order"]
        assert resp.status_code == 201
        assert resp.json()["message"] == "Order saved successfully"
        assert order["user_id"] is None
        assert order["products"] == [{"product_id": listing["id"], "quantity": 2}]
        assert "created_at" in order

    def test_signed_in_order_records_buyer(self, client, buyer, listing):
        resp = client.post("/api/orders", json=order_body(listing["id"]), headers=auth(buyer["token"]))

        assert resp.status_code == 201
        assert resp.json()["order"]["user_id"] == buyer["user"]["id"]

    def test_presented_bad_token(self, client, listing):
        resp = client.post("/api/orders", json=order_body(listing["id"]), headers=auth("junk"))
        assert resp.status_code == 400
        assert resp.json() == {"error": "Invalid token"}

    def test_empty_products(self, client, buyer):
        resp = client.post("/api/orders", json=order_body(None, products=[]), headers=auth(buyer["token"]))

        assert resp.status_code == 400
        assert resp.json() == {"error": "Missing or invalid required fields"}

    def test_bad_phone(self, client, buyer, listing):
        resp = client.post(
            "/api/orders", json=order_body(listing["id"], phone="abc"), headers=auth(buyer["token"])
        )

        assert resp.status_code == 400
        assert resp.json() == {"error": "Invalid phone number format"}

    def test_bad_email(self, client, listing):
        resp = client.post("/api/orders", json=order_body(listing["id"], email="alice"))
        assert resp.json() == {"error": "Invalid email format"}

    def test_malformed_line_item(self, client):
        resp = client.post("/api/orders", json=order_body(None, products=["not-an-object"]))

        assert resp.status_code == 400
        assert resp.json() == {"error": "Missing or invalid required fields"}


class TestGetOrder:
    def test_expands_products(self, client, listing, db):
        created = client.post("/api/orders", json=order_body(listing["id"])).json()["order"]

        resp = client.get(f"/api/orders/{created['id']}")

        assert resp.status_code == 200
        line = resp.json()["products"][0]
        assert line["quantity"] == 2
        assert line["product"]["id"] == listing["id"]
        assert line["product"]["name"] == "Lamp"

    def test_missing_product_expands_to_null(self, client, seller, listing):
        created = client.post("/api/orders", json=order_body(listing["id"])).json()["order"]
        client.delete(f"/api/products/{listing['id']}", headers=auth(seller["token"]))

        line = client.get(f"/api/orders/{created['id']}").json()["products"][0]

        assert line["product"] is None

    def test_unknown_order(self, client):
        resp = client.get("/api/orders/64b0000000000000000000ff")
        assert resp.status_code == 404
        assert resp.json() == {"error": "Order not found"}

    def test_lookup_ignores_bad_token(self, client, listing):
        created = client.post("/api/orders", json=order_body(listing["id"])).json()["order"]

        resp = client.get(f"/api/orders/{created['id']}", headers=auth("junk"))

        assert resp.status_code == 200

    def test_wrong_method(self, client, listing):
        created = client.post("/api/orders", json=order_body(listing["id"])).json()["order"]

        resp = client.put(f"/api/orders/{created['id']}", json={})

        assert resp.status_code == 405
        assert resp.json() == {"error": "Method Not Allowed"}
