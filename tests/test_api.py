import pytest
from fastapi.testclient import TestClient

from grocery_service.app.main import create_app

ADDRESS = {
    "name": "John Doe",
    "phone": "+91 9876543210",
    "address_line1": "123, Green Avenue",
    "city": "Mumbai",
    "state": "Maharashtra",
    "pincode": "400001",
    "address_type": "HOME",
}


@pytest.fixture
def client(shop):
    return TestClient(create_app(shop))


def test_health(client):
    assert client.get("/").json() == {"message": "Grocery service is running"}
    assert client.get("/health").json()["status"] == "ok"


def test_products_listing_and_lookup(client):
    ids = [p["id"] for p in client.get("/api/v1/products", params={"category": "staples"}).json()]
    assert ids == ["rice"]
    assert client.get("/api/v1/products/banana").json()["price"] == 45.0
    assert client.get("/api/v1/products/ghost").status_code == 404


def test_cart_endpoints(client):
    resp = client.post("/api/v1/cart/items", json={"product_id": "banana", "quantity": 2})
    assert resp.status_code == 200
    cart = resp.json()
    assert cart["total_quantity"] == 2
    assert cart["lines"][0]["total_price"] == 90.0

    cart = client.put("/api/v1/cart/items/banana", json={"quantity": 5}).json()
    assert cart["total_quantity"] == 5
    cart = client.put("/api/v1/cart/items/banana", json={"quantity": 0}).json()
    assert cart["unique_item_count"] == 0

    client.post("/api/v1/cart/items", json={"product_id": "rice"})
    assert client.delete("/api/v1/cart").json()["lines"] == []
    assert client.post("/api/v1/cart/items", json={"product_id": "ghost"}).status_code == 404


def test_address_endpoints(client):
    first = client.post("/api/v1/addresses", json=ADDRESS).json()
    assert first["is_default"] is True
    second = client.post("/api/v1/addresses", json=dict(ADDRESS, name="Jane")).json()
    assert client.put(f"/api/v1/addresses/{second['id']}/default").status_code == 200
    assert client.get("/api/v1/addresses/default").json()["id"] == second["id"]
    assert [a["id"] for a in client.get("/api/v1/addresses").json()] == [second["id"], first["id"]]
    assert client.put("/api/v1/addresses/missing/default").status_code == 404
    assert client.delete(f"/api/v1/addresses/{second['id']}").status_code == 200
    assert client.get("/api/v1/addresses/default").json() is None


def test_checkout_and_place_order(client):
    client.post("/api/v1/cart/items", json={"product_id": "banana", "quantity": 2})
    failed = client.post("/api/v1/checkout/place-order")
    assert failed.status_code == 400
    assert "no address selected" in failed.json()["detail"]
    assert client.get("/api/v1/cart").json()["total_quantity"] == 2

    client.post("/api/v1/addresses", json=ADDRESS)
    summary = client.get("/api/v1/checkout").json()
    assert summary["total_amount"] == 144
    assert summary["can_place_order"] is True
    assert summary["selected_payment_method"]["id"] == "cod"

    placed = client.post("/api/v1/checkout/place-order").json()
    assert placed["status"] == "placed"
    order = client.get(f"/api/v1/orders/{placed['order_id']}").json()
    assert order["order"]["total_amount"] == 144
    assert order["order"]["payment_status"] == "PENDING"
    assert [i["total_price"] for i in order["items"]] == [90.0]
    assert client.get("/api/v1/cart").json()["lines"] == []


def test_checkout_selections(client):
    client.post("/api/v1/cart/items", json={"product_id": "rice"})
    client.post("/api/v1/addresses", json=ADDRESS)
    other = client.post("/api/v1/addresses", json=dict(ADDRESS, name="Office", address_type="OFFICE")).json()
    summary = client.put("/api/v1/checkout/address", json={"address_id": other["id"]}).json()
    assert summary["selected_address"]["id"] == other["id"]
    summary = client.put("/api/v1/checkout/payment-method", json={"payment_method_id": "card"}).json()
    assert summary["selected_payment_method"]["id"] == "card"
    summary = client.put("/api/v1/checkout/notes", json={"notes": "leave at door"}).json()
    assert summary["order_notes"] == "leave at door"
    summary = client.put("/api/v1/checkout/discount", json={"amount": 5}).json()
    assert summary["total_amount"] == 600
    assert client.put("/api/v1/checkout/payment-method", json={"payment_method_id": "gold"}).status_code == 404


def test_order_status_and_stats(client):
    client.post("/api/v1/addresses", json=ADDRESS)
    client.post("/api/v1/cart/items", json={"product_id": "rice"})
    order_id = client.post("/api/v1/checkout/place-order").json()["order_id"]

    resp = client.put(f"/api/v1/orders/{order_id}/status", json={"status": "CONFIRMED"})
    assert resp.json()["status"] == "CONFIRMED"
    assert client.put(f"/api/v1/orders/{order_id}/status", json={"status": "PLACED"}).status_code == 400
    assert client.put("/api/v1/orders/missing/status", json={"status": "SHIPPED"}).status_code == 404

    assert client.get("/api/v1/orders/stats").json() == {"total_orders": 1, "total_spent": 605.0}
    client.put(f"/api/v1/orders/{order_id}/status", json={"status": "CANCELLED"})
    assert client.get("/api/v1/orders/stats").json() == {"total_orders": 1, "total_spent": 0.0}
    assert [o["id"] for o in client.get("/api/v1/orders").json()] == [order_id]
    assert client.get("/api/v1/orders/missing").status_code == 404


def test_payment_methods(client):
    assert [m["id"] for m in client.get("/api/v1/payment-methods").json()] == ["cod", "upi", "card"]
