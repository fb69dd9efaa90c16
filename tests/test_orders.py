import pytest

from zenvira.errors import Forbidden, ValidationError
from zenvira.services.order import OrderService

SHIPPING = {
    "shippingName": "Jane Doe",
    "shippingPhone": "01700000000",
    "shippingEmail": "jane@example.com",
    "address": "12 Lake Road, Dhaka",
}


@pytest.fixture
def service(database):
    return OrderService(database)


@pytest.fixture
def shop(seed):
    seller = seed.user("seller")
    category_id = seed.category()
    return {
        "seller": seller,
        "napa": seed.medicine(seller.id, category_id, price=10.005, stock=5),
        "ace": seed.medicine(seller.id, category_id, price=5.0, stock=2),
    }


def stock(database, medicine_id):
    return database.find_by_id("medicine", medicine_id)["stock"]


def place(client, user, items):
    return client.post("/api/orders", json={**SHIPPING, "items": items}, headers=user.headers)


def test_create_order_decrements_stock_and_snapshots_price(client, seed, database, shop):
    customer = seed.user()
    res = place(
        client, customer, [{"medicineId": shop["napa"], "quantity": 2}, {"medicineId": shop["ace"], "quantity": 1}]
    )
    assert res.status_code == 201
    order = res.json()["data"]
    assert order["status"] == "placed"
    assert order["paymentStatus"] == "pending"
    assert order["paymentMethod"] == "cod"
    assert order["customerId"] == customer.id
    assert order["total"] == 25.01
    assert order["items"][0]["price"] == 10.005
    assert order["items"][0]["medicine"]["slug"]
    assert stock(database, shop["napa"]) == 3
    assert stock(database, shop["ace"]) == 1


def test_insufficient_stock_leaves_stock_untouched(client, seed, database, shop):
    customer = seed.user()
    res = place(
        client, customer, [{"medicineId": shop["napa"], "quantity": 1}, {"medicineId": shop["ace"], "quantity": 3}]
    )
    assert res.status_code == 400
    assert res.json()["message"].startswith("Insufficient stock")
    assert stock(database, shop["napa"]) == 5
    assert database["order"].count_documents({}) == 0


def test_repeated_item_cannot_oversell(client, seed, database, shop):
    customer = seed.user()
    res = place(
        client, customer, [{"medicineId": shop["ace"], "quantity": 2}, {"medicineId": shop["ace"], "quantity": 1}]
    )
    assert res.status_code == 400
    assert stock(database, shop["ace"]) == 2


def test_create_order_validation(client, seed, database, shop):
    customer = seed.user()
    res = client.post("/api/orders", json={"items": [{"medicineId": shop["napa"], "quantity": 1}]}, headers=customer.headers)
    assert res.status_code == 400
    assert place(client, customer, []).status_code == 400
    assert place(client, customer, [{"medicineId": shop["napa"], "quantity": 0}]).status_code == 400

    database.update_by_id("medicine", shop["ace"], {"status": "inactive"})
    res = place(client, customer, [{"medicineId": shop["ace"], "quantity": 1}])
    assert res.status_code == 400
    assert res.json()["message"] == "One or more medicines not found or inactive"


def test_customers_see_only_their_orders(client, seed, shop):
    alice, bob = seed.user(), seed.user()
    admin = seed.user("admin")
    order_id = seed.order(alice.id, [(shop["napa"], 10.005, 1)])
    seed.order(bob.id, [(shop["ace"], 5.0, 1)])

    mine = client.get("/api/orders", params={"customerId": bob.id}, headers=alice.headers).json()
    assert [o["id"] for o in mine["data"]] == [order_id]
    assert client.get(f"/api/orders/{order_id}", headers=bob.headers).status_code == 403
    assert client.get(f"/api/orders/{order_id}", headers=alice.headers).status_code == 200

    everything = client.get("/api/orders", headers=admin.headers).json()
    assert everything["pagination"]["total"] == 2
    filtered = client.get("/api/orders", params={"customerId": bob.id}, headers=admin.headers).json()
    assert filtered["pagination"]["total"] == 1


def test_seller_orders_only_show_own_items(client, seed, shop):
    customer = seed.user()
    other_seller = seed.user("seller")
    foreign = seed.medicine(other_seller.id, seed.category(), price=99.0)
    order_id = seed.order(customer.id, [(shop["napa"], 10.005, 1), (shop["ace"], 5.0, 2), (foreign, 99.0, 1)])

    body = client.get("/api/orders/seller", headers=shop["seller"].headers).json()
    assert body["pagination"]["total"] == 1
    order = body["data"][0]
    assert {i["medicineId"] for i in order["items"]} == {shop["napa"], shop["ace"]}
    assert order["sellerTotal"] == 20.01
    assert order["totalItems"] == 3

    detail = client.get(f"/api/orders/seller/{order_id}", headers=other_seller.headers).json()["data"]
    assert [i["medicineId"] for i in detail["items"]] == [foreign]


def test_seller_without_items_is_forbidden(client, seed, shop):
    customer = seed.user()
    stranger = seed.user("seller")
    order_id = seed.order(customer.id, [(shop["napa"], 10.005, 1)])
    res = client.get(f"/api/orders/seller/{order_id}", headers=stranger.headers)
    assert res.status_code == 403
    assert res.json()["message"] == "No items from this seller in this order"
    res = client.put(f"/api/orders/{order_id}/status", json={"status": "shipped"}, headers=stranger.headers)
    assert res.status_code == 403


def test_status_updates_and_cancellation_restocks_once(service, seed, database, shop):
    customer = seed.user()
    order = service.create(
        customer.id, "Jane", "0170", "jane@example.com", "Dhaka", [{"medicine_id": shop["napa"], "quantity": 2}]
    )
    assert stock(database, shop["napa"]) == 3

    assert service.update_status(order["id"], "confirmed", shop["seller"].principal)["status"] == "confirmed"
    with pytest.raises(ValidationError):
        service.update_status(order["id"], "lost", shop["seller"].principal)

    service.update_status(order["id"], "cancelled", shop["seller"].principal)
    service.update_status(order["id"], "cancelled", shop["seller"].principal)
    assert stock(database, shop["napa"]) == 5


def test_customer_cannot_change_status(client, seed, shop):
    customer = seed.user()
    order_id = seed.order(customer.id, [(shop["napa"], 10.005, 1)])
    res = client.put(f"/api/orders/{order_id}/status", json={"status": "delivered"}, headers=customer.headers)
    assert res.status_code == 403


def test_payment_status_is_admin_only(client, seed, shop):
    customer = seed.user()
    admin = seed.user("admin")
    order_id = seed.order(customer.id, [(shop["napa"], 10.005, 1)])

    res = client.put(f"/api/orders/{order_id}/payment", json={"paymentStatus": "paid"}, headers=shop["seller"].headers)
    assert res.status_code == 403
    res = client.put(f"/api/orders/{order_id}/payment", json={"paymentStatus": "refunded"}, headers=admin.headers)
    assert res.status_code == 400
    res = client.put(f"/api/orders/{order_id}/payment", json={"paymentStatus": "paid"}, headers=admin.headers)
    assert res.json()["data"]["paymentStatus"] == "paid"


def test_customer_deletes_only_own_placed_orders(service, seed, database, shop):
    alice, bob = seed.user(), seed.user()
    order = service.create(
        alice.id, "Alice", "0170", "alice@example.com", "Dhaka", [{"medicine_id": shop["ace"], "quantity": 2}]
    )
    with pytest.raises(Forbidden):
        service.delete(order["id"], bob.principal)

    shipped = seed.order(alice.id, [(shop["napa"], 10.005, 1)], status="shipped")
    with pytest.raises(ValidationError):
        service.delete(shipped, alice.principal)

    service.delete(order["id"], alice.principal)
    assert stock(database, shop["ace"]) == 2
    assert database.find_by_id("order", order["id"]) is None


def test_uppercase_medicine_id_places_order(client, seed, database, shop):
    customer = seed.user()
    res = place(client, customer, [{"medicineId": shop["napa"].upper(), "quantity": 2}])
    assert res.status_code == 201
    assert res.json()["data"]["items"][0]["medicineId"] == shop["napa"]
    assert database["order"].find_one({})["items"][0]["medicine_id"] == shop["napa"]
    assert stock(database, shop["napa"]) == 3


def test_malformed_medicine_id_is_rejected(client, seed, database, shop):
    customer = seed.user()
    res = place(client, customer, [{"medicineId": "napa", "quantity": 1}])
    assert res.status_code == 400
    assert res.json()["message"] == "One or more medicines not found or inactive"
    assert database["order"].count_documents({}) == 0
