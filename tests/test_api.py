from datetime import timedelta
from decimal import Decimal

import pytest

from storefront.core import security
from storefront.core.config import settings
from storefront.db import models

StaffRole = models.StaffRole


async def test_health_and_root(client):
    assert (await client.get("/health")).json()["status"] == "healthy"
    assert (await client.get("/")).json()["health"] == "/health"
    assert len((await client.get("/health")).headers["x-request-id"]) == 32


async def test_buyer_signup_login_and_profile(client):
    resp = await client.post("/buyers", json={"name": "Ana", "email": "ana@example.com", "password": "secret123"})
    assert resp.status_code == 201
    body = resp.json()
    assert body["token_type"] == "bearer"
    assert body["principal"]["email"] == "ana@example.com"
    assert "hashed_password" not in body["principal"]

    login = await client.post("/sessions/buyer", json={"email": "ana@example.com", "password": "secret123"})
    assert login.status_code == 200
    token = login.json()["access_token"]

    me = await client.get("/buyers/me", headers={"Authorization": f"Bearer {token}"})
    assert me.status_code == 200
    assert me.json()["name"] == "Ana"


async def test_duplicate_signup_conflicts(client):
    payload = {"name": "Ana", "email": "ana@example.com", "password": "secret123"}
    assert (await client.post("/buyers", json=payload)).status_code == 201
    assert (await client.post("/buyers", json=payload)).status_code == 409


async def test_wrong_password_and_unknown_email_look_the_same(client, make_buyer):
    buyer = await make_buyer(password="secret123")
    wrong = await client.post("/sessions/buyer", json={"email": buyer.email, "password": "nope"})
    unknown = await client.post("/sessions/buyer", json={"email": "ghost@example.com", "password": "nope"})
    assert wrong.status_code == unknown.status_code == 401
    assert wrong.json() == unknown.json()


async def test_buyer_credentials_do_not_open_staff_sessions(client, make_buyer):
    buyer = await make_buyer(password="secret123")
    resp = await client.post("/sessions/staff", json={"email": buyer.email, "password": "secret123"})
    assert resp.status_code == 401


async def test_staff_login_returns_role(client, make_staff):
    staff = await make_staff(StaffRole.manager, password="secret123")
    resp = await client.post("/sessions/staff", json={"email": staff.email, "password": "secret123"})
    assert resp.status_code == 200
    assert resp.json()["principal"]["role"] == "manager"


async def test_login_is_rate_limited(client, fake_redis, make_buyer, monkeypatch):
    monkeypatch.setattr(settings, "LOGIN_RATE_LIMIT_ATTEMPTS", 2)
    buyer = await make_buyer()
    payload = {"email": buyer.email, "password": "wrong"}

    assert (await client.post("/sessions/buyer", json=payload)).status_code == 401
    assert (await client.post("/sessions/buyer", json=payload)).status_code == 401
    assert (await client.post("/sessions/buyer", json=payload)).status_code == 429
    assert set(fake_redis.ttls.values()) == {settings.LOGIN_RATE_LIMIT_WINDOW_SECONDS}


@pytest.mark.parametrize("headers", [
    {},
    {"Authorization": "Basic dXNlcjpwYXNz"},
    {"Authorization": "Bearer not-a-token"},
])
async def test_unauthenticated_requests_get_uniform_401(client, headers):
    resp = await client.get("/orders/mine", headers=headers)
    assert resp.status_code == 401
    assert resp.json() == {"detail": "Could not validate credentials"}


async def test_buyer_places_order_and_total_is_server_side(client, make_buyer, make_product, auth_header):
    buyer = await make_buyer()
    product = await make_product(price="10.00")

    resp = await client.post(
        "/orders",
        json={
            "delivery_address": "1 Main St",
            # Client-supplied prices are ignored
            "items": [{"product_id": product.id, "quantity": 2, "unit_price": "0.01"}],
            "total": "0.01",
        },
        headers=auth_header(buyer),
    )

    assert resp.status_code == 201
    body = resp.json()
    assert Decimal(body["total"]) == Decimal("20.00")
    assert body["status"] == "new"

    detail = await client.get(f"/orders/mine/{body['order_id']}", headers=auth_header(buyer))
    assert detail.status_code == 200
    item = detail.json()["items"][0]
    assert item["product_name"] == "Pizza"
    assert Decimal(item["unit_price"]) == Decimal("10.00")


async def test_staff_cannot_place_orders(client, make_staff, make_product, auth_header):
    staff = await make_staff(StaffRole.owner)
    product = await make_product()
    resp = await client.post(
        "/orders",
        json={"delivery_address": "x", "items": [{"product_id": product.id, "quantity": 1}]},
        headers=auth_header(staff),
    )
    assert resp.status_code == 403


async def test_empty_order_is_bad_request(client, make_buyer, auth_header):
    buyer = await make_buyer()
    resp = await client.post("/orders", json={"delivery_address": "1 Main St", "items": []},
                             headers=auth_header(buyer))
    assert resp.status_code == 400


@pytest.mark.parametrize("quantity", [True, 2.0, "2"])
async def test_non_integer_quantities_are_refused(client, make_buyer, make_product, auth_header, quantity):
    buyer = await make_buyer()
    product = await make_product()

    resp = await client.post(
        "/orders",
        json={"delivery_address": "1 Main St", "items": [{"product_id": product.id, "quantity": quantity}]},
        headers=auth_header(buyer),
    )

    assert resp.status_code == 422
    assert (await client.get("/orders/mine", headers=auth_header(buyer))).json() == []


async def test_other_buyers_orders_are_not_found(client, make_buyer, make_order, auth_header):
    owner = await make_buyer()
    snooper = await make_buyer()
    order = await make_order(owner.id)

    resp = await client.get(f"/orders/mine/{order.id}", headers=auth_header(snooper))
    assert resp.status_code == 404
    assert (await client.get("/orders/mine", headers=auth_header(snooper))).json() == []


async def test_idempotency_key_replays_first_response(client, session_factory, make_buyer, make_product, auth_header):
    buyer = await make_buyer()
    product = await make_product(price="3.00")
    headers = {**auth_header(buyer), "Idempotency-Key": "order-attempt-1"}
    payload = {"delivery_address": "1 Main St", "items": [{"product_id": product.id, "quantity": 1}]}

    first = await client.post("/orders", json=payload, headers=headers)
    second = await client.post("/orders", json=payload, headers=headers)

    assert first.status_code == second.status_code == 201
    assert first.json() == second.json()
    assert second.headers.get("Idempotent-Replayed") == "true"
    orders = (await client.get("/orders/mine", headers=auth_header(buyer))).json()
    assert len(orders) == 1


async def test_expired_token_cannot_replay_a_cached_order(client, make_buyer, make_product, auth_header):
    buyer = await make_buyer()
    product = await make_product()
    payload = {"delivery_address": "1 Main St", "items": [{"product_id": product.id, "quantity": 1}]}

    first = await client.post("/orders", json=payload, headers={**auth_header(buyer), "Idempotency-Key": "k1"})
    assert first.status_code == 201

    expired = security.create_access_token(buyer, expires_delta=timedelta(seconds=-10))
    replay = await client.post(
        "/orders", json=payload, headers={"Authorization": f"Bearer {expired}", "Idempotency-Key": "k1"},
    )

    assert replay.status_code == 401
    assert replay.json() == {"detail": "Could not validate credentials"}
    assert "Idempotent-Replayed" not in replay.headers


async def test_idempotency_keys_are_scoped_per_buyer(client, make_buyer, make_product, auth_header):
    first_buyer = await make_buyer()
    second_buyer = await make_buyer()
    product = await make_product()
    payload = {"delivery_address": "1 Main St", "items": [{"product_id": product.id, "quantity": 1}]}

    a = await client.post("/orders", json=payload, headers={**auth_header(first_buyer), "Idempotency-Key": "same"})
    b = await client.post("/orders", json=payload, headers={**auth_header(second_buyer), "Idempotency-Key": "same"})

    assert a.status_code == b.status_code == 201
    assert a.json()["order_id"] != b.json()["order_id"]


async def test_failed_submission_is_not_cached(client, make_buyer, make_product, auth_header):
    buyer = await make_buyer()
    headers = {**auth_header(buyer), "Idempotency-Key": "retry-me"}

    missing = await client.post(
        "/orders", json={"delivery_address": "1 Main St", "items": [{"product_id": 999, "quantity": 1}]},
        headers=headers,
    )
    assert missing.status_code == 404

    product = await make_product()
    retry = await client.post(
        "/orders", json={"delivery_address": "1 Main St", "items": [{"product_id": product.id, "quantity": 1}]},
        headers=headers,
    )
    assert retry.status_code == 201


async def test_employee_moves_order_through_lifecycle(client, make_buyer, make_staff, make_order, auth_header):
    buyer = await make_buyer()
    employee = await make_staff(StaffRole.employee)
    order = await make_order(buyer.id)
    headers = auth_header(employee)

    for status in ["accepted", "preparing", "out_for_delivery"]:
        resp = await client.put(f"/orders/{order.id}/status", json={"status": status}, headers=headers)
        assert resp.status_code == 200
        assert resp.json() == {"order_id": order.id, "status": status}

    cancel = await client.put(f"/orders/{order.id}/status", json={"status": "canceled"}, headers=headers)
    assert cancel.status_code == 409

    done = await client.put(f"/orders/{order.id}/status", json={"status": "delivered"}, headers=headers)
    assert done.status_code == 200


async def test_forward_skip_is_conflict_and_bad_status_is_400(client, make_buyer, make_staff, make_order, auth_header):
    buyer = await make_buyer()
    employee = await make_staff(StaffRole.employee)
    order = await make_order(buyer.id)
    headers = auth_header(employee)

    skip = await client.put(f"/orders/{order.id}/status", json={"status": "delivered"}, headers=headers)
    assert skip.status_code == 409
    bogus = await client.put(f"/orders/{order.id}/status", json={"status": "lost"}, headers=headers)
    assert bogus.status_code == 400


async def test_buyer_cannot_change_status(client, make_buyer, make_order, auth_header):
    buyer = await make_buyer()
    order = await make_order(buyer.id)
    resp = await client.put(f"/orders/{order.id}/status", json={"status": "accepted"}, headers=auth_header(buyer))
    assert resp.status_code == 403


async def test_staff_order_listing_and_deletion(client, make_buyer, make_staff, make_order, auth_header):
    buyer = await make_buyer(name="Ana")
    employee = await make_staff(StaffRole.employee)
    manager = await make_staff(StaffRole.manager)
    order = await make_order(buyer.id)

    listing = await client.get("/orders", params={"status_filter": "new"}, headers=auth_header(employee))
    assert listing.status_code == 200
    assert listing.json()[0]["buyer_name"] == "Ana"
    assert (await client.get("/orders", params={"status_filter": "nope"},
                             headers=auth_header(employee))).status_code == 400

    assert (await client.delete(f"/orders/{order.id}", headers=auth_header(employee))).status_code == 403
    assert (await client.delete(f"/orders/{order.id}", headers=auth_header(manager))).status_code == 200
    assert (await client.delete(f"/orders/{order.id}", headers=auth_header(manager))).status_code == 404


async def test_manager_cannot_create_owner_over_http(client, make_staff, auth_header):
    manager = await make_staff(StaffRole.manager)
    resp = await client.post(
        "/staff",
        json={"name": "Boss", "email": "boss@example.com", "password": "secret123", "role": "owner"},
        headers=auth_header(manager),
    )
    assert resp.status_code == 403


async def test_staff_management_flow(client, make_staff, auth_header):
    owner = await make_staff(StaffRole.owner)
    headers = auth_header(owner)

    created = await client.post(
        "/staff",
        json={"name": "Clerk", "email": "clerk@example.com", "password": "secret123"},
        headers=headers,
    )
    assert created.status_code == 201
    assert created.json()["role"] == "employee"
    clerk_id = created.json()["id"]

    listing = await client.get("/staff", headers=headers)
    assert {s["email"] for s in listing.json()} == {owner.email, "clerk@example.com"}

    me = await client.get("/staff/me", headers=headers)
    assert me.json()["id"] == owner.id

    assert (await client.delete(f"/staff/{owner.id}", headers=headers)).status_code == 403
    assert (await client.delete(f"/staff/{clerk_id}", headers=headers)).status_code == 200
    assert (await client.delete(f"/staff/{clerk_id}", headers=headers)).status_code == 404


async def test_manager_cannot_delete_staff(client, make_staff, auth_header):
    manager = await make_staff(StaffRole.manager)
    employee = await make_staff(StaffRole.employee)
    resp = await client.delete(f"/staff/{employee.id}", headers=auth_header(manager))
    assert resp.status_code == 403


async def test_employee_cannot_list_staff(client, make_staff, auth_header):
    employee = await make_staff(StaffRole.employee)
    assert (await client.get("/staff", headers=auth_header(employee))).status_code == 403
