# backend/tests/test_api.py

import pytest
from fastapi import HTTPException

from conftest import ADMIN, OTHER_CUSTOMER
from soora.core.security import create_access_token, decode_access_token, pwd_context
from soora.dependencies import get_current_user, get_user_repository
from soora.main import app
from soora.models.delivery import DeliveryOrder, DriverLocation
from soora.models.order import OrderStatus, PaymentStatus

API = "/api/v1"
PAYMENTS_HEADERS = {"X-Payments-Secret": "payments-secret"}


def test_health(client):
    assert client.get("/health").json() == {"status": "ok"}


# --- Webhook ---
@pytest.mark.parametrize("body", [b"not json", b"[1, 2, 3]", b"{}", b'{"data": {"orderId": "LLM-UNKNOWN"}}'])
def test_webhook_always_acknowledges(client, body):
    response = client.post(f"{API}/delivery/webhook", content=body,
                           headers={"Content-Type": "application/json"})
    assert response.status_code == 200
    assert response.json() == {"received": True}


def test_webhook_updates_the_matching_order(client, order_repo):
    order = order_repo.add_order(status=OrderStatus.PROCESSING, lalamove_order_id="LLM-1001")
    payload = {"eventType": "ORDER_PICKED_UP", "data": {"order": {"orderId": "LLM-1001"}}}

    response = client.post(f"{API}/delivery/webhook", json=payload)

    assert response.status_code == 200
    assert order_repo.get_order(order.id).status is OrderStatus.OUT_FOR_DELIVERY


# --- Quotes ---
def test_quote_for_saved_address(client):
    response = client.post(f"{API}/delivery/quote", json={"address_id": 1})
    assert response.status_code == 200
    assert response.json()["fee"] == 8.5
    assert response.json()["is_fallback"] is False


def test_quote_for_ad_hoc_address(client, geocoder):
    response = client.post(f"{API}/delivery/quote", json={"street": "10 Bayfront Ave", "postal_code": "018956"})
    assert response.status_code == 200
    assert geocoder.calls == [("10 Bayfront Ave", "018956")]


def test_quote_rejects_invalid_postal_code(client):
    response = client.post(f"{API}/delivery/quote", json={"street": "10 Bayfront Ave", "postal_code": "1234"})
    assert response.status_code == 400


def test_quote_needs_an_address(client):
    assert client.post(f"{API}/delivery/quote", json={}).status_code == 400


def test_quote_hides_other_users_addresses(client, api_user):
    api_user["user"] = OTHER_CUSTOMER
    assert client.post(f"{API}/delivery/quote", json={"address_id": 1}).status_code == 404


# --- Orders ---
def test_create_order(client, order_repo):
    order_repo.add_product(10, "Hibiki Harmony", price=120.0, stock=4)
    body = {"address_id": 1, "items": [{"product_id": 10, "quantity": 1}], "payment_method": "STRIPE"}

    response = client.post(f"{API}/orders", json=body)

    assert response.status_code == 201
    data = response.json()
    assert data["order"]["status"] == "PENDING"
    assert data["order"]["total"] == 128.5
    assert data["delivery_fee"]["fee"] == 8.5


def test_create_order_rejects_empty_cart(client):
    body = {"address_id": 1, "items": [], "payment_method": "STRIPE"}
    assert client.post(f"{API}/orders", json=body).status_code == 422


def test_cancel_order_endpoint(client, order_repo):
    order = order_repo.add_order(status=OrderStatus.PENDING)

    response = client.put(f"{API}/orders/{order.id}/cancel", json={"reason": "Ordered twice"})

    assert response.status_code == 200
    assert response.json()["status"] == "CANCELLED"
    assert response.json()["cancel_reason"] == "Ordered twice"


def test_cancel_without_body(client, order_repo):
    order = order_repo.add_order(status=OrderStatus.CONFIRMED)
    assert client.put(f"{API}/orders/{order.id}/cancel").json()["status"] == "CANCELLED"


def test_cancel_delivered_order_is_rejected(client, order_repo):
    order = order_repo.add_order(status=OrderStatus.DELIVERED)
    assert client.put(f"{API}/orders/{order.id}/cancel").status_code == 400


def test_other_users_order_is_forbidden(client, order_repo):
    order = order_repo.add_order(user_id=OTHER_CUSTOMER.id)
    assert client.get(f"{API}/orders/{order.id}").status_code == 403
    assert client.get(f"{API}/orders/999").status_code == 404


def test_my_orders(client, order_repo):
    order_repo.add_order()
    order_repo.add_order(user_id=OTHER_CUSTOMER.id)
    assert len(client.get(f"{API}/orders/my-orders").json()) == 1


# --- Admin ---
@pytest.mark.parametrize("method, path, body", [
    ("get", "/admin/orders", None),
    ("put", "/admin/orders/1/status", {"status": "DELIVERED"}),
    ("post", "/delivery/dispatch", {"order_id": 1}),
])
def test_admin_routes_reject_customers(client, order_repo, method, path, body):
    order_repo.add_order()
    response = client.request(method.upper(), f"{API}{path}", json=body)
    assert response.status_code == 403


def test_admin_dispatch_and_redispatch(client, order_repo, api_user):
    api_user["user"] = ADMIN
    order = order_repo.add_order()

    first = client.post(f"{API}/delivery/dispatch", json={"order_id": order.id})
    second = client.post(f"{API}/delivery/dispatch", json={"order_id": order.id})

    assert first.status_code == 200
    assert first.json()["lalamove_order_id"] == "LLM-1001"
    assert second.status_code == 409


def test_admin_lists_orders_by_status(client, order_repo, api_user):
    api_user["user"] = ADMIN
    order_repo.add_order(status=OrderStatus.PENDING)
    order_repo.add_order(status=OrderStatus.DELIVERED)

    response = client.get(f"{API}/admin/orders", params={"status": "PENDING"})

    assert [o["status"] for o in response.json()] == ["PENDING"]


def test_admin_status_update(client, order_repo, api_user):
    api_user["user"] = ADMIN
    order = order_repo.add_order(status=OrderStatus.OUT_FOR_DELIVERY)

    response = client.put(f"{API}/admin/orders/{order.id}/status", json={"status": "DELIVERED"})
    assert response.json()["status"] == "DELIVERED"

    backwards = client.put(f"{API}/admin/orders/{order.id}/status", json={"status": "PROCESSING"})
    assert backwards.status_code == 400


# --- Tracking ---
def test_track_refreshes_from_lalamove(client, order_repo, lalamove):
    order = order_repo.add_order(status=OrderStatus.PROCESSING, lalamove_order_id="LLM-1001",
                                 lalamove_driver_name="Ahmad")
    lalamove.status_response = DeliveryOrder(order_id="LLM-1001", status="PICKED_UP")

    data = client.get(f"{API}/delivery/track/{order.id}").json()

    assert data["status"] == "PICKED_UP"
    assert data["local_status"] == "OUT_FOR_DELIVERY"
    assert data["driver"]["name"] == "Ahmad"


def test_track_without_delivery(client, order_repo):
    order = order_repo.add_order()
    assert client.get(f"{API}/delivery/track/{order.id}").status_code == 400


def test_driver_location(client, order_repo, lalamove):
    order = order_repo.add_order(status=OrderStatus.OUT_FOR_DELIVERY, lalamove_order_id="LLM-1001")
    lalamove.driver_location = DriverLocation(lat=1.29, lng=103.85)

    data = client.get(f"{API}/delivery/driver/{order.id}").json()

    assert data == {"order_id": order.id, "location": {"lat": 1.29, "lng": 103.85, "updated_at": None}}


# --- Payments ---
def test_payment_confirmation_requires_the_shared_secret(client, order_repo):
    order = order_repo.add_order(status=OrderStatus.PENDING)
    body = {"order_id": order.id}

    assert client.post(f"{API}/payments/confirmation", json=body).status_code == 401
    assert client.post(f"{API}/payments/confirmation", json=body,
                       headers={"X-Payments-Secret": "wrong"}).status_code == 401
    assert order_repo.get_order(order.id).payment_status is PaymentStatus.PENDING


def test_payment_confirmation_dispatches(client, order_repo):
    order = order_repo.add_order(status=OrderStatus.PENDING)

    response = client.post(f"{API}/payments/confirmation", headers=PAYMENTS_HEADERS,
                           json={"order_id": order.id, "payment_reference": "pi_3Nabc"})

    assert response.status_code == 200
    assert response.json()["payment_status"] == "COMPLETED"
    assert response.json()["lalamove_order_id"] == "LLM-1001"


def test_payment_failure(client, order_repo):
    order = order_repo.add_order(status=OrderStatus.PENDING)
    response = client.post(f"{API}/payments/confirmation", headers=PAYMENTS_HEADERS,
                           json={"order_id": order.id, "succeeded": False})
    assert response.json()["payment_status"] == "FAILED"


# --- Auth ---
class StubUserRepository:
    def __init__(self, users):
        self.users = users

    def get_user_by_id(self, user_id):
        user = self.users.get(user_id)
        return dict(user) if user else None


def test_current_user_from_token():
    repo = StubUserRepository({1: {"id": 1, "email": "customer@example.com", "name": "Tan Wei Ming",
                                   "password_hash": "x", "is_active": True, "is_admin": False}})
    user = get_current_user(create_access_token({"sub": "1"}), repo)
    assert user.id == 1
    assert user.email == "customer@example.com"


@pytest.mark.parametrize("token", ["garbage", create_access_token({"sub": "2"}), create_access_token({})])
def test_invalid_tokens_are_rejected(token):
    repo = StubUserRepository({})
    with pytest.raises(HTTPException) as excinfo:
        get_current_user(token, repo)
    assert excinfo.value.status_code == 401


def test_login_issues_a_token_for_valid_credentials(client):

    user = {"id": 1, "email": "customer@example.com", "password_hash": pwd_context.hash("hunter22"),
            "is_active": True}
    repo = StubUserRepository({1: user})
    repo.get_user_by_email = lambda email: dict(user) if email == user["email"] else None
    app.dependency_overrides[get_user_repository] = lambda: repo

    ok = client.post(f"{API}/token", data={"username": "customer@example.com", "password": "hunter22"})
    bad = client.post(f"{API}/token", data={"username": "customer@example.com", "password": "wrong"})

    assert ok.status_code == 200
    assert decode_access_token(ok.json()["access_token"])["sub"] == "1"
    assert bad.status_code == 401
