# backend/tests/conftest.py

import pytest
from fastapi.testclient import TestClient

from fakes import FakeGeocoder, FakeLalamoveClient, InMemoryAddressRepository, InMemoryOrderRepository
from soora import dependencies
from soora.core.config import Settings, get_settings
from soora.main import app
from soora.models.address import Address
from soora.models.user import User
from soora.services.delivery_fee import DeliveryFeeService
from soora.services.dispatch import DispatchService
from soora.services.locations import LocationService
from soora.services.order_service import OrderService
from soora.services.payment_service import PaymentService
from soora.services.webhook import WebhookReconciler

CUSTOMER = User(id=1, email="customer@example.com", name="Tan Wei Ming", phone="91234567")
OTHER_CUSTOMER = User(id=2, email="other@example.com", name="Lim Jia Hui", phone="98765432")
ADMIN = User(id=99, email="admin@example.com", name="Admin", is_admin=True)


@pytest.fixture
def settings():
    return Settings(
        lalamove_api_key="pk_test_key",
        lalamove_api_secret="sk_test_secret",
        store_lat=1.3521,
        store_lng=103.8198,
        delivery_fee=5.0,
        payments_shared_secret="payments-secret",
    )


@pytest.fixture
def order_repo():
    return InMemoryOrderRepository()


@pytest.fixture
def address_repo():
    repo = InMemoryAddressRepository()
    repo.add(Address(id=1, user_id=CUSTOMER.id, street="1 Raffles Place", postal_code="048616"))
    return repo


@pytest.fixture
def geocoder():
    return FakeGeocoder()


@pytest.fixture
def lalamove():
    return FakeLalamoveClient()


@pytest.fixture
def locations(geocoder, settings, address_repo):
    return LocationService(geocoder, settings, address_repo)


@pytest.fixture
def fee_service(lalamove, locations, settings):
    return DeliveryFeeService(lalamove, locations, settings)


@pytest.fixture
def dispatcher(lalamove, locations, order_repo, address_repo, settings):
    return DispatchService(lalamove, locations, order_repo, address_repo, settings)


@pytest.fixture
def reconciler(order_repo):
    return WebhookReconciler(order_repo)


@pytest.fixture
def order_service(order_repo, address_repo, fee_service, lalamove):
    return OrderService(order_repo, address_repo, fee_service, lalamove)


@pytest.fixture
def payment_service(order_repo, dispatcher):
    return PaymentService(order_repo, dispatcher)


@pytest.fixture
def api_user():
    """The user the API client is authenticated as; tests may swap it."""
    return {"user": CUSTOMER}


@pytest.fixture
def client(settings, order_repo, address_repo, geocoder, lalamove, api_user):
    overrides = {
        get_settings: lambda: settings,
        dependencies.get_lalamove_client: lambda: lalamove,
        dependencies.get_geocoder: lambda: geocoder,
        dependencies.get_order_repository: lambda: order_repo,
        dependencies.get_address_repository: lambda: address_repo,
        dependencies.get_current_user: lambda: api_user["user"],
    }
    app.dependency_overrides.update(overrides)
    try:
        with TestClient(app) as test_client:
            yield test_client
    finally:
        app.dependency_overrides.clear()
