# backend/tests/fakes.py
"""In-memory stand-ins for the MySQL repositories and the HTTP collaborators."""

import json
from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional

import requests

from soora.core.exceptions import InsufficientStockError, ProductNotFoundError
from soora.models.delivery import DeliveryOrder, DriverLocation, GeocodeResult, Quotation, QuotationStop
from soora.models.order import Order, OrderItem, OrderStatus, PaymentMethod


class InMemoryOrderRepository:
    def __init__(self):
        self.orders: Dict[int, Order] = {}
        self.products: Dict[int, Dict[str, Any]] = {}
        self._next_id = 1

    def add_product(self, product_id: int, name: str, price: float, stock: int):
        self.products[product_id] = {"name": name, "price": price, "stock_quantity": stock, "sales_count": 0}

    def add_order(self, **overrides) -> Order:
        items = overrides.pop("items", [])
        order_id = overrides.pop("id", self._next_id)
        self._next_id = max(self._next_id, order_id) + 1
        fields = {
            "id": order_id,
            "order_number": f"SG-{order_id:08d}",
            "user_id": 1,
            "address_id": 1,
            "status": OrderStatus.CONFIRMED,
            "payment_method": PaymentMethod.STRIPE,
            "subtotal": 50.0,
            "delivery_fee": 5.0,
            "total": 55.0,
            "customer_name": "Tan Wei Ming",
            "customer_phone": "91234567",
            "created_at": datetime(2026, 10, 1, 12, 0),
        }
        fields.update(overrides)
        order = Order(**fields, items=[OrderItem(order_id=order_id, **item) for item in items])
        self.orders[order_id] = order
        return order.model_copy(deep=True)

    def _copy(self, order: Optional[Order]) -> Optional[Order]:
        return order.model_copy(deep=True) if order is not None else None

    def get_order(self, order_id: int) -> Optional[Order]:
        return self._copy(self.orders.get(order_id))

    def get_order_by_lalamove_id(self, lalamove_order_id: str) -> Optional[Order]:
        for order in self.orders.values():
            if order.lalamove_order_id == lalamove_order_id:
                return self._copy(order)
        return None

    def list_orders_for_user(self, user_id: int) -> List[Order]:
        return [self._copy(o) for o in self.orders.values() if o.user_id == user_id]

    def list_orders(self, status=None, limit: int = 20, offset: int = 0) -> List[Order]:
        orders = [o for o in self.orders.values() if status is None or o.status is status]
        return [self._copy(o) for o in orders[offset:offset + limit]]

    def create_order(self, order_fields: Dict[str, Any], items: List[Dict[str, Any]]) -> Order:
        line_items = []
        for item in items:
            product = self.products.get(item["product_id"])
            if product is None:
                raise ProductNotFoundError(f"Product {item['product_id']} not found")
            if product["stock_quantity"] < item["quantity"]:
                raise InsufficientStockError(f"Insufficient stock for {product['name']}")
            line_items.append({
                "product_id": item["product_id"],
                "product_name": product["name"],
                "price": product["price"],
                "quantity": item["quantity"],
                "subtotal": round(product["price"] * item["quantity"], 2),
            })
        for item in items:
            self.products[item["product_id"]]["stock_quantity"] -= item["quantity"]
            self.products[item["product_id"]]["sales_count"] += item["quantity"]
        subtotal = round(sum(line["subtotal"] for line in line_items), 2)
        fields = dict(order_fields)
        fields["subtotal"] = subtotal
        fields["total"] = round(subtotal + fields["delivery_fee"], 2)
        return self.add_order(items=line_items, **fields)

    def update_fields(self, order_id: int, fields: Dict[str, Any]) -> bool:
        order = self.orders.get(order_id)
        if order is None or not fields:
            return False
        self.orders[order_id] = order.model_copy(update=fields)
        return True

    def transition_status(self, order_id, from_status, to_status, fields=None) -> bool:
        order = self.orders.get(order_id)
        if order is None or order.status is not from_status:
            return False
        update = dict(fields or {})
        update["status"] = to_status
        self.orders[order_id] = order.model_copy(update=update)
        return True

    def record_dispatch(self, order_id, lalamove_order_id, lalamove_status, tracking_url) -> bool:
        order = self.orders.get(order_id)
        if order is None or order.lalamove_order_id:
            return False
        self.orders[order_id] = order.model_copy(update={
            "lalamove_order_id": lalamove_order_id,
            "lalamove_status": lalamove_status,
            "lalamove_tracking_url": tracking_url or order.lalamove_tracking_url,
        })
        return True

    def cancel_order(self, order_id: int, reason: str, allowed_statuses: Iterable[OrderStatus]) -> bool:
        order = self.orders.get(order_id)
        if order is None or order.status not in set(allowed_statuses):
            return False
        self.orders[order_id] = order.model_copy(update={"status": OrderStatus.CANCELLED, "cancel_reason": reason})
        for item in order.items:
            product = self.products.get(item.product_id)
            if product is not None:
                product["stock_quantity"] += item.quantity
                product["sales_count"] = max(product["sales_count"] - item.quantity, 0)
        return True


class InMemoryAddressRepository:
    def __init__(self):
        self.addresses = {}
        self.coordinate_writes = []

    def add(self, address):
        self.addresses[address.id] = address
        return address

    def get_address(self, address_id: int):
        address = self.addresses.get(address_id)
        return address.model_copy() if address is not None else None

    def update_coordinates(self, address_id: int, latitude: float, longitude: float) -> bool:
        self.coordinate_writes.append((address_id, latitude, longitude))
        address = self.addresses.get(address_id)
        if address is None:
            return False
        self.addresses[address_id] = address.model_copy(update={"latitude": latitude, "longitude": longitude})
        return True


class FakeGeocoder:
    def __init__(self, result: Optional[GeocodeResult] = None):
        self.result = result
        self.calls = []

    def resolve(self, street: str, postal_code: Optional[str] = None):
        self.calls.append((street, postal_code))
        return self.result


def make_quotation(total: Optional[str] = "8.50", currency: str = "SGD",
                   stop_ids=("stop-pickup", "stop-dropoff"), quotation_id: Optional[str] = "quote-1") -> Quotation:
    return Quotation(
        quotation_id=quotation_id,
        total=total,
        currency=currency,
        stops=[QuotationStop(stop_id=stop_id) for stop_id in stop_ids],
    )


class FakeLalamoveClient:
    """Records calls; each configured outcome is either a value or an exception to raise."""

    def __init__(self, quotations=None, delivery: Optional[DeliveryOrder] = None):
        self.quotations = list(quotations or [make_quotation()])
        self.delivery = delivery or DeliveryOrder(
            order_id="LLM-1001", status="ASSIGNING_DRIVER", share_link="https://share.lalamove.com/LLM-1001",
        )
        self.create_error: Optional[Exception] = None
        self.cancel_error: Optional[Exception] = None
        self.status_response: Optional[DeliveryOrder] = None
        self.driver_location: Optional[DriverLocation] = None
        self.quotation_calls = []
        self.created = []
        self.cancelled = []
        self.on_create = None

    def get_quotation(self, stops, is_route_optimized: bool = True):
        self.quotation_calls.append({"stops": stops, "is_route_optimized": is_route_optimized})
        outcome = self.quotations.pop(0) if len(self.quotations) > 1 else self.quotations[0]
        if isinstance(outcome, Exception):
            raise outcome
        return outcome

    def create_order(self, quotation_id, sender, recipients, metadata=None):
        self.created.append({"quotation_id": quotation_id, "sender": sender,
                             "recipients": recipients, "metadata": metadata})
        if self.on_create is not None:
            self.on_create()
        if self.create_error is not None:
            raise self.create_error
        return self.delivery

    def get_order_status(self, provider_id: str):
        return self.status_response

    def cancel_order(self, provider_id: str) -> bool:
        self.cancelled.append(provider_id)
        if self.cancel_error is not None:
            raise self.cancel_error
        return True

    def get_driver_location(self, provider_id: str):
        return self.driver_location


class FakeResponse:
    """Minimal requests.Response look-alike for session mocks."""

    def __init__(self, status_code: int = 200, json_body: Any = None, text: Optional[str] = None):
        self.status_code = status_code
        self._json = json_body
        if text is not None:
            self.text = text
        else:
            self.text = json.dumps(json_body) if json_body is not None else ""
        self.content = self.text.encode()

    def json(self):
        if self._json is None:
            raise ValueError("No JSON body")
        return self._json

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code} error")
