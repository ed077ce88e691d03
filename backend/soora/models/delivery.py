# backend/soora/models/delivery.py

from enum import Enum
from pydantic import BaseModel, Field
from typing import Optional, List, Dict, Any


class LalamoveStatus(str, Enum):
    """Delivery states as reported by Lalamove (order status values and event signals)."""
    ASSIGNING_DRIVER = "ASSIGNING_DRIVER"
    DRIVER_ASSIGNED = "DRIVER_ASSIGNED"
    ON_GOING = "ON_GOING"
    PICKED_UP = "PICKED_UP"
    COMPLETED = "COMPLETED"
    CANCELED = "CANCELED"
    REJECTED = "REJECTED"
    EXPIRED = "EXPIRED"

    @classmethod
    def parse(cls, value: Optional[str]) -> Optional["LalamoveStatus"]:
        if not value:
            return None
        try:
            return cls(value.strip().upper())
        except ValueError:
            return None


class GeocodeResult(BaseModel):
    lat: float
    lng: float
    display_name: str


class Location(BaseModel):
    lat: float
    lng: float
    address: str


# --- Lalamove wire objects ---
class QuotationStop(BaseModel):
    stop_id: Optional[str] = None
    lat: Optional[float] = None
    lng: Optional[float] = None
    address: Optional[str] = None


class Quotation(BaseModel):
    quotation_id: Optional[str] = None
    total: Optional[str] = None # Lalamove sends amounts as decimal strings
    currency: Optional[str] = None
    estimated_time: Optional[str] = None
    stops: List[QuotationStop] = []
    raw: Dict[str, Any] = {}


class Contact(BaseModel):
    stop_id: str
    name: str
    phone: str
    remarks: Optional[str] = None


class Driver(BaseModel):
    driver_id: Optional[str] = None
    name: Optional[str] = None
    phone: Optional[str] = None
    plate_number: Optional[str] = None


class DeliveryOrder(BaseModel):
    order_id: str
    status: Optional[str] = None
    share_link: Optional[str] = None
    driver_id: Optional[str] = None
    raw: Dict[str, Any] = {}


class DriverLocation(BaseModel):
    lat: float
    lng: float
    updated_at: Optional[str] = None


# --- API request / response bodies ---
class QuoteRequest(BaseModel):
    address_id: Optional[int] = None
    street: Optional[str] = None
    postal_code: Optional[str] = None


class FeeQuote(BaseModel):
    fee: float
    currency: str = "SGD"
    estimated_time: Optional[str] = None
    is_fallback: bool = False
    warning: Optional[str] = None


class DispatchRequest(BaseModel):
    order_id: int


class TrackingInfo(BaseModel):
    order_id: int
    lalamove_order_id: str
    status: Optional[str] = None
    local_status: str
    share_link: Optional[str] = None
    driver: Optional[Driver] = None


class PaymentConfirmation(BaseModel):
    order_id: int
    succeeded: bool = True
    payment_reference: Optional[str] = Field(default=None, description="Payment intent / session id from the payments provider")
