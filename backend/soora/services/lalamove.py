# backend/soora/services/lalamove.py

import hashlib
import hmac
import json
import logging
import re
import time
import uuid
from typing import Any, Callable, Dict, List, Optional

import requests
from pydantic import ValidationError

from soora.core.config import Settings
from soora.models.delivery import (
    Contact,
    DeliveryOrder,
    DriverLocation,
    Location,
    Quotation,
    QuotationStop,
)
from soora.services.circuit_breaker import CircuitBreaker

logger = logging.getLogger(__name__)


class LalamoveError(Exception):
    """Base error for every failed call to the Lalamove API."""

    def __init__(self, message: str, status_code: Optional[int] = None, body: Any = None):
        super().__init__(message)
        self.status_code = status_code
        self.body = body


class LalamoveAPIError(LalamoveError):
    """Lalamove answered with a non-2xx status (or an unreadable 2xx body)."""


class LalamoveUnavailableError(LalamoveError):
    """Lalamove could not be reached (connection error, timeout)."""


class CircuitOpenError(LalamoveUnavailableError):
    """Calls are short-circuited after repeated failures."""


_SG_LOCAL_PHONE = re.compile(r"^[689]\d{7}$")


def normalize_sg_phone(phone: Optional[str]) -> str:
    """Return an E.164 number; bare 8-digit Singapore numbers get the +65 prefix."""
    if not phone:
        return ""
    digits = re.sub(r"[\s\-()]", "", phone)
    if _SG_LOCAL_PHONE.match(digits):
        return f"+65{digits}"
    if digits.startswith("65") and len(digits) == 10:
        return f"+{digits}"
    return digits


def _data(body: Any) -> Dict[str, Any]:
    """Lalamove v3 wraps payloads in a top-level ``data`` object."""
    if isinstance(body, dict):
        inner = body.get("data")
        return inner if isinstance(inner, dict) else body
    return {}


def _as_dict(value: Any) -> Dict[str, Any]:
    return value if isinstance(value, dict) else {}


def _text(value: Any) -> Optional[str]:
    if value is None or isinstance(value, (dict, list)):
        return None
    text = str(value).strip()
    return text or None


def _to_float(value: Any) -> Optional[float]:
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


class LalamoveClient:
    """Signed HTTP client for the Lalamove v3 REST API.

    The client never retries; fallback policy belongs to the callers
    (fee resolution and dispatch).
    """

    API_VERSION = "/v3"

    def __init__(self, api_key: str, api_secret: str, base_url: str, market: str = "SG",
                 service_type: str = "MOTORCYCLE", language: str = "en_SG",
                 timeout: float = 10.0, breaker: Optional[CircuitBreaker] = None,
                 session: Optional[requests.Session] = None,
                 clock: Callable[[], float] = time.time):
        self.api_key = api_key
        self.api_secret = api_secret
        self.base_url = base_url.rstrip("/")
        self.market = market
        self.service_type = service_type
        self.language = language
        self.timeout = timeout
        self.breaker = breaker
        self.session = session or requests.Session()
        self._clock = clock

    @classmethod
    def from_settings(cls, settings: Settings) -> "LalamoveClient":
        breaker = CircuitBreaker(
            failure_threshold=settings.lalamove_breaker_threshold,
            cooldown_seconds=settings.lalamove_breaker_cooldown_seconds,
            name="lalamove",
        )
        return cls(
            api_key=settings.lalamove_api_key,
            api_secret=settings.lalamove_api_secret,
            base_url=settings.lalamove_base_url,
            market=settings.lalamove_market,
            service_type=settings.lalamove_service_type,
            language=settings.lalamove_language,
            timeout=settings.lalamove_timeout_seconds,
            breaker=breaker,
        )

    # --- Signing ---
    def sign(self, timestamp: str, method: str, path: str, body: str = "") -> str:
        raw = f"{timestamp}\r\n{method.upper()}\r\n{path}\r\n\r\n{body}"
        return hmac.new(self.api_secret.encode(), raw.encode(), hashlib.sha256).hexdigest()

    def _headers(self, method: str, path: str, body: str) -> Dict[str, str]:
        timestamp = str(int(self._clock() * 1000))
        signature = self.sign(timestamp, method, path, body)
        return {
            "Authorization": f"hmac {self.api_key}:{timestamp}:{signature}",
            "Market": self.market,
            "Request-ID": str(uuid.uuid4()),
            "Content-Type": "application/json",
            "Accept": "application/json",
        }

    def _request(self, method: str, resource: str, payload: Optional[Dict[str, Any]] = None) -> Any:
        method = method.upper()
        path = f"{self.API_VERSION}{resource}"
        # The signed string must match the bytes on the wire exactly
        body = json.dumps(payload, separators=(",", ":")) if payload is not None else ""

        headers = self._headers(method, path, body)

        if self.breaker is not None and not self.breaker.allow_request():
            raise CircuitOpenError(f"Lalamove circuit open, skipping {method} {path}")

        try:
            response = self.session.request(
                method,
                f"{self.base_url}{path}",
                data=body.encode() if body else None,
                headers=headers,
                timeout=self.timeout,
            )
        except requests.RequestException as exc:
            self._record(False)
            logger.error("Lalamove %s %s failed: %s", method, path, exc)
            raise LalamoveUnavailableError(f"Lalamove unreachable: {exc}") from exc
        except Exception:
            # A half-open trial stays pending until a result is recorded
            self._record(False)
            raise

        status = response.status_code
        if status >= 300:
            # 4xx means the service is up; only 5xx counts against the breaker
            self._record(status < 500)
            error_body = self._parse_body(response)
            logger.error("Lalamove %s %s returned %s: %s", method, path, status, error_body)
            raise LalamoveAPIError(
                f"Lalamove {method} {path} failed with status {status}",
                status_code=status,
                body=error_body,
            )

        self._record(True)
        if not response.content:
            return {}
        try:
            return response.json()
        except ValueError as exc:
            raise LalamoveAPIError(
                f"Lalamove {method} {path} returned invalid JSON",
                status_code=status,
                body=response.text,
            ) from exc

    def _record(self, success: bool) -> None:
        if self.breaker is None:
            return
        if success:
            self.breaker.record_success()
        else:
            self.breaker.record_failure()

    @staticmethod
    def _parse_body(response: requests.Response) -> Any:
        try:
            return response.json()
        except ValueError:
            return response.text

    # --- Endpoints ---
    def get_quotation(self, stops: List[Location], is_route_optimized: bool = True) -> Quotation:
        """POST /v3/quotations for an ordered pickup -> dropoff route."""
        payload: Dict[str, Any] = {
            "serviceType": self.service_type,
            "language": self.language,
            "stops": [
                {
                    "coordinates": {"lat": str(stop.lat), "lng": str(stop.lng)},
                    "address": stop.address,
                }
                for stop in stops
            ],
        }
        if is_route_optimized:
            payload["isRouteOptimized"] = True

        data = _data(self._request("POST", "/quotations", {"data": payload}))
        try:
            return self._quotation(data)
        except (ValidationError, TypeError, ValueError) as exc:
            raise LalamoveAPIError(f"Unreadable quotation response: {exc}", body=data) from exc

    def create_order(self, quotation_id: str, sender: Contact, recipients: List[Contact],
                     metadata: Optional[Dict[str, Any]] = None) -> DeliveryOrder:
        """POST /v3/orders against a previously obtained quotation."""
        payload: Dict[str, Any] = {
            "quotationId": quotation_id,
            "sender": {
                "stopId": sender.stop_id,
                "name": sender.name,
                "phone": normalize_sg_phone(sender.phone),
            },
            "recipients": [
                {
                    "stopId": recipient.stop_id,
                    "name": recipient.name,
                    "phone": normalize_sg_phone(recipient.phone),
                    "remarks": recipient.remarks or "",
                }
                for recipient in recipients
            ],
        }
        if metadata:
            payload["metadata"] = {key: str(value) for key, value in metadata.items()}

        data = _data(self._request("POST", "/orders", {"data": payload}))
        return self._delivery_order(data)

    def get_order_status(self, provider_id: str) -> DeliveryOrder:
        data = _data(self._request("GET", f"/orders/{provider_id}"))
        return self._delivery_order(data, fallback_id=provider_id)

    def cancel_order(self, provider_id: str) -> bool:
        self._request("PUT", f"/orders/{provider_id}/cancel")
        return True

    def get_driver_location(self, provider_id: str) -> Optional[DriverLocation]:
        data = _data(self._request("GET", f"/orders/{provider_id}/drivers"))
        location = _as_dict(data.get("location"))
        lat, lng = _to_float(location.get("lat")), _to_float(location.get("lng"))
        if lat is None or lng is None:
            return None
        return DriverLocation(lat=lat, lng=lng, updated_at=_text(data.get("updatedAt")))

    @staticmethod
    def _quotation(data: Dict[str, Any]) -> Quotation:
        price = _as_dict(data.get("priceBreakdown"))
        stops = data.get("stops")
        quote_stops = []
        for stop in stops if isinstance(stops, list) else []:
            stop = _as_dict(stop)
            coordinates = _as_dict(stop.get("coordinates"))
            quote_stops.append(QuotationStop(
                stop_id=_text(stop.get("stopId")),
                lat=_to_float(coordinates.get("lat")),
                lng=_to_float(coordinates.get("lng")),
                address=_text(stop.get("address")),
            ))
        return Quotation(
            quotation_id=_text(data.get("quotationId")),
            total=_text(price.get("total")),
            currency=_text(price.get("currency")),
            estimated_time=_text(data.get("estimatedTimeTaken")),
            stops=quote_stops,
            raw=data,
        )

    @staticmethod
    def _delivery_order(data: Dict[str, Any], fallback_id: Optional[str] = None) -> DeliveryOrder:
        order_id = _text(data.get("orderId")) or fallback_id
        if not order_id:
            raise LalamoveAPIError("Lalamove order response carried no orderId", body=data)
        return DeliveryOrder(
            order_id=order_id,
            status=_text(data.get("status")),
            share_link=_text(data.get("shareLink")),
            driver_id=_text(data.get("driverId")),
            raw=data,
        )
