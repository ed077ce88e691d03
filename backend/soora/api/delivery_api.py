# backend/soora/api/delivery_api.py

import logging

from fastapi import APIRouter, Depends, HTTPException, Request, status
from fastapi.concurrency import run_in_threadpool

from soora.api.errors import http_error
from soora.dependencies import (
    get_address_repository,
    get_admin_user,
    get_current_user,
    get_dispatch_service,
    get_fee_service,
    get_order_service,
    get_tracking_service,
    get_webhook_reconciler,
)
from soora.models.address import Address
from soora.models.delivery import DispatchRequest, FeeQuote, QuoteRequest, TrackingInfo
from soora.models.order import Order
from soora.models.user import User
from soora.repositories.address_repository import AddressRepository
from soora.services.delivery_fee import DeliveryFeeService
from soora.services.dispatch import DispatchService
from soora.services.order_service import OrderService
from soora.services.tracking import DeliveryTrackingService
from soora.services.webhook import WebhookReconciler

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/delivery")

@router.post("/quote", response_model=FeeQuote)
def get_delivery_quote(
    body: QuoteRequest,
    current_user: User = Depends(get_current_user),
    address_repo: AddressRepository = Depends(get_address_repository),
    fee_service: DeliveryFeeService = Depends(get_fee_service),
):
    """Delivery fee for a saved address or an ad-hoc street + postal code.

    Always answers with a fee; ``is_fallback`` tells the client it is the flat rate.
    """
    try:
        if body.address_id is not None:
            address = address_repo.get_address(body.address_id)
            if address is None or address.user_id != current_user.id:
                raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Address not found")
        elif body.street is not None and body.postal_code is not None:
            address = Address(street=body.street, postal_code=body.postal_code)
        else:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST,
                                detail="Provide address_id or street and postal_code")
        return fee_service.resolve_fee(address)
    except HTTPException:
        raise
    except Exception as e:
        raise http_error(e, "get delivery quotation")

@router.post("/dispatch", response_model=Order)
def dispatch_order(
    body: DispatchRequest,
    admin_user: User = Depends(get_admin_user),
    dispatcher: DispatchService = Depends(get_dispatch_service),
):
    """Book (or re-try booking) the Lalamove delivery for an order - admin only"""
    try:
        return dispatcher.dispatch(body.order_id)
    except Exception as e:
        raise http_error(e, "dispatch order")

@router.get("/track/{order_id}", response_model=TrackingInfo)
def track_delivery(
    order_id: int,
    current_user: User = Depends(get_current_user),
    order_service: OrderService = Depends(get_order_service),
    tracking: DeliveryTrackingService = Depends(get_tracking_service),
):
    try:
        order = order_service.get_order_for_user(order_id, current_user)
        return tracking.track(order)
    except Exception as e:
        raise http_error(e, "track delivery")

@router.get("/driver/{order_id}")
def get_driver_location(
    order_id: int,
    current_user: User = Depends(get_current_user),
    order_service: OrderService = Depends(get_order_service),
    tracking: DeliveryTrackingService = Depends(get_tracking_service),
):
    try:
        order = order_service.get_order_for_user(order_id, current_user)
        if not order.lalamove_order_id:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Delivery not found")
        return {"order_id": order.id, "location": tracking.driver_location(order)}
    except HTTPException:
        raise
    except Exception as e:
        raise http_error(e, "get driver location")

@router.post("/webhook")
async def lalamove_webhook(
    request: Request,
    reconciler: WebhookReconciler = Depends(get_webhook_reconciler),
):
    """Lalamove status push. Always acknowledged with 200 so Lalamove does not retry-storm."""
    try:
        payload = await request.json()
    except ValueError:
        logger.warning("Lalamove webhook with unreadable body ignored")
        return {"received": True}

    if not isinstance(payload, dict):
        logger.warning("Lalamove webhook with non-object body ignored")
        return {"received": True}

    try:
        await run_in_threadpool(reconciler.handle_event, payload)
    except Exception:
        logger.exception("Lalamove webhook %s could not be applied", payload.get("eventType"))
    return {"received": True}
