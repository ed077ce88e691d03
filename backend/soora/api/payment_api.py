# backend/soora/api/payment_api.py

import hmac
import logging
from typing import Optional

from fastapi import APIRouter, Depends, Header, HTTPException, status

from soora.api.errors import http_error
from soora.core.config import Settings, get_settings
from soora.dependencies import get_payment_service
from soora.models.delivery import PaymentConfirmation
from soora.models.order import Order
from soora.services.payment_service import PaymentService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/payments")

def verify_payments_secret(
    x_payments_secret: Optional[str] = Header(None),
    settings: Settings = Depends(get_settings),
) -> None:
    """Only the payments service, holding the shared secret, may report payment outcomes."""
    expected = settings.payments_shared_secret
    if not expected or not x_payments_secret or not hmac.compare_digest(x_payments_secret, expected):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid payments secret")

@router.post("/confirmation", response_model=Order, dependencies=[Depends(verify_payments_secret)])
def payment_confirmation(
    body: PaymentConfirmation,
    payment_service: PaymentService = Depends(get_payment_service),
):
    """Payment outcome callback. A successful payment triggers delivery dispatch.

    Dispatch failures are logged and never turn a confirmed payment into an error.
    """
    try:
        if body.succeeded:
            return payment_service.confirm_payment(body.order_id, body.payment_reference)
        return payment_service.mark_payment_failed(body.order_id)
    except Exception as e:
        raise http_error(e, "record payment")
