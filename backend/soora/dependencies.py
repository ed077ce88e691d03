# backend/soora/dependencies.py

from functools import lru_cache

from fastapi import Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer
from jose import JWTError

from soora.core.config import Settings, get_settings
from soora.core.security import decode_access_token
from soora.models.user import User
from soora.repositories.address_repository import AddressRepository
from soora.repositories.order_repository import OrderRepository
from soora.repositories.user_repository import UserRepository
from soora.services.delivery_fee import DeliveryFeeService
from soora.services.dispatch import DispatchService
from soora.services.geocoder import Geocoder
from soora.services.lalamove import LalamoveClient
from soora.services.locations import LocationService
from soora.services.order_service import OrderService
from soora.services.payment_service import PaymentService
from soora.services.tracking import DeliveryTrackingService
from soora.services.webhook import WebhookReconciler

# OAuth2PasswordBearer will be used to extract the token from the Authorization header
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="api/v1/token")


# --- Process-wide collaborators, built once and injected everywhere ---
@lru_cache()
def get_lalamove_client() -> LalamoveClient:
    return LalamoveClient.from_settings(get_settings())

@lru_cache()
def get_geocoder() -> Geocoder:
    return Geocoder.from_settings(get_settings())

def get_order_repository() -> OrderRepository:
    return OrderRepository()

def get_address_repository() -> AddressRepository:
    return AddressRepository()

def get_user_repository() -> UserRepository:
    return UserRepository()


# --- Services ---
def get_location_service(
    geocoder: Geocoder = Depends(get_geocoder),
    settings: Settings = Depends(get_settings),
    address_repo: AddressRepository = Depends(get_address_repository),
) -> LocationService:
    return LocationService(geocoder, settings, address_repo)

def get_fee_service(
    client: LalamoveClient = Depends(get_lalamove_client),
    locations: LocationService = Depends(get_location_service),
    settings: Settings = Depends(get_settings),
) -> DeliveryFeeService:
    return DeliveryFeeService(client, locations, settings)

def get_dispatch_service(
    client: LalamoveClient = Depends(get_lalamove_client),
    locations: LocationService = Depends(get_location_service),
    order_repo: OrderRepository = Depends(get_order_repository),
    address_repo: AddressRepository = Depends(get_address_repository),
    settings: Settings = Depends(get_settings),
) -> DispatchService:
    return DispatchService(client, locations, order_repo, address_repo, settings)

def get_webhook_reconciler(order_repo: OrderRepository = Depends(get_order_repository)) -> WebhookReconciler:
    return WebhookReconciler(order_repo)

def get_tracking_service(
    client: LalamoveClient = Depends(get_lalamove_client),
    reconciler: WebhookReconciler = Depends(get_webhook_reconciler),
) -> DeliveryTrackingService:
    return DeliveryTrackingService(client, reconciler)

def get_order_service(
    order_repo: OrderRepository = Depends(get_order_repository),
    address_repo: AddressRepository = Depends(get_address_repository),
    fee_service: DeliveryFeeService = Depends(get_fee_service),
    client: LalamoveClient = Depends(get_lalamove_client),
) -> OrderService:
    return OrderService(order_repo, address_repo, fee_service, client)

def get_payment_service(
    order_repo: OrderRepository = Depends(get_order_repository),
    dispatcher: DispatchService = Depends(get_dispatch_service),
) -> PaymentService:
    return PaymentService(order_repo, dispatcher)


# --- Auth ---
def get_current_user(
    token: str = Depends(oauth2_scheme),
    user_repo: UserRepository = Depends(get_user_repository),
) -> User:
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )
    try:
        payload = decode_access_token(token)
        user_id = int(payload.get("sub"))
    except (JWTError, TypeError, ValueError):
        raise credentials_exception

    user_data = user_repo.get_user_by_id(user_id)
    if user_data is None or not user_data.get("is_active", True):
        raise credentials_exception

    # Exclude password_hash before returning the User model
    user_data.pop("password_hash", None)
    return User(**user_data)

def get_admin_user(current_user: User = Depends(get_current_user)) -> User:
    """Dependency to ensure only admin users can access admin endpoints"""
    if not current_user.is_admin:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Admin access required"
        )
    return current_user
