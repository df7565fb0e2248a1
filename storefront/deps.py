from fastapi import Depends, HTTPException, Request, status
from sqlalchemy.orm import Session

from .config.settings import Settings
from .db import get_db
from .psp.dispatcher import PSPDispatcher
from .psp.errors import (
    DuplicateRequest,
    GatewayError,
    MissingCredentials,
    SignatureVerificationFailed,
    ValidationError,
)
from .services.inflight import InFlightRegistry
from .services.order_service import OrderService
from .services.reconciliation import PaymentVerifier
from .services.verification_client import LocalVerifier, VerificationClient


def get_app_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_dispatcher(request: Request) -> PSPDispatcher:
    return request.app.state.dispatcher


def get_registry(request: Request) -> InFlightRegistry:
    return request.app.state.inflight


def get_order_service(
    db: Session = Depends(get_db),
    dispatcher: PSPDispatcher = Depends(get_dispatcher),
    registry: InFlightRegistry = Depends(get_registry),
    settings: Settings = Depends(get_app_settings),
) -> OrderService:
    return OrderService(db, dispatcher, registry, settings)


def get_verifier(
    request: Request,
    service: OrderService = Depends(get_order_service),
    settings: Settings = Depends(get_app_settings),
) -> PaymentVerifier:
    """Remote order API when ORDER_API_BASE_URL is set, otherwise in-process."""
    override = getattr(request.app.state, "verifier", None)
    if override is not None:
        return override
    if settings.ORDER_API_BASE_URL:
        return VerificationClient(settings.ORDER_API_BASE_URL)
    return LocalVerifier(service)


def gateway_http_exception(e: GatewayError) -> HTTPException:
    """Translate a gateway failure into the HTTP error the storefront sees."""
    if isinstance(e, MissingCredentials):
        code = status.HTTP_503_SERVICE_UNAVAILABLE
    elif isinstance(e, DuplicateRequest):
        code = status.HTTP_409_CONFLICT
    elif isinstance(e, (ValidationError, SignatureVerificationFailed)):
        code = status.HTTP_400_BAD_REQUEST
    else:
        code = status.HTTP_502_BAD_GATEWAY
    return HTTPException(status_code=code, detail=e.to_dict())
