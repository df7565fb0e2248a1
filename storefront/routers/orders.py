"""
Order endpoints: checkout order creation and payment verification.
"""
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status

from ..deps import gateway_http_exception, get_order_service
from ..logging_config import get_logger
from ..psp.errors import GatewayError
from ..schemas.orders import CreateOrderIn, CreateOrderOut, OrderOut, VerificationResponse
from ..services.order_service import OrderConflict, OrderNotFound, OrderService

logger = get_logger(__name__)

# main.py mounts this with prefix="/orders"
router = APIRouter(tags=["Orders"])


@router.post("", response_model=CreateOrderOut, status_code=status.HTTP_201_CREATED)
async def create_order(body: CreateOrderIn, service: OrderService = Depends(get_order_service)):
    """
    Place an order. Cash-on-delivery orders are confirmed immediately; online
    orders get a payment handle from the selected gateway.
    """
    try:
        return await service.create_order(body)
    except GatewayError as e:
        raise gateway_http_exception(e)
    except OrderConflict as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e))


@router.get("/verify-payment/{identifier}", response_model=VerificationResponse)
async def verify_payment(
    identifier: str,
    order_id: Optional[str] = Query(default=None),
    service: OrderService = Depends(get_order_service),
):
    """Authoritative payment state for an order id or a gateway session id."""
    try:
        return await service.verify_payment(identifier, order_id)
    except OrderNotFound:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Order not found")
    except GatewayError as e:
        raise gateway_http_exception(e)


@router.get("/{order_id}", response_model=OrderOut)
def get_order(order_id: str, service: OrderService = Depends(get_order_service)):
    try:
        return service.get_order(order_id)
    except OrderNotFound:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Order not found")
