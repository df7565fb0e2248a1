from typing import Optional

from fastapi import APIRouter, Depends, Header, Request

from ..deps import gateway_http_exception, get_dispatcher, get_order_service
from ..logging_config import get_logger
from ..psp.dispatcher import PSPDispatcher
from ..psp.errors import GatewayError
from ..services.order_service import OrderService

logger = get_logger(__name__)

router = APIRouter(tags=["Stripe Webhooks"])


@router.post("/stripe")
async def webhook_stripe(
    request: Request,
    dispatcher: PSPDispatcher = Depends(get_dispatcher),
    service: OrderService = Depends(get_order_service),
    stripe_signature: Optional[str] = Header(default=None, alias="Stripe-Signature"),
):
    payload = await request.body()

    try:
        event = dispatcher.stripe.verify_webhook_signature(payload, stripe_signature)
    except GatewayError as e:
        raise gateway_http_exception(e)

    order = service.apply_stripe_event(event)
    if order is None:
        return {"ok": True, "message": "No order updated", "type": event.type}

    logger.info("stripe_webhook_processed", event_id=event.event_id, type=event.type,
                order_id=order.id, payment_status=order.payment_status)
    return {"ok": True, "order_id": order.id, "payment_status": order.payment_status}

