"""
Order creation and payment verification.

The verification half backs GET /orders/verify-payment/{identifier}: it is
the only place where an order's payment status becomes authoritative.
"""
import secrets
import time
from typing import Optional

from sqlalchemy import or_
from sqlalchemy.orm import Session

from ..config.settings import Settings
from ..enums import OrderStatus, PaymentMethod, PaymentStatus
from ..logging_config import get_logger
from ..models import Order
from ..psp.adapter import PSPProvider
from ..psp.dispatcher import PSPDispatcher
from ..psp.errors import GatewayError, StatusFetchFailed
from ..psp.types import CustomerDetails, PaymentHandle, PaymentRequest, WebhookEvent
from ..schemas.orders import CreateOrderIn, CreateOrderOut, VerificationResponse
from .inflight import InFlightRegistry

logger = get_logger(__name__)


class OrderNotFound(Exception):
    pass


class OrderConflict(Exception):
    pass


# Stripe webhook event type -> payment status
STRIPE_EVENT_STATUS = {
    "checkout.session.completed": PaymentStatus.SUCCESS,
    "checkout.session.async_payment_succeeded": PaymentStatus.SUCCESS,
    "payment_intent.succeeded": PaymentStatus.SUCCESS,
    "payment_intent.processing": PaymentStatus.PROCESSING,
    "checkout.session.async_payment_failed": PaymentStatus.FAILED,
    "payment_intent.payment_failed": PaymentStatus.FAILED,
    "checkout.session.expired": PaymentStatus.CANCELLED,
    "payment_intent.canceled": PaymentStatus.CANCELLED,
}


def generate_order_id() -> str:
    return f"ORD{int(time.time())}{secrets.token_hex(3).upper()}"


def awaits_gateway(status: PaymentStatus) -> bool:
    """Statuses the gateway can still move; a failed attempt can be retried on the same intent."""
    return not status.is_final or status == PaymentStatus.FAILED


def verification_success(order: Order) -> bool:
    """False only when the order is known to be unpaid for good or cancelled."""
    if order.order_status == OrderStatus.CANCELLED.value:
        return False
    if order.payment_method == PaymentMethod.COD.value:
        return True
    return order.payment_status not in (PaymentStatus.FAILED.value, PaymentStatus.CANCELLED.value)


class OrderService:
    def __init__(
        self,
        db: Session,
        dispatcher: PSPDispatcher,
        registry: InFlightRegistry,
        settings: Settings,
    ):
        self.db = db
        self.dispatcher = dispatcher
        self.registry = registry
        self.settings = settings

    # -------------------------------------------
    # Lookup
    # -------------------------------------------
    def get_order(self, order_id: str) -> Order:
        order = self.db.get(Order, order_id)
        if not order:
            raise OrderNotFound(order_id)
        return order

    def find_order(self, identifier: str, order_id: Optional[str] = None) -> Order:
        """
        Resolve an order from a verification identifier.

        ``identifier`` may be the order id or a gateway session/intent id. When
        ``order_id`` is also given, the identifier must belong to that order.
        """
        if order_id:
            order = self.db.get(Order, order_id)
            if order and identifier in (order.id, order.gateway_reference, order.gateway_intent_id):
                return order
            raise OrderNotFound(order_id)

        order = self.db.get(Order, identifier)
        if order:
            return order
        order = (
            self.db.query(Order)
            .filter(or_(Order.gateway_reference == identifier, Order.gateway_intent_id == identifier))
            .first()
        )
        if not order:
            raise OrderNotFound(identifier)
        return order

    # -------------------------------------------
    # Creation
    # -------------------------------------------
    async def create_order(self, body: CreateOrderIn) -> CreateOrderOut:
        order_id = body.order_id or generate_order_id()

        async with self.registry.claim(order_id):
            order = self.db.get(Order, order_id)
            if order:
                requested_gateway = body.gateway.value if body.gateway else None
                if (order.amount != body.amount or order.payment_method != body.payment_method.value
                        or order.gateway != requested_gateway):
                    raise OrderConflict(f"Order {order_id} already exists with different details")
                if order.payment_method == PaymentMethod.COD.value or order.gateway_reference:
                    logger.info("order_create_idempotent", order_id=order_id)
                    return self._order_out(order, await self._resume_handle(order))
            else:
                order = self._new_order(order_id, body)

            if body.payment_method == PaymentMethod.COD:
                # Never routed through a gateway
                self.db.commit()
                logger.info("cod_order_created", order_id=order.id, amount=str(order.amount))
                return self._order_out(order)

            return await self._start_online_payment(order, body)

    def _new_order(self, order_id: str, body: CreateOrderIn) -> Order:
        is_cod = body.payment_method == PaymentMethod.COD
        order = Order(
            id=order_id,
            customer_id=body.customer.customer_id or body.customer.email,
            customer_name=body.customer.name,
            customer_email=body.customer.email,
            customer_phone=body.customer.phone,
            amount=body.amount,
            currency=body.currency,
            payment_method=body.payment_method.value,
            payment_status=PaymentStatus.PENDING.value,
            order_status=OrderStatus.CONFIRMED.value if is_cod else OrderStatus.PENDING.value,
            gateway=body.gateway.value if body.gateway else None,
        )
        if body.shipping_address:
            order.shipping_address = body.shipping_address.address
            order.shipping_city = body.shipping_address.city
            order.shipping_state = body.shipping_address.state
            order.shipping_pincode = body.shipping_address.pincode
        self.db.add(order)
        return order

    def _payment_request(self, order: Order, body: CreateOrderIn) -> PaymentRequest:
        base = self.settings.PUBLIC_BASE_URL.rstrip("/")
        success_url = f"{base}/order-success?order_id={order.id}"
        cancel_url = None
        if body.gateway == PSPProvider.STRIPE:
            if not body.hosted:
                success_url = None
            else:
                success_url += "&session_id={CHECKOUT_SESSION_ID}"
                cancel_url = f"{base}/order-success?order_id={order.id}&canceled=true"
        return PaymentRequest(
            order_id=order.id,
            amount=order.amount,
            currency=order.currency,
            customer=CustomerDetails(
                customer_id=order.customer_id,
                name=order.customer_name,
                email=order.customer_email,
                phone=order.customer_phone,
            ),
            shipping_address=body.shipping_address,
            success_url=success_url,
            cancel_url=cancel_url,
        )

    async def _start_online_payment(self, order: Order, body: CreateOrderIn) -> CreateOrderOut:
        adapter = self.dispatcher.get_adapter(order.gateway)
        request = self._payment_request(order, body)
        try:
            handle = await adapter.create_payment_request(request)
        except GatewayError as e:
            order.payment_status = PaymentStatus.FAILED.value
            order.failure_reason = e.message[:512]
            self.db.commit()
            logger.warning("online_order_payment_request_failed", order_id=order.id, gateway=order.gateway,
                           code=e.code)
            raise

        self._store_handle(order, handle)
        self.db.commit()
        logger.info("online_order_created", order_id=order.id, gateway=order.gateway,
                    reference=order.gateway_reference)
        return self._order_out(order, handle)

    def _store_handle(self, order: Order, handle: PaymentHandle) -> None:
        order.payment_status = PaymentStatus.PENDING.value
        order.failure_reason = None
        if order.gateway == PSPProvider.CASHFREE.value:
            # Cashfree orders are polled by merchant order id
            order.gateway_reference = handle.order_id
        else:
            order.gateway_reference = handle.reference
        order.gateway_intent_id = handle.intent_id
        order.payment_session_id = handle.payment_session_id
        order.checkout_url = handle.checkout_url

    async def _resume_handle(self, order: Order) -> Optional[PaymentHandle]:
        """Embedded Stripe intents need their client secret again on replay; it is never stored."""
        if order.gateway != PSPProvider.STRIPE.value or not order.gateway_intent_id or order.checkout_url:
            return None
        return await self.dispatcher.stripe.resume_payment_intent(order.id, order.gateway_intent_id)

    def _order_out(self, order: Order, handle: Optional[PaymentHandle] = None) -> CreateOrderOut:
        return CreateOrderOut(
            order_id=order.id,
            payment_method=PaymentMethod(order.payment_method),
            payment_status=PaymentStatus(order.payment_status),
            order_status=OrderStatus(order.order_status),
            amount=order.amount,
            currency=order.currency,
            gateway=order.gateway,
            checkout_url=order.checkout_url,
            session_id=handle.session_id if handle else (
                order.gateway_reference if (order.gateway_reference or "").startswith("cs_") else None),
            intent_id=order.gateway_intent_id,
            client_secret=handle.client_secret if handle else None,
            payment_session_id=order.payment_session_id,
        )

    # -------------------------------------------
    # Status transitions
    # -------------------------------------------
    def apply_payment_status(self, order: Order, status: PaymentStatus) -> bool:
        """
        Record a gateway-reported status. Final statuses are never overwritten,
        except that a declined attempt may still be followed by a success.
        """
        current = PaymentStatus(order.payment_status)
        if current == status:
            return False
        if current.is_final and not (current == PaymentStatus.FAILED and status == PaymentStatus.SUCCESS):
            return False
        order.payment_status = status.value
        if status == PaymentStatus.SUCCESS and order.order_status == OrderStatus.PENDING.value:
            order.order_status = OrderStatus.CONFIRMED.value
        elif status == PaymentStatus.CANCELLED:
            order.order_status = OrderStatus.CANCELLED.value
        logger.info("order_payment_status_changed", order_id=order.id, old=current.value, new=status.value)
        return True

    # -------------------------------------------
    # Verification
    # -------------------------------------------
    async def verify_payment(self, identifier: str, order_id: Optional[str] = None) -> VerificationResponse:
        """
        Resolve an order's authoritative payment state, refreshing it from the
        gateway when an online payment has not reached a final status.

        Raises:
            OrderNotFound: unknown identifier
            StatusFetchFailed: the gateway could not be asked
        """
        order = self.find_order(identifier, order_id)

        needs_refresh = (
            order.payment_method == PaymentMethod.ONLINE.value
            and awaits_gateway(PaymentStatus(order.payment_status))
            and order.gateway
            and order.gateway_reference
        )
        if needs_refresh:
            adapter = self.dispatcher.get_adapter(order.gateway)
            try:
                report = await adapter.get_payment_status(order.gateway_reference)
            except StatusFetchFailed:
                logger.warning("verify_payment_status_unavailable", order_id=order.id, gateway=order.gateway)
                raise
            if self.apply_payment_status(order, report.status):
                self.db.commit()

        response = VerificationResponse(
            order_id=order.id,
            payment_status=PaymentStatus(order.payment_status),
            payment_method=PaymentMethod(order.payment_method),
            order_status=OrderStatus(order.order_status),
            amount=order.amount,
            success=verification_success(order),
        )
        logger.info("verify_payment", order_id=order.id, payment_status=response.payment_status.value,
                    success=response.success)
        return response

    # -------------------------------------------
    # Webhooks
    # -------------------------------------------
    def apply_stripe_event(self, event: WebhookEvent) -> Optional[Order]:
        status = STRIPE_EVENT_STATUS.get(event.type)
        if status is None:
            logger.info("stripe_webhook_ignored", event_id=event.event_id, type=event.type)
            return None

        obj = event.data
        metadata = obj.get("metadata") or {}
        order_id = metadata.get("order_id") or obj.get("client_reference_id")
        order = self.db.get(Order, order_id) if order_id else None
        if not order:
            logger.warning("stripe_webhook_order_not_found", event_id=event.event_id, order_id=order_id)
            return None

        if event.type.startswith("checkout.session."):
            if event.type == "checkout.session.completed" and obj.get("payment_status") != "paid":
                # Delayed payment methods settle later via async_payment_succeeded
                status = PaymentStatus.PROCESSING
            if obj.get("payment_intent"):
                order.gateway_intent_id = obj.get("payment_intent")
        elif not order.gateway_intent_id:
            order.gateway_intent_id = obj.get("id")

        if status == PaymentStatus.FAILED:
            error = obj.get("last_payment_error") or {}
            order.failure_reason = (error.get("message") or event.type)[:512]

        self.apply_payment_status(order, status)
        self.db.commit()
        return order

