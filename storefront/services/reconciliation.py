"""
Checkout result reconciliation.

After a checkout redirect the storefront knows some subset of: the client's
navigation state, the redirect query parameters, and (maybe) the
verification endpoint's answer. Everything here except
``resolve_checkout_result`` is a pure function of those inputs.
"""
from enum import Enum
from typing import Optional, Protocol, Tuple
from urllib.parse import urlencode

from ..enums import DisplayState, OrderStatus, PaymentMethod, PaymentStatus
from ..logging_config import get_logger
from ..psp.errors import GatewayError
from ..schemas.checkout import CheckoutResult, NavigationHint, RedirectParams
from ..schemas.orders import VerificationResponse
from .order_service import OrderNotFound

logger = get_logger(__name__)

HOME_VIEW = "/"
FAILURE_VIEW = "/payment-failed"

# Order statuses that mean a COD order has been accepted
_COD_ACCEPTED = (OrderStatus.CONFIRMED, OrderStatus.PROCESSING, OrderStatus.SHIPPED, OrderStatus.DELIVERED)


class ResolutionStep(str, Enum):
    COD = "cod"
    CANCELLED = "cancelled"
    VERIFY = "verify"
    REDIRECT_HOME = "redirect_home"


class PaymentVerifier(Protocol):
    async def verify(self, identifier: str, order_id: Optional[str] = None) -> VerificationResponse:
        ...


def classify_display_state(
    payment_method: PaymentMethod,
    payment_status: PaymentStatus,
    order_status: OrderStatus,
) -> DisplayState:
    """Total over PaymentMethod x PaymentStatus x OrderStatus."""
    if order_status == OrderStatus.CANCELLED:
        return DisplayState.FAILED

    if payment_method == PaymentMethod.COD:
        # Cash is collected at delivery; gateway-side statuses never fail a COD order
        if payment_status == PaymentStatus.SUCCESS or order_status in _COD_ACCEPTED:
            return DisplayState.SUCCESS
        return DisplayState.PENDING

    if payment_status == PaymentStatus.SUCCESS:
        return DisplayState.SUCCESS
    if payment_status in (PaymentStatus.FAILED, PaymentStatus.CANCELLED):
        return DisplayState.FAILED
    return DisplayState.PENDING


def _order_id(hint: NavigationHint, params: RedirectParams) -> Optional[str]:
    return hint.order_id or params.order_id


def _session_id(hint: NavigationHint, params: RedirectParams) -> Optional[str]:
    return params.session_id or hint.session_id


def plan_resolution(hint: NavigationHint, params: RedirectParams) -> ResolutionStep:
    """First match wins."""
    order_id = _order_id(hint, params)
    if hint.payment_method == PaymentMethod.COD and order_id:
        return ResolutionStep.COD
    if params.canceled:
        return ResolutionStep.CANCELLED
    if order_id or _session_id(hint, params):
        return ResolutionStep.VERIFY
    return ResolutionStep.REDIRECT_HOME


def verification_target(hint: NavigationHint, params: RedirectParams) -> Tuple[str, Optional[str]]:
    """(identifier, order_id query) for the verification endpoint."""
    order_id = _order_id(hint, params)
    session_id = _session_id(hint, params)
    if session_id:
        return session_id, order_id
    if not order_id:
        raise ValueError("no identifier to verify")
    return order_id, None


def failure_view(order_id: Optional[str]) -> str:
    if not order_id:
        return FAILURE_VIEW
    return f"{FAILURE_VIEW}?{urlencode({'order_id': order_id})}"


def _describe(result: CheckoutResult) -> CheckoutResult:
    is_cod = result.payment_method == PaymentMethod.COD
    state = result.display_state
    if state == DisplayState.SUCCESS:
        if is_cod:
            title = "Order Placed Successfully!"
            message = "Your order has been placed successfully. Pay when you receive your order."
        else:
            title = "Payment Successful!"
            message = "Thank you for your payment. Your order has been confirmed."
        label = "Confirmed"
    elif state == DisplayState.PENDING:
        if is_cod:
            title = "Order Received"
            message = "Your order has been received and is awaiting confirmation. Pay when you receive your order."
        else:
            title = "Payment Processing..."
            message = "Your payment is being processed. We will update you shortly."
        label = "Pending"
    else:
        if result.payment_status == PaymentStatus.CANCELLED:
            title = "Payment Cancelled"
            message = "You cancelled the payment. Your order has not been charged."
        else:
            title = "Payment Failed"
            message = "We could not confirm your payment. Please try again or choose another payment method."
        label = "Failed"
    return result.model_copy(update={"title": title, "message": message, "status_label": label})


def reconcile(
    hint: NavigationHint,
    params: RedirectParams,
    response: Optional[VerificationResponse] = None,
    verification_failed: bool = False,
) -> CheckoutResult:
    """Project the available inputs onto one checkout result."""
    step = plan_resolution(hint, params)
    order_id = _order_id(hint, params)

    if step == ResolutionStep.REDIRECT_HOME:
        return CheckoutResult(redirect_to=HOME_VIEW)

    if step == ResolutionStep.COD:
        payment_status, order_status = PaymentStatus.PENDING, OrderStatus.CONFIRMED
        result = CheckoutResult(
            display_state=classify_display_state(PaymentMethod.COD, payment_status, order_status),
            order_id=order_id,
            amount=hint.amount,
            payment_method=PaymentMethod.COD,
            payment_status=payment_status,
            order_status=order_status,
            source="local",
        )
        return _describe(result)

    if step == ResolutionStep.CANCELLED:
        payment_status = PaymentStatus.CANCELLED
        order_status = hint.order_status or OrderStatus.PENDING
        result = CheckoutResult(
            display_state=classify_display_state(PaymentMethod.ONLINE, payment_status, order_status),
            order_id=order_id,
            amount=hint.amount,
            payment_method=hint.payment_method or PaymentMethod.ONLINE,
            payment_status=payment_status,
            order_status=order_status,
            source="local",
        )
        return _describe(result)

    if response is not None and not verification_failed:
        if not response.success:
            # A bare {"success": false} carries no order state; fill from the hint
            result = CheckoutResult(
                display_state=DisplayState.FAILED,
                order_id=response.order_id or order_id,
                amount=response.amount if response.amount is not None else hint.amount,
                payment_method=response.payment_method or hint.payment_method,
                payment_status=response.payment_status or hint.payment_status,
                order_status=response.order_status or hint.order_status,
                redirect_to=failure_view(response.order_id or order_id),
                source="endpoint",
            )
            return _describe(result)
        result = CheckoutResult(
            display_state=classify_display_state(
                response.payment_method, response.payment_status, response.order_status
            ),
            order_id=response.order_id,
            amount=response.amount if response.amount is not None else hint.amount,
            payment_method=response.payment_method,
            payment_status=response.payment_status,
            order_status=response.order_status,
            clear_cart=True,
            source="endpoint",
        )
        return _describe(result)

    # Verification unavailable: fall back to what the client told us, never to success
    payment_method = hint.payment_method or PaymentMethod.ONLINE
    payment_status = hint.payment_status or PaymentStatus.PENDING
    if payment_status == PaymentStatus.SUCCESS:
        payment_status = PaymentStatus.PENDING
    order_status = hint.order_status or OrderStatus.PENDING
    result = CheckoutResult(
        display_state=classify_display_state(payment_method, payment_status, order_status),
        order_id=order_id,
        amount=hint.amount,
        payment_method=payment_method,
        payment_status=payment_status,
        order_status=order_status,
        source="fallback",
    )
    return _describe(result)


async def resolve_checkout_result(
    hint: NavigationHint,
    params: RedirectParams,
    verifier: PaymentVerifier,
) -> CheckoutResult:
    """Run the resolution; the verifier is called only when no local answer exists."""
    step = plan_resolution(hint, params)
    if step != ResolutionStep.VERIFY:
        logger.info("checkout_result_resolved_locally", step=step.value, order_id=_order_id(hint, params))
        return reconcile(hint, params)

    identifier, order_id = verification_target(hint, params)
    try:
        response = await verifier.verify(identifier, order_id)
    except (GatewayError, OrderNotFound) as e:
        # Non-fatal: the page falls back to client-known state
        logger.warning("checkout_result_verification_failed", identifier=identifier, order_id=order_id,
                       error_type=type(e).__name__, error=str(e))
        return reconcile(hint, params, verification_failed=True)

    result = reconcile(hint, params, response=response)
    logger.info("checkout_result_verified", order_id=result.order_id,
                display_state=result.display_state.value if result.display_state else None)
    return result
