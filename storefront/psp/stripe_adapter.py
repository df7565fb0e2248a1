"""Stripe PSP Adapter Implementation."""
import functools
import json
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional

import anyio
import stripe

from ..config.settings import Settings
from ..enums import PaymentStatus
from ..logging_config import presence
from .adapter import PSPAdapter, PSPProvider
from .errors import (
    AuthenticationFailed,
    GatewayError,
    MissingCredentials,
    NetworkUnreachable,
    SignatureVerificationFailed,
    StatusFetchFailed,
    UnknownGatewayError,
    ValidationError,
)
from .money import from_minor_units, to_minor_units
from .types import PaymentHandle, PaymentRequest, PaymentStatusReport, WebhookEvent


@dataclass(frozen=True)
class StripeConfig:
    secret_key: Optional[str]
    publishable_key: Optional[str] = None
    webhook_secret: Optional[str] = None
    currency: str = "inr"
    environment: str = "development"

    @classmethod
    def from_settings(cls, settings: Settings) -> "StripeConfig":
        return cls(
            secret_key=settings.STRIPE_SECRET_KEY,
            publishable_key=settings.STRIPE_PUBLISHABLE_KEY,
            webhook_secret=settings.STRIPE_WEBHOOK_SECRET,
            currency=settings.DEFAULT_CURRENCY.lower(),
            environment=settings.NODE_ENV,
        )


class StripeAdapter(PSPAdapter):
    """Stripe payment gateway adapter."""

    provider = PSPProvider.STRIPE

    def __init__(self, config: StripeConfig):
        """Initialize Stripe adapter. The key is passed per call, never set globally."""
        super().__init__(config)
        self.webhook_secret = config.webhook_secret  # Stripe webhook signing secret
        self.log.info(
            "stripe_configured",
            environment=config.environment,
            publishable_key=presence(config.publishable_key),
            secret_key=presence(config.secret_key),
            webhook_secret=presence(config.webhook_secret),
        )

    def credential_flags(self) -> Dict[str, str]:
        return {
            "publishable_key": presence(self.config.publishable_key),
            "secret_key": presence(self.config.secret_key),
            "webhook_secret": presence(self.config.webhook_secret),
        }

    def _require_key(self) -> str:
        if not self.config.secret_key:
            raise MissingCredentials(
                "Stripe credentials are missing. Please check STRIPE_SECRET_KEY.",
                provider=self.provider.value,
            )
        return self.config.secret_key

    async def _call(self, fn: Callable, *args, **kwargs):
        """Run a blocking SDK call in a worker thread."""
        return await anyio.to_thread.run_sync(functools.partial(fn, *args, api_key=self._require_key(), **kwargs))

    def _map_error(self, e: Exception) -> GatewayError:
        provider = self.provider.value
        if isinstance(e, stripe.APIConnectionError):
            return NetworkUnreachable(provider=provider)
        if isinstance(e, stripe.AuthenticationError):
            return AuthenticationFailed("Stripe authentication failed. Please check STRIPE_SECRET_KEY.",
                                        provider=provider, status_code=401)
        if isinstance(e, stripe.CardError):
            return ValidationError(f"Card error: {e.user_message or str(e)}", provider=provider,
                                   status_code=402, details={"code": e.code, "param": getattr(e, "param", None)})
        if isinstance(e, stripe.InvalidRequestError):
            return ValidationError(f"Stripe validation error: {e.user_message or str(e)}", provider=provider,
                                   status_code=400, details={"code": e.code, "param": getattr(e, "param", None)})
        if isinstance(e, stripe.StripeError):
            return UnknownGatewayError(e.user_message or str(e) or None, provider=provider,
                                       status_code=e.http_status)
        return UnknownGatewayError(str(e) or None, provider=provider)

    def _log_error(self, event: str, e: Exception, **fields):
        self.log.error(
            event,
            error_type=type(e).__name__,
            code=getattr(e, "code", None),
            message=str(e),
            **fields,
        )

    def _metadata(self, order: PaymentRequest) -> Dict[str, str]:
        return {
            "order_id": order.order_id,
            "customer_id": order.customer.customer_id,
            "customer_email": order.customer.email,
            "customer_name": order.customer.name,
        }

    def _shipping(self, order: PaymentRequest) -> Optional[Dict[str, Any]]:
        if not order.shipping_address:
            return None
        addr = order.shipping_address
        return {
            "name": order.customer.name,
            "phone": order.customer.phone,
            "address": {
                "line1": addr.address,
                "city": addr.city,
                "state": addr.state,
                "postal_code": addr.pincode,
                "country": "IN",
            },
        }

    def _echo_amount(self, obj: Any, field: str) -> Any:
        minor = getattr(obj, field, None)
        if not isinstance(minor, int):
            raise UnknownGatewayError("Unexpected amount in Stripe response", provider=self.provider.value)
        return from_minor_units(minor)

    async def create_payment_intent(self, order: PaymentRequest) -> PaymentHandle:
        """Create Stripe payment intent for an embedded card/wallet form."""
        self.log.info(
            "stripe_payment_intent_request",
            order_id=order.order_id,
            amount=str(order.amount),
            currency=order.currency,
            customer=order.customer.name,
        )
        params: Dict[str, Any] = {
            "amount": to_minor_units(order.amount),
            "currency": order.currency.lower(),
            "metadata": self._metadata(order),
            "description": f"Payment for order {order.order_id}",
            "automatic_payment_methods": {"enabled": True},
        }
        shipping = self._shipping(order)
        if shipping:
            params["shipping"] = shipping

        try:
            intent = await self._call(stripe.PaymentIntent.create, **params)
        except GatewayError:
            raise
        except Exception as e:
            self._log_error("stripe_payment_intent_failed", e, order_id=order.order_id)
            raise self._map_error(e)

        intent_id = getattr(intent, "id", None)
        client_secret = getattr(intent, "client_secret", None)
        if not intent_id or not client_secret:
            self.log.error("stripe_payment_intent_failed", order_id=order.order_id, message="unexpected response shape")
            raise UnknownGatewayError("Unexpected response from Stripe", provider=self.provider.value)

        handle = PaymentHandle(
            provider=self.provider.value,
            order_id=order.order_id,
            intent_id=intent_id,
            client_secret=client_secret,
            amount=self._echo_amount(intent, "amount"),
            currency=str(getattr(intent, "currency", order.currency)).upper(),
        )
        self.log.info("stripe_payment_intent_succeeded", order_id=order.order_id, intent_id=intent_id)
        return handle

    async def resume_payment_intent(self, order_id: str, intent_id: str) -> PaymentHandle:
        """Re-issue the handle of an existing intent so the client can confirm it."""
        try:
            intent = await self._call(stripe.PaymentIntent.retrieve, intent_id)
        except GatewayError:
            raise
        except Exception as e:
            self._log_error("stripe_payment_intent_resume_failed", e, order_id=order_id, intent_id=intent_id)
            raise self._map_error(e)

        client_secret = getattr(intent, "client_secret", None)
        if not client_secret:
            self.log.error("stripe_payment_intent_resume_failed", order_id=order_id, intent_id=intent_id,
                           message="unexpected response shape")
            raise UnknownGatewayError("Unexpected response from Stripe", provider=self.provider.value)

        self.log.info("stripe_payment_intent_resumed", order_id=order_id, intent_id=intent_id)
        return PaymentHandle(
            provider=self.provider.value,
            order_id=order_id,
            intent_id=intent_id,
            client_secret=client_secret,
            amount=self._echo_amount(intent, "amount"),
            currency=str(getattr(intent, "currency", "inr")).upper(),
        )

    async def create_checkout_session(self, order: PaymentRequest) -> PaymentHandle:
        """Create Stripe hosted checkout session for the whole order as one line item."""
        if not order.success_url or not order.cancel_url:
            raise ValidationError("success_url and cancel_url are required for checkout sessions",
                                  provider=self.provider.value)
        self.log.info(
            "stripe_checkout_session_request",
            order_id=order.order_id,
            amount=str(order.amount),
            customer=order.customer.name,
        )
        try:
            session = await self._call(
                stripe.checkout.Session.create,
                payment_method_types=["card"],
                line_items=[{
                    "price_data": {
                        "currency": order.currency.lower(),
                        "product_data": {
                            "name": f"Order {order.order_id}",
                            "description": f"Payment for order {order.order_id}",
                        },
                        "unit_amount": to_minor_units(order.amount),
                    },
                    "quantity": 1,
                }],
                mode="payment",
                success_url=order.success_url,
                cancel_url=order.cancel_url,
                customer_email=order.customer.email,
                client_reference_id=order.order_id,
                metadata=self._metadata(order),
                shipping_address_collection={"allowed_countries": ["IN"]},
                custom_text={"submit": {"message": "Thank you for your order!"}},
            )
        except GatewayError:
            raise
        except Exception as e:
            self._log_error("stripe_checkout_session_failed", e, order_id=order.order_id)
            raise self._map_error(e)

        session_id = getattr(session, "id", None)
        url = getattr(session, "url", None)
        if not session_id or not url:
            self.log.error("stripe_checkout_session_failed", order_id=order.order_id,
                           message="unexpected response shape")
            raise UnknownGatewayError("Unexpected response from Stripe", provider=self.provider.value)

        handle = PaymentHandle(
            provider=self.provider.value,
            order_id=order.order_id,
            session_id=session_id,
            checkout_url=url,
            intent_id=getattr(session, "payment_intent", None),
            amount=self._echo_amount(session, "amount_total"),
            currency=str(getattr(session, "currency", order.currency)).upper(),
        )
        self.log.info("stripe_checkout_session_succeeded", order_id=order.order_id, session_id=session_id)
        return handle

    async def create_payment_request(self, order: PaymentRequest) -> PaymentHandle:
        """Hosted checkout when redirect URLs are given, otherwise a bare payment intent."""
        if order.success_url and order.cancel_url:
            return await self.create_checkout_session(order)
        return await self.create_payment_intent(order)

    async def get_payment_status(self, reference: str) -> PaymentStatusReport:
        """Retrieve a checkout session (cs_...) or a payment intent and normalize its status."""
        try:
            if reference.startswith("cs_"):
                sess = await self._call(stripe.checkout.Session.retrieve, reference)
                provider_status = getattr(sess, "payment_status", None) or getattr(sess, "status", None)
                status = self.normalize_session_status(getattr(sess, "status", None),
                                                       getattr(sess, "payment_status", None))
                amount_minor = getattr(sess, "amount_total", None)
                obj = sess
            else:
                intent = await self._call(stripe.PaymentIntent.retrieve, reference)
                provider_status = getattr(intent, "status", None)
                status = self.normalize_status(provider_status)
                amount_minor = getattr(intent, "amount", None)
                obj = intent
            metadata = getattr(obj, "metadata", None) or {}
            report = PaymentStatusReport(
                provider=self.provider.value,
                reference=reference,
                status=status,
                provider_status=provider_status,
                amount=from_minor_units(amount_minor) if isinstance(amount_minor, int) else None,
                currency=getattr(obj, "currency", None),
                order_id=metadata.get("order_id"),
            )
        except Exception as e:
            self._log_error("stripe_status_failed", e, reference=reference)
            raise StatusFetchFailed("Failed to fetch payment status", provider=self.provider.value)

        self.log.info("stripe_status_fetched", reference=reference, status=report.status.value,
                      provider_status=provider_status)
        return report

    def verify_webhook_signature(
        self,
        payload: bytes,
        signature: Optional[str],
        secret: Optional[str] = None
    ) -> WebhookEvent:
        """Verify Stripe webhook signature with the SDK's constant-time check."""
        webhook_secret = secret or self.webhook_secret
        if not webhook_secret:
            raise MissingCredentials("Webhook secret not configured", provider=self.provider.value)
        if not signature:
            raise SignatureVerificationFailed("Missing Stripe-Signature header", provider=self.provider.value)

        try:
            stripe.Webhook.construct_event(payload, signature, webhook_secret)
            body = json.loads(payload)
            event = WebhookEvent(
                event_id=body["id"],
                type=body["type"],
                data=body.get("data", {}).get("object") or {},
            )
        except Exception as e:
            self.log.error("stripe_webhook_rejected", error_type=type(e).__name__, message=str(e))
            raise SignatureVerificationFailed(
                f"Webhook signature verification failed: {e}", provider=self.provider.value
            )

        self.log.info("stripe_webhook_received", event_id=event.event_id, type=event.type)
        return event

    async def test_connection(self) -> Dict[str, Any]:
        """Create and immediately cancel a 1 INR intent."""
        try:
            intent = await self._call(stripe.PaymentIntent.create, amount=100, currency="inr",
                                      description="Test connection")
            await self._call(stripe.PaymentIntent.cancel, intent.id)
            return {"success": True, "message": "Stripe connection successful"}
        except Exception as e:
            return {"success": False, "error": str(e), "type": type(e).__name__,
                    "credentials": self.credential_flags()}

    def normalize_status(self, provider_status: str) -> PaymentStatus:
        """Normalize Stripe payment intent status."""
        status_map = {
            "requires_payment_method": PaymentStatus.PENDING,
            "requires_confirmation": PaymentStatus.PENDING,
            "requires_action": PaymentStatus.PENDING,
            "processing": PaymentStatus.PROCESSING,
            "requires_capture": PaymentStatus.PROCESSING,
            "succeeded": PaymentStatus.SUCCESS,
            "canceled": PaymentStatus.CANCELLED,
        }
        return status_map.get(provider_status or "", PaymentStatus.PENDING)

    @staticmethod
    def normalize_session_status(status: Optional[str], payment_status: Optional[str]) -> PaymentStatus:
        """Checkout session: status is open/complete/expired, payment_status paid/unpaid/no_payment_required."""
        if payment_status in ("paid", "no_payment_required"):
            return PaymentStatus.SUCCESS
        if status == "expired":
            return PaymentStatus.CANCELLED
        if status == "complete":
            return PaymentStatus.PROCESSING
        return PaymentStatus.PENDING
