import asyncio
import time
import unittest
from decimal import Decimal
from types import SimpleNamespace
from unittest.mock import patch

import stripe

from storefront.enums import PaymentStatus
from storefront.psp.errors import (
    MissingCredentials,
    NetworkUnreachable,
    SignatureVerificationFailed,
    StatusFetchFailed,
    ValidationError,
)
from storefront.psp.stripe_adapter import StripeAdapter, StripeConfig
from storefront.psp.types import CustomerDetails, PaymentRequest, ShippingAddress
from tests.support import WEBHOOK_SECRET, make_settings, sign_stripe_payload, stripe_event


def make_adapter(**overrides) -> StripeAdapter:
    return StripeAdapter(StripeConfig.from_settings(make_settings(**overrides)))


def make_order(**overrides) -> PaymentRequest:
    values = dict(
        order_id="ORD2001",
        amount="499.99",
        currency="INR",
        customer=CustomerDetails(customer_id="cust_9", name="Ravi K", email="ravi@example.com", phone="9000000000"),
    )
    values.update(overrides)
    return PaymentRequest(**values)


class TestStripeWebhookSignature(unittest.TestCase):
    def setUp(self):
        self.adapter = make_adapter()
        self.payload = stripe_event("checkout.session.completed", {"id": "cs_test_1", "metadata": {"order_id": "ORD2001"}})

    def test_valid_signature_yields_event(self):
        event = self.adapter.verify_webhook_signature(self.payload, sign_stripe_payload(self.payload))
        self.assertEqual(event.type, "checkout.session.completed")
        self.assertEqual(event.event_id, "evt_test_1")
        self.assertEqual(event.data["metadata"]["order_id"], "ORD2001")

    def test_tampered_payload_is_rejected(self):
        header = sign_stripe_payload(self.payload)
        tampered = self.payload.replace(b"ORD2001", b"ORD9999")
        with self.assertRaises(SignatureVerificationFailed):
            self.adapter.verify_webhook_signature(tampered, header)

    def test_wrong_secret_is_rejected(self):
        header = sign_stripe_payload(self.payload, secret="whsec_someone_else")
        with self.assertRaises(SignatureVerificationFailed):
            self.adapter.verify_webhook_signature(self.payload, header)

    def test_stale_timestamp_is_rejected(self):
        header = sign_stripe_payload(self.payload, timestamp=int(time.time()) - 3600)
        with self.assertRaises(SignatureVerificationFailed):
            self.adapter.verify_webhook_signature(self.payload, header)

    def test_missing_header_is_rejected(self):
        with self.assertRaises(SignatureVerificationFailed):
            self.adapter.verify_webhook_signature(self.payload, None)

    def test_missing_secret_is_a_configuration_error(self):
        adapter = make_adapter(STRIPE_WEBHOOK_SECRET=None)
        with self.assertRaises(MissingCredentials):
            adapter.verify_webhook_signature(self.payload, sign_stripe_payload(self.payload))
        # explicit secret still works
        event = adapter.verify_webhook_signature(self.payload, sign_stripe_payload(self.payload), secret=WEBHOOK_SECRET)
        self.assertEqual(event.type, "checkout.session.completed")


class TestStripePaymentIntent(unittest.TestCase):
    def test_amount_sent_in_paise_and_echoed_back(self):
        intent = SimpleNamespace(id="pi_123", client_secret="pi_123_secret_abc", amount=49999, currency="inr")
        with patch("stripe.PaymentIntent.create", return_value=intent) as create:
            handle = asyncio.run(make_adapter().create_payment_intent(make_order()))

        kwargs = create.call_args.kwargs
        self.assertEqual(kwargs["amount"], 49999)
        self.assertEqual(kwargs["currency"], "inr")
        self.assertEqual(kwargs["api_key"], "sk_test_123")
        self.assertEqual(kwargs["metadata"]["order_id"], "ORD2001")
        self.assertEqual(kwargs["description"], "Payment for order ORD2001")
        self.assertNotIn("shipping", kwargs)

        self.assertEqual(handle.intent_id, "pi_123")
        self.assertEqual(handle.client_secret, "pi_123_secret_abc")
        self.assertEqual(handle.amount, Decimal("499.99"))
        self.assertEqual(handle.currency, "INR")
        self.assertEqual(handle.reference, "pi_123")

    def test_shipping_address_is_forwarded(self):
        intent = SimpleNamespace(id="pi_1", client_secret="s", amount=100, currency="inr")
        order = make_order(amount="1", shipping_address=ShippingAddress(
            address="12 MG Road", city="Bengaluru", state="KA", pincode="560001"))
        with patch("stripe.PaymentIntent.create", return_value=intent) as create:
            asyncio.run(make_adapter().create_payment_intent(order))
        shipping = create.call_args.kwargs["shipping"]
        self.assertEqual(shipping["address"]["postal_code"], "560001")
        self.assertEqual(shipping["address"]["country"], "IN")

    def test_connection_error_maps_to_network_unreachable(self):
        with patch("stripe.PaymentIntent.create", side_effect=stripe.APIConnectionError("connection refused")):
            with self.assertRaises(NetworkUnreachable):
                asyncio.run(make_adapter().create_payment_intent(make_order()))

    def test_invalid_request_maps_to_validation_error(self):
        error = stripe.InvalidRequestError("Amount must be at least 50 paise", param="amount")
        with patch("stripe.PaymentIntent.create", side_effect=error):
            with self.assertRaises(ValidationError):
                asyncio.run(make_adapter().create_payment_intent(make_order()))

    def test_missing_key_never_calls_stripe(self):
        with patch("stripe.PaymentIntent.create") as create:
            with self.assertRaises(MissingCredentials):
                asyncio.run(make_adapter(STRIPE_SECRET_KEY=None).create_payment_intent(make_order()))
        create.assert_not_called()


class TestStripeCheckoutSession(unittest.TestCase):
    def test_hosted_checkout_when_urls_present(self):
        session = SimpleNamespace(id="cs_test_abc", url="https://checkout.stripe.com/c/pay/cs_test_abc",
                                  payment_intent=None, amount_total=49999, currency="inr")
        order = make_order(success_url="https://shop.example.com/ok", cancel_url="https://shop.example.com/no")
        with patch("stripe.checkout.Session.create", return_value=session) as create:
            handle = asyncio.run(make_adapter().create_payment_request(order))

        kwargs = create.call_args.kwargs
        self.assertEqual(kwargs["mode"], "payment")
        self.assertEqual(kwargs["client_reference_id"], "ORD2001")
        self.assertEqual(kwargs["line_items"][0]["price_data"]["unit_amount"], 49999)
        self.assertEqual(kwargs["line_items"][0]["quantity"], 1)
        self.assertEqual(handle.session_id, "cs_test_abc")
        self.assertEqual(handle.checkout_url, session.url)
        self.assertEqual(handle.reference, "cs_test_abc")

    def test_session_requires_both_urls(self):
        order = make_order(success_url="https://shop.example.com/ok")
        with self.assertRaises(ValidationError):
            asyncio.run(make_adapter().create_checkout_session(order))


class TestStripeStatus(unittest.TestCase):
    def test_paid_session_is_success(self):
        sess = SimpleNamespace(id="cs_1", status="complete", payment_status="paid", amount_total=49999,
                               currency="inr", metadata={"order_id": "ORD2001"})
        with patch("stripe.checkout.Session.retrieve", return_value=sess):
            report = asyncio.run(make_adapter().get_payment_status("cs_1"))
        self.assertEqual(report.status, PaymentStatus.SUCCESS)
        self.assertEqual(report.order_id, "ORD2001")
        self.assertEqual(report.amount, Decimal("499.99"))

    def test_intent_status_mapping(self):
        intent = SimpleNamespace(id="pi_1", status="requires_capture", amount=100, currency="inr", metadata={})
        with patch("stripe.PaymentIntent.retrieve", return_value=intent):
            report = asyncio.run(make_adapter().get_payment_status("pi_1"))
        self.assertEqual(report.status, PaymentStatus.PROCESSING)

    def test_session_status_table(self):
        normalize = StripeAdapter.normalize_session_status
        self.assertEqual(normalize("complete", "no_payment_required"), PaymentStatus.SUCCESS)
        self.assertEqual(normalize("expired", "unpaid"), PaymentStatus.CANCELLED)
        self.assertEqual(normalize("complete", "unpaid"), PaymentStatus.PROCESSING)
        self.assertEqual(normalize("open", "unpaid"), PaymentStatus.PENDING)

    def test_retrieve_failure_is_status_fetch_failed(self):
        with patch("stripe.PaymentIntent.retrieve", side_effect=stripe.APIConnectionError("down")):
            with self.assertRaises(StatusFetchFailed):
                asyncio.run(make_adapter().get_payment_status("pi_missing"))


if __name__ == "__main__":
    unittest.main()
