import asyncio
import json
import unittest
from decimal import Decimal

import httpx

from storefront.enums import PaymentStatus
from storefront.psp.cashfree_adapter import CashfreeAdapter, CashfreeConfig
from storefront.psp.errors import (
    AuthenticationFailed,
    MissingCredentials,
    NetworkUnreachable,
    StatusFetchFailed,
    UnknownGatewayError,
    ValidationError,
)
from storefront.psp.types import CustomerDetails, PaymentRequest
from tests.support import RecordingTransport, cashfree_order_response, make_settings


def make_order(order_id="ORD1001", amount="499.99") -> PaymentRequest:
    return PaymentRequest(
        order_id=order_id,
        amount=amount,
        currency="INR",
        customer=CustomerDetails(
            customer_id="cust_1",
            name="Asha Rao",
            email="asha@example.com",
            phone="9876543210",
        ),
        success_url="https://shop.example.com/order-success?order_id=ORD1001",
    )


def make_adapter(handler, **settings_overrides):
    transport = RecordingTransport(handler)
    config = CashfreeConfig.from_settings(make_settings(**settings_overrides))
    return CashfreeAdapter(config, transport=transport), transport


class TestCashfreeCreateOrder(unittest.TestCase):
    def test_missing_credentials_fail_before_any_http_call(self):
        adapter, transport = make_adapter(
            lambda request: httpx.Response(200, json=cashfree_order_response("ORD1001")),
            CASHFREE_APP_ID=None,
            CASHFREE_SECRET_KEY=None,
        )
        with self.assertRaises(MissingCredentials):
            asyncio.run(adapter.create_payment_request(make_order()))
        self.assertEqual(transport.requests, [])

    def test_success_posts_order_with_headers(self):
        adapter, transport = make_adapter(
            lambda request: httpx.Response(200, json=cashfree_order_response("ORD1001"))
        )
        handle = asyncio.run(adapter.create_payment_request(make_order()))

        self.assertEqual(handle.payment_session_id, "session_abc")
        self.assertEqual(handle.gateway_order_id, "2149460581")
        self.assertEqual(handle.amount, Decimal("499.99"))
        self.assertEqual(handle.currency, "INR")

        request = transport.requests[0]
        self.assertEqual(request.method, "POST")
        self.assertEqual(str(request.url), "https://sandbox.cashfree.com/pg/orders")
        self.assertEqual(request.headers["x-client-id"], "cf_app_id")
        self.assertEqual(request.headers["x-client-secret"], "cf_secret_key_1234567890")
        self.assertEqual(request.headers["x-api-version"], "2022-09-01")
        body = json.loads(request.content)
        self.assertEqual(body["order_amount"], 499.99)
        self.assertEqual(body["order_currency"], "INR")
        self.assertEqual(body["customer_details"]["customer_phone"], "9876543210")
        self.assertEqual(body["order_meta"]["return_url"], make_order().success_url)

    def test_production_environment_uses_production_host(self):
        adapter, transport = make_adapter(
            lambda request: httpx.Response(200, json=cashfree_order_response("ORD1001")),
            CASHFREE_ENVIRONMENT="production",
        )
        asyncio.run(adapter.create_payment_request(make_order()))
        self.assertEqual(transport.requests[0].url.host, "api.cashfree.com")

    def test_401_is_authentication_failure(self):
        adapter, _ = make_adapter(lambda request: httpx.Response(401, json={"message": "authentication Failed"}))
        with self.assertRaises(AuthenticationFailed) as ctx:
            asyncio.run(adapter.create_payment_request(make_order()))
        self.assertEqual(ctx.exception.code, "authentication_failed")

    def test_400_is_validation_error_with_vendor_detail(self):
        vendor = {"message": "order_amount : invalid value", "code": "order_amount_invalid", "type": "invalid_request_error"}
        adapter, _ = make_adapter(lambda request: httpx.Response(400, json=vendor))
        with self.assertRaises(ValidationError) as ctx:
            asyncio.run(adapter.create_payment_request(make_order()))
        self.assertEqual(ctx.exception.details, vendor)
        self.assertIn("order_amount_invalid", ctx.exception.message)

    def test_connect_error_is_network_unreachable(self):
        def handler(request):
            raise httpx.ConnectError("Name or service not known", request=request)

        adapter, _ = make_adapter(handler)
        with self.assertRaises(NetworkUnreachable):
            asyncio.run(adapter.create_payment_request(make_order()))

    def test_other_status_carries_vendor_message(self):
        adapter, _ = make_adapter(lambda request: httpx.Response(500, json={"message": "internal hiccup"}))
        with self.assertRaises(UnknownGatewayError) as ctx:
            asyncio.run(adapter.create_payment_request(make_order()))
        self.assertEqual(ctx.exception.message, "internal hiccup")

    def test_unexpected_shape_is_rejected(self):
        adapter, _ = make_adapter(lambda request: httpx.Response(200, json={"order_id": "ORD1001"}))
        with self.assertRaises(UnknownGatewayError):
            asyncio.run(adapter.create_payment_request(make_order()))


class TestCashfreeStatus(unittest.TestCase):
    def test_paid_order_maps_to_success(self):
        body = cashfree_order_response("ORD1001")
        body["order_status"] = "PAID"
        adapter, transport = make_adapter(lambda request: httpx.Response(200, json=body))

        report = asyncio.run(adapter.get_payment_status("ORD1001"))

        self.assertEqual(report.status, PaymentStatus.SUCCESS)
        self.assertEqual(report.provider_status, "PAID")
        self.assertEqual(report.amount, Decimal("499.99"))
        self.assertEqual(transport.requests[0].method, "GET")
        self.assertEqual(transport.requests[0].url.path, "/pg/orders/ORD1001")

    def test_status_mapping(self):
        adapter, _ = make_adapter(lambda request: httpx.Response(200, json={}))
        self.assertEqual(adapter.normalize_status("ACTIVE"), PaymentStatus.PENDING)
        self.assertEqual(adapter.normalize_status("EXPIRED"), PaymentStatus.FAILED)
        self.assertEqual(adapter.normalize_status("TERMINATED"), PaymentStatus.CANCELLED)
        self.assertEqual(adapter.normalize_status("something-new"), PaymentStatus.PENDING)

    def test_any_failure_is_status_fetch_failed(self):
        adapter, _ = make_adapter(lambda request: httpx.Response(404, json={"message": "order not found"}))
        with self.assertRaises(StatusFetchFailed):
            asyncio.run(adapter.get_payment_status("ORD404"))

        adapter, _ = make_adapter(lambda request: httpx.Response(200, json={"order_id": "ORD1"}))
        with self.assertRaises(StatusFetchFailed):
            asyncio.run(adapter.get_payment_status("ORD1"))


class TestCashfreeTestConnection(unittest.TestCase):
    def test_reports_missing_credentials_without_raising(self):
        adapter, transport = make_adapter(lambda request: httpx.Response(200, json={}), CASHFREE_SECRET_KEY=None)
        result = asyncio.run(adapter.test_connection())
        self.assertFalse(result["success"])
        self.assertEqual(result["credentials"], {"appId": "Present", "secretKey": "Missing"})
        self.assertEqual(transport.requests, [])

    def test_credential_flags_never_include_full_secret(self):
        adapter, _ = make_adapter(lambda request: httpx.Response(200, json={}))
        flags = adapter.credential_flags()
        self.assertNotIn("cf_secret_key_1234567890", json.dumps(flags))
        self.assertEqual(flags["x-client-id"], "present")


if __name__ == "__main__":
    unittest.main()
