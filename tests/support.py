"""Shared helpers for the test suite."""
import hashlib
import hmac
import json
import time
from typing import Callable, List, Optional

import httpx

from storefront.config.settings import Settings

WEBHOOK_SECRET = "whsec_test_secret"


def make_settings(**overrides) -> Settings:
    values = dict(
        DATABASE_URL="sqlite://",
        NODE_ENV="test",
        PUBLIC_BASE_URL="https://shop.example.com",
        CASHFREE_ENVIRONMENT="sandbox",
        CASHFREE_APP_ID="cf_app_id",
        CASHFREE_SECRET_KEY="cf_secret_key_1234567890",
        STRIPE_SECRET_KEY="sk_test_123",
        STRIPE_PUBLISHABLE_KEY="pk_test_123",
        STRIPE_WEBHOOK_SECRET=WEBHOOK_SECRET,
        ORDER_API_BASE_URL=None,
    )
    values.update(overrides)
    return Settings(_env_file=None, **values)


class RecordingTransport(httpx.MockTransport):
    """MockTransport that keeps every request it served."""

    def __init__(self, handler: Callable[[httpx.Request], httpx.Response]):
        self.requests: List[httpx.Request] = []

        def _record(request: httpx.Request) -> httpx.Response:
            self.requests.append(request)
            return handler(request)

        super().__init__(_record)


def cashfree_order_response(order_id: str, amount: float = 499.99, session: str = "session_abc") -> dict:
    return {
        "cf_order_id": 2149460581,
        "order_id": order_id,
        "order_amount": amount,
        "order_currency": "INR",
        "order_status": "ACTIVE",
        "payment_session_id": session,
    }


def sign_stripe_payload(payload: bytes, secret: str = WEBHOOK_SECRET, timestamp: Optional[int] = None) -> str:
    """Build a Stripe-Signature header the way Stripe does (v1 = HMAC-SHA256 of "t.payload")."""
    timestamp = timestamp or int(time.time())
    signed = f"{timestamp}.{payload.decode('utf-8')}".encode("utf-8")
    signature = hmac.new(secret.encode("utf-8"), signed, hashlib.sha256).hexdigest()
    return f"t={timestamp},v1={signature}"


def stripe_event(event_type: str, obj: dict, event_id: str = "evt_test_1") -> bytes:
    return json.dumps({
        "id": event_id,
        "object": "event",
        "type": event_type,
        "data": {"object": obj},
    }).encode("utf-8")
