"""Cashfree PSP Adapter Implementation (Orders API over REST)."""
from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Any, Dict, Optional

import httpx

from ..config.settings import Settings
from ..enums import PaymentStatus
from ..logging_config import mask_secret, presence
from .adapter import PSPAdapter, PSPProvider
from .errors import (
    AuthenticationFailed,
    MissingCredentials,
    NetworkUnreachable,
    StatusFetchFailed,
    UnknownGatewayError,
    ValidationError,
)
from .money import from_minor_units, to_decimal, to_minor_units
from .types import CustomerDetails, PaymentHandle, PaymentRequest, PaymentStatusReport


@dataclass(frozen=True)
class CashfreeConfig:
    app_id: Optional[str]
    secret_key: Optional[str]
    environment: str = "sandbox"
    base_url: str = "https://sandbox.cashfree.com/pg"
    api_version: str = "2022-09-01"
    timeout: float = 30.0

    @classmethod
    def from_settings(cls, settings: Settings) -> "CashfreeConfig":
        return cls(
            app_id=settings.CASHFREE_APP_ID,
            secret_key=settings.CASHFREE_SECRET_KEY,
            environment=settings.CASHFREE_ENVIRONMENT,
            base_url=settings.cashfree_base_url,
            api_version=settings.CASHFREE_API_VERSION,
            timeout=settings.CASHFREE_TIMEOUT_SECONDS,
        )

    @property
    def has_credentials(self) -> bool:
        return bool(self.app_id and self.secret_key)


class CashfreeAdapter(PSPAdapter):
    """Cashfree payment gateway adapter."""

    provider = PSPProvider.CASHFREE

    # Cashfree order_status -> application status
    STATUS_MAP = {
        "PAID": PaymentStatus.SUCCESS,
        "ACTIVE": PaymentStatus.PENDING,
        "EXPIRED": PaymentStatus.FAILED,
        "TERMINATED": PaymentStatus.CANCELLED,
        "TERMINATION_REQUESTED": PaymentStatus.CANCELLED,
    }

    def __init__(self, config: CashfreeConfig, transport: Optional[httpx.AsyncBaseTransport] = None):
        super().__init__(config)
        # Tests inject httpx.MockTransport here
        self._transport = transport
        self.log.info(
            "cashfree_configured",
            environment=config.environment,
            base_url=config.base_url,
            app_id=presence(config.app_id),
            secret_key=mask_secret(config.secret_key),
        )

    @property
    def base_url(self) -> str:
        return self.config.base_url

    def _headers(self) -> Dict[str, str]:
        return {
            "Content-Type": "application/json",
            "x-client-id": self.config.app_id or "",
            "x-client-secret": self.config.secret_key or "",
            "x-api-version": self.config.api_version,
        }

    def credential_flags(self) -> Dict[str, str]:
        return {
            "x-client-id": presence(self.config.app_id),
            "x-client-secret": mask_secret(self.config.secret_key),
        }

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            base_url=self.base_url,
            headers=self._headers(),
            timeout=self.config.timeout,
            transport=self._transport,
        )

    def _build_order_body(self, order: PaymentRequest) -> Dict[str, Any]:
        minor = to_minor_units(order.amount)
        body: Dict[str, Any] = {
            "order_id": order.order_id,
            # Cashfree takes a decimal amount; derive it from paise so rounding happens once
            "order_amount": float(from_minor_units(minor)),
            "order_currency": order.currency.upper(),
            "customer_details": {
                "customer_id": order.customer.customer_id,
                "customer_email": order.customer.email,
                "customer_phone": order.customer.phone,
                "customer_name": order.customer.name,
            },
        }
        if order.success_url:
            body["order_meta"] = {"return_url": order.success_url}
        return body

    async def create_payment_request(self, order: PaymentRequest) -> PaymentHandle:
        """Create a Cashfree order and return its payment session."""
        self.log.info(
            "cashfree_order_request",
            order_id=order.order_id,
            order_amount=str(order.amount),
            customer=order.customer.name,
            environment=self.config.environment,
            base_url=self.base_url,
        )

        if not self.config.has_credentials:
            self.log.error("cashfree_order_failed", order_id=order.order_id, reason="missing_credentials",
                           headers=self.credential_flags())
            raise MissingCredentials(
                "Cashfree credentials are missing. Please check your environment variables.",
                provider=self.provider.value,
            )

        body = self._build_order_body(order)
        try:
            async with self._client() as client:
                r = await client.post("/orders", json=body)
                r.raise_for_status()
                data = r.json()
        except httpx.HTTPStatusError as e:
            raise self._map_status_error(order.order_id, e)
        except (httpx.ConnectError, httpx.TimeoutException) as e:
            self._log_failure(order.order_id, message=str(e), error_type=type(e).__name__)
            raise NetworkUnreachable(
                "Cashfree API endpoint not reachable. Check your internet connection.",
                provider=self.provider.value,
            )
        except httpx.RequestError as e:
            self._log_failure(order.order_id, message=str(e), error_type=type(e).__name__)
            raise UnknownGatewayError(str(e) or None, provider=self.provider.value)
        except ValueError:
            self._log_failure(order.order_id, message="invalid JSON body")
            raise UnknownGatewayError("Cashfree returned an unreadable response", provider=self.provider.value)

        handle = self._parse_order_response(order, data)
        self.log.info(
            "cashfree_order_succeeded",
            order_id=handle.order_id,
            payment_session_id=presence(handle.payment_session_id),
            cf_order_id=handle.gateway_order_id,
        )
        return handle

    def _parse_order_response(self, order: PaymentRequest, data: Any) -> PaymentHandle:
        if not isinstance(data, dict) or not data.get("order_id") or not data.get("payment_session_id"):
            self._log_failure(order.order_id, message="unexpected response shape", data=data)
            raise UnknownGatewayError("Unexpected response from Cashfree", provider=self.provider.value)
        try:
            amount = to_decimal(data.get("order_amount", order.amount))
        except ValueError:
            raise UnknownGatewayError("Unexpected order amount from Cashfree", provider=self.provider.value)
        return PaymentHandle(
            provider=self.provider.value,
            order_id=str(data["order_id"]),
            amount=amount,
            currency=str(data.get("order_currency") or order.currency).upper(),
            payment_session_id=str(data["payment_session_id"]),
            gateway_order_id=str(data["cf_order_id"]) if data.get("cf_order_id") is not None else None,
        )

    def _map_status_error(self, order_id: str, e: httpx.HTTPStatusError):
        response = e.response
        try:
            data = response.json()
        except ValueError:
            data = response.text
        self._log_failure(
            order_id,
            status=response.status_code,
            status_text=response.reason_phrase,
            data=data,
            url=str(e.request.url),
        )
        if response.status_code == 401:
            return AuthenticationFailed(
                "Cashfree authentication failed. Please check: 1) Your App ID and Secret Key are correct, "
                "2) You are using sandbox credentials in sandbox environment, 3) Your account is activated.",
                provider=self.provider.value,
                status_code=401,
            )
        if response.status_code == 400:
            return ValidationError(
                f"Cashfree validation error: {data}",
                provider=self.provider.value,
                status_code=400,
                details=data,
            )
        message = data.get("message") if isinstance(data, dict) else None
        return UnknownGatewayError(message, provider=self.provider.value, status_code=response.status_code)

    def _log_failure(self, order_id: str, **fields):
        self.log.error(
            "cashfree_order_failed",
            order_id=order_id,
            environment=self.config.environment,
            headers=self.credential_flags(),
            **fields,
        )

    async def get_payment_status(self, reference: str) -> PaymentStatusReport:
        """Fetch a Cashfree order by merchant order id."""
        if not self.config.has_credentials:
            raise StatusFetchFailed("Failed to fetch order status", provider=self.provider.value)
        try:
            async with self._client() as client:
                r = await client.get(f"/orders/{reference}")
                r.raise_for_status()
                data = r.json()
            provider_status = str(data["order_status"])
            amount = to_decimal(data["order_amount"]) if data.get("order_amount") is not None else None
        except (httpx.HTTPError, ValueError, KeyError, TypeError) as e:
            detail: Any = str(e)
            if isinstance(e, httpx.HTTPStatusError):
                detail = e.response.text
            self.log.error("cashfree_status_failed", order_id=reference, error=detail, error_type=type(e).__name__)
            raise StatusFetchFailed("Failed to fetch order status", provider=self.provider.value)

        report = PaymentStatusReport(
            provider=self.provider.value,
            reference=reference,
            status=self.normalize_status(provider_status),
            provider_status=provider_status,
            amount=amount,
            currency=data.get("order_currency"),
            order_id=data.get("order_id") or reference,
        )
        self.log.info("cashfree_status_fetched", order_id=reference, status=report.status.value,
                      provider_status=provider_status)
        return report

    def normalize_status(self, provider_status: str) -> PaymentStatus:
        """Normalize Cashfree order_status."""
        return self.STATUS_MAP.get((provider_status or "").upper(), PaymentStatus.PENDING)

    async def test_connection(self) -> Dict[str, Any]:
        """Create a 1.00 INR test order to prove the credentials work."""
        test_order = PaymentRequest(
            order_id=f"TEST{int(time.time() * 1000)}",
            amount="1.00",
            currency="INR",
            customer=CustomerDetails(
                customer_id="test_user_1",
                email="test@example.com",
                phone="9999999999",
                name="Test User",
            ),
        )
        try:
            handle = await self.create_payment_request(test_order)
            return {"success": True, "environment": self.config.environment,
                    "data": {"order_id": handle.order_id, "cf_order_id": handle.gateway_order_id}}
        except Exception as e:
            return {
                "success": False,
                "error": str(e),
                "environment": self.config.environment,
                "credentials": {
                    "appId": "Present" if self.config.app_id else "Missing",
                    "secretKey": "Present" if self.config.secret_key else "Missing",
                },
            }
