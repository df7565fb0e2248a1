"""
PSP Adapter Base Class and Interface.
Provides uniform interface for the storefront's payment gateways (Stripe, Cashfree).
"""
from abc import ABC, abstractmethod
from enum import Enum
from typing import Any, Dict

from ..enums import PaymentStatus
from ..logging_config import get_logger
from .types import PaymentHandle, PaymentRequest, PaymentStatusReport


class PSPProvider(str, Enum):
    """Supported PSP providers."""
    STRIPE = "stripe"
    CASHFREE = "cashfree"


class PSPAdapter(ABC):
    """
    Base adapter for Payment Service Providers.
    All PSP implementations must inherit from this class.

    Amounts cross this interface in decimal currency. Conversion to minor
    units happens inside each adapter, right before the vendor call.
    """

    provider: PSPProvider

    def __init__(self, config: Any):
        """
        Initialize PSP adapter with an explicit configuration object.

        Args:
            config: Provider-specific configuration (credentials, base URL, timeout)
        """
        self.config = config
        self.log = get_logger(f"storefront.psp.{self.provider.value}")

    @abstractmethod
    async def create_payment_request(self, order: PaymentRequest) -> PaymentHandle:
        """
        Create a payment attempt for an order.

        Args:
            order: Internal order description (amount in decimal currency)

        Returns:
            PaymentHandle with the gateway-issued identifiers and the amount/currency
            echoed back in decimal currency.

        Raises:
            MissingCredentials, AuthenticationFailed, ValidationError,
            NetworkUnreachable, UnknownGatewayError
        """

    @abstractmethod
    async def get_payment_status(self, reference: str) -> PaymentStatusReport:
        """
        Retrieve current payment status as reported by the gateway.

        Args:
            reference: Gateway handle (session/intent id) or order id

        Raises:
            StatusFetchFailed: on any transport or vendor error
        """

    @abstractmethod
    async def test_connection(self) -> Dict[str, Any]:
        """
        Perform a cheap authenticated call against the gateway.
        Never raises; returns {"success": bool, ...}.
        """

    @abstractmethod
    def credential_flags(self) -> Dict[str, str]:
        """Presence flags for the configured credentials (safe to log/return)."""

    def normalize_status(self, provider_status: str) -> PaymentStatus:
        """
        Normalize provider-specific status to the application status.
        Override in subclasses for provider-specific mapping.
        """
        status_map = {
            "processing": PaymentStatus.PROCESSING,
            "succeeded": PaymentStatus.SUCCESS,
            "canceled": PaymentStatus.CANCELLED,
            "failed": PaymentStatus.FAILED,
        }
        return status_map.get((provider_status or "").lower(), PaymentStatus.PENDING)

    def __repr__(self):
        return f"<{self.__class__.__name__}(provider={getattr(self, 'provider', 'unknown')})>"
