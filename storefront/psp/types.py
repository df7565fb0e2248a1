"""Request and result types exchanged with the PSP adapters."""
from decimal import Decimal
from typing import Any, Dict, Optional

from pydantic import BaseModel, Field, field_validator

from ..enums import PaymentStatus
from .money import to_decimal


class CustomerDetails(BaseModel):
    customer_id: str
    name: str
    email: str
    phone: str


class ShippingAddress(BaseModel):
    address: str
    city: str
    state: str
    pincode: str


class PaymentRequest(BaseModel):
    """Internal order description handed to an adapter. Amount is in decimal currency."""
    order_id: str = Field(..., min_length=1, max_length=64)
    amount: Decimal
    currency: str = "INR"
    customer: CustomerDetails
    shipping_address: Optional[ShippingAddress] = None
    success_url: Optional[str] = None
    cancel_url: Optional[str] = None

    @field_validator("amount", mode="before")
    @classmethod
    def _quantize_amount(cls, v):
        amount = to_decimal(v)
        if amount <= 0:
            raise ValueError("amount must be positive")
        return amount


class PaymentHandle(BaseModel):
    """Gateway-issued handle for one payment attempt."""
    provider: str
    order_id: str
    amount: Decimal
    currency: str
    intent_id: Optional[str] = None
    client_secret: Optional[str] = None
    session_id: Optional[str] = None
    payment_session_id: Optional[str] = None
    checkout_url: Optional[str] = None
    gateway_order_id: Optional[str] = None

    @property
    def reference(self) -> Optional[str]:
        """Identifier to poll the gateway with later."""
        return self.session_id or self.intent_id or self.gateway_order_id


class PaymentStatusReport(BaseModel):
    provider: str
    reference: str
    status: PaymentStatus
    provider_status: Optional[str] = None
    amount: Optional[Decimal] = None
    currency: Optional[str] = None
    order_id: Optional[str] = None


class WebhookEvent(BaseModel):
    event_id: str
    type: str
    data: Dict[str, Any] = Field(default_factory=dict)
