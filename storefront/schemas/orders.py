from decimal import Decimal
from typing import Optional

from pydantic import (
    AliasChoices,
    BaseModel,
    ConfigDict,
    EmailStr,
    Field,
    constr,
    field_serializer,
    field_validator,
    model_validator,
)

from ..enums import OrderStatus, PaymentMethod, PaymentStatus
from ..psp.adapter import PSPProvider
from ..psp.money import to_decimal
from ..psp.types import ShippingAddress


class CustomerIn(BaseModel):
    customer_id: Optional[constr(min_length=1, max_length=64)] = None
    name: constr(min_length=1, max_length=128)
    email: EmailStr
    phone: constr(min_length=6, max_length=20)


class CreateOrderIn(BaseModel):
    # Client-generated id doubles as the idempotency key
    order_id: Optional[constr(min_length=1, max_length=64, pattern=r"^[A-Za-z0-9_-]+$")] = None
    customer: CustomerIn
    amount: Decimal = Field(..., description="Amount in decimal currency (e.g. rupees)")
    currency: str = Field(default="INR", min_length=3, max_length=3)
    payment_method: PaymentMethod
    gateway: Optional[PSPProvider] = None
    # Stripe only: hosted checkout page (default) or a bare payment intent for an embedded form
    hosted: bool = True
    shipping_address: Optional[ShippingAddress] = None

    @field_validator("amount", mode="before")
    @classmethod
    def _parse_amount(cls, v):
        amount = to_decimal(v)
        if amount <= 0:
            raise ValueError("amount must be positive")
        return amount

    @field_validator("currency")
    @classmethod
    def _upper_currency(cls, v: str) -> str:
        return v.upper()

    @model_validator(mode="after")
    def _gateway_matches_method(self):
        if self.payment_method == PaymentMethod.ONLINE and self.gateway is None:
            raise ValueError("gateway is required for online payments")
        if self.payment_method == PaymentMethod.COD and self.gateway is not None:
            raise ValueError("cash on delivery orders are never routed through a gateway")
        return self


class CreateOrderOut(BaseModel):
    order_id: str
    payment_method: PaymentMethod
    payment_status: PaymentStatus
    order_status: OrderStatus
    amount: Decimal
    currency: str
    gateway: Optional[str] = None
    checkout_url: Optional[str] = None
    session_id: Optional[str] = None
    intent_id: Optional[str] = None
    client_secret: Optional[str] = None
    payment_session_id: Optional[str] = None

    @field_serializer("amount")
    def _amount_as_number(self, v: Decimal) -> float:
        return float(v)


class OrderOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    customer_id: str
    customer_name: str
    customer_email: str
    amount: Decimal
    currency: str
    payment_method: PaymentMethod
    payment_status: PaymentStatus
    order_status: OrderStatus
    gateway: Optional[str] = None

    @field_serializer("amount")
    def _amount_as_number(self, v: Decimal) -> float:
        return float(v)


class VerificationResponse(BaseModel):
    """
    Body of GET /orders/verify-payment/{identifier}.

    ``amount`` is the canonical field; ``finalAmount`` is still accepted on input.
    A negative answer may arrive as a bare ``{"success": false}``; a positive
    one must carry the full order state.
    """
    model_config = ConfigDict(populate_by_name=True)

    order_id: Optional[str] = Field(default=None, alias="orderId")
    payment_status: Optional[PaymentStatus] = Field(default=None, alias="paymentStatus")
    payment_method: Optional[PaymentMethod] = Field(default=None, alias="paymentMethod")
    order_status: Optional[OrderStatus] = Field(default=None, alias="orderStatus")
    amount: Optional[Decimal] = Field(
        default=None,
        validation_alias=AliasChoices("amount", "finalAmount"),
        serialization_alias="amount",
    )
    success: bool

    @model_validator(mode="after")
    def _success_carries_state(self):
        if self.success and None in (self.order_id, self.payment_status, self.payment_method, self.order_status):
            raise ValueError("a successful verification must include orderId, paymentStatus, "
                             "paymentMethod and orderStatus")
        return self

    @field_serializer("amount")
    def _amount_as_number(self, v: Optional[Decimal]) -> Optional[float]:
        return float(v) if v is not None else None
