from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_serializer
from pydantic.alias_generators import to_camel

from ..enums import DisplayState, OrderStatus, PaymentMethod, PaymentStatus


class NavigationHint(BaseModel):
    """
    State the client carried across the checkout redirect.
    Untrusted: only ever used as a hint or as fallback.
    """
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    order_id: Optional[str] = None
    session_id: Optional[str] = None
    amount: Optional[Decimal] = None
    payment_method: Optional[PaymentMethod] = None
    payment_status: Optional[PaymentStatus] = None
    order_status: Optional[OrderStatus] = None


class RedirectParams(BaseModel):
    """Query parameters on the page the gateway redirected back to."""
    order_id: Optional[str] = None
    session_id: Optional[str] = None
    canceled: bool = False


class CheckoutResultRequest(BaseModel):
    hint: NavigationHint = Field(default_factory=NavigationHint)
    params: RedirectParams = Field(default_factory=RedirectParams)


class CheckoutResult(BaseModel):
    display_state: Optional[DisplayState] = None
    order_id: Optional[str] = None
    amount: Optional[Decimal] = None
    payment_method: Optional[PaymentMethod] = None
    payment_status: Optional[PaymentStatus] = None
    order_status: Optional[OrderStatus] = None
    clear_cart: bool = False
    redirect_to: Optional[str] = None
    source: str = "local"  # local / endpoint / fallback
    title: Optional[str] = None
    message: Optional[str] = None
    status_label: Optional[str] = None

    @field_serializer("amount")
    def _amount_as_number(self, v: Optional[Decimal]) -> Optional[float]:
        return float(v) if v is not None else None
