"""Order and payment status enumerations shared across the service."""
from enum import Enum


class PaymentMethod(str, Enum):
    ONLINE = "online"
    COD = "cod"


class PaymentStatus(str, Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    SUCCESS = "success"
    FAILED = "failed"
    CANCELLED = "cancelled"

    @property
    def is_final(self) -> bool:
        return self in (PaymentStatus.SUCCESS, PaymentStatus.FAILED, PaymentStatus.CANCELLED)


class OrderStatus(str, Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    PROCESSING = "processing"
    SHIPPED = "shipped"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"


class DisplayState(str, Enum):
    """What the checkout result view renders."""
    SUCCESS = "success"
    PENDING = "pending"
    FAILED = "failed"
