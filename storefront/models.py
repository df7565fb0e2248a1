"""
Storefront SQLAlchemy Models

- Customers (registration / password reset)
- Orders (checkout, payment status, gateway handles)
"""

from sqlalchemy import (
    Column, Integer, String, Boolean, DateTime, Numeric, Index, func
)
from .db import Base
from .enums import OrderStatus, PaymentStatus


# =====================================================
# CUSTOMER MODEL
# =====================================================

class Customer(Base):
    __tablename__ = "customers"

    id = Column(Integer, primary_key=True)
    name = Column(String(128), nullable=False)
    email = Column(String(255), unique=True, nullable=False, index=True)
    phone = Column(String(32), nullable=False)
    hashed_password = Column(String(255), nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)

    # Password reset: only the SHA-256 of the token is stored
    reset_token_hash = Column(String(64), nullable=True, index=True)
    reset_token_expires_at = Column(DateTime, nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(),
                        onupdate=func.now(), nullable=False)


# =====================================================
# ORDER MODEL
# =====================================================

class Order(Base):
    __tablename__ = "orders"

    id = Column(String(64), primary_key=True)           # app-assigned, e.g. ORD1700000000ABCD
    customer_id = Column(String(64), nullable=False)
    customer_name = Column(String(128), nullable=False)
    customer_email = Column(String(255), nullable=False)
    customer_phone = Column(String(32), nullable=False)

    amount = Column(Numeric(12, 2), nullable=False)     # decimal currency (rupees)
    currency = Column(String(3), nullable=False, default="INR")

    payment_method = Column(String(16), nullable=False)  # online / cod
    payment_status = Column(String(16), nullable=False, default=PaymentStatus.PENDING.value)
    order_status = Column(String(16), nullable=False, default=OrderStatus.PENDING.value)

    # Gateway linkage (online only)
    gateway = Column(String(16), nullable=True)          # stripe / cashfree
    gateway_reference = Column(String(255), nullable=True, index=True)  # cs_/pi_ id or cashfree order id
    gateway_intent_id = Column(String(255), nullable=True, index=True)
    payment_session_id = Column(String(255), nullable=True)
    checkout_url = Column(String(1024), nullable=True)
    failure_reason = Column(String(512), nullable=True)

    shipping_address = Column(String(512), nullable=True)
    shipping_city = Column(String(128), nullable=True)
    shipping_state = Column(String(128), nullable=True)
    shipping_pincode = Column(String(16), nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(),
                        onupdate=func.now(), nullable=False)

    __table_args__ = (
        Index("ix_orders_customer_created", "customer_id", "created_at"),
    )
