from datetime import datetime, timedelta
from typing import Optional

from fastapi import HTTPException
from sqlalchemy.orm import Session

from ..config.settings import Settings
from ..logging_config import get_logger
from ..models import Customer
from ..schemas.auth import RegisterRequest
from ..security import (
    create_access_token,
    generate_reset_token,
    hash_password,
    hash_reset_token,
)

logger = get_logger(__name__)


# ===============================
# REGISTRATION
# ===============================
def register_customer(db: Session, request: RegisterRequest) -> Customer:
    """Create a customer account; the form's two password fields must agree."""
    if request.password != request.confirm_password:
        raise HTTPException(status_code=400, detail="Passwords do not match")

    email = request.email.lower()
    if db.query(Customer).filter(Customer.email == email).first():
        raise HTTPException(status_code=409, detail="Account already exists. Please login.")

    customer = Customer(
        name=request.name,
        email=email,
        phone=request.phone,
        hashed_password=hash_password(request.password),
    )
    db.add(customer)
    db.commit()
    db.refresh(customer)
    logger.info("customer_registered", customer_id=customer.id)
    return customer


def issue_access_token(customer: Customer, settings: Settings) -> str:
    return create_access_token(
        {"sub": str(customer.id), "email": customer.email},
        secret=settings.JWT_SECRET,
        algorithm=settings.JWT_ALGORITHM,
        minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES,
    )


# ===============================
# PASSWORD RESET
# ===============================
def request_password_reset(db: Session, email: str, settings: Settings) -> Optional[str]:
    """
    Issue a one-time reset token for a known account.
    Returns the raw token (for the delivery channel) or None for unknown emails.
    """
    customer = db.query(Customer).filter(Customer.email == email.lower()).first()
    if not customer or not customer.is_active:
        logger.info("password_reset_unknown_email")
        return None

    token = generate_reset_token()
    customer.reset_token_hash = hash_reset_token(token)
    customer.reset_token_expires_at = datetime.utcnow() + timedelta(minutes=settings.PASSWORD_RESET_EXPIRE_MINUTES)
    db.commit()
    logger.info("password_reset_requested", customer_id=customer.id,
                expires_at=customer.reset_token_expires_at.isoformat())
    return token


def reset_password(db: Session, token: str, new_password: str) -> Customer:
    customer = (
        db.query(Customer)
        .filter(Customer.reset_token_hash == hash_reset_token(token))
        .first()
    )
    if not customer or not customer.reset_token_expires_at:
        raise HTTPException(status_code=400, detail="Invalid or expired reset token")
    if datetime.utcnow() > customer.reset_token_expires_at:
        raise HTTPException(status_code=400, detail="Invalid or expired reset token")

    customer.hashed_password = hash_password(new_password)
    # Token is single-use
    customer.reset_token_hash = None
    customer.reset_token_expires_at = None
    db.commit()
    logger.info("password_reset_completed", customer_id=customer.id)
    return customer
