from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from ..db import get_db
from ..deps import get_app_settings
from ..config.settings import Settings
from ..schemas.auth import (
    CustomerResponse,
    ForgotPasswordRequest,
    MessageResponse,
    RegisterRequest,
    RegisterResponse,
    ResetPasswordRequest,
)
from ..services.auth_service import (
    issue_access_token,
    register_customer,
    request_password_reset,
    reset_password,
)

# main.py mounts this with prefix="/auth"
router = APIRouter(tags=["Auth"])


# -------------------------------------------
# Register
# -------------------------------------------
@router.post("/register", response_model=RegisterResponse, status_code=status.HTTP_201_CREATED)
def register(
    request: RegisterRequest,
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_app_settings),
):
    customer = register_customer(db, request)
    return RegisterResponse(
        customer=CustomerResponse.model_validate(customer),
        access_token=issue_access_token(customer, settings),
    )


# -------------------------------------------
# Forgot password
# -------------------------------------------
@router.post("/forgot-password", response_model=MessageResponse)
def forgot_password(
    request: ForgotPasswordRequest,
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_app_settings),
):
    # Same answer whether or not the account exists
    request_password_reset(db, request.email, settings)
    return MessageResponse(message="If an account exists for this email, reset instructions have been sent.")


# -------------------------------------------
# Reset password
# -------------------------------------------
@router.post("/reset-password", response_model=MessageResponse)
def reset_password_route(request: ResetPasswordRequest, db: Session = Depends(get_db)):
    reset_password(db, request.token, request.password)
    return MessageResponse(message="Password has been reset. You can now sign in.")
