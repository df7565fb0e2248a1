from typing import Optional

from pydantic import BaseModel, ConfigDict, EmailStr, constr


class RegisterRequest(BaseModel):
    name: constr(min_length=1, max_length=128)
    email: EmailStr
    phone: constr(min_length=6, max_length=20)
    password: constr(min_length=6)
    confirm_password: constr(min_length=6)


class ForgotPasswordRequest(BaseModel):
    email: EmailStr


class ResetPasswordRequest(BaseModel):
    token: constr(min_length=16)
    password: constr(min_length=6)


class CustomerResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    email: EmailStr
    phone: str
    is_active: bool


class RegisterResponse(BaseModel):
    customer: CustomerResponse
    access_token: str
    token_type: str = "bearer"


class MessageResponse(BaseModel):
    message: str
    success: bool = True
    details: Optional[dict] = None
