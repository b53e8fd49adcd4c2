from pydantic import BaseModel, EmailStr, Field
from typing import Literal, Optional
from datetime import datetime
from models.base import CamelModel


class AccountSettings(CamelModel):
    auto_notifications: bool = True
    notification_template: str = "Your order #{orderId} is ready! Please collect it from the counter."
    qr_code_enabled: bool = True


class SendOtpRequest(CamelModel):
    phone_number: str = Field(..., min_length=1)
    restaurant_name: Optional[str] = None
    user_type: Literal["customer", "restaurant", "owner", "staff"] = "customer"


class VerifyOtpRequest(CamelModel):
    phone_number: str = Field(..., min_length=1)
    otp: str = Field(..., min_length=1)


class RegisterRequest(CamelModel):
    restaurant_name: str = Field(..., min_length=1)
    phone_number: str = Field(..., min_length=1)
    email: Optional[EmailStr] = None
    password: Optional[str] = None


class LoginRequest(CamelModel):
    phone_number: str = Field(..., min_length=1)
    password: str = Field(..., min_length=1)


class ProfileUpdate(CamelModel):
    restaurant_name: Optional[str] = None
    email: Optional[EmailStr] = None
    # partial settings, merged into the stored ones
    settings: Optional[dict] = None


class PrincipalOut(CamelModel):
    id: str
    phone_number: Optional[str] = None
    restaurant_name: Optional[str] = None
    name: Optional[str] = None
    role: str
    settings: dict = Field(default_factory=dict)


class AccountOut(CamelModel):
    id: str
    restaurant_name: str
    phone_number: str
    email: Optional[str] = None
    role: str = "owner"
    is_active: bool = True
    whatsapp_enabled: bool = True
    settings: AccountSettings = Field(default_factory=AccountSettings)
    last_login: Optional[datetime] = None
    created_at: Optional[datetime] = None
