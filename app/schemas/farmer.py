"""
Pydantic schemas for farmer registration, login and profile endpoints.

Payloads use camelCase on the wire (``fullName``, ``cropType``); field-level
rules (patterns, lengths, enums) are enforced by the account service so the
error messages stay consistent between endpoints.
"""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)


class OTPRequestIn(CamelModel):
    email: str
    full_name: str = ""


class OTPRequestOut(CamelModel):
    message: str
    email: str
    otp: Optional[str] = None


class RegisterIn(CamelModel):
    full_name: str
    email: str
    mobile: str
    password: str
    location: str
    crop_type: str
    language: Optional[str] = None

    def account_fields(self) -> dict:
        return self.model_dump(exclude_none=True)


class VerifyOTPIn(RegisterIn):
    otp: str = Field(min_length=1, max_length=12)

    def account_fields(self) -> dict:
        return self.model_dump(exclude={"otp"}, exclude_none=True)


class LoginIn(CamelModel):
    email: str
    password: str


class ProfileUpdateIn(CamelModel):
    # Status, verification and credentials are not part of self-service.
    model_config = ConfigDict(extra="forbid")

    full_name: Optional[str] = None
    mobile: Optional[str] = None
    location: Optional[str] = None
    crop_type: Optional[str] = None
    language: Optional[str] = None


class LanguageIn(CamelModel):
    language: str


class PasswordChangeIn(CamelModel):
    current_password: str
    new_password: str


class LoginHistoryEntry(CamelModel):
    timestamp: datetime
    ip_address: Optional[str] = None
    user_agent: Optional[str] = None


class FarmerOut(CamelModel):
    id: str
    full_name: str
    email: str
    mobile: str
    location: str
    crop_type: str
    language: str
    status: str
    is_active: bool
    is_verified: bool
    registered_at: datetime
    approved_at: Optional[datetime] = None
    approved_by_admin_id: Optional[str] = None
    rejection_reason: Optional[str] = None
    suspension_reason: Optional[str] = None
    last_login_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class FarmerDetailOut(FarmerOut):
    login_history: list[LoginHistoryEntry] = []


class FarmerLoginOut(CamelModel):
    message: str = "Login successful"
    token: str
    farmer: FarmerOut


class RegistrationOut(CamelModel):
    message: str
    farmer: FarmerOut
    token: Optional[str] = None


class FarmerEnvelope(CamelModel):
    message: Optional[str] = None
    farmer: FarmerOut


class MessageOut(CamelModel):
    message: str


class ProfileOut(CamelModel):
    farmer: FarmerDetailOut
