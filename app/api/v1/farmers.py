"""
Farmer registration, login and profile endpoints.

Registration has two paths: the email OTP flow (request-otp, then
verify-otp with the full profile) and, when admin approval is required, a
single-step register that creates a pending, unverified account.
"""

from __future__ import annotations

import logging
import re

from fastapi import APIRouter, Depends, Request

from ...core.auth import get_authenticated_farmer, require_farmer
from ...core.config import get_app_env, require_admin_approval
from ...core.constants import EMAIL_PATTERN
from ...core.deps import client_ip, get_account_service, get_credential_store, get_otp_verifier
from ...core.errors import ConflictError, InternalError, UnauthorizedError, ValidationError
from ...schemas.farmer import (
    FarmerDetailOut,
    FarmerEnvelope,
    FarmerLoginOut,
    FarmerOut,
    LanguageIn,
    LoginIn,
    MessageOut,
    OTPRequestIn,
    OTPRequestOut,
    PasswordChangeIn,
    ProfileOut,
    ProfileUpdateIn,
    RegisterIn,
    RegistrationOut,
    VerifyOTPIn,
)
from ...services.accounts import AccountService, farmer_token, validate_registration
from ...services.credential_store import CredentialStore, FarmerAccount, normalize_email
from ...services.otp import OTPVerifier

router = APIRouter(prefix="/api/v1/farmers", tags=["farmers"])
logger = logging.getLogger("farmers")

_EMAIL_RE = re.compile(EMAIL_PATTERN)
EMAIL_TAKEN = "Email already registered"


@router.post("/register/request-otp", response_model=OTPRequestOut, response_model_exclude_none=True)
def request_otp(
    payload: OTPRequestIn,
    store: CredentialStore = Depends(get_credential_store),
    verifier: OTPVerifier = Depends(get_otp_verifier),
) -> OTPRequestOut:
    email = normalize_email(payload.email)
    if not _EMAIL_RE.match(email):
        raise ValidationError(errors=[{"field": "email", "message": "Please enter a valid email address"}])
    if store.find_farmer_by_email(email):
        raise ConflictError(EMAIL_TAKEN)
    issued = verifier.issue(email, payload.full_name.strip())
    if issued.delivered:
        return OTPRequestOut(message="Verification code sent to your email", email=email)
    if get_app_env() == "prod":
        raise InternalError("Failed to send verification email. Please try again later.")
    logger.warning("OTP email not delivered; echoing code in dev response")
    return OTPRequestOut(message="Email delivery unavailable; development code included", email=email, otp=issued.code)


@router.post("/register/verify-otp", status_code=201, response_model=RegistrationOut, response_model_exclude_unset=True)
def verify_otp_and_register(
    payload: VerifyOTPIn,
    service: AccountService = Depends(get_account_service),
    verifier: OTPVerifier = Depends(get_otp_verifier),
) -> RegistrationOut:
    fields = payload.account_fields()
    # Reject bad profile data before spending an OTP attempt on it.
    validate_registration(fields)
    if service.store.find_farmer_by_email_or_mobile(fields["email"], fields["mobile"]):
        raise ConflictError("Farmer with this email or mobile number already exists")
    result = verifier.verify(fields["email"], payload.otp)
    if not result.valid:
        raise UnauthorizedError("Invalid or expired verification code", reason=result.reason.value)
    account = service.register(fields, email_verified=True)
    if service.is_login_ready(account):
        return RegistrationOut(
            message="Registration successful",
            farmer=FarmerOut.model_validate(account),
            token=farmer_token(account),
        )
    return RegistrationOut(
        message="Registration successful. Your account is pending admin approval.",
        farmer=FarmerOut.model_validate(account),
    )


@router.post("/register", status_code=201, response_model=RegistrationOut, response_model_exclude_unset=True)
def register(payload: RegisterIn, service: AccountService = Depends(get_account_service)) -> RegistrationOut:
    if not require_admin_approval():
        raise ValidationError("Email verification is required. Use /register/request-otp first.")
    account = service.register(payload.account_fields(), email_verified=False)
    return RegistrationOut(
        message="Registration successful. Your account is pending admin approval.",
        farmer=FarmerOut.model_validate(account),
    )


@router.post("/login", response_model=FarmerLoginOut)
def login(
    payload: LoginIn,
    request: Request,
    service: AccountService = Depends(get_account_service),
) -> FarmerLoginOut:
    account = service.authenticate(
        payload.email,
        payload.password,
        ip_address=client_ip(request),
        user_agent=request.headers.get("user-agent"),
    )
    return FarmerLoginOut(token=farmer_token(account), farmer=FarmerOut.model_validate(account))


@router.get("/profile", response_model=ProfileOut)
def get_profile(farmer: FarmerAccount = Depends(get_authenticated_farmer)) -> ProfileOut:
    return ProfileOut(farmer=FarmerDetailOut.model_validate(farmer))


@router.put("/profile", response_model=FarmerEnvelope)
def update_profile(
    payload: ProfileUpdateIn,
    farmer: FarmerAccount = Depends(require_farmer),
    service: AccountService = Depends(get_account_service),
) -> FarmerEnvelope:
    updated = service.update_profile(farmer.id, payload.model_dump(exclude_unset=True))
    return FarmerEnvelope(message="Profile updated successfully", farmer=FarmerOut.model_validate(updated))


@router.put("/profile/language", response_model=FarmerEnvelope)
def update_language(
    payload: LanguageIn,
    farmer: FarmerAccount = Depends(require_farmer),
    service: AccountService = Depends(get_account_service),
) -> FarmerEnvelope:
    updated = service.update_profile(farmer.id, {"language": payload.language})
    return FarmerEnvelope(message="Language preference updated", farmer=FarmerOut.model_validate(updated))


@router.put("/password", response_model=MessageOut)
def change_password(
    payload: PasswordChangeIn,
    farmer: FarmerAccount = Depends(require_farmer),
    service: AccountService = Depends(get_account_service),
) -> MessageOut:
    service.change_password(farmer.id, payload.current_password, payload.new_password)
    return MessageOut(message="Password changed successfully")
