"""
Authorization guards for farmer and admin routes.

Token claims are trusted only after signature and expiry checks, and every
guard reloads the account so status or role changes take effect on the next
request without revoking tokens.
"""

from __future__ import annotations

from typing import Optional

from fastapi import Depends, Header, Request

from .config import require_admin_approval
from .constants import Role, TokenType, parse_role
from .deps import get_credential_store
from .errors import ForbiddenError, UnauthorizedError
from .security import InvalidTokenError, TokenClaims, TokenExpiredError, decode_access_token
from ..services.accounts import status_outcome
from ..services.credential_store import AdminAccount, CredentialStore, FarmerAccount


def _extract_bearer_token(authorization: Optional[str]) -> Optional[str]:
    if not authorization:
        return None
    if not authorization.lower().startswith("bearer "):
        return None
    token = authorization.split(" ", 1)[1].strip()
    return token or None


def _claims_from_header(authorization: Optional[str]) -> TokenClaims:
    token = _extract_bearer_token(authorization)
    if not token:
        raise UnauthorizedError("Access token required")
    try:
        return decode_access_token(token)
    except TokenExpiredError:
        raise UnauthorizedError("Token expired") from None
    except InvalidTokenError:
        raise UnauthorizedError("Invalid token") from None


def get_authenticated_farmer(
    request: Request,
    authorization: Optional[str] = Header(None),
    store: CredentialStore = Depends(get_credential_store),
) -> FarmerAccount:
    """Valid farmer token and an existing account; status is not checked."""
    claims = _claims_from_header(authorization)
    if claims.token_type is not TokenType.FARMER:
        raise ForbiddenError("Farmer access required")
    farmer = store.find_farmer_by_id(claims.subject_id)
    if farmer is None:
        raise UnauthorizedError("Farmer not found")
    request.state.farmer = farmer
    return farmer


def require_farmer(farmer: FarmerAccount = Depends(get_authenticated_farmer)) -> FarmerAccount:
    result = status_outcome(farmer, approval_required=require_admin_approval())
    return result.raise_for_outcome()


def require_admin(*roles: Role | str):
    allowed = {parse_role(r) for r in roles} or {Role.MAIN_ADMIN}

    def _dep(
        request: Request,
        authorization: Optional[str] = Header(None),
        store: CredentialStore = Depends(get_credential_store),
    ) -> AdminAccount:
        claims = _claims_from_header(authorization)
        if claims.token_type is not TokenType.ADMIN:
            raise ForbiddenError("Admin access required")
        admin = store.find_admin_by_id(claims.subject_id)
        if admin is None:
            raise UnauthorizedError("Admin not found")
        if not admin.is_active:
            raise ForbiddenError("Admin account is inactive", status="INACTIVE")
        if admin.role not in allowed:
            raise ForbiddenError("Insufficient privileges")
        request.state.admin = admin
        return admin

    return _dep


require_main_admin = require_admin(Role.MAIN_ADMIN)
