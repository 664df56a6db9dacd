"""Caller identity from the bearer token.

Tokens are issued by the auth service; here we only verify the signature
and read the tenant and role claims. Authorization beyond tenant scoping is
not enforced by this service.
"""

from dataclasses import dataclass

import structlog
from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt

from autoledger.config import settings
from autoledger.core.exceptions import BadRequestError, ForbiddenError
from autoledger.services.rule_types import ALL_TENANTS

logger = structlog.get_logger()

ADMIN_USER_TYPE = "ADMIN"


@dataclass(frozen=True)
class Caller:
    user_id: str
    user_type: str
    company_id: str | None = None

    @property
    def is_admin(self) -> bool:
        return self.user_type == ADMIN_USER_TYPE

    def processing_tenant(self) -> str:
        """Tenant id to classify under: admins use every company's rules."""
        if self.is_admin:
            return ALL_TENANTS
        if not self.company_id:
            raise BadRequestError("User has no company")
        return self.company_id

    def check_tenant_access(self, tenant_id: str) -> None:
        """Business users may only touch their own company."""
        if self.is_admin:
            return
        if not self.company_id:
            raise BadRequestError("User has no company")
        if tenant_id != self.company_id:
            raise ForbiddenError("Cannot access another company's data")


def decode_access_token(token: str) -> dict:
    try:
        return jwt.decode(token, settings.jwt_secret_key, algorithms=[settings.jwt_algorithm])
    except JWTError as e:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired token",
        ) from e


# ── Auth Dependencies ─────────────────────────────
security_scheme = HTTPBearer()


async def get_current_caller(
    credentials: HTTPAuthorizationCredentials = Depends(security_scheme),
) -> Caller:
    """FastAPI dependency: validate the JWT and return the caller."""
    payload = decode_access_token(credentials.credentials)

    user_id = payload.get("sub")
    if not user_id:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Token missing subject",
        )

    return Caller(
        user_id=str(user_id),
        user_type=payload.get("user_type", "BUSINESS"),
        company_id=payload.get("company_id"),
    )
