"""
Authentication Dependencies for FastAPI

Sessions are issued elsewhere; this module only checks the bearer token and
exposes the caller identity it carries.
"""

import logging
from typing import Optional

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from venue_ledger.models.user_model import UserRole
from venue_ledger.schemas.auth_schemas import Identity
from venue_ledger.utils.security import decode_jwt_token

logger = logging.getLogger(__name__)


bearer_scheme = HTTPBearer(
    auto_error=False,
    scheme_name="JWT Bearer Token",
    description="Enter the JWT token issued at login",
)


def get_current_identity(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
) -> Identity:
    """Get the caller identity from the JWT bearer token"""
    if not credentials:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Authentication required. Provide 'Authorization: Bearer <jwt_token>' header.",
            headers={"WWW-Authenticate": "Bearer"},
        )

    payload = decode_jwt_token(credentials.credentials)

    if not payload:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired JWT token",
        )

    email = payload.get("email")
    role = payload.get("role")

    if not email or role not in {r.value for r in UserRole}:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Token does not carry a valid identity",
        )

    logger.debug(f"Authenticated {email} ({role}) via JWT")
    return Identity(email=email, role=UserRole(role))


def require_role(*roles: UserRole):
    """
    Dependency to check the caller has one of the given roles

    Admins pass every role check.
    """

    allowed = set(roles)

    def check_role(identity: Identity = Depends(get_current_identity)) -> Identity:
        if identity.role == UserRole.ADMIN or identity.role in allowed:
            return identity

        logger.warning(
            f"{identity.email} with role '{identity.role.value}' denied "
            f"(requires one of: {', '.join(r.value for r in allowed)})"
        )
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail=f"Permission denied. Requires role: {', '.join(r.value for r in allowed)}",
        )

    return check_role
