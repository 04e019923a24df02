"""API Dependencies"""

from typing import Optional
from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.ext.asyncio import AsyncSession

from ambulance_billing.database import get_db
from ambulance_billing.core.security import ACCESS_TOKEN_TYPE, decode_token
from ambulance_billing.models.enums import UserRole
from ambulance_billing.models.user import User
from ambulance_billing.schemas.auth import Principal
from ambulance_billing.services.user_service import UserService

__all__ = ["get_db", "get_current_user", "get_current_principal", "require_admin"]

# Security scheme for bearer token
security = HTTPBearer()


async def get_current_user(
    db: AsyncSession = Depends(get_db),
    credentials: HTTPAuthorizationCredentials = Depends(security)
) -> User:
    """
    Get current authenticated user from JWT token.

    Args:
        db: Database session
        credentials: HTTP authorization credentials

    Returns:
        Current user

    Raises:
        HTTPException: If token is invalid, user not found or inactive
    """
    payload = decode_token(credentials.credentials)
    if not payload or payload.get("type") != ACCESS_TOKEN_TYPE:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Could not validate credentials",
            headers={"WWW-Authenticate": "Bearer"},
        )

    user_id: Optional[str] = payload.get("sub")
    if not user_id:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Could not validate credentials",
            headers={"WWW-Authenticate": "Bearer"},
        )

    user = await UserService.get_user_by_id(db, user_id)
    if not user:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="User not found",
            headers={"WWW-Authenticate": "Bearer"},
        )

    if not user.is_active:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Inactive user"
        )

    return user


async def get_current_principal(
    current_user: User = Depends(get_current_user),
) -> Principal:
    """The engine only ever sees id, role and active flag."""
    return Principal(id=current_user.id, role=current_user.role, is_active=current_user.is_active)


async def require_admin(
    principal: Principal = Depends(get_current_principal),
) -> Principal:
    """Require ADMIN role."""
    if principal.role != UserRole.ADMIN:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Not enough permissions"
        )
    return principal
