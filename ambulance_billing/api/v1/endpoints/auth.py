from typing import Any

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from ambulance_billing.api import deps
from ambulance_billing.core import security
from ambulance_billing.schemas.auth import LoginRequest, Token
from ambulance_billing.schemas.responses import SuccessResponse
from ambulance_billing.services.user_service import UserService

router = APIRouter()


@router.post("/login", response_model=SuccessResponse[Token])
async def login(
    login_data: LoginRequest,
    db: AsyncSession = Depends(deps.get_db)
) -> Any:
    """
    Unified login for all users.
    Returns a JWT access token carrying the user id and role.
    """
    user = await UserService.authenticate_user(db, email=login_data.email, password=login_data.password)
    if not user:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Incorrect email or password",
        )

    access_token = security.create_access_token(user.id, user.role)
    return SuccessResponse(
        data=Token(access_token=access_token, role=user.role, user_id=user.id),
        message="Login successful",
    )
