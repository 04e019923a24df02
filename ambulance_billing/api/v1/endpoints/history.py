"""History endpoint - what the caller has done to bills"""

from typing import Any
from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from ambulance_billing.api import deps
from ambulance_billing.schemas.auth import Principal
from ambulance_billing.schemas.billing import ActivityHistoryResponse
from ambulance_billing.schemas.responses import SuccessResponse
from ambulance_billing.services.bill_query_service import BillQueryService

router = APIRouter()


@router.get("", response_model=SuccessResponse[ActivityHistoryResponse])
async def my_history(
    principal: Principal = Depends(deps.get_current_principal),
    db: AsyncSession = Depends(deps.get_db),
) -> Any:
    """Workflow actions and payments performed by the caller."""
    return SuccessResponse(data=await BillQueryService.activity_history(db, principal))
