"""Ambulances the caller may submit bills for"""

from typing import Any, List
from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from ambulance_billing.api import deps
from ambulance_billing.schemas.admin import AmbulanceResponse
from ambulance_billing.schemas.auth import Principal
from ambulance_billing.schemas.responses import SuccessResponse
from ambulance_billing.services.assignment_service import AssignmentService
from ambulance_billing.services.fleet_service import FleetService

router = APIRouter()


@router.get("/assigned", response_model=SuccessResponse[List[AmbulanceResponse]])
async def list_assigned_ambulances(
    principal: Principal = Depends(deps.get_current_principal),
    db: AsyncSession = Depends(deps.get_db),
) -> Any:
    """All ambulances for admins, own assignments for operators."""
    ambulances = await AssignmentService.list_assigned_ambulances(db, principal)
    return SuccessResponse(data=[await FleetService.to_response(db, a) for a in ambulances])
