"""Admin endpoints - regions, ambulances and users"""

from typing import Any, List
from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from ambulance_billing.api import deps
from ambulance_billing.core.exceptions import NotFoundError
from ambulance_billing.schemas.admin import (
    AmbulanceCreate,
    AmbulanceResponse,
    AmbulanceUpdate,
    RegionCreate,
    RegionResponse,
    RegionUpdate,
    UserCreate,
    UserResponse,
    UserUpdate,
)
from ambulance_billing.schemas.auth import Principal
from ambulance_billing.schemas.responses import SuccessResponse
from ambulance_billing.services.fleet_service import FleetService
from ambulance_billing.services.user_service import UserService

router = APIRouter()


# Regions
@router.get("/regions", response_model=SuccessResponse[List[RegionResponse]])
async def list_regions(
    _: Principal = Depends(deps.require_admin),
    db: AsyncSession = Depends(deps.get_db),
) -> Any:
    regions = await FleetService.list_regions(db)
    return SuccessResponse(data=[RegionResponse.model_validate(r) for r in regions])


@router.post("/regions", response_model=SuccessResponse[RegionResponse])
async def create_region(
    region_in: RegionCreate,
    _: Principal = Depends(deps.require_admin),
    db: AsyncSession = Depends(deps.get_db),
) -> Any:
    region = await FleetService.create_region(db, region_in)
    return SuccessResponse(data=RegionResponse.model_validate(region), message="Region created")


@router.patch("/regions/{region_id}", response_model=SuccessResponse[RegionResponse])
async def update_region(
    region_id: str,
    region_in: RegionUpdate,
    _: Principal = Depends(deps.require_admin),
    db: AsyncSession = Depends(deps.get_db),
) -> Any:
    region = await FleetService.update_region(db, region_id, region_in)
    return SuccessResponse(data=RegionResponse.model_validate(region), message="Region updated")


# Ambulances
@router.get("/ambulances", response_model=SuccessResponse[List[AmbulanceResponse]])
async def list_ambulances(
    _: Principal = Depends(deps.require_admin),
    db: AsyncSession = Depends(deps.get_db),
) -> Any:
    ambulances = await FleetService.list_ambulances(db)
    return SuccessResponse(data=[await FleetService.to_response(db, a) for a in ambulances])


@router.post("/ambulances", response_model=SuccessResponse[AmbulanceResponse])
async def create_ambulance(
    ambulance_in: AmbulanceCreate,
    _: Principal = Depends(deps.require_admin),
    db: AsyncSession = Depends(deps.get_db),
) -> Any:
    """Create an ambulance; operator_ids become its initial assignments."""
    ambulance = await FleetService.create_ambulance(db, ambulance_in)
    return SuccessResponse(data=await FleetService.to_response(db, ambulance), message="Ambulance created")


@router.patch("/ambulances/{ambulance_id}", response_model=SuccessResponse[AmbulanceResponse])
async def update_ambulance(
    ambulance_id: str,
    ambulance_in: AmbulanceUpdate,
    _: Principal = Depends(deps.require_admin),
    db: AsyncSession = Depends(deps.get_db),
) -> Any:
    """Rename, re-code or reassign operators. operator_ids replaces the current set."""
    ambulance = await FleetService.update_ambulance(db, ambulance_id, ambulance_in)
    return SuccessResponse(data=await FleetService.to_response(db, ambulance), message="Ambulance updated")


# Users
@router.get("/users", response_model=SuccessResponse[List[UserResponse]])
async def list_users(
    _: Principal = Depends(deps.require_admin),
    db: AsyncSession = Depends(deps.get_db),
) -> Any:
    users = await UserService.list_users(db)
    return SuccessResponse(data=[await UserService.to_response(db, u) for u in users])


@router.get("/users/{user_id}", response_model=SuccessResponse[UserResponse])
async def get_user(
    user_id: str,
    _: Principal = Depends(deps.require_admin),
    db: AsyncSession = Depends(deps.get_db),
) -> Any:
    user = await UserService.get_user_by_id(db, user_id)
    if not user:
        raise NotFoundError("User", user_id)
    return SuccessResponse(data=await UserService.to_response(db, user))


@router.post("/users", response_model=SuccessResponse[UserResponse])
async def create_user(
    user_in: UserCreate,
    _: Principal = Depends(deps.require_admin),
    db: AsyncSession = Depends(deps.get_db),
) -> Any:
    user = await UserService.create_user(db, user_in)
    return SuccessResponse(data=await UserService.to_response(db, user), message="User created")


@router.patch("/users/{user_id}", response_model=SuccessResponse[UserResponse])
async def update_user(
    user_id: str,
    user_in: UserUpdate,
    _: Principal = Depends(deps.require_admin),
    db: AsyncSession = Depends(deps.get_db),
) -> Any:
    """Region and ambulance lists replace the current assignments when given."""
    user = await UserService.update_user(db, user_id, user_in)
    return SuccessResponse(data=await UserService.to_response(db, user), message="User updated")
