"""Fleet Service - regions and ambulances (admin reference data)"""

import logging
from typing import List, Optional

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from ambulance_billing.core.exceptions import ConflictError, NotFoundError
from ambulance_billing.models.fleet import Ambulance, Region
from ambulance_billing.schemas.admin import (
    AmbulanceCreate,
    AmbulanceResponse,
    AmbulanceUpdate,
    RegionCreate,
    RegionUpdate,
)
from ambulance_billing.services.assignment_service import AssignmentService

logger = logging.getLogger(__name__)


class FleetService:
    @staticmethod
    async def create_region(db: AsyncSession, data: RegionCreate) -> Region:
        region = Region(name=data.name, city=data.city, state=data.state)
        db.add(region)
        await db.commit()
        await db.refresh(region)
        logger.info("Region created", extra={"region_id": region.id})
        return region

    @staticmethod
    async def get_region(db: AsyncSession, region_id: str) -> Region:
        region = await db.get(Region, region_id)
        if region is None:
            raise NotFoundError("Region", region_id)
        return region

    @staticmethod
    async def update_region(db: AsyncSession, region_id: str, data: RegionUpdate) -> Region:
        region = await FleetService.get_region(db, region_id)
        for field, value in data.model_dump(exclude_unset=True, exclude_none=True).items():
            setattr(region, field, value)
        await db.commit()
        await db.refresh(region)
        return region

    @staticmethod
    async def list_regions(db: AsyncSession) -> List[Region]:
        result = await db.execute(select(Region).order_by(Region.name, Region.id))
        return list(result.scalars().all())

    @staticmethod
    async def get_ambulance(db: AsyncSession, ambulance_id: str) -> Ambulance:
        ambulance = await db.get(Ambulance, ambulance_id)
        if ambulance is None:
            raise NotFoundError("Ambulance", ambulance_id)
        return ambulance

    @staticmethod
    async def _ensure_code_free(db: AsyncSession, code: str, ambulance_id: Optional[str] = None) -> None:
        query = select(Ambulance.id).where(Ambulance.code == code)
        if ambulance_id:
            query = query.where(Ambulance.id != ambulance_id)
        if await db.scalar(query):
            raise ConflictError(f"Ambulance code {code} is already in use")

    @staticmethod
    async def create_ambulance(db: AsyncSession, data: AmbulanceCreate) -> Ambulance:
        """
        Create an ambulance and assign its operators in one commit.

        Raises:
            NotFoundError: Unknown region or operator
            ConflictError: Code already used
            ValidationError: An assigned user is not an operator
        """
        await FleetService.get_region(db, data.region_id)
        await FleetService._ensure_code_free(db, data.code)

        ambulance = Ambulance(name=data.name, code=data.code, region_id=data.region_id)
        db.add(ambulance)
        try:
            await db.flush()
            await AssignmentService.reconcile_ambulance_operators(db, ambulance.id, data.operator_ids)
            await db.commit()
        except IntegrityError as exc:
            await db.rollback()
            raise ConflictError(f"Ambulance code {data.code} is already in use") from exc
        except Exception:
            await db.rollback()
            raise
        await db.refresh(ambulance)
        logger.info("Ambulance created", extra={"ambulance_id": ambulance.id, "code": ambulance.code})
        return ambulance

    @staticmethod
    async def update_ambulance(db: AsyncSession, ambulance_id: str, data: AmbulanceUpdate) -> Ambulance:
        """Rename/re-code an ambulance and reconcile its operators. Region is fixed."""
        ambulance = await FleetService.get_ambulance(db, ambulance_id)
        if data.code is not None and data.code != ambulance.code:
            await FleetService._ensure_code_free(db, data.code, ambulance.id)

        try:
            if data.name is not None:
                ambulance.name = data.name
            if data.code is not None:
                ambulance.code = data.code
            await db.flush()
            if data.operator_ids is not None:
                await AssignmentService.reconcile_ambulance_operators(db, ambulance.id, data.operator_ids)
            await db.commit()
        except IntegrityError as exc:
            await db.rollback()
            raise ConflictError(f"Ambulance code {data.code} is already in use") from exc
        except Exception:
            await db.rollback()
            raise
        await db.refresh(ambulance)
        return ambulance

    @staticmethod
    async def list_ambulances(db: AsyncSession) -> List[Ambulance]:
        result = await db.execute(select(Ambulance).order_by(Ambulance.name, Ambulance.id))
        return list(result.scalars().all())

    @staticmethod
    async def to_response(db: AsyncSession, ambulance: Ambulance) -> AmbulanceResponse:
        return AmbulanceResponse(
            id=ambulance.id,
            name=ambulance.name,
            code=ambulance.code,
            region_id=ambulance.region_id,
            operator_ids=await AssignmentService.list_operator_ids(db, ambulance.id),
            created_at=ambulance.created_at,
        )
