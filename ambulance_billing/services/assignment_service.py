"""Assignment Service - which ambulances and operators a bill may reference"""

import logging
from typing import Iterable, List, Set, Tuple

from sqlalchemy import delete, exists, select
from sqlalchemy.ext.asyncio import AsyncSession

from ambulance_billing.core.exceptions import NotFoundError, ValidationError
from ambulance_billing.models.enums import UserRole
from ambulance_billing.models.fleet import Ambulance, AmbulanceOperatorAssignment, Region
from ambulance_billing.models.user import User, UserRegionAssignment
from ambulance_billing.schemas.auth import Principal

logger = logging.getLogger(__name__)


class AssignmentService:
    """
    Read side: visibility of ambulances per principal and default operator
    resolution. Write side: set reconciliation of assignment rows, always
    inside the caller's transaction (flush only).
    """

    @staticmethod
    async def list_assigned_ambulances(db: AsyncSession, principal: Principal) -> List[Ambulance]:
        """
        Ambulances a principal may submit bills against, ordered by name then id.

        ADMIN sees the whole fleet, OPERATOR only their assignments, every
        other role nothing.
        """
        query = select(Ambulance).order_by(Ambulance.name, Ambulance.id)
        if principal.role == UserRole.OPERATOR:
            query = query.join(
                AmbulanceOperatorAssignment,
                AmbulanceOperatorAssignment.ambulance_id == Ambulance.id,
            ).where(AmbulanceOperatorAssignment.operator_id == principal.id)
        elif principal.role != UserRole.ADMIN:
            return []
        result = await db.execute(query)
        return list(result.scalars().all())

    @staticmethod
    async def is_assigned(db: AsyncSession, operator_id: str, ambulance_id: str) -> bool:
        return bool(await db.scalar(
            select(exists().where(
                AmbulanceOperatorAssignment.operator_id == operator_id,
                AmbulanceOperatorAssignment.ambulance_id == ambulance_id,
            ))
        ))

    @staticmethod
    async def list_operator_ids(db: AsyncSession, ambulance_id: str) -> List[str]:
        """Operators of an ambulance in assignment order."""
        result = await db.execute(
            select(AmbulanceOperatorAssignment.operator_id)
            .where(AmbulanceOperatorAssignment.ambulance_id == ambulance_id)
            .order_by(AmbulanceOperatorAssignment.created_at, AmbulanceOperatorAssignment.id)
        )
        return [row[0] for row in result.all()]

    @staticmethod
    async def default_operator_id(db: AsyncSession, principal: Principal, ambulance_id: str) -> str:
        """
        Submitting operator for a bill created by ``principal``.

        Operators submit as themselves. For admins this is the first assigned
        operator of the ambulance, or the admin when nobody is assigned.
        """
        if principal.role == UserRole.OPERATOR:
            return principal.id
        operator_ids = await AssignmentService.list_operator_ids(db, ambulance_id)
        return operator_ids[0] if operator_ids else principal.id

    # ------------------------------------------------------------------
    # Reconciliation
    # ------------------------------------------------------------------

    @staticmethod
    async def _reconcile(
        db: AsyncSession,
        model,
        owner_key: str,
        owner_id: str,
        member_key: str,
        desired: Iterable[str],
    ) -> Tuple[Set[str], Set[str]]:
        owner_col = getattr(model, owner_key)
        member_col = getattr(model, member_key)
        result = await db.execute(select(member_col).where(owner_col == owner_id))
        existing = {row[0] for row in result.all()}
        wanted = set(desired)

        to_add = wanted - existing
        to_remove = existing - wanted
        if to_remove:
            await db.execute(
                delete(model)
                .where(owner_col == owner_id, member_col.in_(to_remove))
                .execution_options(synchronize_session=False)
            )
        for member_id in sorted(to_add):
            db.add(model(**{owner_key: owner_id, member_key: member_id}))
        await db.flush()

        if to_add or to_remove:
            logger.info(
                "Assignments reconciled",
                extra={
                    "table": model.__tablename__,
                    "owner_id": owner_id,
                    "added": sorted(to_add),
                    "removed": sorted(to_remove),
                },
            )
        return to_add, to_remove

    @staticmethod
    async def _check_operators(db: AsyncSession, operator_ids: Set[str]) -> None:
        if not operator_ids:
            return
        result = await db.execute(select(User.id, User.role).where(User.id.in_(operator_ids)))
        found = {row[0]: row[1] for row in result.all()}
        for operator_id in sorted(operator_ids):
            if operator_id not in found:
                raise NotFoundError("User", operator_id)
            if found[operator_id] != UserRole.OPERATOR:
                raise ValidationError(f"User {operator_id} is not an operator")

    @staticmethod
    async def _check_exist(db: AsyncSession, model, ids: Set[str]) -> None:
        if not ids:
            return
        result = await db.execute(select(model.id).where(model.id.in_(ids)))
        found = {row[0] for row in result.all()}
        missing = sorted(ids - found)
        if missing:
            raise NotFoundError(model.__name__, missing[0])

    @staticmethod
    async def reconcile_ambulance_operators(
        db: AsyncSession, ambulance_id: str, operator_ids: Iterable[str]
    ) -> Tuple[Set[str], Set[str]]:
        """Make the ambulance's operator set equal ``operator_ids``."""
        wanted = set(operator_ids)
        await AssignmentService._check_operators(db, wanted)
        return await AssignmentService._reconcile(
            db, AmbulanceOperatorAssignment, "ambulance_id", ambulance_id, "operator_id", wanted
        )

    @staticmethod
    async def reconcile_user_ambulances(
        db: AsyncSession, user: User, ambulance_ids: Iterable[str]
    ) -> Tuple[Set[str], Set[str]]:
        """Make an operator's ambulance set equal ``ambulance_ids``."""
        wanted = set(ambulance_ids)
        if wanted and user.role != UserRole.OPERATOR:
            raise ValidationError("Only operators can be assigned to ambulances")
        await AssignmentService._check_exist(db, Ambulance, wanted)
        return await AssignmentService._reconcile(
            db, AmbulanceOperatorAssignment, "operator_id", user.id, "ambulance_id", wanted
        )

    @staticmethod
    async def reconcile_user_regions(
        db: AsyncSession, user_id: str, region_ids: Iterable[str]
    ) -> Tuple[Set[str], Set[str]]:
        """Make a user's region set equal ``region_ids``."""
        wanted = set(region_ids)
        await AssignmentService._check_exist(db, Region, wanted)
        return await AssignmentService._reconcile(
            db, UserRegionAssignment, "user_id", user_id, "region_id", wanted
        )

    @staticmethod
    async def list_region_ids(db: AsyncSession, user_id: str) -> List[str]:
        result = await db.execute(
            select(UserRegionAssignment.region_id)
            .where(UserRegionAssignment.user_id == user_id)
            .order_by(UserRegionAssignment.created_at, UserRegionAssignment.id)
        )
        return [row[0] for row in result.all()]

    @staticmethod
    async def list_ambulance_ids(db: AsyncSession, operator_id: str) -> List[str]:
        result = await db.execute(
            select(AmbulanceOperatorAssignment.ambulance_id)
            .where(AmbulanceOperatorAssignment.operator_id == operator_id)
            .order_by(AmbulanceOperatorAssignment.created_at, AmbulanceOperatorAssignment.id)
        )
        return [row[0] for row in result.all()]
