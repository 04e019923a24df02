"""Audit Log Service - append-only bill status history"""

from typing import List, Optional
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from ambulance_billing.models.billing import BillStatusLog
from ambulance_billing.models.enums import BillStatus


class AuditLogService:
    """
    Ledger of status transitions.

    ``append`` only flushes; the calling engine operation owns the commit so
    the log row and the status write land together. No update or delete is
    exposed.
    """

    @staticmethod
    async def append(
        db: AsyncSession,
        bill_id: str,
        actor_id: str,
        from_status: Optional[BillStatus],
        to_status: BillStatus,
        note: Optional[str] = None,
    ) -> BillStatusLog:
        entry = BillStatusLog(
            bill_id=bill_id,
            actor_id=actor_id,
            from_status=from_status,
            to_status=to_status,
            note=note,
        )
        db.add(entry)
        await db.flush()
        return entry

    @staticmethod
    async def list_for_bill(db: AsyncSession, bill_id: str) -> List[BillStatusLog]:
        """Bill history, newest first."""
        result = await db.execute(
            select(BillStatusLog)
            .where(BillStatusLog.bill_id == bill_id)
            .order_by(BillStatusLog.created_at.desc(), BillStatusLog.id.desc())
        )
        return list(result.scalars().all())

    @staticmethod
    async def list_for_actor(db: AsyncSession, actor_id: str) -> List[BillStatusLog]:
        """Everything a user has done to any bill, newest first."""
        result = await db.execute(
            select(BillStatusLog)
            .where(BillStatusLog.actor_id == actor_id)
            .order_by(BillStatusLog.created_at.desc(), BillStatusLog.id.desc())
        )
        return list(result.scalars().all())
