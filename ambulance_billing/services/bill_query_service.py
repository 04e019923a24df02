"""Bill Query Service - read projections for the presentation layer"""

from typing import List, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from ambulance_billing.core.exceptions import NotFoundError
from ambulance_billing.models.billing import Bill, BillAttachment, Payment
from ambulance_billing.models.enums import BillStatus, UserRole
from ambulance_billing.schemas.auth import Principal
from ambulance_billing.schemas.billing import (
    ActivityHistoryResponse,
    AttachmentResponse,
    BillDetailResponse,
    BillResponse,
    PaymentResponse,
    StatusLogResponse,
)
from ambulance_billing.services.audit_log_service import AuditLogService
from ambulance_billing.services import transition_policy
from ambulance_billing.services.workflow_engine import WorkflowEngine

# Status each reviewing role works from
QUEUE_STATUS = {
    UserRole.LEVEL1: BillStatus.PENDING_L1,
    UserRole.LEVEL2: BillStatus.PENDING_L2,
    UserRole.ACCOUNTS: BillStatus.PENDING_PAYMENT,
}


class BillQueryService:
    @staticmethod
    async def list_queue(db: AsyncSession, principal: Principal) -> List[Bill]:
        """
        Work queue for a principal, newest first.

        Operators see the bills they submitted, reviewers the bills waiting
        at their level, admins everything.
        """
        query = select(Bill).order_by(Bill.created_at.desc(), Bill.id.desc())
        if principal.role == UserRole.OPERATOR:
            query = query.where(Bill.operator_id == principal.id)
        elif principal.role in QUEUE_STATUS:
            query = query.where(Bill.status == QUEUE_STATUS[principal.role])
        elif principal.role != UserRole.ADMIN:
            return []
        result = await db.execute(query)
        return list(result.scalars().all())

    @staticmethod
    async def get_visible_bill(db: AsyncSession, principal: Principal, bill_id: str) -> Bill:
        """Operators may only open their own bills; others look identical to missing ones."""
        bill = await WorkflowEngine.get_bill(db, bill_id)
        if principal.role == UserRole.OPERATOR and bill.operator_id != principal.id:
            raise NotFoundError("Bill", bill_id)
        return bill

    @staticmethod
    async def get_payment(db: AsyncSession, bill_id: str) -> Optional[Payment]:
        result = await db.execute(select(Payment).where(Payment.bill_id == bill_id))
        return result.scalar_one_or_none()

    @staticmethod
    async def get_detail(db: AsyncSession, principal: Principal, bill_id: str) -> BillDetailResponse:
        bill = await BillQueryService.get_visible_bill(db, principal, bill_id)
        attachments = await db.execute(
            select(BillAttachment)
            .where(BillAttachment.bill_id == bill.id)
            .order_by(BillAttachment.created_at, BillAttachment.id)
        )
        history = await AuditLogService.list_for_bill(db, bill.id)
        payment = await BillQueryService.get_payment(db, bill.id)

        return BillDetailResponse(
            **BillResponse.model_validate(bill).model_dump(),
            attachments=[AttachmentResponse.model_validate(a) for a in attachments.scalars().all()],
            history=[StatusLogResponse.model_validate(entry) for entry in history],
            payment=PaymentResponse.model_validate(payment) if payment else None,
            allowed_next_statuses=WorkflowEngine.available_transitions(principal, bill),
            is_final=transition_policy.is_terminal(bill.status),
        )

    @staticmethod
    async def activity_history(db: AsyncSession, principal: Principal) -> ActivityHistoryResponse:
        """Status changes made by the principal and payments they recorded."""
        actions = await AuditLogService.list_for_actor(db, principal.id)
        payments = await db.execute(
            select(Payment)
            .where(Payment.recorded_by_id == principal.id)
            .order_by(Payment.payment_date.desc(), Payment.id.desc())
        )
        return ActivityHistoryResponse(
            actions=[StatusLogResponse.model_validate(entry) for entry in actions],
            payments=[PaymentResponse.model_validate(p) for p in payments.scalars().all()],
        )
