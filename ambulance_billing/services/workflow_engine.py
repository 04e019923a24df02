"""
Workflow Engine - guarded bill status changes and payment recording.

Each public operation is a single unit of work on the session it is given:
read the bill, check the Transition Policy, write status + audit row (+
payment row) and commit. Any failure rolls the whole unit back before the
error propagates, so callers never observe a half-applied operation.

Status writes are compare-and-swap on the status that was read (and the read
takes a row lock where the backend supports it). The loser of two concurrent
requests on the same bill gets ConflictError, or AuthorizationError when it
already sees the new status.
"""

from contextlib import asynccontextmanager
from typing import Iterable, List, Optional, Type, TypeVar, Union

from pydantic import BaseModel as PydanticModel
from pydantic import ValidationError as PydanticValidationError
from sqlalchemy import select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from ambulance_billing.core.exceptions import (
    AuthorizationError,
    ConflictError,
    NotFoundError,
    StoreError,
    ValidationError,
    WorkflowError,
)
from ambulance_billing.core.logging import get_logger
from ambulance_billing.models.billing import Bill, BillAttachment, Payment
from ambulance_billing.models.enums import BillStatus, UserRole
from ambulance_billing.models.fleet import Ambulance
from ambulance_billing.schemas.auth import Principal
from ambulance_billing.schemas.billing import AttachmentRef, BillCreate, PaymentCreate
from ambulance_billing.services.assignment_service import AssignmentService
from ambulance_billing.services.audit_log_service import AuditLogService
from ambulance_billing.services import transition_policy
from ambulance_billing.utils.time import get_utc_now

logger = get_logger(__name__)

SchemaT = TypeVar("SchemaT", bound=PydanticModel)

CREATION_NOTE = "Bill submitted"


def payment_note(payment_mode: str) -> str:
    return f"Payment recorded ({payment_mode})"


def _coerce(schema: Type[SchemaT], data: Union[SchemaT, dict]) -> SchemaT:
    """Validate raw input against ``schema``; malformed input never reaches the store."""
    if isinstance(data, schema):
        return data
    try:
        return schema.model_validate(data)
    except PydanticValidationError as exc:
        fields = sorted({".".join(str(p) for p in err["loc"]) for err in exc.errors()})
        raise ValidationError(
            f"Invalid {schema.__name__}: {', '.join(fields)}",
            {"errors": exc.errors(include_url=False)},
        ) from exc


def _coerce_status(value: Union[BillStatus, str]) -> BillStatus:
    try:
        return BillStatus(value)
    except ValueError as exc:
        raise ValidationError(f"Unknown bill status {value!r}") from exc


def _require_active(principal: Principal) -> None:
    if not principal.is_active:
        raise AuthorizationError("Inactive users cannot act on bills")


@asynccontextmanager
async def unit_of_work(db: AsyncSession, operation: str):
    """Commit on success; roll back and classify the error otherwise."""
    try:
        yield
        await db.commit()
    except WorkflowError:
        await db.rollback()
        raise
    except SQLAlchemyError as exc:
        await db.rollback()
        logger.error(f"Store failure during {operation}", extra={"operation": operation}, exc_info=True)
        raise StoreError(f"Could not complete {operation}; no changes were saved") from exc
    except Exception:
        await db.rollback()
        raise


class WorkflowEngine:
    """Entry point for every bill mutation."""

    @staticmethod
    async def get_bill(db: AsyncSession, bill_id: str, lock: bool = False) -> Bill:
        query = (
            select(Bill)
            .where(Bill.id == bill_id)
            .execution_options(populate_existing=True)
        )
        if lock:
            query = query.with_for_update()
        bill = (await db.execute(query)).scalar_one_or_none()
        if bill is None:
            raise NotFoundError("Bill", bill_id)
        return bill

    @staticmethod
    async def _swap_status(db: AsyncSession, bill: Bill, expected: BillStatus, target: BillStatus) -> None:
        result = await db.execute(
            update(Bill)
            .where(Bill.id == bill.id, Bill.status == expected)
            .values(status=target, updated_at=get_utc_now())
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            raise ConflictError(
                f"Bill {bill.id} changed status concurrently; expected {expected.value}",
                {"bill_id": bill.id, "expected": expected.value},
            )

    @staticmethod
    def check_submission(
        principal: Principal,
        initial_status: Optional[Union[BillStatus, str]] = None,
    ) -> BillStatus:
        """
        Role and initial-status guards for bill submission, without touching the store.

        Returns:
            The status the new bill will start in

        Raises:
            AuthorizationError: Inactive caller, role that cannot submit, or
                an initial status the role may not use
            ValidationError: Unknown initial status
        """
        _require_active(principal)
        if not transition_policy.can_create_bill(principal.role):
            raise AuthorizationError(f"{principal.role.value} users cannot submit bills")

        requested = _coerce_status(initial_status) if initial_status is not None else None
        status = transition_policy.resolve_initial_status(principal.role, requested)
        if status is None:
            allowed = sorted(s.value for s in transition_policy.initial_statuses_for_role(principal.role))
            raise AuthorizationError(
                f"{principal.role.value} may create bills only in {', '.join(allowed)}"
                + ("" if requested is not None else "; an initial status is required")
            )
        return status

    @staticmethod
    async def create_bill(
        db: AsyncSession,
        principal: Principal,
        data: Union[BillCreate, dict],
        ambulance_id: str,
        initial_status: Optional[Union[BillStatus, str]] = None,
        attachments: Iterable[Union[AttachmentRef, dict]] = (),
    ) -> Bill:
        """
        Submit a new bill against an ambulance.

        Args:
            db: Database session
            principal: Authenticated caller (OPERATOR or ADMIN)
            data: Bill fields
            ambulance_id: Ambulance the bill is raised for; its region is copied
            initial_status: Omitted for operators, required for admins
            attachments: References already written to the attachment store

        Returns:
            The persisted bill

        Raises:
            AuthorizationError: Wrong role, wrong initial status, or operator
                not assigned to the ambulance
            ValidationError: Malformed fields
            NotFoundError: Unknown ambulance
        """
        status = WorkflowEngine.check_submission(principal, initial_status)
        fields = _coerce(BillCreate, data)
        refs = [_coerce(AttachmentRef, ref) for ref in attachments]

        async with unit_of_work(db, "create_bill"):
            ambulance = await db.get(Ambulance, ambulance_id)
            if ambulance is None:
                raise NotFoundError("Ambulance", ambulance_id)

            if principal.role == UserRole.OPERATOR and not await AssignmentService.is_assigned(
                db, principal.id, ambulance.id
            ):
                raise AuthorizationError(f"Ambulance {ambulance.code} is not assigned to you")

            operator_id = await AssignmentService.default_operator_id(db, principal, ambulance.id)

            bill = Bill(
                title=fields.title,
                vendor=fields.vendor,
                amount=fields.amount,
                currency=fields.currency,
                invoice_number=fields.invoice_number,
                invoice_date=fields.invoice_date,
                description=fields.description,
                status=status,
                region_id=ambulance.region_id,
                ambulance_id=ambulance.id,
                operator_id=operator_id,
            )
            db.add(bill)
            await db.flush()

            for ref in refs:
                db.add(BillAttachment(bill_id=bill.id, file_name=ref.file_name, file_url=ref.file_url))

            await AuditLogService.append(db, bill.id, principal.id, None, status, CREATION_NOTE)

        logger.info(
            "Bill created",
            extra={
                "bill_id": bill.id,
                "actor_id": principal.id,
                "ambulance_id": ambulance.id,
                "status": status.value,
                "attachments": len(refs),
            },
        )
        return bill

    @staticmethod
    async def transition_bill(
        db: AsyncSession,
        principal: Principal,
        bill_id: str,
        target_status: Union[BillStatus, str],
        note: Optional[str] = None,
    ) -> Bill:
        """
        Move a bill to ``target_status`` if the caller's role allows it.

        Re-sending a transition that already succeeded is rejected, not
        ignored: the bill is no longer in a status the role may act on.

        Raises:
            NotFoundError: Unknown bill
            AuthorizationError: Target not allowed for this role and status
            ConflictError: Another request changed the status first
        """
        _require_active(principal)
        target = _coerce_status(target_status)

        async with unit_of_work(db, "transition_bill"):
            bill = await WorkflowEngine.get_bill(db, bill_id, lock=True)
            current = bill.status
            allowed = (
                transition_policy.allowed_next_statuses(principal.role, current)
                - transition_policy.PAYMENT_ONLY_STATUSES
            )
            if target not in allowed:
                logger.warning(
                    "Transition rejected",
                    extra={
                        "bill_id": bill.id,
                        "actor_id": principal.id,
                        "role": principal.role.value,
                        "from_status": current.value,
                        "to_status": target.value,
                    },
                )
                raise AuthorizationError(
                    f"{principal.role.value} may not move a {current.value} bill to {target.value}",
                    {"bill_id": bill.id, "from": current.value, "to": target.value},
                )

            await WorkflowEngine._swap_status(db, bill, current, target)
            await AuditLogService.append(db, bill.id, principal.id, current, target, note)
            await db.refresh(bill)

        logger.info(
            "Bill transitioned",
            extra={
                "bill_id": bill.id,
                "actor_id": principal.id,
                "from_status": current.value,
                "to_status": target.value,
            },
        )
        return bill

    @staticmethod
    async def _upsert_payment(
        db: AsyncSession, bill_id: str, actor_id: str, fields: PaymentCreate
    ) -> Payment:
        result = await db.execute(select(Payment).where(Payment.bill_id == bill_id))
        payment = result.scalar_one_or_none()
        if payment is None:
            payment = Payment(bill_id=bill_id)
            db.add(payment)
        payment.reference_no = fields.reference_no
        payment.payment_date = fields.payment_date
        payment.amount_paid = fields.amount_paid
        payment.payment_mode = fields.payment_mode
        payment.notes = fields.notes
        payment.recorded_by_id = actor_id
        await db.flush()
        return payment

    @staticmethod
    async def record_payment(
        db: AsyncSession,
        principal: Principal,
        bill_id: str,
        data: Union[PaymentCreate, dict],
    ) -> Payment:
        """
        Record the payment for a bill awaiting payment and mark it PAID.

        Payment upsert, status change and audit row commit together or not at
        all.

        Raises:
            AuthorizationError: Caller is not ACCOUNTS
            ValidationError: Malformed payment fields
            NotFoundError: Unknown bill
            ConflictError: Bill is not PENDING_PAYMENT (including a repeat call)
        """
        _require_active(principal)
        if principal.role != UserRole.ACCOUNTS:
            raise AuthorizationError("Only accounts users can record payments")
        fields = _coerce(PaymentCreate, data)

        async with unit_of_work(db, "record_payment"):
            bill = await WorkflowEngine.get_bill(db, bill_id, lock=True)
            current = bill.status
            if BillStatus.PAID not in transition_policy.allowed_next_statuses(principal.role, current):
                raise ConflictError(
                    f"Bill {bill.id} is {current.value}, not ready for payment",
                    {"bill_id": bill.id, "status": current.value},
                )

            await WorkflowEngine._swap_status(db, bill, current, BillStatus.PAID)
            payment = await WorkflowEngine._upsert_payment(db, bill.id, principal.id, fields)
            await AuditLogService.append(
                db, bill.id, principal.id, current, BillStatus.PAID, payment_note(fields.payment_mode)
            )
            await db.refresh(bill)

        logger.info(
            "Payment recorded",
            extra={
                "bill_id": bill.id,
                "payment_id": payment.id,
                "actor_id": principal.id,
                "reference_no": fields.reference_no,
                "payment_mode": fields.payment_mode,
            },
        )
        return payment

    @staticmethod
    def available_transitions(principal: Principal, bill: Bill) -> List[BillStatus]:
        """Statuses the principal could move ``bill`` to with a plain transition."""
        allowed = (
            transition_policy.allowed_next_statuses(principal.role, bill.status)
            - transition_policy.PAYMENT_ONLY_STATUSES
        )
        return sorted(allowed, key=lambda s: list(BillStatus).index(s))
