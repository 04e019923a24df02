"""Workflow engine against a real database session."""

import asyncio
from datetime import datetime, timedelta
from decimal import Decimal
from unittest.mock import AsyncMock

import pytest
from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError

from ambulance_billing.core.exceptions import (
    AuthorizationError,
    ConflictError,
    NotFoundError,
    StoreError,
    ValidationError,
)
from ambulance_billing.models import Bill, BillAttachment, BillStatus, BillStatusLog, Payment
from ambulance_billing.schemas.auth import Principal
from ambulance_billing.services.audit_log_service import AuditLogService
from ambulance_billing.services.workflow_engine import CREATION_NOTE, WorkflowEngine
from tests.conftest import bill_fields, payment_fields


async def _submit(session_factory, world, **overrides):
    async with session_factory() as db:
        return await WorkflowEngine.create_bill(db, world.operator, bill_fields(**overrides), world.ambulance.id)


async def _advance(session_factory, world, bill_id, *steps):
    """Apply (principal_key, status) transitions in order."""
    for key, status in steps:
        async with session_factory() as db:
            await WorkflowEngine.transition_bill(db, getattr(world, key), bill_id, status)


async def _state(session_factory, bill_id):
    """Bill, its log rows (oldest first) and payment, read in a fresh session."""
    async with session_factory() as db:
        bill = await db.get(Bill, bill_id)
        logs = (await db.execute(
            select(BillStatusLog)
            .where(BillStatusLog.bill_id == bill_id)
            .order_by(BillStatusLog.created_at, BillStatusLog.id)
        )).scalars().all()
        payment = (await db.execute(select(Payment).where(Payment.bill_id == bill_id))).scalar_one_or_none()
        return bill, list(logs), payment


def _chain_is_consistent(bill, logs):
    """Each log row starts where the previous ended and the last matches the bill."""
    assert logs[0].from_status is None
    for previous, entry in zip(logs, logs[1:]):
        assert entry.from_status == previous.to_status
    assert logs[-1].to_status == bill.status


# ---------------------------------------------------------------------------
# Creation
# ---------------------------------------------------------------------------

async def test_operator_submits_bill(session_factory, world):
    """An operator bill starts at PENDING_L1 with one creation entry."""
    bill = await _submit(session_factory, world)

    stored, logs, payment = await _state(session_factory, bill.id)
    assert stored.status == BillStatus.PENDING_L1
    assert stored.region_id == world.region.id
    assert stored.ambulance_id == world.ambulance.id
    assert stored.operator_id == world.operator.id
    assert stored.amount == Decimal("1500.50")
    assert payment is None

    assert len(logs) == 1
    assert logs[0].from_status is None
    assert logs[0].to_status == BillStatus.PENDING_L1
    assert logs[0].actor_id == world.operator.id
    assert logs[0].note == CREATION_NOTE


async def test_operator_submits_with_attachments(session_factory, world):
    async with session_factory() as db:
        bill = await WorkflowEngine.create_bill(
            db,
            world.operator,
            bill_fields(),
            world.ambulance.id,
            attachments=[{"file_name": "invoice.pdf", "file_url": "/uploads/bills/1-a.pdf"}],
        )

    async with session_factory() as db:
        rows = (await db.execute(select(BillAttachment).where(BillAttachment.bill_id == bill.id))).scalars().all()
    assert [(r.file_name, r.file_url) for r in rows] == [("invoice.pdf", "/uploads/bills/1-a.pdf")]


async def test_operator_cannot_submit_for_unassigned_ambulance(session_factory, world):
    async with session_factory() as db:
        with pytest.raises(AuthorizationError):
            await WorkflowEngine.create_bill(db, world.operator, bill_fields(), world.spare.id)

    async with session_factory() as db:
        assert await db.scalar(select(func.count()).select_from(Bill)) == 0
        assert await db.scalar(select(func.count()).select_from(BillStatusLog)) == 0


async def test_operator_cannot_choose_initial_status(session_factory, world):
    async with session_factory() as db:
        with pytest.raises(AuthorizationError):
            await WorkflowEngine.create_bill(
                db, world.operator, bill_fields(), world.ambulance.id, initial_status=BillStatus.PENDING_L2
            )


@pytest.mark.parametrize("role_key", ["level1", "level2", "accounts"])
async def test_reviewers_cannot_submit(session_factory, world, role_key):
    async with session_factory() as db:
        with pytest.raises(AuthorizationError):
            await WorkflowEngine.create_bill(db, getattr(world, role_key), bill_fields(), world.ambulance.id)


async def test_unknown_ambulance_is_not_found(session_factory, world):
    async with session_factory() as db:
        with pytest.raises(NotFoundError):
            await WorkflowEngine.create_bill(db, world.operator, bill_fields(), "no-such-ambulance")


async def test_invalid_fields_write_nothing(session_factory, world):
    async with session_factory() as db:
        with pytest.raises(ValidationError):
            await WorkflowEngine.create_bill(db, world.operator, bill_fields(amount=Decimal("0")), world.ambulance.id)

    async with session_factory() as db:
        assert await db.scalar(select(func.count()).select_from(Bill)) == 0


async def test_inactive_principal_rejected(session_factory, world):
    inactive = Principal(id=world.operator.id, role=world.operator.role, is_active=False)
    async with session_factory() as db:
        with pytest.raises(AuthorizationError):
            await WorkflowEngine.create_bill(db, inactive, bill_fields(), world.ambulance.id)


async def test_admin_must_choose_initial_status(session_factory, world):
    async with session_factory() as db:
        with pytest.raises(AuthorizationError):
            await WorkflowEngine.create_bill(db, world.admin, bill_fields(), world.ambulance.id)
        with pytest.raises(AuthorizationError):
            await WorkflowEngine.create_bill(
                db, world.admin, bill_fields(), world.ambulance.id, initial_status=BillStatus.PAID
            )


async def test_admin_creates_bill_for_assigned_operator(session_factory, world):
    async with session_factory() as db:
        bill = await WorkflowEngine.create_bill(
            db, world.admin, bill_fields(), world.ambulance.id, initial_status="PENDING_PAYMENT"
        )
    stored, logs, _ = await _state(session_factory, bill.id)
    assert stored.status == BillStatus.PENDING_PAYMENT
    assert stored.operator_id == world.operator.id
    assert logs[0].actor_id == world.admin.id


async def test_admin_is_operator_of_unstaffed_ambulance(session_factory, world):
    async with session_factory() as db:
        bill = await WorkflowEngine.create_bill(
            db, world.admin, bill_fields(), world.spare.id, initial_status=BillStatus.PENDING_L1
        )
    assert bill.operator_id == world.admin.id


# ---------------------------------------------------------------------------
# Transitions
# ---------------------------------------------------------------------------

async def test_level1_approves(session_factory, world):
    bill = await _submit(session_factory, world)

    async with session_factory() as db:
        moved = await WorkflowEngine.transition_bill(
            db, world.level1, bill.id, BillStatus.PENDING_L2, note="Receipts match"
        )
    assert moved.status == BillStatus.PENDING_L2

    stored, logs, _ = await _state(session_factory, bill.id)
    assert stored.status == BillStatus.PENDING_L2
    assert len(logs) == 2
    assert (logs[1].from_status, logs[1].to_status) == (BillStatus.PENDING_L1, BillStatus.PENDING_L2)
    assert logs[1].actor_id == world.level1.id
    assert logs[1].note == "Receipts match"
    _chain_is_consistent(stored, logs)


async def test_level2_cannot_act_on_pending_l1(session_factory, world):
    bill = await _submit(session_factory, world)

    async with session_factory() as db:
        with pytest.raises(AuthorizationError):
            await WorkflowEngine.transition_bill(db, world.level2, bill.id, BillStatus.PENDING_PAYMENT)

    stored, logs, _ = await _state(session_factory, bill.id)
    assert stored.status == BillStatus.PENDING_L1
    assert len(logs) == 1


async def test_reload_failure_after_transition_is_store_error(session_factory, world, monkeypatch):
    bill = await _submit(session_factory, world)

    async with session_factory() as db:
        monkeypatch.setattr(db, "refresh", AsyncMock(side_effect=SQLAlchemyError("connection reset")))
        with pytest.raises(StoreError):
            await WorkflowEngine.transition_bill(db, world.level1, bill.id, BillStatus.PENDING_L2)

    stored, logs, _ = await _state(session_factory, bill.id)
    assert stored.status == BillStatus.PENDING_L1
    assert len(logs) == 1


async def test_reload_failure_after_payment_is_store_error(session_factory, world, monkeypatch):
    bill = await _ready_for_payment(session_factory, world)

    async with session_factory() as db:
        monkeypatch.setattr(db, "refresh", AsyncMock(side_effect=SQLAlchemyError("connection reset")))
        with pytest.raises(StoreError):
            await WorkflowEngine.record_payment(db, world.accounts, bill.id, payment_fields())

    stored, logs, payment = await _state(session_factory, bill.id)
    assert stored.status == BillStatus.PENDING_PAYMENT
    assert payment is None
    assert len(logs) == 3


async def test_repeat_transition_is_rejected(session_factory, world):
    bill = await _submit(session_factory, world)
    await _advance(session_factory, world, bill.id, ("level1", BillStatus.PENDING_L2))

    async with session_factory() as db:
        with pytest.raises(AuthorizationError):
            await WorkflowEngine.transition_bill(db, world.level1, bill.id, BillStatus.PENDING_L2)

    _, logs, _ = await _state(session_factory, bill.id)
    assert len(logs) == 2


async def test_paid_is_not_reachable_by_plain_transition(session_factory, world):
    bill = await _submit(session_factory, world)
    await _advance(
        session_factory, world, bill.id,
        ("level1", BillStatus.PENDING_L2),
        ("level2", BillStatus.PENDING_PAYMENT),
    )
    async with session_factory() as db:
        with pytest.raises(AuthorizationError):
            await WorkflowEngine.transition_bill(db, world.accounts, bill.id, BillStatus.PAID)


async def test_operator_cannot_transition(session_factory, world):
    bill = await _submit(session_factory, world)
    async with session_factory() as db:
        with pytest.raises(AuthorizationError):
            await WorkflowEngine.transition_bill(db, world.operator, bill.id, BillStatus.PENDING_L2)


async def test_returned_bill_is_a_dead_end(session_factory, world):
    bill = await _submit(session_factory, world)
    await _advance(session_factory, world, bill.id, ("level1", BillStatus.RETURNED_L1))

    for key in ("operator", "level1", "level2"):
        async with session_factory() as db:
            with pytest.raises(AuthorizationError):
                await WorkflowEngine.transition_bill(db, getattr(world, key), bill.id, BillStatus.PENDING_L1)

    async with session_factory() as db:
        bill_now = await WorkflowEngine.get_bill(db, bill.id)
        assert WorkflowEngine.available_transitions(world.level1, bill_now) == []
        assert WorkflowEngine.available_transitions(world.admin, bill_now) == [
            BillStatus.PENDING_L1, BillStatus.PENDING_L2, BillStatus.PENDING_PAYMENT,
        ]


async def test_unknown_bill_and_status(session_factory, world):
    async with session_factory() as db:
        with pytest.raises(NotFoundError):
            await WorkflowEngine.transition_bill(db, world.level1, "missing", BillStatus.PENDING_L2)
        with pytest.raises(ValidationError):
            await WorkflowEngine.transition_bill(db, world.level1, "missing", "APPROVED")


# ---------------------------------------------------------------------------
# Payment
# ---------------------------------------------------------------------------

async def _ready_for_payment(session_factory, world):
    bill = await _submit(session_factory, world)
    await _advance(
        session_factory, world, bill.id,
        ("level1", BillStatus.PENDING_L2),
        ("level2", BillStatus.PENDING_PAYMENT),
    )
    return bill


async def test_accounts_records_payment(session_factory, world):
    bill = await _ready_for_payment(session_factory, world)

    async with session_factory() as db:
        payment = await WorkflowEngine.record_payment(db, world.accounts, bill.id, payment_fields())
    assert payment.bill_id == bill.id
    assert payment.recorded_by_id == world.accounts.id

    stored, logs, stored_payment = await _state(session_factory, bill.id)
    assert stored.status == BillStatus.PAID
    assert stored_payment.reference_no == "UTR123456"
    assert stored_payment.payment_mode == "NEFT"
    assert len(logs) == 4
    assert (logs[-1].from_status, logs[-1].to_status) == (BillStatus.PENDING_PAYMENT, BillStatus.PAID)
    assert logs[-1].note == "Payment recorded (NEFT)"
    _chain_is_consistent(stored, logs)


async def test_second_payment_is_conflict(session_factory, world):
    bill = await _ready_for_payment(session_factory, world)
    async with session_factory() as db:
        await WorkflowEngine.record_payment(db, world.accounts, bill.id, payment_fields())

    async with session_factory() as db:
        with pytest.raises(ConflictError):
            await WorkflowEngine.record_payment(db, world.accounts, bill.id, payment_fields())

    _, logs, _ = await _state(session_factory, bill.id)
    assert len(logs) == 4


async def test_payment_requires_accounts_role(session_factory, world):
    bill = await _ready_for_payment(session_factory, world)
    for key in ("admin", "level2", "operator"):
        async with session_factory() as db:
            with pytest.raises(AuthorizationError):
                await WorkflowEngine.record_payment(db, getattr(world, key), bill.id, payment_fields())


async def test_payment_before_approval_is_conflict(session_factory, world):
    bill = await _submit(session_factory, world)
    async with session_factory() as db:
        with pytest.raises(ConflictError):
            await WorkflowEngine.record_payment(db, world.accounts, bill.id, payment_fields())


async def test_invalid_payment_fields(session_factory, world):
    bill = await _ready_for_payment(session_factory, world)
    async with session_factory() as db:
        with pytest.raises(ValidationError):
            await WorkflowEngine.record_payment(
                db, world.accounts, bill.id, payment_fields(amount_paid=Decimal("-1"))
            )


async def test_payment_rolls_back_when_log_write_fails(session_factory, world, monkeypatch):
    """Status, payment row and log row land together or not at all."""
    bill = await _ready_for_payment(session_factory, world)
    monkeypatch.setattr(AuditLogService, "append", AsyncMock(side_effect=SQLAlchemyError("disk full")))

    async with session_factory() as db:
        with pytest.raises(StoreError):
            await WorkflowEngine.record_payment(db, world.accounts, bill.id, payment_fields())

    stored, logs, payment = await _state(session_factory, bill.id)
    assert stored.status == BillStatus.PENDING_PAYMENT
    assert payment is None
    assert len(logs) == 3


async def test_transition_rolls_back_when_log_write_fails(session_factory, world, monkeypatch):
    bill = await _submit(session_factory, world)
    monkeypatch.setattr(AuditLogService, "append", AsyncMock(side_effect=SQLAlchemyError("disk full")))

    async with session_factory() as db:
        with pytest.raises(StoreError):
            await WorkflowEngine.transition_bill(db, world.level1, bill.id, BillStatus.PENDING_L2)

    stored, logs, _ = await _state(session_factory, bill.id)
    assert stored.status == BillStatus.PENDING_L1
    assert len(logs) == 1


# ---------------------------------------------------------------------------
# Admin reroute and concurrency
# ---------------------------------------------------------------------------

async def test_admin_reroutes_paid_bill(session_factory, world):
    bill = await _ready_for_payment(session_factory, world)
    async with session_factory() as db:
        await WorkflowEngine.record_payment(db, world.accounts, bill.id, payment_fields())

    async with session_factory() as db:
        moved = await WorkflowEngine.transition_bill(
            db, world.admin, bill.id, BillStatus.PENDING_L2, note="Amount disputed"
        )
    assert moved.status == BillStatus.PENDING_L2

    stored, logs, payment = await _state(session_factory, bill.id)
    assert (logs[-1].from_status, logs[-1].to_status) == (BillStatus.PAID, BillStatus.PENDING_L2)
    assert logs[-1].actor_id == world.admin.id
    # the earlier payment row is kept; a later payment replaces its fields
    assert payment is not None
    _chain_is_consistent(stored, logs)

    await _advance(session_factory, world, bill.id, ("level2", BillStatus.PENDING_PAYMENT))
    async with session_factory() as db:
        await WorkflowEngine.record_payment(
            db, world.accounts, bill.id, payment_fields(reference_no="UTR-SECOND", amount_paid=Decimal("1400"))
        )
    async with session_factory() as db:
        payments = (await db.execute(select(Payment).where(Payment.bill_id == bill.id))).scalars().all()
    assert len(payments) == 1
    assert payments[0].reference_no == "UTR-SECOND"
    assert payments[0].amount_paid == Decimal("1400")


async def test_concurrent_transitions_single_winner(session_factory, world):
    bill = await _submit(session_factory, world)

    async def attempt(target):
        async with session_factory() as db:
            try:
                await WorkflowEngine.transition_bill(db, world.level1, bill.id, target)
                return target
            except (ConflictError, AuthorizationError) as exc:
                return exc

    results = await asyncio.gather(
        attempt(BillStatus.PENDING_L2),
        attempt(BillStatus.REJECTED_L1),
    )
    winners = [r for r in results if isinstance(r, BillStatus)]
    losers = [r for r in results if not isinstance(r, BillStatus)]
    assert len(winners) == 1
    assert len(losers) == 1

    stored, logs, _ = await _state(session_factory, bill.id)
    assert stored.status == winners[0]
    assert len(logs) == 2
    _chain_is_consistent(stored, logs)


# ---------------------------------------------------------------------------
# Audit log reads
# ---------------------------------------------------------------------------

async def test_actor_history_is_newest_first_regardless_of_insert_order(session_factory, world):
    first = await _submit(session_factory, world, invoice_number="INV-A")
    second = await _submit(session_factory, world, invoice_number="INV-B")
    base = datetime(2026, 10, 1, 9, 0, 0)
    async with session_factory() as db:
        # written oldest-last so insertion order and time order disagree
        db.add_all([
            BillStatusLog(
                bill_id=first.id, actor_id=world.level1.id, from_status=BillStatus.PENDING_L1,
                to_status=BillStatus.PENDING_L2, note="newest", created_at=base + timedelta(hours=2),
            ),
            BillStatusLog(
                bill_id=second.id, actor_id=world.level1.id, from_status=BillStatus.PENDING_L1,
                to_status=BillStatus.PENDING_L2, note="middle", created_at=base + timedelta(hours=1),
            ),
            BillStatusLog(
                bill_id=first.id, actor_id=world.level1.id, from_status=BillStatus.PENDING_L1,
                to_status=BillStatus.REJECTED_L1, note="oldest", created_at=base,
            ),
        ])
        await db.commit()

    async with session_factory() as db:
        entries = await AuditLogService.list_for_actor(db, world.level1.id)
        assert [e.note for e in entries] == ["newest", "middle", "oldest"]
        assert await AuditLogService.list_for_actor(db, world.level2.id) == []


async def test_actor_history_ties_break_by_id_descending(session_factory, world):
    bill = await _submit(session_factory, world)
    stamp = datetime(2026, 10, 2, 12, 0, 0)
    async with session_factory() as db:
        db.add_all([
            BillStatusLog(
                id="00000000-0000-0000-0000-00000000000a", bill_id=bill.id, actor_id=world.level2.id,
                from_status=BillStatus.PENDING_L2, to_status=BillStatus.PENDING_PAYMENT, created_at=stamp,
            ),
            BillStatusLog(
                id="ffffffff-0000-0000-0000-00000000000a", bill_id=bill.id, actor_id=world.level2.id,
                from_status=BillStatus.PENDING_L2, to_status=BillStatus.RETURNED_L2, created_at=stamp,
            ),
        ])
        await db.commit()

    async with session_factory() as db:
        entries = await AuditLogService.list_for_actor(db, world.level2.id)
        assert [e.id[:8] for e in entries] == ["ffffffff", "00000000"]
