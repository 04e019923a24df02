"""Bill endpoints - submission, review transitions and payment"""

from typing import Any, List, Optional
from fastapi import APIRouter, Depends, File, Form, UploadFile
from sqlalchemy.ext.asyncio import AsyncSession

from ambulance_billing.api import deps
from ambulance_billing.schemas.auth import Principal
from ambulance_billing.schemas.billing import (
    BillCreateRequest,
    BillDetailResponse,
    BillResponse,
    BillTransitionRequest,
    PaymentCreate,
    PaymentResponse,
)
from ambulance_billing.schemas.responses import SuccessResponse
from ambulance_billing.services import storage_service
from ambulance_billing.services.bill_query_service import BillQueryService
from ambulance_billing.services.workflow_engine import WorkflowEngine

router = APIRouter()


@router.get("", response_model=SuccessResponse[List[BillResponse]])
async def list_bills(
    principal: Principal = Depends(deps.get_current_principal),
    db: AsyncSession = Depends(deps.get_db),
) -> Any:
    """Work queue for the caller's role, newest first."""
    bills = await BillQueryService.list_queue(db, principal)
    return SuccessResponse(data=[BillResponse.model_validate(b) for b in bills])


@router.post("", response_model=SuccessResponse[BillResponse])
async def create_bill(
    bill_in: BillCreateRequest,
    principal: Principal = Depends(deps.get_current_principal),
    db: AsyncSession = Depends(deps.get_db),
) -> Any:
    """Submit a bill. Operators start at PENDING_L1; admins choose the initial status."""
    bill = await WorkflowEngine.create_bill(
        db,
        principal,
        bill_in,
        bill_in.ambulance_id,
        initial_status=bill_in.initial_status,
        attachments=bill_in.attachments,
    )
    return SuccessResponse(data=BillResponse.model_validate(bill), message="Bill submitted")


@router.post("/upload", response_model=SuccessResponse[BillResponse])
async def create_bill_with_attachments(
    title: str = Form(...),
    vendor: str = Form(...),
    amount: str = Form(...),
    invoice_number: str = Form(...),
    invoice_date: str = Form(...),
    ambulance_id: str = Form(...),
    currency: Optional[str] = Form(None),
    description: Optional[str] = Form(None),
    initial_status: Optional[str] = Form(None),
    attachments: List[UploadFile] = File(default=[]),
    principal: Principal = Depends(deps.get_current_principal),
    db: AsyncSession = Depends(deps.get_db),
) -> Any:
    """Multipart variant of bill submission. Stored files are removed again if the bill is not created."""
    WorkflowEngine.check_submission(principal, initial_status or None)

    fields = {
        "title": title,
        "vendor": vendor,
        "amount": amount,
        "invoice_number": invoice_number,
        "invoice_date": invoice_date,
        "description": description or None,
    }
    if currency:
        fields["currency"] = currency

    refs = []
    try:
        for upload in attachments:
            content = await upload.read()
            if not content:
                continue
            refs.append(await storage_service.save_attachment(
                upload.filename or "attachment", content, upload.content_type
            ))

        bill = await WorkflowEngine.create_bill(
            db, principal, fields, ambulance_id,
            initial_status=initial_status or None,
            attachments=refs,
        )
    except Exception:
        await storage_service.discard_attachments(refs)
        raise
    return SuccessResponse(data=BillResponse.model_validate(bill), message="Bill submitted")


@router.get("/{bill_id}", response_model=SuccessResponse[BillDetailResponse])
async def get_bill(
    bill_id: str,
    principal: Principal = Depends(deps.get_current_principal),
    db: AsyncSession = Depends(deps.get_db),
) -> Any:
    """Bill detail with attachments, status history, payment and available actions."""
    detail = await BillQueryService.get_detail(db, principal, bill_id)
    return SuccessResponse(data=detail)


@router.post("/{bill_id}/transition", response_model=SuccessResponse[BillResponse])
async def transition_bill(
    bill_id: str,
    body: BillTransitionRequest,
    principal: Principal = Depends(deps.get_current_principal),
    db: AsyncSession = Depends(deps.get_db),
) -> Any:
    """Move a bill along the workflow."""
    bill = await WorkflowEngine.transition_bill(db, principal, bill_id, body.status, body.note)
    return SuccessResponse(data=BillResponse.model_validate(bill), message=f"Bill moved to {bill.status.value}")


@router.post("/{bill_id}/payment", response_model=SuccessResponse[PaymentResponse])
async def record_payment(
    bill_id: str,
    body: PaymentCreate,
    principal: Principal = Depends(deps.get_current_principal),
    db: AsyncSession = Depends(deps.get_db),
) -> Any:
    """Record payment for a bill awaiting payment. Accounts only."""
    payment = await WorkflowEngine.record_payment(db, principal, bill_id, body)
    return SuccessResponse(data=PaymentResponse.model_validate(payment), message="Payment recorded")
