from typing import Optional, List
from pydantic import BaseModel, ConfigDict, Field, field_validator
from datetime import datetime, date
from decimal import Decimal

from ambulance_billing.config import settings
from ambulance_billing.models.enums import BillStatus


class AttachmentRef(BaseModel):
    """A file already written to the attachment store."""
    file_name: str = Field(..., min_length=1, max_length=255)
    file_url: str = Field(..., min_length=1, max_length=500)


class BillCreate(BaseModel):
    title: str = Field(..., min_length=3, max_length=255)
    vendor: str = Field(..., min_length=2, max_length=255)
    amount: Decimal = Field(..., gt=0, max_digits=12, decimal_places=2)
    currency: str = Field(default_factory=lambda: settings.DEFAULT_CURRENCY, min_length=1, max_length=3)
    invoice_number: str = Field(..., min_length=2, max_length=100)
    invoice_date: date
    description: Optional[str] = None

    @field_validator("title", "vendor", "invoice_number")
    @classmethod
    def strip_text(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("must not be blank")
        return v

    @field_validator("currency")
    @classmethod
    def upper_currency(cls, v: str) -> str:
        return v.strip().upper()


class BillCreateRequest(BillCreate):
    """API body for bill submission. Admins must pick an initial status."""
    ambulance_id: str
    initial_status: Optional[BillStatus] = None
    attachments: List[AttachmentRef] = []


class BillTransitionRequest(BaseModel):
    status: BillStatus
    note: Optional[str] = Field(None, max_length=2000)


class PaymentCreate(BaseModel):
    reference_no: str = Field(..., min_length=3, max_length=100)
    payment_date: date
    amount_paid: Decimal = Field(..., gt=0, max_digits=12, decimal_places=2)
    payment_mode: str = Field(..., min_length=2, max_length=50)
    notes: Optional[str] = None


class AttachmentResponse(BaseModel):
    id: str
    file_name: str
    file_url: str
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class BillResponse(BaseModel):
    id: str
    title: str
    vendor: str
    amount: Decimal
    currency: str
    invoice_number: str
    invoice_date: date
    description: Optional[str] = None
    status: BillStatus
    region_id: str
    ambulance_id: str
    operator_id: str
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class StatusLogResponse(BaseModel):
    id: str
    bill_id: str
    actor_id: str
    from_status: Optional[BillStatus] = None
    to_status: BillStatus
    note: Optional[str] = None
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class PaymentResponse(BaseModel):
    id: str
    bill_id: str
    reference_no: str
    payment_date: date
    amount_paid: Decimal
    payment_mode: str
    notes: Optional[str] = None
    recorded_by_id: str
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class BillDetailResponse(BillResponse):
    attachments: List[AttachmentResponse] = []
    history: List[StatusLogResponse] = []
    payment: Optional[PaymentResponse] = None
    allowed_next_statuses: List[BillStatus] = []
    is_final: bool = False


class ActivityHistoryResponse(BaseModel):
    actions: List[StatusLogResponse] = []
    payments: List[PaymentResponse] = []
