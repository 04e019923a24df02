"""Unit tests for bill and payment input schemas and input coercion."""

from datetime import date
from decimal import Decimal

import pytest
from pydantic import ValidationError as PydanticValidationError

from ambulance_billing.core.exceptions import ValidationError
from ambulance_billing.models.enums import BillStatus
from ambulance_billing.schemas.billing import BillCreate, BillCreateRequest, PaymentCreate
from ambulance_billing.services.workflow_engine import _coerce, _coerce_status, payment_note


def _bill(**overrides):
    data = {
        "title": "Tyre replacement",
        "vendor": "MRF Service",
        "amount": "4200.00",
        "invoice_number": "T-77",
        "invoice_date": "2026-09-30",
    }
    data.update(overrides)
    return data


def test_bill_create_defaults_currency_and_strips_text():
    bill = BillCreate.model_validate(_bill(title="  Tyre replacement  ", vendor=" MRF Service "))
    assert bill.title == "Tyre replacement"
    assert bill.vendor == "MRF Service"
    assert bill.currency == "INR"
    assert bill.amount == Decimal("4200.00")
    assert bill.invoice_date == date(2026, 9, 30)
    assert bill.description is None


def test_bill_create_uppercases_currency():
    assert BillCreate.model_validate(_bill(currency="usd")).currency == "USD"


@pytest.mark.parametrize(
    "overrides",
    [
        {"title": "ab"},
        {"vendor": "x"},
        {"amount": "0"},
        {"amount": "-5"},
        {"amount": "10.123"},
        {"invoice_number": "1"},
        {"invoice_date": "not-a-date"},
        {"title": "     "},
    ],
)
def test_bill_create_rejects_bad_fields(overrides):
    with pytest.raises(PydanticValidationError):
        BillCreate.model_validate(_bill(**overrides))


def test_bill_create_request_carries_routing_fields():
    req = BillCreateRequest.model_validate(
        _bill(ambulance_id="amb-1", initial_status="PENDING_L2", attachments=[{"file_name": "a.pdf", "file_url": "/uploads/a.pdf"}])
    )
    assert req.ambulance_id == "amb-1"
    assert req.initial_status == BillStatus.PENDING_L2
    assert req.attachments[0].file_name == "a.pdf"


def test_payment_create_requirements():
    payment = PaymentCreate.model_validate({
        "reference_no": "UTR-9",
        "payment_date": "2026-10-02",
        "amount_paid": "100",
        "payment_mode": "UPI",
    })
    assert payment.amount_paid == Decimal("100")
    assert payment.notes is None

    with pytest.raises(PydanticValidationError):
        PaymentCreate.model_validate({
            "reference_no": "U",
            "payment_date": "2026-10-02",
            "amount_paid": "0",
            "payment_mode": "U",
        })


# ---------------------------------------------------------------------------
# Engine input coercion
# ---------------------------------------------------------------------------

def test_coerce_maps_pydantic_errors_to_validation_error():
    with pytest.raises(ValidationError) as exc_info:
        _coerce(BillCreate, _bill(amount="0", title="x"))
    err = exc_info.value
    assert err.code == "VALIDATION_ERROR"
    assert "amount" in err.message
    assert "title" in err.message
    assert err.details["errors"]


def test_coerce_passes_instances_through():
    bill = BillCreate.model_validate(_bill())
    assert _coerce(BillCreate, bill) is bill


def test_coerce_status():
    assert _coerce_status("PAID") == BillStatus.PAID
    assert _coerce_status(BillStatus.PENDING_L1) == BillStatus.PENDING_L1
    with pytest.raises(ValidationError):
        _coerce_status("APPROVED")


def test_payment_note_mentions_mode():
    assert payment_note("NEFT") == "Payment recorded (NEFT)"
