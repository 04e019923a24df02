"""Bills, attachments, status history and payments"""

from sqlalchemy import Column, Date, Enum, ForeignKey, Numeric, String, Text
from sqlalchemy.orm import relationship

from ambulance_billing.models.base import AppendOnlyModel, BaseModel
from ambulance_billing.models.enums import BillStatus


def _status_enum(name: str) -> Enum:
    return Enum(BillStatus, name=name, values_callable=lambda x: [e.value for e in x])


class Bill(BaseModel):
    """
    Reimbursement bill raised by an ambulance operator.

    Status changes only through the workflow engine; region and ambulance are
    fixed at creation. Bills are never deleted.
    """
    __tablename__ = "bills"

    title = Column(String(255), nullable=False)
    vendor = Column(String(255), nullable=False)
    amount = Column(Numeric(12, 2), nullable=False)
    currency = Column(String(3), nullable=False, default="INR")
    invoice_number = Column(String(100), nullable=False, index=True)
    invoice_date = Column(Date, nullable=False)
    description = Column(Text, nullable=True)
    status = Column(_status_enum("bill_status"), nullable=False, default=BillStatus.PENDING_L1, index=True)

    region_id = Column(String(36), ForeignKey("regions.id", ondelete="RESTRICT"), nullable=False, index=True)
    ambulance_id = Column(String(36), ForeignKey("ambulances.id", ondelete="RESTRICT"), nullable=False, index=True)
    operator_id = Column(String(36), ForeignKey("users.id", ondelete="RESTRICT"), nullable=False, index=True)

    region = relationship("Region")
    ambulance = relationship("Ambulance")
    operator = relationship("User")
    attachments = relationship("BillAttachment", back_populates="bill")
    logs = relationship("BillStatusLog", back_populates="bill")
    payment = relationship("Payment", back_populates="bill", uselist=False)

    def __repr__(self) -> str:
        return f"<Bill {self.invoice_number} {self.amount} {self.currency} - {self.status}>"


class BillAttachment(AppendOnlyModel):
    """Reference to a file held by the attachment store"""
    __tablename__ = "bill_attachments"

    bill_id = Column(String(36), ForeignKey("bills.id", ondelete="RESTRICT"), nullable=False, index=True)
    file_name = Column(String(255), nullable=False)
    file_url = Column(String(500), nullable=False)

    bill = relationship("Bill", back_populates="attachments")


class BillStatusLog(AppendOnlyModel):
    """
    One row per status change of a bill. Append-only.
    from_status is NULL only on the creation entry.
    """
    __tablename__ = "bill_status_logs"

    bill_id = Column(String(36), ForeignKey("bills.id", ondelete="RESTRICT"), nullable=False, index=True)
    actor_id = Column(String(36), ForeignKey("users.id", ondelete="RESTRICT"), nullable=False, index=True)
    from_status = Column(_status_enum("bill_status"), nullable=True)
    to_status = Column(_status_enum("bill_status"), nullable=False)
    note = Column(Text, nullable=True)

    bill = relationship("Bill", back_populates="logs")
    actor = relationship("User")

    def __repr__(self) -> str:
        return f"<BillStatusLog {self.bill_id} {self.from_status} -> {self.to_status}>"


class Payment(BaseModel):
    """Payment settled against a bill; at most one per bill."""
    __tablename__ = "payments"

    bill_id = Column(String(36), ForeignKey("bills.id", ondelete="RESTRICT"), unique=True, nullable=False)
    reference_no = Column(String(100), nullable=False)
    payment_date = Column(Date, nullable=False)
    amount_paid = Column(Numeric(12, 2), nullable=False)
    payment_mode = Column(String(50), nullable=False)
    notes = Column(Text, nullable=True)
    recorded_by_id = Column(String(36), ForeignKey("users.id", ondelete="RESTRICT"), nullable=False, index=True)

    bill = relationship("Bill", back_populates="payment")
    recorded_by = relationship("User")

    def __repr__(self) -> str:
        return f"<Payment {self.reference_no} {self.amount_paid}>"
