"""Models Package - Export all models for easy imports"""

from ambulance_billing.models.base import AppendOnlyModel, BaseModel, StatusMixin
from ambulance_billing.models.enums import BillStatus, UserRole
from ambulance_billing.models.user import User, UserRegionAssignment
from ambulance_billing.models.fleet import Region, Ambulance, AmbulanceOperatorAssignment
from ambulance_billing.models.billing import Bill, BillAttachment, BillStatusLog, Payment


__all__ = [
    # Base classes
    "AppendOnlyModel",
    "BaseModel",
    "StatusMixin",

    # Enums
    "BillStatus",
    "UserRole",

    # Users
    "User",
    "UserRegionAssignment",

    # Fleet
    "Region",
    "Ambulance",
    "AmbulanceOperatorAssignment",

    # Billing
    "Bill",
    "BillAttachment",
    "BillStatusLog",
    "Payment",
]
