"""Centralized Enum Definitions"""

import enum


class UserRole(str, enum.Enum):
    """User roles for RBAC"""
    ADMIN = "ADMIN"
    OPERATOR = "OPERATOR"
    LEVEL1 = "LEVEL1"
    LEVEL2 = "LEVEL2"
    ACCOUNTS = "ACCOUNTS"


class BillStatus(str, enum.Enum):
    """Bill workflow status. RETURNED_* have no outgoing transition."""
    PENDING_L1 = "PENDING_L1"
    PENDING_L2 = "PENDING_L2"
    PENDING_PAYMENT = "PENDING_PAYMENT"
    PAID = "PAID"
    RETURNED_L1 = "RETURNED_L1"
    REJECTED_L1 = "REJECTED_L1"
    RETURNED_L2 = "RETURNED_L2"
    REJECTED_L2 = "REJECTED_L2"
