"""
Transition Policy - which status a role may move a bill to.

Every entry point (engine, bill detail page, API) consults this table; no
caller re-implements role branching. All functions are pure.
"""

from typing import Dict, FrozenSet, Optional

from ambulance_billing.models.enums import BillStatus, UserRole

TERMINAL_STATUSES: FrozenSet[BillStatus] = frozenset({
    BillStatus.PAID,
    BillStatus.REJECTED_L1,
    BillStatus.REJECTED_L2,
})

# Reachable only through payment recording, never through a plain transition.
PAYMENT_ONLY_STATUSES: FrozenSet[BillStatus] = frozenset({BillStatus.PAID})

# Admin override/reroute targets. Applies from any current status, PAID included.
ADMIN_STATUSES: FrozenSet[BillStatus] = frozenset({
    BillStatus.PENDING_L1,
    BillStatus.PENDING_L2,
    BillStatus.PENDING_PAYMENT,
})

_EMPTY: FrozenSet[BillStatus] = frozenset()

# (role, current status) -> next statuses for the reviewing roles
_REVIEW_TABLE: Dict[UserRole, Dict[BillStatus, FrozenSet[BillStatus]]] = {
    UserRole.LEVEL1: {
        BillStatus.PENDING_L1: frozenset({
            BillStatus.PENDING_L2,
            BillStatus.RETURNED_L1,
            BillStatus.REJECTED_L1,
        }),
    },
    UserRole.LEVEL2: {
        BillStatus.PENDING_L2: frozenset({
            BillStatus.PENDING_PAYMENT,
            BillStatus.RETURNED_L2,
            BillStatus.REJECTED_L2,
        }),
    },
    UserRole.ACCOUNTS: {
        BillStatus.PENDING_PAYMENT: frozenset({BillStatus.PAID}),
    },
}

_INITIAL_TABLE: Dict[UserRole, FrozenSet[BillStatus]] = {
    UserRole.OPERATOR: frozenset({BillStatus.PENDING_L1}),
    UserRole.ADMIN: ADMIN_STATUSES,
}

DEFAULT_INITIAL_STATUS = BillStatus.PENDING_L1


def allowed_next_statuses(role: UserRole, current: BillStatus) -> FrozenSet[BillStatus]:
    """
    Statuses ``role`` may move a bill in ``current`` status to.

    Total over (role, status); pairs outside the table yield an empty set.
    OPERATOR never transitions an existing bill.
    """
    if role == UserRole.ADMIN:
        return ADMIN_STATUSES
    return _REVIEW_TABLE.get(role, {}).get(current, _EMPTY)


def initial_statuses_for_role(role: UserRole) -> FrozenSet[BillStatus]:
    """Statuses a bill may be created in by ``role``."""
    return _INITIAL_TABLE.get(role, _EMPTY)


def can_create_bill(role: UserRole) -> bool:
    return bool(initial_statuses_for_role(role))


def resolve_initial_status(role: UserRole, requested: Optional[BillStatus]) -> Optional[BillStatus]:
    """
    Pick the creation status for ``role``.

    Operators get PENDING_L1 when nothing is requested; admins must choose.
    Returns None when the request is not permitted.
    """
    allowed = initial_statuses_for_role(role)
    if requested is None:
        return DEFAULT_INITIAL_STATUS if role == UserRole.OPERATOR else None
    return requested if requested in allowed else None


def is_terminal(status: BillStatus) -> bool:
    return status in TERMINAL_STATUSES
