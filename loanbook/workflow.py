"""
workflow.py - Three-Stage Approval State Machine

Loan disbursements and Savings/Adashe withdrawals share one approval chain:

    PENDING_STAGE_1 -> PENDING_STAGE_2 -> PENDING_STAGE_3 -> APPROVED
           \\                 \\                  \\
            +--------------- REJECTED -----------+

Each stage belongs to a different authorizing role, so no single role can
take an item from submission to approval on its own. The engine does not
check roles; STAGE_ROLES is published for the caller's policy layer.

The chain is a lookup table, not a ladder of comparisons: a transition
that is not in TRANSITIONS does not exist.
"""

from __future__ import annotations
from enum import Enum
from typing import Dict, FrozenSet, Tuple

from .core import ApprovalStatus, TerminalState


# ============================================================================
# TRANSITION TABLE
# ============================================================================

# current status -> status reached by a forward step
ADVANCE: Dict[ApprovalStatus, ApprovalStatus] = {
    ApprovalStatus.PENDING_STAGE_1: ApprovalStatus.PENDING_STAGE_2,
    ApprovalStatus.PENDING_STAGE_2: ApprovalStatus.PENDING_STAGE_3,
    ApprovalStatus.PENDING_STAGE_3: ApprovalStatus.APPROVED,
}

# current status -> every status it may move to
TRANSITIONS: Dict[ApprovalStatus, FrozenSet[ApprovalStatus]] = {
    status: frozenset({ADVANCE[status], ApprovalStatus.REJECTED})
    for status in ADVANCE
}
TRANSITIONS[ApprovalStatus.APPROVED] = frozenset()
TRANSITIONS[ApprovalStatus.REJECTED] = frozenset()


def can_transition(current: ApprovalStatus, target: ApprovalStatus) -> bool:
    """Return True if the table allows current -> target."""
    return target in TRANSITIONS[current]


def advance_status(current: ApprovalStatus) -> ApprovalStatus:
    """
    Return the status one step further along the chain.

    Raises:
        TerminalState: If current is APPROVED or REJECTED
    """
    if not TRANSITIONS[current]:
        raise TerminalState(f"Cannot advance from terminal state {current.value}")
    return ADVANCE[current]


def reject_status(current: ApprovalStatus) -> ApprovalStatus:
    """
    Return REJECTED for any pending status.

    Raises:
        TerminalState: If current is APPROVED or REJECTED
    """
    if not can_transition(current, ApprovalStatus.REJECTED):
        raise TerminalState(f"Cannot reject from terminal state {current.value}")
    return ApprovalStatus.REJECTED


def steps_to_approval(current: ApprovalStatus) -> int:
    """Number of advance() calls still needed to reach APPROVED (0 if terminal)."""
    steps = 0
    while current in ADVANCE:
        current = ADVANCE[current]
        steps += 1
    return steps if current is ApprovalStatus.APPROVED else 0


# ============================================================================
# STAGE ROLES
# ============================================================================

class ApprovalRole(Enum):
    """Staff roles that sign off a stage of the chain."""
    BUSINESS_DEV_MANAGER = "Business Dev Manager"
    SENIOR_FINANCE_OFFICER = "Senior Finance Officer"
    HEAD_OF_BUSINESS = "Head of Business"
    MASTER_ADMIN = "Master Admin"


STAGE_ROLES: Dict[ApprovalStatus, ApprovalRole] = {
    ApprovalStatus.PENDING_STAGE_1: ApprovalRole.BUSINESS_DEV_MANAGER,
    ApprovalStatus.PENDING_STAGE_2: ApprovalRole.SENIOR_FINANCE_OFFICER,
    ApprovalStatus.PENDING_STAGE_3: ApprovalRole.HEAD_OF_BUSINESS,
}


def stages_for_role(role: ApprovalRole) -> Tuple[ApprovalStatus, ...]:
    """
    Pending stages a role reviews.

    The master admin sees every pending stage; other roles see their own.
    Roles with no stage get an empty tuple.
    """
    if role is ApprovalRole.MASTER_ADMIN:
        return tuple(ADVANCE)
    return tuple(status for status, owner in STAGE_ROLES.items() if owner is role)
