"""
Monotonicity Conformance Tests

INVARIANT: Approval status only moves forward along the chain.

    Pending Stage 1 -> Pending Stage 2 -> Pending Stage 3 -> Approved
            \\                 \\                 \\
             +-----------------+-----------------+--> Rejected

No stage is skipped, no status is revisited, and Approved and Rejected
are terminal. Holds for both loan disbursements and withdrawal requests.
"""

import pytest
from hypothesis import given, settings
from hypothesis import strategies as st
from decimal import Decimal

from loanbook import (
    ApprovalStatus, TerminalState, TRANSITIONS, SAVINGS_CATEGORY,
    Direction, can_transition,
)
from tests.loan_helpers import make_loan


CHAIN = [
    ApprovalStatus.PENDING_STAGE_1,
    ApprovalStatus.PENDING_STAGE_2,
    ApprovalStatus.PENDING_STAGE_3,
    ApprovalStatus.APPROVED,
]

actions = st.lists(st.sampled_from(["advance", "reject"]), min_size=1, max_size=10)


def _rank(status):
    return len(CHAIN) if status is ApprovalStatus.REJECTED else CHAIN.index(status)


class TestDisbursementMonotonicity:
    """Property-based disbursement chain tests."""

    @given(actions)
    @settings(max_examples=100)
    def test_status_never_moves_back(self, steps):
        """
        PROPERTY: Every accepted step is a table transition; terminals refuse all steps.
        """
        loan = make_loan(approved=False, disbursement_date=None)
        for step in steps:
            before = loan.disbursement_status
            try:
                after = loan.advance_disbursement() if step == "advance" else loan.reject_disbursement()
            except TerminalState:
                assert before.is_terminal
                assert loan.disbursement_status is before
                continue
            assert can_transition(before, after)
            assert after in TRANSITIONS[before]
            assert _rank(after) > _rank(before)

    @given(actions)
    @settings(max_examples=100)
    def test_active_only_when_approved(self, steps):
        """
        PROPERTY: A loan is active exactly when its disbursement is Approved.
        """
        loan = make_loan(approved=False, disbursement_date=None)
        for step in steps:
            try:
                if step == "advance":
                    loan.advance_disbursement()
                else:
                    loan.reject_disbursement()
            except TerminalState:
                pass
            assert loan.is_active == (loan.disbursement_status is ApprovalStatus.APPROVED)
            assert (loan.disbursement_date is not None) == loan.is_active


class TestRequestMonotonicity:
    """Property-based withdrawal request chain tests."""

    @given(actions)
    @settings(max_examples=100)
    def test_request_leaves_pending_once(self, steps):
        """
        PROPERTY: A request advances one stage at a time and disappears
        from pending_requests exactly when it reaches a terminal status.
        """
        loan = make_loan()
        loan.apply_transaction(SAVINGS_CATEGORY, Direction.IN, Decimal("1000"))
        request = loan.submit_withdrawal(SAVINGS_CATEGORY, Decimal("100"))
        status = request.status
        for step in steps:
            try:
                if step == "advance":
                    new_status = loan.advance_request(request.id)
                else:
                    new_status = loan.reject_request(request.id)
            except TerminalState:
                assert status.is_terminal
                continue
            assert _rank(new_status) > _rank(status)
            status = new_status
            assert (request.id in loan.pending_requests) == status.is_pending

        expected = Decimal("900") if status is ApprovalStatus.APPROVED else Decimal("1000")
        assert loan.savings_balance == expected


@pytest.mark.parametrize("status", list(ApprovalStatus))
def test_no_transition_moves_backwards(status):
    for target in TRANSITIONS[status]:
        assert _rank(target) > _rank(status)
