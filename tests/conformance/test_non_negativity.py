"""
Non-Negativity Conformance Tests

INVARIANT: For every loan, after every command (successful or not):
    savings_balance >= 0 and adashe_balance >= 0

and each stored balance equals the signed sum of its category's postings:
    savings_balance = Σ signed_amount(p) for p in payments if p.category = Savings

A command that fails must leave the loan exactly as it found it.

These tests drive random command sequences through a loan and check the
invariant after each step.
"""

from hypothesis import given, settings, note
from hypothesis import strategies as st
from decimal import Decimal

from loanbook import (
    Direction, LoanBookError,
    SAVINGS_CATEGORY, ADASHE_CATEGORY, INSTALMENT_CATEGORY,
)
from tests.loan_helpers import make_loan


# =============================================================================
# STRATEGIES FOR PROPERTY-BASED TESTING
# =============================================================================

@st.composite
def money(draw, min_value=Decimal("0.01"), max_value=Decimal("50000")):
    """Generate a positive amount with kobo precision."""
    return draw(st.decimals(
        min_value=min_value,
        max_value=max_value,
        places=2,
        allow_nan=False,
        allow_infinity=False,
    ))


restricted = st.sampled_from([SAVINGS_CATEGORY, ADASHE_CATEGORY])

command = st.one_of(
    st.tuples(st.just("deposit"), restricted, money()),
    st.tuples(st.just("instalment"), st.just(INSTALMENT_CATEGORY), money()),
    st.tuples(st.just("submit"), restricted, money()),
    st.tuples(st.just("advance"), restricted, st.integers(min_value=0, max_value=9)),
    st.tuples(st.just("reject"), restricted, st.integers(min_value=0, max_value=9)),
    st.tuples(st.just("reverse"), restricted, st.integers(min_value=0, max_value=30)),
    st.tuples(st.just("direct_out"), restricted, money()),
)


def _signed_sum(loan, category):
    return sum(
        (p.signed_amount for p in loan.payments if p.category == category),
        Decimal("0"),
    )


def _state(loan):
    return (
        loan.savings_balance,
        loan.adashe_balance,
        loan.payments,
        tuple(sorted(loan.pending_requests.items())),
    )


def _run(loan, op, category, arg):
    if op == "deposit":
        loan.apply_transaction(category, Direction.IN, arg)
    elif op == "instalment":
        loan.apply_transaction(category, Direction.IN, arg)
    elif op == "submit":
        loan.submit_withdrawal(category, arg)
    elif op == "advance":
        pending = sorted(loan.pending_requests)
        if pending:
            loan.advance_request(pending[arg % len(pending)])
    elif op == "reject":
        pending = sorted(loan.pending_requests)
        if pending:
            loan.reject_request(pending[arg % len(pending)])
    elif op == "reverse":
        payments = loan.payments
        if payments:
            loan.reverse_transaction(payments[arg % len(payments)].id)
    elif op == "direct_out":
        loan.apply_transaction(category, Direction.OUT, arg)


# =============================================================================
# PROPERTIES
# =============================================================================

class TestNonNegativityProperties:
    """Property-based balance tests."""

    @given(st.lists(command, min_size=1, max_size=40))
    @settings(max_examples=150)
    def test_balances_never_negative(self, commands):
        """
        PROPERTY: No sequence of commands drives a balance below zero.
        """
        loan = make_loan()
        for op, category, arg in commands:
            before = _state(loan)
            try:
                _run(loan, op, category, arg)
            except LoanBookError as e:
                note(f"{op} {category} {arg} -> {type(e).__name__}")
                assert _state(loan) == before
            assert loan.savings_balance >= Decimal("0")
            assert loan.adashe_balance >= Decimal("0")

    @given(st.lists(command, min_size=1, max_size=40))
    @settings(max_examples=100)
    def test_balance_equals_signed_postings(self, commands):
        """
        PROPERTY: Stored balances always agree with the payment log.
        """
        loan = make_loan()
        for op, category, arg in commands:
            try:
                _run(loan, op, category, arg)
            except LoanBookError:
                pass
            assert loan.savings_balance == _signed_sum(loan, SAVINGS_CATEGORY)
            assert loan.adashe_balance == _signed_sum(loan, ADASHE_CATEGORY)

    @given(st.lists(command, min_size=1, max_size=40))
    @settings(max_examples=100)
    def test_outstanding_is_derived(self, commands):
        """
        PROPERTY: outstanding = principal - Σ inbound instalments, always.
        """
        loan = make_loan()
        for op, category, arg in commands:
            try:
                _run(loan, op, category, arg)
            except LoanBookError:
                pass
        repaid = sum(
            (p.amount for p in loan.payments
             if p.category == INSTALMENT_CATEGORY and p.direction is Direction.IN),
            Decimal("0"),
        )
        assert loan.outstanding_principal == loan.principal - repaid
