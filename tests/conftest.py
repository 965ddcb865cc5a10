"""
conftest.py - Shared pytest fixtures for loan book tests

Provides common fixtures used across unit, functional and conformance tests:
- Bare loans (pending disbursement, active business, active agric)
- Funded loans (savings and Adashe balances already posted)
- Books with several loans across groups
"""

import pytest
from decimal import Decimal

from loanbook import (
    LoanBook, LoanType, Direction,
    SAVINGS_CATEGORY, ADASHE_CATEGORY, INSTALMENT_CATEGORY,
)
from tests.loan_helpers import DISBURSED, make_loan


# =============================================================================
# LOAN FIXTURES
# =============================================================================

@pytest.fixture
def pending_loan():
    """Business loan still waiting on its first disbursement sign-off."""
    return make_loan(approved=False, disbursement_date=None)


@pytest.fixture
def business_loan():
    """Approved weekly business loan, principal 48,000, disbursed 2025-01-06."""
    return make_loan()


@pytest.fixture
def agric_loan():
    """Approved monthly agric loan, principal 60,000, disbursed 2025-01-06."""
    return make_loan("LN-AG1", "60000", LoanType.AGRIC)


@pytest.fixture
def funded_loan(business_loan):
    """Business loan with 10,000 savings and 4,000 Adashe."""
    business_loan.apply_transaction(SAVINGS_CATEGORY, Direction.IN, Decimal("10000"), on=DISBURSED)
    business_loan.apply_transaction(ADASHE_CATEGORY, Direction.IN, Decimal("4000"), on=DISBURSED)
    return business_loan


# =============================================================================
# BOOK FIXTURES
# =============================================================================

@pytest.fixture
def book():
    """Empty book pinned to the disbursement date."""
    return LoanBook("test", initial_date=DISBURSED, verbose=False)


@pytest.fixture
def branch_book(book):
    """
    Book with three approved loans in two groups:
        LN-001 Alheri   business 48,000
        LN-002 Alheri   business 32,000
        LN-003 Nasara   agric    60,000
    """
    book.add_loan(make_loan("LN-001", "48000", group_name="Alheri", borrower_name="Amina Bello"))
    book.add_loan(make_loan("LN-002", "32000", group_name="Alheri", borrower_name="Ngozi Okafor"))
    book.add_loan(make_loan("LN-003", "60000", LoanType.AGRIC, group_name="Nasara",
                            borrower_name="Musa Danjuma"))
    book.apply_transaction("LN-001", INSTALMENT_CATEGORY, Direction.IN, Decimal("6000"))
    book.apply_transaction("LN-001", SAVINGS_CATEGORY, Direction.IN, Decimal("2500"))
    book.apply_transaction("LN-002", ADASHE_CATEGORY, Direction.IN, Decimal("1000"))
    book.apply_transaction("LN-003", SAVINGS_CATEGORY, Direction.IN, Decimal("7000"))
    book.apply_transaction("LN-003", "Admission Fee", Direction.IN, Decimal("500"))
    return book

