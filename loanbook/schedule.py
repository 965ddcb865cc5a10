"""
schedule.py - Repayment Schedule Generation

Builds the expected instalment schedule for a loan product and marks each
instalment Paid, Partial, Overdue or Pending against the loan's actual
repayments.

Core concepts:
1. ProductTerms: Immutable description of a product's schedule shape
2. ScheduleItem: One expected instalment with its derived status
3. generate_schedule(): Lazy generator, rebuilt from scratch on every call

Status uses a waterfall allocation: the cumulative amount repaid is poured
into the instalments oldest-first. Nothing is stored; the same loan and the
same date always give the same schedule.
"""

from __future__ import annotations
from dataclasses import dataclass
from datetime import date, timedelta
from decimal import Decimal
from enum import Enum
from typing import Dict, Iterator, List, Optional

from dateutil.relativedelta import relativedelta

from .core import LoanView, LoanType, SCHEDULE_TOLERANCE, ZERO, total_repaid


# ============================================================================
# PRODUCT TERMS
# ============================================================================

@dataclass(frozen=True, slots=True)
class ProductTerms:
    """
    Schedule shape of a loan product.

    Attributes:
        periods: Number of instalments
        interval_days: Days between instalments (weekly products)
        interval_months: Months between instalments (monthly products)
        grace_months: Months after disbursement before the first interval starts
        period_label: Label prefix, e.g. "Week" or "Month"
    """
    periods: int
    interval_days: int = 0
    interval_months: int = 0
    grace_months: int = 0
    period_label: str = "Week"

    def due_date(self, start: date, period: int) -> date:
        """
        Due date of a 1-indexed period.

        Monthly offsets are taken from the start date each time, so a loan
        disbursed on the 31st falls due on the last day of shorter months.
        """
        if self.interval_months:
            return start + relativedelta(months=self.grace_months + period * self.interval_months)
        return start + timedelta(days=self.interval_days * period)

    def label(self, period: int) -> str:
        if self.interval_months:
            return f"{self.period_label} {self.grace_months + period * self.interval_months}"
        return f"{self.period_label} {period}"


PRODUCT_TERMS: Dict[LoanType, ProductTerms] = {
    # 16 weekly instalments starting a week after disbursement
    LoanType.BUSINESS: ProductTerms(periods=16, interval_days=7, period_label="Week"),
    # 4 months grace, then months 5, 6 and 7
    LoanType.AGRIC: ProductTerms(periods=3, interval_months=1, grace_months=4, period_label="Month"),
}


# ============================================================================
# SCHEDULE ITEMS
# ============================================================================

class InstalmentStatus(Enum):
    PAID = "Paid"
    PARTIAL = "Partial"
    OVERDUE = "Overdue"
    PENDING = "Pending"


@dataclass(frozen=True, slots=True)
class ScheduleItem:
    """
    One expected instalment.

    Attributes:
        period: 1-indexed position in the schedule
        label: Display label ("Week 3", "Month 5")
        due_date: Date the instalment falls due
        expected_amount: Amount expected for this period
        status: Derived InstalmentStatus
        allocated: Portion of the cumulative repayment poured into this period
    """
    period: int
    label: str
    due_date: date
    expected_amount: Decimal
    status: InstalmentStatus
    allocated: Decimal = ZERO

    @property
    def is_late(self) -> bool:
        return self.status in (InstalmentStatus.OVERDUE, InstalmentStatus.PARTIAL)


# ============================================================================
# GENERATION
# ============================================================================

def generate_schedule(view: LoanView, today: Optional[date] = None) -> Iterator[ScheduleItem]:
    """
    Yield the loan's instalment schedule in due-date order.

    Yields nothing if the loan has no disbursement date. Each call starts
    over; no allocation state survives between calls.

    Args:
        view: Loan (or LoanSnapshot) to build the schedule for
        today: Date used to tell Overdue from Pending (default: date.today())

    Example:
        items = list(generate_schedule(loan, today=date(2025, 3, 1)))
        items[0].expected_amount   # principal / 16 for a business loan
    """
    start = view.disbursement_date
    if start is None:
        return
    today = today or date.today()
    terms = PRODUCT_TERMS[view.loan_type]
    expected = view.principal / terms.periods
    remaining = total_repaid(view.payments)

    for period in range(1, terms.periods + 1):
        due = terms.due_date(start, period)
        if remaining >= expected - SCHEDULE_TOLERANCE:
            status, allocated = InstalmentStatus.PAID, expected
            remaining -= expected
        elif remaining > ZERO:
            status, allocated = InstalmentStatus.PARTIAL, remaining
            remaining = ZERO
        else:
            status = InstalmentStatus.OVERDUE if due < today else InstalmentStatus.PENDING
            allocated = ZERO
        yield ScheduleItem(
            period=period,
            label=terms.label(period),
            due_date=due,
            expected_amount=expected,
            status=status,
            allocated=allocated,
        )


def schedule_list(view: LoanView, today: Optional[date] = None) -> List[ScheduleItem]:
    """Materialized generate_schedule()."""
    return list(generate_schedule(view, today))


def instalments_paid(view: LoanView, today: Optional[date] = None) -> int:
    """Number of fully paid instalments."""
    return sum(1 for item in generate_schedule(view, today) if item.status is InstalmentStatus.PAID)


def days_past_due(view: LoanView, today: Optional[date] = None) -> int:
    """
    Days since the earliest instalment that fell due without being fully paid.

    Returns 0 when nothing is late. The loan's stored dpd stays a caller
    input; this is the figure a caller would typically feed into set_dpd().
    """
    today = today or date.today()
    for item in generate_schedule(view, today):
        if item.status is not InstalmentStatus.PAID and item.due_date < today:
            return (today - item.due_date).days
    return 0


def arrears(view: LoanView, today: Optional[date] = None) -> Decimal:
    """Amount expected by today that has not been repaid (never negative)."""
    today = today or date.today()
    due = sum(
        (item.expected_amount for item in generate_schedule(view, today) if item.due_date < today),
        ZERO,
    )
    return max(due - total_repaid(view.payments), ZERO)
