"""
Core types and pure functions for the loan accounting engine.

This module provides the foundational data structures and protocols for the book:
1. Protocols: LoanView for read-only access to a loan's ledger
2. Enums: Direction, LoanType, ApprovalStatus, RiskTier, Severity
3. Exceptions: LoanBookError and the error taxonomy callers react to
4. Immutable records: Payment, TransactionRequest, ActivityNote, AuditEntry,
   OfflineTransaction
5. Money helpers: to_amount, quantize_money, financed_principal
6. Ledger queries: instalment_payments, outstanding_principal

All functions in this module are pure and operate on read-only views.
No function can mutate loan state directly; that is the Loan aggregate's job.
"""

from __future__ import annotations
from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal, ROUND_HALF_EVEN, InvalidOperation, getcontext
from enum import Enum
from typing import (
    Dict, Iterable, List, Optional, Protocol, Sequence, Tuple, Union,
    runtime_checkable,
)


# ============================================================================
# DECIMAL CONTEXT CONFIGURATION
# ============================================================================
#
# Money arithmetic must be deterministic. The global context is configured
# once at import time; callers needing something else use localcontext().
#
#   - prec=50: schedule splits (principal / 3) stay exact far below a kobo
#   - rounding=ROUND_HALF_EVEN: banker's rounding for display quantization
#
_BOOK_DECIMAL_CONTEXT = getcontext()
_BOOK_DECIMAL_CONTEXT.prec = 50
_BOOK_DECIMAL_CONTEXT.rounding = ROUND_HALF_EVEN


# ============================================================================
# CONSTANTS
# ============================================================================

# Category strings are the vocabulary the field officers post against.
INSTALMENT_CATEGORY = "Loan Instalment"
SAVINGS_CATEGORY = "Savings"
ADASHE_CATEGORY = "Adashe"

TRANSACTION_CATEGORIES: Tuple[str, ...] = (
    INSTALMENT_CATEGORY,
    SAVINGS_CATEGORY,
    ADASHE_CATEGORY,
    "Risk Premium",
    "Admission Fee",
    "Membership fee",
    "Form/card",
    "Withdrawal from bank",
    "Bank Deposit",
    "Adjustment/Refund",
    "Risk premium claim",
    "Salary & benefit",
    "Field Transport",
    "Funds transfer",
    "Other Fees",
)

# Categories backed by a stored balance on the loan. Outbound postings
# against these must pass through the approval workflow.
RESTRICTED_CATEGORIES = frozenset({SAVINGS_CATEGORY, ADASHE_CATEGORY})

APPROVED_WITHDRAWAL_NOTE = "Approved Withdrawal"

# Waterfall allocation tolerance when comparing cumulative paid vs expected.
SCHEDULE_TOLERANCE = Decimal("0.01")

MONEY_PLACES = 2
DEFAULT_INTEREST_RATE = Decimal("20")

ZERO = Decimal("0")


# ============================================================================
# ENUMS
# ============================================================================

class Direction(Enum):
    """Cash direction of a posting, seen from the institution's till."""
    IN = "In"
    OUT = "Out"

    @property
    def sign(self) -> int:
        return 1 if self is Direction.IN else -1


class LoanType(Enum):
    """
    Loan product. Determines the shape of the repayment schedule.

    BUSINESS: weekly business product, 16 weekly instalments.
    AGRIC: monthly agricultural product, 4 months grace then 3 monthly instalments.
    """
    BUSINESS = "Business Loan (20%)"
    AGRIC = "Agric Loan (20%)"


class ApprovalStatus(Enum):
    """
    Status shared by loan disbursements and withdrawal requests.

    Members are declared in chain order. The allowed transitions live in
    workflow.TRANSITIONS; nothing else may move a status.
    """
    PENDING_STAGE_1 = "Pending Stage 1"
    PENDING_STAGE_2 = "Pending Stage 2"
    PENDING_STAGE_3 = "Pending Stage 3"
    APPROVED = "Approved"
    REJECTED = "Rejected"

    @property
    def is_pending(self) -> bool:
        return self in PENDING_STATUSES

    @property
    def is_terminal(self) -> bool:
        return not self.is_pending


PENDING_STATUSES = frozenset({
    ApprovalStatus.PENDING_STAGE_1,
    ApprovalStatus.PENDING_STAGE_2,
    ApprovalStatus.PENDING_STAGE_3,
})


class RiskTier(Enum):
    """Delinquency classification derived from days past due."""
    CURRENT = "Current"
    WATCH = "Watch"
    SUBSTANDARD = "Substandard"
    DOUBTFUL = "Doubtful"
    LOSS = "Loss"

    @property
    def is_performing(self) -> bool:
        """Doubtful and Loss loans are no longer counted as active members."""
        return self not in (RiskTier.DOUBTFUL, RiskTier.LOSS)


class Severity(Enum):
    """Audit trail severity."""
    INFO = "INFO"
    WARNING = "WARNING"
    CRITICAL = "CRITICAL"


class ActivityType(Enum):
    FIELD_VISIT = "Field Visit"
    PHONE_CALL = "Phone Call"
    OFFICE_MEETING = "Office Meeting"
    ARREARS_FOLLOW_UP = "Arrears Follow-up"
    NOTE = "Note"


# ============================================================================
# EXCEPTIONS
# ============================================================================

class LoanBookError(Exception):
    """Base exception for all loan book errors."""
    pass


class RequiresApproval(LoanBookError):
    """Raised when an outbound Savings/Adashe posting bypasses the approval workflow."""
    pass


class InsufficientFunds(LoanBookError):
    """Raised when a posting would drive a savings or Adashe balance below zero."""
    pass


class NotFound(LoanBookError):
    """Raised for an unknown loan, payment or request id."""
    pass


class TerminalState(LoanBookError):
    """Raised when advancing or rejecting an Approved or Rejected subject."""
    pass


class InvalidAmount(LoanBookError):
    """Raised when an amount is not a finite number greater than zero."""
    pass


class LoanNotActive(LoanBookError):
    """Raised when posting an instalment against a loan whose disbursement is not approved."""
    pass


class UnknownCategory(LoanBookError, ValueError):
    """Raised for a transaction category outside the posting vocabulary."""
    pass


# ============================================================================
# MONEY HELPERS
# ============================================================================

AmountLike = Union[Decimal, int, float, str]


def to_amount(value: AmountLike) -> Decimal:
    """
    Convert a caller-supplied amount to Decimal.

    Floats go through str() so 0.1 stays 0.1. Anything that is not a finite
    number raises InvalidAmount. Sign is not checked here; see require_positive().
    """
    if isinstance(value, bool):
        raise InvalidAmount(f"Amount must be numeric, got {value!r}")
    if isinstance(value, Decimal):
        amount = value
    else:
        try:
            amount = Decimal(str(value))
        except (InvalidOperation, ValueError, TypeError):
            raise InvalidAmount(f"Amount must be numeric, got {value!r}") from None
    if amount.is_nan() or amount.is_infinite():
        raise InvalidAmount(f"Amount must be finite, got {value!r}")
    return amount


def require_positive(value: AmountLike) -> Decimal:
    """Return value as Decimal, raising InvalidAmount unless it is > 0."""
    amount = to_amount(value)
    if amount <= ZERO:
        raise InvalidAmount(f"Amount must be greater than zero, got {amount}")
    return amount


def quantize_money(value: Decimal) -> Decimal:
    """Round to display precision (2 places, banker's rounding)."""
    quantizer = Decimal(10) ** -MONEY_PLACES
    return to_amount(value).quantize(quantizer, rounding=ROUND_HALF_EVEN)


def financed_principal(
    disbursed_amount: AmountLike,
    rate_percent: AmountLike = DEFAULT_INTEREST_RATE,
) -> Decimal:
    """
    Principal owed for a disbursement with flat financed interest.

    The interest is charged once over the whole tenure, so a 100,000
    disbursement at 20% carries a principal of 120,000.

    Example:
        financed_principal(Decimal("40000"))          # Decimal("48000")
        financed_principal(Decimal("40000"), "19")    # Decimal("47600")
    """
    amount = require_positive(disbursed_amount)
    rate = to_amount(rate_percent)
    if rate < ZERO:
        raise InvalidAmount(f"Interest rate cannot be negative, got {rate}")
    return amount + amount * rate / Decimal("100")


def validate_category(category: str) -> str:
    """Return category unchanged if it belongs to the posting vocabulary."""
    if category not in TRANSACTION_CATEGORIES:
        raise UnknownCategory(f"Unknown transaction category: {category!r}")
    return category


# ============================================================================
# IMMUTABLE RECORDS
# ============================================================================

@dataclass(frozen=True, slots=True)
class Payment:
    """
    A single posting in a loan's ledger.

    Attributes:
        id: Unique payment identifier (assigned by the owning loan)
        date: Business date of the posting
        category: One of TRANSACTION_CATEGORIES
        direction: Direction.IN or Direction.OUT
        amount: Posted amount (always > 0, direction carries the sign)
        notes: Free-text notes supplied by the caller

    Payments are never edited. A wrong posting is corrected by reversing it.
    """
    id: str
    date: date
    category: str
    direction: Direction
    amount: Decimal
    notes: str = ""

    def __post_init__(self):
        if not self.id or not self.id.strip():
            raise ValueError("Payment id cannot be empty")
        if not isinstance(self.amount, Decimal):
            raise ValueError(f"Payment amount must be Decimal, got {type(self.amount)}")
        if self.amount <= ZERO:
            raise InvalidAmount(f"Payment amount must be greater than zero, got {self.amount}")

    @property
    def is_instalment(self) -> bool:
        """True for an inbound principal repayment."""
        return self.category == INSTALMENT_CATEGORY and self.direction is Direction.IN

    @property
    def signed_amount(self) -> Decimal:
        return self.amount * self.direction.sign

    def __repr__(self) -> str:
        return f"Payment({self.id}: {self.direction.value} {self.amount} {self.category} on {self.date})"


@dataclass(frozen=True, slots=True)
class TransactionRequest:
    """
    A staged withdrawal from Savings or Adashe awaiting approval.

    Attributes:
        id: Unique request identifier
        loan_id: Owning loan
        category: SAVINGS_CATEGORY or ADASHE_CATEGORY
        amount: Requested amount (> 0)
        status: Current approval status, always starts at PENDING_STAGE_1
        requested_on: Business date the request was submitted
    """
    id: str
    loan_id: str
    category: str
    amount: Decimal
    status: ApprovalStatus = ApprovalStatus.PENDING_STAGE_1
    requested_on: Optional[date] = None

    def __post_init__(self):
        if self.category not in RESTRICTED_CATEGORIES:
            raise ValueError(
                f"Only {sorted(RESTRICTED_CATEGORIES)} withdrawals are staged, got {self.category!r}"
            )
        if self.amount <= ZERO:
            raise InvalidAmount(f"Request amount must be greater than zero, got {self.amount}")

    def __repr__(self) -> str:
        return f"TransactionRequest({self.id}: {self.category} {self.amount} [{self.status.value}])"


@dataclass(frozen=True, slots=True)
class ActivityNote:
    """Officer follow-up note attached to a loan (visit, call, arrears chase)."""
    id: str
    date: date
    officer: str
    activity_type: ActivityType
    notes: str
    flagged: bool = False


@dataclass(frozen=True, slots=True)
class AuditEntry:
    """
    Immutable audit trail record of one engine command.

    Attributes:
        sequence: Monotonic position within the book's trail
        timestamp: Wall-clock time the command completed
        actor: Caller-supplied identity (informational only)
        action: Action name, e.g. "Post Transaction", "Approve Step"
        details: Human-readable description
        severity: INFO, WARNING or CRITICAL
        loan_id: Loan the command targeted, if any
    """
    sequence: int
    timestamp: datetime
    actor: str
    action: str
    details: str
    severity: Severity
    loan_id: Optional[str] = None


@dataclass(frozen=True, slots=True)
class OfflineTransaction:
    """A posting intent captured while disconnected, replayed later in order."""
    loan_id: str
    category: str
    direction: Direction
    amount: Decimal
    notes: str = ""
    captured_at: Optional[datetime] = None


# ============================================================================
# PROTOCOLS
# ============================================================================

@runtime_checkable
class LoanView(Protocol):
    """
    Read-only interface to a loan's ledger state.

    Schedule generation, risk reporting and portfolio aggregates accept a
    LoanView so they can run against a live Loan or a frozen LoanSnapshot.
    Functions accepting a LoanView parameter declare their read-only intent.
    """

    @property
    def id(self) -> str:
        ...

    @property
    def principal(self) -> Decimal:
        ...

    @property
    def loan_type(self) -> LoanType:
        ...

    @property
    def disbursement_date(self) -> Optional[date]:
        ...

    @property
    def payments(self) -> Sequence[Payment]:
        ...


# ============================================================================
# LEDGER QUERIES
# ============================================================================

def instalment_payments(payments: Iterable[Payment]) -> List[Payment]:
    """Return inbound Loan Instalment postings in ledger order."""
    return [p for p in payments if p.is_instalment]


def total_repaid(payments: Iterable[Payment]) -> Decimal:
    """Sum of inbound Loan Instalment postings."""
    return sum((p.amount for p in instalment_payments(payments)), ZERO)


def outstanding_principal(view: LoanView) -> Decimal:
    """
    Principal still owed: principal minus every inbound instalment.

    Always recomputed from the payment log, never stored. The result is a
    signed ledger quantity; over-repayment or inconsistent reversals can
    make it negative and callers must not clamp it.
    """
    return view.principal - total_repaid(view.payments)


def category_totals(payments: Iterable[Payment]) -> Dict[Tuple[str, Direction], Decimal]:
    """Aggregate posted amounts by (category, direction)."""
    totals: Dict[Tuple[str, Direction], Decimal] = {}
    for p in payments:
        key = (p.category, p.direction)
        totals[key] = totals.get(key, ZERO) + p.amount
    return totals
