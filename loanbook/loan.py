"""
loan.py - The Loan Aggregate

A Loan owns one borrower's ledger: the payment log, the stored Savings and
Adashe balances, the withdrawal requests in flight and the disbursement
status. It is the only object that mutates that state.

Key responsibilities:
    - Implements LoanView for read-only access by schedule and reporting code
    - Applies postings atomically (the payment and its balance effect land
      together or not at all)
    - Reverses postings by applying the exact inverse effect
    - Drives withdrawal requests and the disbursement through the approval chain
    - Serializes every command on a per-loan lock

Balances are never allowed below zero. Outstanding principal is not stored;
it is always derived from the payment log.
"""

from __future__ import annotations
from dataclasses import dataclass, field, replace
from datetime import date
from decimal import Decimal
from typing import Dict, List, Optional, Tuple
import threading

from .core import (
    # Types
    Payment, TransactionRequest, ActivityNote,
    Direction, LoanType, ApprovalStatus, RiskTier, ActivityType,
    AmountLike,
    # Constants
    INSTALMENT_CATEGORY, SAVINGS_CATEGORY, ADASHE_CATEGORY,
    RESTRICTED_CATEGORIES, APPROVED_WITHDRAWAL_NOTE, DEFAULT_INTEREST_RATE, ZERO,
    # Exceptions
    RequiresApproval, InsufficientFunds, NotFound, TerminalState, InvalidAmount, LoanNotActive,
    # Helpers
    to_amount, require_positive, validate_category, outstanding_principal,
)
from .risk import classify_dpd
from .workflow import advance_status, reject_status


@dataclass(frozen=True, slots=True)
class LoanSnapshot:
    """
    Point-in-time copy of a Loan, taken under the loan's lock.

    Implements LoanView. Safe to hand to other threads, schedule generation
    and reporting without further locking.
    """
    id: str
    principal: Decimal
    loan_type: LoanType
    disbursement_date: Optional[date]
    disbursement_status: ApprovalStatus
    savings_balance: Decimal
    adashe_balance: Decimal
    payments: Tuple[Payment, ...]
    pending_requests: Tuple[TransactionRequest, ...]
    dpd: int
    status: RiskTier
    borrower_name: str = ""
    group_name: str = ""
    credit_officer: str = ""
    interest_rate: Decimal = DEFAULT_INTEREST_RATE
    activity_log: Tuple[ActivityNote, ...] = field(default_factory=tuple)

    @property
    def outstanding_principal(self) -> Decimal:
        return outstanding_principal(self)

    @property
    def is_active(self) -> bool:
        return self.disbursement_status is ApprovalStatus.APPROVED


class Loan:
    """
    Aggregate root for a single loan and its savings products.

    Every public command acquires the loan's lock, validates, computes the
    new state, and only then commits. A command that raises leaves the loan
    exactly as it found it.

    Thread Safety:
        Commands on the same Loan are serialized by an internal RLock.
        Different Loan instances share nothing and can be used in parallel.

    Example:
        loan = Loan("LN-001", Decimal("48000"), LoanType.BUSINESS,
                    disbursement_date=date(2025, 1, 6),
                    disbursement_status=ApprovalStatus.APPROVED)
        loan.apply_transaction(SAVINGS_CATEGORY, Direction.IN, Decimal("5000"))
        request = loan.submit_withdrawal(SAVINGS_CATEGORY, Decimal("2000"))
        for _ in range(3):
            loan.advance_request(request.id)
        loan.savings_balance  # Decimal("3000")
    """

    def __init__(
        self,
        loan_id: str,
        principal: AmountLike,
        loan_type: LoanType,
        disbursement_date: Optional[date] = None,
        disbursement_status: ApprovalStatus = ApprovalStatus.PENDING_STAGE_1,
        savings_balance: AmountLike = ZERO,
        adashe_balance: AmountLike = ZERO,
        dpd: int = 0,
        borrower_name: str = "",
        group_name: str = "",
        credit_officer: str = "",
        interest_rate: AmountLike = DEFAULT_INTEREST_RATE,
    ):
        """
        Create a loan.

        Args:
            loan_id: Externally assigned, stable identifier
            principal: Total amount owed, including financed interest
            loan_type: Product, determines the schedule shape
            disbursement_date: Date funds were released (None until disbursed)
            disbursement_status: Starting approval status of the disbursement
            savings_balance: Opening savings balance (migrated records)
            adashe_balance: Opening Adashe balance (migrated records)
            dpd: Days past due, maintained by the caller
            borrower_name, group_name, credit_officer: Descriptive fields for reporting
            interest_rate: Flat rate (percent) financed into the principal

        Raises:
            ValueError: If loan_id is empty, or loan_type or disbursement_status
                is not the matching enum
            InvalidAmount: If principal or an opening balance is negative
        """
        if not loan_id or not str(loan_id).strip():
            raise ValueError("Loan id cannot be empty")
        if not isinstance(loan_type, LoanType):
            raise ValueError(f"loan_type must be a LoanType, got {loan_type!r}")
        if not isinstance(disbursement_status, ApprovalStatus):
            raise ValueError(
                f"disbursement_status must be an ApprovalStatus, got {disbursement_status!r}"
            )

        principal = to_amount(principal)
        savings_balance = to_amount(savings_balance)
        adashe_balance = to_amount(adashe_balance)
        if principal < ZERO:
            raise InvalidAmount(f"Principal cannot be negative, got {principal}")
        if savings_balance < ZERO or adashe_balance < ZERO:
            raise InvalidAmount("Opening savings and Adashe balances cannot be negative")

        self._id = str(loan_id)
        self._principal = principal
        self._loan_type = loan_type
        self._disbursement_date = disbursement_date
        self._disbursement_status = disbursement_status
        self._savings_balance = savings_balance
        self._adashe_balance = adashe_balance
        self._dpd = 0
        self._status = RiskTier.CURRENT
        self.borrower_name = borrower_name
        self.group_name = group_name
        self.credit_officer = credit_officer
        self.interest_rate = to_amount(interest_rate)

        self._payments: List[Payment] = []
        self._pending_requests: Dict[str, TransactionRequest] = {}
        # Final status of requests that left the pending set
        self._settled_requests: Dict[str, ApprovalStatus] = {}
        self._activity_log: List[ActivityNote] = []
        # Monotonic counter for payment, request and note ids
        self._next_sequence: int = 0
        self._lock = threading.RLock()

        self.set_dpd(dpd)

    # ========================================================================
    # LoanView PROTOCOL IMPLEMENTATION (read-only)
    # ========================================================================

    @property
    def id(self) -> str:
        return self._id

    @property
    def principal(self) -> Decimal:
        return self._principal

    @property
    def loan_type(self) -> LoanType:
        return self._loan_type

    @property
    def disbursement_date(self) -> Optional[date]:
        return self._disbursement_date

    @property
    def payments(self) -> Tuple[Payment, ...]:
        """Payment log in ledger order (a copy)."""
        with self._lock:
            return tuple(self._payments)

    # ========================================================================
    # OTHER READS
    # ========================================================================

    @property
    def disbursement_status(self) -> ApprovalStatus:
        return self._disbursement_status

    @property
    def is_active(self) -> bool:
        """True once the disbursement has been fully approved."""
        return self._disbursement_status is ApprovalStatus.APPROVED

    @property
    def savings_balance(self) -> Decimal:
        return self._savings_balance

    @property
    def adashe_balance(self) -> Decimal:
        return self._adashe_balance

    @property
    def dpd(self) -> int:
        return self._dpd

    @property
    def status(self) -> RiskTier:
        """Risk tier, recomputed from dpd on every set_dpd()."""
        return self._status

    @property
    def pending_requests(self) -> Dict[str, TransactionRequest]:
        """In-flight withdrawal requests keyed by id (a copy)."""
        with self._lock:
            return dict(self._pending_requests)

    @property
    def activity_log(self) -> Tuple[ActivityNote, ...]:
        with self._lock:
            return tuple(self._activity_log)

    @property
    def outstanding_principal(self) -> Decimal:
        """principal minus inbound instalments, derived on every read."""
        with self._lock:
            return outstanding_principal(self)

    def balance(self, category: str) -> Decimal:
        """Stored balance for a Savings or Adashe category."""
        if category == SAVINGS_CATEGORY:
            return self._savings_balance
        if category == ADASHE_CATEGORY:
            return self._adashe_balance
        raise ValueError(f"{category!r} has no stored balance")

    def get_payment(self, payment_id: str) -> Payment:
        with self._lock:
            for payment in self._payments:
                if payment.id == payment_id:
                    return payment
        raise NotFound(f"Payment {payment_id} not found on loan {self._id}")

    def get_request(self, request_id: str) -> TransactionRequest:
        with self._lock:
            try:
                return self._pending_requests[request_id]
            except KeyError:
                raise NotFound(
                    f"Request {request_id} not pending on loan {self._id}"
                ) from None

    def request_status(self, request_id: str) -> ApprovalStatus:
        """Current status of a request, pending or settled."""
        with self._lock:
            if request_id in self._settled_requests:
                return self._settled_requests[request_id]
            return self.get_request(request_id).status

    def snapshot(self) -> LoanSnapshot:
        """Consistent frozen copy of the loan, taken under its lock."""
        with self._lock:
            return LoanSnapshot(
                id=self._id,
                principal=self._principal,
                loan_type=self._loan_type,
                disbursement_date=self._disbursement_date,
                disbursement_status=self._disbursement_status,
                savings_balance=self._savings_balance,
                adashe_balance=self._adashe_balance,
                payments=tuple(self._payments),
                pending_requests=tuple(self._pending_requests.values()),
                dpd=self._dpd,
                status=self._status,
                borrower_name=self.borrower_name,
                group_name=self.group_name,
                credit_officer=self.credit_officer,
                interest_rate=self.interest_rate,
                activity_log=tuple(self._activity_log),
            )

    # ========================================================================
    # LEDGER COMMANDS (Mutating)
    # ========================================================================

    def apply_transaction(
        self,
        category: str,
        direction: Direction,
        amount: AmountLike,
        notes: str = "",
        on: Optional[date] = None,
    ) -> Payment:
        """
        Post a transaction to the loan's ledger.

        Loan Instalment postings only append to the log (the outstanding
        balance is derived). Savings and Adashe postings also move the
        stored balance. Every other category is recorded for reporting only.

        Args:
            category: One of TRANSACTION_CATEGORIES
            direction: Direction.IN or Direction.OUT
            amount: Amount (> 0)
            notes: Caller-sanitized notes
            on: Business date of the posting (default: today)

        Returns:
            The new Payment

        Raises:
            RequiresApproval: For an outbound Savings or Adashe posting,
                whatever the amount
            InvalidAmount: If amount is not > 0
            LoanNotActive: For an instalment on a loan not yet approved
            InsufficientFunds: If a balance would go below zero
        """
        validate_category(category)
        direction = Direction(direction)
        if category in RESTRICTED_CATEGORIES and direction is Direction.OUT:
            raise RequiresApproval(
                f"{category} withdrawals must be submitted for approval"
            )
        amount = require_positive(amount)
        with self._lock:
            return self._post(category, direction, amount, notes, on)

    def reverse_transaction(self, payment_id: str) -> Payment:
        """
        Undo a posting: apply its inverse effect, then drop it from the log.

        This is the only correction mechanism; payments are never edited.

        Returns:
            The removed Payment

        Raises:
            NotFound: If the payment is not on this loan
            InsufficientFunds: If the inverse would drive a balance below zero
                (e.g. reversing a deposit that has since been withdrawn)
        """
        with self._lock:
            for index, payment in enumerate(self._payments):
                if payment.id == payment_id:
                    break
            else:
                raise NotFound(f"Payment {payment_id} not found on loan {self._id}")

            savings, adashe = self._proposed_balances(
                payment.category, -payment.signed_amount
            )
            del self._payments[index]
            self._savings_balance = savings
            self._adashe_balance = adashe
            return payment

    # ========================================================================
    # APPROVAL COMMANDS (Mutating)
    # ========================================================================

    def submit_withdrawal(
        self,
        category: str,
        amount: AmountLike,
        on: Optional[date] = None,
    ) -> TransactionRequest:
        """
        Stage a Savings or Adashe withdrawal at PENDING_STAGE_1.

        No balance changes until the request is approved. The balance is not
        checked here either; it is checked when the final approval applies it.

        Raises:
            ValueError: If category is not Savings or Adashe
            InvalidAmount: If amount is not > 0
        """
        if category not in RESTRICTED_CATEGORIES:
            raise ValueError(
                f"Only Savings and Adashe withdrawals need approval, got {category!r}"
            )
        amount = require_positive(amount)
        with self._lock:
            request = TransactionRequest(
                id=self._new_id("REQ"),
                loan_id=self._id,
                category=category,
                amount=amount,
                status=ApprovalStatus.PENDING_STAGE_1,
                requested_on=on or date.today(),
            )
            self._pending_requests[request.id] = request
            return request

    def advance_request(self, request_id: str, on: Optional[date] = None) -> ApprovalStatus:
        """
        Move a withdrawal request one stage forward.

        On the final step the withdrawal is posted (note "Approved Withdrawal")
        and the request leaves pending_requests in the same critical section.
        If the balance no longer covers it, InsufficientFunds is raised and
        the request stays at PENDING_STAGE_3 so it can be retried.

        Returns:
            The request's new status

        Raises:
            NotFound: If the request was never submitted on this loan
            TerminalState: If the request was already approved or rejected
            InsufficientFunds: If the final approval cannot be funded
        """
        with self._lock:
            request = self._open_request(request_id)
            next_status = advance_status(request.status)
            if next_status is ApprovalStatus.APPROVED:
                self._post(
                    request.category, Direction.OUT, request.amount,
                    APPROVED_WITHDRAWAL_NOTE, on,
                )
                del self._pending_requests[request_id]
                self._settled_requests[request_id] = next_status
            else:
                self._pending_requests[request_id] = replace(request, status=next_status)
            return next_status

    def reject_request(self, request_id: str) -> ApprovalStatus:
        """
        Reject a pending withdrawal request. It is discarded with no ledger effect.

        Raises:
            NotFound: If the request was never submitted on this loan
            TerminalState: If the request was already approved or rejected
        """
        with self._lock:
            request = self._open_request(request_id)
            status = reject_status(request.status)
            del self._pending_requests[request_id]
            self._settled_requests[request_id] = status
            return status

    def advance_disbursement(self, on: Optional[date] = None) -> ApprovalStatus:
        """
        Move the disbursement one stage forward.

        On APPROVED the loan becomes active. If no disbursement date was
        recorded, the approval date becomes the disbursement date.

        Raises:
            TerminalState: If the disbursement is already Approved or Rejected
        """
        with self._lock:
            next_status = advance_status(self._disbursement_status)
            if next_status is ApprovalStatus.APPROVED and self._disbursement_date is None:
                self._disbursement_date = on or date.today()
            self._disbursement_status = next_status
            return next_status

    def reject_disbursement(self) -> ApprovalStatus:
        """
        Reject the disbursement. Nothing else on the loan changes.

        Raises:
            TerminalState: If the disbursement is already Approved or Rejected
        """
        with self._lock:
            self._disbursement_status = reject_status(self._disbursement_status)
            return self._disbursement_status

    # ========================================================================
    # RISK AND FOLLOW-UP
    # ========================================================================

    def set_dpd(self, dpd: int) -> RiskTier:
        """Record days past due and recompute the risk tier."""
        tier = classify_dpd(dpd)
        with self._lock:
            self._dpd = dpd
            self._status = tier
            return tier

    def record_activity(
        self,
        officer: str,
        activity_type: ActivityType,
        notes: str,
        on: Optional[date] = None,
        flagged: bool = False,
    ) -> ActivityNote:
        """Append an officer follow-up note to the loan's activity log."""
        with self._lock:
            note = ActivityNote(
                id=self._new_id("ACT"),
                date=on or date.today(),
                officer=officer,
                activity_type=ActivityType(activity_type),
                notes=notes,
                flagged=flagged,
            )
            self._activity_log.append(note)
            return note

    # ========================================================================
    # INTERNALS (caller holds the lock)
    # ========================================================================

    def _new_id(self, prefix: str) -> str:
        """Format: {prefix}-{loan_id}-{sequence:06d}, unique within the loan."""
        sequence = self._next_sequence
        self._next_sequence += 1
        return f"{prefix}-{self._id}-{sequence:06d}"

    def _open_request(self, request_id: str) -> TransactionRequest:
        """Pending request by id; TerminalState if it has already been decided."""
        settled = self._settled_requests.get(request_id)
        if settled is not None:
            raise TerminalState(
                f"Request {request_id} on loan {self._id} is already {settled.value}"
            )
        return self.get_request(request_id)

    def _proposed_balances(self, category: str, delta: Decimal) -> Tuple[Decimal, Decimal]:
        """
        Savings and Adashe balances after applying delta to category.

        Categories without a stored balance leave both unchanged.

        Raises:
            InsufficientFunds: If the affected balance would go below zero
        """
        savings, adashe = self._savings_balance, self._adashe_balance
        if category == SAVINGS_CATEGORY:
            savings += delta
            proposed = savings
        elif category == ADASHE_CATEGORY:
            adashe += delta
            proposed = adashe
        else:
            return savings, adashe
        if proposed < ZERO:
            raise InsufficientFunds(
                f"Loan {self._id} {category}: {self.balance(category)} available, "
                f"{-delta} required"
            )
        return savings, adashe

    def _post(
        self,
        category: str,
        direction: Direction,
        amount: Decimal,
        notes: str,
        on: Optional[date],
    ) -> Payment:
        """Validate, build and commit a posting. Nothing is written until all checks pass."""
        if category == INSTALMENT_CATEGORY and not self.is_active:
            raise LoanNotActive(
                f"Loan {self._id} disbursement is {self._disbursement_status.value}; "
                f"instalments cannot be posted"
            )
        savings, adashe = self._proposed_balances(category, amount * direction.sign)
        payment = Payment(
            id=self._new_id("TXN"),
            date=on or date.today(),
            category=category,
            direction=direction,
            amount=amount,
            notes=notes,
        )
        self._payments.append(payment)
        self._savings_balance = savings
        self._adashe_balance = adashe
        return payment

    def __repr__(self) -> str:
        return (
            f"Loan({self._id}: {self._loan_type.name} principal={self._principal} "
            f"savings={self._savings_balance} adashe={self._adashe_balance} "
            f"[{self._disbursement_status.value}, {self._status.value}])"
        )
