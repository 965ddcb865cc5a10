"""
book.py - The Loan Book

The LoanBook is the entry point the request router calls. It keeps the
registry of Loan aggregates keyed by id and routes each command to the
owning loan, which serializes and validates it.

Key responsibilities:
    - Resolves loan ids (NotFound for unknown ids)
    - Supplies the business date for postings and approvals
    - Records every command, successful or not, in the audit trail
    - Replays offline-captured postings one at a time, surfacing each error
    - Always audits and never swallows errors: a failed command is logged
      as a WARNING and re-raised to the caller
"""

from __future__ import annotations
from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal
from typing import Callable, Dict, Iterable, List, Optional, Tuple, TypeVar, Union
import threading

from .core import (
    # Types
    Payment, TransactionRequest, ActivityNote, AuditEntry, OfflineTransaction,
    Direction, LoanType, ApprovalStatus, RiskTier, ActivityType, Severity,
    AmountLike,
    # Constants
    RESTRICTED_CATEGORIES,
    # Exceptions
    LoanBookError, NotFound,
)
from .loan import Loan, LoanSnapshot
from .schedule import ScheduleItem, generate_schedule
from .workflow import ApprovalRole, stages_for_role

T = TypeVar("T")

SYSTEM_ACTOR = "System"


@dataclass(frozen=True, slots=True)
class ApprovalQueue:
    """Items waiting on a role: disbursements and withdrawal requests."""
    disbursements: Tuple[LoanSnapshot, ...]
    withdrawals: Tuple[TransactionRequest, ...]

    def __len__(self) -> int:
        return len(self.disbursements) + len(self.withdrawals)


@dataclass(frozen=True, slots=True)
class ReplayOutcome:
    """
    Result of replaying one offline transaction.

    Exactly one of result and error is set.
    """
    entry: OfflineTransaction
    result: Optional[Union[Payment, TransactionRequest]] = None
    error: Optional[Exception] = None

    @property
    def ok(self) -> bool:
        return self.error is None


class LoanBook:
    """
    Registry of loans with an audit trail.

    Thread Safety:
        Commands against the same loan are serialized by that loan's lock.
        Commands against different loans run in parallel; the book's own
        locks only guard the registry and the audit trail.

    Example:
        book = LoanBook("ikeja-branch", initial_date=date(2025, 1, 6), verbose=False)
        book.open_loan("LN-001", financed_principal(Decimal("40000")), LoanType.BUSINESS)
        for _ in range(3):
            book.advance_disbursement("LN-001", actor="approver")
        book.apply_transaction("LN-001", INSTALMENT_CATEGORY, Direction.IN, Decimal("3000"))
        book.schedule("LN-001")[0].status   # InstalmentStatus.PAID
    """

    def __init__(
        self,
        name: str,
        initial_date: Optional[date] = None,
        verbose: bool = True,
    ):
        """
        Create a loan book.

        Args:
            name: Book identifier (branch, portfolio)
            initial_date: Pinned business date. When None, the book follows
                the wall clock (date.today()).
            verbose: Print one line per command (default: True)
        """
        self.name = name
        self.verbose = verbose
        self._loans: Dict[str, Loan] = {}
        self._current_date: Optional[date] = initial_date
        self.audit_trail: List[AuditEntry] = []
        self._next_sequence: int = 0
        self._registry_lock = threading.Lock()
        self._audit_lock = threading.Lock()

    # ========================================================================
    # TIME MANAGEMENT
    # ========================================================================

    @property
    def current_date(self) -> date:
        """Business date stamped on postings and approvals."""
        return self._current_date or date.today()

    def advance_date(self, new_date: date) -> None:
        """
        Pin the business date to new_date.

        Raises:
            ValueError: If new_date is before the current business date
        """
        if new_date < self.current_date:
            raise ValueError(
                f"Cannot move the business date backwards: {new_date} < {self.current_date}"
            )
        self._current_date = new_date

    # ========================================================================
    # REGISTRY
    # ========================================================================

    def open_loan(
        self,
        loan_id: str,
        principal: AmountLike,
        loan_type: LoanType,
        actor: str = SYSTEM_ACTOR,
        **fields,
    ) -> Loan:
        """
        Create and register a loan. Extra keyword arguments go to Loan().

        Raises:
            ValueError: If loan_id is already registered
        """
        loan = Loan(loan_id, principal, loan_type, **fields)
        self.add_loan(loan, actor=actor)
        return loan

    def add_loan(self, loan: Loan, actor: str = SYSTEM_ACTOR) -> Loan:
        """Register an existing Loan aggregate."""
        with self._registry_lock:
            if loan.id in self._loans:
                raise ValueError(f"Loan {loan.id} already registered")
            self._loans[loan.id] = loan
        self._audit(
            actor, "Create Loan",
            f"Registered loan {loan.id} for {loan.borrower_name or 'unnamed borrower'} "
            f"({loan.loan_type.value}, principal {loan.principal})",
            Severity.INFO, loan.id,
        )
        return loan

    def get_loan(self, loan_id: str) -> Loan:
        """
        Raises:
            NotFound: If loan_id is not registered
        """
        with self._registry_lock:
            try:
                return self._loans[loan_id]
            except KeyError:
                raise NotFound(f"Loan {loan_id} not found") from None

    def remove_loan(self, loan_id: str, actor: str = SYSTEM_ACTOR) -> Loan:
        """
        Drop a loan from the registry. Its audit entries are kept.

        Raises:
            NotFound: If loan_id is not registered
        """
        with self._registry_lock:
            loan = self._loans.pop(loan_id, None)
        if loan is None:
            self._audit(actor, "Delete Loan", f"NotFound: Loan {loan_id} not found",
                        Severity.WARNING, loan_id)
            raise NotFound(f"Loan {loan_id} not found")
        self._audit(actor, "Delete Loan", f"Deleted loan record {loan_id}",
                    Severity.CRITICAL, loan_id)
        if self.verbose:
            print(f"✓ APPLIED [{self.name}] Delete Loan on {loan_id}")
        return loan

    def list_loans(self) -> List[str]:
        """Registered loan ids, sorted."""
        with self._registry_lock:
            return sorted(self._loans)

    def snapshots(self) -> List[LoanSnapshot]:
        """Point-in-time snapshot of every loan, in loan id order."""
        return [self.get_loan(loan_id).snapshot() for loan_id in self.list_loans()]

    # ========================================================================
    # LEDGER COMMANDS
    # ========================================================================

    def apply_transaction(
        self,
        loan_id: str,
        category: str,
        direction: Direction,
        amount: AmountLike,
        notes: str = "",
        actor: str = SYSTEM_ACTOR,
    ) -> Payment:
        """Post a transaction to a loan. See Loan.apply_transaction()."""
        return self._command(
            loan_id, "Post Transaction", actor, Severity.INFO,
            lambda loan: loan.apply_transaction(category, direction, amount, notes, on=self.current_date),
            lambda payment: (
                f"Posted {payment.direction.value} {category} of {payment.amount} ({payment.id})"
            ),
        )

    def reverse_transaction(
        self,
        loan_id: str,
        payment_id: str,
        actor: str = SYSTEM_ACTOR,
    ) -> Payment:
        """Reverse a posting. See Loan.reverse_transaction()."""
        return self._command(
            loan_id, "Delete Transaction", actor, Severity.WARNING,
            lambda loan: loan.reverse_transaction(payment_id),
            lambda payment: (
                f"Reversed {payment.direction.value} {payment.category} of "
                f"{payment.amount} ({payment.id})"
            ),
        )

    def outstanding_principal(self, loan_id: str) -> Decimal:
        return self.get_loan(loan_id).outstanding_principal

    # ========================================================================
    # APPROVAL COMMANDS
    # ========================================================================

    def submit_withdrawal(
        self,
        loan_id: str,
        category: str,
        amount: AmountLike,
        actor: str = SYSTEM_ACTOR,
    ) -> TransactionRequest:
        """Stage a Savings/Adashe withdrawal. See Loan.submit_withdrawal()."""
        return self._command(
            loan_id, "Request Withdrawal", actor, Severity.WARNING,
            lambda loan: loan.submit_withdrawal(category, amount, on=self.current_date),
            lambda request: f"Requested {category} withdrawal of {request.amount} ({request.id})",
        )

    def advance_request(
        self,
        loan_id: str,
        request_id: str,
        actor: str = SYSTEM_ACTOR,
    ) -> ApprovalStatus:
        """
        Advance a withdrawal request one stage. See Loan.advance_request().

        Intermediate steps are audited as "Approve Step"; the final step is
        audited once, as "Approve Withdrawal".
        """
        return self._command(
            loan_id, "Approve Step", actor, Severity.INFO,
            lambda loan: loan.advance_request(request_id, on=self.current_date),
            lambda status: (
                f"Final approval for transaction request {request_id}"
                if status is ApprovalStatus.APPROVED
                else f"Advanced transaction request {request_id} to {status.value}"
            ),
            resolve_action=lambda status: (
                "Approve Withdrawal" if status is ApprovalStatus.APPROVED else "Approve Step"
            ),
        )

    def reject_request(
        self,
        loan_id: str,
        request_id: str,
        actor: str = SYSTEM_ACTOR,
    ) -> ApprovalStatus:
        """Reject a withdrawal request. See Loan.reject_request()."""
        return self._command(
            loan_id, "Reject Withdrawal", actor, Severity.WARNING,
            lambda loan: loan.reject_request(request_id),
            lambda status: f"Rejected transaction request {request_id}",
        )

    def advance_disbursement(self, loan_id: str, actor: str = SYSTEM_ACTOR) -> ApprovalStatus:
        """Advance a loan's disbursement one stage. See Loan.advance_disbursement()."""
        return self._command(
            loan_id, "Approve Loan", actor, Severity.INFO,
            lambda loan: loan.advance_disbursement(on=self.current_date),
            lambda status: f"Advanced loan {loan_id} to {status.value}",
        )

    def reject_disbursement(self, loan_id: str, actor: str = SYSTEM_ACTOR) -> ApprovalStatus:
        """Reject a loan's disbursement. See Loan.reject_disbursement()."""
        return self._command(
            loan_id, "Reject Loan", actor, Severity.WARNING,
            lambda loan: loan.reject_disbursement(),
            lambda status: f"Rejected loan application {loan_id}",
        )

    def approval_queue(self, role: ApprovalRole) -> ApprovalQueue:
        """Disbursements and withdrawal requests waiting at the role's stages."""
        stages = set(stages_for_role(role))
        disbursements = []
        withdrawals = []
        for snap in self.snapshots():
            if snap.disbursement_status in stages:
                disbursements.append(snap)
            withdrawals.extend(r for r in snap.pending_requests if r.status in stages)
        return ApprovalQueue(tuple(disbursements), tuple(withdrawals))

    # ========================================================================
    # RISK, SCHEDULE AND FOLLOW-UP
    # ========================================================================

    def set_dpd(self, loan_id: str, dpd: int, actor: str = SYSTEM_ACTOR) -> RiskTier:
        """Record days past due and return the recomputed tier."""
        return self._command(
            loan_id, "Update DPD", actor, Severity.INFO,
            lambda loan: loan.set_dpd(dpd),
            lambda tier: f"DPD set to {dpd} ({tier.value})",
        )

    def schedule(self, loan_id: str, today: Optional[date] = None) -> List[ScheduleItem]:
        """Schedule built from a consistent snapshot of the loan."""
        snap = self.get_loan(loan_id).snapshot()
        return list(generate_schedule(snap, today or self.current_date))

    def record_activity(
        self,
        loan_id: str,
        officer: str,
        activity_type: ActivityType,
        notes: str,
        flagged: bool = False,
    ) -> ActivityNote:
        """Attach an officer follow-up note to a loan."""
        return self._command(
            loan_id, "Log Activity", officer, Severity.INFO,
            lambda loan: loan.record_activity(officer, activity_type, notes, self.current_date, flagged),
            lambda note: f"{note.activity_type.value}: {note.notes}",
        )

    # ========================================================================
    # OFFLINE REPLAY
    # ========================================================================

    def replay(
        self,
        entries: Iterable[OfflineTransaction],
        actor: str = SYSTEM_ACTOR,
    ) -> List[ReplayOutcome]:
        """
        Replay offline-captured postings one at a time, in the order given.

        Outbound Savings/Adashe entries become withdrawal requests, everything
        else is posted. A failing entry (a LoanBookError, or a ValueError or
        TypeError from a malformed entry) is reported in its outcome and the
        remaining entries still run. No reordering or conflict resolution is
        attempted.
        """
        outcomes = []
        for entry in entries:
            try:
                if entry.category in RESTRICTED_CATEGORIES and entry.direction is Direction.OUT:
                    result = self.submit_withdrawal(entry.loan_id, entry.category, entry.amount, actor=actor)
                else:
                    result = self.apply_transaction(
                        entry.loan_id, entry.category, entry.direction,
                        entry.amount, entry.notes, actor=actor,
                    )
            except (LoanBookError, ValueError, TypeError) as e:
                outcomes.append(ReplayOutcome(entry=entry, error=e))
            else:
                outcomes.append(ReplayOutcome(entry=entry, result=result))
        return outcomes

    # ========================================================================
    # AUDIT
    # ========================================================================

    def audit_for(self, loan_id: str) -> List[AuditEntry]:
        """Audit entries that targeted loan_id, oldest first."""
        with self._audit_lock:
            return [e for e in self.audit_trail if e.loan_id == loan_id]

    def _audit(
        self,
        actor: str,
        action: str,
        details: str,
        severity: Severity,
        loan_id: Optional[str] = None,
    ) -> AuditEntry:
        with self._audit_lock:
            entry = AuditEntry(
                sequence=self._next_sequence,
                timestamp=datetime.now(),
                actor=actor,
                action=action,
                details=details,
                severity=severity,
                loan_id=loan_id,
            )
            self._next_sequence += 1
            self.audit_trail.append(entry)
        return entry

    def _command(
        self,
        loan_id: str,
        action: str,
        actor: str,
        severity: Severity,
        command: Callable[[Loan], T],
        describe: Callable[[T], str],
        resolve_action: Optional[Callable[[T], str]] = None,
    ) -> T:
        """
        Run command against the loan, then audit and report the outcome.

        Errors (including bad argument types and values) are audited as
        WARNING with the error name and re-raised unchanged. When given,
        resolve_action renames the audited action from the result.
        """
        try:
            loan = self.get_loan(loan_id)
            result = command(loan)
        except (LoanBookError, ValueError, TypeError) as e:
            self._audit(actor, action, f"{type(e).__name__}: {e}", Severity.WARNING, loan_id)
            if self.verbose:
                print(f"✗ REJECTED [{self.name}] {action} on {loan_id}: {type(e).__name__}: {e}")
            raise
        if resolve_action is not None:
            action = resolve_action(result)
        details = describe(result)
        self._audit(actor, action, details, severity, loan_id)
        if self.verbose:
            print(f"✓ APPLIED [{self.name}] {action} on {loan_id}: {details}")
        return result
