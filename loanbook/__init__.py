"""
loanbook - Loan Accounting & Approval Engine

Keeps each borrower's ledger (loan repayments, savings, Adashe), builds
repayment schedules, classifies delinquency and runs the three-stage
approval chain for disbursements and withdrawals.

Usage:
    from loanbook import (
        LoanBook, LoanType, Direction, INSTALMENT_CATEGORY, SAVINGS_CATEGORY,
        financed_principal,
    )

    book = LoanBook("ikeja", verbose=False)
    book.open_loan("LN-001", financed_principal(Decimal("40000")), LoanType.BUSINESS,
                   group_name="Alheri")

    # Three sign-offs release the loan
    for _ in range(3):
        book.advance_disbursement("LN-001")

    book.apply_transaction("LN-001", INSTALMENT_CATEGORY, Direction.IN, Decimal("3000"))
    book.apply_transaction("LN-001", SAVINGS_CATEGORY, Direction.IN, Decimal("5000"))

    # Savings withdrawals are staged, never posted directly
    request = book.submit_withdrawal("LN-001", SAVINGS_CATEGORY, Decimal("2000"))
    for _ in range(3):
        book.advance_request("LN-001", request.id)
"""

# Core types
from .core import (
    LoanView,
    Payment,
    TransactionRequest,
    ActivityNote,
    AuditEntry,
    OfflineTransaction,
    Direction,
    LoanType,
    ApprovalStatus,
    RiskTier,
    Severity,
    ActivityType,
    LoanBookError,
    RequiresApproval,
    InsufficientFunds,
    NotFound,
    TerminalState,
    InvalidAmount,
    LoanNotActive,
    UnknownCategory,
    INSTALMENT_CATEGORY,
    SAVINGS_CATEGORY,
    ADASHE_CATEGORY,
    TRANSACTION_CATEGORIES,
    RESTRICTED_CATEGORIES,
    APPROVED_WITHDRAWAL_NOTE,
    SCHEDULE_TOLERANCE,
    PENDING_STATUSES,
    to_amount,
    quantize_money,
    financed_principal,
    outstanding_principal,
    total_repaid,
)

# Risk
from .risk import classify_dpd, DPD_BUCKETS

# Workflow
from .workflow import (
    TRANSITIONS,
    STAGE_ROLES,
    ApprovalRole,
    advance_status,
    reject_status,
    can_transition,
    steps_to_approval,
    stages_for_role,
)

# Aggregate
from .loan import Loan, LoanSnapshot

# Schedule
from .schedule import (
    ProductTerms,
    PRODUCT_TERMS,
    ScheduleItem,
    InstalmentStatus,
    generate_schedule,
    schedule_list,
    instalments_paid,
    days_past_due,
    arrears,
)

# Book
from .book import LoanBook, ApprovalQueue, ReplayOutcome

# Reporting
from .reporting import (
    GroupSummary,
    CashbookDay,
    TierExposure,
    group_summaries,
    daily_cashbook,
    portfolio_by_tier,
    portfolio_at_risk,
)

__all__ = [
    # Core
    'LoanView', 'Payment', 'TransactionRequest', 'ActivityNote', 'AuditEntry',
    'OfflineTransaction', 'Direction', 'LoanType', 'ApprovalStatus', 'RiskTier',
    'Severity', 'ActivityType',
    'LoanBookError', 'RequiresApproval', 'InsufficientFunds', 'NotFound',
    'TerminalState', 'InvalidAmount', 'LoanNotActive', 'UnknownCategory',
    'INSTALMENT_CATEGORY', 'SAVINGS_CATEGORY', 'ADASHE_CATEGORY',
    'TRANSACTION_CATEGORIES', 'RESTRICTED_CATEGORIES', 'APPROVED_WITHDRAWAL_NOTE',
    'SCHEDULE_TOLERANCE', 'PENDING_STATUSES',
    'to_amount', 'quantize_money', 'financed_principal', 'outstanding_principal',
    'total_repaid',
    # Risk
    'classify_dpd', 'DPD_BUCKETS',
    # Workflow
    'TRANSITIONS', 'STAGE_ROLES', 'ApprovalRole', 'advance_status', 'reject_status',
    'can_transition', 'steps_to_approval', 'stages_for_role',
    # Aggregate
    'Loan', 'LoanSnapshot',
    # Schedule
    'ProductTerms', 'PRODUCT_TERMS', 'ScheduleItem', 'InstalmentStatus',
    'generate_schedule', 'schedule_list', 'instalments_paid', 'days_past_due', 'arrears',
    # Book
    'LoanBook', 'ApprovalQueue', 'ReplayOutcome',
    # Reporting
    'GroupSummary', 'CashbookDay', 'TierExposure', 'group_summaries',
    'daily_cashbook', 'portfolio_by_tier', 'portfolio_at_risk',
]

__version__ = '0.1.0'
