#!/usr/bin/env python3
"""
demo.py - Interactive Tutorial: Learn the Loan Book Step by Step

A walkthrough of one branch's loan book. Each step builds on the previous
one. Press Enter to advance.

WHAT YOU'LL LEARN:
  1-3:   Foundation   - The empty book, opening a loan, three-stage release
  4-6:   Ledger       - Instalments, savings and Adashe, rejected postings
  7-8:   Approvals    - Withdrawal requests, role queues, reversal
  9-10:  Monitoring   - Schedules, DPD and risk tiers, branch reports

Run:
    python demo.py           # Interactive mode (press Enter for each step)
    python demo.py --quick   # Run all steps without pausing
"""

from dataclasses import dataclass
from datetime import date, timedelta
from decimal import Decimal
import sys

from loanbook import (
    # Book
    LoanBook, LoanType, Direction, ApprovalRole, ActivityType, OfflineTransaction,
    # Constants
    INSTALMENT_CATEGORY, SAVINGS_CATEGORY, ADASHE_CATEGORY,
    # Errors
    LoanBookError,
    # Helpers
    financed_principal, quantize_money, days_past_due, arrears,
    # Reporting
    group_summaries, daily_cashbook, portfolio_by_tier, portfolio_at_risk,
)


# ============================================================================
# CONFIGURATION
# ============================================================================

@dataclass
class DemoConfig:
    """Configuration for the tutorial. Modify these to experiment."""
    start_date: date = date(2025, 1, 6)

    # Amounts disbursed (interest is financed on top)
    amina_disbursed: Decimal = Decimal("40000")
    musa_disbursed: Decimal = Decimal("50000")

    # Weekly contributions
    weekly_savings: Decimal = Decimal("500")
    weekly_adashe: Decimal = Decimal("1000")


CONFIG = DemoConfig()

QUICK_MODE = "--quick" in sys.argv


def wait_for_enter():
    """Pause for user input unless in quick mode."""
    if not QUICK_MODE:
        input("\n[Press Enter to continue...]")


def step_header(number: int, title: str, objective: str):
    """Print a step header with learning objective."""
    print(f"\n{'='*70}")
    print(f"STEP {number}: {title}")
    print(f"{'='*70}")
    print(f"\nObjective: {objective}\n")


def section_header(text: str):
    """Print a section header within a step."""
    print(f"\n--- {text} ---\n")


def try_command(label: str, command):
    """Run a command that may be refused and show the outcome."""
    try:
        result = command()
    except LoanBookError as e:
        print(f"    {label}: refused with {type(e).__name__}")
        return None
    print(f"    {label}: ok")
    return result


# ============================================================================
# PHASE 1: FOUNDATION (Steps 1-3)
# ============================================================================

def step_01_empty_book():
    step_header(1, "The Empty Book",
        "A book is a registry of loans plus an audit trail, pinned to a business date.")

    print(">>> book = LoanBook('alheri-branch', initial_date=date(2025, 1, 6))")
    book = LoanBook("alheri-branch", initial_date=CONFIG.start_date, verbose=True)

    section_header("Initial State")
    print(f"Book name:      {book.name}")
    print(f"Business date:  {book.current_date}")
    print(f"Loans:          {book.list_loans()}")
    print(f"Audit entries:  {len(book.audit_trail)}")
    return book


def step_02_open_loans(book: LoanBook):
    step_header(2, "Opening Loans",
        "The principal owed is the disbursed amount plus 20% financed interest.")

    amina = financed_principal(CONFIG.amina_disbursed)
    musa = financed_principal(CONFIG.musa_disbursed)
    print(f"financed_principal({CONFIG.amina_disbursed}) = {amina}")
    print(f"financed_principal({CONFIG.musa_disbursed}) = {musa}")

    book.open_loan("LN-001", amina, LoanType.BUSINESS, actor="bdm",
                   borrower_name="Amina Bello", group_name="Alheri", credit_officer="Tunde")
    book.open_loan("LN-002", musa, LoanType.AGRIC, actor="bdm",
                   borrower_name="Musa Danjuma", group_name="Nasara", credit_officer="Tunde")

    section_header("Key Insight")
    print("""
    Both loans start at Pending Stage 1. Until the disbursement is approved,
    instalments are refused, but savings can already be collected.
    """)
    return book


def step_03_release(book: LoanBook):
    step_header(3, "Three-Stage Release",
        "BDM, Senior Finance Officer and Head of Business each sign off once.")

    for actor in ("bdm", "sfo", "hob"):
        book.advance_disbursement("LN-001", actor=actor)
    for actor in ("bdm", "sfo", "hob"):
        book.advance_disbursement("LN-002", actor=actor)

    loan = book.get_loan("LN-001")
    section_header("After Approval")
    print(f"Status:            {loan.disbursement_status.value}")
    print(f"Disbursement date: {loan.disbursement_date}")
    print(f"Active:            {loan.is_active}")

    section_header("A Second Release Attempt")
    try_command("advance_disbursement again", lambda: book.advance_disbursement("LN-001"))
    return book


# ============================================================================
# PHASE 2: LEDGER (Steps 4-6)
# ============================================================================

def step_04_instalments(book: LoanBook):
    step_header(4, "Weekly Collections",
        "Instalments reduce the derived outstanding; savings and Adashe build balances.")

    for week in range(1, 5):
        book.advance_date(CONFIG.start_date + timedelta(days=7 * week))
        book.apply_transaction("LN-001", INSTALMENT_CATEGORY, Direction.IN, Decimal("3000"))
        book.apply_transaction("LN-001", SAVINGS_CATEGORY, Direction.IN, CONFIG.weekly_savings)
        book.apply_transaction("LN-001", ADASHE_CATEGORY, Direction.IN, CONFIG.weekly_adashe)

    loan = book.get_loan("LN-001")
    section_header("Balances")
    print(f"Outstanding: {loan.outstanding_principal}")
    print(f"Savings:     {loan.savings_balance}")
    print(f"Adashe:      {loan.adashe_balance}")
    print(f"Postings:    {len(loan.payments)}")
    return book


def step_05_rejections(book: LoanBook):
    step_header(5, "Rejected Postings",
        "A refused command changes nothing, is audited, and raises to the caller.")

    verbose = book.verbose
    book.verbose = False
    try_command("withdraw savings directly",
        lambda: book.apply_transaction("LN-001", SAVINGS_CATEGORY, Direction.OUT, Decimal("500")))
    try_command("post a zero instalment",
        lambda: book.apply_transaction("LN-001", INSTALMENT_CATEGORY, Direction.IN, Decimal("0")))
    try_command("post to an unknown loan",
        lambda: book.apply_transaction("LN-999", SAVINGS_CATEGORY, Direction.IN, Decimal("100")))
    book.verbose = verbose

    section_header("Audit Trail Tail")
    for entry in book.audit_trail[-3:]:
        print(f"    #{entry.sequence} {entry.severity.value:8} {entry.action}: {entry.details}")
    return book


def step_06_offline_sync(book: LoanBook):
    step_header(6, "Offline Sync",
        "Postings captured without a connection are replayed in order.")

    captured = [
        OfflineTransaction("LN-001", INSTALMENT_CATEGORY, Direction.IN, Decimal("3000")),
        OfflineTransaction("LN-002", SAVINGS_CATEGORY, Direction.IN, Decimal("2000")),
        OfflineTransaction("LN-404", SAVINGS_CATEGORY, Direction.IN, Decimal("100")),
    ]
    book.advance_date(book.current_date + timedelta(days=7))
    for outcome in book.replay(captured, actor="tablet-3"):
        status = "ok" if outcome.ok else type(outcome.error).__name__
        print(f"    {outcome.entry.loan_id} {outcome.entry.category:16} -> {status}")
    return book


# ============================================================================
# PHASE 3: APPROVALS (Steps 7-8)
# ============================================================================

def step_07_withdrawal(book: LoanBook):
    step_header(7, "Staged Withdrawal",
        "Savings and Adashe only leave through a request approved three times.")

    request = book.submit_withdrawal("LN-001", ADASHE_CATEGORY, Decimal("4000"), actor="Tunde")

    for role in ApprovalRole:
        queue = book.approval_queue(role)
        print(f"    {role.value:24} waiting: {len(queue)}")

    for actor in ("bdm", "sfo", "hob"):
        book.advance_request("LN-001", request.id, actor=actor)

    print(f"\nAdashe after payout: {book.get_loan('LN-001').adashe_balance}")
    return book


def step_08_reversal(book: LoanBook):
    step_header(8, "Reversal",
        "Mistakes are never edited; the posting is reversed and re-entered.")

    wrong = book.apply_transaction("LN-002", ADASHE_CATEGORY, Direction.IN, Decimal("1500"))
    book.reverse_transaction("LN-002", wrong.id, actor="supervisor")
    book.apply_transaction("LN-002", SAVINGS_CATEGORY, Direction.IN, Decimal("1500"))

    loan = book.get_loan("LN-002")
    print(f"Savings: {loan.savings_balance}  Adashe: {loan.adashe_balance}")
    return book


# ============================================================================
# PHASE 4: MONITORING (Steps 9-10)
# ============================================================================

def step_09_schedule_and_risk(book: LoanBook):
    step_header(9, "Schedule and Risk",
        "The schedule is rebuilt on demand; DPD drives the risk tier.")

    book.advance_date(date(2025, 3, 3))
    loan = book.get_loan("LN-001")
    for item in book.schedule("LN-001")[:9]:
        print(f"    {item.label:8} {item.due_date}  {quantize_money(item.expected_amount):>9}  "
              f"{item.status.value}")

    dpd = days_past_due(loan, book.current_date)
    tier = book.set_dpd("LN-001", dpd)
    print(f"\nDays past due: {dpd}  Arrears: {quantize_money(arrears(loan, book.current_date))}  "
          f"Tier: {tier.value}")
    book.record_activity("LN-001", "Tunde", ActivityType.ARREARS_FOLLOW_UP,
                         "Shop closed for a wedding, promised Friday", flagged=True)

    section_header("Agric Loan")
    for item in book.schedule("LN-002"):
        print(f"    {item.label:8} {item.due_date}  {quantize_money(item.expected_amount):>9}  "
              f"{item.status.value}")
    return book


def step_10_reports(book: LoanBook):
    step_header(10, "Branch Reports",
        "Reports read snapshots and never touch the loans.")

    snapshots = book.snapshots()
    section_header("Groups")
    for summary in group_summaries(snapshots):
        print(f"    {summary.group_name:8} members={summary.member_count} "
              f"performing={summary.performing_count} balance={summary.total_loan_balance} "
              f"savings={summary.total_savings_balance} adashe={summary.total_adashe_balance}")

    section_header("Risk")
    for exposure in portfolio_by_tier(snapshots):
        print(f"    {exposure.tier.value:12} {exposure.loan_count}  {exposure.outstanding}")
    print(f"    PAR: {quantize_money(portfolio_at_risk(snapshots) * 100)}%")

    section_header("Cashbook")
    day = daily_cashbook(snapshots, CONFIG.start_date + timedelta(days=7))
    print(f"    {day.day}: in={day.total_in} out={day.total_out} net={day.net}")
    return book


def main():
    """Run the complete tutorial."""
    print("=" * 70)
    print("       LOAN BOOK - INTERACTIVE TUTORIAL")
    print("=" * 70)

    if QUICK_MODE:
        print("Running in QUICK mode (no pauses)")
    else:
        print("Running in INTERACTIVE mode (press Enter to advance)")

    wait_for_enter()

    steps = [
        step_02_open_loans, step_03_release,
        step_04_instalments, step_05_rejections, step_06_offline_sync,
        step_07_withdrawal, step_08_reversal,
        step_09_schedule_and_risk, step_10_reports,
    ]
    book = step_01_empty_book()
    for step in steps:
        wait_for_enter()
        book = step(book)

    print("\n" + "=" * 70)
    print("       TUTORIAL COMPLETE!")
    print("=" * 70)
    print("""
    Next steps:
      - See loanbook/loan.py for the aggregate and its locking
      - Run tests: pytest tests/
    """)


if __name__ == "__main__":
    main()
