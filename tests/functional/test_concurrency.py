"""
test_concurrency.py - Concurrent command tests

Tests that per-loan serialization holds under threads:
- Racing final approvals never overdraw a balance
- Concurrent deposits are all recorded
- Different loans progress independently
- Snapshots taken mid-stream are internally consistent
"""

import threading
from concurrent.futures import ThreadPoolExecutor
from decimal import Decimal

from loanbook import (
    LoanBook, Direction, ApprovalStatus, InsufficientFunds,
    SAVINGS_CATEGORY, ADASHE_CATEGORY, INSTALMENT_CATEGORY,
)
from tests.loan_helpers import DISBURSED, make_loan


def _approve_to_stage_3(loan, request_id):
    loan.advance_request(request_id)
    loan.advance_request(request_id)


class TestSameLoan:
    """Commands on one loan are serialized."""

    def test_racing_approvals_never_overdraw(self):
        """Ten 1,000 requests against 5,000 savings: exactly five succeed."""
        loan = make_loan()
        loan.apply_transaction(SAVINGS_CATEGORY, Direction.IN, Decimal("5000"))
        requests = [loan.submit_withdrawal(SAVINGS_CATEGORY, Decimal("1000")) for _ in range(10)]
        for request in requests:
            _approve_to_stage_3(loan, request.id)

        barrier = threading.Barrier(len(requests))

        def final_approval(request_id):
            barrier.wait()
            try:
                return loan.advance_request(request_id)
            except InsufficientFunds:
                return None

        with ThreadPoolExecutor(max_workers=len(requests)) as pool:
            results = list(pool.map(final_approval, [r.id for r in requests]))

        assert results.count(ApprovalStatus.APPROVED) == 5
        assert results.count(None) == 5
        assert loan.savings_balance == Decimal("0")
        assert len(loan.pending_requests) == 5

    def test_concurrent_deposits_all_land(self):
        loan = make_loan()

        def deposit(_):
            loan.apply_transaction(ADASHE_CATEGORY, Direction.IN, Decimal("10"))

        with ThreadPoolExecutor(max_workers=8) as pool:
            list(pool.map(deposit, range(200)))

        assert loan.adashe_balance == Decimal("2000")
        assert len(loan.payments) == 200
        assert len({p.id for p in loan.payments}) == 200

    def test_snapshots_consistent_under_writes(self):
        """Every snapshot's Adashe balance equals the sum of its own payments."""
        loan = make_loan()
        snapshots = []
        stop = threading.Event()

        def writer():
            for _ in range(300):
                loan.apply_transaction(ADASHE_CATEGORY, Direction.IN, Decimal("5"))
            stop.set()

        def reader():
            while not stop.is_set():
                snapshots.append(loan.snapshot())

        threads = [threading.Thread(target=writer), threading.Thread(target=reader)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        snapshots.append(loan.snapshot())
        for snap in snapshots:
            assert snap.adashe_balance == sum((p.amount for p in snap.payments), Decimal("0"))


class TestDifferentLoans:
    """Commands on different loans do not interfere."""

    def test_parallel_books_commands(self):
        book = LoanBook("ikeja", initial_date=DISBURSED, verbose=False)
        loan_ids = [f"LN-{i:03d}" for i in range(8)]
        for loan_id in loan_ids:
            book.add_loan(make_loan(loan_id, "16000"))

        def repay(loan_id):
            for _ in range(16):
                book.apply_transaction(loan_id, INSTALMENT_CATEGORY, Direction.IN, Decimal("1000"))
            return loan_id

        with ThreadPoolExecutor(max_workers=len(loan_ids)) as pool:
            done = list(pool.map(repay, loan_ids))

        assert done == loan_ids
        for loan_id in loan_ids:
            assert book.outstanding_principal(loan_id) == Decimal("0")
        # 8 registrations + 128 postings, sequence numbers gap-free
        assert [e.sequence for e in book.audit_trail] == list(range(8 + 8 * 16))
