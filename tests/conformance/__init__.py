"""
Conformance Test Suite

This suite defines the NORMATIVE behavior of the loan book.
Any compliant implementation MUST pass these tests.

The tests are organized by invariant:
1. non_negativity.py - Savings and Adashe balances never go below zero
2. reversibility.py - Reversal restores the exact prior state
3. monotonicity.py - Approval status only moves forward
4. gating.py - Outbound Savings/Adashe postings always need approval
5. determinism.py - Schedules and replays are reproducible

These tests use hypothesis for property-based testing.
"""
