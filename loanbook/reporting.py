"""
reporting.py - Portfolio Aggregates

Read-only roll-ups over a collection of loan snapshots. Nothing here
mutates a loan; pass LoanBook.snapshots() for a consistent picture.
"""

from __future__ import annotations
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import Dict, Iterable, List

from .core import (
    Direction, RiskTier, ZERO,
    INSTALMENT_CATEGORY, SAVINGS_CATEGORY, ADASHE_CATEGORY,
)
from .loan import LoanSnapshot


@dataclass(frozen=True, slots=True)
class GroupSummary:
    """Totals for one borrower group."""
    group_name: str
    member_count: int
    performing_count: int
    total_loan_balance: Decimal
    total_savings_balance: Decimal
    total_adashe_balance: Decimal


@dataclass(frozen=True, slots=True)
class CashbookDay:
    """
    Till movements for a single business date.

    The "other" columns collect fees, transfers and every category that is
    not a loan instalment, savings or Adashe posting.
    """
    day: date
    instalments_in: Decimal = ZERO
    instalments_out: Decimal = ZERO
    savings_in: Decimal = ZERO
    savings_out: Decimal = ZERO
    adashe_in: Decimal = ZERO
    adashe_out: Decimal = ZERO
    other_in: Decimal = ZERO
    other_out: Decimal = ZERO

    @property
    def total_in(self) -> Decimal:
        return self.instalments_in + self.savings_in + self.adashe_in + self.other_in

    @property
    def total_out(self) -> Decimal:
        return self.instalments_out + self.savings_out + self.adashe_out + self.other_out

    @property
    def net(self) -> Decimal:
        return self.total_in - self.total_out


@dataclass(frozen=True, slots=True)
class TierExposure:
    """Loan count and outstanding principal held in one risk tier."""
    tier: RiskTier
    loan_count: int
    outstanding: Decimal


_CASHBOOK_COLUMNS = {
    INSTALMENT_CATEGORY: "instalments",
    SAVINGS_CATEGORY: "savings",
    ADASHE_CATEGORY: "adashe",
}


def group_summaries(snapshots: Iterable[LoanSnapshot]) -> List[GroupSummary]:
    """One GroupSummary per group name, sorted by group name."""
    groups: Dict[str, List[LoanSnapshot]] = {}
    for snap in snapshots:
        groups.setdefault(snap.group_name, []).append(snap)

    summaries = []
    for name in sorted(groups):
        members = groups[name]
        summaries.append(GroupSummary(
            group_name=name,
            member_count=len(members),
            performing_count=sum(1 for m in members if m.status.is_performing),
            total_loan_balance=sum((m.outstanding_principal for m in members), ZERO),
            total_savings_balance=sum((m.savings_balance for m in members), ZERO),
            total_adashe_balance=sum((m.adashe_balance for m in members), ZERO),
        ))
    return summaries


def daily_cashbook(snapshots: Iterable[LoanSnapshot], day: date) -> CashbookDay:
    """Sum every posting dated day into cashbook columns."""
    totals: Dict[str, Decimal] = {}
    for snap in snapshots:
        for payment in snap.payments:
            if payment.date != day:
                continue
            column = _CASHBOOK_COLUMNS.get(payment.category, "other")
            suffix = "in" if payment.direction is Direction.IN else "out"
            key = f"{column}_{suffix}"
            totals[key] = totals.get(key, ZERO) + payment.amount
    return CashbookDay(day=day, **totals)


def portfolio_by_tier(snapshots: Iterable[LoanSnapshot]) -> List[TierExposure]:
    """
    Exposure per risk tier, in tier order (Current first).

    Every tier is present, with zero counts where no loan falls into it.
    """
    counts = {tier: 0 for tier in RiskTier}
    outstanding = {tier: ZERO for tier in RiskTier}
    for snap in snapshots:
        counts[snap.status] += 1
        outstanding[snap.status] += snap.outstanding_principal
    return [TierExposure(tier, counts[tier], outstanding[tier]) for tier in RiskTier]


def portfolio_at_risk(snapshots: Iterable[LoanSnapshot]) -> Decimal:
    """
    Share of outstanding principal held by loans past Current (0 if the
    portfolio is empty or fully repaid).
    """
    exposures = portfolio_by_tier(snapshots)
    total = sum((e.outstanding for e in exposures), ZERO)
    if total <= ZERO:
        return ZERO
    at_risk = sum((e.outstanding for e in exposures if e.tier is not RiskTier.CURRENT), ZERO)
    return at_risk / total
