"""
risk.py - Delinquency Classification

Maps days past due (DPD) to a RiskTier. The buckets are contiguous and
cover every integer:

    dpd <= 0    Current
    1 - 30      Watch
    31 - 60     Substandard
    61 - 90     Doubtful
    >= 91       Loss

A loan's status field is recomputed with classify_dpd() whenever its DPD
changes. The function holds no state, so calling it twice is harmless.
"""

from __future__ import annotations
from typing import Tuple

from .core import RiskTier


# Upper bound (inclusive) of each bucket, checked in order. Anything past
# the last bound is a loss.
DPD_BUCKETS: Tuple[Tuple[int, RiskTier], ...] = (
    (0, RiskTier.CURRENT),
    (30, RiskTier.WATCH),
    (60, RiskTier.SUBSTANDARD),
    (90, RiskTier.DOUBTFUL),
)


def classify_dpd(dpd: int) -> RiskTier:
    """
    Classify a loan by days past due.

    Args:
        dpd: Days past due. Zero and negative values mean the loan is not late.

    Returns:
        The RiskTier whose bucket contains dpd.
    """
    if isinstance(dpd, bool) or not isinstance(dpd, int):
        raise TypeError(f"dpd must be an int, got {type(dpd).__name__}")
    for upper, tier in DPD_BUCKETS:
        if dpd <= upper:
            return tier
    return RiskTier.LOSS
