"""
test_risk.py - Unit tests for DPD classification
"""

import pytest
from hypothesis import given
from hypothesis import strategies as st

from loanbook import classify_dpd, RiskTier, DPD_BUCKETS


class TestBoundaries:
    """Bucket edges."""

    @pytest.mark.parametrize("dpd, tier", [
        (-5, RiskTier.CURRENT),
        (0, RiskTier.CURRENT),
        (1, RiskTier.WATCH),
        (30, RiskTier.WATCH),
        (31, RiskTier.SUBSTANDARD),
        (60, RiskTier.SUBSTANDARD),
        (61, RiskTier.DOUBTFUL),
        (90, RiskTier.DOUBTFUL),
        (91, RiskTier.LOSS),
        (10_000, RiskTier.LOSS),
    ])
    def test_bucket_edges(self, dpd, tier):
        assert classify_dpd(dpd) is tier

    def test_buckets_are_ordered(self):
        bounds = [upper for upper, _ in DPD_BUCKETS]
        assert bounds == sorted(bounds)

    def test_rejects_non_int(self):
        with pytest.raises(TypeError):
            classify_dpd(3.5)
        with pytest.raises(TypeError):
            classify_dpd(True)


class TestProperties:
    """Totality and monotonicity."""

    _ORDER = list(RiskTier)

    @given(st.integers())
    def test_total_and_idempotent(self, dpd):
        assert classify_dpd(dpd) is classify_dpd(dpd)

    @given(st.integers(min_value=-1000, max_value=1000), st.integers(min_value=0, max_value=200))
    def test_monotonic(self, dpd, step):
        lower = self._ORDER.index(classify_dpd(dpd))
        higher = self._ORDER.index(classify_dpd(dpd + step))
        assert lower <= higher
