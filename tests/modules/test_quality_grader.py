"""
Tests for the pure quality helpers: grade(), split_quantities(),
calculate_pass_rate().
"""

from dataclasses import dataclass
from decimal import Decimal

import pytest
from hypothesis import given
from hypothesis import strategies as st

from stock_modules.quality.helpers import calculate_pass_rate, grade, split_quantities
from stock_modules.quality.models import InspectionResult


@dataclass(frozen=True)
class Band:
    min_value: Decimal | None = None
    max_value: Decimal | None = None
    tolerance_value: Decimal | None = None


STANDARD = Band(Decimal("90"), Decimal("110"), Decimal("5"))


class TestGrade:

    @pytest.mark.parametrize(
        "measured, expected",
        [
            ("100", InspectionResult.PASS),
            ("90", InspectionResult.PASS),
            ("110", InspectionResult.PASS),
            ("113", InspectionResult.CONDITIONAL),
            ("115", InspectionResult.CONDITIONAL),
            ("85", InspectionResult.CONDITIONAL),
            ("115.01", InspectionResult.FAIL),
            ("84.99", InspectionResult.FAIL),
            ("120", InspectionResult.FAIL),
        ],
    )
    def test_band_with_tolerance(self, measured, expected):
        assert grade(Decimal(measured), STANDARD) is expected

    def test_no_bounds_always_passes(self):
        assert grade(Decimal("-1000"), Band()) is InspectionResult.PASS

    def test_missing_tolerance_has_no_conditional_band(self):
        band = Band(Decimal("90"), Decimal("110"))
        assert grade(Decimal("111"), band) is InspectionResult.FAIL

    def test_min_only(self):
        band = Band(min_value=Decimal("10"), tolerance_value=Decimal("1"))
        assert grade(Decimal("1000"), band) is InspectionResult.PASS
        assert grade(Decimal("9.5"), band) is InspectionResult.CONDITIONAL
        assert grade(Decimal("8"), band) is InspectionResult.FAIL

    def test_max_only(self):
        band = Band(max_value=Decimal("10"))
        assert grade(Decimal("-5"), band) is InspectionResult.PASS
        assert grade(Decimal("10.1"), band) is InspectionResult.FAIL

    @given(st.decimals(min_value=-1000, max_value=1000, allow_nan=False, places=2))
    def test_grading_is_deterministic(self, value):
        assert grade(value, STANDARD) is grade(value, STANDARD)

    @given(st.decimals(min_value=90, max_value=110, places=3))
    def test_inside_bounds_passes(self, value):
        assert grade(value, STANDARD) is InspectionResult.PASS


class TestSplitQuantities:

    @pytest.mark.parametrize(
        "result, expected",
        [
            (InspectionResult.PASS, (Decimal("1000"), Decimal("0"))),
            (InspectionResult.CONDITIONAL, (Decimal("1000"), Decimal("0"))),
            (InspectionResult.FAIL, (Decimal("0"), Decimal("1000"))),
            ("FAIL", (Decimal("0"), Decimal("1000"))),
            (None, (Decimal("0"), Decimal("0"))),
        ],
    )
    def test_split(self, result, expected):
        assert split_quantities(result, Decimal("1000")) == expected

    def test_missing_quantity_counts_as_zero(self):
        assert split_quantities(InspectionResult.PASS, None) == (Decimal("0"), Decimal("0"))

    @given(
        st.sampled_from(list(InspectionResult)),
        st.decimals(min_value=0, max_value=10**6, places=3),
    )
    def test_split_conserves_quantity(self, result, qty):
        passed, failed = split_quantities(result, qty)
        assert passed + failed == qty
        assert passed == 0 or failed == 0


class TestPassRate:

    def test_zero_total(self):
        assert calculate_pass_rate(0, 0) == 0.0

    def test_percentage(self):
        assert calculate_pass_rate(3, 4) == 75.0

    @pytest.mark.parametrize("passed, total", [(5, 4), (-1, 4), (0, -1)])
    def test_invalid_counts(self, passed, total):
        with pytest.raises(ValueError):
            calculate_pass_rate(passed, total)

    @given(st.integers(min_value=0, max_value=500), st.integers(min_value=0, max_value=500))
    def test_bounded(self, a, b):
        passed, total = min(a, b), max(a, b)
        assert 0.0 <= calculate_pass_rate(passed, total) <= 100.0
