"""
Quality Pure Functions (``stock_modules.quality.helpers``).

Responsibility
--------------
Stateless grading of a measurement against a quality standard, the
pass/fail quantity split that follows from a verdict, and the pass-rate
statistic.

Architecture
------------
Layer: **Modules** -- pure helper functions.  No I/O, no session, no
clock.  Called by ``QualityInspectionService`` and directly by tests.

Invariants
----------
- Grading is deterministic: the same measurement and standard always give
  the same verdict, so re-grading on update is idempotent.
- All quantities are ``Decimal``.
"""

from __future__ import annotations

from decimal import Decimal
from typing import Protocol

from stock_modules.quality.models import InspectionResult


class GradingBand(Protocol):
    """Anything carrying the three optional bounds of a standard."""

    min_value: Decimal | None
    max_value: Decimal | None
    tolerance_value: Decimal | None


def grade(measured_value: Decimal, standard: GradingBand) -> InspectionResult:
    """
    Grade a measurement against a standard.

    - Neither min nor max defined: PASS (no constraint).
    - Within [min, max] (each bound optional): PASS.
    - Outside, but within [min - tolerance, max + tolerance]: CONDITIONAL.
      A missing tolerance means there is no conditional band.
    - Otherwise: FAIL.

    Examples (min=90, max=110, tolerance=5):
        >>> grade(Decimal("100"), band)   # PASS
        >>> grade(Decimal("113"), band)   # CONDITIONAL
        >>> grade(Decimal("120"), band)   # FAIL
    """
    value = Decimal(measured_value)
    low, high = standard.min_value, standard.max_value

    if low is None and high is None:
        return InspectionResult.PASS

    if (low is None or value >= low) and (high is None or value <= high):
        return InspectionResult.PASS

    tolerance = standard.tolerance_value
    if tolerance is None:
        return InspectionResult.FAIL

    lower_band = low - tolerance if low is not None else None
    upper_band = high + tolerance if high is not None else None
    if (lower_band is None or value >= lower_band) and (
        upper_band is None or value <= upper_band
    ):
        return InspectionResult.CONDITIONAL
    return InspectionResult.FAIL


def split_quantities(
    result: InspectionResult | str | None,
    inspected_quantity: Decimal | None,
) -> tuple[Decimal, Decimal]:
    """
    (passed_quantity, failed_quantity) for a verdict.

    PASS and CONDITIONAL pass the whole inspected quantity; FAIL fails it.
    An ungraded inspection has neither.  A missing inspected quantity
    counts as zero.
    """
    qty = Decimal(inspected_quantity) if inspected_quantity is not None else Decimal("0")
    if result is None:
        return Decimal("0"), Decimal("0")
    if InspectionResult(result) is InspectionResult.FAIL:
        return Decimal("0"), qty
    return qty, Decimal("0")


def calculate_pass_rate(passed_count: int, total_count: int) -> float:
    """passed / total * 100, or 0.0 when there is nothing to count."""
    if total_count < 0 or passed_count < 0:
        raise ValueError("counts cannot be negative")
    if passed_count > total_count:
        raise ValueError(
            f"passed_count ({passed_count}) cannot exceed total_count ({total_count})"
        )
    if total_count == 0:
        return 0.0
    return passed_count / total_count * 100.0
