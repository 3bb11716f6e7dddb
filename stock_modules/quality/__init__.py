"""
Quality Module (``stock_modules.quality``).

Grades measurements against quality standards and keeps the inspection
records that goods-receipt completion uses to route stock to the shelf or
to quarantine.
"""

from stock_modules.quality.helpers import calculate_pass_rate, grade, split_quantities
from stock_modules.quality.models import InspectionResult, InspectionType, QualityInspection
from stock_modules.quality.service import QualityInspectionService

__all__ = [
    "InspectionResult",
    "InspectionType",
    "QualityInspection",
    "QualityInspectionService",
    "calculate_pass_rate",
    "grade",
    "split_quantities",
]
