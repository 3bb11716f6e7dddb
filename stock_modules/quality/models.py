"""
Quality Domain Models (``stock_modules.quality.models``).

Frozen DTOs for quality inspections.  ORM persistence lives in
``stock_modules.quality.orm``.
"""

from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from uuid import UUID


class InspectionResult(str, Enum):
    """Verdict of grading a measurement against a standard."""
    PASS = "PASS"
    CONDITIONAL = "CONDITIONAL"
    FAIL = "FAIL"

    @property
    def is_acceptable(self) -> bool:
        """PASS and CONDITIONAL stock is usable."""
        return self is not InspectionResult.FAIL


class InspectionType(str, Enum):
    INCOMING = "INCOMING"
    IN_PROCESS = "IN_PROCESS"
    OUTGOING = "OUTGOING"


@dataclass(frozen=True)
class QualityInspection:
    """
    A quality inspection request and, once graded, its verdict.

    The standard's bounds are snapshotted at request time so later
    re-grading uses the same band even if the standard is revised.
    """
    id: UUID
    tenant_id: UUID
    inspection_no: str
    inspection_type: str
    product_id: UUID
    quality_standard_id: UUID
    inspection_date: datetime
    inspected_quantity: Decimal
    lot_id: UUID | None = None
    goods_receipt_id: UUID | None = None
    goods_receipt_item_id: UUID | None = None
    min_value: Decimal | None = None
    max_value: Decimal | None = None
    tolerance_value: Decimal | None = None
    measured_value: Decimal | None = None
    result: InspectionResult | None = None
    passed_quantity: Decimal = Decimal("0")
    failed_quantity: Decimal = Decimal("0")
    inspector_id: UUID | None = None
    remarks: str | None = None
    corrective_action: str | None = None
    corrective_action_date: date | None = None

    @property
    def is_graded(self) -> bool:
        return self.result is not None
