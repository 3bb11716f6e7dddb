"""
Quality Inspection Service (``stock_modules.quality.service``).

Responsibility
--------------
Creates inspection requests, grades measurements into PASS / CONDITIONAL /
FAIL with the matching pass/fail quantities, and answers the quality
statistics queries (pass rate, counts, failed and retest lists).

Architecture
------------
Layer: **Modules**.  Grading itself is the pure ``helpers.grade``; this
service only loads, stamps and persists.  It never touches lots or the
ledger -- stock disposition is decided by goods-receipt completion.

Invariants
----------
- Inspection numbers ``IQC-YYYYMMDD-NNNN`` come from the kernel
  ``SequenceService`` counter for the tenant-day.
- Re-grading recomputes from the snapshotted band, so the same measured
  value always yields the same result and quantities.
- ``pass_rate`` divides PASS results by all inspections, open requests
  included, and is 0.0 when none exist.

Failure Modes
-------------
- ``InspectionNotFoundError`` for an unknown id or another tenant's id.
- ``ValidationError`` for a missing measured value or negative quantity.
"""

from __future__ import annotations

from datetime import date
from decimal import Decimal
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from stock_kernel.domain.clock import Clock, SystemClock
from stock_kernel.domain.master_data import QualityStandard
from stock_kernel.exceptions import InspectionNotFoundError, ValidationError
from stock_kernel.logging_config import get_logger
from stock_kernel.services.sequence_service import SequenceService
from stock_modules.quality.helpers import calculate_pass_rate, grade, split_quantities
from stock_modules.quality.models import InspectionResult, InspectionType, QualityInspection
from stock_modules.quality.orm import QualityInspectionModel

logger = get_logger("modules.quality.service")


class QualityInspectionService:
    """
    Inspection requests and grading for one session.

    Usage::

        service = QualityInspectionService(session, clock)
        inspection = service.request_inspection(
            tenant_id, standard, product_id=product_id, lot_id=lot.id,
            inspected_quantity=Decimal("1000"), actor_id=user_id,
        )
        graded = service.grade_inspection(
            tenant_id, inspection.id, Decimal("113"), inspector_id,
        )
        graded.result  # InspectionResult.CONDITIONAL
    """

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        sequences: SequenceService | None = None,
    ):
        self._session = session
        self._clock = clock or SystemClock()
        self._sequences = sequences or SequenceService(session, self._clock)

    # -------------------------------------------------------------------------
    # Requests and grading
    # -------------------------------------------------------------------------

    def request_inspection(
        self,
        tenant_id: UUID,
        standard: QualityStandard,
        product_id: UUID,
        inspected_quantity: Decimal,
        actor_id: UUID,
        lot_id: UUID | None = None,
        inspection_type: InspectionType | str = InspectionType.INCOMING,
        goods_receipt_id: UUID | None = None,
        goods_receipt_item_id: UUID | None = None,
        remarks: str | None = None,
        number_prefix: str = SequenceService.INSPECTION,
    ) -> QualityInspection:
        """Open an ungraded inspection against a standard."""
        if inspected_quantity is None or Decimal(inspected_quantity) < 0:
            raise ValidationError("inspected_quantity", "must be >= 0")

        inspection_no = self._sequences.next_document_number(tenant_id, number_prefix)
        row = QualityInspectionModel(
            tenant_id=tenant_id,
            inspection_no=inspection_no,
            inspection_type=InspectionType(inspection_type).value,
            inspection_date=self._clock.now(),
            product_id=product_id,
            lot_id=lot_id,
            quality_standard_id=standard.id,
            goods_receipt_id=goods_receipt_id,
            goods_receipt_item_id=goods_receipt_item_id,
            min_value=standard.min_value,
            max_value=standard.max_value,
            tolerance_value=standard.tolerance_value,
            inspected_quantity=Decimal(inspected_quantity),
            passed_quantity=Decimal("0"),
            failed_quantity=Decimal("0"),
            remarks=remarks,
            created_by_id=actor_id,
        )
        self._session.add(row)
        self._session.flush()

        logger.info(
            "quality_inspection_requested",
            extra={
                "inspection_no": inspection_no,
                "product_id": str(product_id),
                "inspected_quantity": row.inspected_quantity,
            },
        )
        return row.to_dto()

    def grade_inspection(
        self,
        tenant_id: UUID,
        inspection_id: UUID,
        measured_value: Decimal,
        inspector_id: UUID,
        inspected_quantity: Decimal | None = None,
    ) -> QualityInspection:
        """Record a measurement and derive result and pass/fail quantities."""
        if measured_value is None:
            raise ValidationError("measured_value", "is required")
        if inspected_quantity is not None and Decimal(inspected_quantity) < 0:
            raise ValidationError("inspected_quantity", "must be >= 0")

        row = self._lock(tenant_id, inspection_id)
        row.measured_value = Decimal(measured_value)
        if inspected_quantity is not None:
            row.inspected_quantity = Decimal(inspected_quantity)
        row.inspector_id = inspector_id
        row.inspection_date = self._clock.now()
        self._regrade(row, inspector_id)

        logger.info(
            "quality_inspection_graded",
            extra={
                "inspection_no": row.inspection_no,
                "measured_value": row.measured_value,
                "result": row.result,
                "passed_quantity": row.passed_quantity,
                "failed_quantity": row.failed_quantity,
            },
        )
        return row.to_dto()

    def update_inspection(
        self,
        tenant_id: UUID,
        inspection_id: UUID,
        actor_id: UUID,
        measured_value: Decimal | None = None,
        inspected_quantity: Decimal | None = None,
        remarks: str | None = None,
    ) -> QualityInspection:
        """
        Amend an inspection and re-grade it.

        Fields left as None keep their stored value.  The result is always
        recomputed from the stored measurement, so an update with no changes
        reproduces the same verdict.
        """
        if inspected_quantity is not None and Decimal(inspected_quantity) < 0:
            raise ValidationError("inspected_quantity", "must be >= 0")

        row = self._lock(tenant_id, inspection_id)
        if measured_value is not None:
            row.measured_value = Decimal(measured_value)
        if inspected_quantity is not None:
            row.inspected_quantity = Decimal(inspected_quantity)
        if remarks is not None:
            row.remarks = remarks
        self._regrade(row, actor_id)

        logger.info(
            "quality_inspection_updated",
            extra={"inspection_no": row.inspection_no, "result": row.result},
        )
        return row.to_dto()

    def record_corrective_action(
        self,
        tenant_id: UUID,
        inspection_id: UUID,
        corrective_action: str,
        actor_id: UUID,
        completed_on: date | None = None,
    ) -> QualityInspection:
        """Attach a corrective action to an inspection, optionally closed."""
        if not corrective_action:
            raise ValidationError("corrective_action", "is required")
        row = self._lock(tenant_id, inspection_id)
        row.corrective_action = corrective_action
        row.corrective_action_date = completed_on
        row.updated_by_id = actor_id
        self._session.flush()
        return row.to_dto()

    def _regrade(self, row: QualityInspectionModel, actor_id: UUID) -> None:
        if row.measured_value is not None:
            row.result = grade(row.measured_value, row).value
        row.passed_quantity, row.failed_quantity = split_quantities(
            row.result, row.inspected_quantity,
        )
        row.updated_by_id = actor_id
        self._session.flush()

    def _lock(self, tenant_id: UUID, inspection_id: UUID) -> QualityInspectionModel:
        row = self._session.execute(
            select(QualityInspectionModel)
            .where(
                QualityInspectionModel.id == inspection_id,
                QualityInspectionModel.tenant_id == tenant_id,
            )
            .with_for_update()
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()
        if row is None:
            raise InspectionNotFoundError(str(inspection_id))
        return row

    # -------------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------------

    def get(self, tenant_id: UUID, inspection_id: UUID) -> QualityInspection:
        row = self._session.get(QualityInspectionModel, inspection_id)
        if row is None or row.tenant_id != tenant_id:
            raise InspectionNotFoundError(str(inspection_id))
        return row.to_dto()

    def count_by_result(self, tenant_id: UUID, result: InspectionResult | str) -> int:
        return self._session.execute(
            select(func.count(QualityInspectionModel.id)).where(
                QualityInspectionModel.tenant_id == tenant_id,
                QualityInspectionModel.result == InspectionResult(result).value,
            )
        ).scalar_one()

    def count_all(self, tenant_id: UUID) -> int:
        """Every inspection of the tenant, graded or still open."""
        return self._session.execute(
            select(func.count(QualityInspectionModel.id)).where(
                QualityInspectionModel.tenant_id == tenant_id,
            )
        ).scalar_one()

    def pass_rate(self, tenant_id: UUID) -> float:
        """PASS results as a percentage of all inspections, open ones included."""
        total = self.count_all(tenant_id)
        passed = self.count_by_result(tenant_id, InspectionResult.PASS)
        return calculate_pass_rate(passed, total)

    def find_by_result(
        self, tenant_id: UUID, result: InspectionResult | str,
    ) -> list[QualityInspection]:
        rows = self._session.execute(
            select(QualityInspectionModel)
            .where(
                QualityInspectionModel.tenant_id == tenant_id,
                QualityInspectionModel.result == InspectionResult(result).value,
            )
            .order_by(QualityInspectionModel.inspection_no)
        ).scalars().all()
        return [r.to_dto() for r in rows]

    def find_failed(self, tenant_id: UUID) -> list[QualityInspection]:
        """Failed inspections, the candidates for returns to the supplier."""
        return self.find_by_result(tenant_id, InspectionResult.FAIL)

    def find_retest_required(self, tenant_id: UUID) -> list[QualityInspection]:
        """Failed inspections with a corrective action that is not yet closed."""
        return [
            i for i in self.find_failed(tenant_id)
            if i.corrective_action and i.corrective_action_date is None
        ]

    def find_by_receipt(self, tenant_id: UUID, goods_receipt_id: UUID) -> list[QualityInspection]:
        rows = self._session.execute(
            select(QualityInspectionModel)
            .where(
                QualityInspectionModel.tenant_id == tenant_id,
                QualityInspectionModel.goods_receipt_id == goods_receipt_id,
            )
            .order_by(QualityInspectionModel.inspection_no)
        ).scalars().all()
        return [r.to_dto() for r in rows]
