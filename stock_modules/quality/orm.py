"""
Module: stock_modules.quality.orm
Responsibility: SQLAlchemy ORM persistence for quality inspections.

Architecture position: Modules > Quality > ORM.  Inherits from TrackedBase
    (stock_kernel.db.base).  Products, lots and standards are referenced by
    id with no foreign key; goods receipts are owned by the receiving module
    and referenced the same way.

Invariants enforced:
    - (tenant_id, inspection_no) is unique.
    - result is NULL until graded, then one of PASS, CONDITIONAL, FAIL.
    - The standard's bounds are snapshotted on the row at request time.
"""

from datetime import date, datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy import CheckConstraint, Date, Index, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from stock_kernel.db.base import TrackedBase


class QualityInspectionModel(TrackedBase):
    """
    ORM model for quality inspections.

    Maps to: stock_modules.quality.models.QualityInspection (frozen dataclass).
    """

    __tablename__ = "quality_inspections"

    __table_args__ = (
        UniqueConstraint("tenant_id", "inspection_no", name="uq_quality_inspections_tenant_no"),
        CheckConstraint(
            "result IS NULL OR result IN ('PASS', 'CONDITIONAL', 'FAIL')",
            name="ck_quality_inspections_valid_result",
        ),
        Index("idx_quality_inspections_result", "tenant_id", "result"),
        Index("idx_quality_inspections_receipt", "goods_receipt_id"),
    )

    tenant_id: Mapped[UUID] = mapped_column(nullable=False)
    inspection_no: Mapped[str] = mapped_column(String(50), nullable=False)
    inspection_type: Mapped[str] = mapped_column(String(30), nullable=False)
    inspection_date: Mapped[datetime] = mapped_column(nullable=False)

    product_id: Mapped[UUID] = mapped_column(nullable=False)
    lot_id: Mapped[UUID | None] = mapped_column(nullable=True)
    quality_standard_id: Mapped[UUID] = mapped_column(nullable=False)
    goods_receipt_id: Mapped[UUID | None] = mapped_column(nullable=True)
    goods_receipt_item_id: Mapped[UUID | None] = mapped_column(nullable=True)

    # Standard snapshot
    min_value: Mapped[Decimal | None] = mapped_column(nullable=True)
    max_value: Mapped[Decimal | None] = mapped_column(nullable=True)
    tolerance_value: Mapped[Decimal | None] = mapped_column(nullable=True)

    inspected_quantity: Mapped[Decimal] = mapped_column(nullable=False)
    measured_value: Mapped[Decimal | None] = mapped_column(nullable=True)
    result: Mapped[str | None] = mapped_column(String(20), nullable=True)
    passed_quantity: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))
    failed_quantity: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))

    inspector_id: Mapped[UUID | None] = mapped_column(nullable=True)
    remarks: Mapped[str | None] = mapped_column(Text, nullable=True)
    corrective_action: Mapped[str | None] = mapped_column(Text, nullable=True)
    corrective_action_date: Mapped[date | None] = mapped_column(Date, nullable=True)

    def to_dto(self):
        """Convert ORM model to frozen QualityInspection DTO."""
        from stock_modules.quality.models import InspectionResult, QualityInspection
        return QualityInspection(
            id=self.id,
            tenant_id=self.tenant_id,
            inspection_no=self.inspection_no,
            inspection_type=self.inspection_type,
            product_id=self.product_id,
            quality_standard_id=self.quality_standard_id,
            inspection_date=self.inspection_date,
            inspected_quantity=self.inspected_quantity,
            lot_id=self.lot_id,
            goods_receipt_id=self.goods_receipt_id,
            goods_receipt_item_id=self.goods_receipt_item_id,
            min_value=self.min_value,
            max_value=self.max_value,
            tolerance_value=self.tolerance_value,
            measured_value=self.measured_value,
            result=InspectionResult(self.result) if self.result else None,
            passed_quantity=self.passed_quantity,
            failed_quantity=self.failed_quantity,
            inspector_id=self.inspector_id,
            remarks=self.remarks,
            corrective_action=self.corrective_action,
            corrective_action_date=self.corrective_action_date,
        )

    def __repr__(self) -> str:
        return (
            f"<QualityInspectionModel {self.inspection_no} "
            f"product={self.product_id} result={self.result}>"
        )
