"""
Module: stock_kernel.models.lot
Responsibility: ORM persistence for lots -- traceable batches of a product
    with their own quantity and quality status.

Invariants enforced:
    - (tenant_id, lot_no) is unique.
    - current_quantity starts at 0 and moves only when an IN or OUT
      transaction touching the lot is applied (see TransactionProcessor).
      It has no floor; the inventory rows guard physical stock.
    - quality_status is one of PENDING, PASSED, FAILED.
"""

from __future__ import annotations

from datetime import date
from decimal import Decimal
from enum import Enum
from uuid import UUID

from sqlalchemy import Boolean, CheckConstraint, Date, Index, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from stock_kernel.db.base import TrackedBase
from stock_kernel.domain.dtos import LotRecord


class LotQualityStatus(str, Enum):
    PENDING = "PENDING"
    PASSED = "PASSED"
    FAILED = "FAILED"


class LotModel(TrackedBase):
    """A lot of one product, identified per tenant by lot_no."""

    __tablename__ = "lots"

    __table_args__ = (
        UniqueConstraint("tenant_id", "lot_no", name="uq_lots_tenant_lot_no"),
        CheckConstraint(
            "quality_status IN ('PENDING', 'PASSED', 'FAILED')",
            name="ck_lots_valid_quality_status",
        ),
        Index("idx_lots_tenant_product", "tenant_id", "product_id"),
        Index("idx_lots_tenant_quality", "tenant_id", "quality_status"),
    )

    tenant_id: Mapped[UUID] = mapped_column(nullable=False)
    lot_no: Mapped[str] = mapped_column(String(100), nullable=False)
    product_id: Mapped[UUID] = mapped_column(nullable=False)

    initial_quantity: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))
    current_quantity: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))

    quality_status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=LotQualityStatus.PENDING.value,
    )
    expiry_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    # Set on lots produced by split_lot
    parent_lot_id: Mapped[UUID | None] = mapped_column(nullable=True)
    remarks: Mapped[str | None] = mapped_column(Text, nullable=True)

    def to_dto(self) -> LotRecord:
        return LotRecord(
            id=self.id,
            tenant_id=self.tenant_id,
            lot_no=self.lot_no,
            product_id=self.product_id,
            initial_quantity=self.initial_quantity,
            current_quantity=self.current_quantity,
            quality_status=self.quality_status,
            expiry_date=self.expiry_date,
            is_active=self.is_active,
            parent_lot_id=self.parent_lot_id,
        )

    def __repr__(self) -> str:
        return (
            f"<Lot {self.lot_no} product={self.product_id} "
            f"qty={self.current_quantity} status={self.quality_status}>"
        )
