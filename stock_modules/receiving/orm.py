"""
Module: stock_modules.receiving.orm
Responsibility: SQLAlchemy ORM persistence for goods receipts and their lines.

Architecture position: Modules > Receiving > ORM.  Inherits from TrackedBase
    (stock_kernel.db.base).  Warehouses, products, suppliers and purchase
    orders are referenced by id with no foreign key.  Lines point at the
    kernel lot, the quality inspection, and the ledger transactions they
    produced, by id.

Invariants enforced:
    - (tenant_id, receipt_no) is unique.
    - status is one of PENDING, INSPECTING, COMPLETED, CANCELLED.
    - total_quantity / total_amount are recomputed from the lines on every
      mutation (``recompute_totals``).
"""

from datetime import date, datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Date,
    ForeignKey,
    Index,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from stock_kernel.db.base import TrackedBase


class GoodsReceiptModel(TrackedBase):
    """
    ORM model for a goods receipt header.

    Maps to: stock_modules.receiving.models.GoodsReceipt (frozen dataclass).
    """

    __tablename__ = "goods_receipts"

    __table_args__ = (
        UniqueConstraint("tenant_id", "receipt_no", name="uq_goods_receipts_tenant_no"),
        CheckConstraint(
            "status IN ('PENDING', 'INSPECTING', 'COMPLETED', 'CANCELLED')",
            name="ck_goods_receipts_valid_status",
        ),
        Index("idx_goods_receipts_status", "tenant_id", "status"),
        Index("idx_goods_receipts_warehouse", "tenant_id", "warehouse_id"),
        Index("idx_goods_receipts_po", "tenant_id", "purchase_order_id"),
        Index("idx_goods_receipts_date", "tenant_id", "receipt_date"),
    )

    tenant_id: Mapped[UUID] = mapped_column(nullable=False)
    receipt_no: Mapped[str] = mapped_column(String(50), nullable=False)
    receipt_date: Mapped[datetime] = mapped_column(nullable=False)
    warehouse_id: Mapped[UUID] = mapped_column(nullable=False)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="PENDING")

    supplier_id: Mapped[UUID | None] = mapped_column(nullable=True)
    purchase_order_id: Mapped[UUID | None] = mapped_column(nullable=True)
    receiver_id: Mapped[UUID | None] = mapped_column(nullable=True)

    total_quantity: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))
    total_amount: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))

    remarks: Mapped[str | None] = mapped_column(Text, nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    completed_by_id: Mapped[UUID | None] = mapped_column(nullable=True)
    completed_at: Mapped[datetime | None] = mapped_column(nullable=True)
    cancel_reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    cancelled_at: Mapped[datetime | None] = mapped_column(nullable=True)

    items: Mapped[list["GoodsReceiptItemModel"]] = relationship(
        back_populates="goods_receipt",
        cascade="all, delete-orphan",
        order_by="GoodsReceiptItemModel.line_no",
        lazy="selectin",
    )

    def recompute_totals(self) -> None:
        self.total_quantity = sum(
            (i.received_quantity for i in self.items), Decimal("0"),
        )
        self.total_amount = sum(
            (i.line_amount for i in self.items), Decimal("0"),
        )

    def to_dto(self):
        """Convert ORM model to frozen GoodsReceipt DTO."""
        from stock_modules.receiving.models import GoodsReceipt, ReceiptStatus
        return GoodsReceipt(
            id=self.id,
            tenant_id=self.tenant_id,
            receipt_no=self.receipt_no,
            receipt_date=self.receipt_date,
            warehouse_id=self.warehouse_id,
            status=ReceiptStatus(self.status),
            total_quantity=self.total_quantity,
            total_amount=self.total_amount,
            items=tuple(i.to_dto() for i in self.items),
            supplier_id=self.supplier_id,
            purchase_order_id=self.purchase_order_id,
            receiver_id=self.receiver_id,
            remarks=self.remarks,
            is_active=self.is_active,
            completed_by_id=self.completed_by_id,
            completed_at=self.completed_at,
            cancel_reason=self.cancel_reason,
            cancelled_at=self.cancelled_at,
        )

    def __repr__(self) -> str:
        return (
            f"<GoodsReceiptModel {self.receipt_no} wh={self.warehouse_id} "
            f"status={self.status} qty={self.total_quantity}>"
        )


class GoodsReceiptItemModel(TrackedBase):
    """
    ORM model for one goods receipt line.

    Maps to: stock_modules.receiving.models.GoodsReceiptItem (frozen dataclass).
    ``credited_warehouse_id`` and ``transaction_id`` are set once the line's
    stock reaches the ledger; cancellation reverses exactly that credit.
    """

    __tablename__ = "goods_receipt_items"

    __table_args__ = (
        UniqueConstraint("goods_receipt_id", "line_no", name="uq_goods_receipt_items_line"),
        CheckConstraint(
            "inspection_status IN ('NOT_REQUIRED', 'PENDING', 'PASS', 'FAIL')",
            name="ck_goods_receipt_items_valid_inspection_status",
        ),
        CheckConstraint("received_quantity > 0", name="ck_goods_receipt_items_qty_positive"),
        Index("idx_goods_receipt_items_receipt", "goods_receipt_id"),
        Index("idx_goods_receipt_items_lot", "lot_id"),
    )

    goods_receipt_id: Mapped[UUID] = mapped_column(
        ForeignKey("goods_receipts.id"), nullable=False,
    )
    line_no: Mapped[int] = mapped_column(nullable=False)
    product_id: Mapped[UUID] = mapped_column(nullable=False)

    ordered_quantity: Mapped[Decimal | None] = mapped_column(nullable=True)
    received_quantity: Mapped[Decimal] = mapped_column(nullable=False)
    unit_price: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))
    line_amount: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))

    lot_no: Mapped[str | None] = mapped_column(String(100), nullable=True)
    lot_id: Mapped[UUID | None] = mapped_column(nullable=True)
    expiry_date: Mapped[date | None] = mapped_column(Date, nullable=True)

    inspection_status: Mapped[str] = mapped_column(
        String(20), nullable=False, default="NOT_REQUIRED",
    )
    inspection_id: Mapped[UUID | None] = mapped_column(nullable=True)
    inspection_result: Mapped[str | None] = mapped_column(String(20), nullable=True)

    credited_warehouse_id: Mapped[UUID | None] = mapped_column(nullable=True)
    transaction_id: Mapped[UUID | None] = mapped_column(nullable=True)
    reversal_transaction_id: Mapped[UUID | None] = mapped_column(nullable=True)

    remarks: Mapped[str | None] = mapped_column(Text, nullable=True)

    goods_receipt: Mapped["GoodsReceiptModel"] = relationship(
        back_populates="items",
    )

    def to_dto(self):
        """Convert ORM model to frozen GoodsReceiptItem DTO."""
        from stock_modules.receiving.models import GoodsReceiptItem, ItemInspectionStatus
        return GoodsReceiptItem(
            id=self.id,
            goods_receipt_id=self.goods_receipt_id,
            line_no=self.line_no,
            product_id=self.product_id,
            received_quantity=self.received_quantity,
            unit_price=self.unit_price,
            line_amount=self.line_amount,
            inspection_status=ItemInspectionStatus(self.inspection_status),
            lot_no=self.lot_no,
            lot_id=self.lot_id,
            ordered_quantity=self.ordered_quantity,
            expiry_date=self.expiry_date,
            inspection_id=self.inspection_id,
            inspection_result=self.inspection_result,
            credited_warehouse_id=self.credited_warehouse_id,
            transaction_id=self.transaction_id,
            reversal_transaction_id=self.reversal_transaction_id,
            remarks=self.remarks,
        )

    def __repr__(self) -> str:
        return (
            f"<GoodsReceiptItemModel line={self.line_no} product={self.product_id} "
            f"qty={self.received_quantity} inspection={self.inspection_status}>"
        )
