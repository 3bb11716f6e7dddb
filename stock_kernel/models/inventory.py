"""
Module: stock_kernel.models.inventory
Responsibility: ORM persistence for inventory rows -- the quantity ledger
    for one (tenant, warehouse, product, lot) tuple.

Invariants enforced:
    - One row per (tenant_id, warehouse_id, product_id, lot_id).  Rows
      without a lot are covered by a partial unique index because NULLs
      never collide in a plain unique constraint.
    - available_quantity >= 0 and reserved_quantity >= 0 (check constraints
      backing the StockBalance rules).

Failure modes:
    - IntegrityError when two workers create the same tuple concurrently;
      InventoryLedger.find_or_create catches it and re-reads the winner.
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy import CheckConstraint, ForeignKey, Index, String, UniqueConstraint, text
from sqlalchemy.orm import Mapped, mapped_column

from stock_kernel.db.base import TrackedBase, UUIDString
from stock_kernel.domain.dtos import InventoryRow
from stock_kernel.domain.stock import StockBalance, TransactionType


class InventoryModel(TrackedBase):
    """Stock quantities at one location for one product and lot."""

    __tablename__ = "inventories"

    __table_args__ = (
        UniqueConstraint(
            "tenant_id", "warehouse_id", "product_id", "lot_id",
            name="uq_inventories_location",
        ),
        Index(
            "uq_inventories_location_no_lot",
            "tenant_id", "warehouse_id", "product_id",
            unique=True,
            postgresql_where=text("lot_id IS NULL"),
            sqlite_where=text("lot_id IS NULL"),
        ),
        CheckConstraint("available_quantity >= 0", name="ck_inventories_available_non_negative"),
        CheckConstraint("reserved_quantity >= 0", name="ck_inventories_reserved_non_negative"),
        Index("idx_inventories_tenant_product", "tenant_id", "product_id"),
    )

    tenant_id: Mapped[UUID] = mapped_column(nullable=False)
    warehouse_id: Mapped[UUID] = mapped_column(nullable=False)
    product_id: Mapped[UUID] = mapped_column(nullable=False)
    lot_id: Mapped[UUID | None] = mapped_column(
        UUIDString(), ForeignKey("lots.id"), nullable=True,
    )

    available_quantity: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))
    reserved_quantity: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))

    last_transaction_type: Mapped[str | None] = mapped_column(String(20), nullable=True)
    last_transaction_date: Mapped[datetime | None] = mapped_column(nullable=True)

    @property
    def balance(self) -> StockBalance:
        return StockBalance(self.available_quantity, self.reserved_quantity)

    def apply_balance(
        self,
        balance: StockBalance,
        transaction_type: TransactionType,
        when: datetime,
    ) -> None:
        """Write a computed balance back onto the row."""
        self.available_quantity = balance.available
        self.reserved_quantity = balance.reserved
        self.last_transaction_type = TransactionType(transaction_type).value
        self.last_transaction_date = when

    def to_dto(self) -> InventoryRow:
        return InventoryRow(
            id=self.id,
            tenant_id=self.tenant_id,
            warehouse_id=self.warehouse_id,
            product_id=self.product_id,
            lot_id=self.lot_id,
            available_quantity=self.available_quantity,
            reserved_quantity=self.reserved_quantity,
            last_transaction_type=(
                TransactionType(self.last_transaction_type)
                if self.last_transaction_type else None
            ),
            last_transaction_date=self.last_transaction_date,
        )

    def __repr__(self) -> str:
        return (
            f"<Inventory wh={self.warehouse_id} product={self.product_id} "
            f"lot={self.lot_id} avail={self.available_quantity} "
            f"rsv={self.reserved_quantity}>"
        )
