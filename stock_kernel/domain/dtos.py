"""
Read-side DTOs returned by kernel services.

Frozen snapshots carrying ids only; related warehouses and products are
resolved through ``MasterDataProvider`` by whoever needs them.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal
from uuid import UUID

from stock_kernel.domain.stock import StockBalance, TransactionType
from stock_kernel.domain.transaction import ApprovalStatus


@dataclass(frozen=True)
class InventoryRow:
    """Quantities held for one (warehouse, product, lot) tuple."""

    id: UUID
    tenant_id: UUID
    warehouse_id: UUID
    product_id: UUID
    lot_id: UUID | None
    available_quantity: Decimal
    reserved_quantity: Decimal
    last_transaction_type: TransactionType | None = None
    last_transaction_date: datetime | None = None

    @property
    def total_quantity(self) -> Decimal:
        return self.available_quantity + self.reserved_quantity

    @property
    def balance(self) -> StockBalance:
        return StockBalance(self.available_quantity, self.reserved_quantity)


@dataclass(frozen=True)
class LotRecord:
    id: UUID
    tenant_id: UUID
    lot_no: str
    product_id: UUID
    initial_quantity: Decimal
    current_quantity: Decimal
    quality_status: str
    expiry_date: date | None = None
    is_active: bool = True
    parent_lot_id: UUID | None = None


@dataclass(frozen=True)
class TransactionRecord:
    id: UUID
    tenant_id: UUID
    transaction_no: str
    transaction_type: TransactionType
    transaction_date: datetime
    product_id: UUID
    quantity: Decimal
    approval_status: ApprovalStatus
    warehouse_id: UUID | None = None
    from_warehouse_id: UUID | None = None
    to_warehouse_id: UUID | None = None
    lot_id: UUID | None = None
    operator_id: UUID | None = None
    approved_by_id: UUID | None = None
    approved_at: datetime | None = None
    reference_no: str | None = None
    remarks: str | None = None

    @property
    def is_terminal(self) -> bool:
        return self.approval_status != ApprovalStatus.PENDING
