"""
Receiving Domain Models (``stock_modules.receiving.models``).

Responsibility
--------------
Input structures callers use to submit and amend goods receipts, and the
frozen DTOs returned by ``GoodsReceiptService``.

Architecture
------------
Layer: **Modules** -- pure data structures, no I/O.  Inputs are explicit
dataclasses whose defaults are documented field by field; nothing is
filled in behind the caller's back except where stated.

Invariants
----------
- ``received_quantity > 0`` and ``unit_price >= 0`` on every item request.
- A new item may only start as NOT_REQUIRED or PENDING; PASS and FAIL are
  set by grading.
- ``line_amount = received_quantity * unit_price``.
"""

from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from uuid import UUID

from stock_kernel.exceptions import ValidationError


class ReceiptStatus(str, Enum):
    """Goods receipt header states."""
    PENDING = "PENDING"
    INSPECTING = "INSPECTING"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"


class ItemInspectionStatus(str, Enum):
    """Inspection state of one receipt line."""
    NOT_REQUIRED = "NOT_REQUIRED"
    PENDING = "PENDING"
    PASS = "PASS"
    FAIL = "FAIL"


@dataclass(frozen=True)
class GoodsReceiptItemRequest:
    """
    One line of a goods receipt.

    Field defaults:
        lot_no: None -- stock is received without lot tracking.
        unit_price: 0.
        inspection_status: NOT_REQUIRED -- stock is credited on creation.
            Use PENDING to hold the line for incoming inspection.
        ordered_quantity: None -- no purchase-order quantity to compare.
        expiry_date: None.
        remarks: None.
    """
    product_id: UUID
    received_quantity: Decimal
    lot_no: str | None = None
    unit_price: Decimal = Decimal("0")
    inspection_status: ItemInspectionStatus = ItemInspectionStatus.NOT_REQUIRED
    ordered_quantity: Decimal | None = None
    expiry_date: date | None = None
    remarks: str | None = None

    def __post_init__(self):
        if self.product_id is None:
            raise ValidationError("product_id", "is required")
        if self.received_quantity is None or Decimal(self.received_quantity) <= 0:
            raise ValidationError(
                "received_quantity", f"must be positive, got {self.received_quantity}",
            )
        if self.unit_price is None or Decimal(self.unit_price) < 0:
            raise ValidationError("unit_price", "cannot be negative")
        status = ItemInspectionStatus(self.inspection_status)
        if status not in (ItemInspectionStatus.NOT_REQUIRED, ItemInspectionStatus.PENDING):
            raise ValidationError(
                "inspection_status", f"a new line cannot start as {status.value}",
            )

    @property
    def line_amount(self) -> Decimal:
        return Decimal(self.received_quantity) * Decimal(self.unit_price)


@dataclass(frozen=True)
class GoodsReceiptRequest:
    """
    A goods receipt submitted for intake.

    Field defaults:
        receipt_no: "" -- ``GR-YYYYMMDD-NNNN`` is generated for the tenant-day.
        receipt_date: None -- the injected clock's ``now()``.
        supplier_id / purchase_order_id / receiver_id: None.
        remarks: None.
        is_active: True.
    """
    warehouse_id: UUID
    items: tuple[GoodsReceiptItemRequest, ...]
    receipt_no: str = ""
    receipt_date: datetime | None = None
    supplier_id: UUID | None = None
    purchase_order_id: UUID | None = None
    receiver_id: UUID | None = None
    remarks: str | None = None
    is_active: bool = True

    def __post_init__(self):
        if self.warehouse_id is None:
            raise ValidationError("warehouse_id", "is required")
        if not self.items:
            raise ValidationError("items", "a goods receipt needs at least one item")
        # Lists are accepted and frozen into a tuple
        object.__setattr__(self, "items", tuple(self.items))


@dataclass(frozen=True)
class GoodsReceiptUpdate:
    """
    Administrative amendment of a PENDING receipt.

    Quantities and lots are not editable: a NOT_REQUIRED line has already
    credited stock.  Fields left as None keep their stored value.
    ``unit_prices`` maps item id to a new unit price.
    """
    receipt_date: datetime | None = None
    supplier_id: UUID | None = None
    purchase_order_id: UUID | None = None
    receiver_id: UUID | None = None
    remarks: str | None = None
    unit_prices: dict[UUID, Decimal] = field(default_factory=dict)


@dataclass(frozen=True)
class GoodsReceiptItem:
    id: UUID
    goods_receipt_id: UUID
    line_no: int
    product_id: UUID
    received_quantity: Decimal
    unit_price: Decimal
    line_amount: Decimal
    inspection_status: ItemInspectionStatus
    lot_no: str | None = None
    lot_id: UUID | None = None
    ordered_quantity: Decimal | None = None
    expiry_date: date | None = None
    inspection_id: UUID | None = None
    inspection_result: str | None = None
    credited_warehouse_id: UUID | None = None
    transaction_id: UUID | None = None
    reversal_transaction_id: UUID | None = None
    remarks: str | None = None


@dataclass(frozen=True)
class GoodsReceipt:
    id: UUID
    tenant_id: UUID
    receipt_no: str
    receipt_date: datetime
    warehouse_id: UUID
    status: ReceiptStatus
    total_quantity: Decimal
    total_amount: Decimal
    items: tuple[GoodsReceiptItem, ...] = ()
    supplier_id: UUID | None = None
    purchase_order_id: UUID | None = None
    receiver_id: UUID | None = None
    remarks: str | None = None
    is_active: bool = True
    completed_by_id: UUID | None = None
    completed_at: datetime | None = None
    cancel_reason: str | None = None
    cancelled_at: datetime | None = None
