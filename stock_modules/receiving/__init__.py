"""
Receiving Module (``stock_modules.receiving``).

Responsibility
--------------
Goods-receipt intake: records receipts, opens incoming inspections, and
disposes of graded stock to the receiving warehouse or to quarantine.

Architecture
------------
Layer: **Modules**.  All stock effects go through the kernel
``TransactionProcessor``; this package never writes inventory rows or lot
quantities directly.  It imports from ``stock_kernel`` and
``stock_modules.quality`` but never the reverse.

Failure Modes
-------------
- Any exception inside a service method rolls back that method's
  savepoint before re-raising; the caller's session stays usable.
"""

from stock_modules.receiving.config import ReceivingConfig
from stock_modules.receiving.models import (
    GoodsReceipt,
    GoodsReceiptItem,
    GoodsReceiptItemRequest,
    GoodsReceiptRequest,
    GoodsReceiptUpdate,
    ItemInspectionStatus,
    ReceiptStatus,
)
from stock_modules.receiving.service import GoodsReceiptService
from stock_modules.receiving.workflows import RECEIPT_WORKFLOW

__all__ = [
    "GoodsReceipt",
    "GoodsReceiptItem",
    "GoodsReceiptItemRequest",
    "GoodsReceiptRequest",
    "GoodsReceiptService",
    "GoodsReceiptUpdate",
    "ItemInspectionStatus",
    "RECEIPT_WORKFLOW",
    "ReceiptStatus",
    "ReceivingConfig",
]
