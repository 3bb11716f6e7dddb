"""ORM models for the stock kernel."""

from stock_kernel.models.inventory import InventoryModel
from stock_kernel.models.lot import LotModel, LotQualityStatus
from stock_kernel.models.sequence import DocumentSequenceModel
from stock_kernel.models.transaction import InventoryTransactionModel

__all__ = [
    "DocumentSequenceModel",
    "InventoryModel",
    "InventoryTransactionModel",
    "LotModel",
    "LotQualityStatus",
]
