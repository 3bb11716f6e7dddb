"""Services for the stock kernel (write side and queries)."""

from stock_kernel.services.inventory_ledger import InventoryLedger
from stock_kernel.services.lot_service import LotService
from stock_kernel.services.sequence_service import SequenceService, format_document_number
from stock_kernel.services.transaction_processor import TransactionProcessor

__all__ = [
    "InventoryLedger",
    "LotService",
    "SequenceService",
    "TransactionProcessor",
    "format_document_number",
]
